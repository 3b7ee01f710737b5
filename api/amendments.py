from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor, http_error
from database import get_db
from models.enums import CustomerStatus
from schemas.actor import Actor
from schemas.amendment import PendingFilters, ResubmitRequest
from services.amendment_queue import classify, list_pending_for_role, resubmit_amendment
from services.errors import WorkflowError
from utils.case import dict_keys_to_snake

router = APIRouter(prefix="/api/amendments", tags=["amendments"])


@router.get("")
async def list_pending(
    search: Optional[str] = Query(None),
    branch_id: Optional[str] = Query(None, alias="branchId"),
    region_id: Optional[str] = Query(None, alias="regionId"),
    status: Optional[CustomerStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    filters = PendingFilters(search=search, branch_id=branch_id, region_id=region_id, status=status)
    try:
        rows = await list_pending_for_role(db, actor, filters)
    except WorkflowError as e:
        raise http_error(e) from e
    return [r.model_dump(by_alias=True, mode="json") for r in rows]


@router.post("/{customer_id}/resubmit")
async def resubmit(
    customer_id: str,
    body: ResubmitRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        customer = await resubmit_amendment(db, actor, customer_id, dict_keys_to_snake(body.changes))
    except WorkflowError as e:
        raise http_error(e) from e
    return {
        "id": customer.id,
        "status": customer.status,
        "action": classify(customer.status),
        "editedAt": customer.edited_at.isoformat() if customer.edited_at else None,
    }
