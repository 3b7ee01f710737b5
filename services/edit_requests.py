"""
Edit request ledger: direct field-edit proposals outside a full verification pass.

    pending_branch_manager --confirm (branch manager)--> confirmed --approve (superadmin)--> approved
              |                                              |
              +------------reject (branch manager or superadmin)----------> rejected

Statuses never move backwards. Approval copies new_values onto the target row in the same
transaction as the status change.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database import atomic
from models import EditRequest, EditRequestStatus, EditSection, Role
from schemas.actor import Actor
from schemas.edit_request import EditRequestCreate
from services.customer_graph import load_customer
from services.errors import AuthorizationError, NotFoundError, ValidationError
from services.field_copy import apply_field_values, check_fields, current_values
from services.role_policy import require_scope_id
from services.storage import ObjectStorage, build_upload_path

logger = logging.getLogger(__name__)

CREATOR_ROLES = frozenset({Role.RELATIONSHIP_OFFICER, Role.BRANCH_MANAGER, Role.REGIONAL_MANAGER})
SUPPORTING_DOCUMENTS_PREFIX = "edit_requests"


@dataclass(frozen=True)
class Transition:
    roles: frozenset[Role]
    from_states: frozenset[EditRequestStatus]
    to_state: EditRequestStatus


TRANSITIONS: dict[str, Transition] = {
    "confirm": Transition(
        roles=frozenset({Role.BRANCH_MANAGER}),
        from_states=frozenset({EditRequestStatus.PENDING_BRANCH_MANAGER}),
        to_state=EditRequestStatus.CONFIRMED,
    ),
    "approve": Transition(
        roles=frozenset({Role.SUPERADMIN}),
        from_states=frozenset({EditRequestStatus.CONFIRMED}),
        to_state=EditRequestStatus.APPROVED,
    ),
    "reject": Transition(
        roles=frozenset({Role.BRANCH_MANAGER, Role.SUPERADMIN}),
        from_states=EditRequestStatus.open_states(),
        to_state=EditRequestStatus.REJECTED,
    ),
}


@dataclass(frozen=True)
class SupportingDocument:
    key: str
    filename: str
    content: bytes


async def create_edit_request(
    db: AsyncSession,
    actor: Actor,
    body: EditRequestCreate,
    storage: Optional[ObjectStorage] = None,
    documents: tuple[SupportingDocument, ...] = (),
) -> EditRequest:
    if actor.role not in CREATOR_ROLES:
        raise AuthorizationError(f"{actor.role.value} cannot raise edit requests")
    section = EditSection(body.section_type)
    new_values = check_fields(section, body.new_values)
    customer = await load_customer(db, body.customer_id, actor.tenant_id)

    # Uploads finish before the ledger row exists; a failed upload stops here
    document_urls: dict[str, str] = {}
    if documents:
        if storage is None:
            raise ValidationError("Supporting documents supplied but no storage is configured")
        for doc in documents:
            path = build_upload_path(SUPPORTING_DOCUMENTS_PREFIX, doc.key, doc.filename)
            document_urls[doc.key] = await storage.upload(path, doc.content)

    snapshot = await current_values(db, customer, section, list(new_values))
    request = EditRequest(
        id=f"edr-{uuid.uuid4().hex[:12]}",
        tenant_id=actor.tenant_id,
        customer_id=customer.id,
        branch_id=customer.branch_id or actor.branch_id,
        region_id=customer.region_id or actor.region_id,
        section_type=section.value,
        current_values=snapshot,
        new_values=new_values,
        reason=body.reason,
        document_urls=document_urls,
        status=EditRequestStatus.PENDING_BRANCH_MANAGER.value,
        created_by=actor.user_id,
        created_at=datetime.now(timezone.utc),
    )
    async with atomic(db, "create edit request"):
        db.add(request)
        await db.flush()
    logger.info("Edit request %s (%s) raised for customer %s by %s", request.id, section.value, customer.id, actor.user_id)
    return request


async def confirm_edit_request(db: AsyncSession, actor: Actor, request_id: str) -> EditRequest:
    return await _transition(db, actor, request_id, "confirm")


async def approve_edit_request(db: AsyncSession, actor: Actor, request_id: str) -> EditRequest:
    return await _transition(db, actor, request_id, "approve")


async def reject_edit_request(db: AsyncSession, actor: Actor, request_id: str, reason: str) -> EditRequest:
    if not (reason or "").strip():
        raise ValidationError("Please provide a reason for rejection")
    return await _transition(db, actor, request_id, "reject", reason=reason.strip())


async def get_edit_request(db: AsyncSession, actor: Actor, request_id: str) -> EditRequest:
    result = await db.execute(
        select(EditRequest)
        .where(EditRequest.id == request_id, EditRequest.tenant_id == actor.tenant_id)
        .execution_options(populate_existing=True)
    )
    request = result.scalar_one_or_none()
    if not request:
        raise NotFoundError("Edit request not found", details={"request_id": request_id})
    return request


async def list_edit_requests(
    db: AsyncSession,
    actor: Actor,
    status: Optional[EditRequestStatus] = None,
    customer_id: Optional[str] = None,
) -> list[EditRequest]:
    """RO: own requests; branch manager: branch; regional manager: region; others: tenant."""
    stmt = select(EditRequest).where(EditRequest.tenant_id == actor.tenant_id)
    if actor.role == Role.RELATIONSHIP_OFFICER:
        stmt = stmt.where(EditRequest.created_by == actor.user_id)
    elif actor.role == Role.BRANCH_MANAGER:
        stmt = stmt.where(EditRequest.branch_id == require_scope_id("branch", actor))
    elif actor.role == Role.REGIONAL_MANAGER:
        stmt = stmt.where(EditRequest.region_id == require_scope_id("region", actor))
    if status is not None:
        stmt = stmt.where(EditRequest.status == EditRequestStatus(status).value)
    if customer_id:
        stmt = stmt.where(EditRequest.customer_id == customer_id)
    result = await db.execute(stmt.order_by(EditRequest.created_at.desc()))
    return list(result.scalars().all())


async def _transition(
    db: AsyncSession, actor: Actor, request_id: str, action: str, reason: Optional[str] = None
) -> EditRequest:
    rule = TRANSITIONS[action]
    request = await get_edit_request(db, actor, request_id)

    if actor.role not in rule.roles:
        raise AuthorizationError(
            f"{actor.role.value} cannot {action} edit requests",
            details={"request_id": request.id, "status": request.status},
        )
    if request.status not in rule.from_states:
        raise AuthorizationError(
            f"Cannot {action} a request that is {request.status}",
            details={"request_id": request.id, "status": request.status},
        )
    if actor.role == Role.BRANCH_MANAGER and request.branch_id != require_scope_id("branch", actor):
        raise AuthorizationError("Edit request belongs to another branch", details={"request_id": request.id})

    now = datetime.now(timezone.utc)
    previous = request.status
    async with atomic(db, f"{action} edit request"):
        if rule.to_state == EditRequestStatus.APPROVED:
            # All-or-nothing: a failed copy rolls the status change back too
            customer = await load_customer(db, request.customer_id, actor.tenant_id)
            await apply_field_values(db, customer, request.section_type, dict(request.new_values))
            request.approved_by = actor.user_id
            request.approved_at = now
        elif rule.to_state == EditRequestStatus.CONFIRMED:
            request.confirmed_by = actor.user_id
            request.confirmed_at = now
        else:
            request.rejected_by = actor.user_id
            request.rejected_at = now
            request.rejection_reason = reason
        request.status = rule.to_state.value
        request.updated_at = now
        await db.flush()

    logger.info("Edit request %s: %s -> %s by %s", request.id, previous, request.status, actor.user_id)
    return request
