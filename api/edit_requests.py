from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor, get_object_storage, http_error
from database import get_db
from models import EditRequest
from models.enums import EditRequestStatus
from schemas.actor import Actor
from schemas.edit_request import EditRequestCreate, EditRequestFilters, EditRequestReject
from services.edit_requests import (
    SupportingDocument,
    approve_edit_request,
    confirm_edit_request,
    create_edit_request,
    get_edit_request,
    list_edit_requests,
    reject_edit_request,
)
from services.errors import WorkflowError
from services.storage import ObjectStorage
from utils.case import dict_keys_to_camel, dict_keys_to_snake

router = APIRouter(prefix="/api/edit-requests", tags=["edit-requests"])


def _request_to_response(r: EditRequest) -> dict[str, Any]:
    return {
        "id": r.id,
        "customerId": r.customer_id,
        "branchId": r.branch_id,
        "regionId": r.region_id,
        "sectionType": r.section_type,
        "currentValues": dict_keys_to_camel(r.current_values or {}),
        "newValues": dict_keys_to_camel(r.new_values or {}),
        "reason": r.reason,
        "documentUrls": r.document_urls or {},
        "status": r.status,
        "createdBy": r.created_by,
        "confirmedBy": r.confirmed_by,
        "confirmedAt": r.confirmed_at.isoformat() if r.confirmed_at else None,
        "approvedBy": r.approved_by,
        "approvedAt": r.approved_at.isoformat() if r.approved_at else None,
        "rejectedBy": r.rejected_by,
        "rejectedAt": r.rejected_at.isoformat() if r.rejected_at else None,
        "rejectionReason": r.rejection_reason,
        "createdAt": r.created_at.isoformat() if r.created_at else None,
        "updatedAt": r.updated_at.isoformat() if r.updated_at else None,
    }


@router.get("")
async def list_requests(
    status: Optional[EditRequestStatus] = Query(None),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    filters = EditRequestFilters(status=status, customer_id=customer_id)
    requests = await list_edit_requests(db, actor, status=filters.status, customer_id=filters.customer_id)
    return [_request_to_response(r) for r in requests]


@router.get("/{request_id}")
async def get_request(request_id: str, db: AsyncSession = Depends(get_db), actor: Actor = Depends(get_actor)):
    try:
        request = await get_edit_request(db, actor, request_id)
    except WorkflowError as e:
        raise http_error(e) from e
    return _request_to_response(request)


@router.post("", status_code=201)
async def create_request(
    customer_id: str = Form(..., alias="customerId"),
    section_type: str = Form(..., alias="sectionType"),
    new_values: str = Form(..., alias="newValues", description="JSON object of proposed values"),
    reason: Optional[str] = Form(None),
    documents: list[UploadFile] = File(default=[], description="Supporting documents"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    storage: ObjectStorage = Depends(get_object_storage),
):
    try:
        values = json.loads(new_values)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"newValues is not valid JSON: {e}") from e
    if not isinstance(values, dict):
        raise HTTPException(status_code=400, detail="newValues must be a JSON object")
    try:
        body = EditRequestCreate(
            customer_id=customer_id,
            section_type=section_type,
            new_values=dict_keys_to_snake(values),
            reason=reason,
        )
    except PydanticValidationError as e:
        raise HTTPException(status_code=400, detail=[err["msg"] for err in e.errors()]) from e

    uploads = []
    for f in documents:
        if not f.filename:
            continue
        content = await f.read()
        if not content:
            raise HTTPException(status_code=400, detail=f"File is empty: {f.filename}")
        uploads.append(SupportingDocument(key=Path(f.filename).stem, filename=f.filename, content=content))

    try:
        request = await create_edit_request(db, actor, body, storage=storage, documents=tuple(uploads))
    except WorkflowError as e:
        raise http_error(e) from e
    return _request_to_response(request)


@router.post("/{request_id}/confirm")
async def confirm_request(request_id: str, db: AsyncSession = Depends(get_db), actor: Actor = Depends(get_actor)):
    try:
        request = await confirm_edit_request(db, actor, request_id)
    except WorkflowError as e:
        raise http_error(e) from e
    return _request_to_response(request)


@router.post("/{request_id}/approve")
async def approve_request(request_id: str, db: AsyncSession = Depends(get_db), actor: Actor = Depends(get_actor)):
    try:
        request = await approve_edit_request(db, actor, request_id)
    except WorkflowError as e:
        raise http_error(e) from e
    return _request_to_response(request)


@router.post("/{request_id}/reject")
async def reject_request(
    request_id: str,
    body: EditRequestReject,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        request = await reject_edit_request(db, actor, request_id, body.reason)
    except WorkflowError as e:
        raise http_error(e) from e
    return _request_to_response(request)
