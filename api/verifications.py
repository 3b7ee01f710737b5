"""
Verification session routes.

The snapshot returned by GET travels with every later call; the server re-reads the customer
and validates the snapshot against the acting role before applying anything.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_actor, http_error
from database import get_db
from models import VerificationRecord
from schemas.actor import Actor
from schemas.verification import MutationRequest, SessionSnapshot, StepMoveRequest, ValidateRequest
from services.errors import WorkflowError
from services.verification_session import VerificationSession
from utils.case import dict_keys_to_camel
from utils.rows import row_to_dict

router = APIRouter(prefix="/api/verifications", tags=["verifications"])


def _snapshot_to_response(snapshot: SessionSnapshot) -> dict[str, Any]:
    return snapshot.model_dump(by_alias=True, mode="json")


def _record_to_response(record: VerificationRecord) -> dict[str, Any]:
    return dict_keys_to_camel(row_to_dict(record, exclude=("data",)))


async def _resume(db: AsyncSession, actor: Actor, customer_id: str, snapshot: SessionSnapshot) -> VerificationSession:
    if snapshot.customer_id != customer_id:
        raise HTTPException(status_code=400, detail="Snapshot belongs to a different customer")
    return await VerificationSession.resume(db, actor, snapshot)


@router.get("/{customer_id}")
async def load_session(
    customer_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        session = await VerificationSession.load(db, actor, customer_id)
    except WorkflowError as e:
        raise http_error(e) from e
    return _snapshot_to_response(session.snapshot)


@router.post("/{customer_id}/mutate")
async def mutate_session(
    customer_id: str,
    body: MutationRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        session = await _resume(db, actor, customer_id, body.snapshot)
        snapshot = session.mutate(body.section, body.field, body.value, index=body.index)
    except WorkflowError as e:
        raise http_error(e) from e
    return _snapshot_to_response(snapshot)


@router.post("/{customer_id}/validate")
async def validate_step(
    customer_id: str,
    body: ValidateRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        session = await _resume(db, actor, customer_id, body.snapshot)
        issues = session.validate_step(body.step)
    except WorkflowError as e:
        raise http_error(e) from e
    return {
        "valid": not issues,
        "issues": [i.model_dump(by_alias=True) for i in issues],
        "snapshot": _snapshot_to_response(session.snapshot),
    }


@router.post("/{customer_id}/step")
async def move_step(
    customer_id: str,
    body: StepMoveRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        session = await _resume(db, actor, customer_id, body.snapshot)
        snapshot = session.next_step() if body.direction == "next" else session.previous_step()
    except WorkflowError as e:
        raise http_error(e) from e
    return _snapshot_to_response(snapshot)


@router.put("/{customer_id}/draft")
async def save_draft(
    customer_id: str,
    body: SessionSnapshot,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        session = await _resume(db, actor, customer_id, body)
        draft = await session.save_draft()
    except WorkflowError as e:
        raise http_error(e) from e
    return _record_to_response(draft)


@router.post("/{customer_id}/submit")
async def submit_session(
    customer_id: str,
    body: SessionSnapshot,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    try:
        session = await _resume(db, actor, customer_id, body)
        result = await session.submit()
    except WorkflowError as e:
        raise http_error(e) from e
    return result.model_dump(by_alias=True, mode="json")
