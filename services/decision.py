"""
Maps a reviewer's final decision to the customer's next workflow status and applies it.

resolve() is a pure table lookup; unmapped (role, decision) pairs raise instead of leaving
the status untouched. apply_decision() runs inside the submit transaction, after the
verification record has been inserted.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from models import Customer, CustomerStatus, Decision, EditSection, Role
from schemas.verification import ResolvedChanges
from services.errors import UnmappedDecisionError
from services.field_copy import apply_customer_values, apply_field_values

logger = logging.getLogger(__name__)

BM = Role.BRANCH_MANAGER
CA = Role.CREDIT_ANALYST_OFFICER
CSO = Role.CUSTOMER_SERVICE_OFFICER

STATUS_TRANSITIONS: dict[tuple[Role, Decision], CustomerStatus] = {
    (BM, Decision.APPROVED): CustomerStatus.CSO_REVIEW,
    (BM, Decision.REFERRED): CustomerStatus.CSO_REVIEW,
    (BM, Decision.PENDING): CustomerStatus.SENT_BACK_BY_BM,
    (BM, Decision.EDIT): CustomerStatus.SENT_BACK_BY_BM,
    (BM, Decision.REJECTED): CustomerStatus.REJECTED,
    (CA, Decision.APPROVED): CustomerStatus.APPROVED,
    (CA, Decision.REFERRED): CustomerStatus.APPROVED,
    (CA, Decision.PENDING): CustomerStatus.SENT_BACK_BY_CA,
    (CA, Decision.EDIT): CustomerStatus.SENT_BACK_BY_CA,
    (CA, Decision.REJECTED): CustomerStatus.REJECTED,
    (CSO, Decision.APPROVED): CustomerStatus.CA_REVIEW,
    (CSO, Decision.REFERRED): CustomerStatus.CA_REVIEW,
    (CSO, Decision.PENDING): CustomerStatus.SENT_BACK_BY_CSO,
    (CSO, Decision.EDIT): CustomerStatus.SENT_BACK_BY_CSO,
    (CSO, Decision.REJECTED): CustomerStatus.REJECTED,
}


def resolve(role: Role | str, decision: Decision | str | None) -> CustomerStatus:
    try:
        key = (Role(role), Decision(decision))
    except ValueError:
        raise UnmappedDecisionError(
            f"No status transition for role {role!r} and decision {decision!r}",
            details={"role": str(role), "decision": str(decision)},
        ) from None
    try:
        return STATUS_TRANSITIONS[key]
    except KeyError:
        raise UnmappedDecisionError(
            f"No status transition for role {key[0].value} and decision {key[1].value}",
            details={"role": key[0].value, "decision": key[1].value},
        ) from None


def sent_back_fields(
    decision: Decision | str | None, actor_id: str, overall_comment: str, at: datetime
) -> dict[str, Any]:
    """sent_back_by/at/reason for pending or edit outcomes, empty otherwise."""
    if decision is None or not Decision(decision).sends_back:
        return {}
    return {"sent_back_by": actor_id, "sent_back_at": at, "sent_back_reason": overall_comment}


async def apply_decision(
    session: AsyncSession,
    customer: Customer,
    role: Role,
    decision: Decision,
    changes: Optional[ResolvedChanges] = None,
) -> CustomerStatus:
    """Move the customer to its next status; on approval also copy the resolved values forward."""
    next_status = resolve(role, decision)
    previous = customer.status
    customer.status = next_status.value

    if decision == Decision.APPROVED and changes is not None and not changes.is_empty():
        if changes.customer:
            await apply_customer_values(session, customer, changes.customer)
        if changes.guarantor:
            await apply_field_values(session, customer, EditSection.GUARANTOR, changes.guarantor)
        if changes.next_of_kin:
            await apply_field_values(session, customer, EditSection.NEXT_OF_KIN, changes.next_of_kin)

    await session.flush()
    logger.info(
        "Customer %s: %s -> %s (%s by %s)", customer.id, previous, next_status.value, decision.value, role.value
    )
    return next_status
