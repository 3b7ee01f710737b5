"""
Customers awaiting amendment work for a reviewer role, and the RO resubmission that feeds them.

A customer shows up for a role when its status is the role's amend or sent-back status and
it has been edited since creation (edited_at > created_at).
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from database import atomic
from models import Customer, CustomerStatus, Role
from schemas.actor import Actor
from schemas.amendment import PendingCustomer, PendingFilters
from services.customer_graph import load_customer
from services.errors import AuthorizationError, ValidationError
from services.field_copy import apply_customer_values
from services.role_policy import policy_for, policy_for_sent_back, require_scope_id

logger = logging.getLogger(__name__)


def classify(status: CustomerStatus | str) -> str:
    """ro_action_needed for any sent-back status, manager_approval_needed otherwise."""
    return "ro_action_needed" if CustomerStatus(status).is_sent_back else "manager_approval_needed"


async def list_pending_for_role(
    db: AsyncSession, actor: Actor, filters: Optional[PendingFilters] = None
) -> list[PendingCustomer]:
    policy = policy_for(actor.role)
    filters = filters or PendingFilters()

    statuses = [s.value for s in policy.pending_statuses]
    if filters.status is not None:
        if filters.status not in policy.pending_statuses:
            return []
        statuses = [CustomerStatus(filters.status).value]

    stmt = select(Customer).where(
        Customer.tenant_id == actor.tenant_id,
        Customer.status.in_(statuses),
        Customer.edited_at > Customer.created_at,
    )
    scope_id = require_scope_id(policy.scope, actor)
    if policy.scope == "branch":
        stmt = stmt.where(Customer.branch_id == scope_id)
    else:
        stmt = stmt.where(Customer.region_id == scope_id)

    if filters.branch_id:
        stmt = stmt.where(Customer.branch_id == filters.branch_id)
    if filters.region_id:
        stmt = stmt.where(Customer.region_id == filters.region_id)
    if filters.search and filters.search.strip():
        term = f"%{filters.search.strip()}%"
        stmt = stmt.where(
            or_(
                Customer.first_name.ilike(term),
                Customer.middle_name.ilike(term),
                Customer.surname.ilike(term),
                Customer.mobile.ilike(term),
                Customer.id_number.ilike(term),
            )
        )

    result = await db.execute(stmt.order_by(Customer.edited_at.desc()))
    return [
        PendingCustomer(
            id=c.id,
            full_name=c.full_name,
            mobile=c.mobile,
            id_number=c.id_number,
            branch_id=c.branch_id,
            region_id=c.region_id,
            status=c.status,
            action=classify(c.status),
            created_at=c.created_at,
            edited_at=c.edited_at,
        )
        for c in result.scalars().all()
    ]


async def resubmit_amendment(
    db: AsyncSession, actor: Actor, customer_id: str, changes: Optional[dict[str, Any]] = None
) -> Customer:
    """RO correction of a sent-back customer: copy fixes, stamp edited_at, hand back to the reviewer."""
    if actor.role != Role.RELATIONSHIP_OFFICER:
        raise AuthorizationError(f"{actor.role.value} cannot resubmit amendments")
    customer = await load_customer(db, customer_id, actor.tenant_id)
    if customer.branch_id != require_scope_id("branch", actor):
        raise AuthorizationError("Customer belongs to another branch", details={"customer_id": customer.id})
    try:
        reviewer = policy_for_sent_back(customer.status)
    except LookupError:
        raise ValidationError(
            f"Customer is in status {customer.status} and has not been sent back",
            details={"customer_id": customer.id, "status": customer.status},
        ) from None

    previous = customer.status
    async with atomic(db, "resubmit amendment"):
        if changes:
            await apply_customer_values(db, customer, changes)
        customer.edited_at = datetime.now(timezone.utc)
        customer.status = reviewer.amend_status.value
        await db.flush()

    logger.info("Customer %s resubmitted by %s: %s -> %s", customer.id, actor.user_id, previous, customer.status)
    return customer
