"""
Declarative per-role review policy.

Every reviewer role runs the same verification session; what differs is whether the role
sees its own previous pass, whose passes it sees read-only, which customer statuses it
reviews, and how its pending-work list is scoped.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from models.enums import CustomerStatus, Role
from services.errors import AuthorizationError


@dataclass(frozen=True)
class RolePolicy:
    role: Role
    hydrate_own: bool
    visible_peer_roles: tuple[Role, ...]
    review_status: CustomerStatus
    amend_status: CustomerStatus
    sent_back_status: CustomerStatus
    scope: Literal["branch", "region"]

    @property
    def reviewable_statuses(self) -> frozenset[CustomerStatus]:
        """Statuses in which this role may submit a pass."""
        return frozenset({self.review_status, self.amend_status})

    @property
    def pending_statuses(self) -> tuple[CustomerStatus, CustomerStatus]:
        """Statuses listed by the amendment queue for this role."""
        return (self.amend_status, self.sent_back_status)


ROLE_POLICIES: dict[Role, RolePolicy] = {
    Role.BRANCH_MANAGER: RolePolicy(
        role=Role.BRANCH_MANAGER,
        hydrate_own=True,
        visible_peer_roles=(Role.CUSTOMER_SERVICE_OFFICER, Role.CREDIT_ANALYST_OFFICER),
        review_status=CustomerStatus.BM_REVIEW,
        amend_status=CustomerStatus.BM_REVIEW_AMEND,
        sent_back_status=CustomerStatus.SENT_BACK_BY_BM,
        scope="branch",
    ),
    Role.CUSTOMER_SERVICE_OFFICER: RolePolicy(
        role=Role.CUSTOMER_SERVICE_OFFICER,
        hydrate_own=True,
        visible_peer_roles=(Role.BRANCH_MANAGER, Role.CREDIT_ANALYST_OFFICER),
        review_status=CustomerStatus.CSO_REVIEW,
        amend_status=CustomerStatus.CSO_REVIEW_AMEND,
        sent_back_status=CustomerStatus.SENT_BACK_BY_CSO,
        scope="region",
    ),
    Role.CREDIT_ANALYST_OFFICER: RolePolicy(
        role=Role.CREDIT_ANALYST_OFFICER,
        # Credit analysts always start from a clean form
        hydrate_own=False,
        visible_peer_roles=(Role.BRANCH_MANAGER, Role.CUSTOMER_SERVICE_OFFICER),
        review_status=CustomerStatus.CA_REVIEW,
        amend_status=CustomerStatus.CA_REVIEW_AMEND,
        sent_back_status=CustomerStatus.SENT_BACK_BY_CA,
        scope="region",
    ),
}


def policy_for(role: Role | str) -> RolePolicy:
    try:
        return ROLE_POLICIES[Role(role)]
    except (KeyError, ValueError):
        raise AuthorizationError(f"Role {role} does not review customer records") from None


def policy_for_sent_back(status: CustomerStatus | str) -> RolePolicy:
    """The reviewer whose send-back produced this status."""
    for policy in ROLE_POLICIES.values():
        if policy.sent_back_status == status:
            return policy
    raise LookupError(f"Status {status} is not a sent-back status")


def require_scope_id(scope: Literal["branch", "region"], actor) -> str:
    """The actor's branch or region id; a scoped role without one sees nothing."""
    value = actor.branch_id if scope == "branch" else actor.region_id
    if not value:
        raise AuthorizationError(
            f"No {scope} assigned to {actor.role.value} {actor.user_id}",
            details={"user_id": actor.user_id, "scope": scope},
        )
    return value


def check_scope(policy: RolePolicy, actor, customer) -> None:
    """Branch-scoped roles see their branch only; region-scoped roles their region."""
    scope_id = require_scope_id(policy.scope, actor)
    customer_scope_id = customer.branch_id if policy.scope == "branch" else customer.region_id
    if customer_scope_id != scope_id:
        raise AuthorizationError(
            f"Customer belongs to another {policy.scope}", details={"customer_id": customer.id}
        )
