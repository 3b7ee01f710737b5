from typing import Optional

from models.enums import Role
from schemas.base import CamelModel


class Actor(CamelModel):
    """Acting user as supplied by the identity/session context."""

    user_id: str
    role: Role
    tenant_id: str
    branch_id: Optional[str] = None
    region_id: Optional[str] = None
