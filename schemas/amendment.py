from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field

from models.enums import CustomerStatus
from schemas.base import CamelModel


class PendingFilters(CamelModel):
    search: Optional[str] = None
    branch_id: Optional[str] = None
    region_id: Optional[str] = None
    status: Optional[CustomerStatus] = None


class PendingCustomer(CamelModel):
    id: str
    full_name: str
    mobile: Optional[str] = None
    id_number: Optional[str] = None
    branch_id: Optional[str] = None
    region_id: Optional[str] = None
    status: CustomerStatus
    action: Literal["ro_action_needed", "manager_approval_needed"]
    created_at: datetime
    edited_at: datetime


class ResubmitRequest(CamelModel):
    changes: dict[str, Any] = Field(default_factory=dict, description="Corrected customer fields")
