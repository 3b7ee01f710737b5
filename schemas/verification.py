from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field

from models.enums import Decision, Role
from schemas.base import CamelModel
from schemas.customer import CustomerGraph


class CustomerCheck(CamelModel):
    id_verified: bool = False
    phone_verified: bool = False
    comment: str = ""


class SectionCheck(CamelModel):
    verified: bool = False
    comment: str = ""


class GuarantorCheck(CamelModel):
    id_verified: bool = False
    phone_verified: bool = False
    comment: str = ""


class LoanCheck(CamelModel):
    scored_amount: float = 0
    comment: str = ""


class ResolvedChanges(CamelModel):
    """Corrected values copied onto the canonical rows when the pass is approved."""

    customer: dict[str, Any] = Field(default_factory=dict)
    guarantor: dict[str, Any] = Field(default_factory=dict)
    next_of_kin: dict[str, Any] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.customer or self.guarantor or self.next_of_kin)


class ReviewData(CamelModel):
    customer: CustomerCheck = Field(default_factory=CustomerCheck)
    business: SectionCheck = Field(default_factory=SectionCheck)
    guarantors: list[GuarantorCheck] = Field(default_factory=list)
    security: SectionCheck = Field(default_factory=SectionCheck)
    guarantor_security: SectionCheck = Field(default_factory=SectionCheck)
    next_of_kin: SectionCheck = Field(default_factory=SectionCheck)
    document: SectionCheck = Field(default_factory=SectionCheck)
    loan: LoanCheck = Field(default_factory=LoanCheck)
    final_decision: Optional[Decision] = None
    overall_comment: str = ""
    resolved_changes: ResolvedChanges = Field(default_factory=ResolvedChanges)


class AmendmentGroup(CamelModel):
    section: str
    component: str
    fields: list[str]
    guarantor_index: Optional[int] = None
    final_comment: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    customer_id: Optional[str] = None


class PeerReview(CamelModel):
    """Another role's latest committed pass, shown read-only."""

    role: Role
    attempt: Optional[int] = None
    scored_amount: Optional[float] = None
    final_decision: Optional[Decision] = None
    overall_comment: Optional[str] = None
    loan_comment: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None


class SessionSnapshot(CamelModel):
    customer_id: str
    role: Role
    step: int = Field(1, ge=1, le=8)
    data: ReviewData = Field(default_factory=ReviewData)
    fields_to_amend: list[AmendmentGroup] = Field(default_factory=list)
    peer_reviews: list[PeerReview] = Field(default_factory=list)
    prequalified_amount: float = 0
    hydrated_from: Optional[Literal["draft", "committed"]] = None
    warnings: list[str] = Field(default_factory=list)
    graph: Optional[CustomerGraph] = None


class ValidationIssue(CamelModel):
    step: int
    section: str
    field: str
    message: str


class MutationRequest(CamelModel):
    snapshot: SessionSnapshot
    section: str
    field: str
    value: Any = None
    index: Optional[int] = None


class ValidateRequest(CamelModel):
    snapshot: SessionSnapshot
    step: Optional[int] = Field(None, ge=1, le=8)


class StepMoveRequest(CamelModel):
    snapshot: SessionSnapshot
    direction: Literal["next", "previous"]


class SubmitResult(CamelModel):
    customer_id: str
    record_id: str
    attempt: int
    status: str
    fields_to_amend: list[AmendmentGroup] = Field(default_factory=list)
