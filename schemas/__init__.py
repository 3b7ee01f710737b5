from schemas.actor import Actor
from schemas.amendment import PendingCustomer, PendingFilters, ResubmitRequest
from schemas.customer import CustomerGraph, SecurityItemView
from schemas.edit_request import EditRequestCreate, EditRequestFilters, EditRequestReject
from schemas.verification import (
    AmendmentGroup,
    CustomerCheck,
    GuarantorCheck,
    LoanCheck,
    MutationRequest,
    PeerReview,
    ResolvedChanges,
    ReviewData,
    SectionCheck,
    SessionSnapshot,
    StepMoveRequest,
    SubmitResult,
    ValidateRequest,
    ValidationIssue,
)

__all__ = [
    "Actor",
    "AmendmentGroup",
    "CustomerCheck",
    "CustomerGraph",
    "EditRequestCreate",
    "EditRequestFilters",
    "EditRequestReject",
    "GuarantorCheck",
    "LoanCheck",
    "MutationRequest",
    "PeerReview",
    "PendingCustomer",
    "PendingFilters",
    "ResolvedChanges",
    "ResubmitRequest",
    "ReviewData",
    "SectionCheck",
    "SecurityItemView",
    "SessionSnapshot",
    "StepMoveRequest",
    "SubmitResult",
    "ValidateRequest",
    "ValidationIssue",
]
