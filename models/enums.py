"""
Workflow enums shared by SQLAlchemy models, Pydantic schemas and services.
Values are stored as plain strings; str-based enums compare equal to the stored value.
"""
import enum


class Role(str, enum.Enum):
    RELATIONSHIP_OFFICER = "relationship_officer"
    BRANCH_MANAGER = "branch_manager"
    CUSTOMER_SERVICE_OFFICER = "customer_service_officer"
    CREDIT_ANALYST_OFFICER = "credit_analyst_officer"
    REGIONAL_MANAGER = "regional_manager"
    SUPERADMIN = "superadmin"

    @property
    def authority(self) -> int:
        """RO < branch manager < credit analyst / CSO < administrative approver."""
        return _AUTHORITY[self]


_AUTHORITY = {
    Role.RELATIONSHIP_OFFICER: 0,
    Role.REGIONAL_MANAGER: 1,
    Role.BRANCH_MANAGER: 1,
    Role.CUSTOMER_SERVICE_OFFICER: 2,
    Role.CREDIT_ANALYST_OFFICER: 2,
    Role.SUPERADMIN: 3,
}


class CustomerStatus(str, enum.Enum):
    PENDING = "pending"
    BM_REVIEW = "bm_review"
    BM_REVIEW_AMEND = "bm_review_amend"
    SENT_BACK_BY_BM = "sent_back_by_bm"
    CSO_REVIEW = "cso_review"
    CSO_REVIEW_AMEND = "cso_review_amend"
    SENT_BACK_BY_CSO = "sent_back_by_cso"
    CA_REVIEW = "ca_review"
    CA_REVIEW_AMEND = "ca_review_amend"
    SENT_BACK_BY_CA = "sent_back_by_ca"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def terminal(cls) -> frozenset["CustomerStatus"]:
        return frozenset({cls.APPROVED, cls.REJECTED})

    @property
    def is_sent_back(self) -> bool:
        return self.value.startswith("sent_back_by_")


class Decision(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING = "pending"
    REFERRED = "referred"
    EDIT = "edit"

    @property
    def sends_back(self) -> bool:
        """Pending and edit return the record to the RO for correction."""
        return self in (Decision.PENDING, Decision.EDIT)


class EditRequestStatus(str, enum.Enum):
    PENDING_BRANCH_MANAGER = "pending_branch_manager"
    CONFIRMED = "confirmed"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def open_states(cls) -> frozenset["EditRequestStatus"]:
        return frozenset({cls.PENDING_BRANCH_MANAGER, cls.CONFIRMED})


class EditSection(str, enum.Enum):
    PERSONAL = "personal"
    PHONE_ID = "phone_id"
    BUSINESS = "business"
    GUARANTOR = "guarantor"
    NEXT_OF_KIN = "next_of_kin"


class SecurityOwner(str, enum.Enum):
    BORROWER = "borrower"
    GUARANTOR = "guarantor"
