from models.customer import (
    BusinessImage,
    Customer,
    Document,
    Guarantor,
    NextOfKin,
    SecurityItem,
    SecurityItemImage,
)
from models.edit_request import EditRequest
from models.enums import CustomerStatus, Decision, EditRequestStatus, EditSection, Role, SecurityOwner
from models.verification import VerificationRecord

__all__ = [
    "BusinessImage",
    "Customer",
    "CustomerStatus",
    "Decision",
    "Document",
    "EditRequest",
    "EditRequestStatus",
    "EditSection",
    "Guarantor",
    "NextOfKin",
    "Role",
    "SecurityItem",
    "SecurityItemImage",
    "SecurityOwner",
    "VerificationRecord",
]
