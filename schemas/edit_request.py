from typing import Any, Optional

from pydantic import Field

from models.enums import EditRequestStatus, EditSection
from schemas.base import CamelModel


class EditRequestCreate(CamelModel):
    customer_id: str
    section_type: EditSection
    new_values: dict[str, Any] = Field(..., description="Proposed field values, checked against the section on create")
    reason: Optional[str] = None


class EditRequestReject(CamelModel):
    reason: str = Field(..., min_length=1)


class EditRequestFilters(CamelModel):
    status: Optional[EditRequestStatus] = None
    customer_id: Optional[str] = None


class PhoneIdEdit(CamelModel):
    mobile: Optional[str] = Field(None, max_length=32)
    id_number: Optional[str] = Field(None, max_length=64)


class PersonalEdit(PhoneIdEdit):
    first_name: Optional[str] = Field(None, max_length=128)
    middle_name: Optional[str] = Field(None, max_length=128)
    surname: Optional[str] = Field(None, max_length=128)
    alternative_mobile: Optional[str] = Field(None, max_length=32)
    email: Optional[str] = Field(None, max_length=256)
    postal_address: Optional[str] = Field(None, max_length=256)
    marital_status: Optional[str] = Field(None, max_length=32)
    residence_status: Optional[str] = Field(None, max_length=32)


class BusinessEdit(CamelModel):
    business_name: Optional[str] = Field(None, max_length=256)
    business_type: Optional[str] = Field(None, max_length=128)
    business_location: Optional[str] = Field(None, max_length=256)
    year_established: Optional[int] = Field(None, ge=1900, le=2100)
    daily_sales: Optional[float] = Field(None, ge=0)


class CustomerEdit(PersonalEdit, BusinessEdit):
    """Customer-row values carried by an approved verification pass."""


class GuarantorEdit(PhoneIdEdit):
    first_name: Optional[str] = Field(None, max_length=128)
    surname: Optional[str] = Field(None, max_length=128)
    relationship_type: Optional[str] = Field(None, max_length=64)
    marital_status: Optional[str] = Field(None, max_length=32)
    residence_status: Optional[str] = Field(None, max_length=32)


class NextOfKinEdit(CamelModel):
    first_name: Optional[str] = Field(None, max_length=128)
    surname: Optional[str] = Field(None, max_length=128)
    mobile: Optional[str] = Field(None, max_length=32)
    relationship_type: Optional[str] = Field(None, max_length=64)
    employment_status: Optional[str] = Field(None, max_length=64)
