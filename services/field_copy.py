"""
Copies approved values onto the canonical customer, guarantor and next-of-kin rows.

Used by both approved verification passes and approved edit requests. Every key is checked
against the section's editable columns and every value against the column's type before anything
is written, so a bad payload leaves the rows untouched; the caller's transaction covers the
write itself.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Customer, EditSection, Guarantor, NextOfKin
from schemas.base import CamelModel
from schemas.edit_request import (
    BusinessEdit,
    CustomerEdit,
    GuarantorEdit,
    NextOfKinEdit,
    PersonalEdit,
    PhoneIdEdit,
)
from services.errors import ValidationError
from utils.rows import to_plain

logger = logging.getLogger(__name__)

PERSONAL_FIELDS = frozenset({
    "first_name", "middle_name", "surname", "mobile", "alternative_mobile", "id_number",
    "email", "postal_address", "marital_status", "residence_status",
})
PHONE_ID_FIELDS = frozenset({"mobile", "id_number"})
BUSINESS_FIELDS = frozenset({
    "business_name", "business_type", "business_location", "year_established", "daily_sales",
})
GUARANTOR_FIELDS = frozenset({
    "first_name", "surname", "mobile", "id_number", "relationship_type", "marital_status", "residence_status",
})
NEXT_OF_KIN_FIELDS = frozenset({
    "first_name", "surname", "mobile", "relationship_type", "employment_status",
})

EDITABLE_FIELDS: dict[EditSection, frozenset[str]] = {
    EditSection.PERSONAL: PERSONAL_FIELDS,
    EditSection.PHONE_ID: PHONE_ID_FIELDS,
    EditSection.BUSINESS: BUSINESS_FIELDS,
    EditSection.GUARANTOR: GUARANTOR_FIELDS,
    EditSection.NEXT_OF_KIN: NEXT_OF_KIN_FIELDS,
}

CUSTOMER_SECTIONS = (EditSection.PERSONAL, EditSection.PHONE_ID, EditSection.BUSINESS)
CUSTOMER_FIELDS = PERSONAL_FIELDS | BUSINESS_FIELDS

SECTION_MODELS: dict[EditSection, type[CamelModel]] = {
    EditSection.PERSONAL: PersonalEdit,
    EditSection.PHONE_ID: PhoneIdEdit,
    EditSection.BUSINESS: BusinessEdit,
    EditSection.GUARANTOR: GuarantorEdit,
    EditSection.NEXT_OF_KIN: NextOfKinEdit,
}


def check_fields(
    section: EditSection,
    values: dict[str, Any],
    allowed: Optional[frozenset[str]] = None,
    model: Optional[type[CamelModel]] = None,
) -> dict[str, Any]:
    """Validated copy of ``values``: known keys only, each value coerced to its column type."""
    allowed = allowed if allowed is not None else EDITABLE_FIELDS[section]
    model = model or SECTION_MODELS[section]
    if not values:
        raise ValidationError(f"No values supplied for {section.value}")
    unknown = sorted(k for k in values if k not in allowed)
    if unknown:
        raise ValidationError(
            f"Fields not editable in {section.value}: {', '.join(unknown)}",
            details={"section": section.value, "fields": unknown},
        )
    try:
        parsed = model.model_validate(values)
    except PydanticValidationError as exc:
        errors = {".".join(str(p) for p in err["loc"]): err["msg"] for err in exc.errors()}
        raise ValidationError(
            f"Invalid values for {section.value}: {', '.join(sorted(errors))}",
            details={"section": section.value, "errors": errors},
        ) from None
    return parsed.model_dump(mode="json", exclude_unset=True)



def check_changes(target: str, values: dict[str, Any]) -> dict[str, Any]:
    """check_fields for a resolved-changes target: customer, guarantor or next_of_kin."""
    if target == "customer":
        return check_fields(EditSection.PERSONAL, values, allowed=CUSTOMER_FIELDS, model=CustomerEdit)
    return check_fields(EditSection(target), values)

async def current_values(
    session: AsyncSession, customer: Customer, section: EditSection, keys: list[str]
) -> dict[str, Any]:
    """Snapshot of the target row's values for the given keys ('' where unset)."""
    target = await _target_row(session, customer, section)
    if target is None:
        return {k: "" for k in keys}
    return {k: _plain(getattr(target, k, None)) for k in keys}


async def apply_field_values(
    session: AsyncSession, customer: Customer, section: EditSection | str, values: dict[str, Any]
) -> None:
    section = EditSection(section)
    values = check_fields(section, values)

    if section in CUSTOMER_SECTIONS:
        _assign(customer, values)
    elif section == EditSection.GUARANTOR:
        await _upsert_guarantor(session, customer, values)
    elif section == EditSection.NEXT_OF_KIN:
        await _upsert_next_of_kin(session, customer, values)
    await session.flush()
    logger.info("Copied %d %s field(s) onto customer %s", len(values), section.value, customer.id)


async def apply_customer_values(session: AsyncSession, customer: Customer, values: dict[str, Any]) -> None:
    """Customer-row copy spanning personal and business columns."""
    values = check_fields(EditSection.PERSONAL, values, allowed=CUSTOMER_FIELDS, model=CustomerEdit)
    _assign(customer, values)
    await session.flush()


async def _upsert_guarantor(session: AsyncSession, customer: Customer, values: dict[str, Any]) -> Guarantor:
    # Keyed by customer: the primary (first registered) guarantor is the one edited
    result = await session.execute(
        select(Guarantor)
        .where(Guarantor.customer_id == customer.id)
        .order_by(Guarantor.created_at, Guarantor.id)
        .limit(1)
    )
    guarantor = result.scalar_one_or_none()
    if guarantor is None:
        guarantor = Guarantor(id=f"gua-{uuid.uuid4().hex[:12]}", customer_id=customer.id)
        session.add(guarantor)
    _assign(guarantor, values)
    return guarantor


async def _upsert_next_of_kin(session: AsyncSession, customer: Customer, values: dict[str, Any]) -> NextOfKin:
    result = await session.execute(select(NextOfKin).where(NextOfKin.customer_id == customer.id))
    nok = result.scalar_one_or_none()
    if nok is None:
        nok = NextOfKin(id=f"nok-{uuid.uuid4().hex[:12]}", customer_id=customer.id)
        session.add(nok)
    _assign(nok, values)
    return nok


async def _target_row(session: AsyncSession, customer: Customer, section: EditSection):
    if section in CUSTOMER_SECTIONS:
        return customer
    if section == EditSection.GUARANTOR:
        result = await session.execute(
            select(Guarantor)
            .where(Guarantor.customer_id == customer.id)
            .order_by(Guarantor.created_at, Guarantor.id)
            .limit(1)
        )
        return result.scalar_one_or_none()
    result = await session.execute(select(NextOfKin).where(NextOfKin.customer_id == customer.id))
    return result.scalar_one_or_none()


def _assign(target: Any, values: dict[str, Any]) -> None:
    for key, value in values.items():
        setattr(target, key, value)


def _plain(value: Any) -> Any:
    return "" if value is None else to_plain(value)
