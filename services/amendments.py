"""
Derives "fields needing amendment" from a review snapshot.

A field is incomplete when it is an unticked check, a non-positive number or a blank
string. Incomplete fields are grouped per section (and per guarantor), recomputed on every
change, and only stamped and kept at submit time when the pass sends the record back.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from models.enums import Decision
from schemas.verification import AmendmentGroup, ReviewData

# (attribute on ReviewData, section label, component label)
TRACKED_SECTIONS: tuple[tuple[str, str, str], ...] = (
    ("customer", "Customer", "Customer Verification"),
    ("business", "Business", "Business Verification"),
    ("security", "Security", "Customer Security Items"),
    ("guarantor_security", "Security", "Guarantor Security Items"),
    ("next_of_kin", "Next of Kin", "Next of Kin Details"),
    ("document", "Documents", "Document Verification"),
    # A never-touched scored amount of 0 is reported even when the pass is approved
    ("loan", "Loan", "Loan Assessment"),
)


def incomplete_fields(values: dict[str, Any]) -> list[str]:
    """Render each incomplete entry as '<field>: <reason>'."""
    out: list[str] = []
    for key, value in values.items():
        label = key.replace("_", " ")
        # bool before int: True/False are ints too
        if isinstance(value, bool):
            if not value:
                out.append(f"{label}: Not Verified")
        elif isinstance(value, (int, float)):
            if value <= 0:
                out.append(f"{label}: {_format_number(value)}")
        elif isinstance(value, str):
            if not value.strip():
                out.append(f"{label}: Empty")
    return out


def detect_amendments(data: ReviewData) -> list[AmendmentGroup]:
    groups: list[AmendmentGroup] = []
    for attr, section, component in TRACKED_SECTIONS:
        fields = incomplete_fields(getattr(data, attr).model_dump())
        if fields:
            groups.append(AmendmentGroup(section=section, component=component, fields=fields))

    for idx, guarantor in enumerate(data.guarantors):
        fields = incomplete_fields(guarantor.model_dump())
        if fields:
            groups.append(
                AmendmentGroup(
                    section="Guarantors",
                    component=f"Guarantor {idx + 1}",
                    guarantor_index=idx,
                    fields=fields,
                )
            )
    return groups


def finalize_amendments(
    groups: list[AmendmentGroup],
    *,
    overall_comment: str,
    verified_by: str,
    verified_at: datetime,
    customer_id: str,
) -> list[AmendmentGroup]:
    """Stamp each group with the reviewer, time, customer and closing comment."""
    return [
        g.model_copy(
            update={
                "final_comment": overall_comment,
                "verified_by": verified_by,
                "verified_at": verified_at,
                "customer_id": customer_id,
            }
        )
        for g in groups
    ]


def amendments_to_persist(decision: Optional[Decision | str], groups: list[AmendmentGroup]) -> list[AmendmentGroup]:
    """Only pending/edit passes carry amendments; every other outcome stores an empty list."""
    if decision is None or not Decision(decision).sends_back:
        return []
    return groups


def _format_number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
