from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from schemas.base import CamelModel


class SecurityItemView(CamelModel):
    id: str
    item: str
    description: Optional[str] = None
    estimated_value: Optional[float] = None
    images: list[str] = Field(default_factory=list)


class CustomerGraph(CamelModel):
    """Read-only view of everything a reviewer inspects for one customer."""

    customer: dict[str, Any]
    guarantors: list[dict[str, Any]] = Field(default_factory=list)
    security_items: list[SecurityItemView] = Field(default_factory=list)
    guarantor_security_items: list[SecurityItemView] = Field(default_factory=list)
    next_of_kin: Optional[dict[str, Any]] = None
    documents: list[dict[str, Any]] = Field(default_factory=list)
    business_images: list[str] = Field(default_factory=list)
