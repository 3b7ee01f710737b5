"""Plain-dict views of ORM rows for JSON payloads."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Optional


def row_to_dict(obj: Any, exclude: Iterable[str] = ()) -> dict[str, Any]:
    """Column values of an ORM instance with Decimal -> float and datetimes as ISO strings."""
    skip = set(exclude)
    out: dict[str, Any] = {}
    for col in obj.__table__.columns:
        if col.key in skip:
            continue
        out[col.key] = to_plain(getattr(obj, col.key))
    return out


def to_plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def as_float(value: Optional[Any]) -> float:
    return float(value) if value is not None else 0.0
