"""
Workflow error hierarchy.

Services raise these; routers translate them into HTTP responses. Each error carries a
human-readable message suitable for showing to the reviewer.
"""
from __future__ import annotations

from typing import Any, Optional


class WorkflowError(Exception):
    status_code: int = 400

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message, "details": self.details}


class ValidationError(WorkflowError):
    """Missing comment, out-of-range amount, missing decision, unknown field."""

    status_code = 400

    def __init__(self, message: str, issues: Optional[list] = None, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, details)
        self.issues = issues or []

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["issues"] = [i.model_dump(by_alias=True) for i in self.issues]
        return out


class AuthorizationError(WorkflowError):
    """Role or state guard violation."""

    status_code = 403


class NotFoundError(WorkflowError):
    status_code = 404


class OperationInProgressError(WorkflowError):
    status_code = 409


class PersistenceError(WorkflowError):
    """Database or storage failure; distinct from validation so callers can retry."""

    status_code = 503


class UnmappedDecisionError(WorkflowError, LookupError):
    """(role, decision) pair with no defined next status."""

    status_code = 400
