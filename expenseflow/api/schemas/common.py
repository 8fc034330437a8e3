"""Common schemas for the expenseflow API."""

from typing import Any, Optional

from pydantic import BaseModel

from expenseflow.core.errors import ApprovalError


class ErrorResponse(BaseModel):
    """Error body returned for engine errors.

    ``detail`` carries the machine-readable reason (``out_of_scope``,
    ``already_terminal``...) or, for validation errors, the offending field.
    """
    error: str
    detail: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def from_error(cls, exc: ApprovalError) -> "ErrorResponse":
        reason = getattr(exc, "reason", None)
        detail = reason.value if reason is not None else getattr(exc, "field", None)
        return cls(error=exc.message, detail=detail, code=exc.code)


class SuccessResponse(BaseModel):
    """Standard success response."""
    message: str
    data: Optional[Any] = None
