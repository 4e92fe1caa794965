from __future__ import annotations

from typing import Any

from pydantic import ValidationError


class DashboardError(RuntimeError):
    pass


class ApiNotConfigured(DashboardError):
    pass


class ApiError(DashboardError):
    def __init__(self, status_code: int, reason: str, detail: Any = None):
        self.status_code = status_code
        self.reason = reason
        self.detail = detail
        self.message = _extract_message(detail)
        super().__init__(f"API error {status_code} {reason}: {detail}")

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


def _extract_message(detail: Any) -> str | None:
    if not isinstance(detail, dict):
        return None
    for field in ("message", "error"):
        value = detail.get(field)
        if isinstance(value, str) and value.strip():
            return value
    return None


class FormValidationError(DashboardError):
    """Client-side validation failure, keyed by the offending form field."""

    def __init__(self, field_errors: dict[str, str]):
        self.field_errors = dict(field_errors)
        summary = ", ".join(f"{field}: {msg}" for field, msg in self.field_errors.items())
        super().__init__(f"Invalid form: {summary}")

    @classmethod
    def from_validation_error(cls, exc: ValidationError) -> "FormValidationError":
        field_errors: dict[str, str] = {}
        for item in exc.errors():
            loc = item.get("loc") or ()
            field = ".".join(str(part) for part in loc) or "__root__"
            field_errors.setdefault(field, item.get("msg", "Invalid value"))
        return cls(field_errors)


class CommandFailed(DashboardError):
    """The server accepted a request but reported it could not carry it out."""

    def __init__(self, message: str, result: Any = None):
        self.message = message
        self.result = result
        super().__init__(message)


def failure_message(exc: BaseException, fallback: str) -> str:
    """Server-provided message when present, otherwise the fixed fallback."""
    if isinstance(exc, (ApiError, CommandFailed)) and exc.message:
        return exc.message
    return fallback
