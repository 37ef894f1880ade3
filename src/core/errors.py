"""
Error taxonomy for the batch pipeline.

- Field-level validation problems are collected as FieldError records
  (see models.rows) and never raised.
- EntityNotFoundError marks a required entity that is missing while
  auto-create is disabled; the owning bill group becomes needs_review.
- ExternalAPIError wraps any fault returned by the accounting system.
  RateLimitError is its retryable subtype.
- AttachmentError is per file and never escalates past the attachment step.
"""

import json
from typing import Any, Optional

RATE_LIMIT_CODE = "3200"
NOT_FOUND_CODE = "500"
UNKNOWN_ERROR_MESSAGE = "Unknown error occurred"


class EntityNotFoundError(Exception):
    """A required Customer or Vendor does not exist and may not be created."""

    def __init__(self, entity_type: str, name: str):
        self.entity_type = entity_type
        self.name = name
        self.message = f'{entity_type} "{name}" not found. Enable auto-create or create manually.'
        super().__init__(self.message)


class ExternalAPIError(Exception):
    """A call to the accounting system failed with a fault."""

    def __init__(self, message: str, fault: Optional[dict] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.fault = fault or {}
        self.status_code = status_code

    @property
    def code(self) -> Optional[str]:
        errors = fault_errors(self.fault)
        if not errors:
            return None
        code = errors[0].get("code")
        return str(code) if code is not None else None


class RateLimitError(ExternalAPIError):
    """Throttling fault; retried transparently by RetryExecutor."""

    def __init__(self, message: str = "Rate limit exceeded", fault: Optional[dict] = None, status_code: Optional[int] = 429):
        if not fault_errors(fault):
            fault = {"Error": [{"Message": message, "code": RATE_LIMIT_CODE}], "type": "ThrottleExceeded"}
        super().__init__(message, fault=fault, status_code=status_code)


class AttachmentError(Exception):
    """Upload or lookup failure for a single attachment file."""

    def __init__(self, filename: str, message: str):
        self.filename = filename
        self.message = message
        super().__init__(f"{filename}: {message}")


def fault_errors(fault: Any) -> list[dict]:
    """Return the error detail list of a fault in either QBO REST or SDK casing."""
    if not isinstance(fault, dict):
        return []
    errors = fault.get("Error", fault.get("error"))
    if not isinstance(errors, list):
        return []
    return [e for e in errors if isinstance(e, dict)]


def _fault_of(error: Any) -> Any:
    if isinstance(error, dict):
        return error.get("Fault", error.get("fault"))
    return getattr(error, "fault", None)


def fault_code(error: Any) -> Optional[str]:
    """Extract the first fault code carried by an error, if any."""
    if isinstance(error, ExternalAPIError):
        return error.code
    errors = fault_errors(_fault_of(error))
    if not errors:
        return None
    code = errors[0].get("code")
    return str(code) if code is not None else None


def _has_meaningful_str(error: Any) -> bool:
    if isinstance(error, BaseException):
        return True
    if isinstance(error, (dict, list, tuple)):
        return False
    return type(error).__str__ is not object.__str__ or type(error).__repr__ is not object.__repr__


def extract_error_message(error: Any) -> str:
    """
    Turn any failure into a stable, human-readable message.

    Order: direct message field, raw string, first fault detail
    (message, then detail), string form, JSON serialization.
    """
    if isinstance(error, dict):
        message = error.get("message")
    else:
        message = getattr(error, "message", None)
    if message:
        return str(message)

    if isinstance(error, str):
        return error or UNKNOWN_ERROR_MESSAGE

    errors = fault_errors(_fault_of(error))
    if errors:
        first = errors[0]
        detail = first.get("message") or first.get("Message") or first.get("detail") or first.get("Detail")
        if detail:
            return str(detail)

    if _has_meaningful_str(error):
        text = str(error)
        if text:
            return text
        if isinstance(error, BaseException):
            return type(error).__name__

    try:
        return json.dumps(error, default=lambda o: getattr(o, "__dict__", None) or type(o).__name__)
    except (TypeError, ValueError):
        return UNKNOWN_ERROR_MESSAGE
