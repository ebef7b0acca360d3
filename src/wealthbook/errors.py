"""Exception hierarchy shared by services and HTTP handlers."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional


class WealthBookError(Exception):
    """Base class for domain errors surfaced to API callers."""

    status_code = 500
    error_code = "server_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.error_code)
        self.message = message or self.error_code

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(WealthBookError):
    """Malformed input; carries a field-level error list."""

    status_code = 400
    error_code = "validation_failed"

    def __init__(
        self,
        errors: Optional[Dict[str, List[str]]] = None,
        message: str = "validation_failed",
    ) -> None:
        super().__init__(message)
        self.errors: Dict[str, List[str]] = dict(errors or {})

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})

    def to_dict(self) -> dict:
        return {"error": self.message, "errors": self.errors}

    @property
    def error_messages(self) -> Iterable[str]:
        for messages in self.errors.values():
            yield from messages


class LedgerIntegrityError(ValidationError):
    """A ledger mutation would leave a holding in an impossible state."""

    def __init__(self, message: str, *, field: str = "quantity") -> None:
        super().__init__({field: [message]}, message="ledger_integrity")
        self.detail = message


class InvalidTransitionError(ValidationError):
    """Illegal SIP status transition."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            {"status": [f"Cannot move a SIP from '{current}' to '{requested}'."]},
            message="invalid_transition",
        )
        self.current = current
        self.requested = requested


class NotFoundError(WealthBookError):
    """A referenced record does not exist for the current user."""

    status_code = 404
    error_code = "not_found"


class ReferenceMismatchError(WealthBookError):
    """A referenced record exists but cannot be used for the operation."""

    status_code = 400
    error_code = "reference_mismatch"


class AuthenticationError(WealthBookError):
    """Request carries no usable identity."""

    status_code = 401
    error_code = "unauthorized"
