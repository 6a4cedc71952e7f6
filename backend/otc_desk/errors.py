# Overview: Error taxonomy for ledger operations and the result envelope returned by services.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class LedgerError(ValueError):
    """Base class for expected operation failures."""

    code = "ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"ok": False, "error": str(self), "code": self.code}
        if self.details:
            body["details"] = self.details
        return body

    def to_response(self) -> tuple[dict, int]:
        return self.to_dict(), self.http_status


class ValidationError(LedgerError):
    """400-level input problem (amount <= 0, missing note, bad enum)."""

    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(ValidationError):
    """Referenced order does not exist."""

    code = "NOT_FOUND"
    http_status = 404


class InvalidStateError(LedgerError):
    """Order is not in the state the operation requires."""

    code = "INVALID_STATE"
    http_status = 409


class InsufficientInventoryError(LedgerError):
    """Sale or write-off exceeds the USDT balance."""

    code = "INSUFFICIENT_INVENTORY"
    http_status = 409


class RateUnavailableError(LedgerError):
    """USD/ILS rate could not be fetched. Non-fatal: profit_usd stays null."""

    code = "RATE_UNAVAILABLE"
    http_status = 503


class StoreError(LedgerError):
    """Transaction failed in the data store; nothing was applied. Safe to retry."""

    code = "STORE_ERROR"
    http_status = 503


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """
    Explicit success/failure envelope.

    Services return this instead of raising for expected conditions;
    `error` is one of the LedgerError subclasses above.
    """
    ok: bool
    value: Optional[T] = None
    error: Optional[LedgerError] = None

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: LedgerError) -> "OperationResult":
        return cls(ok=False, error=error)

    def unwrap(self) -> T:
        """Return value or raise the carried error (CLI and tests)."""
        if not self.ok:
            raise self.error
        return self.value
