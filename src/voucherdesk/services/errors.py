"""Typed failures raised by the voucher and gift card ledgers."""

from __future__ import annotations

from typing import Any


class InstrumentError(Exception):
    """Base class for every guard violation surfaced to callers.

    ``kind`` is the stable machine-readable name checkout and approval
    screens branch on; ``detail`` is the human message.
    """

    kind = "instrument_error"
    status_code = 400
    # Set when the failing operation already wrote state that must be committed.
    retain_changes = False

    def __init__(self, detail: str, retain_changes: bool | None = None, **context: Any) -> None:
        super().__init__(detail)
        self.detail = detail
        self.context = context
        if retain_changes is not None:
            self.retain_changes = retain_changes

    def as_detail(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind, "message": self.detail}
        for key, value in self.context.items():
            payload[key] = str(value) if value is not None else None
        return payload


class NotFound(InstrumentError):
    kind = "not_found"
    status_code = 404


class PolicyNotFound(InstrumentError):
    kind = "policy_not_found"
    status_code = 404


class CustomerNotFound(InstrumentError):
    kind = "customer_not_found"
    status_code = 404


class InvalidTransition(InstrumentError):
    """The instrument is not in a state that allows the requested action."""

    kind = "invalid_transition"
    status_code = 409


class AlreadyRedeemed(InstrumentError):
    kind = "already_redeemed"
    status_code = 409


class DuplicateCode(InstrumentError):
    kind = "duplicate_code"
    status_code = 409


class IdempotencyConflict(InstrumentError):
    """An idempotency key was replayed with a different request."""

    kind = "idempotency_conflict"
    status_code = 409


class Expired(InstrumentError):
    kind = "expired"
    status_code = 410
    retain_changes = True


class Disabled(InstrumentError):
    kind = "disabled"
    status_code = 409


class InsufficientBalance(InstrumentError):
    kind = "insufficient_balance"
    status_code = 422


class InvalidAmount(InstrumentError):
    kind = "invalid_amount"
    status_code = 422


class InvalidExpiry(InstrumentError):
    kind = "invalid_expiry"
    status_code = 422


class StorageUnavailable(InstrumentError):
    """The backing store failed; safe for the caller to retry."""

    kind = "storage_unavailable"
    status_code = 503

    @classmethod
    def wrap(cls, exc: Exception) -> "StorageUnavailable":
        error = cls("The instrument store is temporarily unavailable.")
        error.__cause__ = exc
        return error
