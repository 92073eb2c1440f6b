"""
Domain errors raised by the verification and payment-collection services.

API routers translate these into HTTP responses; the services themselves
never retry and never swallow them.
"""
from __future__ import annotations

import enum
from typing import Iterable, List, Optional


class CargoPayError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CargoPayError):
    """Input is incomplete or violates a precondition; the caller can correct it."""

    def __init__(self, message: str, missing: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.missing: List[str] = list(missing or [])


class ConflictReason(str, enum.Enum):
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    IDENTITY_LOCKED = "IDENTITY_LOCKED"
    VERIFICATION_COMPLETE = "VERIFICATION_COMPLETE"
    DUPLICATE = "DUPLICATE"


class ConflictError(CargoPayError):
    """The record is in a state that forbids the requested change."""

    def __init__(self, message: str, reason: ConflictReason):
        super().__init__(message)
        self.reason = reason


class NotFoundError(CargoPayError):
    """Unknown record, or an access code that was never issued or has expired."""

    def __init__(self, message: str, expired: bool = False):
        super().__init__(message)
        self.expired = expired


class DependencyError(CargoPayError):
    """Persistence or proof storage failed or timed out."""


class RateTableConfigError(CargoPayError):
    """The static rate table is unusable."""
