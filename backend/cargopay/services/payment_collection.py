"""
Payment collection workflow driven by the holder of a single-use access code.

    IDENTIFY_DRIVER -> REVIEW -> ACTING -> CANCELLED
                                       -> DELIVERED_AND_PAID

A machine is entered fresh for every request from the code alone. Entry
looks at the stored assignment: a redeemed code enters ALREADY_PROCESSED and
never reaches IDENTIFY_DRIVER; a locked driver identity skips straight to
REVIEW. Cancelling leaves the code valid; delivering redeems it.

The guards here are re-checked by the repository's conditional updates, so
two devices holding the same code cannot both win.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from cargopay.models import DeliveryAssignment, PaymentMethod
from cargopay.services.assignment_store import AssignmentRepository, PaymentFacts
from cargopay.services.errors import (
    ConflictError,
    ConflictReason,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from cargopay.services.proof_storage import ProofStorage

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = "No reason provided"
PAID_IN_ADVANCE_REFERENCE = "PAID_IN_ADVANCE"


class CollectionState(str, enum.Enum):
    IDENTIFY_DRIVER = "IDENTIFY_DRIVER"
    REVIEW = "REVIEW"
    ACTING = "ACTING"
    CANCELLED = "CANCELLED"
    DELIVERED_AND_PAID = "DELIVERED_AND_PAID"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"


class DeliveryAction(str, enum.Enum):
    CANCEL = "CANCEL"
    DELIVER = "DELIVER"


@dataclass(frozen=True)
class ProofUpload:
    payload: bytes
    content_type: str
    filename: Optional[str] = None


@dataclass(frozen=True)
class PaymentSubmission:
    method: PaymentMethod
    reference: Optional[str] = None
    proof: Optional[ProofUpload] = None
    confirmed_by: Optional[str] = None
    notes: Optional[str] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass(frozen=True)
class PaymentReceipt:
    assignment_id: UUID
    amount: Decimal
    currency: str
    method: Optional[PaymentMethod]
    reference: Optional[str]
    proof_ref: Optional[str]
    confirmed_by: Optional[str]
    notes: Optional[str]
    collected_at: Optional[datetime]
    driver_name: Optional[str]
    driver_phone: Optional[str]
    replayed: bool = False


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def check_payment_preconditions(submission: PaymentSubmission) -> None:
    """Method-specific requirements for completing a payment."""
    method = submission.method
    if method == PaymentMethod.BANK_TRANSFER:
        if not _clean(submission.reference) and submission.proof is None:
            raise ValidationError(
                "Bank transfer requires a transaction reference or a proof of payment image",
                ["payment_reference", "payment_proof"],
            )
    elif method == PaymentMethod.TABBY:
        if not _clean(submission.confirmed_by):
            raise ValidationError(
                "Tabby payments require the name of the person confirming the settlement",
                ["confirmed_by"],
            )


def receipt_for(assignment: DeliveryAssignment, replayed: bool = False) -> PaymentReceipt:
    return PaymentReceipt(
        assignment_id=assignment.id,
        amount=assignment.amount,
        currency=assignment.currency,
        method=assignment.payment_method,
        reference=assignment.payment_reference,
        proof_ref=assignment.payment_proof_ref,
        confirmed_by=assignment.payment_confirmed_by,
        notes=assignment.payment_notes,
        collected_at=assignment.payment_collected_at,
        driver_name=assignment.driver_name,
        driver_phone=assignment.driver_phone,
        replayed=replayed,
    )


class PaymentCollectionStateMachine:
    def __init__(
        self,
        repository: AssignmentRepository,
        assignment: DeliveryAssignment,
        storage: Optional[ProofStorage] = None,
        storage_timeout: Optional[float] = None,
    ):
        self.repository = repository
        self.assignment = assignment
        self.storage = storage
        self.storage_timeout = storage_timeout
        self.action: Optional[DeliveryAction] = None
        self.state = self._entry_state()

    @classmethod
    def enter(
        cls,
        repository: AssignmentRepository,
        access_code: str,
        storage: Optional[ProofStorage] = None,
        storage_timeout: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> "PaymentCollectionStateMachine":
        """Open the workflow for an access code. Unknown or expired codes raise NotFoundError."""
        assignment = repository.get_by_access_code(access_code, now=now)
        return cls(repository, assignment, storage, storage_timeout)

    def _entry_state(self) -> CollectionState:
        if self.assignment.is_processed:
            return CollectionState.ALREADY_PROCESSED
        if self.assignment.identity_locked:
            return CollectionState.REVIEW
        return CollectionState.IDENTIFY_DRIVER

    @property
    def driver_fields_read_only(self) -> bool:
        return self.assignment.identity_locked

    def _require(self, *states: CollectionState) -> None:
        if self.state == CollectionState.ALREADY_PROCESSED:
            raise ConflictError(
                "This delivery has already been completed and paid", ConflictReason.ALREADY_PROCESSED
            )
        if self.state not in states:
            allowed = " or ".join(s.value for s in states)
            raise ValidationError(f"Not allowed in state {self.state.value}; expected {allowed}")

    def _after_lost_race(self, now: datetime) -> None:
        """Work out why a conditional update matched nothing and raise accordingly."""
        self.repository.refresh(self.assignment)
        if self.assignment.is_processed:
            self.state = CollectionState.ALREADY_PROCESSED
            raise ConflictError(
                "This delivery has already been completed and paid", ConflictReason.ALREADY_PROCESSED
            )
        if self.assignment.code_expires_at <= now:
            raise NotFoundError("Access code not found or expired", expired=True)
        if not self.assignment.identity_locked:
            self.state = CollectionState.IDENTIFY_DRIVER
            raise ValidationError("Driver name and phone are required", ["driver_name", "driver_phone"])

    # IDENTIFY_DRIVER -> REVIEW
    def identify_driver(self, driver_name: str, driver_phone: str, now: Optional[datetime] = None) -> None:
        now = now or datetime.utcnow()
        name, phone = _clean(driver_name), _clean(driver_phone)
        if self.state == CollectionState.ALREADY_PROCESSED:
            self._require(CollectionState.IDENTIFY_DRIVER)

        if self.assignment.identity_locked:
            self._check_same_driver(name, phone)
            if self.state == CollectionState.IDENTIFY_DRIVER:
                self.state = CollectionState.REVIEW
            return

        self._require(CollectionState.IDENTIFY_DRIVER)
        missing: List[str] = [f for f, v in (("driver_name", name), ("driver_phone", phone)) if not v]
        if missing:
            raise ValidationError("Driver name and phone are required", missing)

        if not self.repository.lock_driver_identity(self.assignment.id, name, phone, now):
            self._after_lost_race(now)
            # Someone else locked an identity first
            self._check_same_driver(name, phone)
        else:
            self.repository.refresh(self.assignment)
            logger.info(f"Driver identity locked on assignment {self.assignment.id}: {name} / {phone}")
        self.state = CollectionState.REVIEW

    def _check_same_driver(self, name: str, phone: str) -> None:
        if (name, phone) != (self.assignment.driver_name, self.assignment.driver_phone):
            logger.warning(f"Rejected driver identity change on assignment {self.assignment.id}")
            raise ConflictError(
                "Driver identity is locked for this delivery and cannot be changed",
                ConflictReason.IDENTITY_LOCKED,
            )

    # REVIEW -> ACTING
    def proceed(self) -> None:
        self._require(CollectionState.REVIEW, CollectionState.CANCELLED)
        self.state = CollectionState.ACTING
        self.action = None

    def choose_action(self, action: DeliveryAction) -> None:
        self._require(CollectionState.ACTING)
        self.action = DeliveryAction(action)

    # ACTING -> CANCELLED
    def cancel(self, reason: Optional[str] = None, now: Optional[datetime] = None) -> DeliveryAssignment:
        self._require(CollectionState.ACTING)
        if self.action != DeliveryAction.CANCEL:
            raise ValidationError("Choose the cancel action before cancelling", ["action"])
        now = now or datetime.utcnow()
        reason = _clean(reason) or DEFAULT_CANCELLATION_REASON

        if not self.repository.mark_not_delivered(self.assignment.id, reason, now):
            self._after_lost_race(now)
            raise DependencyError("Cancellation was not recorded; please retry")
        self.repository.refresh(self.assignment)
        self.state = CollectionState.CANCELLED
        logger.info(f"Assignment {self.assignment.id} marked not delivered: {reason}")
        return self.assignment

    # ACTING -> DELIVERED_AND_PAID
    def deliver(self, submission: Optional[PaymentSubmission], now: Optional[datetime] = None) -> PaymentReceipt:
        """
        Complete delivery and payment.

        Replays are idempotent: once the code is redeemed this returns the
        recorded payment facts (replayed=True) and writes nothing.
        """
        if self.state == CollectionState.ALREADY_PROCESSED:
            logger.info(f"Replayed completion for assignment {self.assignment.id}; returning recorded payment")
            return receipt_for(self.assignment, replayed=True)
        self._require(CollectionState.ACTING)
        if self.action != DeliveryAction.DELIVER:
            raise ValidationError("Choose the deliver action before completing payment", ["action"])
        if submission is None:
            raise ValidationError("Payment method is required", ["payment_method"])
        try:
            method = PaymentMethod(submission.method)
        except ValueError:
            allowed = ", ".join(m.value for m in PaymentMethod)
            raise ValidationError(f"Payment method is required; one of: {allowed}", ["payment_method"])
        submission = PaymentSubmission(
            method=method,
            reference=submission.reference,
            proof=submission.proof,
            confirmed_by=submission.confirmed_by,
            notes=submission.notes,
            client_ip=submission.client_ip,
            user_agent=submission.user_agent,
        )
        check_payment_preconditions(submission)
        now = now or datetime.utcnow()

        proof_ref = None
        if submission.proof is not None:
            if self.storage is None:
                raise DependencyError("Proof storage is not configured")
            proof_ref = self.storage.store(
                submission.proof.payload, submission.proof.content_type, timeout=self.storage_timeout
            )

        reference = _clean(submission.reference) or None
        if method == PaymentMethod.ALREADY_PAID and not reference:
            reference = PAID_IN_ADVANCE_REFERENCE
        facts = PaymentFacts(
            method=method,
            reference=reference,
            proof_ref=proof_ref,
            confirmed_by=_clean(submission.confirmed_by) or None,
            notes=_clean(submission.notes) or None,
            client_ip=submission.client_ip,
            user_agent=submission.user_agent,
        )

        if not self.repository.complete_payment(self.assignment, facts, now):
            try:
                self._after_lost_race(now)
            except ConflictError as e:
                if e.reason != ConflictReason.ALREADY_PROCESSED:
                    raise
                logger.info(f"Concurrent completion on assignment {self.assignment.id}; returning recorded payment")
                return receipt_for(self.assignment, replayed=True)
            raise DependencyError("Payment was not recorded; please retry")

        self.repository.refresh(self.assignment)
        self.state = CollectionState.DELIVERED_AND_PAID
        logger.info(
            f"Payment collected on assignment {self.assignment.id}: {self.assignment.amount} "
            f"{self.assignment.currency} via {method.value}"
        )
        return receipt_for(self.assignment)

    def receipt(self) -> Optional[PaymentReceipt]:
        if not self.assignment.is_processed:
            return None
        return receipt_for(self.assignment, replayed=self.state == CollectionState.ALREADY_PROCESSED)
