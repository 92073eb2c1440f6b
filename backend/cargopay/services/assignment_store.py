"""
Delivery assignment persistence boundary.

Every state change is a single conditional UPDATE; the affected row count
tells the caller whether its compare-and-swap won. Two devices racing on the
same access code therefore cannot both lock an identity or both record a
payment. amount and access_code are never part of any UPDATE here.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from cargopay.models import DeliveryAssignment, DeliveryStatus, PaymentMethod, PaymentSession
from cargopay.services.errors import NotFoundError
from cargopay.services.persistence import guarded, unit_of_work

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentFacts:
    method: PaymentMethod
    reference: Optional[str] = None
    proof_ref: Optional[str] = None
    confirmed_by: Optional[str] = None
    notes: Optional[str] = None
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None


class AssignmentRepository:
    def __init__(self, db: Session, timeout_seconds: Optional[float] = None):
        self.db = db
        self.timeout_seconds = timeout_seconds

    def get(self, assignment_id: UUID) -> DeliveryAssignment:
        with guarded(self.db, "Load delivery assignment", self.timeout_seconds):
            assignment = self.db.get(DeliveryAssignment, assignment_id)
        if not assignment:
            raise NotFoundError(f"Delivery assignment {assignment_id} not found")
        return assignment

    def get_by_access_code(self, access_code: str, now: Optional[datetime] = None) -> DeliveryAssignment:
        """
        Look up an assignment by its access code.

        Redeemed assignments are always returned (so they can be shown as
        already processed); an unredeemed one past its expiry is NotFound.
        """
        code = (access_code or "").strip()
        if not code:
            raise NotFoundError("Access code not found or expired")
        with guarded(self.db, "Load delivery assignment", self.timeout_seconds):
            assignment = (
                self.db.query(DeliveryAssignment)
                .filter(DeliveryAssignment.access_code == code)
                .first()
            )
        if not assignment:
            raise NotFoundError("Access code not found or expired")
        if not assignment.is_processed and assignment.code_expires_at <= (now or datetime.utcnow()):
            raise NotFoundError("Access code not found or expired", expired=True)
        return assignment

    def refresh(self, assignment: DeliveryAssignment) -> DeliveryAssignment:
        with guarded(self.db, "Reload delivery assignment", self.timeout_seconds):
            self.db.refresh(assignment)
        return assignment

    def _open_for_collection(self, assignment_id: UUID, now: datetime):
        return (
            DeliveryAssignment.id == assignment_id,
            DeliveryAssignment.code_used.is_(False),
            DeliveryAssignment.payment_collected.is_(False),
            DeliveryAssignment.code_expires_at > now,
        )

    def lock_driver_identity(
        self, assignment_id: UUID, driver_name: str, driver_phone: str, now: datetime
    ) -> bool:
        """Write the driver identity if none is locked yet. Returns True if this call won."""
        stmt = (
            update(DeliveryAssignment)
            .where(
                *self._open_for_collection(assignment_id, now),
                DeliveryAssignment.driver_locked_at.is_(None),
            )
            .values(driver_name=driver_name, driver_phone=driver_phone, driver_locked_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        with unit_of_work(self.db, "Lock driver identity", self.timeout_seconds):
            won = self.db.execute(stmt).rowcount == 1
        return won

    def mark_not_delivered(self, assignment_id: UUID, reason: str, now: datetime) -> bool:
        stmt = (
            update(DeliveryAssignment)
            .where(
                *self._open_for_collection(assignment_id, now),
                DeliveryAssignment.driver_locked_at.isnot(None),
            )
            .values(
                delivery_status=DeliveryStatus.NOT_DELIVERED,
                cancellation_reason=reason,
                cancelled_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        with unit_of_work(self.db, "Cancel delivery", self.timeout_seconds):
            won = self.db.execute(stmt).rowcount == 1
        return won

    def complete_payment(self, assignment: DeliveryAssignment, facts: PaymentFacts, now: datetime) -> bool:
        """
        Redeem the access code and record the payment in one transaction.

        The UPDATE only matches while code_used and payment_collected are both
        false; the losing side of a race writes nothing, including no
        PaymentSession row.
        """
        assignment_id = assignment.id
        access_code = assignment.access_code
        amount = assignment.amount
        expires_at = assignment.code_expires_at

        stmt = (
            update(DeliveryAssignment)
            .where(
                *self._open_for_collection(assignment_id, now),
                DeliveryAssignment.driver_locked_at.isnot(None),
            )
            .values(
                code_used=True,
                code_used_at=now,
                payment_collected=True,
                payment_collected_at=now,
                payment_method=facts.method,
                payment_reference=facts.reference,
                payment_proof_ref=facts.proof_ref,
                payment_confirmed_by=facts.confirmed_by,
                payment_notes=facts.notes,
                delivery_status=DeliveryStatus.DELIVERED,
                delivered_at=now,
                cancellation_reason=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        with unit_of_work(self.db, "Record payment", self.timeout_seconds):
            won = self.db.execute(stmt).rowcount == 1
            if won:
                self.db.add(
                    PaymentSession(
                        assignment_id=assignment_id,
                        access_code=access_code,
                        status="COMPLETED",
                        amount=amount,
                        payment_method=facts.method,
                        payment_reference=facts.reference,
                        payment_proof_ref=facts.proof_ref,
                        payment_confirmed_by=facts.confirmed_by,
                        payment_notes=facts.notes,
                        client_ip=facts.client_ip,
                        user_agent=facts.user_agent,
                        completed_at=now,
                        expires_at=expires_at,
                    )
                )
        return won
