"""
Dispatch - turns a completed verification into a delivery assignment with a
single-use access code for the driver.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from cargopay.db.database import settings
from cargopay.models import DeliveryAssignment, VerificationRecord
from cargopay.services.errors import ConflictError, ConflictReason, NotFoundError, ValidationError
from cargopay.services.persistence import guarded, unit_of_work
from cargopay.services.rate_table import get_rate_table

logger = logging.getLogger(__name__)


def generate_access_code() -> str:
    return secrets.token_hex(16)


def build_payment_url(access_code: str) -> str:
    return f"{settings.payment_page_url.rstrip('/')}/{access_code}"


def create_assignment(
    db: Session,
    verification_id: UUID,
    delivery_address: Optional[str] = None,
    now: Optional[datetime] = None,
    ttl_hours: Optional[int] = None,
) -> DeliveryAssignment:
    with guarded(db, "Load verification"):
        record = db.get(VerificationRecord, verification_id)
    if not record:
        raise NotFoundError(f"Verification {verification_id} not found")
    if record.completed_at is None:
        raise ValidationError("Verification must be complete before dispatch", ["completed_at"])
    if not record.amount or record.amount <= 0:
        raise ValidationError("Verification has no billable amount", ["amount"])
    if record.delivery_assignment is not None:
        raise ConflictError(
            f"Verification {verification_id} already has a delivery assignment", ConflictReason.DUPLICATE
        )

    now = now or datetime.utcnow()
    access_code = generate_access_code()
    assignment = DeliveryAssignment(
        verification_id=record.id,
        amount=record.amount,
        currency=get_rate_table().currency,
        delivery_address=(delivery_address or "").strip() or record.receiver_address,
        access_code=access_code,
        payment_url=build_payment_url(access_code),
        code_expires_at=now + timedelta(hours=ttl_hours or settings.access_code_ttl_hours),
    )
    with unit_of_work(db, "Create delivery assignment"):
        db.add(assignment)
    db.refresh(assignment)
    logger.info(
        f"Created delivery assignment {assignment.id} for verification {record.id}: "
        f"{assignment.amount} {assignment.currency}, code expires {assignment.code_expires_at}"
    )
    return assignment
