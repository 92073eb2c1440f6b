"""
Delivery Assignment model - the unit a driver executes and collects payment for.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Boolean, Uuid
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
import enum
from cargopay.db.database import Base
from cargopay.models.verification import _enum_column


class DeliveryStatus(str, enum.Enum):
    NOT_DELIVERED = "NOT_DELIVERED"
    DELIVERED = "DELIVERED"


class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    CHEQUE = "CHEQUE"
    BANK_TRANSFER = "BANK_TRANSFER"
    TABBY = "TABBY"
    ALREADY_PAID = "ALREADY_PAID"


class DeliveryAssignment(Base):
    __tablename__ = "delivery_assignments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    verification_id = Column(Uuid, ForeignKey("verification_records.id"), nullable=False, unique=True)

    # Copied from the verification at dispatch; never written afterwards
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String, nullable=False, default="AED")
    delivery_address = Column(String, nullable=True)

    # Single-use access code
    access_code = Column(String(64), nullable=False, unique=True)
    payment_url = Column(String, nullable=True)
    code_expires_at = Column(DateTime, nullable=False)
    code_used = Column(Boolean, nullable=False, default=False)
    code_used_at = Column(DateTime, nullable=True)

    delivery_status = _enum_column(DeliveryStatus, nullable=False, default=DeliveryStatus.NOT_DELIVERED.value)
    delivered_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Payment collection
    payment_collected = Column(Boolean, nullable=False, default=False)
    payment_collected_at = Column(DateTime, nullable=True)
    payment_method = _enum_column(PaymentMethod, nullable=True)
    payment_reference = Column(String, nullable=True)
    payment_proof_ref = Column(String, nullable=True)
    payment_confirmed_by = Column(String, nullable=True)  # Third-party settlement confirmer (TABBY)
    payment_notes = Column(String, nullable=True)

    # Driver identity - write-once once both are set
    driver_name = Column(String, nullable=True)
    driver_phone = Column(String, nullable=True)
    driver_locked_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    verification = relationship("VerificationRecord", back_populates="delivery_assignment")
    payment_session = relationship("PaymentSession", back_populates="assignment", uselist=False)

    @property
    def identity_locked(self) -> bool:
        return bool(self.driver_name) and bool(self.driver_phone)

    @property
    def is_processed(self) -> bool:
        return bool(self.code_used) or bool(self.payment_collected)
