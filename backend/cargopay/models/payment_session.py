"""
Payment Session model - the single payment record written when a code is redeemed.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Uuid
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
from cargopay.db.database import Base
from cargopay.models.delivery_assignment import PaymentMethod
from cargopay.models.verification import _enum_column


class PaymentSession(Base):
    __tablename__ = "payment_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Unique: at most one payment record per assignment
    assignment_id = Column(Uuid, ForeignKey("delivery_assignments.id"), nullable=False, unique=True)
    access_code = Column(String(64), nullable=False)
    status = Column(String, nullable=False, default="COMPLETED")

    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = _enum_column(PaymentMethod, nullable=False)
    payment_reference = Column(String, nullable=True)
    payment_proof_ref = Column(String, nullable=True)
    payment_confirmed_by = Column(String, nullable=True)
    payment_notes = Column(String, nullable=True)

    client_ip = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    completed_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    assignment = relationship("DeliveryAssignment", back_populates="payment_session")
