"""
Delivery Assignment and payment collection schemas.
"""
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from decimal import Decimal
from typing import Optional
from cargopay.models.delivery_assignment import DeliveryStatus, PaymentMethod


class DeliveryAssignmentCreate(BaseModel):
    verification_id: UUID
    delivery_address: Optional[str] = None


class DeliveryAssignmentResponse(BaseModel):
    id: UUID
    verification_id: UUID
    amount: Decimal
    currency: str
    delivery_address: Optional[str] = None
    access_code: str
    payment_url: Optional[str] = None
    code_expires_at: datetime
    code_used: bool
    delivery_status: DeliveryStatus
    payment_collected: bool
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    payment_proof_ref: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DriverIdentityRequest(BaseModel):
    driver_name: str
    driver_phone: str


class CancelDeliveryRequest(BaseModel):
    cancellation_reason: Optional[str] = None


class CompletePaymentRequest(BaseModel):
    payment_method: str
    payment_reference: Optional[str] = None
    confirmed_by: Optional[str] = None
    payment_notes: Optional[str] = None


class PaymentReceiptResponse(BaseModel):
    assignment_id: UUID
    amount: Decimal
    currency: str
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    payment_proof_ref: Optional[str] = None
    confirmed_by: Optional[str] = None
    payment_notes: Optional[str] = None
    collected_at: Optional[datetime] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    replayed: bool = False


class CollectionView(BaseModel):
    """What the driver's page renders for an access code."""
    state: str
    assignment_id: UUID
    amount: Decimal
    currency: str
    delivery_address: Optional[str] = None
    delivery_status: DeliveryStatus
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    driver_fields_read_only: bool
    cancellation_reason: Optional[str] = None
    code_expires_at: datetime
    receipt: Optional[PaymentReceiptResponse] = None
