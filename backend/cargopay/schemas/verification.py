"""
Verification schemas.
"""
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from decimal import Decimal
from typing import Optional
from cargopay.models.verification import CargoService, Classification, Route, WeightType


class VerificationInput(BaseModel):
    invoice_number: Optional[str] = None
    tracking_code: Optional[str] = None
    service_code: Optional[str] = None
    actual_weight_kg: Optional[Decimal] = None
    volumetric_weight_kg: Optional[Decimal] = None
    receiver_address: Optional[str] = None
    receiver_phone: Optional[str] = None
    agents_name: Optional[str] = None
    classification: Optional[str] = None
    cargo_service: Optional[str] = None
    box_count: Optional[int] = None
    sender_details_complete: Optional[bool] = None
    receiver_details_complete: Optional[bool] = None
    verification_notes: Optional[str] = None
    manual_rate_per_kg: Optional[Decimal] = None

    class Config:
        extra = "allow"


class VerificationCreate(VerificationInput):
    request_ref: str


class VerificationComplete(BaseModel):
    verified_by: Optional[str] = None
    verification_notes: Optional[str] = None


class VerificationResponse(BaseModel):
    id: UUID
    request_ref: str
    status: str
    invoice_number: Optional[str] = None
    tracking_code: Optional[str] = None
    service_code: Optional[str] = None
    route: Optional[Route] = None
    actual_weight_kg: Decimal
    volumetric_weight_kg: Decimal
    chargeable_weight_kg: Decimal
    weight_type: WeightType
    rate_per_kg: Decimal
    rate_source: Optional[str] = None
    rate_editable: bool
    matched_bracket_label: Optional[str] = None
    match_kind: Optional[str] = None
    amount: Decimal
    box_count: int
    classification: Optional[Classification] = None
    cargo_service: Optional[CargoService] = None
    receiver_address: Optional[str] = None
    receiver_phone: Optional[str] = None
    agents_name: Optional[str] = None
    sender_details_complete: bool
    receiver_details_complete: bool
    verification_notes: Optional[str] = None
    verified_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
