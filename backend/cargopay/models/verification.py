"""
Verification Record model - operator-verified shipment facts and derived pricing.
"""
from sqlalchemy import Column, String, DateTime, Numeric, Integer, Boolean, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
import enum
from cargopay.db.database import Base


class Route(str, enum.Enum):
    PH_TO_UAE = "PH_TO_UAE"
    UAE_TO_PH = "UAE_TO_PH"


class WeightType(str, enum.Enum):
    ACTUAL = "ACTUAL"
    VOLUMETRIC = "VOLUMETRIC"
    UNDETERMINED = "UNDETERMINED"


class Classification(str, enum.Enum):
    GENERAL = "GENERAL"
    FLOWMIC = "FLOWMIC"
    COMMERCIAL = "COMMERCIAL"


class VerificationStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    COMPLETE = "COMPLETE"


class CargoService(str, enum.Enum):
    SEA = "SEA"
    AIR = "AIR"


def _enum_column(enum_cls, **kwargs):
    return Column(
        SQLEnum(
            enum_cls,
            native_enum=False,
            values_callable=lambda members: [member.value for member in members],
            validate_strings=True,
        ),
        **kwargs,
    )


class VerificationRecord(Base):
    __tablename__ = "verification_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    request_ref = Column(String, nullable=False, unique=True)  # Shipment request this verifies (1:1)

    invoice_number = Column(String, nullable=True)
    tracking_code = Column(String, nullable=True)
    service_code = Column(String, nullable=True)  # e.g. "UAE_TO_PH_EXPRESS"
    route = _enum_column(Route, nullable=True)

    actual_weight_kg = Column(Numeric(10, 2), nullable=False, default=0)
    volumetric_weight_kg = Column(Numeric(10, 2), nullable=False, default=0)
    chargeable_weight_kg = Column(Numeric(10, 2), nullable=False, default=0)
    weight_type = _enum_column(WeightType, nullable=False, default=WeightType.UNDETERMINED.value)

    # Pricing - derived from route + chargeable weight, never operator-set while it resolves
    rate_per_kg = Column(Numeric(10, 2), nullable=False, default=0)
    rate_source = Column(String, nullable=True)  # "DERIVED", "MANUAL"
    manual_rate_per_kg = Column(Numeric(10, 2), nullable=True)
    matched_bracket_label = Column(String, nullable=True)
    match_kind = Column(String, nullable=True)  # "EXACT", "FALLBACK", "NONE"
    amount = Column(Numeric(12, 2), nullable=False, default=0)

    box_count = Column(Integer, nullable=False, default=0)
    classification = _enum_column(Classification, nullable=True)
    cargo_service = _enum_column(CargoService, nullable=True)
    receiver_address = Column(String, nullable=True)
    receiver_phone = Column(String, nullable=True)
    agents_name = Column(String, nullable=True)
    sender_details_complete = Column(Boolean, nullable=False, default=False)
    receiver_details_complete = Column(Boolean, nullable=False, default=False)

    verification_notes = Column(String, nullable=True)
    verified_by = Column(String, nullable=True)
    completed_at = Column(DateTime, nullable=True)  # Set once; record is immutable afterwards

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    delivery_assignment = relationship("DeliveryAssignment", back_populates="verification", uselist=False)

    @property
    def status(self) -> str:
        return VerificationStatus.COMPLETE.value if self.completed_at else VerificationStatus.DRAFT.value

    @property
    def rate_editable(self) -> bool:
        return self.completed_at is None and self.rate_source != "DERIVED"
