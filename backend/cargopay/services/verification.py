"""
Verification lifecycle - operator input in, derived weight/rate/amount out.

A verification is an immutable VerificationDraft value. Operator input is
applied through apply_input(), which validates the changed fields and then
recomputes every derived field (route, chargeable weight, weight type, rate,
amount) from scratch. complete() runs the completeness check and stamps
completed_at; after that the draft refuses any further input.

The database functions at the bottom load a record into a draft, apply the
change, and write it back with a conditional UPDATE that only matches
records that are still in DRAFT.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from cargopay.models import VerificationRecord
from cargopay.models.verification import (
    CargoService,
    Classification,
    Route,
    VerificationStatus,
    WeightType,
)
from cargopay.services.errors import ConflictError, ConflictReason, NotFoundError, ValidationError
from cargopay.services.persistence import guarded, unit_of_work
from cargopay.services.rate_resolver import (
    NO_RATE,
    MatchKind,
    billable_amount,
    resolve,
    route_from_service_code,
)
from cargopay.services.rate_table import RateTable, _to_decimal
from cargopay.services.weight_classifier import ZERO, classify, clamp_weight

logger = logging.getLogger(__name__)

RATE_DERIVED = "DERIVED"
RATE_MANUAL = "MANUAL"

# Classification forced by route; routes absent here let the operator choose.
ROUTE_DEFAULT_CLASSIFICATION = {Route.PH_TO_UAE: Classification.GENERAL}
ROUTE_ALLOWED_CLASSIFICATIONS = {
    Route.PH_TO_UAE: {Classification.GENERAL},
    Route.UAE_TO_PH: {Classification.FLOWMIC, Classification.COMMERCIAL},
}

TEXT_FIELDS = (
    "invoice_number",
    "tracking_code",
    "service_code",
    "receiver_address",
    "receiver_phone",
    "agents_name",
    "verification_notes",
)
INPUT_FIELDS = frozenset(
    TEXT_FIELDS
    + (
        "actual_weight_kg",
        "volumetric_weight_kg",
        "classification",
        "cargo_service",
        "box_count",
        "sender_details_complete",
        "receiver_details_complete",
        "manual_rate_per_kg",
    )
)
DERIVED_FIELDS = frozenset(
    (
        "route",
        "chargeable_weight_kg",
        "weight_type",
        "rate_per_kg",
        "rate_source",
        "matched_bracket_label",
        "match_kind",
        "amount",
        "completed_at",
    )
)


@dataclass(frozen=True)
class VerificationDraft:
    # Operator input
    invoice_number: str = ""
    tracking_code: str = ""
    service_code: str = ""
    actual_weight_kg: Decimal = ZERO
    volumetric_weight_kg: Decimal = ZERO
    receiver_address: str = ""
    receiver_phone: str = ""
    agents_name: str = ""
    classification: Optional[Classification] = None
    cargo_service: Optional[CargoService] = None
    box_count: int = 0
    sender_details_complete: bool = False
    receiver_details_complete: bool = False
    verification_notes: str = ""
    manual_rate_per_kg: Optional[Decimal] = None

    # Derived
    route: Optional[Route] = None
    chargeable_weight_kg: Decimal = ZERO
    weight_type: WeightType = WeightType.UNDETERMINED
    rate_per_kg: Decimal = ZERO
    rate_source: Optional[str] = None
    matched_bracket_label: str = ""
    match_kind: MatchKind = MatchKind.NONE
    amount: Decimal = ZERO

    verified_by: Optional[str] = None
    completed_at: Optional[datetime] = None

    @property
    def status(self) -> VerificationStatus:
        return VerificationStatus.COMPLETE if self.completed_at else VerificationStatus.DRAFT

    @property
    def rate_editable(self) -> bool:
        """A manual rate may be entered only while resolution yields nothing."""
        return self.completed_at is None and self.rate_source != RATE_DERIVED

    @property
    def used_fallback_rate(self) -> bool:
        return self.match_kind == MatchKind.FALLBACK


def _coerce_enum(enum_cls, field_name: str, value):
    if value is None or value == "":
        return None
    try:
        return value if isinstance(value, enum_cls) else enum_cls(str(value).upper().strip())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"{field_name} must be one of: {allowed}")


def _normalize_input(field_name: str, value: Any) -> Any:
    if field_name in TEXT_FIELDS:
        return str(value).strip() if value is not None else ""
    if field_name in ("actual_weight_kg", "volumetric_weight_kg"):
        return clamp_weight(value)
    if field_name == "classification":
        return _coerce_enum(Classification, field_name, value)
    if field_name == "cargo_service":
        return _coerce_enum(CargoService, field_name, value)
    if field_name == "box_count":
        if value is None or value == "":
            return 0
        if isinstance(value, bool):
            raise ValidationError("box_count must be a whole number")
        try:
            count = int(str(value).strip())
        except ValueError:
            raise ValidationError("box_count must be a whole number")
        if count < 0:
            raise ValidationError("box_count cannot be negative")
        return count
    if field_name in ("sender_details_complete", "receiver_details_complete"):
        return bool(value)
    if field_name == "manual_rate_per_kg":
        if value is None or value == "":
            return None
        rate = _to_decimal(value)
        if rate is None or not rate.is_finite() or rate <= 0:
            raise ValidationError("manual_rate_per_kg must be a positive amount")
        return rate.quantize(Decimal("0.01"))
    return value


def _classification_for_route(
    route: Optional[Route], requested: Optional[Classification]
) -> Optional[Classification]:
    forced = ROUTE_DEFAULT_CLASSIFICATION.get(route)
    if forced is not None:
        return forced
    allowed = ROUTE_ALLOWED_CLASSIFICATIONS.get(route)
    if allowed is not None and requested not in allowed:
        # A default forced by another route does not carry over.
        return None
    return requested


def recompute(
    draft: VerificationDraft,
    table: Optional[RateTable] = None,
    manual_rate_requested: bool = False,
) -> VerificationDraft:
    """Re-derive route, classification, weights, rate and amount from the input fields."""
    route = route_from_service_code(draft.service_code)
    classification = _classification_for_route(route, draft.classification)
    chargeable, weight_type = classify(draft.actual_weight_kg, draft.volumetric_weight_kg)
    resolution = resolve(route, chargeable, table) if route else NO_RATE

    if resolution.rate_per_kg > 0:
        if manual_rate_requested and draft.manual_rate_per_kg is not None:
            raise ValidationError(
                "rate_per_kg is derived from the route and chargeable weight and cannot be set manually"
            )
        rate, source, manual_rate = resolution.rate_per_kg, RATE_DERIVED, None
    else:
        manual_rate = draft.manual_rate_per_kg
        rate = manual_rate if manual_rate else ZERO
        source = RATE_MANUAL if manual_rate else None

    return replace(
        draft,
        route=route,
        classification=classification,
        chargeable_weight_kg=chargeable,
        weight_type=weight_type,
        rate_per_kg=rate,
        rate_source=source,
        manual_rate_per_kg=manual_rate,
        matched_bracket_label=resolution.bracket_label,
        match_kind=resolution.match_kind,
        amount=billable_amount(chargeable, rate),
    )


def apply_input(
    draft: VerificationDraft,
    changes: Mapping[str, Any],
    table: Optional[RateTable] = None,
) -> VerificationDraft:
    """Single entry point for operator edits; returns a new, fully recomputed draft."""
    if draft.completed_at is not None:
        raise ConflictError("Verification is complete and can no longer be edited", ConflictReason.VERIFICATION_COMPLETE)

    read_only = sorted(set(changes) & DERIVED_FIELDS)
    if read_only:
        raise ValidationError(f"Derived fields cannot be set: {', '.join(read_only)}")
    unknown = sorted(set(changes) - INPUT_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown verification fields: {', '.join(unknown)}")

    normalized = {name: _normalize_input(name, value) for name, value in changes.items()}
    candidate = replace(draft, **normalized)

    requested = normalized.get("classification")
    route = route_from_service_code(candidate.service_code)
    if requested is not None and route not in ROUTE_DEFAULT_CLASSIFICATION:
        allowed = ROUTE_ALLOWED_CLASSIFICATIONS.get(route)
        if allowed is not None and requested not in allowed:
            raise ValidationError(
                f"classification must be one of: {', '.join(sorted(c.value for c in allowed))}"
            )

    return recompute(candidate, table, manual_rate_requested="manual_rate_per_kg" in changes)


def missing_for_completion(draft: VerificationDraft) -> List[str]:
    missing = []
    for name in ("invoice_number", "tracking_code", "service_code"):
        if not getattr(draft, name):
            missing.append(name)
    if draft.actual_weight_kg <= 0:
        missing.append("actual_weight_kg")
    if draft.volumetric_weight_kg <= 0 or draft.chargeable_weight_kg <= 0:
        missing.append("volumetric_weight_kg")
    for name in ("receiver_address", "receiver_phone", "agents_name"):
        if not getattr(draft, name):
            missing.append(name)
    if draft.classification is None:
        missing.append("classification")
    if draft.rate_per_kg <= 0:
        missing.append("rate_per_kg")
    if draft.cargo_service is None:
        missing.append("cargo_service")
    if draft.box_count < 1:
        missing.append("box_count")
    if not draft.sender_details_complete:
        missing.append("sender_details_complete")
    if not draft.receiver_details_complete:
        missing.append("receiver_details_complete")
    return missing


def complete(
    draft: VerificationDraft,
    verified_by: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> VerificationDraft:
    """DRAFT -> COMPLETE. Any gap is reported as one aggregate error."""
    if draft.completed_at is not None:
        raise ConflictError("Verification is already complete", ConflictReason.VERIFICATION_COMPLETE)
    missing = missing_for_completion(draft)
    if missing:
        raise ValidationError(
            "Incomplete verification: please complete all required verification points", missing
        )
    return replace(
        draft,
        verified_by=(verified_by or "").strip() or draft.agents_name,
        verification_notes=(notes.strip() if notes else draft.verification_notes),
        completed_at=now or datetime.utcnow(),
    )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

_DRAFT_FIELDS = tuple(VerificationDraft.__dataclass_fields__)


def draft_from_record(record: VerificationRecord) -> VerificationDraft:
    values = {}
    for name in _DRAFT_FIELDS:
        value = getattr(record, name, None)
        default = VerificationDraft.__dataclass_fields__[name].default
        values[name] = default if value is None and default is not None else value
    values["match_kind"] = MatchKind(record.match_kind) if record.match_kind else MatchKind.NONE
    for name in ("actual_weight_kg", "volumetric_weight_kg", "chargeable_weight_kg", "rate_per_kg", "amount"):
        values[name] = _to_decimal(values[name]) or ZERO
    values["manual_rate_per_kg"] = _to_decimal(record.manual_rate_per_kg)
    return VerificationDraft(**values)


def _record_values(draft: VerificationDraft) -> Dict[str, Any]:
    values = asdict(draft)
    values["match_kind"] = draft.match_kind.value
    return values


def get_verification(db: Session, record_id: UUID) -> VerificationRecord:
    with guarded(db, "Load verification"):
        record = db.get(VerificationRecord, record_id)
    if not record:
        raise NotFoundError(f"Verification {record_id} not found")
    return record


def open_verification(
    db: Session,
    request_ref: str,
    initial: Optional[Mapping[str, Any]] = None,
    table: Optional[RateTable] = None,
) -> VerificationRecord:
    """Create the DRAFT verification for a shipment request."""
    request_ref = (request_ref or "").strip()
    if not request_ref:
        raise ValidationError("request_ref is required", ["request_ref"])

    with guarded(db, "Load verification"):
        existing = db.query(VerificationRecord).filter(VerificationRecord.request_ref == request_ref).first()
    if existing:
        raise ConflictError(
            f"Shipment request {request_ref} already has a verification", ConflictReason.DUPLICATE
        )

    draft = apply_input(VerificationDraft(), initial or {}, table)
    record = VerificationRecord(request_ref=request_ref, **_record_values(draft))
    with unit_of_work(db, "Open verification"):
        db.add(record)
    db.refresh(record)
    logger.info(f"Opened verification {record.id} for request {request_ref}")
    return record


def _write_draft(db: Session, record: VerificationRecord, draft: VerificationDraft, operation: str) -> VerificationRecord:
    stmt = (
        update(VerificationRecord)
        .where(VerificationRecord.id == record.id, VerificationRecord.completed_at.is_(None))
        .values(updated_at=datetime.utcnow(), **_record_values(draft))
        .execution_options(synchronize_session=False)
    )
    with unit_of_work(db, operation):
        result = db.execute(stmt)
        if result.rowcount != 1:
            raise ConflictError(
                "Verification is complete and can no longer be edited", ConflictReason.VERIFICATION_COMPLETE
            )
    db.refresh(record)
    return record


def update_verification(
    db: Session,
    record_id: UUID,
    changes: Mapping[str, Any],
    table: Optional[RateTable] = None,
) -> VerificationRecord:
    record = get_verification(db, record_id)
    draft = apply_input(draft_from_record(record), changes, table)
    if draft.used_fallback_rate:
        logger.warning(
            f"Verification {record.id}: {draft.chargeable_weight_kg} kg on {draft.route} priced with "
            f"fallback bracket {draft.matched_bracket_label}"
        )
    return _write_draft(db, record, draft, "Update verification")


def complete_verification(
    db: Session,
    record_id: UUID,
    verified_by: Optional[str] = None,
    notes: Optional[str] = None,
) -> VerificationRecord:
    record = get_verification(db, record_id)
    draft = complete(draft_from_record(record), verified_by, notes)
    record = _write_draft(db, record, draft, "Complete verification")
    logger.info(f"Verification {record.id} completed by {record.verified_by}: amount {record.amount}")
    return record
