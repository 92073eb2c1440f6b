from decimal import Decimal

import pytest

from cargopay.models.verification import Classification, Route, VerificationStatus, WeightType
from cargopay.services.errors import ConflictError, ConflictReason, ValidationError
from cargopay.services.verification import (
    RATE_DERIVED,
    RATE_MANUAL,
    VerificationDraft,
    apply_input,
    complete,
    complete_verification,
    get_verification,
    open_verification,
    update_verification,
)

from conftest import COMPLETE_INPUT

WEIGHTS_ONLY = {"service_code": "PH_TO_UAE", "actual_weight_kg": "10", "volumetric_weight_kg": "5"}
CHECKLIST = {
    "cargo_service": "SEA",
    "box_count": 1,
    "sender_details_complete": True,
    "receiver_details_complete": True,
}
IDENTIFIERS = {
    "invoice_number": "INV-9",
    "tracking_code": "AWB-9",
    "receiver_address": "Makati City",
    "receiver_phone": "+639171234567",
    "agents_name": "Jun",
}


def test_ten_kilos_on_ph_to_uae_derives_rate_and_amount(rate_table):
    draft = apply_input(VerificationDraft(), WEIGHTS_ONLY, rate_table)
    assert draft.route == Route.PH_TO_UAE
    assert draft.chargeable_weight_kg == Decimal("10")
    assert draft.weight_type == WeightType.ACTUAL
    assert draft.rate_per_kg == Decimal("39")
    assert draft.matched_bracket_label == "1-15 KG"
    assert draft.rate_source == RATE_DERIVED
    assert draft.amount == Decimal("390.00")
    assert draft.classification == Classification.GENERAL
    assert not draft.rate_editable


def test_completion_waits_for_classification_boxes_and_checklist(rate_table):
    draft = apply_input(VerificationDraft(), dict(WEIGHTS_ONLY, **IDENTIFIERS), rate_table)
    with pytest.raises(ValidationError) as excinfo:
        complete(draft)
    assert set(excinfo.value.missing) == {
        "cargo_service",
        "box_count",
        "sender_details_complete",
        "receiver_details_complete",
    }
    assert draft.status == VerificationStatus.DRAFT

    done = complete(apply_input(draft, CHECKLIST, rate_table), verified_by="Jun")
    assert done.status == VerificationStatus.COMPLETE
    assert done.completed_at is not None
    assert done.verified_by == "Jun"


def test_incomplete_verification_reports_every_gap_at_once(rate_table):
    with pytest.raises(ValidationError) as excinfo:
        complete(VerificationDraft())
    missing = excinfo.value.missing
    assert "invoice_number" in missing
    assert "actual_weight_kg" in missing
    assert "volumetric_weight_kg" in missing
    assert "classification" in missing
    assert "rate_per_kg" in missing
    assert str(excinfo.value).startswith("Incomplete verification")


def test_volumetric_weight_is_required_for_completion(rate_table):
    changes = dict(COMPLETE_INPUT, volumetric_weight_kg="0")
    draft = apply_input(VerificationDraft(), changes, rate_table)
    assert draft.chargeable_weight_kg == Decimal("10")
    with pytest.raises(ValidationError) as excinfo:
        complete(draft)
    assert excinfo.value.missing == ["volumetric_weight_kg"]


def test_completed_draft_refuses_further_input(rate_table):
    done = complete(apply_input(VerificationDraft(), COMPLETE_INPUT, rate_table))
    with pytest.raises(ConflictError) as excinfo:
        apply_input(done, {"box_count": 3}, rate_table)
    assert excinfo.value.reason == ConflictReason.VERIFICATION_COMPLETE
    with pytest.raises(ConflictError):
        complete(done)


def test_ph_to_uae_forces_general_classification(rate_table):
    draft = apply_input(VerificationDraft(), {"service_code": "UAE_TO_PH", "classification": "FLOWMIC"}, rate_table)
    assert draft.classification == Classification.FLOWMIC

    draft = apply_input(draft, {"service_code": "PH_TO_UAE"}, rate_table)
    assert draft.classification == Classification.GENERAL

    draft = apply_input(draft, {"classification": "COMMERCIAL"}, rate_table)
    assert draft.classification == Classification.GENERAL


def test_forced_classification_does_not_carry_to_the_other_route(rate_table):
    draft = apply_input(VerificationDraft(), {"service_code": "PH_TO_UAE"}, rate_table)
    draft = apply_input(draft, {"service_code": "UAE_TO_PH"}, rate_table)
    assert draft.classification is None


def test_uae_to_ph_rejects_general_classification(rate_table):
    draft = apply_input(VerificationDraft(), {"service_code": "UAE_TO_PH"}, rate_table)
    with pytest.raises(ValidationError):
        apply_input(draft, {"classification": "GENERAL"}, rate_table)


def test_unknown_classification_is_rejected(rate_table):
    with pytest.raises(ValidationError):
        apply_input(VerificationDraft(), {"classification": "FRAGILE"}, rate_table)


def test_derived_fields_cannot_be_set(rate_table):
    with pytest.raises(ValidationError):
        apply_input(VerificationDraft(), {"rate_per_kg": "10"}, rate_table)
    with pytest.raises(ValidationError):
        apply_input(VerificationDraft(), {"amount": "1"}, rate_table)


def test_unknown_fields_are_rejected(rate_table):
    with pytest.raises(ValidationError):
        apply_input(VerificationDraft(), {"discount": "5"}, rate_table)


@pytest.mark.parametrize("value", [-1, "two", 1.5, True])
def test_box_count_must_be_a_whole_number(rate_table, value):
    with pytest.raises(ValidationError):
        apply_input(VerificationDraft(), {"box_count": value}, rate_table)


def test_manual_rate_only_while_nothing_resolves(rate_table):
    draft = apply_input(VerificationDraft(), {"service_code": "LOCAL_COURIER", "actual_weight_kg": "4"}, rate_table)
    assert draft.rate_per_kg == 0
    assert draft.rate_editable

    draft = apply_input(draft, {"manual_rate_per_kg": "25"}, rate_table)
    assert draft.rate_per_kg == Decimal("25.00")
    assert draft.rate_source == RATE_MANUAL
    assert draft.amount == Decimal("100.00")

    # Resolution becomes positive again: the derived rate takes over.
    draft = apply_input(draft, {"service_code": "PH_TO_UAE"}, rate_table)
    assert draft.rate_per_kg == Decimal("39")
    assert draft.rate_source == RATE_DERIVED
    assert draft.manual_rate_per_kg is None
    assert not draft.rate_editable

    with pytest.raises(ValidationError):
        apply_input(draft, {"manual_rate_per_kg": "25"}, rate_table)


def test_manual_rate_must_be_positive(rate_table):
    with pytest.raises(ValidationError):
        apply_input(VerificationDraft(), {"manual_rate_per_kg": "0"}, rate_table)


def test_fallback_rate_is_flagged(rate_table):
    draft = apply_input(VerificationDraft(), {"service_code": "PH_TO_UAE", "actual_weight_kg": "15.5"}, rate_table)
    assert draft.used_fallback_rate
    assert draft.matched_bracket_label == "300+ KG"
    assert draft.rate_per_kg == Decimal("30")
    assert draft.amount == Decimal("465.00")


def test_rate_recomputes_when_weight_changes(rate_table):
    draft = apply_input(VerificationDraft(), WEIGHTS_ONLY, rate_table)
    draft = apply_input(draft, {"volumetric_weight_kg": "40"}, rate_table)
    assert draft.weight_type == WeightType.VOLUMETRIC
    assert draft.matched_bracket_label == "30-69 KG"
    assert draft.amount == Decimal("1440.00")


def test_verification_round_trip_through_database(db):
    record = open_verification(db, "REQ-77", WEIGHTS_ONLY)
    assert record.status == VerificationStatus.DRAFT.value
    assert record.amount == Decimal("390.00")

    record = update_verification(db, record.id, dict(IDENTIFIERS, **CHECKLIST))
    record = complete_verification(db, record.id, verified_by="Jun", notes="Seal intact")
    assert record.status == VerificationStatus.COMPLETE.value
    assert record.verification_notes == "Seal intact"

    with pytest.raises(ConflictError):
        update_verification(db, record.id, {"box_count": 5})
    assert get_verification(db, record.id).box_count == 1


def test_request_gets_only_one_verification(db):
    open_verification(db, "REQ-78")
    with pytest.raises(ConflictError) as excinfo:
        open_verification(db, "REQ-78")
    assert excinfo.value.reason == ConflictReason.DUPLICATE
