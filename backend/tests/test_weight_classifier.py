from decimal import Decimal

import pytest

from cargopay.models.verification import WeightType
from cargopay.services.weight_classifier import classify, clamp_weight


def test_actual_weight_wins_when_heavier():
    assert classify(50, 30) == (Decimal("50"), WeightType.ACTUAL)


def test_volumetric_weight_wins_when_heavier():
    assert classify(30, 50) == (Decimal("50"), WeightType.VOLUMETRIC)


def test_no_weights_is_undetermined():
    chargeable, weight_type = classify(0, 0)
    assert chargeable == 0
    assert weight_type == WeightType.UNDETERMINED


def test_tie_goes_to_actual():
    assert classify("12.5", "12.50").weight_type == WeightType.ACTUAL


def test_only_volumetric_present():
    assert classify(0, "7.25") == (Decimal("7.25"), WeightType.VOLUMETRIC)


@pytest.mark.parametrize("raw", [None, "", "abc", -5, "-0.01", float("nan"), float("inf"), True])
def test_bad_weights_clamp_to_zero(raw):
    assert clamp_weight(raw) == Decimal("0")


def test_negative_input_does_not_leak_into_classification():
    assert classify(-100, 20) == (Decimal("20"), WeightType.VOLUMETRIC)


def test_weights_are_kept_as_decimals_to_two_places():
    weight = clamp_weight(0.1 + 0.2)
    assert isinstance(weight, Decimal)
    assert weight == Decimal("0.30")
