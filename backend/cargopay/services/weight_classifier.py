"""
Weight classifier - picks the chargeable weight of a shipment.

The chargeable weight is the greater of the actual (scale) weight and the
volumetric weight. Ties go to the actual weight.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import NamedTuple

from cargopay.models.verification import WeightType

ZERO = Decimal("0.00")
WEIGHT_QUANTUM = Decimal("0.01")


class WeightClassification(NamedTuple):
    chargeable_kg: Decimal
    weight_type: WeightType


def clamp_weight(value) -> Decimal:
    """Coerce a raw weight to a non-negative Decimal kg value (2 dp); junk becomes 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        weight = value if isinstance(value, Decimal) else Decimal(str(value).strip() or "0")
    except (InvalidOperation, ValueError):
        return ZERO
    if not weight.is_finite() or weight <= 0:
        return ZERO
    return weight.quantize(WEIGHT_QUANTUM, rounding=ROUND_HALF_UP)


def classify(actual_kg, volumetric_kg) -> WeightClassification:
    actual = clamp_weight(actual_kg)
    volumetric = clamp_weight(volumetric_kg)

    if actual == 0 and volumetric == 0:
        return WeightClassification(ZERO, WeightType.UNDETERMINED)
    if actual >= volumetric:
        return WeightClassification(actual, WeightType.ACTUAL)
    return WeightClassification(volumetric, WeightType.VOLUMETRIC)
