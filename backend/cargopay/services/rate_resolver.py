"""
Rate resolver - maps (route, chargeable weight) to a per-kg rate.

Resolution rules:
1. Manual-only brackets (e.g. SPECIAL RATE) are never picked automatically.
2. Closed brackets (with a max) are scanned ascending by min weight; bounds are inclusive.
3. Open-ended brackets are scanned descending by min weight, so "1 TON UP" (1000+)
   wins over "200+ KG" for a 1500 kg shipment.
4. Anything left over uses a fallback bracket, tagged FALLBACK so it can be audited:
   the lowest bracket below every minimum, otherwise the highest open-ended
   bracket, otherwise the highest closed bracket.
"""
import enum
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, NamedTuple, Optional

from cargopay.models.verification import Route
from cargopay.services.rate_table import RateTable, WeightBracket, _to_decimal, get_rate_table

logger = logging.getLogger(__name__)

MONEY_QUANTUM = Decimal("0.01")


class MatchKind(str, enum.Enum):
    EXACT = "EXACT"
    FALLBACK = "FALLBACK"
    NONE = "NONE"


class RateResolution(NamedTuple):
    rate_per_kg: Decimal
    bracket_label: str
    match_kind: MatchKind
    bracket: Optional[WeightBracket] = None

    @property
    def is_fallback(self) -> bool:
        return self.match_kind == MatchKind.FALLBACK


NO_RATE = RateResolution(Decimal("0"), "", MatchKind.NONE, None)


def route_from_service_code(service_code: Optional[str]) -> Optional[Route]:
    """Derive the route from a booking service code such as 'UAE_TO_PH_EXPRESS'."""
    code = (service_code or "").upper().strip()
    if not code:
        return None
    if Route.PH_TO_UAE.value in code:
        return Route.PH_TO_UAE
    if Route.UAE_TO_PH.value in code:
        return Route.UAE_TO_PH
    return None


def _fallback_bracket(
    weight: Decimal,
    available: List[WeightBracket],
    closed: List[WeightBracket],
    open_ended: List[WeightBracket],
) -> WeightBracket:
    lowest = min(available, key=lambda b: b.min_kg)
    if weight < lowest.min_kg:
        return lowest
    # Anything else (above the closed brackets, or in a gap between two of
    # them) is priced at the highest open-ended bracket, else the last closed one.
    if open_ended:
        return open_ended[0]
    if closed:
        return closed[-1]
    return lowest


def resolve(route, chargeable_kg, table: Optional[RateTable] = None) -> RateResolution:
    """
    Resolve the per-kg rate for a chargeable weight on a route.

    Never raises. Returns NO_RATE (0, "") for unknown routes or weights <= 0;
    otherwise always returns a positive rate.
    """
    table = table or get_rate_table()
    weight = _to_decimal(chargeable_kg)
    if weight is None or not weight.is_finite() or weight <= 0:
        return NO_RATE

    available = [b for b in table.brackets_for(route) if not b.is_manual_only]
    if not available:
        return NO_RATE

    closed = sorted((b for b in available if b.max_kg is not None), key=lambda b: b.min_kg)
    open_ended = sorted(
        (b for b in available if b.max_kg is None), key=lambda b: b.min_kg, reverse=True
    )

    for bracket in closed:
        if bracket.min_kg <= weight <= bracket.max_kg:
            return RateResolution(bracket.rate_per_kg, bracket.label, MatchKind.EXACT, bracket)

    for bracket in open_ended:
        if weight >= bracket.min_kg:
            return RateResolution(bracket.rate_per_kg, bracket.label, MatchKind.EXACT, bracket)

    bracket = _fallback_bracket(weight, available, closed, open_ended)
    logger.warning(
        "No bracket matched %s kg on route %s; using fallback bracket %s at %s/kg",
        weight, getattr(route, "value", route), bracket.label, bracket.rate_per_kg,
    )
    return RateResolution(bracket.rate_per_kg, bracket.label, MatchKind.FALLBACK, bracket)


def billable_amount(chargeable_kg, rate_per_kg) -> Decimal:
    """Total charge for a shipment, rounded half-up to 2 dp."""
    weight = _to_decimal(chargeable_kg) or Decimal("0")
    rate = _to_decimal(rate_per_kg) or Decimal("0")
    if weight <= 0 or rate <= 0:
        return Decimal("0.00")
    return (weight * rate).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)
