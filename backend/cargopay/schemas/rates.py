"""
Rate schemas.
"""
from pydantic import BaseModel
from decimal import Decimal
from typing import List, Optional


class WeightBracketResponse(BaseModel):
    label: str
    min_kg: Decimal
    max_kg: Optional[Decimal] = None
    rate_per_kg: Decimal
    is_manual_only: bool = False


class RouteRateTableResponse(BaseModel):
    route: str
    currency: str
    brackets: List[WeightBracketResponse]


class RateQuoteResponse(BaseModel):
    service_code: Optional[str] = None
    route: Optional[str] = None
    actual_weight_kg: Decimal
    volumetric_weight_kg: Decimal
    chargeable_weight_kg: Decimal
    weight_type: str
    rate_per_kg: Decimal
    bracket_label: str
    match_kind: str
    amount: Decimal
    currency: str
