"""
Rate table and quote API endpoints.
"""
from decimal import Decimal
from fastapi import APIRouter, Query
from typing import List, Optional
from cargopay.schemas.rates import RateQuoteResponse, RouteRateTableResponse, WeightBracketResponse
from cargopay.services.rate_resolver import NO_RATE, billable_amount, resolve, route_from_service_code
from cargopay.services.rate_table import get_rate_table
from cargopay.services.weight_classifier import classify, clamp_weight

router = APIRouter()


@router.get("/tables", response_model=List[RouteRateTableResponse])
async def list_rate_tables():
    """List every route's weight brackets, including manual-only ones."""
    table = get_rate_table()
    return [
        RouteRateTableResponse(
            route=route.value,
            currency=table.currency,
            brackets=[
                WeightBracketResponse(
                    label=b.label,
                    min_kg=b.min_kg,
                    max_kg=b.max_kg,
                    rate_per_kg=b.rate_per_kg,
                    is_manual_only=b.is_manual_only,
                )
                for b in table.brackets_for(route)
            ],
        )
        for route in table.routes
    ]


@router.get("/quote", response_model=RateQuoteResponse)
async def quote_rate(
    service_code: Optional[str] = None,
    actual_kg: Decimal = Query(Decimal("0")),
    volumetric_kg: Decimal = Query(Decimal("0")),
):
    """Classify the weight and resolve a rate without saving anything."""
    table = get_rate_table()
    route = route_from_service_code(service_code)
    chargeable, weight_type = classify(actual_kg, volumetric_kg)
    resolution = resolve(route, chargeable, table) if route else NO_RATE
    return RateQuoteResponse(
        service_code=service_code,
        route=route.value if route else None,
        actual_weight_kg=clamp_weight(actual_kg),
        volumetric_weight_kg=clamp_weight(volumetric_kg),
        chargeable_weight_kg=chargeable,
        weight_type=weight_type.value,
        rate_per_kg=resolution.rate_per_kg,
        bracket_label=resolution.bracket_label,
        match_kind=resolution.match_kind.value,
        amount=billable_amount(chargeable, resolution.rate_per_kg),
        currency=table.currency,
    )
