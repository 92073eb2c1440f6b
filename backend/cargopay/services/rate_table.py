"""
In-memory rate table: per-route weight brackets, loaded once from configuration.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from cargopay.config.rate_tables import get_currency, get_route_brackets
from cargopay.models.verification import Route
from cargopay.services.errors import RateTableConfigError

logger = logging.getLogger(__name__)


def _to_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


@dataclass(frozen=True)
class WeightBracket:
    min_kg: Decimal
    max_kg: Optional[Decimal]  # None = unbounded
    rate_per_kg: Decimal
    label: str
    is_manual_only: bool = False

    @property
    def is_open_ended(self) -> bool:
        return self.max_kg is None


@dataclass(frozen=True)
class RateTable:
    brackets_by_route: Mapping[Route, Tuple[WeightBracket, ...]]
    currency: str = "AED"
    routes: Tuple[Route, ...] = field(default=())

    def brackets_for(self, route) -> Tuple[WeightBracket, ...]:
        key = _coerce_route(route)
        if key is None:
            return ()
        return self.brackets_by_route.get(key, ())


def _coerce_route(route) -> Optional[Route]:
    if isinstance(route, Route):
        return route
    if not route:
        return None
    try:
        return Route(str(route).upper().strip())
    except ValueError:
        return None


def _build_bracket(route: Route, raw: Dict[str, Any]) -> WeightBracket:
    label = str(raw.get("label") or "").strip()
    min_kg = _to_decimal(raw.get("min_kg"))
    max_kg = _to_decimal(raw.get("max_kg")) if raw.get("max_kg") is not None else None
    rate = _to_decimal(raw.get("rate_per_kg"))

    where = f"{route.value} bracket '{label or '?'}'"
    if not label:
        raise RateTableConfigError(f"{where}: label is required")
    if min_kg is None or min_kg < 0:
        raise RateTableConfigError(f"{where}: min_kg must be a non-negative number")
    if raw.get("max_kg") is not None and (max_kg is None or max_kg < min_kg):
        raise RateTableConfigError(f"{where}: max_kg must be >= min_kg")
    if rate is None or rate <= 0:
        raise RateTableConfigError(f"{where}: rate_per_kg must be positive")

    return WeightBracket(
        min_kg=min_kg,
        max_kg=max_kg,
        rate_per_kg=rate,
        label=label,
        is_manual_only=bool(raw.get("manual_only", False)),
    )


def build_rate_table(
    raw_routes: Mapping[Any, Iterable[Dict[str, Any]]],
    currency: str = "AED",
) -> RateTable:
    """
    Build and validate a rate table from raw bracket dictionaries.

    Every known route must carry at least one bracket the resolver may pick
    (i.e. not manual-only); otherwise resolution for that route could not be
    total and the table is rejected.
    """
    brackets_by_route: Dict[Route, Tuple[WeightBracket, ...]] = {}
    for route in Route:
        raw_list = raw_routes.get(route.value, raw_routes.get(route, [])) or []
        brackets = tuple(_build_bracket(route, raw) for raw in raw_list)
        if not any(not b.is_manual_only for b in brackets):
            raise RateTableConfigError(
                f"Route {route.value} has no automatically selectable weight bracket"
            )
        labels = [b.label for b in brackets]
        if len(labels) != len(set(labels)):
            raise RateTableConfigError(f"Route {route.value} has duplicate bracket labels")
        brackets_by_route[route] = brackets

    return RateTable(
        brackets_by_route=brackets_by_route,
        currency=currency,
        routes=tuple(brackets_by_route.keys()),
    )


@lru_cache()
def get_rate_table() -> RateTable:
    table = build_rate_table(
        {route.value: get_route_brackets(route.value) for route in Route},
        currency=get_currency(),
    )
    logger.info(
        "Loaded rate table: %s",
        ", ".join(f"{r.value}={len(table.brackets_for(r))} brackets" for r in table.routes),
    )
    return table
