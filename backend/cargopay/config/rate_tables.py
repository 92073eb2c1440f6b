"""
Utilities for loading the static per-route rate table configuration.
"""
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml

CONFIG_PATH = Path(
    os.getenv("RATE_TABLE_PATH", Path(__file__).resolve().parents[2] / "config" / "rate_tables.yaml")
)


@lru_cache()
def load_rate_table_config() -> Dict[str, Any]:
    if not CONFIG_PATH.exists():
        return {}
    with open(CONFIG_PATH, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def get_currency() -> str:
    return load_rate_table_config().get("currency", "AED")


def get_route_brackets(route: str) -> List[Dict[str, Any]]:
    routes = load_rate_table_config().get("routes", {})
    return list(routes.get(route.upper().strip(), []) or [])
