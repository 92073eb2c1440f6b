"""
Script to validate the rate table configuration and print sample quotes.
Run this after editing config/rate_tables.yaml.
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from cargopay.services.errors import RateTableConfigError
from cargopay.services.rate_resolver import resolve
from cargopay.services.rate_table import get_rate_table

SAMPLE_WEIGHTS = ["0.5", "10", "15.5", "29", "150", "250", "1500"]


def check_rate_table():
    """Load the rate table and show how sample weights resolve per route."""
    try:
        table = get_rate_table()
    except RateTableConfigError as e:
        print(f"✗ Rate table is invalid: {e}")
        sys.exit(1)

    for route in table.routes:
        print(f"\n{route.value} ({table.currency})")
        print("-" * 50)
        for bracket in table.brackets_for(route):
            upper = f"{bracket.max_kg}" if bracket.max_kg is not None else "+"
            manual = "  [manual only]" if bracket.is_manual_only else ""
            print(f"  {bracket.label:<14} {bracket.min_kg}-{upper:<6} {bracket.rate_per_kg}/kg{manual}")

        print("  Sample weights:")
        for weight in SAMPLE_WEIGHTS:
            resolution = resolve(route, weight, table)
            flag = "  ⚠ fallback" if resolution.is_fallback else ""
            print(f"    {weight:>7} kg -> {resolution.bracket_label} @ {resolution.rate_per_kg}{flag}")

    print("\n✓ Rate table is valid")


if __name__ == "__main__":
    check_rate_table()
