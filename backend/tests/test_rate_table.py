from decimal import Decimal

import pytest

from cargopay.models.verification import Route
from cargopay.services.errors import RateTableConfigError
from cargopay.services.rate_table import build_rate_table


def _bracket(min_kg, max_kg, rate, label, manual_only=False):
    return {"min_kg": min_kg, "max_kg": max_kg, "rate_per_kg": rate, "label": label, "manual_only": manual_only}


def _valid_routes():
    return {
        "PH_TO_UAE": [_bracket(1, 15, "39", "1-15 KG"), _bracket(16, None, "38", "16+ KG")],
        "UAE_TO_PH": [_bracket(1, None, "30", "ANY")],
    }


def test_configured_table_loads_every_route(rate_table):
    assert set(rate_table.routes) == {Route.PH_TO_UAE, Route.UAE_TO_PH}
    assert rate_table.currency == "AED"


def test_configured_table_keeps_manual_only_brackets(rate_table):
    special = [b for b in rate_table.brackets_for("UAE_TO_PH") if b.label == "SPECIAL RATE"]
    assert len(special) == 1
    assert special[0].is_manual_only
    assert special[0].rate_per_kg == Decimal("29")


def test_unknown_route_has_no_brackets(rate_table):
    assert rate_table.brackets_for("PH_TO_JP") == ()
    assert rate_table.brackets_for(None) == ()


def test_open_ended_bracket_has_no_max():
    table = build_rate_table(_valid_routes())
    assert table.brackets_for(Route.PH_TO_UAE)[1].is_open_ended
    assert not table.brackets_for(Route.PH_TO_UAE)[0].is_open_ended


def test_route_with_only_manual_brackets_is_rejected():
    routes = _valid_routes()
    routes["UAE_TO_PH"] = [_bracket(0, None, "29", "SPECIAL RATE", manual_only=True)]
    with pytest.raises(RateTableConfigError):
        build_rate_table(routes)


def test_missing_route_is_rejected():
    routes = _valid_routes()
    del routes["UAE_TO_PH"]
    with pytest.raises(RateTableConfigError):
        build_rate_table(routes)


@pytest.mark.parametrize(
    "bracket",
    [
        _bracket(10, 5, "39", "BACKWARDS"),
        _bracket(-1, 5, "39", "NEGATIVE"),
        _bracket(1, 5, "0", "FREE"),
        _bracket(1, 5, "abc", "JUNK"),
        _bracket(1, 5, "39", ""),
    ],
)
def test_bad_brackets_are_rejected(bracket):
    routes = _valid_routes()
    routes["PH_TO_UAE"] = routes["PH_TO_UAE"] + [bracket]
    with pytest.raises(RateTableConfigError):
        build_rate_table(routes)


def test_duplicate_labels_are_rejected():
    routes = _valid_routes()
    routes["PH_TO_UAE"] = routes["PH_TO_UAE"] + [_bracket(100, None, "30", "1-15 KG")]
    with pytest.raises(RateTableConfigError):
        build_rate_table(routes)
