"""Tests for the deterministic estimate builder."""
from datetime import datetime, timezone

import pytest

from claimrouter.engine import (
    STANDARD_LABOR_RATE,
    build_estimate,
    build_line_item,
    format_currency,
    format_currency_range,
    get_labor_hours,
    get_part_cost_range,
)

from tests.conftest import make_part

NOW = datetime(2024, 6, 15, tzinfo=timezone.utc)


class TestLookups:
    """Part price and labor tables."""

    @pytest.mark.parametrize("name,expected", [
        ("front bumper", (400, 1200)),
        ("Front_Bumper", (400, 1200)),
        ("side-mirror", (100, 400)),
        ("flux capacitor", (200.0, 600.0)),
    ])
    def test_part_cost_range(self, name, expected):
        assert get_part_cost_range(name) == expected

    @pytest.mark.parametrize("damage_type,hours", [
        ("dented", 3),
        ("Scratched ", 1.5),
        ("melted", 2.0),
    ])
    def test_labor_hours(self, damage_type, hours):
        assert get_labor_hours(damage_type) == hours


class TestBuildEstimate:
    """Line items and totals."""

    def test_line_item(self):
        item = build_line_item(make_part("front bumper", "dented"), now=NOW)

        assert item.labor_hours == 3
        assert item.labor_cost == 3 * STANDARD_LABOR_RATE
        assert item.total_low == 400 + 282
        assert item.total_high == 1200 + 282
        assert len(item.sources) == 2
        assert item.sources[0].url.endswith("/front-bumper")

    def test_totals_sum_line_items(self):
        parts = [make_part("front bumper", "dented"), make_part("headlight", "cracked")]

        estimate = build_estimate(parts, now=NOW)

        assert [li.part for li in estimate.line_items] == ["front bumper", "headlight"]
        assert estimate.labor_total == 282 + 188
        assert estimate.grand_total_low == 400 + 150 + 470
        assert estimate.grand_total_high == 1200 + 600 + 470
        assert estimate.grand_total_high == sum(li.total_high for li in estimate.line_items)

    def test_same_parts_same_estimate(self):
        parts = [make_part("hood", "bent")]

        assert build_estimate(parts, now=NOW) == build_estimate(parts, now=NOW)

    def test_empty_estimate(self):
        estimate = build_estimate([], now=NOW)

        assert estimate.line_items == ()
        assert estimate.grand_total_high == 0

    def test_custom_labor_rate(self):
        item = build_line_item(make_part("door", "scratched"), labor_rate=100, now=NOW)

        assert item.labor_cost == 150


class TestFormatting:
    def test_format_currency(self):
        assert format_currency(1176) == "$1,176"
        assert format_currency(999.6) == "$1,000"

    def test_format_currency_range(self):
        assert format_currency_range(682, 1482) == "$682 - $1,482"
