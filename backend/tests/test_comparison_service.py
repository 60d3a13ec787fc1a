# Overview: Pytest coverage for comparative period analysis.

from datetime import date

import pytest

from quarrydesk.models import DailyBalanceSnapshot
from quarrydesk.services.comparison_service import (
    PeriodSummary, change_percent, compare_summaries, get_comparative_period, previous_period,
)


class TestPreviousPeriod:
    def test_equal_length_range_before(self):
        assert previous_period(date(2025, 3, 1), date(2025, 3, 10)) == (date(2025, 2, 19), date(2025, 2, 28))

    def test_single_day(self):
        assert previous_period(date(2025, 3, 1), date(2025, 3, 1)) == (date(2025, 2, 28), date(2025, 2, 28))


class TestChangePercent:
    @pytest.mark.parametrize("current,previous,expected", [
        (1000.0, 0.0, 0.0),
        (0.0, 0.0, 0.0),
        (1000.0, 500.0, 100.0),
        (250.0, 500.0, -50.0),
    ])
    def test_change(self, current, previous, expected):
        assert change_percent(current, previous) == pytest.approx(expected)

    def test_margin_change_is_absolute_points(self):
        current = PeriodSummary(date(2025, 3, 2), date(2025, 3, 2), 1000.0, 300.0, 10.0, 1, 70.0)
        previous = PeriodSummary(date(2025, 3, 1), date(2025, 3, 1), 1000.0, 500.0, 10.0, 1, 50.0)

        result = compare_summaries(current, previous)

        assert result.margin_change == pytest.approx(20.0)
        assert result.expense_change_percent == pytest.approx(-40.0)


class TestGetComparativePeriod:
    def test_zero_previous_period(self, db_session, quarry_b, make_sale):
        make_sale(quarry_b, date(2025, 3, 10), quantity=10, price=100)

        result = get_comparative_period(quarry_b.id, date(2025, 3, 10), date(2025, 3, 10))

        assert result.current.revenue == pytest.approx(1000.0)
        assert result.previous.revenue == 0.0
        assert result.revenue_change_percent == 0.0
        assert result.quantity_change_percent == 0.0

    def test_both_periods_computed_with_shared_formula(self, db_session, quarry_a, make_sale):
        make_sale(quarry_a, date(2025, 3, 3), quantity=100, price=50)
        make_sale(quarry_a, date(2025, 3, 12), quantity=150, price=50)

        result = get_comparative_period(quarry_a.id, date(2025, 3, 8), date(2025, 3, 14))

        assert result.previous.from_date == date(2025, 3, 1)
        assert result.previous.to_date == date(2025, 3, 7)
        assert result.revenue_change_percent == pytest.approx(50.0)
        assert result.expense_change_percent == pytest.approx(50.0)
        assert result.quantity_change_percent == pytest.approx(50.0)
        # Both sides: (50 - 15) / 50
        assert result.current.margin_percent == pytest.approx(70.0)
        assert result.margin_change == pytest.approx(0.0)

    def test_read_only(self, db_session, quarry_a, make_sale):
        make_sale(quarry_a, date(2025, 3, 10), quantity=10, price=100)

        get_comparative_period(quarry_a.id, date(2025, 3, 10), date(2025, 3, 10))

        assert db_session.query(DailyBalanceSnapshot).count() == 0

    def test_to_dict(self, db_session, quarry_b):
        payload = get_comparative_period(quarry_b.id, date(2025, 3, 10), date(2025, 3, 12)).to_dict()
        assert payload["previous"]["from_date"] == "2025-03-07"
        assert set(payload) >= {"revenue_change_percent", "expense_change_percent", "quantity_change_percent", "margin_change"}
