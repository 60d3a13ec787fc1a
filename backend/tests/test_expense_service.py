# Overview: Pytest coverage for fee classification and expense aggregation.

"""
Expense Aggregation Tests

Pure tests: PeriodSources are built in memory, no database involved.

Coverage:
- Product fee classes (beam/hardcore exemption, reject override)
- Each of the five expense sources and their skip rules
- Category totals always sum to the grand total
- Line ordering by date
"""

from datetime import date

import pytest

from quarrydesk.services.expense_service import ExpenseSource, aggregate_expenses
from quarrydesk.services.fee_rules import ProductFeeClass, classify_product
from quarrydesk.services.source_service import (
    ExpenseRecord, FeeConfig, FuelRecord, PeriodSources, SaleRecord,
)


DAY = date(2025, 3, 10)
STANDARD_FEES = FeeConfig(loaders_fee_rate=10.0, land_rate_fee_rate=5.0, rejects_fee_rate=2.0)

_ids = iter(range(1, 10_000))


def sale(product="Size 6", quantity=100.0, price=50.0, commission=0.0, day=DAY,
         include_land_rate=True, status="Paid"):
    return SaleRecord(
        id=next(_ids),
        quarry_id=1,
        sale_date=day,
        quantity=quantity,
        unit_price=price,
        commission_per_unit=commission,
        product_name=product,
        fee_class=classify_product(product),
        payment_status=status,
        payment_received_date=day if status == "Paid" else None,
        include_land_rate=include_land_rate,
        vehicle_registration="KDA123X",
    )


def sources(sales=(), expenses=(), fuel=(), start=DAY, end=DAY):
    return PeriodSources(
        quarry_id=1,
        from_date=start,
        to_date=end,
        sales=list(sales),
        expenses=list(expenses),
        fuel_usages=list(fuel),
    )


class TestClassifyProduct:
    @pytest.mark.parametrize("name", ["Hardcore", "HARDCORE large", "Beam 6x9", "beams"])
    def test_loaders_exempt(self, name):
        assert classify_product(name) == ProductFeeClass.EXEMPT_FROM_LOADERS

    @pytest.mark.parametrize("name", ["Reject", "Size 6 rejects", "REJECT"])
    def test_reject_rate(self, name):
        assert classify_product(name) == ProductFeeClass.REJECT_RATE

    @pytest.mark.parametrize("name", ["Size 6", "Size 9", "", None])
    def test_standard(self, name):
        assert classify_product(name) == ProductFeeClass.STANDARD

    def test_name_matching_both_rules_gets_both_exceptions(self):
        fee_class = classify_product("Hardcore reject")
        assert fee_class == ProductFeeClass.EXEMPT_FROM_LOADERS_REJECT_RATE
        assert fee_class.exempt_from_loaders
        assert fee_class.uses_rejects_rate

    def test_single_rule_classes(self):
        assert ProductFeeClass.EXEMPT_FROM_LOADERS.exempt_from_loaders
        assert not ProductFeeClass.EXEMPT_FROM_LOADERS.uses_rejects_rate
        assert ProductFeeClass.REJECT_RATE.uses_rejects_rate
        assert not ProductFeeClass.REJECT_RATE.exempt_from_loaders
        assert not ProductFeeClass.STANDARD.exempt_from_loaders


class TestAggregateExpenses:
    def test_basic_period_breakdown(self):
        """100 x 50, commission 2, loaders 10, land 5."""
        breakdown = aggregate_expenses(sources([sale(commission=2.0)]), STANDARD_FEES)

        assert breakdown.commission == pytest.approx(200.0)
        assert breakdown.loaders_fee == pytest.approx(1000.0)
        assert breakdown.land_rate == pytest.approx(500.0)
        assert breakdown.manual == 0.0
        assert breakdown.fuel == 0.0
        assert breakdown.total == pytest.approx(1700.0)

    def test_reject_uses_rejects_rate(self):
        breakdown = aggregate_expenses(sources([sale(product="Reject")]), STANDARD_FEES)
        assert breakdown.land_rate == pytest.approx(200.0)

    def test_reject_without_rejects_rate_pays_no_land_rate(self):
        fees = FeeConfig(loaders_fee_rate=10.0, land_rate_fee_rate=5.0)
        breakdown = aggregate_expenses(sources([sale(product="Reject")]), fees)
        assert breakdown.land_rate == 0.0
        assert breakdown.loaders_fee == pytest.approx(1000.0)

    @pytest.mark.parametrize("product", ["Hardcore", "Beam"])
    def test_hardcore_and_beam_pay_no_loaders_fee(self, product):
        breakdown = aggregate_expenses(sources([sale(product=product)]), STANDARD_FEES)
        assert breakdown.loaders_fee == 0.0
        assert breakdown.land_rate == pytest.approx(500.0)

    def test_hardcore_reject_pays_no_loaders_fee_and_rejects_rate(self):
        breakdown = aggregate_expenses(sources([sale(product="Hardcore Reject")]), STANDARD_FEES)
        assert breakdown.loaders_fee == 0.0
        assert breakdown.land_rate == pytest.approx(200.0)

    def test_land_rate_opt_out(self):
        breakdown = aggregate_expenses(sources([sale(include_land_rate=False)]), STANDARD_FEES)
        assert breakdown.land_rate == 0.0
        assert breakdown.loaders_fee == pytest.approx(1000.0)

    def test_unset_rates_produce_no_lines(self):
        breakdown = aggregate_expenses(sources([sale()]), FeeConfig())
        assert breakdown.items == ()
        assert breakdown.total == 0.0

    def test_zero_and_negative_rates_are_ignored(self):
        fees = FeeConfig(loaders_fee_rate=0.0, land_rate_fee_rate=-1.0)
        breakdown = aggregate_expenses(sources([sale()]), fees)
        assert breakdown.total == 0.0

    def test_manual_expenses_pass_through(self):
        expenses = [
            ExpenseRecord(id=1, quarry_id=1, expense_date=DAY, amount=300.0, item="Diesel pump repair"),
            ExpenseRecord(id=2, quarry_id=1, expense_date=DAY, amount=0.0, item="Zero entry"),
        ]
        breakdown = aggregate_expenses(sources(expenses=expenses), STANDARD_FEES)
        assert breakdown.manual == pytest.approx(300.0)
        assert len(breakdown.items) == 2

    def test_fuel_only_when_priced(self):
        fuel = [FuelRecord(id=1, quarry_id=1, usage_date=DAY, old_stock=100.0, new_stock=0.0,
                           machines_loaded=20.0, wheel_loaders_loaded=5.0)]
        unpriced = aggregate_expenses(sources(fuel=fuel), STANDARD_FEES)
        assert unpriced.fuel == 0.0

        priced = aggregate_expenses(sources(fuel=fuel), FeeConfig(fuel_cost_per_liter=150.0))
        assert priced.fuel == pytest.approx(25.0 * 150.0)

    def test_category_totals_sum_to_total(self):
        sales = [
            sale(commission=2.0),
            sale(product="Reject", quantity=40.0, price=20.0),
            sale(product="Hardcore", quantity=70.0, price=30.0, commission=1.5),
            sale(product="Beam", quantity=12.0, price=35.0, include_land_rate=False),
        ]
        expenses = [ExpenseRecord(id=1, quarry_id=1, expense_date=DAY, amount=1234.5)]
        fuel = [FuelRecord(id=1, quarry_id=1, usage_date=DAY, old_stock=300.0, new_stock=0.0,
                           machines_loaded=33.3, wheel_loaders_loaded=11.1)]
        fees = FeeConfig(loaders_fee_rate=10.0, land_rate_fee_rate=5.0, rejects_fee_rate=2.0, fuel_cost_per_liter=172.5)

        breakdown = aggregate_expenses(sources(sales, expenses, fuel), fees)

        by_source = breakdown.by_source()
        assert set(by_source) == {tag.value for tag in ExpenseSource}
        assert sum(by_source.values()) == pytest.approx(breakdown.total)

    def test_lines_sorted_by_date_keeping_source_order(self):
        later = date(2025, 3, 12)
        sales = [sale(day=later, commission=1.0), sale(day=DAY, commission=1.0)]
        expenses = [ExpenseRecord(id=1, quarry_id=1, expense_date=later, amount=10.0)]

        breakdown = aggregate_expenses(sources(sales, expenses, end=later), STANDARD_FEES)

        dates = [line.item_date for line in breakdown.items]
        assert dates == sorted(dates)
        later_sources = [line.source for line in breakdown.items if line.item_date == later]
        assert later_sources == [
            ExpenseSource.MANUAL,
            ExpenseSource.COMMISSION,
            ExpenseSource.LOADERS_FEE,
            ExpenseSource.LAND_RATE,
        ]

    def test_items_are_immutable(self):
        breakdown = aggregate_expenses(sources([sale(commission=2.0)]), STANDARD_FEES)
        assert isinstance(breakdown.items, tuple)
        with pytest.raises(AttributeError):
            breakdown.items.append(None)

    def test_manual_line_keeps_category(self):
        expenses = [ExpenseRecord(id=9, quarry_id=1, expense_date=DAY, amount=50.0, item="Tea", category="Welfare")]
        breakdown = aggregate_expenses(sources(expenses=expenses), FeeConfig())
        assert breakdown.items[0].category == "Welfare"

    def test_to_dict_includes_items_on_request(self):
        breakdown = aggregate_expenses(sources([sale(commission=2.0)]), STANDARD_FEES)
        assert "items" not in breakdown.to_dict()
        payload = breakdown.to_dict(include_items=True)
        assert payload["by_source"]["Commission"] == pytest.approx(200.0)
        assert {item["source"] for item in payload["items"]} == {"Commission", "LoadersFee", "LandRate"}
