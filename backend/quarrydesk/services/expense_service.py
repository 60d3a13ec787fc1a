# Overview: Service-layer expense aggregation; combines every expense source into one tagged list.

"""
Expense Aggregator

WHY: Total expenses are not a single table. They are manual expenses plus
three fees derived from sales (commission, loaders fee, land rate fee) plus
fuel when the site prices it. Every report reads the same breakdown from here
so category totals always add up to the grand total.

DESIGN:
- Pure: takes PeriodSources + FeeConfig, touches no database
- Lines are produced in a fixed source order, then stable-sorted by date
- An unset or non-positive rate produces no line at all (never a zero line)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from .source_service import FeeConfig, PeriodSources, SaleRecord


class ExpenseSource(str, Enum):
    MANUAL = "Manual"
    COMMISSION = "Commission"
    LOADERS_FEE = "LoadersFee"
    LAND_RATE = "LandRate"
    FUEL = "Fuel"


SOURCE_ORDER = (
    ExpenseSource.MANUAL,
    ExpenseSource.COMMISSION,
    ExpenseSource.LOADERS_FEE,
    ExpenseSource.LAND_RATE,
    ExpenseSource.FUEL,
)


@dataclass(frozen=True)
class ExpenseLineItem:
    source: ExpenseSource
    item_date: date
    amount: float
    description: str = ""
    category: str | None = None

    def to_dict(self) -> dict:
        return {
            "source": self.source.value,
            "date": self.item_date.isoformat(),
            "amount": self.amount,
            "description": self.description,
            "category": self.category,
        }


@dataclass(frozen=True)
class ExpenseBreakdown:
    items: tuple[ExpenseLineItem, ...] = ()

    @property
    def total(self) -> float:
        return sum(line.amount for line in self.items)

    def total_for(self, source: ExpenseSource) -> float:
        return sum(line.amount for line in self.items if line.source == source)

    def by_source(self) -> dict[str, float]:
        """Totals per source, every source present (0.0 when it produced nothing)."""
        return {source.value: self.total_for(source) for source in SOURCE_ORDER}

    @property
    def manual(self) -> float:
        return self.total_for(ExpenseSource.MANUAL)

    @property
    def commission(self) -> float:
        return self.total_for(ExpenseSource.COMMISSION)

    @property
    def loaders_fee(self) -> float:
        return self.total_for(ExpenseSource.LOADERS_FEE)

    @property
    def land_rate(self) -> float:
        return self.total_for(ExpenseSource.LAND_RATE)

    @property
    def fuel(self) -> float:
        return self.total_for(ExpenseSource.FUEL)

    def to_dict(self, include_items: bool = False) -> dict:
        payload = {
            "total": self.total,
            "by_source": self.by_source(),
        }
        if include_items:
            payload["items"] = [line.to_dict() for line in self.items]
        return payload


def _positive(rate: float | None) -> float:
    return float(rate) if rate is not None and rate > 0 else 0.0


def _sale_label(sale: SaleRecord) -> str:
    vehicle = sale.vehicle_registration or "unregistered"
    product = sale.product_name or "unknown product"
    return f"{vehicle} {sale.quantity:g} x {product}"


def _land_rate_for(sale: SaleRecord, fee_config: FeeConfig) -> float:
    if sale.fee_class.uses_rejects_rate:
        return _positive(fee_config.rejects_fee_rate)
    return _positive(fee_config.land_rate_fee_rate)


def aggregate_expenses(sources: PeriodSources, fee_config: FeeConfig) -> ExpenseBreakdown:
    """
    Build the tagged expense list for one period.

    Source rules:
    1. Manual: every expense record, passed through
    2. Commission: quantity x commission_per_unit, when commission_per_unit > 0
    3. LoadersFee: quantity x loaders_fee_rate, except beam/hardcore products
    4. LandRate: quantity x (rejects rate for reject products, land rate
       otherwise), only for sales that include land rate
    5. Fuel: liters consumed x fuel_cost_per_liter, one line per fuel log
    """
    items: list[ExpenseLineItem] = []

    for expense in sources.expenses:
        items.append(ExpenseLineItem(
            ExpenseSource.MANUAL, expense.expense_date, expense.amount, expense.item, expense.category,
        ))

    for sale in sources.sales:
        if sale.commission_per_unit > 0:
            items.append(ExpenseLineItem(
                ExpenseSource.COMMISSION,
                sale.sale_date,
                sale.quantity * sale.commission_per_unit,
                f"{_sale_label(sale)} commission",
            ))

    loaders_rate = _positive(fee_config.loaders_fee_rate)
    if loaders_rate:
        for sale in sources.sales:
            if sale.fee_class.exempt_from_loaders:
                continue
            items.append(ExpenseLineItem(
                ExpenseSource.LOADERS_FEE,
                sale.sale_date,
                sale.quantity * loaders_rate,
                f"{_sale_label(sale)} loaders fee",
            ))

    for sale in sources.sales:
        if not sale.include_land_rate:
            continue
        rate = _land_rate_for(sale, fee_config)
        if not rate:
            continue
        items.append(ExpenseLineItem(
            ExpenseSource.LAND_RATE,
            sale.sale_date,
            sale.quantity * rate,
            f"{_sale_label(sale)} land rate",
        ))

    fuel_rate = _positive(fee_config.fuel_cost_per_liter)
    if fuel_rate:
        for usage in sources.fuel_usages:
            if usage.consumed <= 0:
                continue
            items.append(ExpenseLineItem(
                ExpenseSource.FUEL,
                usage.usage_date,
                usage.consumed * fuel_rate,
                f"{usage.consumed:g} L fuel",
            ))

    # sorted() is stable, so equal dates keep the source order above
    return ExpenseBreakdown(items=tuple(sorted(items, key=lambda line: line.item_date)))
