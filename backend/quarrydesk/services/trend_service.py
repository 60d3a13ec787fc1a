# Overview: Service-layer trend and breakdown reports; builds gap-filled daily series from period sources.

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date

from .expense_service import aggregate_expenses
from .source_service import FeeConfig, PeriodSources, get_fee_config, load_period_sources, list_sales
from quarrydesk.services.cache_service import cached
from quarrydesk.time_utils import iter_days
from quarrydesk.utils import pct
from quarrydesk.validation import validate_date_range


UNASSIGNED_PRODUCT = "Unassigned"


@dataclass(frozen=True)
class DailyRow:
    date: date
    label: str
    orders: int
    quantity: float
    revenue: float
    expenses: float
    net_amount: float

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "label": self.label,
            "orders": self.orders,
            "quantity": self.quantity,
            "revenue": self.revenue,
            "expenses": self.expenses,
            "net_amount": self.net_amount,
        }


@dataclass(frozen=True)
class ProductSalesRow:
    product_name: str
    orders: int
    quantity: float
    revenue: float
    revenue_share: float

    def to_dict(self) -> dict:
        return dict(self.__dict__)


def build_daily_rows(
    sources: PeriodSources,
    fee_config: FeeConfig,
    from_date: date,
    to_date: date,
) -> tuple[DailyRow, ...]:
    """
    One row per calendar day in [from_date, to_date], zero-filled.

    Each day runs the shared expense aggregator over that day's slice, so the
    rows add up to the period totals. Rows report the day's own net, not a
    running cash balance.
    """
    rows = []
    for day in iter_days(from_date, to_date):
        day_sources = sources.for_day(day)
        revenue = sum(s.gross_amount for s in day_sources.sales)
        expenses = aggregate_expenses(day_sources, fee_config).total
        rows.append(DailyRow(
            date=day,
            label=day.strftime("%d/%m"),
            orders=len(day_sources.sales),
            quantity=sum(s.quantity for s in day_sources.sales),
            revenue=revenue,
            expenses=expenses,
            net_amount=revenue - expenses,
        ))
    return tuple(rows)


def get_daily_trend(quarry_id: int | None, from_date: date, to_date: date) -> tuple[DailyRow, ...]:
    validate_date_range(from_date, to_date)

    def _compute():
        sources = load_period_sources(quarry_id, from_date, to_date)
        return build_daily_rows(sources, get_fee_config(quarry_id), from_date, to_date)

    return cached("daily_trend", quarry_id, from_date, to_date, _compute)


def get_product_breakdown(quarry_id: int | None, from_date: date, to_date: date) -> tuple[ProductSalesRow, ...]:
    """Revenue, quantity and order count per product, highest revenue first."""
    validate_date_range(from_date, to_date)

    def _compute():
        sales = list_sales(quarry_id, from_date, to_date)
        totals = defaultdict(lambda: {"orders": 0, "quantity": 0.0, "revenue": 0.0})
        for sale in sales:
            entry = totals[sale.product_name or UNASSIGNED_PRODUCT]
            entry["orders"] += 1
            entry["quantity"] += sale.quantity
            entry["revenue"] += sale.gross_amount

        grand_total = sum(entry["revenue"] for entry in totals.values())
        rows = [
            ProductSalesRow(
                product_name=name,
                orders=entry["orders"],
                quantity=entry["quantity"],
                revenue=entry["revenue"],
                revenue_share=pct(entry["revenue"], grand_total),
            )
            for name, entry in totals.items()
        ]
        rows.sort(key=lambda row: (-row.revenue, row.product_name))
        return tuple(rows)

    return cached("product_breakdown", quarry_id, from_date, to_date, _compute)
