# Overview: Service-layer period metrics; the single implementation of the revenue/expense/net income formula.

"""
Period Metrics Calculator

WHY: Dashboard, clerk report, ROI and trend views must show identical
numbers for identical inputs. They all call calculate_period_metrics, the one
place the net income formula lives:

    revenue        = sum(quantity x unit price)
    total_expenses = expense breakdown total (manual + commission + loaders
                     fee + land rate + optional fuel)
    earnings       = revenue - total_expenses
    unpaid_orders  = gross of sales not yet paid
    collections    = gross of earlier sales paid inside the period
    prepayments    = customer deposits received inside the period
    net_income     = earnings + opening_balance + collections + prepayments
                     - unpaid_orders
    profit_margin  = net_income / revenue x 100 (0 when revenue is 0)

SIDE EFFECT (get_period_metrics only): a single-day run for one quarry
persists the day's closing balance, which becomes the next day's opening
balance.

Every ratio goes through safe_div: an empty period reports 0, never NaN.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date

from flask import current_app

from .expense_service import ExpenseBreakdown, aggregate_expenses
from .source_service import FeeConfig, PeriodSources, get_fee_config, load_period_sources
from quarrydesk.services import balance_service
from quarrydesk.services.cache_service import cached
from quarrydesk.services.site_service import get_site
from quarrydesk.utils import pct, safe_div
from quarrydesk.validation import CLOSING_BALANCE_BASES, validate_date_range


@dataclass(frozen=True)
class PeriodMetrics:
    quarry_id: int | None
    from_date: date
    to_date: date

    # Core formula
    revenue: float
    total_expenses: float
    earnings: float
    unpaid_orders: float
    collections: float
    prepayments: float
    opening_balance: float
    net_income: float
    profit_margin: float

    # Volumes and cash
    total_orders: int
    total_quantity: float
    total_banked: float
    cash_in_hand: float
    total_fuel_consumed: float
    day_count: int

    # KPIs
    daily_average_revenue: float
    daily_average_orders: float
    daily_average_quantity: float
    daily_average_banked: float
    daily_average_fuel: float
    avg_cost_per_piece: float
    avg_revenue_per_piece: float
    liters_per_piece: float
    fuel_efficiency: float
    profit_per_piece: float
    collection_rate: float
    avg_order_value: float
    commission_rate: float
    gross_margin: float
    avg_quantity_per_order: float

    expenses: ExpenseBreakdown

    @property
    def is_single_day(self) -> bool:
        return self.from_date == self.to_date

    def closing_balance(self, basis: str = "net_income") -> float:
        """Closing cash for the period: net income, or net income less banked cash."""
        if basis == "cash_in_hand":
            return self.cash_in_hand
        return self.net_income

    def to_dict(self, include_items: bool = False) -> dict:
        payload = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, date):
                value = value.isoformat()
            elif isinstance(value, ExpenseBreakdown):
                value = value.to_dict(include_items=include_items)
            payload[f.name] = value
        return payload


def calculate_period_metrics(
    sources: PeriodSources,
    fee_config: FeeConfig,
    opening_balance: float = 0.0,
) -> PeriodMetrics:
    """Pure computation over already-loaded sources. No database access."""
    breakdown = aggregate_expenses(sources, fee_config)

    revenue = sum(s.gross_amount for s in sources.sales)
    total_expenses = breakdown.total
    earnings = revenue - total_expenses
    unpaid_orders = sum(s.gross_amount for s in sources.sales if not s.is_paid)
    collections = sum(c.gross_amount for c in sources.collections)
    prepayments = sum(p.total_amount_paid for p in sources.prepayments)
    net_income = (earnings + opening_balance + collections + prepayments) - unpaid_orders

    total_orders = len(sources.sales)
    total_quantity = sum(s.quantity for s in sources.sales)
    total_banked = sum(b.amount_banked for b in sources.bankings)
    total_fuel = sum(f.consumed for f in sources.fuel_usages)
    day_count = (sources.to_date - sources.from_date).days + 1

    return PeriodMetrics(
        quarry_id=sources.quarry_id,
        from_date=sources.from_date,
        to_date=sources.to_date,
        revenue=revenue,
        total_expenses=total_expenses,
        earnings=earnings,
        unpaid_orders=unpaid_orders,
        collections=collections,
        prepayments=prepayments,
        opening_balance=float(opening_balance),
        net_income=net_income,
        profit_margin=pct(net_income, revenue),
        total_orders=total_orders,
        total_quantity=total_quantity,
        total_banked=total_banked,
        cash_in_hand=net_income - total_banked,
        total_fuel_consumed=total_fuel,
        day_count=day_count,
        daily_average_revenue=safe_div(revenue, day_count),
        daily_average_orders=safe_div(total_orders, day_count),
        daily_average_quantity=safe_div(total_quantity, day_count),
        daily_average_banked=safe_div(total_banked, day_count),
        daily_average_fuel=safe_div(total_fuel, day_count),
        avg_cost_per_piece=safe_div(total_expenses, total_quantity),
        avg_revenue_per_piece=safe_div(revenue, total_quantity),
        liters_per_piece=safe_div(total_fuel, total_quantity),
        fuel_efficiency=safe_div(total_quantity, total_fuel),
        profit_per_piece=safe_div(net_income, total_quantity),
        collection_rate=pct(revenue - unpaid_orders, revenue),
        avg_order_value=safe_div(revenue, total_orders),
        commission_rate=pct(breakdown.commission, revenue),
        gross_margin=pct(earnings, revenue),
        avg_quantity_per_order=safe_div(total_quantity, total_orders),
        expenses=breakdown,
    )


def _closing_basis() -> str:
    basis = current_app.config.get("CLOSING_BALANCE_BASIS", "net_income")
    if basis not in CLOSING_BALANCE_BASES:
        current_app.logger.warning("Unknown CLOSING_BALANCE_BASIS %r; using net_income", basis)
        return "net_income"
    return basis


def compute_period_metrics(quarry_id: int | None, from_date: date, to_date: date) -> PeriodMetrics:
    """Load, resolve opening balance and compute. Read-only: never writes a snapshot."""
    validate_date_range(from_date, to_date)
    sources = load_period_sources(quarry_id, from_date, to_date)
    fee_config = get_fee_config(quarry_id)
    opening = balance_service.get_range_opening_balance(quarry_id, from_date, to_date)
    metrics = calculate_period_metrics(sources, fee_config, opening)
    if metrics.revenue == 0:
        current_app.logger.debug(
            "No revenue for quarry=%s %s..%s; ratios reported as 0",
            quarry_id, from_date.isoformat(), to_date.isoformat(),
        )
    return metrics


def get_period_metrics(quarry_id: int | None, from_date: date, to_date: date) -> PeriodMetrics:
    """
    Canonical period metrics.

    Single-day runs for an existing quarry always recompute and persist the
    closing balance. Multi-day and all-sites runs are read-only and served
    through the analytics cache.
    """
    validate_date_range(from_date, to_date)

    if from_date == to_date and quarry_id is not None:
        metrics = compute_period_metrics(quarry_id, from_date, to_date)
        if get_site(quarry_id) is not None:
            balance_service.upsert_snapshot(
                quarry_id,
                from_date,
                metrics.closing_balance(_closing_basis()),
            )
        return metrics

    return cached(
        "period_metrics",
        quarry_id,
        from_date,
        to_date,
        lambda: compute_period_metrics(quarry_id, from_date, to_date),
    )
