# Overview: Service-layer ROI and break-even analysis; encapsulates capital recovery calculations.

"""
ROI / Break-even Analysis

WHY: Owners want to know how much of the initial capital has come back, how
fast, and how many pieces a month cover the fixed costs. Cumulative profit is
the sum of the canonical period net income computed month by month, so it can
never drift from what the dashboards report.

RULES:
1. No quarry, or no positive initial investment: NoInvestmentData, not zeros
2. operating_months = max(1, operating_days / 30), days counted from the
   operations start to today inclusive
3. Monthly net income opens at 0 and never writes balance snapshots
4. Payback is None ("not yet recoverable") when average monthly profit <= 0
5. Recovery percent is capped at 100
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date

from flask import current_app

from .metrics_service import PeriodMetrics, calculate_period_metrics
from .source_service import FeeConfig, get_fee_config, load_period_sources
from quarrydesk.services.cache_service import cached
from quarrydesk.services.site_service import get_site
from quarrydesk.time_utils import add_months, month_end, month_start, shift_months, to_iso_date
from quarrydesk import time_utils
from quarrydesk.utils import pct, safe_div
from quarrydesk.validation import ValidationError


DAYS_PER_MONTH = 30


@dataclass(frozen=True)
class NoInvestmentData:
    quarry_id: int
    quarry_name: str | None = None
    reason: str = "No initial investment configured"
    has_investment_data: bool = False

    def to_dict(self) -> dict:
        return {
            "quarry_id": self.quarry_id,
            "quarry_name": self.quarry_name,
            "has_investment_data": False,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class BreakEvenAnalysis:
    fixed_costs: float
    variable_cost_per_unit: float
    average_price_per_unit: float
    contribution_margin: float
    break_even_units: float
    break_even_revenue: float
    current_monthly_units: float
    margin_of_safety_percent: float
    is_above_break_even: bool

    def to_dict(self) -> dict:
        return dict(self.__dict__)


@dataclass(frozen=True)
class MonthlyProfitRow:
    year: int
    month: int
    label: str
    revenue: float
    expenses: float
    net_profit: float
    cumulative_profit: float
    roi_to_date: float
    quantity: float

    def to_dict(self) -> dict:
        return dict(self.__dict__)


@dataclass(frozen=True)
class PeriodFigures:
    from_date: date
    to_date: date
    operating_days: int
    revenue: float
    expenses: float
    net_profit: float
    quantity: float
    orders: int
    paid_orders: int
    gross_margin: float
    net_margin: float
    revenue_per_piece: float
    cost_per_piece: float
    profit_per_piece: float
    fuel_consumed: float
    fuel_efficiency: float
    capacity_utilization: float
    commission_ratio: float
    collection_efficiency: float
    target_profit_margin: float | None
    is_above_target: bool

    def to_dict(self) -> dict:
        payload = dict(self.__dict__)
        payload["from_date"] = to_iso_date(self.from_date)
        payload["to_date"] = to_iso_date(self.to_date)
        return payload


@dataclass(frozen=True)
class ROIResult:
    quarry_id: int
    quarry_name: str
    initial_investment: float
    operations_start_date: date
    total_operating_days: int
    operating_months: float
    cumulative_net_profit: float
    basic_roi: float
    annualized_roi: float
    average_monthly_profit: float
    payback_months: float | None
    remaining_to_recover: float
    estimated_recovery_date: date | None
    investment_recovery_percent: float
    period: PeriodFigures
    break_even: BreakEvenAnalysis
    monthly_history: tuple[MonthlyProfitRow, ...] = ()
    has_investment_data: bool = True

    @property
    def is_recoverable(self) -> bool:
        return self.payback_months is not None

    def to_dict(self) -> dict:
        return {
            "quarry_id": self.quarry_id,
            "quarry_name": self.quarry_name,
            "has_investment_data": True,
            "initial_investment": self.initial_investment,
            "operations_start_date": to_iso_date(self.operations_start_date),
            "total_operating_days": self.total_operating_days,
            "operating_months": self.operating_months,
            "cumulative_net_profit": self.cumulative_net_profit,
            "basic_roi": self.basic_roi,
            "annualized_roi": self.annualized_roi,
            "average_monthly_profit": self.average_monthly_profit,
            "payback_months": self.payback_months,
            "remaining_to_recover": self.remaining_to_recover,
            "estimated_recovery_date": to_iso_date(self.estimated_recovery_date),
            "investment_recovery_percent": self.investment_recovery_percent,
            "period": self.period.to_dict(),
            "break_even": self.break_even.to_dict(),
            "monthly_history": [row.to_dict() for row in self.monthly_history],
        }


def annualize_roi(basic_roi: float, operating_months: float) -> float:
    if operating_months >= 12:
        return basic_roi / (operating_months / 12.0)
    return basic_roi * (12.0 / operating_months)


def calculate_break_even(
    fee_config: FeeConfig,
    fixed_costs: float | None,
    total_quantity: float,
    total_revenue: float,
    operating_days: int,
) -> BreakEvenAnalysis:
    fixed = float(fixed_costs or 0.0)
    monthly_units = safe_div(total_quantity, operating_days) * DAYS_PER_MONTH
    avg_price = safe_div(total_revenue, total_quantity)

    # Only the per-unit fees scale with volume
    variable_cost = float(fee_config.loaders_fee_rate or 0.0) + float(fee_config.land_rate_fee_rate or 0.0)
    contribution = avg_price - variable_cost

    break_even_units = fixed / contribution if contribution > 0 else 0.0
    if monthly_units > 0 and monthly_units > break_even_units:
        margin_of_safety = (monthly_units - break_even_units) / monthly_units * 100.0
    else:
        margin_of_safety = 0.0

    return BreakEvenAnalysis(
        fixed_costs=fixed,
        variable_cost_per_unit=variable_cost,
        average_price_per_unit=avg_price,
        contribution_margin=contribution,
        break_even_units=break_even_units,
        break_even_revenue=break_even_units * avg_price,
        current_monthly_units=monthly_units,
        margin_of_safety_percent=margin_of_safety,
        is_above_break_even=monthly_units >= break_even_units,
    )


def build_monthly_history(sources, fee_config: FeeConfig, start: date, end: date, investment: float) -> tuple[MonthlyProfitRow, ...]:
    """
    Net income per calendar month between start and end (both clamped into
    the month slices), with a running cumulative total and ROI to date.
    """
    rows = []
    cumulative = 0.0
    cursor = month_start(start)
    while cursor <= end:
        slice_from = max(cursor, start)
        slice_to = min(month_end(cursor), end)
        metrics = calculate_period_metrics(sources.for_range(slice_from, slice_to), fee_config, 0.0)
        cumulative += metrics.net_income
        rows.append(MonthlyProfitRow(
            year=cursor.year,
            month=cursor.month,
            label=cursor.strftime("%b %Y"),
            revenue=metrics.revenue,
            expenses=metrics.total_expenses,
            net_profit=metrics.net_income,
            cumulative_profit=cumulative,
            roi_to_date=pct(cumulative, investment),
            quantity=metrics.total_quantity,
        ))
        cursor = add_months(cursor, 1)
    return tuple(rows)


def _period_figures(metrics: PeriodMetrics, sources, capacity: float | None, target_margin: float | None) -> PeriodFigures:
    operating_days = metrics.day_count
    revenue_per_piece = safe_div(metrics.revenue, metrics.total_quantity)
    cost_per_piece = safe_div(metrics.total_expenses, metrics.total_quantity)
    net_margin = pct(metrics.net_income, metrics.revenue)
    paid_orders = sum(1 for s in sources.sales if s.is_paid)

    capacity_utilization = 0.0
    if capacity and capacity > 0:
        capacity_utilization = safe_div(metrics.total_quantity, operating_days) / capacity * 100.0

    return PeriodFigures(
        from_date=metrics.from_date,
        to_date=metrics.to_date,
        operating_days=operating_days,
        revenue=metrics.revenue,
        expenses=metrics.total_expenses,
        net_profit=metrics.net_income,
        quantity=metrics.total_quantity,
        orders=metrics.total_orders,
        paid_orders=paid_orders,
        gross_margin=metrics.gross_margin,
        net_margin=net_margin,
        revenue_per_piece=revenue_per_piece,
        cost_per_piece=cost_per_piece,
        profit_per_piece=revenue_per_piece - cost_per_piece,
        fuel_consumed=metrics.total_fuel_consumed,
        fuel_efficiency=metrics.fuel_efficiency,
        capacity_utilization=capacity_utilization,
        commission_ratio=metrics.commission_rate,
        collection_efficiency=pct(paid_orders, metrics.total_orders),
        target_profit_margin=target_margin,
        is_above_target=target_margin is not None and net_margin >= target_margin,
    )


def compute_roi_analysis(
    quarry_id: int,
    from_date: date | None = None,
    to_date: date | None = None,
    today: date | None = None,
) -> ROIResult | NoInvestmentData:
    today = today or time_utils.today()

    quarry = get_site(quarry_id)
    if quarry is None:
        current_app.logger.debug("ROI requested for unknown quarry=%s", quarry_id)
        return NoInvestmentData(quarry_id=quarry_id, reason="Quarry not found")
    investment = quarry.initial_investment
    if investment is None or investment <= 0:
        return NoInvestmentData(quarry_id=quarry_id, quarry_name=quarry.name)
    investment = float(investment)

    ops_start = quarry.operations_start_date or shift_months(today, -12)
    analysis_from = max(from_date or ops_start, ops_start)
    analysis_to = to_date or today
    if analysis_to < analysis_from:
        raise ValidationError(
            f"to date {analysis_to.isoformat()} is before the analysis start {analysis_from.isoformat()}"
        )

    fee_config = get_fee_config(quarry_id)

    # Lifetime: operations start through today
    lifetime_sources = load_period_sources(quarry_id, ops_start, today) if ops_start <= today else None
    history = []
    if lifetime_sources is not None:
        history = build_monthly_history(lifetime_sources, fee_config, ops_start, today, investment)
    cumulative = history[-1].cumulative_profit if history else 0.0

    total_operating_days = (today - ops_start).days + 1
    operating_months = max(1.0, total_operating_days / float(DAYS_PER_MONTH))

    basic_roi = pct(cumulative, investment)
    avg_monthly_profit = cumulative / operating_months
    payback = investment / avg_monthly_profit if avg_monthly_profit > 0 else None
    remaining = max(0.0, investment - cumulative)

    recovery_date = None
    if avg_monthly_profit > 0 and remaining > 0:
        recovery_date = shift_months(today, math.ceil(remaining / avg_monthly_profit))
    elif cumulative >= investment:
        recovery_date = today

    # Selected range
    period_sources = load_period_sources(quarry_id, analysis_from, analysis_to)
    period_metrics = calculate_period_metrics(period_sources, fee_config, 0.0)
    period = _period_figures(
        period_metrics,
        period_sources,
        quarry.daily_production_capacity,
        quarry.target_profit_margin,
    )
    break_even = calculate_break_even(
        fee_config,
        quarry.estimated_monthly_fixed_costs,
        period_metrics.total_quantity,
        period_metrics.revenue,
        period.operating_days,
    )

    return ROIResult(
        quarry_id=quarry.id,
        quarry_name=quarry.name,
        initial_investment=investment,
        operations_start_date=ops_start,
        total_operating_days=total_operating_days,
        operating_months=operating_months,
        cumulative_net_profit=cumulative,
        basic_roi=basic_roi,
        annualized_roi=annualize_roi(basic_roi, operating_months),
        average_monthly_profit=avg_monthly_profit,
        payback_months=payback,
        remaining_to_recover=remaining,
        estimated_recovery_date=recovery_date,
        investment_recovery_percent=min(100.0, basic_roi),
        period=period,
        break_even=break_even,
        monthly_history=history,
    )


def get_roi_analysis(
    quarry_id: int,
    from_date: date | None = None,
    to_date: date | None = None,
    today: date | None = None,
) -> ROIResult | NoInvestmentData:
    """ROI for one quarry. Calls pinned to an explicit `today` bypass the cache."""
    if today is not None:
        return compute_roi_analysis(quarry_id, from_date, to_date, today)
    return cached(
        "roi",
        quarry_id,
        from_date,
        to_date,
        lambda: compute_roi_analysis(quarry_id, from_date, to_date),
    )
