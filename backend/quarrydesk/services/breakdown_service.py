# Overview: Service-layer cost and cash-flow breakdowns; derived views over the shared expense and metrics results.

"""
Cost and Cash-Flow Breakdowns

WHY: Owners ask three follow-up questions after the headline figures: where
did the money go (expense categories), how did the opening balance become
net income (cash-flow waterfall), and which products actually make money
(per-piece costs and product profitability). Each answer is built from
aggregate_expenses or calculate_period_metrics, never from a second copy of
the fee rules, so the totals always reconcile with the period report.

RECONCILIATION:
1. Category totals sum to the dashboard total
2. Opening balance plus every non-total waterfall step equals net income
3. Product total costs sum to the period's total expenses
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import date

from .comparison_service import change_percent, previous_period
from .expense_service import SOURCE_ORDER, ExpenseBreakdown, ExpenseLineItem, ExpenseSource, aggregate_expenses
from .metrics_service import PeriodMetrics, compute_period_metrics
from .source_service import FeeConfig, PeriodSources, get_fee_config, load_period_sources
from .trend_service import UNASSIGNED_PRODUCT
from quarrydesk.services.cache_service import cached
from quarrydesk.utils import pct, safe_div
from quarrydesk.validation import validate_date_range


UNCATEGORIZED = "Uncategorized"
TOP_ITEMS_LIMIT = 20

AUTO_CATEGORIES = {
    ExpenseSource.COMMISSION: "Commission",
    ExpenseSource.LOADERS_FEE: "Loaders Fees",
    ExpenseSource.LAND_RATE: "Land Rate",
    ExpenseSource.FUEL: "Fuel",
}

WATERFALL_LABELS = {
    ExpenseSource.MANUAL: "Manual Expenses",
    ExpenseSource.COMMISSION: "Commission",
    ExpenseSource.LOADERS_FEE: "Loaders Fee",
    ExpenseSource.LAND_RATE: "Land Rate Fee",
    ExpenseSource.FUEL: "Fuel Cost",
}

STEP_TOTAL = "total"
STEP_POSITIVE = "positive"
STEP_NEGATIVE = "negative"


# =============================================================================
# EXPENSE DASHBOARD
# =============================================================================

@dataclass(frozen=True)
class ExpenseCategoryRow:
    category: str
    total_amount: float
    expense_count: int
    average_amount: float
    percentage_of_total: float

    def to_dict(self) -> dict:
        return dict(self.__dict__)


@dataclass(frozen=True)
class ExpenseDashboard:
    quarry_id: int | None
    from_date: date
    to_date: date
    include_auto_calculated: bool
    total_expenses: float
    expense_count: int
    average_expense_amount: float
    average_daily_expense: float
    unique_categories: int
    top_category: str
    change_from_previous_period: float
    categories: tuple[ExpenseCategoryRow, ...] = ()
    top_items: tuple[ExpenseLineItem, ...] = ()

    def to_dict(self) -> dict:
        return {
            "quarry_id": self.quarry_id,
            "from_date": self.from_date.isoformat(),
            "to_date": self.to_date.isoformat(),
            "include_auto_calculated": self.include_auto_calculated,
            "total_expenses": self.total_expenses,
            "expense_count": self.expense_count,
            "average_expense_amount": self.average_expense_amount,
            "average_daily_expense": self.average_daily_expense,
            "unique_categories": self.unique_categories,
            "top_category": self.top_category,
            "change_from_previous_period": self.change_from_previous_period,
            "categories": [row.to_dict() for row in self.categories],
            "top_items": [line.to_dict() for line in self.top_items],
        }


def line_category(line: ExpenseLineItem) -> str:
    if line.source == ExpenseSource.MANUAL:
        return line.category or UNCATEGORIZED
    return AUTO_CATEGORIES[line.source]


def _dashboard_lines(breakdown: ExpenseBreakdown, include_auto_calculated: bool) -> list[ExpenseLineItem]:
    if include_auto_calculated:
        return list(breakdown.items)
    return [line for line in breakdown.items if line.source == ExpenseSource.MANUAL]


def build_expense_dashboard(
    breakdown: ExpenseBreakdown,
    previous_breakdown: ExpenseBreakdown,
    from_date: date,
    to_date: date,
    *,
    quarry_id: int | None = None,
    include_auto_calculated: bool = False,
) -> ExpenseDashboard:
    """
    Group a period's expense lines by category.

    Manual lines use their own category; derived fee lines are grouped under
    a fixed category per source, and only when include_auto_calculated is set.
    The previous-period change uses the same line selection.
    """
    lines = _dashboard_lines(breakdown, include_auto_calculated)
    total = sum(line.amount for line in lines)
    previous_total = sum(line.amount for line in _dashboard_lines(previous_breakdown, include_auto_calculated))

    grouped = defaultdict(list)
    for line in lines:
        grouped[line_category(line)].append(line.amount)

    categories = [
        ExpenseCategoryRow(
            category=name,
            total_amount=sum(amounts),
            expense_count=len(amounts),
            average_amount=safe_div(sum(amounts), len(amounts)),
            percentage_of_total=pct(sum(amounts), total),
        )
        for name, amounts in grouped.items()
    ]
    categories.sort(key=lambda row: (-row.total_amount, row.category))

    top_items = sorted(lines, key=lambda line: -line.amount)[:TOP_ITEMS_LIMIT]
    day_count = (to_date - from_date).days + 1

    return ExpenseDashboard(
        quarry_id=quarry_id,
        from_date=from_date,
        to_date=to_date,
        include_auto_calculated=include_auto_calculated,
        total_expenses=total,
        expense_count=len(lines),
        average_expense_amount=safe_div(total, len(lines)),
        average_daily_expense=safe_div(total, day_count),
        unique_categories=len(categories),
        top_category=categories[0].category if categories else "N/A",
        change_from_previous_period=change_percent(total, previous_total),
        categories=tuple(categories),
        top_items=tuple(top_items),
    )


def get_expense_dashboard(
    quarry_id: int | None,
    from_date: date,
    to_date: date,
    *,
    include_auto_calculated: bool = False,
) -> ExpenseDashboard:
    validate_date_range(from_date, to_date)
    kind = "expense_dashboard_all" if include_auto_calculated else "expense_dashboard"

    def _compute():
        fee_config = get_fee_config(quarry_id)
        prev_from, prev_to = previous_period(from_date, to_date)
        breakdown = aggregate_expenses(load_period_sources(quarry_id, from_date, to_date), fee_config)
        previous = aggregate_expenses(load_period_sources(quarry_id, prev_from, prev_to), fee_config)
        return build_expense_dashboard(
            breakdown,
            previous,
            from_date,
            to_date,
            quarry_id=quarry_id,
            include_auto_calculated=include_auto_calculated,
        )

    return cached(kind, quarry_id, from_date, to_date, _compute)


# =============================================================================
# CASH-FLOW WATERFALL
# =============================================================================

@dataclass(frozen=True)
class WaterfallStep:
    label: str
    value: float
    kind: str

    def to_dict(self) -> dict:
        return {"label": self.label, "value": self.value, "type": self.kind}


@dataclass(frozen=True)
class CashFlowWaterfall:
    quarry_id: int | None
    from_date: date
    to_date: date
    opening_balance: float
    net_income: float
    steps: tuple[WaterfallStep, ...] = ()

    def to_dict(self) -> dict:
        return {
            "quarry_id": self.quarry_id,
            "from_date": self.from_date.isoformat(),
            "to_date": self.to_date.isoformat(),
            "opening_balance": self.opening_balance,
            "net_income": self.net_income,
            "steps": [step.to_dict() for step in self.steps],
        }


def _movement(label: str, value: float) -> WaterfallStep:
    return WaterfallStep(label, value, STEP_POSITIVE if value >= 0 else STEP_NEGATIVE)


def build_cash_flow_waterfall(metrics: PeriodMetrics) -> CashFlowWaterfall:
    """
    Walk the net income formula as signed steps:
    opening, +revenue, -each expense source, +collections, +prepayments,
    -unpaid orders, then net income. Zero movements are omitted.
    """
    steps = []
    if metrics.opening_balance:
        steps.append(WaterfallStep("Opening Balance", metrics.opening_balance, STEP_TOTAL))

    steps.append(_movement("Sales Revenue", metrics.revenue))
    for source in SOURCE_ORDER:
        amount = metrics.expenses.total_for(source)
        if amount:
            steps.append(_movement(WATERFALL_LABELS[source], -amount))
    if metrics.collections:
        steps.append(_movement("Collections", metrics.collections))
    if metrics.prepayments:
        steps.append(_movement("Prepayments", metrics.prepayments))
    if metrics.unpaid_orders:
        steps.append(_movement("Unpaid Orders", -metrics.unpaid_orders))

    steps.append(WaterfallStep("Net Income", metrics.net_income, STEP_TOTAL))

    return CashFlowWaterfall(
        quarry_id=metrics.quarry_id,
        from_date=metrics.from_date,
        to_date=metrics.to_date,
        opening_balance=metrics.opening_balance,
        net_income=metrics.net_income,
        steps=tuple(steps),
    )


def get_cash_flow_waterfall(quarry_id: int | None, from_date: date, to_date: date) -> CashFlowWaterfall:
    """Read-only: uses the same opening balance as the period report but never writes a snapshot."""
    validate_date_range(from_date, to_date)
    return cached(
        "cash_flow",
        quarry_id,
        from_date,
        to_date,
        lambda: build_cash_flow_waterfall(compute_period_metrics(quarry_id, from_date, to_date)),
    )


# =============================================================================
# PER-PIECE COSTS AND PRODUCT PROFITABILITY
# =============================================================================

@dataclass(frozen=True)
class CostPerPiece:
    total_quantity: float
    total_cost_per_piece: float
    commission_per_piece: float
    loaders_fee_per_piece: float
    land_rate_per_piece: float
    manual_expense_per_piece: float
    fuel_cost_per_piece: float
    revenue_per_piece: float
    net_margin_per_piece: float
    margin_percent: float

    def to_dict(self) -> dict:
        return dict(self.__dict__)


def build_cost_per_piece(metrics: PeriodMetrics) -> CostPerPiece:
    quantity = metrics.total_quantity
    expenses = metrics.expenses
    cost_per_piece = safe_div(expenses.total, quantity)
    revenue_per_piece = safe_div(metrics.revenue, quantity)
    return CostPerPiece(
        total_quantity=quantity,
        total_cost_per_piece=cost_per_piece,
        commission_per_piece=safe_div(expenses.commission, quantity),
        loaders_fee_per_piece=safe_div(expenses.loaders_fee, quantity),
        land_rate_per_piece=safe_div(expenses.land_rate, quantity),
        manual_expense_per_piece=safe_div(expenses.manual, quantity),
        fuel_cost_per_piece=safe_div(expenses.fuel, quantity),
        revenue_per_piece=revenue_per_piece,
        net_margin_per_piece=revenue_per_piece - cost_per_piece,
        margin_percent=pct(revenue_per_piece - cost_per_piece, revenue_per_piece),
    )


def get_cost_per_piece(quarry_id: int | None, from_date: date, to_date: date) -> CostPerPiece:
    validate_date_range(from_date, to_date)
    return cached(
        "cost_per_piece",
        quarry_id,
        from_date,
        to_date,
        lambda: build_cost_per_piece(compute_period_metrics(quarry_id, from_date, to_date)),
    )


@dataclass(frozen=True)
class ProductProfitRow:
    product_name: str
    orders: int
    quantity: float
    revenue: float
    direct_costs: float
    allocated_costs: float
    total_cost: float
    net_profit: float
    margin_percent: float
    avg_price_per_piece: float
    avg_cost_per_piece: float

    def to_dict(self) -> dict:
        return dict(self.__dict__)


def build_product_profitability(sources: PeriodSources, fee_config: FeeConfig) -> tuple[ProductProfitRow, ...]:
    """
    Revenue less attributable cost per product, highest revenue first.

    Direct costs are the sale-derived fees (commission, loaders fee, land
    rate) of that product's own sales, under the same fee rules as every
    other report. Manual expenses and fuel are shared costs, allocated by
    each product's share of quantity sold.
    """
    period = aggregate_expenses(sources, fee_config)
    shared_costs = period.manual + period.fuel
    total_quantity = sum(s.quantity for s in sources.sales)

    by_product = defaultdict(list)
    for sale in sources.sales:
        by_product[sale.product_name or UNASSIGNED_PRODUCT].append(sale)

    rows = []
    for name, sales in by_product.items():
        quantity = sum(s.quantity for s in sales)
        revenue = sum(s.gross_amount for s in sales)
        product_sources = replace(sources, sales=sales, expenses=[], fuel_usages=[])
        direct = aggregate_expenses(product_sources, fee_config).total
        allocated = safe_div(quantity, total_quantity) * shared_costs
        total_cost = direct + allocated
        rows.append(ProductProfitRow(
            product_name=name,
            orders=len(sales),
            quantity=quantity,
            revenue=revenue,
            direct_costs=direct,
            allocated_costs=allocated,
            total_cost=total_cost,
            net_profit=revenue - total_cost,
            margin_percent=pct(revenue - total_cost, revenue),
            avg_price_per_piece=safe_div(revenue, quantity),
            avg_cost_per_piece=safe_div(total_cost, quantity),
        ))

    rows.sort(key=lambda row: (-row.revenue, row.product_name))
    return tuple(rows)


def get_product_profitability(quarry_id: int | None, from_date: date, to_date: date) -> tuple[ProductProfitRow, ...]:
    validate_date_range(from_date, to_date)

    def _compute():
        sources = load_period_sources(quarry_id, from_date, to_date)
        return build_product_profitability(sources, get_fee_config(quarry_id))

    return cached("product_profitability", quarry_id, from_date, to_date, _compute)
