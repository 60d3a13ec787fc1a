# Overview: Service-layer comparative period analysis; compares a range with the equal-length range before it.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from .metrics_service import PeriodMetrics, compute_period_metrics
from quarrydesk.services.cache_service import cached
from quarrydesk.utils import pct
from quarrydesk.validation import validate_date_range


@dataclass(frozen=True)
class PeriodSummary:
    from_date: date
    to_date: date
    revenue: float
    expenses: float
    quantity: float
    orders: int
    margin_percent: float

    @classmethod
    def from_metrics(cls, metrics: PeriodMetrics) -> "PeriodSummary":
        return cls(
            from_date=metrics.from_date,
            to_date=metrics.to_date,
            revenue=metrics.revenue,
            expenses=metrics.total_expenses,
            quantity=metrics.total_quantity,
            orders=metrics.total_orders,
            margin_percent=metrics.gross_margin,
        )

    def to_dict(self) -> dict:
        return {
            "from_date": self.from_date.isoformat(),
            "to_date": self.to_date.isoformat(),
            "revenue": self.revenue,
            "expenses": self.expenses,
            "quantity": self.quantity,
            "orders": self.orders,
            "margin_percent": self.margin_percent,
        }


@dataclass(frozen=True)
class ComparisonResult:
    current: PeriodSummary
    previous: PeriodSummary
    revenue_change_percent: float
    expense_change_percent: float
    quantity_change_percent: float
    margin_change: float

    def to_dict(self) -> dict:
        return {
            "current": self.current.to_dict(),
            "previous": self.previous.to_dict(),
            "revenue_change_percent": self.revenue_change_percent,
            "expense_change_percent": self.expense_change_percent,
            "quantity_change_percent": self.quantity_change_percent,
            "margin_change": self.margin_change,
        }


def previous_period(from_date: date, to_date: date) -> tuple[date, date]:
    """The equal-length range ending the day before from_date."""
    duration = (to_date - from_date).days
    return from_date - timedelta(days=duration + 1), from_date - timedelta(days=1)


def change_percent(current: float, previous: float) -> float:
    """Relative change; 0 when there is no positive previous value to compare against."""
    if previous <= 0:
        return 0.0
    return pct(current - previous, previous)


def compare_summaries(current: PeriodSummary, previous: PeriodSummary) -> ComparisonResult:
    return ComparisonResult(
        current=current,
        previous=previous,
        revenue_change_percent=change_percent(current.revenue, previous.revenue),
        expense_change_percent=change_percent(current.expenses, previous.expenses),
        quantity_change_percent=change_percent(current.quantity, previous.quantity),
        margin_change=current.margin_percent - previous.margin_percent,
    )


def get_comparative_period(quarry_id: int | None, from_date: date, to_date: date) -> ComparisonResult:
    """
    Period metrics for [from_date, to_date] and the preceding range of equal
    length. Read-only: neither side persists a balance snapshot.
    """
    validate_date_range(from_date, to_date)

    def _compute():
        prev_from, prev_to = previous_period(from_date, to_date)
        current = PeriodSummary.from_metrics(compute_period_metrics(quarry_id, from_date, to_date))
        previous = PeriodSummary.from_metrics(compute_period_metrics(quarry_id, prev_from, prev_to))
        return compare_summaries(current, previous)

    return cached("comparison", quarry_id, from_date, to_date, _compute)
