# Overview: Service-layer reads of transactional sources; encapsulates database work for analytics.

"""
Transactional Source Reader

WHY: Every analytic (period metrics, trends, ROI, comparisons) starts from the
same five record kinds. Reading them in one place keeps the range filter,
the soft-delete filter and the site filter identical for every consumer.

MULTI-TENANT INVARIANTS:
1. Every query filters by quarry_id when one is provided
2. quarry_id=None means "all sites" and is reserved for admin aggregate views
3. Soft-deleted rows (is_active=False) are never returned

Reads return frozen record dataclasses, not ORM rows, so the calculators stay
pure and never trigger lazy loads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from ..extensions import db
from ..models import Quarry, Sale, Expense, FuelUsage, Banking, Prepayment, PAYMENT_STATUS_PAID
from .fee_rules import ProductFeeClass, classify_product
from quarrydesk.time_utils import to_date_stamp


@dataclass(frozen=True)
class SaleRecord:
    id: int
    quarry_id: int
    sale_date: date
    quantity: float
    unit_price: float
    commission_per_unit: float
    product_name: str
    fee_class: ProductFeeClass
    payment_status: str
    payment_received_date: date | None
    include_land_rate: bool
    vehicle_registration: str = ""

    @property
    def gross_amount(self) -> float:
        return self.quantity * self.unit_price

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PAYMENT_STATUS_PAID


@dataclass(frozen=True)
class ExpenseRecord:
    id: int
    quarry_id: int
    expense_date: date
    amount: float
    item: str = ""
    category: str | None = None


@dataclass(frozen=True)
class FuelRecord:
    id: int
    quarry_id: int
    usage_date: date
    old_stock: float
    new_stock: float
    machines_loaded: float
    wheel_loaders_loaded: float

    @property
    def consumed(self) -> float:
        return self.machines_loaded + self.wheel_loaders_loaded

    @property
    def balance(self) -> float:
        return (self.old_stock + self.new_stock) - self.consumed


@dataclass(frozen=True)
class BankingRecord:
    id: int
    quarry_id: int
    banking_date: date
    amount_banked: float


@dataclass(frozen=True)
class PrepaymentRecord:
    id: int
    quarry_id: int
    prepayment_date: date
    total_amount_paid: float


@dataclass(frozen=True)
class FeeConfig:
    """Site fee schedule. None means the fee is not charged."""
    loaders_fee_rate: float | None = None
    land_rate_fee_rate: float | None = None
    rejects_fee_rate: float | None = None
    fuel_cost_per_liter: float | None = None

    @classmethod
    def from_quarry(cls, quarry: Quarry | None) -> "FeeConfig":
        if quarry is None:
            return cls()
        return cls(
            loaders_fee_rate=quarry.loaders_fee_rate,
            land_rate_fee_rate=quarry.land_rate_fee_rate,
            rejects_fee_rate=quarry.rejects_fee_rate,
            fuel_cost_per_liter=quarry.fuel_cost_per_liter,
        )


@dataclass(frozen=True)
class PeriodSources:
    """Everything the calculators need for one (site, range) read."""
    quarry_id: int | None
    from_date: date
    to_date: date
    sales: list[SaleRecord] = field(default_factory=list)
    expenses: list[ExpenseRecord] = field(default_factory=list)
    fuel_usages: list[FuelRecord] = field(default_factory=list)
    bankings: list[BankingRecord] = field(default_factory=list)
    prepayments: list[PrepaymentRecord] = field(default_factory=list)
    # Paid sales whose payment landed inside the range, whatever their sale date
    payments_received: list[SaleRecord] = field(default_factory=list)

    @property
    def collections(self) -> list[SaleRecord]:
        """
        Payments received in range for sales dated strictly before from_date.
        A sale dated inside the range is already revenue here, so it is never
        also a collection.
        """
        return [p for p in self.payments_received if p.sale_date < self.from_date]

    def for_range(self, start: date, end: date) -> "PeriodSources":
        """Slice of this read restricted to [start, end]."""
        return PeriodSources(
            quarry_id=self.quarry_id,
            from_date=start,
            to_date=end,
            sales=[s for s in self.sales if start <= s.sale_date <= end],
            expenses=[e for e in self.expenses if start <= e.expense_date <= end],
            fuel_usages=[f for f in self.fuel_usages if start <= f.usage_date <= end],
            bankings=[b for b in self.bankings if start <= b.banking_date <= end],
            prepayments=[p for p in self.prepayments if start <= p.prepayment_date <= end],
            payments_received=[
                p for p in self.payments_received
                if start <= p.payment_received_date <= end
            ],
        )

    def for_day(self, day: date) -> "PeriodSources":
        return self.for_range(day, day)


def _stamp_range(query, model, from_date: date, to_date: date):
    return query.filter(
        model.date_stamp >= to_date_stamp(from_date),
        model.date_stamp <= to_date_stamp(to_date),
    )


def _scoped(model, quarry_id: int | None):
    query = db.session.query(model).filter(model.is_active.is_(True))
    if quarry_id is not None:
        query = query.filter(model.quarry_id == quarry_id)
    return query


def _to_sale_record(sale: Sale) -> SaleRecord:
    product_name = sale.product.name if sale.product else ""
    return SaleRecord(
        id=sale.id,
        quarry_id=sale.quarry_id,
        sale_date=sale.sale_date,
        quantity=float(sale.quantity or 0.0),
        unit_price=float(sale.price_per_unit or 0.0),
        commission_per_unit=float(sale.commission_per_unit or 0.0),
        product_name=product_name,
        fee_class=classify_product(product_name),
        payment_status=sale.payment_status,
        payment_received_date=sale.payment_received_date,
        include_land_rate=bool(sale.include_land_rate),
        vehicle_registration=sale.vehicle_registration or "",
    )


def list_sales(quarry_id: int | None, from_date: date, to_date: date) -> list[SaleRecord]:
    query = _stamp_range(_scoped(Sale, quarry_id), Sale, from_date, to_date)
    sales = query.order_by(Sale.sale_date.asc(), Sale.id.asc()).all()
    return [_to_sale_record(s) for s in sales]


def _payments_query(quarry_id: int | None, from_date: date, to_date: date):
    return _scoped(Sale, quarry_id).filter(
        Sale.payment_status == PAYMENT_STATUS_PAID,
        Sale.payment_received_date.isnot(None),
        Sale.payment_received_date >= from_date,
        Sale.payment_received_date <= to_date,
    )


def list_payments_received(quarry_id: int | None, from_date: date, to_date: date) -> list[SaleRecord]:
    query = _payments_query(quarry_id, from_date, to_date)
    sales = query.order_by(Sale.payment_received_date.asc(), Sale.id.asc()).all()
    return [_to_sale_record(s) for s in sales]


def list_collections(quarry_id: int | None, from_date: date, to_date: date) -> list[SaleRecord]:
    """
    Paid sales whose payment landed in [from_date, to_date] but whose sale
    date is strictly before from_date. Such sales were already counted as
    revenue (and unpaid) in an earlier period.
    """
    query = _payments_query(quarry_id, from_date, to_date).filter(Sale.sale_date < from_date)
    sales = query.order_by(Sale.payment_received_date.asc(), Sale.id.asc()).all()
    return [_to_sale_record(s) for s in sales]


def list_expenses(quarry_id: int | None, from_date: date, to_date: date) -> list[ExpenseRecord]:
    query = _stamp_range(_scoped(Expense, quarry_id), Expense, from_date, to_date)
    rows = query.order_by(Expense.expense_date.asc(), Expense.id.asc()).all()
    return [
        ExpenseRecord(
            id=row.id,
            quarry_id=row.quarry_id,
            expense_date=row.expense_date,
            amount=float(row.amount or 0.0),
            item=row.item or "",
            category=row.category,
        )
        for row in rows
    ]


def list_fuel_usage(quarry_id: int | None, from_date: date, to_date: date) -> list[FuelRecord]:
    query = _stamp_range(_scoped(FuelUsage, quarry_id), FuelUsage, from_date, to_date)
    rows = query.order_by(FuelUsage.usage_date.asc(), FuelUsage.id.asc()).all()
    return [
        FuelRecord(
            id=row.id,
            quarry_id=row.quarry_id,
            usage_date=row.usage_date,
            old_stock=float(row.old_stock or 0.0),
            new_stock=float(row.new_stock or 0.0),
            machines_loaded=float(row.machines_loaded or 0.0),
            wheel_loaders_loaded=float(row.wheel_loaders_loaded or 0.0),
        )
        for row in rows
    ]


def list_banking(quarry_id: int | None, from_date: date, to_date: date) -> list[BankingRecord]:
    query = _stamp_range(_scoped(Banking, quarry_id), Banking, from_date, to_date)
    rows = query.order_by(Banking.banking_date.asc(), Banking.id.asc()).all()
    return [
        BankingRecord(
            id=row.id,
            quarry_id=row.quarry_id,
            banking_date=row.banking_date,
            amount_banked=float(row.amount_banked or 0.0),
        )
        for row in rows
    ]


def list_prepayments(quarry_id: int | None, from_date: date, to_date: date) -> list[PrepaymentRecord]:
    query = _stamp_range(_scoped(Prepayment, quarry_id), Prepayment, from_date, to_date)
    rows = query.order_by(Prepayment.prepayment_date.asc(), Prepayment.id.asc()).all()
    return [
        PrepaymentRecord(
            id=row.id,
            quarry_id=row.quarry_id,
            prepayment_date=row.prepayment_date,
            total_amount_paid=float(row.total_amount_paid or 0.0),
        )
        for row in rows
    ]


def get_fee_config(quarry_id: int | None) -> FeeConfig:
    """
    Fee schedule for a site. All-sites views and unknown sites get an empty
    schedule (no derived fees), which is a valid zero result.
    """
    if quarry_id is None:
        return FeeConfig()
    quarry = db.session.get(Quarry, quarry_id)
    return FeeConfig.from_quarry(quarry)


def load_period_sources(quarry_id: int | None, from_date: date, to_date: date) -> PeriodSources:
    return PeriodSources(
        quarry_id=quarry_id,
        from_date=from_date,
        to_date=to_date,
        sales=list_sales(quarry_id, from_date, to_date),
        expenses=list_expenses(quarry_id, from_date, to_date),
        fuel_usages=list_fuel_usage(quarry_id, from_date, to_date),
        bankings=list_banking(quarry_id, from_date, to_date),
        prepayments=list_prepayments(quarry_id, from_date, to_date),
        payments_received=list_payments_received(quarry_id, from_date, to_date),
    )
