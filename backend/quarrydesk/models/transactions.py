from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from quarrydesk.time_utils import to_date_stamp, to_iso_date, to_utc_z

PAYMENT_STATUS_PAID = "Paid"
PAYMENT_STATUS_NOT_PAID = "NotPaid"


class Sale(db.Model):
    """
    One sale transaction captured by a clerk.

    WHY: Sales drive revenue and three of the five expense sources
    (commission, loaders fee, land rate fee). gross_amount is always derived
    from quantity and price; it is never stored.
    """
    __tablename__ = "sales"
    __table_args__ = (
        # Composite index for site-scoped range scans
        db.Index("ix_sales_quarry_stamp", "quarry_id", "date_stamp"),
        db.CheckConstraint("quantity >= 0", name="ck_sales_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quarry_id = db.Column(db.Integer, db.ForeignKey("quarries.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    sale_date = db.Column(db.Date, nullable=False)
    date_stamp = db.Column(db.String(8), nullable=False, index=True)

    vehicle_registration = db.Column(db.String(32), nullable=False, default="")
    client_name = db.Column(db.String(120), nullable=True)

    quantity = db.Column(db.Float, nullable=False, default=0.0)
    price_per_unit = db.Column(db.Float, nullable=False, default=0.0)
    commission_per_unit = db.Column(db.Float, nullable=False, default=0.0)  # 0 if no broker

    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PAID, index=True)
    payment_mode = db.Column(db.String(32), nullable=True)  # Cash, MPESA, Bank Transfer
    # Null while unpaid; equals sale_date when paid on the spot
    payment_received_date = db.Column(db.Date, nullable=True, index=True)

    include_land_rate = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    quarry = db.relationship("Quarry", backref=db.backref("sales", lazy=True))
    product = db.relationship("Product")

    @validates("sale_date")
    def _stamp_sale_date(self, key, value):
        self.date_stamp = to_date_stamp(value)
        return value

    @property
    def gross_amount(self) -> float:
        return (self.quantity or 0.0) * (self.price_per_unit or 0.0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quarry_id": self.quarry_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "sale_date": to_iso_date(self.sale_date),
            "vehicle_registration": self.vehicle_registration,
            "client_name": self.client_name,
            "quantity": self.quantity,
            "price_per_unit": self.price_per_unit,
            "commission_per_unit": self.commission_per_unit,
            "gross_amount": self.gross_amount,
            "payment_status": self.payment_status,
            "payment_mode": self.payment_mode,
            "payment_received_date": to_iso_date(self.payment_received_date),
            "include_land_rate": self.include_land_rate,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """Manual expense entered by a clerk."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_quarry_stamp", "quarry_id", "date_stamp"),
        db.CheckConstraint("amount >= 0", name="ck_expenses_amount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quarry_id = db.Column(db.Integer, db.ForeignKey("quarries.id"), nullable=False, index=True)
    expense_date = db.Column(db.Date, nullable=False)
    date_stamp = db.Column(db.String(8), nullable=False, index=True)
    item = db.Column(db.String(255), nullable=False, default="")
    amount = db.Column(db.Float, nullable=False, default=0.0)
    category = db.Column(db.String(64), nullable=True)
    reference = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @validates("expense_date")
    def _stamp_expense_date(self, key, value):
        self.date_stamp = to_date_stamp(value)
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quarry_id": self.quarry_id,
            "expense_date": to_iso_date(self.expense_date),
            "item": self.item,
            "amount": self.amount,
            "category": self.category,
            "reference": self.reference,
            "is_active": self.is_active,
        }


class FuelUsage(db.Model):
    """
    Daily fuel log (liters).

    balance = (old_stock + new_stock) - (machines_loaded + wheel_loaders_loaded)
    and should not go negative; that is reported, not enforced.
    """
    __tablename__ = "fuel_usages"
    __table_args__ = (
        db.Index("ix_fuel_usages_quarry_stamp", "quarry_id", "date_stamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quarry_id = db.Column(db.Integer, db.ForeignKey("quarries.id"), nullable=False, index=True)
    usage_date = db.Column(db.Date, nullable=False)
    date_stamp = db.Column(db.String(8), nullable=False, index=True)
    old_stock = db.Column(db.Float, nullable=False, default=0.0)
    new_stock = db.Column(db.Float, nullable=False, default=0.0)
    machines_loaded = db.Column(db.Float, nullable=False, default=0.0)
    wheel_loaders_loaded = db.Column(db.Float, nullable=False, default=0.0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @validates("usage_date")
    def _stamp_usage_date(self, key, value):
        self.date_stamp = to_date_stamp(value)
        return value

    @property
    def total_stock(self) -> float:
        return (self.old_stock or 0.0) + (self.new_stock or 0.0)

    @property
    def used(self) -> float:
        return (self.machines_loaded or 0.0) + (self.wheel_loaders_loaded or 0.0)

    @property
    def balance(self) -> float:
        return self.total_stock - self.used

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quarry_id": self.quarry_id,
            "usage_date": to_iso_date(self.usage_date),
            "old_stock": self.old_stock,
            "new_stock": self.new_stock,
            "machines_loaded": self.machines_loaded,
            "wheel_loaders_loaded": self.wheel_loaders_loaded,
            "total_stock": self.total_stock,
            "used": self.used,
            "balance": self.balance,
            "is_active": self.is_active,
        }


class Banking(db.Model):
    """Cash deposited to the bank."""
    __tablename__ = "bankings"
    __table_args__ = (
        db.Index("ix_bankings_quarry_stamp", "quarry_id", "date_stamp"),
        db.CheckConstraint("amount_banked >= 0", name="ck_bankings_amount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quarry_id = db.Column(db.Integer, db.ForeignKey("quarries.id"), nullable=False, index=True)
    banking_date = db.Column(db.Date, nullable=False)
    date_stamp = db.Column(db.String(8), nullable=False, index=True)
    item = db.Column(db.String(255), nullable=True)
    amount_banked = db.Column(db.Float, nullable=False, default=0.0)
    reference = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @validates("banking_date")
    def _stamp_banking_date(self, key, value):
        self.date_stamp = to_date_stamp(value)
        return value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quarry_id": self.quarry_id,
            "banking_date": to_iso_date(self.banking_date),
            "item": self.item,
            "amount_banked": self.amount_banked,
            "reference": self.reference,
            "is_active": self.is_active,
        }


class Prepayment(db.Model):
    """
    Customer deposit received ahead of (or independent of) a specific sale.

    Counted as cash in the period it was received; fulfilment sales that draw
    it down are ordinary sales.
    """
    __tablename__ = "prepayments"
    __table_args__ = (
        db.Index("ix_prepayments_quarry_stamp", "quarry_id", "date_stamp"),
        db.CheckConstraint("total_amount_paid >= 0", name="ck_prepayments_amount_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quarry_id = db.Column(db.Integer, db.ForeignKey("quarries.id"), nullable=False, index=True)
    prepayment_date = db.Column(db.Date, nullable=False)
    date_stamp = db.Column(db.String(8), nullable=False, index=True)
    vehicle_registration = db.Column(db.String(32), nullable=False, default="")
    client_name = db.Column(db.String(120), nullable=True)
    total_amount_paid = db.Column(db.Float, nullable=False, default=0.0)
    amount_used = db.Column(db.Float, nullable=False, default=0.0)
    # Active, Partial, Fulfilled, Refunded
    status = db.Column(db.String(16), nullable=False, default="Active")
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @validates("prepayment_date")
    def _stamp_prepayment_date(self, key, value):
        self.date_stamp = to_date_stamp(value)
        return value

    @property
    def remaining_balance(self) -> float:
        return (self.total_amount_paid or 0.0) - (self.amount_used or 0.0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quarry_id": self.quarry_id,
            "prepayment_date": to_iso_date(self.prepayment_date),
            "vehicle_registration": self.vehicle_registration,
            "client_name": self.client_name,
            "total_amount_paid": self.total_amount_paid,
            "amount_used": self.amount_used,
            "remaining_balance": self.remaining_balance,
            "status": self.status,
            "is_active": self.is_active,
        }
