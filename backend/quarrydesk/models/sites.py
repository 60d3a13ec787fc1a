from __future__ import annotations

from ..extensions import db
from quarrydesk.time_utils import to_iso_date, to_utc_z


class Quarry(db.Model):
    """
    Operating site: the multi-tenant partition key for every transactional row.

    WHY: Fee schedules and capital figures live on the site, so all analytics
    read them from here rather than from per-sale snapshots.

    DESIGN:
    - Every sale, expense, fuel log, banking, prepayment and balance snapshot
      carries quarry_id
    - All analytics queries must filter by quarry_id when one is given
    - Rates are nullable: an unset rate means no charge, never an error
    """
    __tablename__ = "quarries"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_quarries_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # Fee schedule (per unit sold, or per liter for fuel)
    loaders_fee_rate = db.Column(db.Float, nullable=True)
    land_rate_fee_rate = db.Column(db.Float, nullable=True)
    rejects_fee_rate = db.Column(db.Float, nullable=True)  # Replaces land rate for reject products
    fuel_cost_per_liter = db.Column(db.Float, nullable=True)

    # Capital configuration for ROI
    initial_investment = db.Column(db.Float, nullable=True)
    operations_start_date = db.Column(db.Date, nullable=True)
    estimated_monthly_fixed_costs = db.Column(db.Float, nullable=True)
    daily_production_capacity = db.Column(db.Float, nullable=True)
    target_profit_margin = db.Column(db.Float, nullable=True)  # Percent

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Quarry id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "is_active": self.is_active,
            "loaders_fee_rate": self.loaders_fee_rate,
            "land_rate_fee_rate": self.land_rate_fee_rate,
            "rejects_fee_rate": self.rejects_fee_rate,
            "fuel_cost_per_liter": self.fuel_cost_per_liter,
            "initial_investment": self.initial_investment,
            "operations_start_date": to_iso_date(self.operations_start_date),
            "estimated_monthly_fixed_costs": self.estimated_monthly_fixed_costs,
            "daily_production_capacity": self.daily_production_capacity,
            "target_profit_margin": self.target_profit_margin,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """Sellable material grade. The name doubles as the fee category."""
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    # Null for the shared catalogue
    quarry_id = db.Column(db.Integer, db.ForeignKey("quarries.id"), nullable=True, index=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quarry_id": self.quarry_id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
        }
