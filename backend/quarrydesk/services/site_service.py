# Overview: Service-layer operations for quarries (sites); encapsulates business logic and database work.

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import Quarry
from quarrydesk.services.concurrency import lock_for_update, run_with_retry
from quarrydesk.time_utils import today
from quarrydesk.validation import ValidationError, enforce_rules_capital, enforce_rules_fee_schedule


class SiteNotFoundError(Exception):
    """Raised when a quarry id does not exist."""
    pass


def get_site(quarry_id: int) -> Quarry | None:
    return db.session.query(Quarry).filter_by(id=quarry_id).first()


def require_site(quarry_id: int) -> Quarry:
    quarry = get_site(quarry_id)
    if quarry is None:
        raise SiteNotFoundError(f"Quarry {quarry_id} not found")
    return quarry


def list_sites(*, include_inactive: bool = False) -> list[Quarry]:
    query = db.session.query(Quarry)
    if not include_inactive:
        query = query.filter(Quarry.is_active.is_(True))
    return query.order_by(Quarry.name.asc()).all()


def create_site(name: str, location: str | None = None) -> Quarry:
    def _op():
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValidationError("Quarry name is required")
        existing = db.session.query(Quarry).filter_by(name=clean_name).first()
        if existing:
            raise ValidationError(f"Quarry {clean_name!r} already exists")

        quarry = Quarry(name=clean_name, location=location)
        db.session.add(quarry)
        db.session.commit()
        return quarry

    return run_with_retry(_op)


def _apply_patch(quarry_id: int, cleaned: dict) -> Quarry:
    def _op():
        quarry = lock_for_update(db.session.query(Quarry).filter_by(id=quarry_id)).first()
        if not quarry:
            raise SiteNotFoundError(f"Quarry {quarry_id} not found")
        for key, value in cleaned.items():
            setattr(quarry, key, value)
        db.session.commit()
        return quarry

    return run_with_retry(_op)


def update_fee_schedule(quarry_id: int, patch: dict) -> Quarry:
    """Set or clear fee rates. A None rate means the fee is not charged."""
    return _apply_patch(quarry_id, enforce_rules_fee_schedule(patch))


def update_capital(quarry_id: int, patch: dict) -> Quarry:
    """Set capital configuration used by ROI and break-even analysis."""
    cleaned = enforce_rules_capital(patch)
    start = cleaned.get("operations_start_date")
    if isinstance(start, date) and start > today():
        raise ValidationError("operations_start_date cannot be in the future")
    return _apply_patch(quarry_id, cleaned)
