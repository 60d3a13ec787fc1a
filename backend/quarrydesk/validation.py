from __future__ import annotations
from datetime import date

from quarrydesk.time_utils import parse_iso_date


FEE_SCHEDULE_FIELDS = (
    "loaders_fee_rate",
    "land_rate_fee_rate",
    "rejects_fee_rate",
    "fuel_cost_per_liter",
)

CAPITAL_FIELDS = (
    "initial_investment",
    "estimated_monthly_fixed_costs",
    "daily_production_capacity",
    "target_profit_margin",
)

CLOSING_BALANCE_BASES = {"net_income", "cash_in_hand"}


class ValidationError(ValueError):
    """400-level input problem."""


def parse_date_arg(name: str, raw: str | None, *, required: bool = True) -> date | None:
    """
    Parse a YYYY-MM-DD query/CLI argument.

    Missing optional values come back as None; anything unparseable is a
    ValidationError naming the argument.
    """
    if raw is None or not str(raw).strip():
        if required:
            raise ValidationError(f"{name} is required")
        return None
    try:
        return parse_iso_date(str(raw))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date (YYYY-MM-DD)")


def validate_date_range(from_date: date, to_date: date) -> None:
    """Reject reversed ranges before they reach any arithmetic."""
    if from_date is None or to_date is None:
        raise ValidationError("from and to dates are required")
    if to_date < from_date:
        raise ValidationError(
            f"to date {to_date.isoformat()} is before from date {from_date.isoformat()}"
        )


def _coerce_rate(key: str, value) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            value = float(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be a number")
    if not isinstance(value, (int, float)):
        raise ValidationError(f"{key} must be a number")
    if value < 0:
        raise ValidationError(f"{key} must be >= 0")
    return float(value)


def enforce_rules_fee_schedule(patch: dict) -> dict:
    """
    Normalize a fee schedule patch. Unknown keys are rejected; blank or null
    values clear the rate (absence means zero charge).
    """
    cleaned = {}
    for key, raw in patch.items():
        if key not in FEE_SCHEDULE_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")
        cleaned[key] = _coerce_rate(key, raw)
    return cleaned


def enforce_rules_capital(patch: dict) -> dict:
    cleaned = {}
    for key, raw in patch.items():
        if key == "operations_start_date":
            cleaned[key] = parse_date_arg(key, raw, required=False) if not isinstance(raw, date) else raw
            continue
        if key not in CAPITAL_FIELDS:
            raise ValidationError(f"Field not allowed: {key}")
        cleaned[key] = _coerce_rate(key, raw)

    margin = cleaned.get("target_profit_margin")
    if margin is not None and margin > 100:
        raise ValidationError("target_profit_margin must be <= 100")
    return cleaned
