# Overview: Flask API routes for analytics; parses input and returns JSON responses.

"""
Analytics Routes

Period metrics, daily trend, product breakdown, ROI, comparative period,
expense dashboard, cash-flow waterfall, per-piece cost and product
profitability reports for one quarry (site_id) or, where allowed, all quarries.

Query args: site_id, from, to (YYYY-MM-DD).

ERRORS:
- 400: missing/invalid dates, to before from, missing site_id for ROI
- 404: unknown site_id
- 503: database unavailable
"""

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..services import breakdown_service, comparison_service, metrics_service, roi_service, trend_service
from ..services.site_service import SiteNotFoundError, require_site
from ..validation import ValidationError, parse_date_arg, validate_date_range


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


def _parse_site_id(*, required: bool = False) -> int | None:
    raw = request.args.get("site_id")
    if raw is None or not raw.strip():
        if required:
            raise ValidationError("site_id is required")
        return None
    try:
        site_id = int(raw)
    except ValueError:
        raise ValidationError("site_id must be an integer")
    require_site(site_id)
    return site_id


def _parse_range() -> tuple:
    from_date = parse_date_arg("from", request.args.get("from"))
    to_date = parse_date_arg("to", request.args.get("to"))
    validate_date_range(from_date, to_date)
    return from_date, to_date


def _run(action: str, producer):
    try:
        return jsonify(producer()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SiteNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SQLAlchemyError:
        current_app.logger.exception("Failed to %s", action)
        return jsonify({"error": "Database unavailable"}), 503


@analytics_bp.get("/period-metrics")
def period_metrics_route():
    def _produce():
        site_id = _parse_site_id()
        from_date, to_date = _parse_range()
        include_items = request.args.get("include_items", "false").lower() == "true"
        metrics = metrics_service.get_period_metrics(site_id, from_date, to_date)
        return metrics.to_dict(include_items=include_items)

    return _run("compute period metrics", _produce)


@analytics_bp.get("/daily-trend")
def daily_trend_route():
    def _produce():
        site_id = _parse_site_id()
        from_date, to_date = _parse_range()
        rows = trend_service.get_daily_trend(site_id, from_date, to_date)
        return {
            "site_id": site_id,
            "from": from_date.isoformat(),
            "to": to_date.isoformat(),
            "rows": [row.to_dict() for row in rows],
        }

    return _run("build daily trend", _produce)


@analytics_bp.get("/product-breakdown")
def product_breakdown_route():
    def _produce():
        site_id = _parse_site_id()
        from_date, to_date = _parse_range()
        return {
            "site_id": site_id,
            "from": from_date.isoformat(),
            "to": to_date.isoformat(),
            "rows": [row.to_dict() for row in trend_service.get_product_breakdown(site_id, from_date, to_date)],
        }

    return _run("build product breakdown", _produce)


@analytics_bp.get("/roi")
def roi_route():
    """ROI for one quarry; from/to are optional and default to operations start through today."""
    def _produce():
        site_id = _parse_site_id(required=True)
        from_date = parse_date_arg("from", request.args.get("from"), required=False)
        to_date = parse_date_arg("to", request.args.get("to"), required=False)
        if from_date and to_date:
            validate_date_range(from_date, to_date)
        return roi_service.get_roi_analysis(site_id, from_date, to_date).to_dict()

    return _run("compute ROI analysis", _produce)


@analytics_bp.get("/comparison")
def comparison_route():
    def _produce():
        site_id = _parse_site_id()
        from_date, to_date = _parse_range()
        return comparison_service.get_comparative_period(site_id, from_date, to_date).to_dict()

    return _run("compare periods", _produce)


@analytics_bp.get("/expense-dashboard")
def expense_dashboard_route():
    """Expenses by category; include_auto=true adds the sale-derived fee lines and fuel."""
    def _produce():
        site_id = _parse_site_id()
        from_date, to_date = _parse_range()
        include_auto = request.args.get("include_auto", "false").lower() == "true"
        dashboard = breakdown_service.get_expense_dashboard(
            site_id, from_date, to_date, include_auto_calculated=include_auto,
        )
        return dashboard.to_dict()

    return _run("build expense dashboard", _produce)


@analytics_bp.get("/cash-flow")
def cash_flow_route():
    def _produce():
        site_id = _parse_site_id()
        from_date, to_date = _parse_range()
        return breakdown_service.get_cash_flow_waterfall(site_id, from_date, to_date).to_dict()

    return _run("build cash-flow waterfall", _produce)


@analytics_bp.get("/cost-per-piece")
def cost_per_piece_route():
    def _produce():
        site_id = _parse_site_id()
        from_date, to_date = _parse_range()
        return breakdown_service.get_cost_per_piece(site_id, from_date, to_date).to_dict()

    return _run("compute cost per piece", _produce)


@analytics_bp.get("/product-profitability")
def product_profitability_route():
    def _produce():
        site_id = _parse_site_id()
        from_date, to_date = _parse_range()
        rows = breakdown_service.get_product_profitability(site_id, from_date, to_date)
        return {
            "site_id": site_id,
            "from": from_date.isoformat(),
            "to": to_date.isoformat(),
            "rows": [row.to_dict() for row in rows],
        }

    return _run("compute product profitability", _produce)
