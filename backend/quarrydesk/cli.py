# Overview: Flask CLI command groups for bootstrap, site configuration, and analytics inspection.

# backend/quarrydesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo --days 45
#   Create a demo quarry with products, fees, capital and daily activity.
# - python -m flask system clear-cache
#   Drop cached analytics results in this process.
#
# Site configuration:
# - python -m flask sites list
# - python -m flask sites create --name "Kisii Main" --location "Kisii"
# - python -m flask sites set-fees --site-id 1 --loaders-fee 10 --land-rate 5 --rejects-fee 2 --fuel-cost 180
# - python -m flask sites set-capital --site-id 1 --investment 2500000 --start-date 2025-01-01 --fixed-costs 150000
#
# Analytics (JSON output):
# - python -m flask analytics period --site-id 1 --from 2025-06-01 --to 2025-06-30
# - python -m flask analytics trend --site-id 1 --from 2025-06-01 --to 2025-06-07
# - python -m flask analytics roi --site-id 1
# - python -m flask analytics compare --site-id 1 --from 2025-06-01 --to 2025-06-30
# - python -m flask analytics expenses --site-id 1 --from 2025-06-01 --to 2025-06-30 --include-auto
# - python -m flask analytics cashflow --site-id 1 --from 2025-06-01 --to 2025-06-01
# - python -m flask analytics profitability --site-id 1 --from 2025-06-01 --to 2025-06-30

import json
from datetime import timedelta

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Quarry, Product, Sale, Expense, FuelUsage, Banking, Prepayment, PAYMENT_STATUS_NOT_PAID, PAYMENT_STATUS_PAID
from .services import breakdown_service, comparison_service, metrics_service, roi_service, site_service, trend_service
from .services.cache_service import clear_cache
from .services.concurrency import commit_with_retry
from .time_utils import today
from .validation import ValidationError, parse_date_arg, validate_date_range


def _fmt(value) -> str:
    return "-" if value is None else f"{value:g}"


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True))


def _parse_range(from_raw, to_raw):
    from_date = parse_date_arg("from", from_raw)
    to_date = parse_date_arg("to", to_raw)
    validate_date_range(from_date, to_date)
    return from_date, to_date


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()
    clear_cache()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


DEMO_PRODUCTS = ("Size 6", "Size 9", "Reject", "Hardcore", "Beam")


@system_group.command('seed-demo')
@click.option('--name', default='Demo Quarry', help='Quarry name')
@click.option('--days', type=int, default=45, help='Days of activity ending today')
@with_appcontext
def seed_demo(name, days):
    """
    Create a quarry with fee schedule, capital configuration and a
    deterministic run of sales, expenses, fuel logs and bankings.
    """
    if days < 1:
        click.echo("FAIL --days must be at least 1")
        return
    if db.session.query(Quarry).filter_by(name=name).first():
        click.echo(f"FAIL Quarry '{name}' already exists")
        return

    end = today()
    start = end - timedelta(days=days - 1)

    quarry = Quarry(
        name=name,
        location="Demo",
        loaders_fee_rate=10.0,
        land_rate_fee_rate=5.0,
        rejects_fee_rate=2.0,
        fuel_cost_per_liter=180.0,
        initial_investment=2_500_000.0,
        operations_start_date=start,
        estimated_monthly_fixed_costs=150_000.0,
        daily_production_capacity=1_500.0,
        target_profit_margin=30.0,
    )
    db.session.add(quarry)

    products = {}
    for product_name in DEMO_PRODUCTS:
        product = db.session.query(Product).filter_by(name=product_name).first()
        if product is None:
            product = Product(name=product_name)
            db.session.add(product)
        products[product_name] = product
    db.session.flush()

    prices = {"Size 6": 50.0, "Size 9": 45.0, "Reject": 20.0, "Hardcore": 30.0, "Beam": 35.0}
    sale_count = 0
    for offset in range(days):
        day = start + timedelta(days=offset)
        for index, product_name in enumerate(DEMO_PRODUCTS):
            if (offset + index) % 3 == 2:
                continue
            # Every seventh sale is on credit and settled three days later
            unpaid = (offset + index) % 7 == 0
            settled = unpaid and day + timedelta(days=3) <= end
            db.session.add(Sale(
                quarry_id=quarry.id,
                product_id=products[product_name].id,
                sale_date=day,
                vehicle_registration=f"KD{100 + offset:03d}{chr(65 + index)}",
                quantity=float(200 + 25 * ((offset + index) % 5)),
                price_per_unit=prices[product_name],
                commission_per_unit=2.0 if index % 2 == 0 else 0.0,
                payment_status=PAYMENT_STATUS_PAID if (not unpaid or settled) else PAYMENT_STATUS_NOT_PAID,
                payment_mode="Cash",
                payment_received_date=(day + timedelta(days=3)) if settled else (None if unpaid else day),
                include_land_rate=product_name != "Beam",
            ))
            sale_count += 1

        db.session.add(Expense(quarry_id=quarry.id, expense_date=day, item="Casual labour", amount=3_000.0, category="Labour"))
        db.session.add(FuelUsage(
            quarry_id=quarry.id,
            usage_date=day,
            old_stock=400.0,
            new_stock=100.0 if offset % 5 == 0 else 0.0,
            machines_loaded=30.0,
            wheel_loaders_loaded=15.0,
        ))
        if offset % 2 == 1:
            db.session.add(Banking(quarry_id=quarry.id, banking_date=day, item="Daily deposit", amount_banked=20_000.0))
        if offset % 10 == 4:
            db.session.add(Prepayment(
                quarry_id=quarry.id,
                prepayment_date=day,
                vehicle_registration=f"KP{offset:03d}",
                total_amount_paid=10_000.0,
            ))

    commit_with_retry()
    clear_cache()
    click.echo(f"PASS Seeded '{quarry.name}' (ID: {quarry.id}) with {sale_count} sales from {start.isoformat()} to {end.isoformat()}")


@system_group.command('clear-cache')
@with_appcontext
def clear_cache_cli():
    """Drop every cached analytics result."""
    count = clear_cache()
    click.echo(f"PASS Cleared {count} cached analytics result(s)")


# =============================================================================
# SITES
# =============================================================================

@click.group('sites')
def sites_group():
    """Quarry (site) configuration commands."""


@sites_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive quarries')
@with_appcontext
def list_sites_cli(include_inactive):
    """List quarries with their fee schedules."""
    quarries = site_service.list_sites(include_inactive=include_inactive)
    if not quarries:
        click.echo("No quarries found")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'Name':<25} {'Loaders':>9} {'Land':>7} {'Rejects':>8} {'Fuel/L':>8} {'Investment':>14}")
    click.echo("=" * 90)
    for q in quarries:
        click.echo(
            f"{q.id:<5} {q.name:<25} {_fmt(q.loaders_fee_rate):>9} {_fmt(q.land_rate_fee_rate):>7} "
            f"{_fmt(q.rejects_fee_rate):>8} {_fmt(q.fuel_cost_per_liter):>8} {_fmt(q.initial_investment):>14}"
        )
    click.echo("=" * 90 + "\n")


@sites_group.command('create')
@click.option('--name', required=True, help='Quarry name (unique)')
@click.option('--location', help='Location')
@with_appcontext
def create_site_cli(name, location):
    """Create a quarry."""
    try:
        quarry = site_service.create_site(name, location)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created quarry: {quarry.name} (ID: {quarry.id})")


@sites_group.command('set-fees')
@click.option('--site-id', type=int, required=True, help='Quarry ID')
@click.option('--loaders-fee', help='Loaders fee per unit ("" clears)')
@click.option('--land-rate', help='Land rate fee per unit ("" clears)')
@click.option('--rejects-fee', help='Land rate fee per unit for reject products ("" clears)')
@click.option('--fuel-cost', help='Fuel cost per liter ("" clears)')
@with_appcontext
def set_fees_cli(site_id, loaders_fee, land_rate, rejects_fee, fuel_cost):
    """Update a quarry's fee schedule. Omitted options are left unchanged."""
    patch = {
        key: value
        for key, value in (
            ("loaders_fee_rate", loaders_fee),
            ("land_rate_fee_rate", land_rate),
            ("rejects_fee_rate", rejects_fee),
            ("fuel_cost_per_liter", fuel_cost),
        )
        if value is not None
    }
    if not patch:
        click.echo("FAIL Nothing to update")
        return
    try:
        quarry = site_service.update_fee_schedule(site_id, patch)
    except site_service.SiteNotFoundError as e:
        click.echo(f"FAIL {e}")
        return
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    clear_cache()
    click.echo(f"PASS Updated fee schedule for {quarry.name}")


@sites_group.command('set-capital')
@click.option('--site-id', type=int, required=True, help='Quarry ID')
@click.option('--investment', help='Initial capital investment')
@click.option('--start-date', help='Operations start date (YYYY-MM-DD)')
@click.option('--fixed-costs', help='Estimated monthly fixed costs')
@click.option('--capacity', help='Daily production capacity (pieces)')
@click.option('--target-margin', help='Target profit margin percent')
@with_appcontext
def set_capital_cli(site_id, investment, start_date, fixed_costs, capacity, target_margin):
    """Update a quarry's capital configuration. Omitted options are left unchanged."""
    patch = {
        key: value
        for key, value in (
            ("initial_investment", investment),
            ("operations_start_date", start_date),
            ("estimated_monthly_fixed_costs", fixed_costs),
            ("daily_production_capacity", capacity),
            ("target_profit_margin", target_margin),
        )
        if value is not None
    }
    if not patch:
        click.echo("FAIL Nothing to update")
        return
    try:
        quarry = site_service.update_capital(site_id, patch)
    except site_service.SiteNotFoundError as e:
        click.echo(f"FAIL {e}")
        return
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    clear_cache()
    click.echo(f"PASS Updated capital configuration for {quarry.name}")


# =============================================================================
# ANALYTICS
# =============================================================================

@click.group('analytics')
def analytics_group():
    """Financial analytics reports (JSON)."""


@analytics_group.command('period')
@click.option('--site-id', type=int, help='Quarry ID (omit for all quarries)')
@click.option('--from', 'from_raw', required=True, help='From date (YYYY-MM-DD)')
@click.option('--to', 'to_raw', required=True, help='To date (YYYY-MM-DD)')
@click.option('--items', is_flag=True, help='Include expense line items')
@with_appcontext
def period_cli(site_id, from_raw, to_raw, items):
    """Period metrics. A single-day run for one quarry records its closing balance."""
    try:
        from_date, to_date = _parse_range(from_raw, to_raw)
        metrics = metrics_service.get_period_metrics(site_id, from_date, to_date)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    _echo_json(metrics.to_dict(include_items=items))


@analytics_group.command('trend')
@click.option('--site-id', type=int, help='Quarry ID (omit for all quarries)')
@click.option('--from', 'from_raw', required=True, help='From date (YYYY-MM-DD)')
@click.option('--to', 'to_raw', required=True, help='To date (YYYY-MM-DD)')
@with_appcontext
def trend_cli(site_id, from_raw, to_raw):
    """Gap-filled daily revenue/expense rows."""
    try:
        from_date, to_date = _parse_range(from_raw, to_raw)
        rows = trend_service.get_daily_trend(site_id, from_date, to_date)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    _echo_json([row.to_dict() for row in rows])


@analytics_group.command('roi')
@click.option('--site-id', type=int, required=True, help='Quarry ID')
@click.option('--from', 'from_raw', help='From date (default: operations start)')
@click.option('--to', 'to_raw', help='To date (default: today)')
@with_appcontext
def roi_cli(site_id, from_raw, to_raw):
    """ROI, payback and break-even analysis."""
    try:
        from_date = parse_date_arg("from", from_raw, required=False)
        to_date = parse_date_arg("to", to_raw, required=False)
        result = roi_service.get_roi_analysis(site_id, from_date, to_date)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    _echo_json(result.to_dict())


@analytics_group.command('compare')
@click.option('--site-id', type=int, help='Quarry ID (omit for all quarries)')
@click.option('--from', 'from_raw', required=True, help='From date (YYYY-MM-DD)')
@click.option('--to', 'to_raw', required=True, help='To date (YYYY-MM-DD)')
@with_appcontext
def compare_cli(site_id, from_raw, to_raw):
    """Compare a range with the equal-length range before it."""
    try:
        from_date, to_date = _parse_range(from_raw, to_raw)
        result = comparison_service.get_comparative_period(site_id, from_date, to_date)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    _echo_json(result.to_dict())


@analytics_group.command('expenses')
@click.option('--site-id', type=int, help='Quarry ID (omit for all quarries)')
@click.option('--from', 'from_raw', required=True, help='From date (YYYY-MM-DD)')
@click.option('--to', 'to_raw', required=True, help='To date (YYYY-MM-DD)')
@click.option('--include-auto', is_flag=True, help='Include sale-derived fees and fuel')
@with_appcontext
def expenses_cli(site_id, from_raw, to_raw, include_auto):
    """Expense dashboard grouped by category."""
    try:
        from_date, to_date = _parse_range(from_raw, to_raw)
        dashboard = breakdown_service.get_expense_dashboard(
            site_id, from_date, to_date, include_auto_calculated=include_auto,
        )
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    _echo_json(dashboard.to_dict())


@analytics_group.command('cashflow')
@click.option('--site-id', type=int, help='Quarry ID (omit for all quarries)')
@click.option('--from', 'from_raw', required=True, help='From date (YYYY-MM-DD)')
@click.option('--to', 'to_raw', required=True, help='To date (YYYY-MM-DD)')
@with_appcontext
def cashflow_cli(site_id, from_raw, to_raw):
    """Cash-flow waterfall from opening balance to net income."""
    try:
        from_date, to_date = _parse_range(from_raw, to_raw)
        waterfall = breakdown_service.get_cash_flow_waterfall(site_id, from_date, to_date)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    _echo_json(waterfall.to_dict())


@analytics_group.command('profitability')
@click.option('--site-id', type=int, help='Quarry ID (omit for all quarries)')
@click.option('--from', 'from_raw', required=True, help='From date (YYYY-MM-DD)')
@click.option('--to', 'to_raw', required=True, help='To date (YYYY-MM-DD)')
@with_appcontext
def profitability_cli(site_id, from_raw, to_raw):
    """Per-product revenue, attributable cost and margin."""
    try:
        from_date, to_date = _parse_range(from_raw, to_raw)
        rows = breakdown_service.get_product_profitability(site_id, from_date, to_date)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    _echo_json([row.to_dict() for row in rows])


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sites_group)
    app.cli.add_command(analytics_group)
