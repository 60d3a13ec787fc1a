"""
Pytest fixtures for quarrydesk backend tests.

Provides test database setup, two isolated quarries, and factories for the
transactional records the analytics engine reads.
"""

from datetime import date

import pytest

from quarrydesk import create_app
from quarrydesk.extensions import db
from quarrydesk.models import (
    Quarry, Product, Sale, Expense, FuelUsage, Banking, Prepayment,
    PAYMENT_STATUS_PAID, PAYMENT_STATUS_NOT_PAID,
)
from quarrydesk.services.cache_service import get_cache


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        # Cache off by default so tests always see fresh numbers
        'ANALYTICS_CACHE_TTL_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """Create CLI runner."""
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        get_cache().clear()
        app.config['CLOSING_BALANCE_BASIS'] = 'net_income'

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def quarry_a(db_session):
    """Quarry A with the standard fee schedule (loaders 10, land 5, rejects 2)."""
    quarry = Quarry(
        name="Quarry A - Kisii Main",
        location="Kisii",
        loaders_fee_rate=10.0,
        land_rate_fee_rate=5.0,
        rejects_fee_rate=2.0,
    )
    db_session.add(quarry)
    db_session.commit()
    return quarry


@pytest.fixture(scope='function')
def quarry_b(db_session):
    """Quarry B with no fee schedule at all."""
    quarry = Quarry(name="Quarry B - Nyamira", location="Nyamira")
    db_session.add(quarry)
    db_session.commit()
    return quarry


@pytest.fixture(scope='function')
def make_product(db_session):
    """Get-or-create a product by name."""
    def _make(name: str) -> Product:
        product = db_session.query(Product).filter_by(name=name).first()
        if product is None:
            product = Product(name=name)
            db_session.add(product)
            db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def make_sale(db_session, make_product):
    """
    Create a sale. Paid sales default to payment received on the sale date;
    pass paid=False for credit sales or received=<date> for late settlement.
    """
    def _make(
        quarry,
        day: date,
        *,
        product: str = "Size 6",
        quantity: float = 100.0,
        price: float = 50.0,
        commission: float = 0.0,
        paid: bool = True,
        received: date | None = None,
        include_land_rate: bool = True,
        is_active: bool = True,
    ) -> Sale:
        sale = Sale(
            quarry_id=quarry.id,
            product_id=make_product(product).id,
            sale_date=day,
            vehicle_registration="KDA123X",
            quantity=quantity,
            price_per_unit=price,
            commission_per_unit=commission,
            payment_status=PAYMENT_STATUS_PAID if paid else PAYMENT_STATUS_NOT_PAID,
            payment_received_date=(received or day) if paid else None,
            include_land_rate=include_land_rate,
            is_active=is_active,
        )
        db_session.add(sale)
        db_session.commit()
        return sale
    return _make


@pytest.fixture(scope='function')
def make_expense(db_session):
    def _make(quarry, day: date, amount: float, item: str = "Casual labour", category: str | None = None) -> Expense:
        expense = Expense(quarry_id=quarry.id, expense_date=day, item=item, amount=amount, category=category)
        db_session.add(expense)
        db_session.commit()
        return expense
    return _make


@pytest.fixture(scope='function')
def make_fuel(db_session):
    def _make(quarry, day: date, machines: float, wheel_loaders: float = 0.0, old_stock: float = 500.0) -> FuelUsage:
        usage = FuelUsage(
            quarry_id=quarry.id,
            usage_date=day,
            old_stock=old_stock,
            new_stock=0.0,
            machines_loaded=machines,
            wheel_loaders_loaded=wheel_loaders,
        )
        db_session.add(usage)
        db_session.commit()
        return usage
    return _make


@pytest.fixture(scope='function')
def make_banking(db_session):
    def _make(quarry, day: date, amount: float) -> Banking:
        banking = Banking(quarry_id=quarry.id, banking_date=day, item="Deposit", amount_banked=amount)
        db_session.add(banking)
        db_session.commit()
        return banking
    return _make


@pytest.fixture(scope='function')
def make_prepayment(db_session):
    def _make(quarry, day: date, amount: float) -> Prepayment:
        prepayment = Prepayment(
            quarry_id=quarry.id,
            prepayment_date=day,
            vehicle_registration="KBZ900A",
            total_amount_paid=amount,
        )
        db_session.add(prepayment)
        db_session.commit()
        return prepayment
    return _make
