"""
Pytest configuration and fixtures.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from shipledger.domain.entities import AppSettings, Customer, Order, Representative
from shipledger.domain.value_objects import lyd
from shipledger.infrastructure.memory import InMemoryLedgerRepository


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        exchange_rate=Decimal("5.00"),
        price_per_kilo_lyd=Decimal("50.00"),
        price_per_kilo_usd=Decimal("10.00"),
        cards_exchange_rate_cash=Decimal("5.20"),
        cards_exchange_rate_bank=Decimal("5.40"),
        cards_exchange_rate_balance=Decimal("5.10"),
        products_exchange_rate_cash=Decimal("5.50"),
        products_exchange_rate_bank=Decimal("5.60"),
        products_exchange_rate_balance=Decimal("5.30"),
    )


@pytest.fixture
def customer() -> Customer:
    return Customer(id="c1", name="Ahmed Ali", phone="0912345678", address="Benghazi")


@pytest.fixture
def representative() -> Representative:
    return Representative(id="r1", name="Khaled", phone="0915550000")


@pytest.fixture
def repo(app_settings, customer, representative) -> InMemoryLedgerRepository:
    repository = InMemoryLedgerRepository(app_settings)
    repository.save_customer(customer)
    repository.save_representative(representative)
    return repository


@pytest.fixture
def make_order(customer):
    """Factory for orders belonging to the sample customer."""
    counter = iter(range(1, 10_000))

    def _make(price="100.00", **overrides) -> Order:
        n = next(counter)
        fields = {
            "user_id": customer.id,
            "customer_name": customer.name,
            "invoice_number": f"INV-{n:04d}",
            "selling_price_lyd": lyd(price),
            "exchange_rate": Decimal("5.00"),
            "operation_date": datetime(2025, 3, 1, 10, 0),
        }
        fields.update(overrides)
        return Order(**fields)

    return _make


@pytest.fixture
def sqlite_engine():
    from shipledger.infrastructure.database import init_db

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(sqlite_engine):
    with Session(sqlite_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def client(sqlite_engine):
    from shipledger.api.dependencies import get_settings_cache
    from shipledger.application.use_cases import AppSettingsCache
    from shipledger.infrastructure.database import get_db
    from shipledger.main import app

    TestingSession = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=sqlite_engine)
    cache = AppSettingsCache(ttl_seconds=300)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()
