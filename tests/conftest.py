"""
Pytest configuration and shared fixtures.
"""

import fnmatch
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy.orm import sessionmaker

from apps.catalog.models import Brand, VehicleModel, Service
from apps.customers.models import Customer, Motorcycle
from apps.repair_jobs.models import RepairJob, RepairStatus
from core.cache import CacheService
from core.database import build_engine, init_db

FIXED_NOW = datetime(2025, 3, 15, 10, 30)


class InMemoryRedis:
    """Dict-backed stand-in for the redis.Redis calls the cache layer makes."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, name):
        return self.data.get(name)

    def set(self, name, value):
        self.data[name] = value
        self.ttls.pop(name, None)
        return True

    def setex(self, name, time, value):
        self.data[name] = value
        self.ttls[name] = time
        return True

    def delete(self, *names):
        removed = 0
        for name in names:
            if name in self.data:
                del self.data[name]
                self.ttls.pop(name, None)
                removed += 1
        return removed

    def keys(self, pattern):
        return [key for key in self.data if fnmatch.fnmatchcase(key, pattern)]

    def exists(self, *names):
        return sum(1 for name in names if name in self.data)

    def flushdb(self):
        self.data.clear()
        self.ttls.clear()
        return True


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def redis_store() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def redis_client(redis_store) -> MagicMock:
    """Mock that records calls while delegating to the in-memory store."""
    return MagicMock(wraps=redis_store)


@pytest.fixture
def cache(redis_client) -> CacheService:
    return CacheService(redis_client)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(fixed_now) -> FakeClock:
    return FakeClock(fixed_now)


@pytest.fixture
def db_session(tmp_path):
    """Create a temporary database and return a session."""
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def brand(db_session) -> Brand:
    db_brand = Brand(name="Honda")
    db_session.add(db_brand)
    db_session.commit()
    return db_brand


@pytest.fixture
def vehicle_model(db_session, brand) -> VehicleModel:
    db_model = VehicleModel(name="CG 160", brand_id=brand.id)
    db_session.add(db_model)
    db_session.commit()
    return db_model


@pytest.fixture
def customer(db_session) -> Customer:
    db_customer = Customer(
        name="Ana Gómez",
        phone="3001234567",
        email="ana@example.com",
        created_at=datetime(2025, 3, 2, 9, 0),
    )
    db_session.add(db_customer)
    db_session.commit()
    return db_customer


@pytest.fixture
def motorcycle(db_session, customer, brand, vehicle_model) -> Motorcycle:
    db_motorcycle = Motorcycle(
        plate="ABC12D",
        customer_id=customer.id,
        brand_id=brand.id,
        model_id=vehicle_model.id,
    )
    db_session.add(db_motorcycle)
    db_session.commit()
    return db_motorcycle


@pytest.fixture
def make_service(db_session):
    def _make(name: str = "Cambio de aceite", price: str = "30000") -> Service:
        db_service = Service(name=name, price=Decimal(price))
        db_session.add(db_service)
        db_session.commit()
        return db_service
    return _make


@pytest.fixture
def make_job(db_session, motorcycle):
    """Insert a job directly, bypassing the workflow."""
    def _make(status: RepairStatus = RepairStatus.PENDING, total_cost: str = "0", **fields) -> RepairJob:
        fields.setdefault("motorcycle_id", motorcycle.id)
        job = RepairJob(status=status, total_cost=Decimal(total_cost), **fields)
        db_session.add(job)
        db_session.commit()
        db_session.refresh(job)
        return job
    return _make
