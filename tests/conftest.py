# tests/conftest.py
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Generator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-storefront")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("ASYNC_DATABASE_URL", "sqlite+aiosqlite:///./test.db")

from storefront.main import app
from storefront.core.security import create_id_token
from storefront.db.session import Base
from storefront.db.session_async import AsyncSessionLocal, async_engine
from storefront.domain.enums import CouponType
from storefront.models.catalog import Product, Service
from storefront.models.coupon import Coupon

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

sync_engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)


# ---------- Database ----------
@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create the SQLite schema once per test session."""
    Base.metadata.create_all(bind=sync_engine)
    yield
    Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with sync_engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest_asyncio.fixture(scope="function")
async def client():
    """AsyncClient bound to the app in-process."""
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    # Pooled aiosqlite connections must not outlive this test's event loop.
    await async_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def async_db_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.rollback()
    await async_engine.dispose()


# ---------- Identity ----------
@pytest.fixture(scope="function")
def user_id() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"


@pytest.fixture(scope="function")
def user_token(user_id: str) -> str:
    return create_id_token(user_id)


@pytest.fixture(scope="function")
def auth_headers(user_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {user_token}"}


@pytest.fixture(scope="function")
def session_headers() -> dict[str, str]:
    return {"X-Session-Id": f"cart_{uuid.uuid4().hex[:12]}"}


# ---------- Catalog ----------
@pytest.fixture(scope="function")
def make_product(db_session: Session):
    def _make(
        *,
        name: str = "LED Bulb 9W",
        price: float = 100.0,
        stock: int = 10,
        is_active: bool = True,
        original_price: float | None = None,
    ) -> Product:
        product = Product(
            id=f"prod-{uuid.uuid4().hex[:8]}",
            name=name,
            category="lighting",
            price=price,
            original_price=original_price,
            stock=stock,
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture(scope="function")
def make_service(db_session: Session):
    def _make(*, name: str = "Fan Installation", price: float = 300.0, is_active: bool = True) -> Service:
        service = Service(
            id=f"svc-{uuid.uuid4().hex[:8]}",
            name=name,
            price=price,
            duration_minutes=45,
            is_active=is_active,
        )
        db_session.add(service)
        db_session.commit()
        db_session.refresh(service)
        return service

    return _make


@pytest.fixture(scope="function")
def make_coupon(db_session: Session):
    def _make(
        code: str,
        type: CouponType,
        value: float,
        *,
        min_order_amount: float | None = None,
        max_discount: float | None = None,
        usage_limit: int | None = None,
        used_count: int = 0,
        expires_at: datetime | None = None,
        is_active: bool = True,
    ) -> Coupon:
        coupon = Coupon(
            code=code,
            type=type,
            value=value,
            min_order_amount=min_order_amount,
            max_discount=max_discount,
            usage_limit=usage_limit,
            used_count=used_count,
            expires_at=expires_at,
            is_active=is_active,
        )
        db_session.add(coupon)
        db_session.commit()
        db_session.refresh(coupon)
        return coupon

    return _make


@pytest.fixture(scope="function")
def expired_at() -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=1)
