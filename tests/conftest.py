"""
Pytest configuration and shared fixtures
"""

import random
import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from typing import AsyncGenerator, Optional
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from coupon_service.config import TestSettings
from coupon_service.models import Base, Coupon, CouponKind, CouponReceipt
from coupon_service.services.code_generator import CouponCodeGenerator
from coupon_service.services.coupon_lifecycle_service import CouponLifecycleService
from coupon_service.services.coupon_query_service import CouponQueryService
from coupon_service.main import app


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 2026-03-02 08:30 UTC (KST 17:30)
FIXED_NOW = datetime(2026, 3, 2, 8, 30, 0)


def fixed_clock(now: datetime = FIXED_NOW):
    return lambda: now


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database session for each test.

    Uses in-memory SQLite database for fast test execution.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path):
    """
    파일 기반 SQLite 세션 팩토리

    세션마다 별도 연결을 사용하므로 동시 요청을 재현할 수 있습니다.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'coupons.db'}",
        connect_args={"timeout": 30},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture(scope="function")
def test_settings() -> TestSettings:
    return TestSettings()


@pytest.fixture(scope="function")
def code_generator() -> CouponCodeGenerator:
    """시드를 고정한 코드 생성기"""
    return CouponCodeGenerator(rng=random.Random(20260302))


@pytest.fixture(scope="function")
def lifecycle_service(
    db_session: AsyncSession,
    code_generator: CouponCodeGenerator,
    test_settings: TestSettings,
) -> CouponLifecycleService:
    return CouponLifecycleService(
        db_session,
        code_generator=code_generator,
        settings=test_settings,
        clock=fixed_clock(),
    )


@pytest.fixture(scope="function")
def query_service(db_session: AsyncSession) -> CouponQueryService:
    return CouponQueryService(db_session, clock=fixed_clock())


@pytest.fixture(scope="function")
def make_coupon(db_session: AsyncSession):
    """
    쿠폰(과 선택적으로 수령 내역)을 저장하는 팩토리
    """

    async def _make(
        coupon_code: str,
        kind: CouponKind = CouponKind.WELCOME,
        discount_amount: int = 1000,
        min_order_price: int = 10000,
        issue_limit: int = 0,
        issued_at: Optional[datetime] = None,
        expired_at: Optional[datetime] = None,
        consumer_id: Optional[int] = None,
        is_use: bool = False,
        received_at: Optional[datetime] = None,
    ) -> Coupon:
        issued_at = issued_at or FIXED_NOW - timedelta(days=1)
        coupon = Coupon(
            coupon_code=coupon_code,
            kind=kind.value,
            discount_amount=discount_amount,
            issue_limit=issue_limit,
            issued_at=issued_at,
            expired_at=expired_at or issued_at + timedelta(days=30),
            min_order_price=min_order_price,
        )
        db_session.add(coupon)

        if consumer_id is not None:
            db_session.add(
                CouponReceipt(
                    coupon_code=coupon_code,
                    consumer_id=consumer_id,
                    is_use=is_use,
                    created_at=received_at or issued_at,
                )
            )

        await db_session.commit()
        return coupon

    return _make


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async HTTP client for testing FastAPI endpoints.
    Override the database dependency to use the test database.
    """
    from coupon_service.models.base import get_db

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def member_headers() -> dict:
    """게이트웨이가 전달하는 소비자 ID 헤더"""
    return {"X-Member-Id": "1001"}
