"""
E2E test fixtures for the supplier ranking backend.

Provides:
- An in-process FastAPI test app with the ranking routes registered
- httpx AsyncClient wired via ASGI transport (no network needed)
- An async SQLite database session (in-memory) for isolation
- Pre-populated seed data: suppliers, 30 day rank features, marketplace
  stats and SEO location slugs

Activity timestamps are seeded relative to the wall clock because the
routes score against the current time.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from src.models import Base  # registers every model on Base.metadata


@compiles(JSONB, "sqlite")
def compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


# ---------------------------------------------------------------------------
# Test IDs (stable across tests so cross-references work).  Each contains a
# hex letter: SQLite gives the UUID column numeric affinity, so an all-digit
# UUID would be stored as a number.
# ---------------------------------------------------------------------------

FLORIST_PRO_ID = uuid.UUID("aaaaaaa1-0000-4000-8000-00000000000a")
FLORIST_FREE_ID = uuid.UUID("aaaaaaa2-0000-4000-8000-00000000000b")
FLORIST_NEW_ID = uuid.UUID("aaaaaaa3-0000-4000-8000-00000000000c")
CATERER_LEEDS_ID = uuid.UUID("aaaaaaa4-0000-4000-8000-00000000000d")
UNPUBLISHED_ID = uuid.UUID("aaaaaaa5-0000-4000-8000-00000000000e")
DJ_WEST_LONDON_ID = uuid.UUID("aaaaaaa6-0000-4000-8000-00000000000f")


# ---------------------------------------------------------------------------
# Async engine + session (in-memory SQLite)
# ---------------------------------------------------------------------------

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def _test_engine():
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(_test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=_test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

async def _seed_data(db: AsyncSession) -> None:
    """Insert a small marketplace for E2E tests."""
    from src.models import (
        MarketplaceStats30d,
        SeoLocationSlug,
        Supplier,
        SupplierRankFeatures30d,
    )

    now = datetime.now(timezone.utc)

    florist_pro = Supplier(
        id=FLORIST_PRO_ID,
        slug="petal-and-stem",
        business_name="Petal & Stem",
        short_description="Wedding and event florals",
        listing_categories=["Florist", "Wedding Flowers"],
        location_label="Camden",
        base_city="London",
        region_label="Greater London",
        is_published=True,
        is_verified=True,
    )
    florist_free = Supplier(
        id=FLORIST_FREE_ID,
        slug="wild-bunch",
        business_name="Wild Bunch",
        listing_categories=["Florist"],
        location_label="London",
        base_city="London",
        region_label="Greater London",
        is_published=True,
        is_verified=False,
    )
    florist_new = Supplier(
        id=FLORIST_NEW_ID,
        slug="fresh-blooms",
        business_name="Fresh Blooms",
        listing_categories=["Floristry"],
        location_label="North London",
        base_city=None,
        region_label="Greater London",
        is_published=True,
        is_verified=False,
    )
    caterer = Supplier(
        id=CATERER_LEEDS_ID,
        slug="yorkshire-feasts",
        business_name="Yorkshire Feasts",
        listing_categories=["Catering"],
        location_label="Leeds",
        base_city="Leeds",
        region_label="Yorkshire",
        is_published=True,
        is_verified=True,
    )
    hidden = Supplier(
        id=UNPUBLISHED_ID,
        slug="hidden-florist",
        business_name="Hidden Florist",
        listing_categories=["Florist"],
        location_label="London",
        base_city="London",
        is_published=False,
    )
    dj = Supplier(
        id=DJ_WEST_LONDON_ID,
        slug="west-side-beats",
        business_name="West Side Beats",
        listing_categories=["DJ"],
        location_label="West London",
        base_city="London",
        region_label="Greater London",
        is_published=True,
    )
    db.add_all([florist_pro, florist_free, florist_new, caterer, hidden, dj])
    await db.flush()

    db.add_all([
        SupplierRankFeatures30d(
            supplier_id=FLORIST_PRO_ID,
            quotes_sent_30d=5,
            accepted_30d=3,
            acceptance_rate_30d=0.6,
            response_time_median_minutes_30d=45.0,
            last_active_at=now - timedelta(days=2),
            is_verified=True,
            plan_type="pro",
        ),
        SupplierRankFeatures30d(
            supplier_id=FLORIST_FREE_ID,
            quotes_sent_30d=2,
            accepted_30d=0,
            acceptance_rate_30d=0.0,
            response_time_median_minutes_30d=1800.0,
            last_active_at=now - timedelta(days=40),
            plan_type="free",
        ),
        SupplierRankFeatures30d(
            supplier_id=CATERER_LEEDS_ID,
            quotes_sent_30d=30,
            accepted_30d=20,
            acceptance_rate_30d=0.67,
            response_time_median_minutes_30d=20.0,
            last_active_at=now - timedelta(hours=3),
            plan_type="pro",
        ),
        SupplierRankFeatures30d(
            supplier_id=DJ_WEST_LONDON_ID,
            quotes_sent_30d=8,
            accepted_30d=4,
            acceptance_rate_30d=0.5,
            response_time_median_minutes_30d=120.0,
            last_active_at=now - timedelta(days=1),
            plan_type="free",
        ),
    ])
    db.add(MarketplaceStats30d(id=1, global_acceptance_rate_30d=0.4, computed_at=now))
    db.add_all([
        SeoLocationSlug(location_slug="london"),
        SeoLocationSlug(location_slug="west-london"),
        SeoLocationSlug(location_slug="leeds"),
    ])
    await db.flush()


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """A database session with seed data already inserted."""
    await _seed_data(db_session)
    return db_session


# ---------------------------------------------------------------------------
# FastAPI test application
# ---------------------------------------------------------------------------

def _create_test_app(db_session_override: AsyncSession):
    """Build a FastAPI app with the ranking routes registered and the DB
    dependency overridden to use the test session."""
    from fastapi import FastAPI

    from src.api.deps import get_db
    from src.api.routes.ranking import router as ranking_router

    app = FastAPI(title="Eventwow Ranking Test")

    async def _override_get_db():
        yield db_session_override

    app.dependency_overrides[get_db] = _override_get_db
    app.include_router(ranking_router, prefix="/api/v1")

    return app


@pytest_asyncio.fixture
async def client(seeded_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """httpx AsyncClient connected to the test app via ASGI transport."""
    app = _create_test_app(seeded_db)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
