"""
Shared pytest fixtures for supplier ranking unit tests.

Provides mock database sessions and sample domain objects that mirror
production ORM models without requiring a live database connection.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.models.supplier import MarketplaceStats30d, Supplier, SupplierRankFeatures30d


# Fixed reference time so activity decay is deterministic
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Database session mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db() -> AsyncMock:
    """Async mock of ``AsyncSession``.

    Individual tests queue query results with ``queue_results``.
    """
    session = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


def make_result(scalar: Any = None, scalars: Optional[list[Any]] = None) -> MagicMock:
    """Build a mock ``Result`` answering ``scalar_one_or_none`` and ``scalars().all()``."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = scalar
    result.scalars.return_value.all.return_value = scalars or []
    return result


def queue_results(db: AsyncMock, *results: MagicMock) -> None:
    """Make successive ``db.execute`` calls return ``results`` in order."""
    db.execute.side_effect = list(results)


# ---------------------------------------------------------------------------
# Domain object factories
# ---------------------------------------------------------------------------


def make_supplier(
    supplier_id: uuid.UUID | None = None,
    *,
    slug: str | None = "bloom-and-wild",
    business_name: str | None = "Bloom & Wild",
    listing_categories: Any = ("Florist",),
    location_label: str | None = "London",
    base_city: str | None = "London",
    region_label: str | None = "Greater London",
    is_published: bool = True,
    is_verified: bool = False,
) -> MagicMock:
    supplier = MagicMock(spec=Supplier)
    supplier.id = supplier_id or uuid.uuid4()
    supplier.slug = slug
    supplier.business_name = business_name
    supplier.short_description = "Seasonal wedding flowers"
    supplier.listing_categories = (
        list(listing_categories) if isinstance(listing_categories, tuple) else listing_categories
    )
    supplier.location_label = location_label
    supplier.base_city = base_city
    supplier.region_label = region_label
    supplier.is_published = is_published
    supplier.is_verified = is_verified
    return supplier


def make_feature_row(
    supplier_id: uuid.UUID,
    *,
    quotes_sent_30d: int = 5,
    accepted_30d: int = 3,
    acceptance_rate_30d: float | None = 0.6,
    response_minutes: float | None = 45.0,
    last_active_at: datetime | None = NOW - timedelta(days=2),
    is_verified: bool | None = None,
    plan_type: str | None = "free",
    base_quality: float | None = None,
    **components: float,
) -> MagicMock:
    row = MagicMock(spec=SupplierRankFeatures30d)
    row.supplier_id = supplier_id
    row.quotes_sent_30d = quotes_sent_30d
    row.accepted_30d = accepted_30d
    row.acceptance_rate_30d = acceptance_rate_30d
    row.response_time_median_minutes_30d = response_minutes
    row.last_active_at = last_active_at
    row.is_verified = is_verified
    row.plan_type = plan_type
    row.base_quality = base_quality
    row.smoothed_acceptance = components.get("smoothed_acceptance")
    row.response_score = components.get("response_score")
    row.activity_score = components.get("activity_score")
    row.volume_score = components.get("volume_score")
    return row


def make_stats(rate: float | None = 0.4) -> MagicMock:
    stats = MagicMock(spec=MarketplaceStats30d)
    stats.global_acceptance_rate_30d = rate
    return stats


@pytest.fixture
def sample_supplier() -> MagicMock:
    """A published, unverified florist based in London."""
    return make_supplier()
