"""
Supplier Ranking Service.

Feeds the pure ranking algorithm (``src.algorithms.supplierRanking``) with
rows from the supplier, rank-feature and marketplace-stats tables, and shapes
the results for the three consumers of the rank score:

- the admin ranking breakdown (every intermediate value + explanation),
- the supplier's own ranking summary (labels and improvement tips),
- the public SEO listing for a category/location context.

Feature resolution: when a feature row carries a precomputed ``base_quality``
the stored component columns are used as-is; otherwise the components are
computed from the raw 30 day counts with the marketplace prior.

All methods are async and accept an ``AsyncSession``.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.algorithms.performanceSignals import PerformanceSignals, build_performance_signals
from src.algorithms.supplierRanking import (
    RankResult,
    ScoredFeatures,
    SupplierRankFeatures,
    base_quality_score,
    category_match_strength,
    compute_rank,
    location_match_strength,
    ranking_explanation,
    safe_plan_type,
    to_slug,
    to_title,
)
from src.core.config import settings
from src.models import (
    MarketplaceStats30d,
    SeoLocationSlug,
    Supplier,
    SupplierRankFeatures30d,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Thresholds for the supplier-facing summary
# ---------------------------------------------------------------------------

TIP_RESPONSE_BELOW = 0.5
TIP_ACTIVITY_BELOW = 0.5
TIP_ACCEPTANCE_BELOW = 0.45

RANK_HINT_TOP = 80.0
RANK_HINT_STRONG = 60.0


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class SupplierNotFoundError(Exception):
    def __init__(self, supplier_id: uuid.UUID) -> None:
        self.supplier_id = supplier_id
        super().__init__(f"Supplier with id '{supplier_id}' not found.")


class UnresolvableSeoSlugError(Exception):
    def __init__(self, slug: str | None) -> None:
        self.slug = slug
        super().__init__(
            "Missing category_slug/location_slug or resolvable slug"
            + (f" (got '{slug}')" if slug else "")
        )


# ---------------------------------------------------------------------------
# Response DTOs
# ---------------------------------------------------------------------------

@dataclass
class SupplierRankingBreakdown:
    """Everything the admin ranking inspector shows for one supplier."""
    supplier_id: uuid.UUID
    supplier_name: str
    category_slug: Optional[str]
    location_slug: Optional[str]
    raw: dict[str, Any]
    features: ScoredFeatures
    category_match: float
    location_match: float
    rank: RankResult
    explanations: list[str]


@dataclass
class SupplierRankingSummary:
    """Supplier-facing view of their own base quality."""
    smoothed_acceptance: float
    response_score: float
    activity_score: float
    volume_score: float
    base_quality: float
    base_quality_100: int
    last_active_at: Optional[datetime]
    acceptance_percent: int
    response_bucket: str
    activity_label: str
    volume_label: str
    tips: list[str] = field(default_factory=list)


@dataclass
class RankedSupplierCard:
    id: uuid.UUID
    slug: str
    name: str
    short_description: Optional[str]
    location_label: Optional[str]
    category_badges: list[str]
    performance: PerformanceSignals
    badges: list[str]
    rank_hint: str


@dataclass
class RankedListingPage:
    page: int
    page_size: int
    total_count: int
    category_slug: str
    location_slug: str
    meta: dict[str, str]
    schema: dict[str, Any]
    rows: list[RankedSupplierCard]


@dataclass
class RankingContextOption:
    slug: str
    label: str


@dataclass
class RankingContexts:
    categories: list[RankingContextOption]
    locations: list[RankingContextOption]


# ---------------------------------------------------------------------------
# Feature resolution
# ---------------------------------------------------------------------------

def _finite(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def resolve_scored_features(
    row: SupplierRankFeatures30d | None,
    global_acceptance_rate: float,
    now: datetime | None = None,
) -> ScoredFeatures:
    """Use precomputed components when present, else score the raw counts."""
    if row is not None and _finite(row.base_quality) is not None:
        return ScoredFeatures(
            smoothed_acceptance=_finite(row.smoothed_acceptance) or 0.0,
            response_score=_finite(row.response_score) or 0.0,
            activity_score=_finite(row.activity_score) or 0.0,
            volume_score=_finite(row.volume_score) or 0.0,
            base_quality=_finite(row.base_quality) or 0.0,
        )

    return base_quality_score(
        SupplierRankFeatures(
            accepted_30d=(row.accepted_30d if row is not None else 0) or 0,
            quotes_sent_30d=(row.quotes_sent_30d if row is not None else 0) or 0,
            global_acceptance_rate_30d=global_acceptance_rate,
            response_minutes_30d=(
                row.response_time_median_minutes_30d if row is not None else None
            ),
            last_active_at=row.last_active_at if row is not None else None,
        ),
        now=now,
    )


def _effective_verified(
    row: SupplierRankFeatures30d | None,
    supplier: Supplier,
) -> bool:
    if row is not None and row.is_verified is not None:
        return bool(row.is_verified)
    return bool(supplier.is_verified)


def _effective_plan(row: SupplierRankFeatures30d | None) -> str:
    return safe_plan_type(row.plan_type if row is not None else None)


# ---------------------------------------------------------------------------
# Data access helpers
# ---------------------------------------------------------------------------

async def get_global_acceptance_rate(db: AsyncSession) -> float:
    """Marketplace-wide 30 day acceptance rate used as the Bayesian prior."""
    stmt = select(MarketplaceStats30d).limit(1)
    stats = (await db.execute(stmt)).scalar_one_or_none()
    if stats is None:
        logger.warning("marketplace_stats_30d has no row; using a prior of 0")
        return 0.0
    return _finite(stats.global_acceptance_rate_30d) or 0.0


async def _get_supplier(db: AsyncSession, supplier_id: uuid.UUID) -> Supplier:
    """Fetch a supplier by ID or raise SupplierNotFoundError."""
    stmt = select(Supplier).where(Supplier.id == supplier_id)
    supplier = (await db.execute(stmt)).scalar_one_or_none()
    if supplier is None:
        raise SupplierNotFoundError(supplier_id)
    return supplier


async def _get_feature_row(
    db: AsyncSession,
    supplier_id: uuid.UUID,
) -> SupplierRankFeatures30d | None:
    stmt = select(SupplierRankFeatures30d).where(
        SupplierRankFeatures30d.supplier_id == supplier_id
    )
    return (await db.execute(stmt)).scalar_one_or_none()


# ---------------------------------------------------------------------------
# Admin ranking breakdown
# ---------------------------------------------------------------------------

async def get_supplier_ranking_breakdown(
    db: AsyncSession,
    supplier_id: uuid.UUID,
    category_slug: str | None = None,
    location_slug: str | None = None,
    now: datetime | None = None,
) -> SupplierRankingBreakdown:
    """Score one supplier against a search context and explain the result.

    Raises:
        SupplierNotFoundError: If the supplier does not exist.
    """
    category = to_slug(category_slug)
    location = to_slug(location_slug)

    supplier = await _get_supplier(db, supplier_id)
    row = await _get_feature_row(db, supplier_id)
    prior = await get_global_acceptance_rate(db)

    features = resolve_scored_features(row, prior, now)
    category_match = category_match_strength(category, supplier.listing_categories or [])
    location_match = location_match_strength(
        location,
        supplier.location_label,
        supplier.base_city,
        supplier.region_label,
    )
    is_verified = _effective_verified(row, supplier)
    plan_type = _effective_plan(row)
    rank = compute_rank(features, category_match, location_match, is_verified, plan_type)

    quotes_sent = 0
    accepted = 0
    acceptance_rate = 0.0
    response_minutes = None
    last_active_at = None
    if row is not None:
        quotes_sent = row.quotes_sent_30d or 0
        accepted = row.accepted_30d or 0
        acceptance_rate = _finite(row.acceptance_rate_30d) or 0.0
        response_minutes = _finite(row.response_time_median_minutes_30d)
        last_active_at = row.last_active_at

    logger.info(
        "Ranking breakdown: supplier=%s, category=%s, location=%s, rank_score=%.2f",
        supplier_id,
        category or "-",
        location or "-",
        rank.rank_score,
    )

    return SupplierRankingBreakdown(
        supplier_id=supplier.id,
        supplier_name=supplier.business_name or "Supplier",
        category_slug=category or None,
        location_slug=location or None,
        raw={
            "quotes_sent_30d": quotes_sent,
            "accepted_30d": accepted,
            "acceptance_rate_30d": acceptance_rate,
            "response_time_median_minutes_30d": response_minutes,
            "last_active_at": last_active_at,
            "is_verified": is_verified,
            "plan_type": plan_type,
        },
        features=features,
        category_match=category_match,
        location_match=location_match,
        rank=rank,
        explanations=ranking_explanation(
            rank,
            features,
            category_match,
            location_match,
            quotes_sent_30d=quotes_sent,
            accepted_30d=accepted,
        ),
    )


# ---------------------------------------------------------------------------
# Supplier self view
# ---------------------------------------------------------------------------

def _percent(value: float) -> int:
    n = _finite(value)
    if n is None:
        return 0
    # Halves round up (12.5 -> 13)
    return math.floor(max(0.0, min(100.0, n * 100)) + 0.5)


def build_supplier_ranking_summary(
    features: ScoredFeatures,
    last_active_at: datetime | None = None,
) -> SupplierRankingSummary:
    """Translate component scores into labels and improvement tips."""
    tips: list[str] = []
    if features.response_score < TIP_RESPONSE_BELOW:
        tips.append("Median response time is high. Enable notifications and reply sooner.")
    if features.activity_score < TIP_ACTIVITY_BELOW:
        tips.append("Activity score is low. Log in weekly to keep your profile fresh.")
    if features.smoothed_acceptance < TIP_ACCEPTANCE_BELOW:
        tips.append("Acceptance score is low. Quote promptly and keep pricing competitive.")

    if features.response_score < 0.5:
        response_bucket = "Needs improvement"
    elif features.response_score < 0.75:
        response_bucket = "Good"
    else:
        response_bucket = "Excellent"

    if features.volume_score < 0.35:
        volume_label = "Low"
    elif features.volume_score < 0.7:
        volume_label = "Medium"
    else:
        volume_label = "High"

    activity_label = (
        "Not active in 14+ days" if features.activity_score < 0.5 else "Active recently"
    )

    return SupplierRankingSummary(
        smoothed_acceptance=features.smoothed_acceptance,
        response_score=features.response_score,
        activity_score=features.activity_score,
        volume_score=features.volume_score,
        base_quality=features.base_quality,
        base_quality_100=_percent(features.base_quality),
        last_active_at=last_active_at,
        acceptance_percent=_percent(features.smoothed_acceptance),
        response_bucket=response_bucket,
        activity_label=activity_label,
        volume_label=volume_label,
        tips=tips,
    )


async def get_supplier_ranking_summary(
    db: AsyncSession,
    supplier_id: uuid.UUID,
    now: datetime | None = None,
) -> SupplierRankingSummary:
    """Raises SupplierNotFoundError if the supplier does not exist."""
    await _get_supplier(db, supplier_id)
    row = await _get_feature_row(db, supplier_id)
    prior = await get_global_acceptance_rate(db)

    features = resolve_scored_features(row, prior, now)
    return build_supplier_ranking_summary(
        features,
        last_active_at=row.last_active_at if row is not None else None,
    )


# ---------------------------------------------------------------------------
# Public SEO listing
# ---------------------------------------------------------------------------

def resolve_category_and_location_from_slug(
    slug: str | None,
    location_slugs: Sequence[str],
) -> tuple[str, str]:
    """Split ``"{category}-{location}"`` using the known location slugs.

    Longer location slugs are tried first so ``"dj-west-london"`` prefers
    ``west-london`` over ``london``.  Returns ``("", "")`` when unresolved.
    """
    normalized = to_slug(slug)
    if not normalized:
        return "", ""

    ordered = sorted({s for s in (to_slug(x) for x in location_slugs) if s}, key=len, reverse=True)
    for loc in ordered:
        if normalized == loc:
            continue
        if normalized.endswith(f"-{loc}"):
            category = normalized[: len(normalized) - len(loc) - 1]
            if category:
                return category, loc
    return "", ""


def _rank_hint(rank_score: float) -> str:
    if rank_score >= RANK_HINT_TOP:
        return "Top match"
    if rank_score >= RANK_HINT_STRONG:
        return "Strong match"
    return "Good match"


def _last_active_sort_value(value: datetime | None) -> float:
    if value is None:
        return 0.0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _build_item_list_schema(
    canonical: str,
    title: str,
    rows: list[RankedSupplierCard],
) -> dict[str, Any]:
    return {
        "@context": "https://schema.org",
        "@type": "ItemList",
        "name": title,
        "itemListOrder": "http://schema.org/ItemListOrderDescending",
        "numberOfItems": len(rows),
        "itemListElement": [
            {
                "@type": "ListItem",
                "position": idx + 1,
                "url": f"{settings.public_site_url}/suppliers/{row.slug}",
                "name": row.name,
            }
            for idx, row in enumerate(rows)
        ],
        "url": canonical,
    }


def _performance_for(
    row: SupplierRankFeatures30d | None,
    now: datetime | None,
) -> PerformanceSignals:
    if row is None:
        return build_performance_signals(None, now=now)
    minutes = _finite(row.response_time_median_minutes_30d)
    return build_performance_signals(
        {
            "acceptance_rate": row.acceptance_rate_30d,
            "response_time_seconds_median": minutes * 60 if minutes is not None else None,
            "last_active_at": row.last_active_at,
            "quotes_sent_count": row.quotes_sent_30d,
            "quotes_accepted_count": row.accepted_30d,
        },
        now=now,
    )


def _to_card(
    supplier: Supplier,
    row: SupplierRankFeatures30d | None,
    rank: RankResult,
    now: datetime | None,
) -> RankedSupplierCard:
    performance = _performance_for(row, now)
    categories = supplier.listing_categories if isinstance(supplier.listing_categories, list) else []
    return RankedSupplierCard(
        id=supplier.id,
        slug=supplier.slug or "",
        name=supplier.business_name or "",
        short_description=supplier.short_description,
        location_label=supplier.location_label,
        category_badges=[t for t in (to_title(c) for c in categories) if t],
        performance=performance,
        badges=list(performance.badges),
        rank_hint=_rank_hint(rank.rank_score),
    )


async def rank_suppliers_for_context(
    db: AsyncSession,
    category_slug: str | None = None,
    location_slug: str | None = None,
    slug: str | None = None,
    page: int = 1,
    page_size: int | None = None,
    now: datetime | None = None,
) -> RankedListingPage:
    """Rank every published supplier for a category/location context.

    Pipeline:
    1. Normalise the context (splitting a combined SEO slug if needed)
    2. Load published suppliers, their feature rows and the global prior
    3. Score and drop suppliers with no context match
    4. Sort by rank score, match, recency, then id
    5. Paginate and attach SEO metadata

    Raises:
        UnresolvableSeoSlugError: If no category/location pair can be derived.
    """
    category = to_slug(category_slug)
    location = to_slug(location_slug)
    combined = to_slug(slug)

    if (not category or not location) and combined:
        loc_stmt = select(SeoLocationSlug.location_slug).limit(settings.seo_location_scan_limit)
        known_locations = list((await db.execute(loc_stmt)).scalars().all())
        resolved_category, resolved_location = resolve_category_and_location_from_slug(
            combined, known_locations
        )
        category = category or resolved_category
        location = location or resolved_location

    if not category or not location:
        raise UnresolvableSeoSlugError(combined or None)

    page = max(1, int(page))
    size = page_size or settings.default_page_size
    size = max(1, min(settings.max_page_size, int(size)))

    supplier_stmt = (
        select(Supplier)
        .where(Supplier.is_published.is_(True))
        .limit(settings.supplier_scan_limit)
    )
    suppliers = list((await db.execute(supplier_stmt)).scalars().all())

    feature_rows: dict[uuid.UUID, SupplierRankFeatures30d] = {}
    supplier_ids = [s.id for s in suppliers]
    if supplier_ids:
        feature_stmt = select(SupplierRankFeatures30d).where(
            SupplierRankFeatures30d.supplier_id.in_(supplier_ids)
        )
        feature_rows = {
            r.supplier_id: r for r in (await db.execute(feature_stmt)).scalars().all()
        }
    prior = await get_global_acceptance_rate(db)

    scored: list[tuple[RankResult, Optional[datetime], Supplier, SupplierRankFeatures30d | None]] = []
    for supplier in suppliers:
        if not (supplier.slug or "").strip() or not (supplier.business_name or "").strip():
            continue
        row = feature_rows.get(supplier.id)
        features = resolve_scored_features(row, prior, now)
        rank = compute_rank(
            features,
            category_match_strength(category, supplier.listing_categories or []),
            location_match_strength(
                location,
                supplier.location_label,
                supplier.base_city,
                supplier.region_label,
            ),
            _effective_verified(row, supplier),
            _effective_plan(row),
        )
        if rank.match <= 0:
            continue
        scored.append((rank, row.last_active_at if row is not None else None, supplier, row))

    scored.sort(
        key=lambda item: (
            -item[0].rank_score,
            -item[0].match,
            -_last_active_sort_value(item[1]),
            str(item[2].id),
        )
    )

    total_count = len(scored)
    offset = (page - 1) * size
    rows = [
        _to_card(supplier, row, rank, now)
        for rank, _, supplier, row in scored[offset: offset + size]
    ]

    category_title = to_title(category)
    location_title = to_title(location)
    site = settings.public_site_name
    canonical = f"{settings.public_site_url}/{category}-{location}"
    meta = {
        "title": f"{category_title} in {location_title} | {site}",
        "description": (
            f"Browse {category_title.lower()} suppliers in {location_title}. "
            f"Request quotes from trusted local vendors on {site}."
        ),
        "canonical": canonical,
    }

    logger.info(
        "Ranked listing: category=%s, location=%s, candidates=%d, matched=%d, page=%d",
        category,
        location,
        len(suppliers),
        total_count,
        page,
    )

    return RankedListingPage(
        page=page,
        page_size=size,
        total_count=total_count,
        category_slug=category,
        location_slug=location,
        meta=meta,
        schema=_build_item_list_schema(
            canonical, f"{category_title} in {location_title}", rows
        ),
        rows=rows,
    )


# ---------------------------------------------------------------------------
# Ranking contexts (admin)
# ---------------------------------------------------------------------------

async def list_ranking_contexts(db: AsyncSession) -> RankingContexts:
    """Distinct category and location slugs across published suppliers."""
    stmt = (
        select(Supplier)
        .where(Supplier.is_published.is_(True))
        .limit(settings.ranking_context_scan_limit)
    )
    suppliers = (await db.execute(stmt)).scalars().all()

    category_slugs: set[str] = set()
    location_slugs: set[str] = set()
    for supplier in suppliers:
        categories = supplier.listing_categories
        if isinstance(categories, list):
            category_slugs.update(s for s in (to_slug(c) for c in categories) if s)
        for value in (supplier.location_label, supplier.base_city):
            loc = to_slug(value)
            if loc:
                location_slugs.add(loc)

    return RankingContexts(
        categories=[RankingContextOption(slug=s, label=to_title(s)) for s in sorted(category_slugs)],
        locations=[RankingContextOption(slug=s, label=to_title(s)) for s in sorted(location_slugs)],
    )
