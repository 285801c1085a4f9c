"""
Pydantic v2 schemas for the Supplier Ranking API.

Covers:
- Admin ranking breakdown for a single supplier
- Admin ranking contexts (category/location pickers)
- Supplier self-view ranking summary
- Public SEO ranked listing
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Admin ranking breakdown
# ---------------------------------------------------------------------------

class SupplierRefOut(BaseModel):
    id: uuid.UUID
    name: str


class RankingContextOut(BaseModel):
    category_slug: Optional[str] = None
    location_slug: Optional[str] = None


class RankingRawInputsOut(BaseModel):
    """Raw 30 day inputs as stored for the supplier."""

    quotes_sent_30d: int
    accepted_30d: int
    acceptance_rate_30d: float
    response_time_median_minutes_30d: Optional[float] = None
    last_active_at: Optional[datetime] = None
    is_verified: bool
    plan_type: str


class RankingComponentsOut(BaseModel):
    """Component signals and base quality, each in [0, 1]."""

    model_config = ConfigDict(from_attributes=True)

    smoothed_acceptance: float
    response_score: float
    activity_score: float
    volume_score: float
    base_quality: float


class RankingMatchOut(BaseModel):
    category_match: float
    location_match: float
    match: float


class RankingFinalOut(BaseModel):
    verified_bonus: float
    plan_multiplier: float
    rank_score: float = Field(description="Sortable score; may exceed 100 after bonuses")


class SupplierRankingBreakdownOut(BaseModel):
    """Full ranking trace for the admin inspector."""

    supplier: SupplierRefOut
    context: RankingContextOut
    raw: RankingRawInputsOut
    components: RankingComponentsOut
    match: RankingMatchOut
    final: RankingFinalOut
    explanations: list[str]


# ---------------------------------------------------------------------------
# Admin ranking contexts
# ---------------------------------------------------------------------------

class ContextOptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    slug: str
    label: str


class RankingContextsOut(BaseModel):
    categories: list[ContextOptionOut]
    locations: list[ContextOptionOut]


# ---------------------------------------------------------------------------
# Supplier self view
# ---------------------------------------------------------------------------

class SupplierRankingSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    smoothed_acceptance: float
    response_score: float
    activity_score: float
    volume_score: float
    base_quality: float
    base_quality_100: int = Field(ge=0, le=100)
    last_active_at: Optional[datetime] = None
    acceptance_percent: int = Field(ge=0, le=100)
    response_bucket: str
    activity_label: str
    volume_label: str


class SupplierRankingOut(BaseModel):
    ranking: SupplierRankingSummaryOut
    tips: list[str]


# ---------------------------------------------------------------------------
# Public SEO listing
# ---------------------------------------------------------------------------

class PerformanceSignalsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invites_count: Optional[float] = None
    quotes_sent_count: float = 0
    quotes_accepted_count: Optional[float] = None
    acceptance_rate: Optional[float] = None
    typical_response_hours: Optional[float] = None
    last_quote_sent_at: Optional[str] = None
    last_active_at: Optional[str] = None
    badges: list[str] = Field(default_factory=list)


class RankedSupplierCardOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    slug: str
    name: str
    short_description: Optional[str] = None
    location_label: Optional[str] = None
    category_badges: list[str]
    performance: PerformanceSignalsOut
    badges: list[str]
    rank_hint: str


class SeoMetaOut(BaseModel):
    title: str
    description: str
    canonical: str


class RankedListingOut(BaseModel):
    """One page of suppliers ranked for a category/location context."""

    model_config = ConfigDict(populate_by_name=True)

    page: int
    page_size: int
    total_count: int
    category_slug: str
    location_slug: str
    meta: SeoMetaOut
    schema_: dict[str, Any] = Field(alias="schema", serialization_alias="schema")
    rows: list[RankedSupplierCardOut]
