"""
SQLAlchemy models for suppliers and the ranking feature tables/views:
suppliers, supplier_rank_features_30d, marketplace_stats_30d and
seo_location_slugs.

The 30 day tables are maintained by the data platform; this service only
reads them (and refreshes the precomputed score columns, see
``src.jobs.rankFeatureRefresher``).
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Supplier(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "suppliers"

    slug: Mapped[Optional[str]] = mapped_column(String(200), unique=True, nullable=True)
    business_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    short_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Listing context used for match scoring
    listing_categories: Mapped[Optional[Any]] = mapped_column(JSONB, nullable=True, default=list)
    location_label: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    base_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    region_label: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Moderation
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    rank_features: Mapped[Optional["SupplierRankFeatures30d"]] = relationship(
        "SupplierRankFeatures30d", back_populates="supplier", uselist=False
    )

    def __repr__(self) -> str:
        return f"<Supplier(id={self.id}, slug={self.slug})>"


class SupplierRankFeatures30d(Base):
    __tablename__ = "supplier_rank_features_30d"

    supplier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("suppliers.id", ondelete="CASCADE"),
        primary_key=True,
    )

    # Raw 30 day counts
    quotes_sent_30d: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accepted_30d: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    acceptance_rate_30d: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    response_time_median_minutes_30d: Mapped[Optional[float]] = mapped_column(
        Float, nullable=True
    )
    last_active_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Commercial attributes (is_verified overrides the supplier flag when set)
    is_verified: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    plan_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Precomputed component scores (nullable: absent means compute on read)
    smoothed_acceptance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    response_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    activity_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    volume_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    base_quality: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    supplier: Mapped["Supplier"] = relationship("Supplier", back_populates="rank_features")


class MarketplaceStats30d(Base):
    __tablename__ = "marketplace_stats_30d"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    global_acceptance_rate_30d: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    computed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class SeoLocationSlug(Base):
    __tablename__ = "seo_location_slugs"

    location_slug: Mapped[str] = mapped_column(String(200), primary_key=True)
