"""
Supplier Ranking SQLAlchemy Models
==================================

Central import point for all ORM models. Import ``Base`` from here so that
``Base.metadata`` is fully populated (the e2e tests call ``create_all``).

Usage::

    from src.models import Base, Supplier, SupplierRankFeatures30d
"""

# -- Base & Mixins --
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# -- Suppliers & ranking features --
from .supplier import (
    MarketplaceStats30d,
    SeoLocationSlug,
    Supplier,
    SupplierRankFeatures30d,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    # Suppliers
    "Supplier",
    "SupplierRankFeatures30d",
    "MarketplaceStats30d",
    "SeoLocationSlug",
]
