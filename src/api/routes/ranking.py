"""
Supplier Ranking API routes
===========================

Thin handlers over ``src.services.rankingService``.

  GET /api/v1/admin/suppliers/{supplier_id}/ranking  -- Ranking breakdown (admin)
  GET /api/v1/admin/ranking-contexts                 -- Known category/location slugs (admin)
  GET /api/v1/suppliers/{supplier_id}/ranking        -- Supplier's own ranking summary
  GET /api/v1/public/seo/suppliers                   -- Ranked listing for a context
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from src.api.deps import DBSession
from src.api.schemas.ranking import (
    ContextOptionOut,
    RankedListingOut,
    RankedSupplierCardOut,
    RankingComponentsOut,
    RankingContextOut,
    RankingContextsOut,
    RankingFinalOut,
    RankingMatchOut,
    RankingRawInputsOut,
    SeoMetaOut,
    SupplierRankingBreakdownOut,
    SupplierRankingOut,
    SupplierRankingSummaryOut,
    SupplierRefOut,
)
from src.core.config import settings
from src.services import rankingService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ranking"])


# ---------------------------------------------------------------------------
# GET /api/v1/admin/suppliers/{supplier_id}/ranking
# ---------------------------------------------------------------------------

@router.get(
    "/admin/suppliers/{supplier_id}/ranking",
    response_model=SupplierRankingBreakdownOut,
    summary="Explain a supplier's rank for a search context (admin)",
    description=(
        "Returns the raw 30 day inputs, component scores, category/location "
        "match, commercial modifiers, final rank score and a human-readable "
        "explanation for one supplier.  Both slugs are optional free text and "
        "are normalised before matching."
    ),
)
async def get_supplier_ranking_breakdown(
    supplier_id: uuid.UUID,
    db: DBSession,
    category_slug: Optional[str] = Query(default=None, max_length=200),
    location_slug: Optional[str] = Query(default=None, max_length=200),
) -> SupplierRankingBreakdownOut:
    try:
        result = await rankingService.get_supplier_ranking_breakdown(
            db,
            supplier_id,
            category_slug=category_slug,
            location_slug=location_slug,
        )
    except rankingService.SupplierNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        )

    return SupplierRankingBreakdownOut(
        supplier=SupplierRefOut(id=result.supplier_id, name=result.supplier_name),
        context=RankingContextOut(
            category_slug=result.category_slug,
            location_slug=result.location_slug,
        ),
        raw=RankingRawInputsOut(**result.raw),
        components=RankingComponentsOut.model_validate(result.features),
        match=RankingMatchOut(
            category_match=result.category_match,
            location_match=result.location_match,
            match=result.rank.match,
        ),
        final=RankingFinalOut(
            verified_bonus=result.rank.verified_bonus,
            plan_multiplier=result.rank.plan_multiplier,
            rank_score=result.rank.rank_score,
        ),
        explanations=result.explanations,
    )


# ---------------------------------------------------------------------------
# GET /api/v1/admin/ranking-contexts
# ---------------------------------------------------------------------------

@router.get(
    "/admin/ranking-contexts",
    response_model=RankingContextsOut,
    summary="List category and location contexts (admin)",
    description=(
        "Distinct category and location slugs across published suppliers, "
        "with display labels, for the admin ranking inspector pickers."
    ),
)
async def list_ranking_contexts(db: DBSession) -> RankingContextsOut:
    result = await rankingService.list_ranking_contexts(db)
    return RankingContextsOut(
        categories=[ContextOptionOut.model_validate(c) for c in result.categories],
        locations=[ContextOptionOut.model_validate(c) for c in result.locations],
    )


# ---------------------------------------------------------------------------
# GET /api/v1/suppliers/{supplier_id}/ranking
# ---------------------------------------------------------------------------

@router.get(
    "/suppliers/{supplier_id}/ranking",
    response_model=SupplierRankingOut,
    summary="Get a supplier's own ranking summary",
    description=(
        "Context-free base quality for the supplier with bucketed labels and "
        "tips on how to improve response time, activity and acceptance."
    ),
)
async def get_supplier_ranking_summary(
    supplier_id: uuid.UUID,
    db: DBSession,
) -> SupplierRankingOut:
    try:
        result = await rankingService.get_supplier_ranking_summary(db, supplier_id)
    except rankingService.SupplierNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        )

    return SupplierRankingOut(
        ranking=SupplierRankingSummaryOut.model_validate(result),
        tips=result.tips,
    )


# ---------------------------------------------------------------------------
# GET /api/v1/public/seo/suppliers
# ---------------------------------------------------------------------------

@router.get(
    "/public/seo/suppliers",
    response_model=RankedListingOut,
    summary="Ranked suppliers for a category/location landing page",
    description=(
        "Ranks published suppliers for a category and location.  Pass both "
        "slugs explicitly or a combined ``slug`` such as ``florist-london`` "
        "which is split against the known SEO location slugs."
    ),
)
async def list_ranked_suppliers(
    db: DBSession,
    category_slug: Optional[str] = Query(default=None, max_length=200),
    location_slug: Optional[str] = Query(default=None, max_length=200),
    slug: Optional[str] = Query(default=None, max_length=400),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(
        default=settings.default_page_size,
        ge=1,
        le=settings.max_page_size,
        alias="pageSize",
    ),
) -> RankedListingOut:
    try:
        result = await rankingService.rank_suppliers_for_context(
            db,
            category_slug=category_slug,
            location_slug=location_slug,
            slug=slug,
            page=page,
            page_size=page_size,
        )
    except rankingService.UnresolvableSeoSlugError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        )

    return RankedListingOut(
        page=result.page,
        page_size=result.page_size,
        total_count=result.total_count,
        category_slug=result.category_slug,
        location_slug=result.location_slug,
        meta=SeoMetaOut(**result.meta),
        schema_=result.schema,
        rows=[RankedSupplierCardOut.model_validate(r) for r in result.rows],
    )
