"""
Rank Feature Refresher Job.

Recomputes the precomputed component columns of ``supplier_rank_features_30d``
(smoothed_acceptance, response_score, activity_score, volume_score,
base_quality) from each row's raw 30 day counts and the current marketplace
prior.  Ranking reads these columns when present, so refreshing them keeps
listing pages from re-scoring every supplier on every request.

Activity decays with time, so the job is meant to run at least daily
(cron, Celery Beat or a platform scheduler).

Usage with a simple cron runner::

    python -m src.jobs.rankFeatureRefresher
"""

from __future__ import annotations

import asyncio
import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.algorithms.supplierRanking import SupplierRankFeatures, base_quality_score
from src.models import SupplierRankFeatures30d
from src.services.rankingService import get_global_acceptance_rate

logger = logging.getLogger(__name__)

# Stored scores within this distance of the recomputed value count as unchanged
CHANGE_TOLERANCE = 1e-9


@dataclass
class RefreshResult:
    """Result for a single supplier's feature refresh."""
    supplier_id: uuid.UUID
    previous_base_quality: float | None
    new_base_quality: float


@dataclass
class RefreshBatchResult:
    """Aggregate result of a refresh run."""
    rows_processed: int
    rows_changed: int
    mean_base_quality: float
    results: list[RefreshResult] = field(default_factory=list)


def _changed(previous: float | None, new: float) -> bool:
    if previous is None or not math.isfinite(previous):
        return True
    return abs(previous - new) > CHANGE_TOLERANCE


# ---------------------------------------------------------------------------
# Main job
# ---------------------------------------------------------------------------

async def refresh_rank_features(
    db: AsyncSession,
    now: datetime | None = None,
) -> RefreshBatchResult:
    """Recompute stored component scores for every feature row.

    Args:
        db: Async database session.
        now: Reference time for activity decay (defaults to current UTC).

    Returns:
        RefreshBatchResult with aggregate and per-supplier results.
    """
    reference = now or datetime.now(timezone.utc)
    logger.info("Starting rank feature refresh at %s...", reference.isoformat())

    prior = await get_global_acceptance_rate(db)
    rows = (await db.execute(select(SupplierRankFeatures30d))).scalars().all()

    results: list[RefreshResult] = []
    rows_changed = 0
    total_quality = 0.0

    for row in rows:
        scored = base_quality_score(
            SupplierRankFeatures(
                accepted_30d=row.accepted_30d or 0,
                quotes_sent_30d=row.quotes_sent_30d or 0,
                global_acceptance_rate_30d=prior,
                response_minutes_30d=row.response_time_median_minutes_30d,
                last_active_at=row.last_active_at,
            ),
            now=reference,
        )
        previous = row.base_quality

        row.smoothed_acceptance = scored.smoothed_acceptance
        row.response_score = scored.response_score
        row.activity_score = scored.activity_score
        row.volume_score = scored.volume_score
        row.base_quality = scored.base_quality

        if _changed(previous, scored.base_quality):
            rows_changed += 1
        total_quality += scored.base_quality
        results.append(
            RefreshResult(
                supplier_id=row.supplier_id,
                previous_base_quality=previous,
                new_base_quality=scored.base_quality,
            )
        )

    await db.flush()

    batch = RefreshBatchResult(
        rows_processed=len(results),
        rows_changed=rows_changed,
        mean_base_quality=total_quality / len(results) if results else 0.0,
        results=results,
    )

    logger.info(
        "Rank feature refresh completed: processed=%d, changed=%d, mean_base_quality=%.4f, prior=%.4f",
        batch.rows_processed,
        batch.rows_changed,
        batch.mean_base_quality,
        prior,
    )

    return batch


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

async def _cli_main() -> None:
    """Entry point for running the refresher from the command line."""
    from src.api.deps import async_session_factory

    async with async_session_factory() as session:
        try:
            result = await refresh_rank_features(session)
            await session.commit()
            print(  # noqa: T201
                f"Rank feature refresh completed: "
                f"processed={result.rows_processed}, "
                f"changed={result.rows_changed}, "
                f"mean_base_quality={result.mean_base_quality:.4f}"
            )
        except Exception:
            await session.rollback()
            logger.exception("Rank feature refresh failed")
            raise
        finally:
            await session.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_cli_main())
