"""
Supplier Ranking Algorithm
==========================

Scores a supplier for a marketplace search context by blending four quality
signals with contextual match strength and commercial modifiers:

  1. Smoothed acceptance  (weight: 0.45) -- Bayesian-smoothed 30d acceptance
  2. Response score       (weight: 0.25) -- log-scaled median response time
  3. Activity score       (weight: 0.20) -- exponential decay since last seen
  4. Volume score         (weight: 0.10) -- confidence from quotes sent

The four signals produce a context-free ``base_quality`` in [0, 1].  The rank
score then mixes base quality (0.7) with category/location match (0.3), adds
a verification bonus and applies the plan multiplier:

    rank_score = 100 * (0.7 * base_quality + 0.3 * match + bonus) * multiplier

Every function here is pure and total: malformed or missing inputs degrade
to a neutral or zero value instead of raising, so a supplier always gets a
sortable score.  The only clock dependency is ``activity_score_from_last_active``
which accepts an explicit ``now``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable


# ---------------------------------------------------------------------------
# Tunable constants
# ---------------------------------------------------------------------------

K_PRIOR: float = 10.0            # Virtual quotes drawn from the global prior
HALF_LIFE_DAYS: float = 14.0     # Activity score halves every 14 days
RT_GOOD_MINUTES: float = 30.0    # Responding within this scores 1
RT_BAD_MINUTES: float = 1440.0   # Responding after this scores 0
VOLUME_SATURATION: float = 10.0  # Quotes sent at which volume reaches ~63%

NEUTRAL_RESPONSE_SCORE: float = 0.5
VERIFIED_BONUS: float = 0.05
PRO_PLAN_MULTIPLIER: float = 1.08

_MS_PER_DAY: float = 86_400_000.0


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RankingConfig:
    """Immutable ranking parameters.  Defaults reproduce the reference scoring."""

    k_prior: float = K_PRIOR
    half_life_days: float = HALF_LIFE_DAYS
    rt_good_minutes: float = RT_GOOD_MINUTES
    rt_bad_minutes: float = RT_BAD_MINUTES
    volume_saturation: float = VOLUME_SATURATION

    # Base quality weights (must sum to 1.0)
    acceptance_weight: float = 0.45
    response_weight: float = 0.25
    activity_weight: float = 0.2
    volume_weight: float = 0.1

    # Context match weights (must sum to 1.0)
    category_weight: float = 0.6
    location_weight: float = 0.4

    # Rank weights (base + match must sum to 1.0)
    base_quality_rank_weight: float = 0.7
    match_rank_weight: float = 0.3
    verified_bonus: float = VERIFIED_BONUS
    pro_plan_multiplier: float = PRO_PLAN_MULTIPLIER

    def __post_init__(self) -> None:
        groups = {
            "base quality": (
                self.acceptance_weight,
                self.response_weight,
                self.activity_weight,
                self.volume_weight,
            ),
            "match": (self.category_weight, self.location_weight),
            "rank": (self.base_quality_rank_weight, self.match_rank_weight),
        }
        for name, weights in groups.items():
            weight_sum = sum(weights)
            if abs(weight_sum - 1.0) > 0.01:
                raise ValueError(
                    f"Ranking {name} weights must sum to 1.0, got {weight_sum:.4f}. "
                    f"Weights: {weights}"
                )

    @property
    def base_quality_weights(self) -> tuple[float, float, float, float]:
        return (
            self.acceptance_weight,
            self.response_weight,
            self.activity_weight,
            self.volume_weight,
        )


DEFAULT_RANKING_CONFIG = RankingConfig()


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SupplierRankFeatures:
    """Raw per-supplier metrics for a trailing 30 day window."""

    accepted_30d: Any = 0
    quotes_sent_30d: Any = 0
    global_acceptance_rate_30d: Any = 0.0
    response_minutes_30d: Any = None
    last_active_at: datetime | str | None = None


@dataclass(frozen=True)
class ScoredFeatures:
    """Component signals and the aggregated base quality, all in [0, 1]."""

    smoothed_acceptance: float
    response_score: float
    activity_score: float
    volume_score: float
    base_quality: float


@dataclass(frozen=True)
class RankResult:
    """Final rank composition for one supplier in one search context."""

    match: float
    verified_bonus: float
    plan_multiplier: float
    rank_score: float


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

def _to_number(value: Any) -> float:
    """Coerce to float.  Unparseable input becomes NaN, falsy input 0."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def clamp01(value: Any) -> float:
    """Clamp to [0, 1].  Non-numeric, NaN and infinite input returns 0."""
    if value is None:
        return 0.0
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(n):
        return 0.0
    if n < 0:
        return 0.0
    if n > 1:
        return 1.0
    return n


# ---------------------------------------------------------------------------
# Slug helpers
# ---------------------------------------------------------------------------

_QUOTES_RE = re.compile(r"['\"]")
_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")


def to_slug(value: Any) -> str:
    """Normalise free text to a lowercase, hyphen-separated slug."""
    if not value:
        return ""
    text = str(value).strip().lower()
    text = _QUOTES_RE.sub("", text)
    text = _NON_SLUG_RE.sub("-", text)
    return text.strip("-")


def to_title(slug: Any) -> str:
    """Turn a slug (or raw text) into a space separated title."""
    s = to_slug(slug)
    if not s:
        return ""
    return " ".join(part[:1].upper() + part[1:] for part in s.split("-") if part)


def _is_partial_match(candidate: str, needle: str) -> bool:
    return needle in candidate or candidate in needle


# ---------------------------------------------------------------------------
# Context match
# ---------------------------------------------------------------------------

def category_match_strength(
    category_slug: Any,
    listing_categories: Iterable[Any] | None = None,
) -> float:
    """Tiered category match: exact 1.0, partial 0.6, otherwise 0."""
    needle = to_slug(category_slug)
    if not needle:
        return 0.0

    if not isinstance(listing_categories, (list, tuple, set, frozenset)):
        listing_categories = []
    slugs = [s for s in (to_slug(c) for c in listing_categories) if s]

    if any(s == needle for s in slugs):
        return 1.0
    if any(_is_partial_match(s, needle) for s in slugs):
        return 0.6
    return 0.0


def location_match_strength(
    location_slug: Any,
    location_label: Any = None,
    base_city: Any = None,
    region_label: Any = None,
) -> float:
    """Tiered location match, most specific field first.

    Any exact match outranks any partial match:
    label 1.0 > city 0.9 > region 0.8 > partial label 0.7 >
    partial city 0.65 > partial region 0.6.
    """
    needle = to_slug(location_slug)
    if not needle:
        return 0.0

    label_slug = to_slug(location_label)
    city_slug = to_slug(base_city)
    region_slug = to_slug(region_label)

    if label_slug and label_slug == needle:
        return 1.0
    if city_slug and city_slug == needle:
        return 0.9
    if region_slug and region_slug == needle:
        return 0.8
    if label_slug and _is_partial_match(label_slug, needle):
        return 0.7
    if city_slug and _is_partial_match(city_slug, needle):
        return 0.65
    if region_slug and _is_partial_match(region_slug, needle):
        return 0.6
    return 0.0


# ---------------------------------------------------------------------------
# Commercial modifiers
# ---------------------------------------------------------------------------

def safe_plan_type(value: Any) -> str:
    """Only an explicit ``pro`` is honoured; everything else is ``free``."""
    v = str(value or "free").strip().lower()
    if v == "pro":
        return "pro"
    return "free"


def plan_multiplier(
    value: Any,
    config: RankingConfig = DEFAULT_RANKING_CONFIG,
) -> float:
    return config.pro_plan_multiplier if safe_plan_type(value) == "pro" else 1.0


# ---------------------------------------------------------------------------
# Signal scorers
# ---------------------------------------------------------------------------

def smoothed_acceptance(
    accepted_30d: Any,
    quotes_sent_30d: Any,
    global_acceptance_rate_30d: Any,
    config: RankingConfig = DEFAULT_RANKING_CONFIG,
) -> float:
    """Acceptance rate shrunk toward the marketplace prior.

    ``(accepted + K * prior) / (sent + K)`` with K virtual quotes, so a
    supplier with no history scores exactly the prior.
    """
    accepted = _to_number(accepted_30d)
    sent = _to_number(quotes_sent_30d)
    prior = clamp01(global_acceptance_rate_30d)
    denominator = sent + config.k_prior
    if denominator == 0:
        return 0.0
    return clamp01((accepted + config.k_prior * prior) / denominator)


def response_score_from_minutes(
    response_minutes: Any,
    config: RankingConfig = DEFAULT_RANKING_CONFIG,
) -> float:
    """Log-scaled response score: 1 at <= 30 min, 0 at >= 24 h.

    Unknown or invalid response times score a neutral 0.5.
    """
    if response_minutes is None or isinstance(response_minutes, bool):
        return NEUTRAL_RESPONSE_SCORE
    try:
        rt = float(response_minutes)
    except (TypeError, ValueError):
        return NEUTRAL_RESPONSE_SCORE
    if not math.isfinite(rt) or rt <= 0:
        return NEUTRAL_RESPONSE_SCORE

    good = math.log(config.rt_good_minutes)
    bad = math.log(config.rt_bad_minutes)
    x = (math.log(rt) - good) / (bad - good)
    return 1.0 - clamp01(x)


def _parse_timestamp(value: datetime | str) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def activity_score_from_last_active(
    last_active_at: datetime | str | None,
    now: datetime | None = None,
    config: RankingConfig = DEFAULT_RANKING_CONFIG,
) -> float:
    """Exponential decay with a 14 day half-life.

    Never active scores 0.  Unparseable or future timestamps count as fully
    fresh (clock skew guard).
    """
    if not last_active_at:
        return 0.0

    parsed = _parse_timestamp(last_active_at)
    if parsed is None:
        return 1.0

    reference = now or datetime.now(timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)

    ms = (reference - parsed).total_seconds() * 1000.0
    if not math.isfinite(ms) or ms < 0:
        return 1.0
    days = ms / _MS_PER_DAY
    return math.exp((-math.log(2) * days) / config.half_life_days)


def volume_score_from_quotes_sent(
    quotes_sent_30d: Any,
    config: RankingConfig = DEFAULT_RANKING_CONFIG,
) -> float:
    """Saturating confidence in the supplier's quote history."""
    n = _to_number(quotes_sent_30d)
    if math.isnan(n):
        return 0.0
    n = max(0.0, n)
    return 1.0 - math.exp(-n / config.volume_saturation)


# ---------------------------------------------------------------------------
# Aggregation and composition
# ---------------------------------------------------------------------------

def base_quality_score(
    features: SupplierRankFeatures,
    now: datetime | None = None,
    config: RankingConfig = DEFAULT_RANKING_CONFIG,
) -> ScoredFeatures:
    """Score a supplier in isolation from any search context."""
    smoothed = smoothed_acceptance(
        features.accepted_30d,
        features.quotes_sent_30d,
        features.global_acceptance_rate_30d,
        config,
    )
    response = response_score_from_minutes(features.response_minutes_30d, config)
    activity = activity_score_from_last_active(features.last_active_at, now, config)
    volume = volume_score_from_quotes_sent(features.quotes_sent_30d, config)

    base_quality = (
        config.acceptance_weight * smoothed
        + config.response_weight * response
        + config.activity_weight * activity
        + config.volume_weight * volume
    )

    return ScoredFeatures(
        smoothed_acceptance=smoothed,
        response_score=response,
        activity_score=activity,
        volume_score=volume,
        base_quality=clamp01(base_quality),
    )


def compute_rank(
    features: ScoredFeatures,
    category_match: Any,
    location_match: Any,
    is_verified: Any,
    plan_type: Any,
    config: RankingConfig = DEFAULT_RANKING_CONFIG,
) -> RankResult:
    """Combine base quality, context match and commercial modifiers.

    The result is deliberately not re-clamped: a verified pro supplier with
    perfect signals scores about 113.4.
    """
    match = clamp01(
        config.category_weight * clamp01(category_match)
        + config.location_weight * clamp01(location_match)
    )
    verified_bonus = config.verified_bonus if is_verified else 0.0
    raw = 100.0 * (
        config.base_quality_rank_weight * clamp01(features.base_quality)
        + config.match_rank_weight * match
        + verified_bonus
    )
    multiplier = plan_multiplier(plan_type, config)
    return RankResult(
        match=match,
        verified_bonus=verified_bonus,
        plan_multiplier=multiplier,
        rank_score=raw * multiplier,
    )


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------

def ranking_explanation(
    rank: RankResult,
    features: ScoredFeatures,
    category_match: Any,
    location_match: Any,
    quotes_sent_30d: Any = 0,
    accepted_30d: Any = 0,
) -> list[str]:
    """Human-readable trace of an already computed rank, for admin debugging."""
    items = [
        f"Base quality: {features.base_quality * 100:.1f} / 100",
        (
            f"Smoothed acceptance from {accepted_30d or 0}/{quotes_sent_30d or 0} quotes: "
            f"{features.smoothed_acceptance * 100:.1f}%"
        ),
        f"Response score: {features.response_score * 100:.1f} / 100",
        f"Activity score: {features.activity_score * 100:.1f} / 100",
        f"Volume confidence: {features.volume_score * 100:.1f} / 100",
        (
            f"Context match: {rank.match * 100:.1f} / 100 "
            f"(category {clamp01(category_match) * 100:.0f}%, "
            f"location {clamp01(location_match) * 100:.0f}%)"
        ),
    ]
    if rank.verified_bonus > 0:
        items.append(f"Verified bonus applied (+{rank.verified_bonus:.2f})")
    if rank.plan_multiplier > 1:
        items.append(f"Plan multiplier applied (x{rank.plan_multiplier:.2f})")
    items.append(f"Final rank score: {rank.rank_score:.2f}")
    return items
