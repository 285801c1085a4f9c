"""
Supplier performance signals shown on public listing cards.

Converts a 30 day performance row into display values and trust badges
("Fast responder", "High conversion", "Active").  Thresholds are fixed and
exposed as ``SIGNAL_THRESHOLDS`` so the frontend copy can reference them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional


SIGNAL_THRESHOLDS: dict[str, float] = {
    "fast_responder_hours": 6,
    "fast_responder_min_sent": 3,
    "high_conversion_rate": 0.35,
    "high_conversion_min_sent": 5,
    "active_days": 7,
}


@dataclass
class PerformanceSignals:
    invites_count: Optional[float] = None
    quotes_sent_count: float = 0
    quotes_accepted_count: Optional[float] = None
    acceptance_rate: Optional[float] = None
    typical_response_hours: Optional[float] = None
    last_quote_sent_at: Optional[str] = None
    last_active_at: Optional[str] = None
    badges: list[str] = field(default_factory=list)


def _to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def _to_iso(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def _round_half_up(value: float, digits: int = 0) -> float:
    """Round halves up, so 0.25 h displays as 0.3 h."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _is_recent(iso: str | None, days: float, now: datetime) -> bool:
    if not iso:
        return False
    text = iso[:-1] + "+00:00" if iso.endswith("Z") else iso
    try:
        seen = datetime.fromisoformat(text)
    except ValueError:
        return False
    if seen.tzinfo is None:
        seen = seen.replace(tzinfo=timezone.utc)
    return now - seen <= timedelta(days=days)


def build_performance_signals(
    row: Mapping[str, Any] | None,
    now: datetime | None = None,
) -> PerformanceSignals:
    """Build display signals and badges from a performance row (or ``None``)."""
    row = row or {}
    reference = now or datetime.now(timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)

    quotes_sent_count = _to_number(row.get("quotes_sent_count")) or 0
    acceptance_rate = _to_number(row.get("acceptance_rate"))
    response_seconds = _to_number(row.get("response_time_seconds_median"))
    typical_response_hours = (
        _round_half_up(response_seconds / 3600, 1) if response_seconds is not None else None
    )
    last_active_at = _to_iso(row.get("last_active_at"))

    badges: list[str] = []
    if (
        typical_response_hours is not None
        and typical_response_hours <= SIGNAL_THRESHOLDS["fast_responder_hours"]
        and quotes_sent_count >= SIGNAL_THRESHOLDS["fast_responder_min_sent"]
    ):
        badges.append("Fast responder")
    if (
        acceptance_rate is not None
        and acceptance_rate >= SIGNAL_THRESHOLDS["high_conversion_rate"]
        and quotes_sent_count >= SIGNAL_THRESHOLDS["high_conversion_min_sent"]
    ):
        badges.append("High conversion")
    if _is_recent(last_active_at, SIGNAL_THRESHOLDS["active_days"], reference):
        badges.append("Active")

    return PerformanceSignals(
        invites_count=_to_number(row.get("invites_count")),
        quotes_sent_count=quotes_sent_count,
        quotes_accepted_count=_to_number(row.get("quotes_accepted_count")),
        acceptance_rate=acceptance_rate,
        typical_response_hours=typical_response_hours,
        last_quote_sent_at=_to_iso(row.get("last_quote_sent_at")),
        last_active_at=last_active_at,
        badges=badges,
    )
