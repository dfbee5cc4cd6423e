from __future__ import annotations

from datetime import datetime
from typing import Optional

from trending_reads.dates import utc_now

# (upper bound in hours, recency points, engagement multiplier)
AGE_BUCKETS: tuple[tuple[float, int, float], ...] = (
    (6, 80, 3.0),
    (24, 65, 2.5),
    (48, 50, 2.0),
    (72, 40, 1.5),
    (168, 25, 1.0),
)
OLDEST_RECENCY = 10
OLDEST_MULTIPLIER = 0.5

RICH_DESCRIPTION_CHARS = 100
RICH_DESCRIPTION_BONUS = 8
POSITION_BONUS_MAX = 12
POSITION_BONUS_STEP = 2
UNDATED_BASE = 30
UNDATED_STEP = 3
UNDATED_FLOOR = 5


def age_hours(published_at: Optional[datetime], now: Optional[datetime] = None) -> Optional[float]:
    if published_at is None:
        return None
    now = now or utc_now()
    # future timestamps (clock skew) count as brand new
    return max(0.0, (now - published_at).total_seconds() / 3600.0)


def recency_points(hours: float) -> int:
    for bound, points, _mult in AGE_BUCKETS:
        if hours < bound:
            return points
    return OLDEST_RECENCY


def recency_multiplier(hours: Optional[float]) -> float:
    if hours is None:
        return 1.0
    for bound, _points, mult in AGE_BUCKETS:
        if hours < bound:
            return mult
    return OLDEST_MULTIPLIER


def compute_score(
    published_at: Optional[datetime],
    index: int,
    description_length: int,
    now: Optional[datetime] = None,
) -> float:
    """Heuristic score for feed items: recency bucket plus richness and position bonuses."""

    hours = age_hours(published_at, now)
    if hours is not None:
        recency = recency_points(hours)
    else:
        recency = max(UNDATED_FLOOR, UNDATED_BASE - index * UNDATED_STEP)

    bonus = RICH_DESCRIPTION_BONUS if description_length > RICH_DESCRIPTION_CHARS else 0
    position = max(0, POSITION_BONUS_MAX - index * POSITION_BONUS_STEP)
    return float(recency + bonus + position)


def compute_engagement_score(
    points: int | float,
    comments: int | float,
    published_at: Optional[datetime],
    comment_weight: float = 2.0,
    now: Optional[datetime] = None,
) -> float:
    """Score for search/listing backends: engagement weighted by age.

    The range is unrelated to compute_score; results must only be normalized
    against articles of the same kind.
    """

    engagement = float(points or 0) + float(comments or 0) * comment_weight
    return engagement * recency_multiplier(age_hours(published_at, now))
