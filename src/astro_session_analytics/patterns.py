"""Trend detection and cross-session pattern identification."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from astro_session_analytics.models import ImagingSession, Patterns, TrendDirection, TrendResult
from astro_session_analytics.scoring import acceptance_rate, finite_mean, overall_score, sanitize_statistics

logger = logging.getLogger("astro-session-analytics")

# Relative change (fraction of the earlier mean) needed to call a trend
TREND_THRESHOLD = 0.05
MIN_TREND_SESSIONS = 3

SEASONS = {
    12: "winter",
    1: "winter",
    2: "winter",
    3: "spring",
    4: "spring",
    5: "spring",
    6: "summer",
    7: "summer",
    8: "summer",
    9: "fall",
    10: "fall",
    11: "fall",
}

WEATHER_VARIABLES = ("cloud_cover", "seeing", "transparency")


def to_utc(dt: datetime) -> datetime:
    """Normalize a datetime to UTC for calendar bucketing.

    Naive datetimes are taken to be UTC already. Dates at the edge of the
    representable range keep their wall-clock fields instead of overflowing.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    try:
        return dt.astimezone(timezone.utc)
    except OverflowError:
        return dt.replace(tzinfo=timezone.utc)


def season_for_month(month: int) -> str:
    """Map a calendar month (1-12) to its meteorological season name."""
    return SEASONS[month]


def _direction(
    earlier: float | None,
    later: float | None,
    lower_is_better: bool,
    threshold: float,
) -> TrendDirection:
    """Classify the relative change from earlier to later.

    A missing or zero earlier mean (metric not measured) yields STABLE.
    """
    if earlier is None or later is None or earlier <= 0:
        return TrendDirection.STABLE

    change = (later - earlier) / earlier
    if abs(change) < threshold:
        return TrendDirection.STABLE

    improvement = -change if lower_is_better else change
    return TrendDirection.IMPROVING if improvement > 0 else TrendDirection.DECLINING


def combine_trends(*trends: TrendDirection) -> TrendDirection:
    """Overall direction: improving or declining only when no sub-trend disagrees."""
    improving = TrendDirection.IMPROVING in trends
    declining = TrendDirection.DECLINING in trends
    if improving and not declining:
        return TrendDirection.IMPROVING
    if declining and not improving:
        return TrendDirection.DECLINING
    return TrendDirection.STABLE


def analyze_trends(
    sessions: list[ImagingSession],
    threshold: float = TREND_THRESHOLD,
) -> TrendResult:
    """Detect focus and signal quality trends across sessions.

    Sessions are ordered by date, then split into an earlier and a later half
    of floor(n/2) sessions each; with an odd count the middle session belongs
    to neither half. The halves' mean HFR and SNR are compared.

    Args:
        sessions: Sessions in any order
        threshold: Minimum relative change (fraction of the earlier mean)
            to report a direction instead of stable

    Returns:
        TrendResult with hfr, snr and overall directions
    """
    if len(sessions) < MIN_TREND_SESSIONS:
        return TrendResult()

    ordered = sorted(sessions, key=lambda s: to_utc(s.date))
    half = len(ordered) // 2
    earlier, later = ordered[:half], ordered[-half:]

    hfr_trend = _direction(
        finite_mean(s.statistics.average_hfr for s in earlier),
        finite_mean(s.statistics.average_hfr for s in later),
        lower_is_better=True,
        threshold=threshold,
    )
    snr_trend = _direction(
        finite_mean(s.statistics.average_snr for s in earlier),
        finite_mean(s.statistics.average_snr for s in later),
        lower_is_better=False,
        threshold=threshold,
    )

    logger.debug("Trends over %d sessions: hfr=%s snr=%s", len(ordered), hfr_trend, snr_trend)
    return TrendResult(
        hfr_trend=hfr_trend,
        snr_trend=snr_trend,
        overall_trend=combine_trends(hfr_trend, snr_trend),
    )


def summarize_group(sessions: list[ImagingSession]) -> dict:
    """Aggregate quality figures for a group of sessions."""
    rates = []
    for session in sessions:
        clean = sanitize_statistics(session.statistics)
        if clean["total_frames"] > 0:
            rates.append(acceptance_rate(clean["total_frames"], clean["accepted_frames"]))

    return {
        "sessions": len(sessions),
        "average_hfr": finite_mean(s.statistics.average_hfr for s in sessions) or 0.0,
        "average_snr": finite_mean(s.statistics.average_snr for s in sessions) or 0.0,
        "average_score": finite_mean(overall_score(s) for s in sessions) or 0.0,
        "acceptance_rate": finite_mean(rates) or 0.0,
        "total_imaging_time": sum(s.duration for s in sessions if math.isfinite(s.duration)),
    }


def _weather_summary(values: list[float]) -> dict:
    if not values:
        return {"min": 0.0, "max": 0.0, "average": 0.0, "samples": 0}
    return {
        "min": min(values),
        "max": max(values),
        "average": sum(values) / len(values),
        "samples": len(values),
    }


def identify_patterns(sessions: list[ImagingSession]) -> Patterns:
    """Group sessions by season, weather, equipment and time of night.

    Calendar fields (season, hour, month) come from the session date in UTC.

    Args:
        sessions: Sessions to group

    Returns:
        Patterns with seasonal, weather, equipment and temporal breakdowns
    """
    by_season: dict[str, list[ImagingSession]] = {}
    by_equipment: dict[str, list[ImagingSession]] = {}
    hourly: dict[int, int] = {}
    monthly: dict[int, int] = {}
    weather_values: dict[str, list[float]] = {name: [] for name in WEATHER_VARIABLES}

    for session in sessions:
        when = to_utc(session.date)
        by_season.setdefault(season_for_month(when.month), []).append(session)
        by_equipment.setdefault(session.equipment.name, []).append(session)
        hourly[when.hour] = hourly.get(when.hour, 0) + 1
        monthly[when.month] = monthly.get(when.month, 0) + 1

        for name in WEATHER_VARIABLES:
            value = getattr(session.conditions, name)
            if value is not None and math.isfinite(value):
                weather_values[name].append(value)

    return Patterns(
        seasonal={season: summarize_group(group) for season, group in by_season.items()},
        weather={name: _weather_summary(values) for name, values in weather_values.items()},
        equipment={name: summarize_group(group) for name, group in by_equipment.items()},
        temporal={"hourly": hourly, "monthly": monthly},
    )
