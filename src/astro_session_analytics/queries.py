"""Aggregate queries over session collections."""

from __future__ import annotations

import logging
import math
from collections import Counter
from datetime import datetime

from astro_session_analytics.insights import generate_recommendations
from astro_session_analytics.models import (
    AnalyticsMetrics,
    EquipmentComparison,
    ImagingSession,
    MetricComparison,
)
from astro_session_analytics.patterns import summarize_group, to_utc
from astro_session_analytics.scoring import finite_mean, measured_mean, overall_score

logger = logging.getLogger("astro-session-analytics")

# Sessions scoring at least this are used to derive preferred conditions
SUCCESSFUL_SCORE = 80.0

# Fallback ranges when no session qualifies as successful
DEFAULT_BEST_CONDITIONS = {
    "temperature": {"min": 0.0, "max": 30.0},
    "humidity": {"min": 0.0, "max": 80.0},
    "seeing": {"min": 1.0, "max": 3.0},
    "moon_phase": {"min": 0.0, "max": 0.3},
}


def _as_finite(value) -> float | None:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def _finite_or_zero(value) -> float:
    finite = _as_finite(value)
    return 0.0 if finite is None else finite


def calculate_metrics(sessions: list[ImagingSession]) -> AnalyticsMetrics:
    """Compute summary statistics across sessions in a single pass.

    averageHFR/averageSNR are unweighted means of each session's reported
    averages; non-finite values are left out of the mean.

    Args:
        sessions: Sessions to summarize (may be empty)

    Returns:
        AnalyticsMetrics; all zeros and empty maps for an empty collection
    """
    total_sessions = 0
    total_time = 0.0
    total_frames = 0
    hfr_sum = snr_sum = 0.0
    hfr_count = snr_count = 0
    equipment_usage: Counter = Counter()
    target_types: Counter = Counter()

    for session in sessions:
        stats = session.statistics
        total_sessions += 1
        total_time += _finite_or_zero(session.duration)
        total_frames += int(_finite_or_zero(stats.total_frames))

        hfr = _as_finite(stats.average_hfr)
        if hfr is not None:
            hfr_sum += hfr
            hfr_count += 1
        else:
            logger.debug("Skipping non-finite HFR in session %s", session.id)
        snr = _as_finite(stats.average_snr)
        if snr is not None:
            snr_sum += snr
            snr_count += 1
        else:
            logger.debug("Skipping non-finite SNR in session %s", session.id)

        equipment_usage[session.equipment.name] += 1
        target_types[session.target.type] += 1

    return AnalyticsMetrics(
        total_sessions=total_sessions,
        total_imaging_time=total_time,
        average_session_duration=total_time / total_sessions if total_sessions else 0.0,
        total_frames=total_frames,
        average_hfr=hfr_sum / hfr_count if hfr_count else 0.0,
        average_snr=snr_sum / snr_count if snr_count else 0.0,
        equipment_usage=dict(equipment_usage),
        target_types=dict(target_types),
    )


def _compare(
    name1: str,
    value1: float | None,
    name2: str,
    value2: float | None,
    lower_is_better: bool,
) -> MetricComparison:
    """Decide which side wins one metric. A side without data loses; equal values draw."""
    if value1 is None and value2 is None:
        better = None
    elif value2 is None:
        better = name1
    elif value1 is None:
        better = name2
    elif value1 == value2:
        better = None
    elif (value1 < value2) == lower_is_better:
        better = name1
    else:
        better = name2
    return MetricComparison(
        value1=value1,
        value2=value2,
        better=better,
        lower_is_better=lower_is_better,
    )


def compare_equipment(
    name1: str,
    sessions1: list[ImagingSession],
    name2: str,
    sessions2: list[ImagingSession],
) -> EquipmentComparison:
    """Compare two equipment setups head to head.

    Metrics compared: hfr (lower better), snr, efficiency (mean frame
    acceptance) and score (mean overall quality score). The winner takes the
    most metrics; a split is decided by the higher mean score, then by
    argument order (name1).

    Args:
        name1: Name of the first setup
        sessions1: Sessions captured with the first setup
        name2: Name of the second setup
        sessions2: Sessions captured with the second setup

    Returns:
        EquipmentComparison with per-metric winners and an overall winner
    """
    summary1 = summarize_group(sessions1) if sessions1 else None
    summary2 = summarize_group(sessions2) if sessions2 else None

    def value(sessions: list[ImagingSession], summary: dict | None, key: str) -> float | None:
        if summary is None:
            return None
        if key == "hfr":
            return measured_mean(s.statistics.average_hfr for s in sessions)
        if key == "snr":
            return measured_mean(s.statistics.average_snr for s in sessions)
        return summary[key]

    compared = {
        "hfr": ("hfr", True),
        "snr": ("snr", False),
        "efficiency": ("acceptance_rate", False),
        "score": ("average_score", False),
    }
    results = {
        label: _compare(
            name1,
            value(sessions1, summary1, key),
            name2,
            value(sessions2, summary2, key),
            lower_is_better,
        )
        for label, (key, lower_is_better) in compared.items()
    }

    wins1 = sum(1 for r in results.values() if r.better == name1)
    wins2 = sum(1 for r in results.values() if r.better == name2)
    if wins1 != wins2:
        winner = name1 if wins1 > wins2 else name2
    else:
        score1 = results["score"].value1 or 0.0
        score2 = results["score"].value2 or 0.0
        winner = name2 if score2 > score1 else name1
        logger.debug("Equipment metrics split %d-%d, decided by score", wins1, wins2)

    return EquipmentComparison(
        equipment1=name1,
        equipment2=name2,
        metrics=results,
        winner=winner,
    )


def filter_sessions_by_date_range(
    sessions: list[ImagingSession],
    start: datetime,
    end: datetime,
) -> list[ImagingSession]:
    """Sessions whose date falls within [start, end], in input order."""
    start_utc, end_utc = to_utc(start), to_utc(end)
    return [s for s in sessions if start_utc <= to_utc(s.date) <= end_utc]


def find_best_conditions(
    sessions: list[ImagingSession],
    min_score: float = SUCCESSFUL_SCORE,
) -> dict:
    """Ranges of conditions observed during successful sessions.

    Args:
        sessions: Sessions to inspect
        min_score: Overall score a session needs to count as successful

    Returns:
        Dict of temperature, humidity, seeing and moon_phase -> {min, max};
        DEFAULT_BEST_CONDITIONS when no session qualifies
    """
    successful = [s for s in sessions if overall_score(s) >= min_score]
    if not successful:
        return {key: dict(bounds) for key, bounds in DEFAULT_BEST_CONDITIONS.items()}

    best = {}
    for key, default in DEFAULT_BEST_CONDITIONS.items():
        values = [
            getattr(s.conditions, key)
            for s in successful
            if getattr(s.conditions, key) is not None and math.isfinite(getattr(s.conditions, key))
        ]
        best[key] = {"min": min(values), "max": max(values)} if values else dict(default)
    return best


def get_target_analysis(sessions: list[ImagingSession], target_id: str) -> dict:
    """Summarize all sessions spent on one target.

    Args:
        sessions: Sessions to search
        target_id: Target identifier (e.g. 'M31')

    Returns:
        Dict with matching session ids, average score, best conditions and
        recommendations for the next attempt
    """
    matching = [s for s in sessions if s.target.id == target_id]
    if not matching:
        return {
            "target_id": target_id,
            "session_count": 0,
            "session_ids": [],
            "average_score": 0.0,
            "best_conditions": None,
            "recommendations": ["No previous sessions found for this target"],
        }

    return {
        "target_id": target_id,
        "target_name": matching[0].target.name,
        "session_count": len(matching),
        "session_ids": [s.id for s in matching],
        "average_score": round(finite_mean(overall_score(s) for s in matching) or 0.0, 1),
        "best_conditions": find_best_conditions(matching),
        "recommendations": [r.title for r in generate_recommendations(matching)],
    }


def sessions_in_range(sessions: list[ImagingSession], start: datetime, end: datetime) -> dict:
    """Date-range listing with each session's overall score."""
    matching = filter_sessions_by_date_range(sessions, start, end)
    return {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "session_count": len(matching),
        "sessions": [
            {
                "id": s.id,
                "date": s.date.isoformat(),
                "target": s.target.name,
                "equipment": s.equipment.name,
                "overall_score": overall_score(s),
            }
            for s in matching
        ],
    }
