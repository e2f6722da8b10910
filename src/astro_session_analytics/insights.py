"""Insight and recommendation generation across imaging sessions."""

from __future__ import annotations

import logging
import math
from dataclasses import replace

from astro_session_analytics.models import (
    Impact,
    ImagingSession,
    InsightType,
    Priority,
    Recommendation,
    RecommendationCategory,
    SessionInsight,
)
from astro_session_analytics.patterns import identify_patterns, summarize_group
from astro_session_analytics.scoring import (
    LOW_ACCEPTANCE,
    LOW_SNR,
    POOR_GUIDE_RMS,
    POOR_HFR,
    VERY_LOW_SNR,
    acceptance_rate,
    clamp,
    finite_mean,
    measured_mean,
    quality_insights,
    sanitize_statistics,
)

logger = logging.getLogger("astro-session-analytics")

# A session counts as weather-affected at or above this cloud cover (percent)
CLOUDY_THRESHOLD = 25.0
# Rejection-rate gap (percentage points) between cloudy and clear sessions
# that makes the weather insight high impact
WEATHER_IMPACT_GAP = 15.0
BRIGHT_MOON_PHASE = 0.7
SEVERE_GUIDE_RMS = 2.5

# Mean equipment scores below these are medium / high impact
GOOD_EQUIPMENT_SCORE = 80.0
POOR_EQUIPMENT_SCORE = 60.0


def rank_insights(insights: list[SessionInsight]) -> list[SessionInsight]:
    """Sort by impact, highest first; equal impact keeps generation order."""
    return sorted(insights, key=lambda i: i.impact.rank, reverse=True)


def rank_recommendations(recommendations: list[Recommendation]) -> list[Recommendation]:
    """Sort by priority, highest first; equal priority keeps generation order."""
    return sorted(recommendations, key=lambda r: r.priority.rank, reverse=True)


def _rejection_rate(session: ImagingSession) -> float | None:
    clean = sanitize_statistics(session.statistics)
    if clean["total_frames"] == 0:
        return None
    return 100.0 - acceptance_rate(clean["total_frames"], clean["accepted_frames"])


def is_weather_affected(session: ImagingSession) -> bool:
    """True when clouds were significant or a weather issue was logged."""
    cloud = session.conditions.cloud_cover
    if cloud is not None and math.isfinite(cloud) and cloud >= CLOUDY_THRESHOLD:
        return True
    return any(issue.type == "weather" for issue in session.issues)


def _equipment_insights(equipment: dict[str, dict]) -> list[SessionInsight]:
    insights = []
    for name, stats in equipment.items():
        score = stats["average_score"]
        if score < POOR_EQUIPMENT_SCORE:
            impact = Impact.HIGH
        elif score < GOOD_EQUIPMENT_SCORE:
            impact = Impact.MEDIUM
        else:
            impact = Impact.LOW
        insights.append(
            SessionInsight(
                type=InsightType.EQUIPMENT,
                title=f"Equipment Performance: {name}",
                description=(
                    f"{name} averaged HFR {stats['average_hfr']:.2f} and SNR "
                    f"{stats['average_snr']:.1f} over {stats['sessions']} session(s), "
                    f"with a mean quality score of {score:.0f}."
                ),
                impact=impact,
            )
        )

    if len(equipment) > 1:
        ranked = sorted(equipment.items(), key=lambda item: item[1]["average_score"], reverse=True)
        (best, best_stats), (worst, worst_stats) = ranked[0], ranked[-1]
        insights.append(
            SessionInsight(
                type=InsightType.EQUIPMENT,
                title="Equipment Performance Leader",
                description=(
                    f"{best} outscored {worst} ({best_stats['average_score']:.0f} vs "
                    f"{worst_stats['average_score']:.0f})."
                ),
                impact=Impact.MEDIUM,
            )
        )
    return insights


def _weather_insight(sessions: list[ImagingSession]) -> SessionInsight:
    """Correlate cloud cover and weather issues with frame rejection."""
    cloudy, clear = [], []
    for session in sessions:
        rate = _rejection_rate(session)
        if rate is None:
            continue
        (cloudy if is_weather_affected(session) else clear).append(rate)

    cloudy_rate = finite_mean(cloudy)
    clear_rate = finite_mean(clear)

    if cloudy_rate is None:
        description = "No weather-affected sessions recorded"
        if clear_rate is not None:
            description += f"; clear sessions rejected {clear_rate:.1f}% of frames"
        return SessionInsight(
            type=InsightType.WEATHER,
            title="Weather Correlation",
            description=description + ".",
            impact=Impact.LOW,
        )

    if clear_rate is None:
        return SessionInsight(
            type=InsightType.WEATHER,
            title="Weather Correlation",
            description=(
                f"Every session was affected by weather or cloud; {cloudy_rate:.1f}% of "
                "frames were rejected on average."
            ),
            impact=Impact.MEDIUM,
        )

    gap = cloudy_rate - clear_rate
    return SessionInsight(
        type=InsightType.WEATHER,
        title="Weather Correlation",
        description=(
            f"Sessions with cloud cover or weather issues rejected {cloudy_rate:.1f}% of "
            f"frames versus {clear_rate:.1f}% in clear weather."
        ),
        impact=Impact.HIGH if gap >= WEATHER_IMPACT_GAP else Impact.MEDIUM,
    )


def _target_insights(sessions: list[ImagingSession]) -> list[SessionInsight]:
    by_type: dict[str, list[ImagingSession]] = {}
    by_target: dict[str, list[ImagingSession]] = {}
    for session in sessions:
        by_type.setdefault(session.target.type, []).append(session)
        by_target.setdefault(session.target.name, []).append(session)

    insights = []
    most_imaged, group = max(by_type.items(), key=lambda item: len(item[1]))
    insights.append(
        SessionInsight(
            type=InsightType.TARGET,
            title="Most Imaged Target Type",
            description=(
                f"{most_imaged} targets account for {len(group)} of {len(sessions)} session(s)."
            ),
            impact=Impact.LOW,
        )
    )

    if len(by_type) > 1:
        scores = {t: summarize_group(g)["average_score"] for t, g in by_type.items()}
        best = max(scores, key=scores.get)
        insights.append(
            SessionInsight(
                type=InsightType.TARGET,
                title="Best Target Type",
                description=f"{best} targets scored highest with a mean quality score of {scores[best]:.0f}.",
                impact=Impact.MEDIUM,
            )
        )

    if len(by_target) > 1:
        scores = {name: summarize_group(g)["average_score"] for name, g in by_target.items()}
        best = max(scores, key=scores.get)
        worst = min(scores, key=scores.get)
        insights.append(
            SessionInsight(
                type=InsightType.TARGET,
                title="Target Performance",
                description=(
                    f"{best} was your best-performing target ({scores[best]:.0f}); "
                    f"{worst} was the weakest ({scores[worst]:.0f})."
                ),
                impact=Impact.LOW,
            )
        )
    return insights


def generate_insights(sessions: list[ImagingSession]) -> list[SessionInsight]:
    """Derive impact-ranked observations from a set of sessions.

    Includes per-session quality problems, equipment performance, the
    correlation between weather and rejected frames, and target statistics.

    Args:
        sessions: Sessions to analyze

    Returns:
        Insights sorted by impact (high first), stable on ties; empty for no sessions
    """
    if not sessions:
        return []

    insights = []
    for session in sessions:
        for insight in quality_insights(session, include_positive=False):
            insights.append(replace(insight, title=f"{session.id}: {insight.title}"))

    patterns = identify_patterns(sessions)
    insights.extend(_equipment_insights(patterns.equipment))
    insights.append(_weather_insight(sessions))
    insights.extend(_target_insights(sessions))

    logger.debug("Generated %d insights from %d sessions", len(insights), len(sessions))
    return rank_insights(insights)


def generate_recommendations(sessions: list[ImagingSession]) -> list[Recommendation]:
    """Derive priority-ranked suggestions from the aggregate of the sessions.

    Args:
        sessions: Sessions to analyze

    Returns:
        Recommendations sorted by priority (high first), stable on ties
    """
    if not sessions:
        return []

    cleaned = [sanitize_statistics(s.statistics) for s in sessions]
    avg_hfr = measured_mean(s.statistics.average_hfr for s in sessions)
    avg_snr = measured_mean(s.statistics.average_snr for s in sessions)
    avg_rms = finite_mean(c["guide_rms"] for c in cleaned)
    avg_acceptance = finite_mean(
        acceptance_rate(c["total_frames"], c["accepted_frames"])
        for c in cleaned
        if c["total_frames"] > 0
    )
    avg_cloud = finite_mean(
        clamp(s.conditions.cloud_cover, 0.0, 100.0, nan_value=0.0)
        for s in sessions
        if s.conditions.cloud_cover is not None
    )
    avg_moon = finite_mean(
        s.conditions.moon_phase for s in sessions if s.conditions.moon_phase is not None
    )
    unresolved_weather = sum(
        1 for s in sessions for issue in s.issues if issue.type == "weather" and not issue.resolved
    )

    recommendations = []
    if avg_hfr is not None and avg_hfr > POOR_HFR:
        recommendations.append(
            Recommendation(
                category=RecommendationCategory.EQUIPMENT,
                title="Improve focus accuracy",
                description=(
                    f"Average HFR of {avg_hfr:.2f} points to focus problems. Refocus more "
                    "often as temperature drops, check for backlash and consider "
                    "temperature compensation."
                ),
                priority=Priority.HIGH,
            )
        )
    if avg_rms is not None and avg_rms > POOR_GUIDE_RMS:
        recommendations.append(
            Recommendation(
                category=RecommendationCategory.EQUIPMENT,
                title="Improve guiding performance",
                description=(
                    f"Guide RMS of {avg_rms:.2f}\" is high. Recheck polar alignment and "
                    "balance, and recalibrate the guider."
                ),
                priority=Priority.HIGH if avg_rms > SEVERE_GUIDE_RMS else Priority.MEDIUM,
            )
        )
    if avg_snr is not None and avg_snr < LOW_SNR:
        recommendations.append(
            Recommendation(
                category=RecommendationCategory.TECHNIQUE,
                title="Increase signal-to-noise ratio",
                description=(
                    f"Average SNR of {avg_snr:.1f} is low. Use longer sub-exposures, a "
                    "higher gain or more total integration time."
                ),
                priority=Priority.HIGH if avg_snr < VERY_LOW_SNR else Priority.MEDIUM,
            )
        )
    if avg_acceptance is not None and avg_acceptance < LOW_ACCEPTANCE:
        recommendations.append(
            Recommendation(
                category=RecommendationCategory.TECHNIQUE,
                title="Reduce frame rejections",
                description=(
                    f"Only {avg_acceptance:.1f}% of frames were kept. Review the causes of "
                    "rejected frames before the next session."
                ),
                priority=Priority.MEDIUM,
            )
        )
    if unresolved_weather or (avg_cloud is not None and avg_cloud >= CLOUDY_THRESHOLD):
        if unresolved_weather:
            reason = f"{unresolved_weather} unresolved weather issue(s)"
        else:
            reason = f"an average cloud cover of {avg_cloud:.0f}%"
        recommendations.append(
            Recommendation(
                category=RecommendationCategory.PLANNING,
                title="Plan sessions around weather",
                description=(
                    f"Recent sessions show {reason}. Check forecasts before starting and "
                    "keep backup targets in clearer parts of the sky."
                ),
                priority=Priority.MEDIUM if unresolved_weather else Priority.LOW,
            )
        )
    if avg_moon is not None and avg_moon >= BRIGHT_MOON_PHASE:
        recommendations.append(
            Recommendation(
                category=RecommendationCategory.PLANNING,
                title="Schedule around the moon",
                description=(
                    f"Average moon phase was {avg_moon:.2f}. Favor narrowband filters or "
                    "emission nebulae on bright nights and save broadband targets for dark skies."
                ),
                priority=Priority.LOW,
            )
        )

    return rank_recommendations(recommendations)
