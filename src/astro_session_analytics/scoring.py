"""Quality scoring for a single imaging session."""

from __future__ import annotations

import logging
import math

from astro_session_analytics.models import (
    Impact,
    ImagingSession,
    InsightType,
    SessionAnalysis,
    SessionInsight,
    SessionMetrics,
    SessionStatistics,
)

logger = logging.getLogger("astro-session-analytics")

# Physically valid ranges; values outside are clamped before scoring
HFR_RANGE = (0.0, 20.0)
SNR_RANGE = (0.0, 1000.0)
GUIDE_RMS_RANGE = (0.0, 20.0)
PERCENT_RANGE = (0.0, 100.0)
MAX_FRAMES = 10_000_000
MAX_INTEGRATION = 100_000.0  # minutes

# Focus: full marks at or below EXCELLENT_HFR, nothing at or above FAILED_HFR
EXCELLENT_HFR = 1.5
GOOD_HFR = 2.5
POOR_HFR = 3.0
FAILED_HFR = 4.0

# Signal: saturates at EXCELLENT_SNR
EXCELLENT_SNR = 50.0
GOOD_SNR = 40.0
LOW_SNR = 30.0
VERY_LOW_SNR = 20.0

# Guiding: full marks at or below EXCELLENT_GUIDE_RMS, nothing at FAILED_GUIDE_RMS
EXCELLENT_GUIDE_RMS = 0.5
GOOD_GUIDE_RMS = 1.0
POOR_GUIDE_RMS = 2.0
FAILED_GUIDE_RMS = 3.0

HIGH_ACCEPTANCE = 90.0
LOW_ACCEPTANCE = 70.0

SCORE_WEIGHTS = {
    "focus": 0.30,
    "signal": 0.30,
    "guiding": 0.20,
    "efficiency": 0.20,
}


def clamp(value, low: float, high: float, nan_value: float) -> float:
    """Coerce value into a finite float within [low, high].

    Infinities land on the nearest bound; NaN and non-numeric values become
    `nan_value`.
    """
    try:
        value = float(value)
    except (TypeError, ValueError):
        return nan_value
    if math.isnan(value):
        return nan_value
    return min(max(value, low), high)


def sanitize_statistics(stats: SessionStatistics) -> dict:
    """Return the statistics needed for scoring, clamped to valid ranges.

    NaN maps to the worst value of each metric so an unreadable measurement
    never improves a score.
    """
    total = int(clamp(stats.total_frames, 0, MAX_FRAMES, 0))
    accepted = min(int(clamp(stats.accepted_frames, 0, MAX_FRAMES, 0)), total)
    clean = {
        "total_frames": total,
        "accepted_frames": accepted,
        "integration": clamp(stats.total_integration, 0.0, MAX_INTEGRATION, 0.0),
        "hfr": clamp(stats.average_hfr, *HFR_RANGE, nan_value=HFR_RANGE[1]),
        "snr": clamp(stats.average_snr, *SNR_RANGE, nan_value=SNR_RANGE[0]),
        "guide_rms": clamp(stats.guide_rms, *GUIDE_RMS_RANGE, nan_value=GUIDE_RMS_RANGE[1]),
    }
    raw = (stats.average_hfr, stats.average_snr, stats.guide_rms)
    cleaned = (clean["hfr"], clean["snr"], clean["guide_rms"])
    if raw != cleaned:
        logger.debug("Clamped out-of-range statistics: %s -> %s", raw, cleaned)
    return clean


def acceptance_rate(total_frames: int, accepted_frames: int) -> float:
    """Accepted frames as a percentage of captured frames (0 when none captured)."""
    if total_frames <= 0:
        return 0.0
    return clamp(accepted_frames / total_frames * 100, *PERCENT_RANGE, nan_value=0.0)


def _linear_score(value: float, best: float, worst: float) -> float:
    """100 at `best`, 0 at `worst`, linear in between (works in either direction)."""
    fraction = (worst - value) / (worst - best)
    return clamp(fraction * 100, 0.0, 100.0, nan_value=0.0)


def focus_score(hfr: float) -> float:
    """Focus sub-score. An HFR of 0 means focus was not measured."""
    if hfr <= 0:
        return 0.0
    return _linear_score(hfr, EXCELLENT_HFR, FAILED_HFR)


def signal_score(snr: float) -> float:
    return min(snr / EXCELLENT_SNR, 1.0) * 100


def guiding_score(guide_rms: float) -> float:
    return _linear_score(guide_rms, EXCELLENT_GUIDE_RMS, FAILED_GUIDE_RMS)


def component_scores(clean: dict) -> dict[str, float]:
    """Compute the weighted components from sanitized statistics."""
    return {
        "focus": round(focus_score(clean["hfr"]), 1),
        "signal": round(signal_score(clean["snr"]), 1),
        "guiding": round(guiding_score(clean["guide_rms"]), 1),
        "efficiency": round(acceptance_rate(clean["total_frames"], clean["accepted_frames"]), 1),
    }


def overall_score(session: ImagingSession) -> float:
    """Weighted composite quality score in [0, 100].

    A session that captured no frames scores 0 regardless of its other metrics.
    """
    clean = sanitize_statistics(session.statistics)
    return _overall_from(clean, component_scores(clean))


def _overall_from(clean: dict, scores: dict[str, float]) -> float:
    if clean["total_frames"] == 0:
        return 0.0
    total = sum(SCORE_WEIGHTS[name] * scores[name] for name in SCORE_WEIGHTS)
    return round(clamp(total, 0.0, 100.0, nan_value=0.0), 1)


def quality_insights(
    session: ImagingSession,
    include_positive: bool = True,
) -> list[SessionInsight]:
    """Quality observations for one session.

    Problems (poor focus, low signal, unsteady guiding, heavy rejection) are
    always reported. With include_positive, strengths are reported as well at
    low impact.
    """
    clean = sanitize_statistics(session.statistics)
    hfr, snr, rms = clean["hfr"], clean["snr"], clean["guide_rms"]
    total = clean["total_frames"]
    rate = acceptance_rate(total, clean["accepted_frames"])

    insights = []
    if total == 0:
        insights.append(
            _quality(
                "No Frames Captured",
                "The session recorded no frames, so no data contributes to integration.",
                Impact.HIGH,
            )
        )
    if hfr > POOR_HFR:
        insights.append(
            _quality(
                "Focus Issues Detected",
                f"Average HFR of {hfr:.2f} is above {POOR_HFR}, indicating soft focus "
                "or tilt.",
                Impact.HIGH,
            )
        )
    if snr < LOW_SNR:
        insights.append(
            _quality(
                "Low Signal-to-Noise Ratio",
                f"Average SNR of {snr:.1f} is below {LOW_SNR:.0f} and may limit image quality.",
                Impact.HIGH if snr < VERY_LOW_SNR else Impact.MEDIUM,
            )
        )
    if rms > POOR_GUIDE_RMS:
        insights.append(
            _quality(
                "Guiding Issues Detected",
                f"Guide RMS of {rms:.2f}\" is above {POOR_GUIDE_RMS}\" and indicates "
                "tracking problems.",
                Impact.HIGH,
            )
        )
    if total > 0 and rate < LOW_ACCEPTANCE:
        insights.append(
            _quality(
                "High Frame Rejection",
                f"Only {rate:.1f}% of {total} frames were accepted.",
                Impact.MEDIUM,
            )
        )

    if include_positive:
        if 0 < hfr <= GOOD_HFR:
            insights.append(
                _quality("Sharp Focus", f"Average HFR of {hfr:.2f} indicates good focus.", Impact.LOW)
            )
        if snr >= GOOD_SNR:
            insights.append(
                _quality("Strong Signal", f"Average SNR of {snr:.1f} is excellent.", Impact.LOW)
            )
        if total > 0 and rms <= GOOD_GUIDE_RMS:
            insights.append(
                _quality("Steady Guiding", f"Guide RMS of {rms:.2f}\" kept stars round.", Impact.LOW)
            )
        if total > 0 and rate >= HIGH_ACCEPTANCE:
            insights.append(
                _quality(
                    "High Frame Acceptance",
                    f"{rate:.1f}% of frames were accepted.",
                    Impact.LOW,
                )
            )

    return insights


def _quality(title: str, description: str, impact: Impact) -> SessionInsight:
    return SessionInsight(
        type=InsightType.QUALITY,
        title=title,
        description=description,
        impact=impact,
    )


def analyze_session(session: ImagingSession) -> SessionAnalysis:
    """Score a single session and derive its insights and recommendations.

    Args:
        session: Session to analyze

    Returns:
        SessionAnalysis with overall score (0-100), efficiency metrics,
        impact-ranked insights and priority-ranked recommendations
    """
    # import here to avoid circular import (insights builds on scoring)
    from astro_session_analytics.insights import generate_recommendations, rank_insights

    clean = sanitize_statistics(session.statistics)
    scores = component_scores(clean)
    efficiency = acceptance_rate(clean["total_frames"], clean["accepted_frames"])

    metrics = SessionMetrics(
        efficiency=efficiency,
        integration_time=clean["integration"],
        total_frames=clean["total_frames"],
        accepted_frames=clean["accepted_frames"],
        frame_acceptance_rate=efficiency,
    )

    return SessionAnalysis(
        session_id=session.id,
        overall_score=_overall_from(clean, scores),
        metrics=metrics,
        insights=rank_insights(quality_insights(session)),
        recommendations=generate_recommendations([session]),
        scores=scores,
    )


def finite_mean(values) -> float | None:
    """Mean of the finite values, or None when there are none."""
    total = 0.0
    count = 0
    for value in values:
        try:
            value = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(value):
            total += value
            count += 1
    return total / count if count else None


def measured_mean(values) -> float | None:
    """Mean of the finite, positive values; 0 marks an unmeasured HFR or SNR."""
    return finite_mean(v for v in values if isinstance(v, (int, float)) and v > 0)
