"""Tests for single-session quality scoring."""

import math

import pytest

from astro_session_analytics.models import InsightType
from astro_session_analytics.scoring import (
    acceptance_rate,
    analyze_session,
    clamp,
    finite_mean,
    focus_score,
    measured_mean,
    overall_score,
    quality_insights,
    sanitize_statistics,
)


class TestAnalyzeSession:
    def test_analyzes_single_session(self, session1):
        """Analysis carries the session id, a bounded score and insights."""
        analysis = analyze_session(session1)

        assert analysis.session_id == "session1"
        assert 0 < analysis.overall_score <= 100
        assert len(analysis.insights) > 0
        assert set(analysis.scores) == {"focus", "signal", "guiding", "efficiency"}

    def test_efficiency_metrics(self, session1):
        """Efficiency is accepted/total frames as a percentage."""
        analysis = analyze_session(session1)

        assert analysis.metrics.efficiency == pytest.approx(93.75, abs=0.1)
        assert analysis.metrics.integration_time == 225
        assert analysis.metrics.frame_acceptance_rate == pytest.approx(93.75, abs=0.1)

    def test_good_session_score(self, session1):
        """Weighted score: 0.3*72 + 0.3*87 + 0.2*88 + 0.2*93.8."""
        assert analyze_session(session1).overall_score == pytest.approx(84.1, abs=0.1)

    def test_quality_issues_lower_score(self, session1):
        """Poor focus, low SNR and poor guiding drop the score below 60."""
        poor = session1.with_statistics(average_hfr=4.5, average_snr=20, guide_rms=2.5)
        analysis = analyze_session(poor)

        assert analysis.overall_score < 60
        assert any(i.type == InsightType.QUALITY for i in analysis.insights)
        titles = {i.title for i in analysis.insights}
        assert "Focus Issues Detected" in titles
        assert "Guiding Issues Detected" in titles

    def test_no_frames_scores_zero(self, session1):
        """A session without frames scores 0 with 0% efficiency."""
        empty = session1.with_statistics(total_frames=0, accepted_frames=0)
        analysis = analyze_session(empty)

        assert analysis.overall_score == 0
        assert analysis.metrics.efficiency == 0
        assert any(i.title == "No Frames Captured" for i in analysis.insights)

    def test_insights_sorted_by_impact(self, session1):
        poor = session1.with_statistics(average_hfr=4.5, average_snr=25, accepted_frames=10)
        ranks = [i.impact.rank for i in analyze_session(poor).insights]
        assert ranks == sorted(ranks, reverse=True)

    def test_good_session_has_no_recommendations(self, session1):
        assert analyze_session(session1).recommendations == []

    def test_does_not_modify_session(self, session1):
        before = session1.to_dict()
        analyze_session(session1)
        assert session1.to_dict() == before


class TestInvalidValues:
    """Non-finite and out-of-range statistics never produce NaN or out-of-range scores."""

    @pytest.mark.parametrize(
        "stats",
        [
            {"average_hfr": math.nan, "average_snr": math.inf, "guide_rms": -1},
            {"average_hfr": -5, "average_snr": -10, "guide_rms": math.nan},
            {"average_hfr": math.inf, "average_snr": math.nan, "guide_rms": math.inf},
            {"total_frames": math.nan, "accepted_frames": 5},
            {"total_frames": 10, "accepted_frames": 50},
            {"total_frames": -3, "accepted_frames": -3},
            {"total_integration": math.inf, "average_hfr": 1e308},
        ],
    )
    def test_score_stays_in_range(self, session1, stats):
        analysis = analyze_session(session1.with_statistics(**stats))

        assert math.isfinite(analysis.overall_score)
        assert 0 <= analysis.overall_score <= 100
        for score in analysis.scores.values():
            assert 0 <= score <= 100
        assert 0 <= analysis.metrics.efficiency <= 100

    def test_nan_counts_as_worst(self, session1):
        """NaN HFR scores no better than the worst measured HFR."""
        nan_hfr = session1.with_statistics(average_hfr=math.nan)
        awful_hfr = session1.with_statistics(average_hfr=15.0)
        assert overall_score(nan_hfr) <= overall_score(awful_hfr)

    def test_mixed_invalid_session_is_scored(self, session1):
        """NaN HFR, infinite SNR and negative RMS still score 0-100."""
        weird = session1.with_statistics(
            average_hfr=math.nan, average_snr=math.inf, guide_rms=-1
        )
        assert 0 < overall_score(weird) < 100

    def test_accepted_capped_at_total(self, session1):
        clean = sanitize_statistics(
            session1.with_statistics(total_frames=10, accepted_frames=50).statistics
        )
        assert clean["accepted_frames"] == 10


class TestHelpers:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (5.0, 5.0),
            (-1.0, 0.0),
            (math.inf, 10.0),
            (-math.inf, 0.0),
            (math.nan, 7.0),
            (None, 7.0),
            ("abc", 7.0),
        ],
    )
    def test_clamp(self, value, expected):
        assert clamp(value, 0.0, 10.0, nan_value=7.0) == expected

    def test_acceptance_rate(self):
        assert acceptance_rate(48, 45) == pytest.approx(93.75)
        assert acceptance_rate(0, 0) == 0.0

    def test_focus_score_unmeasured(self):
        """HFR of 0 means no focus measurement, not perfect focus."""
        assert focus_score(0.0) == 0.0
        assert focus_score(1.5) == 100.0
        assert focus_score(4.0) == 0.0

    def test_finite_mean(self):
        assert finite_mean([1.0, math.nan, 3.0, math.inf]) == 2.0
        assert finite_mean([]) is None
        assert finite_mean([math.nan]) is None

    def test_measured_mean(self):
        assert measured_mean([0.0, 2.0, math.nan, 4.0, -1.0]) == 3.0
        assert measured_mean([0.0, math.nan]) is None


class TestQualityInsights:
    def test_positive_insights_for_good_session(self, session1):
        titles = {i.title for i in quality_insights(session1)}
        assert {"Sharp Focus", "Strong Signal", "Steady Guiding", "High Frame Acceptance"} <= titles

    def test_negative_only(self, session1):
        assert quality_insights(session1, include_positive=False) == []

    def test_low_snr_severity(self, session1):
        medium = quality_insights(session1.with_statistics(average_snr=25), include_positive=False)
        high = quality_insights(session1.with_statistics(average_snr=10), include_positive=False)

        assert medium[0].impact.value == "medium"
        assert high[0].impact.value == "high"

    def test_high_rejection(self, session1):
        insights = quality_insights(
            session1.with_statistics(accepted_frames=20), include_positive=False
        )
        assert [i.title for i in insights] == ["High Frame Rejection"]
