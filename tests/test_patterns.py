"""Tests for trend detection and pattern identification."""

import math
import random
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from astro_session_analytics.models import TrendDirection
from astro_session_analytics.patterns import (
    WEATHER_VARIABLES,
    analyze_trends,
    combine_trends,
    identify_patterns,
    season_for_month,
    to_utc,
)


@pytest.fixture
def improving_sessions(session1, session2):
    """HFR falls 3.0 -> 2.5 -> 2.0 while SNR rises 30 -> 35 -> 40."""
    return [
        session1.with_statistics(average_hfr=3.0, average_snr=30),
        session2.with_statistics(average_hfr=2.5, average_snr=35),
        replace(
            session1.with_statistics(average_hfr=2.0, average_snr=40),
            id="session3",
            date=datetime(2024, 3, 10, 20, tzinfo=timezone.utc),
        ),
    ]


class TestAnalyzeTrends:
    def test_improving(self, improving_sessions):
        trends = analyze_trends(improving_sessions)

        assert trends.hfr_trend == TrendDirection.IMPROVING
        assert trends.snr_trend == TrendDirection.IMPROVING
        assert trends.overall_trend == TrendDirection.IMPROVING

    def test_declining(self, make_session):
        sessions = [
            make_session("a", days=0, average_hfr=2.0, average_snr=50),
            make_session("b", days=4, average_hfr=2.5, average_snr=45),
            make_session("c", days=9, average_hfr=3.0, average_snr=40),
        ]
        trends = analyze_trends(sessions)

        assert trends.hfr_trend == TrendDirection.DECLINING
        assert trends.snr_trend == TrendDirection.DECLINING
        assert trends.overall_trend == TrendDirection.DECLINING

    @pytest.mark.parametrize("count", [0, 1, 2])
    def test_insufficient_data(self, make_session, count):
        sessions = [make_session(f"s{i}", days=i, average_hfr=1.0 + i) for i in range(count)]
        trends = analyze_trends(sessions)

        assert trends.hfr_trend == TrendDirection.STABLE
        assert trends.snr_trend == TrendDirection.STABLE
        assert trends.overall_trend == TrendDirection.STABLE

    def test_input_order_irrelevant(self, improving_sessions):
        """Sessions are ordered by date before splitting."""
        shuffled = list(reversed(improving_sessions))
        assert analyze_trends(shuffled) == analyze_trends(improving_sessions)

    def test_middle_session_excluded(self, make_session):
        """With an odd count the middle session belongs to neither half."""
        sessions = [
            make_session("a", days=0, average_hfr=2.0),
            make_session("b", days=1, average_hfr=9.0),
            make_session("c", days=2, average_hfr=2.0),
        ]
        assert analyze_trends(sessions).hfr_trend == TrendDirection.STABLE

    def test_threshold(self, make_session):
        """A 2.5% HFR increase is stable at 5% but declining at 1%."""
        sessions = [
            make_session("a", days=0, average_hfr=2.0),
            make_session("b", days=1, average_hfr=2.0),
            make_session("c", days=2, average_hfr=2.05),
            make_session("d", days=3, average_hfr=2.05),
        ]
        assert analyze_trends(sessions).hfr_trend == TrendDirection.STABLE
        assert analyze_trends(sessions, threshold=0.01).hfr_trend == TrendDirection.DECLINING

    def test_unmeasured_earlier_half_is_stable(self, make_session):
        sessions = [
            make_session("a", days=0, average_hfr=0.0),
            make_session("b", days=1, average_hfr=2.0),
            make_session("c", days=2, average_hfr=2.0),
        ]
        assert analyze_trends(sessions).hfr_trend == TrendDirection.STABLE

    def test_non_finite_values_ignored(self, make_session):
        sessions = [
            make_session("a", days=0, average_hfr=3.0),
            make_session("b", days=1, average_hfr=math.nan),
            make_session("c", days=2, average_hfr=math.nan),
            make_session("d", days=3, average_hfr=2.0),
        ]
        assert analyze_trends(sessions).hfr_trend == TrendDirection.IMPROVING

    def test_conflicting_trends_are_stable_overall(self, make_session):
        sessions = [
            make_session("a", days=0, average_hfr=3.0, average_snr=50),
            make_session("b", days=1, average_hfr=2.5, average_snr=45),
            make_session("c", days=2, average_hfr=2.0, average_snr=30),
        ]
        trends = analyze_trends(sessions)

        assert trends.hfr_trend == TrendDirection.IMPROVING
        assert trends.snr_trend == TrendDirection.DECLINING
        assert trends.overall_trend == TrendDirection.STABLE

    def test_does_not_reorder_input(self, improving_sessions):
        ids = [s.id for s in reversed(improving_sessions)]
        shuffled = list(reversed(improving_sessions))
        analyze_trends(shuffled)
        assert [s.id for s in shuffled] == ids


class TestCombineTrends:
    @pytest.mark.parametrize(
        "hfr,snr,expected",
        [
            ("improving", "improving", "improving"),
            ("improving", "stable", "improving"),
            ("stable", "declining", "declining"),
            ("declining", "declining", "declining"),
            ("improving", "declining", "stable"),
            ("stable", "stable", "stable"),
        ],
    )
    def test_combination(self, hfr, snr, expected):
        assert combine_trends(TrendDirection(hfr), TrendDirection(snr)) == TrendDirection(expected)


class TestIdentifyPatterns:
    def test_mock_sessions(self, mock_sessions):
        patterns = identify_patterns(mock_sessions)

        assert set(patterns.seasonal) == {"spring"}
        assert patterns.seasonal["spring"]["sessions"] == 2
        assert patterns.seasonal["spring"]["total_imaging_time"] == 420
        assert patterns.equipment["Test Setup"]["sessions"] == 2
        assert patterns.equipment["Test Setup"]["average_hfr"] == pytest.approx(2.5)
        assert patterns.temporal["hourly"] == {20: 1, 21: 1}
        assert patterns.temporal["monthly"] == {3: 2}

    def test_weather_summary(self, mock_sessions):
        cloud = identify_patterns(mock_sessions).weather["cloud_cover"]
        assert cloud == {"min": 10, "max": 30, "average": 20.0, "samples": 2}

    def test_empty_input(self):
        patterns = identify_patterns([])

        assert patterns.seasonal == {}
        assert patterns.equipment == {}
        assert patterns.temporal == {"hourly": {}, "monthly": {}}
        assert set(patterns.weather) == set(WEATHER_VARIABLES)
        for summary in patterns.weather.values():
            assert summary["samples"] == 0

    def test_winter_spans_year_boundary(self, session1):
        sessions = [
            replace(session1, id=f"w{m}", date=date)
            for m, date in enumerate(
                [
                    datetime(2023, 12, 10, 22, tzinfo=timezone.utc),
                    datetime(2024, 1, 12, 22, tzinfo=timezone.utc),
                    datetime(2024, 2, 8, 22, tzinfo=timezone.utc),
                ]
            )
        ]
        patterns = identify_patterns(sessions)

        assert set(patterns.seasonal) == {"winter"}
        assert patterns.seasonal["winter"]["sessions"] == 3

    def test_buckets_use_utc(self, session1):
        """01:00 at UTC+5 on March 1st is 20:00 UTC on Feb 29th."""
        local = datetime(2024, 3, 1, 1, 0, tzinfo=timezone(timedelta(hours=5)))
        session = replace(session1, date=local)
        patterns = identify_patterns([session])

        assert set(patterns.seasonal) == {"winter"}
        assert patterns.temporal["hourly"] == {20: 1}
        assert patterns.temporal["monthly"] == {2: 1}

    def test_far_future_date(self, session1):
        date = datetime(9999, 12, 31, 23, 0, tzinfo=timezone.utc)
        session = replace(session1, date=date)
        assert set(identify_patterns([session]).seasonal) == {"winter"}

    def test_counts_add_up(self, make_session):
        rng = random.Random(7)
        sessions = [
            make_session(f"s{i}", days=rng.randint(0, 365), equipment=rng.choice("ABC"))
            for i in range(60)
        ]
        patterns = identify_patterns(sessions)

        assert sum(g["sessions"] for g in patterns.seasonal.values()) == 60
        assert sum(g["sessions"] for g in patterns.equipment.values()) == 60
        assert sum(patterns.temporal["hourly"].values()) == 60
        assert sum(patterns.temporal["monthly"].values()) == 60


class TestCalendarHelpers:
    @pytest.mark.parametrize(
        "month,season",
        [(12, "winter"), (1, "winter"), (3, "spring"), (6, "summer"), (9, "fall"), (11, "fall")],
    )
    def test_season_for_month(self, month, season):
        assert season_for_month(month) == season

    def test_naive_datetime_taken_as_utc(self):
        assert to_utc(datetime(2024, 1, 1, 12)).tzinfo == timezone.utc
