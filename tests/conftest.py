"""Pytest configuration and shared fixtures."""

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from astro_session_analytics.models import (
    Conditions,
    Coordinates,
    EquipmentProfile,
    FrameQuality,
    ImageFrame,
    ImagingSession,
    SessionIssue,
    SessionStatistics,
    Target,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def mock_equipment():
    """EdgeHD 8 / ASI2600MC / CGX setup used by most tests."""
    return EquipmentProfile(
        name="Test Setup",
        id="eq1",
        description="Test equipment profile",
        settings={
            "telescope": {"model": "Celestron EdgeHD 8", "aperture": 203, "focalLength": 2032},
            "camera": {"model": "ZWO ASI2600MC", "pixelSize": 3.76, "cooled": True},
            "mount": {"model": "Celestron CGX", "payload": 25},
        },
    )


@pytest.fixture
def session1(mock_equipment):
    """A good galaxy session: sharp focus, strong signal, steady guiding."""
    return ImagingSession(
        id="session1",
        date=utc(2024, 3, 1, 20, 0),
        duration=240,
        target=Target(
            id="M31",
            name="Andromeda Galaxy",
            type="galaxy",
            coordinates=Coordinates(ra=10.6847, dec=41.2687),
            magnitude=3.4,
        ),
        equipment=mock_equipment,
        conditions=Conditions(
            temperature=15,
            humidity=45,
            wind_speed=8,
            cloud_cover=10,
            seeing=3.5,
            transparency=8,
            moon_phase=0.25,
        ),
        statistics=SessionStatistics(
            total_frames=48,
            accepted_frames=45,
            rejected_frames=3,
            total_integration=225,
            average_hfr=2.2,
            average_snr=43.5,
            guide_rms=0.8,
            drift_rate=0.2,
        ),
        images=[
            ImageFrame(
                filename="M31_001.fits",
                timestamp=utc(2024, 3, 1, 20, 30),
                exposure_time=300,
                gain=100,
                temperature=-10,
                filter="L",
                quality=FrameQuality(hfr=2.1, snr=45, stars=1250, background=1200, noise=15),
            ),
            ImageFrame(
                filename="M31_002.fits",
                timestamp=utc(2024, 3, 1, 20, 35),
                exposure_time=300,
                gain=100,
                temperature=-10,
                filter="L",
                quality=FrameQuality(hfr=2.3, snr=42, stars=1180, background=1250, noise=16),
            ),
        ],
        issues=[
            SessionIssue(
                type="tracking",
                severity="low",
                description="Minor tracking drift detected",
                timestamp=utc(2024, 3, 1, 22, 15),
                resolved=True,
            )
        ],
        notes="Good session overall, slight tracking issues in the middle",
    )


@pytest.fixture
def session2(mock_equipment):
    """A cloudy nebula session with many rejected frames."""
    return ImagingSession(
        id="session2",
        date=utc(2024, 3, 5, 21, 0),
        duration=180,
        target=Target(
            id="M42",
            name="Orion Nebula",
            type="nebula",
            coordinates=Coordinates(ra=83.8221, dec=-5.3911),
            magnitude=4.0,
        ),
        equipment=mock_equipment,
        conditions=Conditions(
            temperature=8,
            humidity=60,
            wind_speed=12,
            cloud_cover=30,
            seeing=4.2,
            transparency=6,
            moon_phase=0.75,
        ),
        statistics=SessionStatistics(
            total_frames=36,
            accepted_frames=28,
            rejected_frames=8,
            total_integration=84,
            average_hfr=2.8,
            average_snr=38,
            guide_rms=1.2,
            drift_rate=0.5,
        ),
        images=[
            ImageFrame(
                filename="M42_001.fits",
                timestamp=utc(2024, 3, 5, 21, 30),
                exposure_time=180,
                gain=120,
                temperature=-15,
                filter="Ha",
                quality=FrameQuality(hfr=2.8, snr=38, stars=890, background=1800, noise=22),
            )
        ],
        issues=[
            SessionIssue(
                type="weather",
                severity="medium",
                description="Clouds caused frame rejection",
                timestamp=utc(2024, 3, 5, 22, 30),
                resolved=False,
            )
        ],
        notes="Challenging conditions, many frames rejected due to clouds",
    )


@pytest.fixture
def mock_sessions(session1, session2):
    return [session1, session2]


@pytest.fixture
def make_session(session1):
    """Factory for session1 variants.

    Usage: make_session("s9", days=3, average_hfr=3.0, average_snr=30)
    Keyword arguments other than days/equipment/target_type go to statistics.
    """

    def _make(session_id="variant", days=0, equipment=None, target_type=None, **stats):
        session = replace(session1, id=session_id, date=session1.date + timedelta(days=days))
        if equipment is not None:
            session = replace(session, equipment=EquipmentProfile(name=equipment))
        if target_type is not None:
            session = replace(session, target=replace(session.target, type=target_type))
        if stats:
            session = session.with_statistics(**stats)
        return session

    return _make


@pytest.fixture
def raw_session_record():
    """A session record in the exported camelCase shape."""
    return {
        "id": "raw-1",
        "date": "2024-01-15T21:30:00Z",
        "duration": 150,
        "target": {
            "id": "NGC7000",
            "name": "North America Nebula",
            "type": "nebula",
            "coordinates": {"ra": 314.75, "dec": 44.33},
        },
        "equipment": {"id": "eq2", "name": "RedCat 51", "settings": {}},
        "conditions": {
            "temperature": -2,
            "humidity": 70,
            "windSpeed": 3,
            "cloudCover": 5,
            "seeing": 2.1,
            "transparency": 9,
            "moonPhase": 0.1,
        },
        "statistics": {
            "totalFrames": 30,
            "acceptedFrames": 29,
            "rejectedFrames": 1,
            "totalIntegration": 145,
            "averageHFR": 1.8,
            "averageSNR": 52,
            "guideRMS": 0.6,
            "driftRate": 0.1,
        },
        "images": [
            {
                "filename": "NGC7000_001.fits",
                "timestamp": "2024-01-15T21:35:00Z",
                "exposureTime": 300,
                "gain": 100,
                "filter": "Ha",
                "quality": {"hfr": 1.8, "snr": 52, "stars": 2100, "background": 900, "noise": 11},
            }
        ],
        "issues": [],
        "notes": "Clear and steady",
    }


@pytest.fixture
def sessions_file(tmp_path, raw_session_record):
    """A .json file holding two sessions on different equipment."""
    second = json.loads(json.dumps(raw_session_record))
    second.update(id="raw-2", date="2024-07-20T23:00:00Z")
    second["equipment"] = {"name": "EdgeHD 8"}
    second["target"] = {"id": "M31", "name": "Andromeda Galaxy", "type": "galaxy"}
    second["statistics"].update(averageHFR=3.4, averageSNR=25, guideRMS=2.2, acceptedFrames=18)
    second["conditions"]["cloudCover"] = 40

    path = tmp_path / "sessions.json"
    path.write_text(json.dumps([raw_session_record, second]))
    return path
