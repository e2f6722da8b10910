"""Loading imaging session records from JSON / JSONL files."""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from astro_session_analytics.models import (
    Conditions,
    Coordinates,
    EquipmentProfile,
    FrameQuality,
    ImageFrame,
    ImagingSession,
    InvalidSessionError,
    SessionIssue,
    SessionStatistics,
    Target,
)

logger = logging.getLogger("astro-session-analytics")

# Default location for exported session records
DEFAULT_SESSIONS_PATH = Path.home() / ".astro-sessions"

SESSION_FILE_SUFFIXES = (".json", ".jsonl")


def get_sessions_path() -> Path:
    """Sessions location from ASTRO_SESSIONS_PATH, or the default directory."""
    return Path(os.environ.get("ASTRO_SESSIONS_PATH", DEFAULT_SESSIONS_PATH)).expanduser()


def parse_datetime(value) -> datetime:
    """Parse an ISO-8601 timestamp (a trailing 'Z' means UTC)."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        raise InvalidSessionError(f"Invalid timestamp: {value!r}")
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidSessionError(f"Invalid timestamp: {value!r}") from e
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _optional_datetime(value) -> datetime | None:
    return parse_datetime(value) if value else None


def _number(value, default=0.0):
    """Numbers pass through unchanged (including NaN/inf); None becomes default."""
    if value is None:
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            return float(value)  # accepts "NaN" / "Infinity"
        except ValueError:
            pass
    raise InvalidSessionError(f"Expected a number, got {value!r}")


def _require(raw: dict, key: str, session_id: str):
    value = raw.get(key)
    if value is None:
        raise InvalidSessionError(f"Session {session_id}: missing {key}")
    return value


def parse_target(raw: dict) -> Target:
    coordinates = None
    if raw.get("coordinates"):
        coords = raw["coordinates"]
        coordinates = Coordinates(ra=_number(coords.get("ra")), dec=_number(coords.get("dec")))
    return Target(
        id=str(raw.get("id", "")),
        name=raw.get("name", ""),
        type=raw.get("type", "unknown"),
        coordinates=coordinates,
        magnitude=_number(raw.get("magnitude"), None),
    )


def parse_equipment(raw: dict) -> EquipmentProfile:
    if not raw.get("name"):
        raise InvalidSessionError("Equipment profile has no name")
    return EquipmentProfile(
        name=raw["name"],
        id=raw.get("id"),
        description=raw.get("description"),
        settings=raw.get("settings") or {},
    )


def parse_conditions(raw: dict) -> Conditions:
    return Conditions(
        temperature=_number(raw.get("temperature"), None),
        humidity=_number(raw.get("humidity"), None),
        wind_speed=_number(raw.get("windSpeed"), None),
        cloud_cover=_number(raw.get("cloudCover"), None),
        seeing=_number(raw.get("seeing"), None),
        transparency=_number(raw.get("transparency"), None),
        moon_phase=_number(raw.get("moonPhase"), None),
    )


def parse_statistics(raw: dict) -> SessionStatistics:
    return SessionStatistics(
        total_frames=_number(raw.get("totalFrames"), 0),
        accepted_frames=_number(raw.get("acceptedFrames"), 0),
        rejected_frames=_number(raw.get("rejectedFrames"), 0),
        total_integration=_number(raw.get("totalIntegration")),
        average_hfr=_number(raw.get("averageHFR")),
        average_snr=_number(raw.get("averageSNR")),
        guide_rms=_number(raw.get("guideRMS")),
        drift_rate=_number(raw.get("driftRate")),
    )


def parse_image(raw: dict) -> ImageFrame:
    quality = raw.get("quality") or {}
    return ImageFrame(
        filename=raw.get("filename", ""),
        timestamp=_optional_datetime(raw.get("timestamp")),
        exposure_time=_number(raw.get("exposureTime")),
        gain=_number(raw.get("gain"), None),
        temperature=_number(raw.get("temperature"), None),
        filter=raw.get("filter"),
        quality=FrameQuality(
            hfr=_number(quality.get("hfr")),
            snr=_number(quality.get("snr")),
            stars=_number(quality.get("stars"), 0),
            background=_number(quality.get("background")),
            noise=_number(quality.get("noise")),
        ),
    )


def parse_issue(raw: dict) -> SessionIssue:
    return SessionIssue(
        type=raw.get("type", "other"),
        severity=raw.get("severity", "low"),
        description=raw.get("description", ""),
        timestamp=_optional_datetime(raw.get("timestamp")),
        resolved=bool(raw.get("resolved", False)),
    )


def parse_session(raw: dict) -> ImagingSession:
    """Build an ImagingSession from an exported session record.

    Records use the acquisition app's camelCase keys (averageHFR, cloudCover, ...).

    Raises:
        InvalidSessionError: if a required part (target, equipment, conditions,
            statistics, date) is missing or malformed
    """
    if not isinstance(raw, dict):
        raise InvalidSessionError(f"Session record must be an object, got {type(raw).__name__}")

    session_id = str(raw.get("id") or "")
    if not session_id:
        raise InvalidSessionError("Session record has no id")

    try:
        return ImagingSession(
            id=session_id,
            date=parse_datetime(_require(raw, "date", session_id)),
            duration=_number(raw.get("duration")),
            target=parse_target(_require(raw, "target", session_id)),
            equipment=parse_equipment(_require(raw, "equipment", session_id)),
            conditions=parse_conditions(_require(raw, "conditions", session_id)),
            statistics=parse_statistics(_require(raw, "statistics", session_id)),
            images=tuple(parse_image(img) for img in raw.get("images") or []),
            issues=tuple(parse_issue(issue) for issue in raw.get("issues") or []),
            notes=raw.get("notes") or "",
        )
    except (AttributeError, KeyError, TypeError) as e:
        raise InvalidSessionError(f"Session {session_id}: malformed record ({e})") from e


def _read_records(file_path: Path, strict: bool) -> list[tuple[int, object]]:
    """Return (line/index, record) pairs from a .json or .jsonl file."""
    with open(file_path, encoding="utf-8") as f:
        if file_path.suffix != ".jsonl":
            data = json.load(f)
            if isinstance(data, dict):
                data = data.get("sessions", [data])
            return list(enumerate(data, 1))

        records = []
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append((line_num, json.loads(line)))
            except json.JSONDecodeError as e:
                if strict:
                    raise
                logger.warning(f"Skipping malformed JSON at {file_path}:{line_num}: {e}")
        return records


def load_sessions(path: Path, strict: bool = False) -> list[ImagingSession]:
    """Load sessions from a .json (array or object) or .jsonl file.

    Args:
        path: Session file
        strict: Raise on the first malformed record instead of skipping it

    Returns:
        Parsed sessions in file order
    """
    path = Path(path)
    try:
        records = _read_records(path, strict)
    except json.JSONDecodeError as e:
        if strict:
            raise
        logger.warning(f"Could not parse {path}: {e}")
        return []

    sessions = []
    for position, raw in records:
        try:
            sessions.append(parse_session(raw))
        except InvalidSessionError as e:
            if strict:
                raise
            logger.warning(f"Skipping session record {path}:{position}: {e}")
    return sessions


def find_session_files(directory: Path) -> list[Path]:
    """Find session files in a directory, newest first."""
    directory = Path(directory)
    if not directory.exists():
        logger.warning(f"Sessions directory does not exist: {directory}")
        return []

    files = []
    for candidate in directory.iterdir():
        if candidate.is_file() and candidate.suffix in SESSION_FILE_SUFFIXES:
            try:
                files.append((candidate, candidate.stat().st_mtime))
            except OSError as e:
                logger.warning(f"Could not stat {candidate}: {e}")

    files.sort(key=lambda x: x[1], reverse=True)
    return [f for f, _ in files]


def load_session_dir(directory: Path, strict: bool = False) -> list[ImagingSession]:
    """Load every session file in a directory."""
    sessions = []
    for file_path in find_session_files(directory):
        sessions.extend(load_sessions(file_path, strict=strict))
    return sessions


def load_from_path(path: Path | None = None, strict: bool = False) -> list[ImagingSession]:
    """Load sessions from a file or directory (default: get_sessions_path())."""
    path = Path(path).expanduser() if path else get_sessions_path()
    if path.is_dir():
        return load_session_dir(path, strict=strict)
    if not path.exists():
        logger.warning(f"Sessions path does not exist: {path}")
        return []
    return load_sessions(path, strict=strict)
