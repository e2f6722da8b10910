"""MCP Astro Session Analytics Server.

Provides tools for analyzing astrophotography imaging sessions:
- analyze_session: Quality score, insights and recommendations for one session
- get_metrics: Summary statistics across sessions
- get_trends: Focus and signal trends over time
- get_patterns: Seasonal, weather, equipment and time-of-night patterns
- get_insights: Impact-ranked observations across sessions
- get_recommendations: Priority-ranked suggestions
- compare_equipment: Head-to-head comparison of two setups
- get_sessions_in_range: Sessions within a date range
- get_target_analysis: Everything known about one target
- get_status: Sessions location and count
"""

import logging
import os
from pathlib import Path

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from astro_session_analytics import __version__
from astro_session_analytics import queries
from astro_session_analytics.ingest import get_sessions_path, load_from_path, parse_datetime
from astro_session_analytics.insights import generate_insights, generate_recommendations
from astro_session_analytics.models import InvalidSessionError, to_plain
from astro_session_analytics.patterns import TREND_THRESHOLD, analyze_trends, identify_patterns
from astro_session_analytics.scoring import analyze_session as do_analyze_session

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("astro-session-analytics")
if os.environ.get("DEV_MODE"):
    logger.setLevel(logging.DEBUG)

# Initialize MCP server
mcp = FastMCP("astro-session-analytics")


def _load(path: str | None):
    sessions = load_from_path(Path(path) if path else None)
    logger.debug(f"Loaded {len(sessions)} sessions from {path or get_sessions_path()}")
    return sessions


@mcp.resource("astro-session-analytics://guide", description="Usage guide and scoring notes")
def usage_guide() -> str:
    """Return the usage guide from the bundled markdown file."""
    guide_path = Path(__file__).parent / "guide.md"
    try:
        return guide_path.read_text()
    except FileNotFoundError:
        return "# Astro Session Analytics Guide\n\nGuide file not found."


@mcp.tool()
def get_status(path: str | None = None) -> dict:
    """Get the sessions location and how many sessions load from it.

    Args:
        path: Session file or directory (default: $ASTRO_SESSIONS_PATH or ~/.astro-sessions)

    Returns:
        Status info including version, sessions path and session count
    """
    sessions = _load(path)
    return {
        "status": "ok",
        "version": __version__,
        "sessions_path": str(path or get_sessions_path()),
        "session_count": len(sessions),
    }


@mcp.tool()
def analyze_session(session_id: str, path: str | None = None) -> dict:
    """Score a single imaging session.

    Args:
        session_id: ID of the session to analyze
        path: Session file or directory (default: $ASTRO_SESSIONS_PATH)

    Returns:
        Overall score (0-100), component scores, efficiency metrics,
        impact-ranked insights and priority-ranked recommendations
    """
    for session in _load(path):
        if session.id == session_id:
            return do_analyze_session(session).to_dict()
    raise ToolError(f"Session not found: {session_id}")


@mcp.tool()
def get_metrics(path: str | None = None) -> dict:
    """Summary statistics across all sessions.

    Args:
        path: Session file or directory (default: $ASTRO_SESSIONS_PATH)

    Returns:
        Totals, averages, equipment usage and target type counts
    """
    return queries.calculate_metrics(_load(path)).to_dict()


@mcp.tool()
def get_trends(threshold: float = TREND_THRESHOLD, path: str | None = None) -> dict:
    """Compare earlier and later sessions for focus (HFR) and signal (SNR) trends.

    Args:
        threshold: Relative change needed to report improving/declining (default: 0.05)
        path: Session file or directory (default: $ASTRO_SESSIONS_PATH)

    Returns:
        hfr_trend, snr_trend and overall_trend (improving, declining or stable)
    """
    return analyze_trends(_load(path), threshold=threshold).to_dict()


@mcp.tool()
def get_patterns(path: str | None = None) -> dict:
    """Group sessions by season, weather, equipment and start time.

    Args:
        path: Session file or directory (default: $ASTRO_SESSIONS_PATH)

    Returns:
        Seasonal, weather, equipment and temporal breakdowns
    """
    return identify_patterns(_load(path)).to_dict()


@mcp.tool()
def get_insights(path: str | None = None) -> dict:
    """Impact-ranked observations across all sessions."""
    return {"insights": to_plain(generate_insights(_load(path)))}


@mcp.tool()
def get_recommendations(path: str | None = None) -> dict:
    """Priority-ranked suggestions for future sessions."""
    return {"recommendations": to_plain(generate_recommendations(_load(path)))}


@mcp.tool()
def compare_equipment(equipment1: str, equipment2: str, path: str | None = None) -> dict:
    """Compare two equipment setups by name.

    Args:
        equipment1: First equipment name
        equipment2: Second equipment name
        path: Session file or directory (default: $ASTRO_SESSIONS_PATH)

    Returns:
        Per-metric values and winners (hfr, snr, efficiency, score) and the overall winner
    """
    sessions = _load(path)
    return queries.compare_equipment(
        equipment1,
        [s for s in sessions if s.equipment.name == equipment1],
        equipment2,
        [s for s in sessions if s.equipment.name == equipment2],
    ).to_dict()


@mcp.tool()
def get_sessions_in_range(start: str, end: str, path: str | None = None) -> dict:
    """Sessions whose date falls within [start, end].

    Args:
        start: Start timestamp (ISO-8601)
        end: End timestamp (ISO-8601)
        path: Session file or directory (default: $ASTRO_SESSIONS_PATH)
    """
    try:
        start_dt, end_dt = parse_datetime(start), parse_datetime(end)
    except InvalidSessionError as e:
        raise ToolError(str(e)) from e

    return queries.sessions_in_range(_load(path), start_dt, end_dt)


@mcp.tool()
def get_target_analysis(target_id: str, path: str | None = None) -> dict:
    """Summarize all sessions spent on one target.

    Args:
        target_id: Target identifier (e.g. 'M31')
        path: Session file or directory (default: $ASTRO_SESSIONS_PATH)

    Returns:
        Session ids, average score, best observed conditions and recommendations
    """
    return queries.get_target_analysis(_load(path), target_id)


def main():
    """Run the MCP server over stdio."""
    logger.info(f"Starting Astro Session Analytics {__version__} (sessions: {get_sessions_path()})")
    mcp.run()


if __name__ == "__main__":
    main()
