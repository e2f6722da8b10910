"""Astro Session Analytics - quality analytics for astrophotography imaging sessions."""

from importlib.metadata import version

try:
    __version__ = version("astro-session-analytics")
except Exception:
    __version__ = "0.1.0"  # Fallback for development

# Re-export public API
from astro_session_analytics.ingest import load_sessions, parse_session
from astro_session_analytics.insights import generate_insights, generate_recommendations
from astro_session_analytics.models import (
    AnalyticsMetrics,
    Conditions,
    EquipmentComparison,
    EquipmentProfile,
    ImagingSession,
    Impact,
    InvalidSessionError,
    Patterns,
    Priority,
    Recommendation,
    SessionAnalysis,
    SessionInsight,
    SessionStatistics,
    Target,
    TrendDirection,
    TrendResult,
)
from astro_session_analytics.patterns import analyze_trends, identify_patterns
from astro_session_analytics.queries import (
    calculate_metrics,
    compare_equipment,
    filter_sessions_by_date_range,
    find_best_conditions,
    get_target_analysis,
)
from astro_session_analytics.scoring import analyze_session, overall_score

__all__ = [
    # Version
    "__version__",
    # Models
    "ImagingSession",
    "Target",
    "EquipmentProfile",
    "Conditions",
    "SessionStatistics",
    "InvalidSessionError",
    "SessionAnalysis",
    "SessionInsight",
    "Recommendation",
    "AnalyticsMetrics",
    "TrendResult",
    "Patterns",
    "EquipmentComparison",
    "Impact",
    "Priority",
    "TrendDirection",
    # Engine
    "analyze_session",
    "overall_score",
    "calculate_metrics",
    "analyze_trends",
    "identify_patterns",
    "generate_insights",
    "generate_recommendations",
    "compare_equipment",
    "filter_sessions_by_date_range",
    "find_best_conditions",
    "get_target_analysis",
    # Loading
    "parse_session",
    "load_sessions",
]
