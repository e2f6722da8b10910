"""Command-line interface for imaging session analytics."""

import argparse
import json
import sys

from astro_session_analytics import __version__
from astro_session_analytics.ingest import get_sessions_path, load_from_path, parse_datetime
from astro_session_analytics.insights import generate_insights, generate_recommendations
from astro_session_analytics.models import to_plain
from astro_session_analytics.patterns import TREND_THRESHOLD, analyze_trends, identify_patterns
from astro_session_analytics.queries import (
    calculate_metrics,
    compare_equipment,
    get_target_analysis,
    sessions_in_range,
)
from astro_session_analytics.scoring import analyze_session

# Formatter registry: list of (predicate, formatter) tuples
# Each predicate checks if this formatter can handle the data
# Order matters - first match wins
_FORMATTERS: list[tuple[callable, callable]] = []

_TREND_ARROWS = {"improving": "↑", "declining": "↓", "stable": "→"}


def _register_formatter(predicate: callable):
    """Decorator to register a formatter with its predicate."""

    def decorator(formatter: callable):
        _FORMATTERS.append((predicate, formatter))
        return formatter

    return decorator


def _insight_lines(insights: list[dict]) -> list[str]:
    return [f"  [{i['impact']}] {i['title']}: {i['description']}" for i in insights]


def _recommendation_lines(recommendations: list[dict]) -> list[str]:
    return [
        f"  [{r['priority']}] ({r['category']}) {r['title']}: {r['description']}"
        for r in recommendations
    ]


@_register_formatter(lambda d: "overall_score" in d and "session_id" in d)
def _format_analysis(data: dict) -> list[str]:
    metrics = data["metrics"]
    lines = [
        f"Session {data['session_id']}",
        f"Overall score: {data['overall_score']:.1f} / 100",
        "  " + ", ".join(f"{name} {score:.1f}" for name, score in data["scores"].items()),
        f"Frames: {metrics['accepted_frames']} / {metrics['total_frames']} accepted "
        f"({metrics['frame_acceptance_rate']:.1f}%)",
        f"Integration: {metrics['integration_time']:.0f} min",
    ]
    if data["insights"]:
        lines += ["", "Insights:"] + _insight_lines(data["insights"])
    if data["recommendations"]:
        lines += ["", "Recommendations:"] + _recommendation_lines(data["recommendations"])
    return lines


@_register_formatter(lambda d: "target_id" in d and "session_count" in d)
def _format_target(data: dict) -> list[str]:
    lines = [f"Target {data['target_id']}: {data['session_count']} session(s)"]
    if data["session_count"]:
        lines.append(f"Name: {data['target_name']}")
        lines.append(f"Average score: {data['average_score']:.1f}")
        lines.append("Best conditions:")
        for name, bounds in data["best_conditions"].items():
            lines.append(f"  {name}: {bounds['min']} - {bounds['max']}")
    lines.append("")
    lines.append("Recommendations:")
    lines += [f"  - {rec}" for rec in data["recommendations"]]
    return lines


@_register_formatter(lambda d: "total_sessions" in d and "equipment_usage" in d)
def _format_metrics(data: dict) -> list[str]:
    lines = [
        f"Sessions: {data['total_sessions']}",
        f"Total imaging time: {data['total_imaging_time']:.0f} min",
        f"Average session: {data['average_session_duration']:.0f} min",
        f"Total frames: {data['total_frames']}",
        f"Average HFR: {data['average_hfr']:.2f}",
        f"Average SNR: {data['average_snr']:.1f}",
        "",
        "Equipment usage:",
    ]
    for name, count in sorted(data["equipment_usage"].items(), key=lambda x: -x[1]):
        lines.append(f"  {name}: {count}")
    lines.append("")
    lines.append("Target types:")
    for name, count in sorted(data["target_types"].items(), key=lambda x: -x[1]):
        lines.append(f"  {name}: {count}")
    return lines


@_register_formatter(lambda d: "hfr_trend" in d)
def _format_trends(data: dict) -> list[str]:
    return [
        "Trend Analysis (earlier vs later sessions)",
        "",
        f"  HFR: {_TREND_ARROWS[data['hfr_trend']]} {data['hfr_trend']}",
        f"  SNR: {_TREND_ARROWS[data['snr_trend']]} {data['snr_trend']}",
        f"  Overall: {_TREND_ARROWS[data['overall_trend']]} {data['overall_trend']}",
    ]


@_register_formatter(lambda d: "seasonal" in d and "temporal" in d)
def _format_patterns(data: dict) -> list[str]:
    lines = ["Seasonal:"]
    for season, stats in data["seasonal"].items():
        lines.append(
            f"  {season}: {stats['sessions']} session(s), score {stats['average_score']:.1f}, "
            f"HFR {stats['average_hfr']:.2f}"
        )
    lines += ["", "Equipment:"]
    for name, stats in data["equipment"].items():
        lines.append(
            f"  {name}: {stats['sessions']} session(s), score {stats['average_score']:.1f}, "
            f"acceptance {stats['acceptance_rate']:.1f}%"
        )
    lines += ["", "Weather:"]
    for name, stats in data["weather"].items():
        lines.append(
            f"  {name}: avg {stats['average']:.1f} (min {stats['min']}, max {stats['max']}, "
            f"{stats['samples']} samples)"
        )
    lines += ["", "Sessions by start hour (UTC):"]
    for hour, count in sorted(data["temporal"]["hourly"].items()):
        lines.append(f"  {hour:>2}:00  {count}")
    return lines


@_register_formatter(lambda d: "winner" in d and "equipment1" in d)
def _format_comparison(data: dict) -> list[str]:
    lines = [f"{data['equipment1']} vs {data['equipment2']}", ""]
    for name, metric in data["metrics"].items():
        better = metric["better"] or "draw"
        lines.append(f"  {name}: {metric['value1']} vs {metric['value2']} -> {better}")
    lines += ["", f"Winner: {data['winner']}"]
    return lines


@_register_formatter(lambda d: "insights" in d)
def _format_insights(data: dict) -> list[str]:
    if not data["insights"]:
        return ["No insights (no sessions)"]
    return ["Insights:"] + _insight_lines(data["insights"])


@_register_formatter(lambda d: "recommendations" in d)
def _format_recommendations(data: dict) -> list[str]:
    if not data["recommendations"]:
        return ["No recommendations"]
    return ["Recommendations:"] + _recommendation_lines(data["recommendations"])


@_register_formatter(lambda d: "sessions" in d and "start" in d)
def _format_range(data: dict) -> list[str]:
    lines = [f"Sessions from {data['start']} to {data['end']}: {data['session_count']}", ""]
    for s in data["sessions"]:
        lines.append(
            f"  {s['date'][:16]}  {s['id']}  {s['target']} ({s['equipment']})  "
            f"score {s['overall_score']:.1f}"
        )
    return lines


@_register_formatter(lambda d: "status" in d and "sessions_path" in d)
def _format_status(data: dict) -> list[str]:
    return [
        f"Version: {data['version']}",
        f"Sessions path: {data['sessions_path']}",
        f"Sessions loaded: {data['session_count']}",
    ]


def format_output(data: dict, json_output: bool = False) -> str:
    """Format output as JSON or human-readable."""
    if json_output:
        return json.dumps(data, indent=2, default=str)

    # Find matching formatter from registry
    for predicate, formatter in _FORMATTERS:
        if predicate(data):
            return "\n".join(formatter(data))

    # Fallback to JSON if no formatter matches
    return json.dumps(data, indent=2, default=str)


def _load(args):
    return load_from_path(args.sessions)


def cmd_status(args):
    """Show where sessions are read from."""
    sessions = _load(args)
    result = {
        "status": "ok",
        "version": __version__,
        "sessions_path": str(args.sessions or get_sessions_path()),
        "session_count": len(sessions),
    }
    print(format_output(result, args.json))


def cmd_analyze(args):
    """Analyze a single session."""
    sessions = _load(args)
    session = next((s for s in sessions if s.id == args.session_id), None)
    if session is None:
        raise ValueError(f"Session not found: {args.session_id}")
    print(format_output(analyze_session(session).to_dict(), args.json))


def cmd_metrics(args):
    """Show summary metrics."""
    result = calculate_metrics(_load(args))
    print(format_output(result.to_dict(), args.json))


def cmd_trends(args):
    """Show quality trends."""
    result = analyze_trends(_load(args), threshold=args.threshold)
    print(format_output(result.to_dict(), args.json))


def cmd_patterns(args):
    """Show seasonal, weather, equipment and time-of-night patterns."""
    result = identify_patterns(_load(args))
    print(format_output(result.to_dict(), args.json))


def cmd_insights(args):
    """Show insights across sessions."""
    insights = generate_insights(_load(args))
    print(format_output({"insights": to_plain(insights)}, args.json))


def cmd_recommendations(args):
    """Show recommendations across sessions."""
    recommendations = generate_recommendations(_load(args))
    print(format_output({"recommendations": to_plain(recommendations)}, args.json))


def cmd_compare(args):
    """Compare two equipment setups."""
    sessions = _load(args)
    result = compare_equipment(
        args.equipment1,
        [s for s in sessions if s.equipment.name == args.equipment1],
        args.equipment2,
        [s for s in sessions if s.equipment.name == args.equipment2],
    )
    print(format_output(result.to_dict(), args.json))


def cmd_range(args):
    """List sessions within a date range."""
    start, end = parse_datetime(args.start), parse_datetime(args.end)
    if len(args.end) == 10:  # date only: include the whole night
        end = end.replace(hour=23, minute=59, second=59, microsecond=999999)
    result = sessions_in_range(_load(args), start, end)
    print(format_output(result, args.json))


def cmd_target(args):
    """Summarize sessions spent on one target."""
    result = get_target_analysis(_load(args), args.target_id)
    print(format_output(result, args.json))


def main(argv=None):
    """CLI entry point."""
    epilog = """
Examples:
  astro-session-analytics metrics                 # Totals across all sessions
  astro-session-analytics analyze session-42      # Score one session
  astro-session-analytics compare "RC8" "ED80"    # Head-to-head equipment comparison
  astro-session-analytics range --start 2024-03-01 --end 2024-03-31

All commands support --json for machine-readable output.
Sessions are read from --sessions, $ASTRO_SESSIONS_PATH or ~/.astro-sessions
"""
    parser = argparse.ArgumentParser(
        description="Astro Session Analytics CLI - Analyze the quality of your imaging sessions",
        prog="astro-session-analytics",
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--sessions", help="Session file or directory (.json / .jsonl)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # status
    sub = subparsers.add_parser("status", help="Show sessions location and count")
    sub.set_defaults(func=cmd_status)

    # analyze
    sub = subparsers.add_parser("analyze", help="Score a single session")
    sub.add_argument("session_id", help="Session ID")
    sub.set_defaults(func=cmd_analyze)

    # metrics
    sub = subparsers.add_parser("metrics", help="Show summary metrics")
    sub.set_defaults(func=cmd_metrics)

    # trends
    sub = subparsers.add_parser("trends", help="Show focus and signal trends")
    sub.add_argument(
        "--threshold",
        type=float,
        default=TREND_THRESHOLD,
        help=f"Relative change needed to report a trend (default: {TREND_THRESHOLD})",
    )
    sub.set_defaults(func=cmd_trends)

    # patterns
    sub = subparsers.add_parser("patterns", help="Show seasonal/weather/equipment patterns")
    sub.set_defaults(func=cmd_patterns)

    # insights
    sub = subparsers.add_parser("insights", help="Show insights across sessions")
    sub.set_defaults(func=cmd_insights)

    # recommendations
    sub = subparsers.add_parser("recommendations", help="Show recommendations")
    sub.set_defaults(func=cmd_recommendations)

    # compare
    sub = subparsers.add_parser("compare", help="Compare two equipment setups")
    sub.add_argument("equipment1", help="First equipment name")
    sub.add_argument("equipment2", help="Second equipment name")
    sub.set_defaults(func=cmd_compare)

    # range
    sub = subparsers.add_parser("range", help="List sessions within a date range")
    sub.add_argument("--start", required=True, help="Start date (ISO-8601, inclusive)")
    sub.add_argument("--end", required=True, help="End date (ISO-8601, inclusive)")
    sub.set_defaults(func=cmd_range)

    # target
    sub = subparsers.add_parser("target", help="Summarize sessions for one target")
    sub.add_argument("target_id", help="Target ID (e.g. M31)")
    sub.set_defaults(func=cmd_target)

    args = parser.parse_args(argv)
    try:
        args.func(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
