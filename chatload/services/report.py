"""ReportRenderer: pure projection of a RunSummary into an HTML document.

Nothing here reads result files or computes business numbers beyond
formatting; every figure comes from the RunSummary.
"""

import html
import json
from datetime import datetime
from enum import Enum
from typing import Any

from chatload.models.summary import ErrorPattern, GroupSummary, RunSummary

CRITICAL_SUCCESS_RATE = 0.5
WARNING_SUCCESS_RATE = 0.9

_STYLE = """
    body { font-family: Arial, sans-serif; margin: 20px; }
    h1, h2 { color: #333; }
    .summary { background: #f5f5f5; padding: 15px; border-radius: 5px; margin-bottom: 20px; }
    .banner { padding: 12px; border-radius: 5px; margin-bottom: 20px; font-weight: bold; }
    .banner.critical { background: #fdd; color: #900; }
    .banner.warning { background: #ffd; color: #860; }
    .success { color: green; }
    .failure { color: red; }
    table { border-collapse: collapse; width: 100%; margin-bottom: 20px; }
    th, td { border: 1px solid #ddd; padding: 8px; text-align: left; vertical-align: top; }
    th { background-color: #f2f2f2; }
    tr:nth-child(even) { background-color: #f9f9f9; }
    pre { white-space: pre-wrap; font-size: 0.85em; margin: 0; }
"""


class HealthLevel(str, Enum):
    """Overall verdict on a run's success rate."""

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


def health_level(success_rate: float) -> HealthLevel:
    """Critical below 50 %, warning below 90 %, healthy otherwise."""
    if success_rate < CRITICAL_SUCCESS_RATE:
        return HealthLevel.CRITICAL
    if success_rate < WARNING_SUCCESS_RATE:
        return HealthLevel.WARNING
    return HealthLevel.HEALTHY


def _e(value: Any) -> str:
    return html.escape(str(value), quote=True)


def _pretty(value: Any) -> str:
    if isinstance(value, str):
        return _e(value)
    return _e(json.dumps(value, indent=2, sort_keys=True, default=str))


def _banner(summary: RunSummary) -> str:
    level = health_level(summary.success_rate)
    if level is HealthLevel.HEALTHY:
        return ""
    label = "CRITICAL" if level is HealthLevel.CRITICAL else "WARNING"
    return (
        f'<div class="banner {level.value}">{label}: success rate '
        f"{summary.success_rate * 100:.2f}%</div>"
    )


def _group_rows(groups: tuple[GroupSummary, ...]) -> str:
    rows = []
    for group in groups:
        duration = f"{group.duration:.2f}" if group.duration is not None else "n/a"
        rows.append(
            "<tr>"
            f"<td>{_e(group.group_id)}</td>"
            f"<td>{_e(group.description)}</td>"
            f"<td>{group.counts.total}</td>"
            f'<td class="success">{group.counts.successful}</td>'
            f'<td class="failure">{group.counts.failed}</td>'
            f"<td>{group.success_rate * 100:.2f}%</td>"
            f"<td>{duration}</td>"
            f"<td>{group.throughput:.2f}</td>"
            "</tr>"
        )
    return "\n".join(rows)


def _pattern_rows(patterns: tuple[ErrorPattern, ...]) -> str:
    rows = []
    for pattern in patterns:
        rows.append(
            "<tr>"
            f"<td>{pattern.occurrence_count}</td>"
            f"<td>{_e(pattern.model)}</td>"
            f'<td class="failure">{_e(pattern.error)}</td>'
            f"<td><pre>{_pretty(pattern.request)}</pre></td>"
            f"<td><pre>{_pretty(pattern.response)}</pre></td>"
            f"<td>{_e(pattern.example_path)}</td>"
            "</tr>"
        )
    return "\n".join(rows)


def render_report(
    summary: RunSummary,
    title: str = "Chat API Load Test Report",
    group_label: str = "Batch",
    generated_at: datetime | None = None,
) -> str:
    """Render a RunSummary as a standalone HTML page.

    Args:
        summary: Aggregated run.
        title: Page title.
        group_label: Column heading for groups ("Batch" or "Scenario").
        generated_at: Timestamp printed in the header; omitted when None.

    Returns:
        HTML document.
    """
    generated = (
        f"<p>Report generated: <strong>{generated_at:%Y-%m-%d %H:%M:%S}</strong></p>"
        if generated_at
        else ""
    )
    purposes = "".join(
        f"<li><strong>{_e(g.group_id)}</strong>: {_e(g.purpose)}</li>"
        for g in summary.groups
        if g.purpose
    )
    purpose_section = f"<h2>{_e(group_label)} Purposes</h2><ul>{purposes}</ul>" if purposes else ""

    if summary.error_patterns:
        patterns_section = f"""
  <table>
    <tr><th>Occurrences</th><th>Model</th><th>Error</th><th>Example request</th><th>Example response</th><th>Example file</th></tr>
    {_pattern_rows(summary.error_patterns)}
  </table>"""
    else:
        patterns_section = "<p>No failed exchanges.</p>"

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{_e(title)}</title>
  <style>{_STYLE}</style>
</head>
<body>
  <h1>{_e(title)}</h1>
  {_banner(summary)}
  <div class="summary">
    <h2>Summary</h2>
    {generated}
    <p>Run: <strong>{_e(summary.run_id)}</strong></p>
    <p>API Endpoint: <strong>{_e(summary.endpoint or "n/a")}</strong></p>
    <p>Total conversations: <strong>{summary.total_conversations}</strong></p>
    <p>Successful conversations: <strong class="success">{summary.successful_conversations}</strong></p>
    <p>Failed conversations: <strong class="failure">{summary.failed_conversations}</strong></p>
    <p>Total exchanges: <strong>{summary.exchanges.total}</strong></p>
    <p>Successful exchanges: <strong class="success">{summary.exchanges.successful}</strong></p>
    <p>Failed exchanges: <strong class="failure">{summary.exchanges.failed}</strong></p>
    <p>Success rate: <strong>{summary.success_rate * 100:.2f}%</strong></p>
    <p>Throughput: <strong>{summary.throughput:.2f} exchanges/second</strong></p>
    <p>Total test duration: <strong>{summary.duration:.2f} seconds</strong></p>
    <p>Average conversation time: <strong>{summary.average_conversation_time:.2f} seconds</strong></p>
  </div>

  <h2>{_e(group_label)} Results</h2>
  <table>
    <tr><th>{_e(group_label)}</th><th>Description</th><th>Total</th><th>Successful</th><th>Failed</th><th>Success rate</th><th>Duration (s)</th><th>Requests/Second</th></tr>
    {_group_rows(summary.groups)}
  </table>
  {purpose_section}

  <h2>Error Patterns</h2>
  {patterns_section}
</body>
</html>
"""
