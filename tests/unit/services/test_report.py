"""Unit tests for the HTML report renderer."""

from datetime import datetime

import pytest

from chatload.models.summary import ErrorPattern, GroupSummary, OutcomeCounts, RunSummary
from chatload.services.report import HealthLevel, health_level, render_report


def make_summary(successful: int, total: int, **overrides) -> RunSummary:
    values = dict(
        run_id="test_20250101_120000",
        endpoint="https://api.example.com/v1/chat",
        exchanges=OutcomeCounts(total=total, successful=successful, failed=total - successful),
        total_conversations=2,
        successful_conversations=1,
        duration=10.0,
        groups=(
            GroupSummary(
                "batch_1",
                "2 conversation(s)",
                OutcomeCounts(total, successful, total - successful),
                10.0,
            ),
        ),
    )
    values.update(overrides)
    return RunSummary(**values)


class TestHealthLevel:
    """Tests for health_level thresholds."""

    @pytest.mark.parametrize(
        ("rate", "level"),
        [
            (0.0, HealthLevel.CRITICAL),
            (0.49, HealthLevel.CRITICAL),
            (0.5, HealthLevel.WARNING),
            (0.89, HealthLevel.WARNING),
            (0.9, HealthLevel.HEALTHY),
            (1.0, HealthLevel.HEALTHY),
        ],
    )
    def test_thresholds(self, rate, level):
        """Critical below 50 %, warning below 90 %."""
        assert health_level(rate) == level


class TestRenderReport:
    """Tests for render_report."""

    def test_summary_figures(self):
        """Headline figures come straight from the summary."""
        html = render_report(make_summary(9, 10), generated_at=datetime(2025, 1, 1, 12, 0, 0))

        assert "<title>Chat API Load Test Report</title>" in html
        assert "2025-01-01 12:00:00" in html
        assert "90.00%" in html
        assert "1.00 exchanges/second" in html
        assert "batch_1" in html
        assert "banner" not in html.split("<body>")[1].split('<div class="summary">')[0]

    def test_critical_banner(self):
        """Low success rates render a critical banner."""
        html = render_report(make_summary(1, 10))

        assert 'class="banner critical"' in html
        assert "CRITICAL: success rate 10.00%" in html

    def test_warning_banner(self):
        """Moderate success rates render a warning banner."""
        assert 'class="banner warning"' in render_report(make_summary(7, 10))

    def test_no_failures(self):
        """A clean run says so instead of an empty table."""
        assert "No failed exchanges." in render_report(make_summary(10, 10))

    def test_error_patterns_escaped(self):
        """Error text and bodies are HTML-escaped."""
        pattern = ErrorPattern(
            model="m",
            error="<script>alert(1)</script>",
            occurrence_count=3,
            request={"model": "m"},
            response="<b>bad</b>",
            example_path="batch_1/conv_key1/exchange_1.json",
        )
        html = render_report(make_summary(7, 10, error_patterns=(pattern,)))

        assert "<script>alert(1)</script>" not in html
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
        assert "&lt;b&gt;bad&lt;/b&gt;" in html
        assert "batch_1/conv_key1/exchange_1.json" in html

    def test_scenario_purposes(self):
        """Scenario reports list purposes under the group label."""
        summary = make_summary(
            10,
            10,
            groups=(GroupSummary("1a", "Single key", OutcomeCounts(10, 10, 0), 5.0, "Serial load"),),
        )

        html = render_report(summary, title="Scenario Report", group_label="Scenario")

        assert "Scenario Purposes" in html
        assert "<strong>1a</strong>: Serial load" in html
        assert "2.00</td>" in html

    def test_pure(self):
        """Rendering the same summary twice gives the same document."""
        summary = make_summary(5, 10)

        assert render_report(summary) == render_report(summary)
