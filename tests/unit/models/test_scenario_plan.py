"""Unit tests for scenario definitions and plan selection."""

import pytest

from chatload.models.scenario import Scenario, default_scenario_plan, scenario_purpose


class TestDefaultPlan:
    """Tests for the default scenario plan."""

    def test_twelve_scenarios_in_order(self):
        """Six groups with an a and b variant each, in order."""
        plan = default_scenario_plan()

        assert [s.scenario_id for s in plan] == [
            "1a", "1b", "2a", "2b", "3a", "3b", "4a", "4b", "5a", "5b", "6a", "6b",
        ]

    def test_request_totals(self):
        """Request totals match the scenario descriptions."""
        totals = {s.scenario_id: s.total_requests for s in default_scenario_plan()}

        assert totals["1a"] == 10
        assert totals["1b"] == 100
        assert totals["2b"] == 100
        assert totals["3a"] == 50
        assert totals["6b"] == 100

    def test_modes(self):
        """Even groups are concurrent, groups 5 and 6 bind models."""
        by_id = {s.scenario_id: s for s in default_scenario_plan()}

        assert not by_id["1a"].concurrent
        assert by_id["2a"].concurrent
        assert not by_id["3b"].concurrent and not by_id["3b"].distinct_models
        assert by_id["4a"].concurrent and not by_id["4a"].distinct_models
        assert by_id["5a"].distinct_models and not by_id["5a"].concurrent
        assert by_id["6b"].distinct_models and by_id["6b"].concurrent

    def test_names_and_descriptions(self):
        """Scenario names double as directory suffixes."""
        by_id = {s.scenario_id: s for s in default_scenario_plan()}

        assert by_id["1b"].name == "serial_100"
        assert by_id["4b"].name == "5keys_concurrent_20_each"
        assert by_id["5a"].name == "5keys_models_serial_10_each"
        assert by_id["6a"].description == (
            "5 keys with different models, 10 concurrent requests per key (50 total)"
        )


class TestSelect:
    """Tests for ScenarioPlan.select."""

    def test_no_selection_keeps_all(self):
        """None or an empty list keeps the whole plan."""
        plan = default_scenario_plan()

        assert len(plan.select(None)) == 12
        assert len(plan.select([])) == 12

    def test_select_ids_and_groups(self):
        """Ids and group digits can be mixed; plan order is preserved."""
        selected = default_scenario_plan().select(["4", "1a"])

        assert [s.scenario_id for s in selected] == ["1a", "4a", "4b"]

    def test_unknown_id(self):
        """Unknown ids are rejected."""
        with pytest.raises(ValueError, match="7z"):
            default_scenario_plan().select(["1a", "7z"])


class TestScenario:
    """Tests for Scenario properties."""

    def test_group_and_purpose(self):
        """Group is the leading number, purpose comes from the group."""
        scenario = Scenario("4b", "x", "y", key_count=5, requests_per_key=20, concurrent=True)

        assert scenario.group == 4
        assert "multiple keys under concurrent load" in scenario.purpose

    def test_unknown_purpose(self):
        """Ids outside the known groups have a placeholder purpose."""
        assert scenario_purpose("9a") == "Unknown scenario purpose"
