"""Named load shapes used to compare throughput and reliability."""

from collections.abc import Iterator
from dataclasses import dataclass, field

SCENARIO_PURPOSES: dict[str, str] = {
    "1": "Test API performance with a single key under serial load",
    "2": "Test API performance with a single key under concurrent load",
    "3": "Test API performance with multiple keys under serial load per key",
    "4": "Test API performance with multiple keys under concurrent load per key",
    "5": "Test API performance with multiple keys using different models under serial load",
    "6": "Test API performance with multiple keys using different models under concurrent load",
}


def scenario_purpose(scenario_id: str) -> str:
    """Purpose text for a scenario id such as ``4b``."""
    return SCENARIO_PURPOSES.get(scenario_id[:1], "Unknown scenario purpose")


@dataclass(frozen=True)
class Scenario:
    """One load shape.

    Attributes:
        scenario_id: Short id, e.g. ``3a``.
        name: Directory suffix, e.g. ``5keys_serial_10_each``.
        description: Human-readable description.
        key_count: Number of credentials used.
        requests_per_key: Requests sent with each credential.
        concurrent: Fire every request at once instead of one by one.
        distinct_models: Bind a different model to each credential.
    """

    scenario_id: str
    name: str
    description: str
    key_count: int
    requests_per_key: int
    concurrent: bool = False
    distinct_models: bool = False

    @property
    def group(self) -> int:
        """Scenario group number, the leading digit of the id."""
        return int(self.scenario_id[:-1])

    @property
    def total_requests(self) -> int:
        return self.key_count * self.requests_per_key

    @property
    def purpose(self) -> str:
        return scenario_purpose(self.scenario_id)


@dataclass
class ScenarioPlan:
    """Ordered set of scenarios a scenario run executes."""

    scenarios: list[Scenario] = field(default_factory=list)

    def __iter__(self) -> Iterator[Scenario]:
        return iter(self.scenarios)

    def __len__(self) -> int:
        return len(self.scenarios)

    def select(self, ids: list[str] | None) -> "ScenarioPlan":
        """Keep only the given ids (or groups, e.g. ``"4"``), preserving plan order.

        Raises:
            ValueError: If an id matches no scenario.
        """
        if not ids:
            return self
        wanted = set(ids)
        unknown = [
            i for i in wanted
            if not any(s.scenario_id == i or s.scenario_id[:-1] == i for s in self.scenarios)
        ]
        if unknown:
            raise ValueError(f"Unknown scenario id(s): {', '.join(sorted(unknown))}")
        return ScenarioPlan(
            [s for s in self.scenarios if s.scenario_id in wanted or s.scenario_id[:-1] in wanted]
        )


def default_scenario_plan() -> ScenarioPlan:
    """The six scenario groups, each in a light (a) and heavy (b) variant."""
    scenarios = [
        Scenario("1a", "serial_10", "Single key, 10 serial requests", 1, 10),
        Scenario("1b", "serial_100", "Single key, 100 serial requests", 1, 100),
        Scenario("2a", "concurrent_10", "Single key, 10 concurrent requests", 1, 10, concurrent=True),
        Scenario("2b", "concurrent_100", "Single key, 100 concurrent requests", 1, 100, concurrent=True),
    ]
    for group, concurrent, models in (
        (3, False, False),
        (4, True, False),
        (5, False, True),
        (6, True, True),
    ):
        mode = "concurrent" if concurrent else "serial"
        for variant, per_key in (("a", 10), ("b", 20)):
            keys_label = "5keys_models" if models else "5keys"
            with_models = " with different models" if models else ""
            scenarios.append(
                Scenario(
                    scenario_id=f"{group}{variant}",
                    name=f"{keys_label}_{mode}_{per_key}_each",
                    description=(
                        f"5 keys{with_models}, {per_key} {mode} requests per key "
                        f"({5 * per_key} total)"
                    ),
                    key_count=5,
                    requests_per_key=per_key,
                    concurrent=concurrent,
                    distinct_models=models,
                )
            )
    return ScenarioPlan(scenarios)
