"""Scenario store: loads the shipped scenario documents once and indexes them."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from .graph import Scenario, build_scenario, diagnose, validate

DEFAULT_SCENARIO_DIR = Path(__file__).resolve().parent / "scenarios"


class ScenarioNotFound(KeyError):
    """Raised by :meth:`ScenarioStore.require` for unknown scenario ids."""


def _stderr(message: str) -> None:
    print(message, file=sys.stderr)


def load_scenario(path: Path | str) -> Scenario:
    with open(path, "r", encoding="utf-8") as handle:
        data = json.load(handle)
    try:
        return build_scenario(data)
    except ValueError as exc:
        raise ValueError(f"{path}: {exc}") from exc


def report_broken_references(scenario: Scenario, print_func: Callable[[str], None] = _stderr) -> int:
    broken = validate(scenario)
    for ref in broken:
        print_func(
            f"[!] Broken reference in '{scenario.id}': node '{ref.from_node_id}' -> "
            f"'{ref.target_id}' does not exist"
        )
    for warning in diagnose(scenario):
        print_func(f"[!] {scenario.id}: {warning}")
    return len(broken)


class ScenarioStore:
    """Read-only index of scenarios keyed by id, in load order."""

    def __init__(self, scenarios: Iterable[Scenario]) -> None:
        self._scenarios: List[Scenario] = []
        self._by_id: Dict[str, Scenario] = {}
        for scenario in scenarios:
            if scenario.id in self._by_id:
                raise ValueError(f"Duplicate scenario id '{scenario.id}'.")
            self._scenarios.append(scenario)
            self._by_id[scenario.id] = scenario

    @classmethod
    def from_directory(
        cls,
        directory: Path | str = DEFAULT_SCENARIO_DIR,
        *,
        dev_mode: bool = False,
        print_func: Callable[[str], None] = _stderr,
    ) -> "ScenarioStore":
        directory = Path(directory)
        scenarios = [load_scenario(file) for file in sorted(directory.glob("*.json"))]
        if dev_mode:
            for scenario in scenarios:
                report_broken_references(scenario, print_func)
        return cls(scenarios)

    @property
    def scenarios(self) -> List[Scenario]:
        return list(self._scenarios)

    def get(self, scenario_id: str) -> Optional[Scenario]:
        return self._by_id.get(scenario_id)

    def require(self, scenario_id: str) -> Scenario:
        scenario = self._by_id.get(scenario_id)
        if scenario is None:
            raise ScenarioNotFound(scenario_id)
        return scenario

    def by_language(self, language: str) -> List[Scenario]:
        return [scenario for scenario in self._scenarios if scenario.language == language]

    def __contains__(self, scenario_id: object) -> bool:
        return scenario_id in self._by_id

    def __len__(self) -> int:
        return len(self._scenarios)
