#!/usr/bin/env python3
"""Validate scenario documents for authoring mistakes and broken references."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_SCENARIOS = REPO_ROOT / "drfti" / "scenarios"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from drfti.graph import build_scenario, diagnose, validate
from drfti.schema import validate_scenario_data


def load_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def collect_files(target: Path) -> List[Path]:
    if target.is_dir():
        return sorted(target.glob("*.json"))
    return [target]


def check_file(path: Path) -> tuple[List[str], List[str]]:
    """Return ``(errors, warnings)`` for one scenario file."""
    try:
        data = load_json(path)
    except json.JSONDecodeError as exc:
        return [f"Failed to parse JSON: {exc}"], []

    errors = validate_scenario_data(data)
    if errors:
        return errors, []

    scenario = build_scenario(data)
    errors = [
        f"nodes[{json.dumps(ref.from_node_id)}]: broken reference -> '{ref.target_id}' does not exist."
        for ref in validate(scenario)
    ]
    return errors, diagnose(scenario)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate drfti scenario content.")
    parser.add_argument(
        "scenario_path",
        nargs="?",
        default=str(DEFAULT_SCENARIOS),
        help="Scenario JSON file or directory of scenario files.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    target = Path(args.scenario_path).resolve()
    files = collect_files(target)
    if not files:
        print(f"No scenario files found at {target}.")
        sys.exit(1)

    failed = False
    for path in files:
        errors, warnings = check_file(path)
        if errors:
            failed = True
            print(f"Validation failed for {path.name} (path: message):")
            for err in errors:
                print(f" - {err}")
        if warnings:
            print(f"Warnings for {path.name}:")
            for warning in warnings:
                print(f" - {warning}")

    if failed:
        sys.exit(1)
    print(f"Validation passed for {len(files)} scenario file(s) in {target}.")


if __name__ == "__main__":
    main(sys.argv)
