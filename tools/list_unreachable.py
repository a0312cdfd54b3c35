import json
import sys
from pathlib import Path

DEFAULT_SCENARIO_DIR = Path("drfti/scenarios")


def load_scenario(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def node_targets(node: dict) -> list:
    targets = [option for option in node.get("options") or [] if isinstance(option, str)]
    if isinstance(node.get("next"), str):
        targets.append(node["next"])
    return targets


def build_graph(scenario: dict) -> tuple:
    """Return the adjacency map plus messages for targets that do not exist."""
    nodes = scenario.get("nodes", {})
    graph = {node_id: [] for node_id in nodes}
    missing_targets = []
    for node_id, node in nodes.items():
        for target in node_targets(node):
            graph[node_id].append(target)
            if target not in nodes:
                missing_targets.append(f"{node_id} -> missing node {target}")
    return graph, missing_targets


def traverse_from(start_node: str, graph: dict) -> set:
    if start_node not in graph:
        return set()
    visited = set()
    stack = [start_node]
    while stack:
        current = stack.pop()
        if current in visited or current not in graph:
            continue
        visited.add(current)
        stack.extend(graph.get(current, []))
    return visited


def report(path: Path) -> list:
    scenario = load_scenario(path)
    graph, missing_targets = build_graph(scenario)
    reached = traverse_from(scenario.get("root_node_id", ""), graph)
    unreachable = sorted(set(graph.keys()) - reached)

    print(f"Scenario file: {path}")
    print(f"Total nodes: {len(graph)}")
    print(f"Reachable nodes: {len(reached)}")
    for message in missing_targets:
        print(f"  ! {message}")
    if unreachable:
        print("Unreachable nodes:")
        for node_id in unreachable:
            print(f"  - {node_id}")
    else:
        print("All nodes reachable from the root.")
    return unreachable


def main() -> None:
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_SCENARIO_DIR
    files = sorted(target.glob("*.json")) if target.is_dir() else [target]
    for path in files:
        report(path)


if __name__ == "__main__":
    main()
