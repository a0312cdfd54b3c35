"""Dialogue graph model: scenarios, nodes, and read-only accessors."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from .schema import PHONETIC_FIELD, TRANSLATION_FIELD, normalize_nodes, validate_scenario_data


class BrokenReference(NamedTuple):
    from_node_id: str
    target_id: str


@dataclass(frozen=True)
class DialogueNode:
    id: str
    speaker: str
    text: str
    phonetic: str
    translation: str
    audio_key: str
    cultural_note: Optional[str] = None
    options: Optional[Tuple[str, ...]] = None
    next: Optional[str] = None
    # True only when the source document says ``"next": null``.
    terminal: bool = False

    @property
    def is_branching(self) -> bool:
        return bool(self.options)

    @property
    def is_dangling(self) -> bool:
        return not self.options and self.next is None and not self.terminal

    def targets(self) -> List[str]:
        found: List[str] = list(self.options or ())
        if self.next is not None:
            found.append(self.next)
        return found


@dataclass(frozen=True)
class Scenario:
    id: str
    title: str
    root_node_id: str
    nodes: Mapping[str, DialogueNode]
    language: str = "ja"
    emoji: str = ""
    description: str = ""
    difficulty: str = "beginner"
    duration_minutes: int = 0
    cultural_notes: Tuple[str, ...] = field(default_factory=tuple)

    def node(self, node_id: Optional[str]) -> Optional[DialogueNode]:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    @property
    def root(self) -> DialogueNode:
        return self.nodes[self.root_node_id]


def is_terminal(node: Optional[DialogueNode]) -> bool:
    return node is not None and node.terminal and not node.options


def is_branching(node: Optional[DialogueNode]) -> bool:
    return node is not None and node.is_branching


def exchange_count(path: Sequence[str]) -> int:
    """One exchange is a staff line plus a customer line."""
    return len(path) // 2


def format_duration(minutes: int) -> str:
    return f"~{minutes} min"


def validate(scenario: Scenario) -> List[BrokenReference]:
    broken: List[BrokenReference] = []
    for node_id, node in scenario.nodes.items():
        for target in node.targets():
            if target not in scenario.nodes:
                broken.append(BrokenReference(node_id, target))
    return broken


def diagnose(scenario: Scenario) -> List[str]:
    """Non-fatal authoring warnings that traversal tolerates."""
    warnings: List[str] = []
    for node_id, node in scenario.nodes.items():
        if node.is_dangling:
            warnings.append(
                f"Node '{node_id}' has neither 'options' nor 'next'; traversal cannot advance past it."
            )
        if node.options and (node.next is not None or node.terminal):
            warnings.append(
                f"Node '{node_id}' carries both 'options' and 'next'; the selected option wins."
            )
    return warnings


def _raise_scenario_validation(errors: Sequence[str]) -> None:
    raise ValueError("Invalid scenario:\n- " + "\n- ".join(errors))


def build_node(node_id: str, payload: Mapping[str, Any], language: str) -> DialogueNode:
    options = payload.get("options")
    terminal = "next" in payload and payload["next"] is None
    return DialogueNode(
        id=node_id,
        speaker=payload["speaker"],
        text=payload[language],
        phonetic=payload[PHONETIC_FIELD],
        translation=payload[TRANSLATION_FIELD],
        audio_key=payload["audio_key"],
        cultural_note=payload.get("cultural_note"),
        options=tuple(options) if options else None,
        next=payload.get("next"),
        terminal=terminal,
    )


def build_scenario(data: Mapping[str, Any]) -> Scenario:
    """Validate a raw scenario document and build the immutable graph."""
    errors = validate_scenario_data(data)
    if errors:
        _raise_scenario_validation(errors)

    language = data.get("language", "ja")
    raw_nodes, _ = normalize_nodes(data.get("nodes"))
    nodes: Dict[str, DialogueNode] = {
        node_id: build_node(node_id, payload, language) for node_id, payload in raw_nodes.items()
    }
    return Scenario(
        id=data["id"],
        title=data["title"],
        root_node_id=data["root_node_id"],
        nodes=MappingProxyType(nodes),
        language=language,
        emoji=str(data.get("emoji") or ""),
        description=str(data.get("description") or ""),
        difficulty=data.get("difficulty") or "beginner",
        duration_minutes=int(data.get("duration_minutes") or 0),
        cultural_notes=tuple(data.get("cultural_notes") or ()),
    )
