"""Structural validation for scenario documents."""

from __future__ import annotations

import json
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Sequence, Tuple

SPEAKERS = ("staff", "customer")
LANGUAGES = ("ja", "fr")
DIFFICULTIES = ("beginner", "conversational")
PHONETIC_FIELD = "romaji"
TRANSLATION_FIELD = "en"


def path(*parts: object) -> str:
    path_str = ""
    for part in parts:
        if isinstance(part, int):
            path_str = f"{path_str}[{part}]"
            continue
        if not isinstance(part, str):
            part = str(part)
        if part.isidentifier():
            path_str = f"{path_str}.{part}" if path_str else part
        else:
            path_str = f"{path_str}[{json.dumps(part)}]"
    return path_str


def format_validation_message(path_str: str, context: str, message: str) -> str:
    if context:
        return f"{path_str}: {context}: {message}"
    return f"{path_str}: {message}"


def is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


class ValidationContext:
    """Utility container for accumulating validation errors."""

    def __init__(self) -> None:
        self.errors: List[str] = []

    def add(self, context: str, path_str: str, message: str) -> None:
        self.errors.append(format_validation_message(path_str, context, message))

    def extend(self, messages: Iterable[str]) -> None:
        self.errors.extend(messages)

    def ok(self) -> bool:
        return not self.errors


def require(condition: bool, context: str, path_str: str, message: str, ctx: ValidationContext) -> None:
    if not condition:
        ctx.add(context, path_str, message)


def normalize_nodes(
    raw_nodes: Any, ctx: ValidationContext | None = None
) -> Tuple[Dict[str, Dict[str, Any]], List[str]]:
    """Accept nodes as an id mapping or as a list of entries carrying ``id``."""
    nodes: Dict[str, Dict[str, Any]] = {}
    errors: List[str] = []
    node_ids: List[str] = []

    def add_error(context: str, path_parts: Sequence[object], message: str) -> None:
        path_str = path(*path_parts)
        errors.append(format_validation_message(path_str, context, message))
        if ctx is not None:
            ctx.add(context, path_str, message)

    if isinstance(raw_nodes, Mapping):
        for node_id, payload in raw_nodes.items():
            if not is_non_empty_str(node_id):
                add_error("Nodes", ("nodes",), "node identifiers must be non-empty strings.")
                continue
            if not isinstance(payload, Mapping):
                add_error("Nodes", ("nodes", node_id), f"node '{node_id}' must be an object.")
                continue
            declared = payload.get("id", node_id)
            if declared != node_id:
                add_error(
                    f"Node '{node_id}'",
                    ("nodes", node_id, "id"),
                    f"declares id '{declared}' but is keyed as '{node_id}'.",
                )
                continue
            nodes[node_id] = dict(payload)
        node_ids = list(nodes.keys())
    elif isinstance(raw_nodes, list):
        for idx, entry in enumerate(raw_nodes, start=1):
            if not isinstance(entry, MutableMapping):
                add_error(f"Node entry {idx}", ("nodes", idx - 1), "must be an object.")
                continue
            node_id = entry.get("id")
            if not is_non_empty_str(node_id):
                add_error(f"Node entry {idx}", ("nodes", idx - 1, "id"), "is missing a valid 'id'.")
                continue
            node_ids.append(node_id)
            nodes[node_id] = dict(entry)
    else:
        add_error(
            "Scenario data",
            ("nodes",),
            "must be an object mapping IDs to node definitions or a list of node entries.",
        )

    duplicates = [node_id for node_id, count in Counter(node_ids).items() if count > 1]
    if duplicates:
        dup_list = ", ".join(sorted(set(duplicates)))
        add_error("Nodes", ("nodes",), f"duplicate node IDs found: {dup_list}.")

    return nodes, errors


def validate_node(node_id: str, node: Mapping[str, Any], language: str, ctx: ValidationContext) -> None:
    context = f"Node '{node_id}'"

    speaker = node.get("speaker")
    if speaker not in SPEAKERS:
        ctx.add(
            context,
            path("nodes", node_id, "speaker"),
            f"speaker must be one of {', '.join(SPEAKERS)} (got {speaker!r}).",
        )

    for field_name in (language, PHONETIC_FIELD, TRANSLATION_FIELD, "audio_key"):
        require(
            is_non_empty_str(node.get(field_name)),
            context,
            path("nodes", node_id, field_name),
            f"requires a non-empty '{field_name}'.",
            ctx,
        )

    note = node.get("cultural_note")
    if note is not None and not is_non_empty_str(note):
        ctx.add(context, path("nodes", node_id, "cultural_note"), "cultural_note must be text if present.")

    if "options" in node:
        options = node.get("options")
        if not isinstance(options, list) or not options:
            ctx.add(context, path("nodes", node_id, "options"), "options must be a non-empty list.")
        else:
            for index, option in enumerate(options):
                if not is_non_empty_str(option):
                    ctx.add(
                        context,
                        path("nodes", node_id, "options", index),
                        "option entries must be non-empty node ids.",
                    )

    if "next" in node:
        target = node.get("next")
        if target is not None and not is_non_empty_str(target):
            ctx.add(
                context,
                path("nodes", node_id, "next"),
                "next must be a node id or null to end the scenario.",
            )


def validate_scenario_data(data: Any) -> List[str]:
    ctx = ValidationContext()
    if not isinstance(data, Mapping):
        ctx.add("Scenario data", path("scenario"), "must be a JSON object.")
        return ctx.errors

    for key in ("id", "title", "root_node_id"):
        require(
            is_non_empty_str(data.get(key)),
            "Scenario data",
            path(key),
            f"must include a non-empty '{key}'.",
            ctx,
        )

    language = data.get("language", "ja")
    if language not in LANGUAGES:
        ctx.add("Scenario data", path("language"), f"unsupported language '{language}'.")
        language = "ja"

    difficulty = data.get("difficulty")
    if difficulty is not None and difficulty not in DIFFICULTIES:
        ctx.add("Scenario data", path("difficulty"), f"unsupported difficulty '{difficulty}'.")

    duration = data.get("duration_minutes")
    if duration is not None and (isinstance(duration, bool) or not isinstance(duration, int) or duration < 0):
        ctx.add("Scenario data", path("duration_minutes"), "must be a non-negative integer.")

    notes = data.get("cultural_notes")
    if notes is not None and (
        not isinstance(notes, list) or not all(isinstance(note, str) for note in notes)
    ):
        ctx.add("Scenario data", path("cultural_notes"), "must be a list of strings.")

    require("nodes" in data, "Scenario data", path("nodes"), "must include a 'nodes' section.", ctx)
    nodes, _node_errors = normalize_nodes(data.get("nodes"), ctx)
    if "nodes" in data and not nodes and not _node_errors:
        ctx.add("Scenario data", path("nodes"), "must define at least one node.")

    for node_id, node in nodes.items():
        validate_node(node_id, node, language, ctx)

    root = data.get("root_node_id")
    if is_non_empty_str(root) and nodes and root not in nodes:
        ctx.add("Scenario data", path("root_node_id"), f"references unknown node '{root}'.")

    return ctx.errors
