import copy
import json
from pathlib import Path

import pytest

from drfti.graph import (
    BrokenReference,
    build_scenario,
    diagnose,
    exchange_count,
    format_duration,
    is_branching,
    is_terminal,
    validate,
)
from drfti.schema import path, validate_scenario_data
from drfti.store import DEFAULT_SCENARIO_DIR, ScenarioNotFound, ScenarioStore, load_scenario


def line(node_id: str, speaker: str, **extra) -> dict:
    node = {
        "id": node_id,
        "speaker": speaker,
        "ja": f"{node_id} ja",
        "romaji": f"{node_id} romaji",
        "en": f"{node_id} en",
        "audio_key": f"audio_{node_id}",
    }
    node.update(extra)
    return node


def sample_document() -> dict:
    return {
        "id": "sample",
        "title": "Sample",
        "language": "ja",
        "root_node_id": "A",
        "nodes": {
            "A": line("A", "customer", next="B"),
            "B": line("B", "staff", options=["C", "D"]),
            "C": line("C", "customer", next=None),
            "D": line("D", "customer", next=None),
        },
    }


def write_scenario(tmp_path: Path, document: dict, name: str = "sample.json") -> Path:
    target = tmp_path / name
    target.write_text(json.dumps(document), encoding="utf-8")
    return target


def test_build_scenario_reads_nodes_and_edges() -> None:
    scenario = build_scenario(sample_document())
    assert scenario.root_node_id == "A"
    assert scenario.node("A").next == "B"
    assert scenario.node("B").options == ("C", "D")
    assert scenario.node("C").text == "C ja"
    assert scenario.node("C").phonetic == "C romaji"
    assert scenario.node("C").translation == "C en"
    assert scenario.node("missing") is None
    assert scenario.node(None) is None


def test_terminal_marker_is_distinct_from_unset_next() -> None:
    document = sample_document()
    document["nodes"]["E"] = line("E", "customer")
    scenario = build_scenario(document)
    assert is_terminal(scenario.node("C"))
    assert not is_terminal(scenario.node("E"))
    assert scenario.node("E").is_dangling
    assert not is_terminal(scenario.node("A"))
    assert not is_terminal(None)


def test_options_make_a_node_branching_regardless_of_speaker() -> None:
    document = sample_document()
    document["nodes"]["A"] = line("A", "customer", options=["B"])
    scenario = build_scenario(document)
    assert is_branching(scenario.node("A"))
    assert not is_branching(scenario.node("C"))


def test_unknown_fields_are_tolerated() -> None:
    document = sample_document()
    document["soundtrack"] = "lofi"
    document["nodes"]["A"]["mood"] = "hungry"
    scenario = build_scenario(document)
    assert scenario.node("A").next == "B"


def test_validate_reports_broken_references() -> None:
    document = sample_document()
    document["nodes"]["B"]["options"] = ["C", "Z"]
    document["nodes"]["C"]["next"] = "Y"
    scenario = build_scenario(document)
    assert validate(scenario) == [BrokenReference("B", "Z"), BrokenReference("C", "Y")]


def test_diagnose_flags_dangling_and_ambiguous_nodes() -> None:
    document = sample_document()
    document["nodes"]["B"]["next"] = "C"
    document["nodes"]["E"] = line("E", "staff")
    warnings = diagnose(build_scenario(document))
    assert any("'B'" in warning and "both" in warning for warning in warnings)
    assert any("'E'" in warning and "neither" in warning for warning in warnings)


@pytest.mark.parametrize(
    ("mutate", "match"),
    [
        (lambda doc: doc.pop("title"), "title"),
        (lambda doc: doc.update(root_node_id="nowhere"), "root_node_id"),
        (lambda doc: doc.update(nodes="nope"), "nodes"),
        (lambda doc: doc["nodes"]["A"].update(speaker="chef"), "speaker"),
        (lambda doc: doc["nodes"]["A"].update(audio_key=""), "audio_key"),
        (lambda doc: doc["nodes"]["A"].pop("romaji"), "romaji"),
        (lambda doc: doc["nodes"]["B"].update(options=[]), "options"),
        (lambda doc: doc["nodes"]["A"].update(next=42), "next"),
        (lambda doc: doc["nodes"]["A"].update(id="other"), "keyed as"),
    ],
)
def test_build_scenario_rejects_invalid_shapes(mutate, match: str) -> None:
    document = copy.deepcopy(sample_document())
    mutate(document)
    with pytest.raises(ValueError, match=match):
        build_scenario(document)


def test_nodes_may_be_given_as_a_list() -> None:
    document = sample_document()
    document["nodes"] = list(document["nodes"].values())
    assert validate_scenario_data(document) == []
    assert set(build_scenario(document).nodes) == {"A", "B", "C", "D"}


def test_validation_messages_carry_paths() -> None:
    document = sample_document()
    document["nodes"]["B"]["options"] = ["C", ""]
    errors = validate_scenario_data(document)
    assert any(error.startswith('nodes.B.options[1]: ') for error in errors)
    assert path("nodes", "r-1", "next") == 'nodes["r-1"].next'


def test_exchange_count_and_duration() -> None:
    assert exchange_count(["A"]) == 0
    assert exchange_count(["A", "B", "C", "D", "E"]) == 2
    assert format_duration(5) == "~5 min"


def test_shipped_scenarios_have_no_broken_references() -> None:
    store = ScenarioStore.from_directory(DEFAULT_SCENARIO_DIR)
    assert len(store) >= 4
    for scenario in store.scenarios:
        assert validate(scenario) == [], scenario.id
        assert diagnose(scenario) == [], scenario.id
        assert any(is_terminal(node) for node in scenario.nodes.values()), scenario.id


def test_store_lookup_and_language_filter(tmp_path: Path) -> None:
    write_scenario(tmp_path, sample_document())
    store = ScenarioStore.from_directory(tmp_path)
    assert store.get("sample").title == "Sample"
    assert store.get("ghost") is None
    assert "sample" in store
    assert [scenario.id for scenario in store.by_language("ja")] == ["sample"]
    assert store.by_language("fr") == []
    with pytest.raises(ScenarioNotFound):
        store.require("ghost")


def test_store_rejects_duplicate_ids(tmp_path: Path) -> None:
    write_scenario(tmp_path, sample_document(), "one.json")
    write_scenario(tmp_path, sample_document(), "two.json")
    with pytest.raises(ValueError, match="Duplicate scenario id"):
        ScenarioStore.from_directory(tmp_path)


def test_load_scenario_names_the_file_on_error(tmp_path: Path) -> None:
    document = sample_document()
    document["nodes"]["A"]["speaker"] = "robot"
    target = write_scenario(tmp_path, document)
    with pytest.raises(ValueError, match="sample.json"):
        load_scenario(target)


def test_dev_mode_reports_broken_references_without_failing(tmp_path: Path) -> None:
    document = sample_document()
    document["nodes"]["A"]["next"] = "ghost"
    write_scenario(tmp_path, document)
    messages = []
    store = ScenarioStore.from_directory(tmp_path, dev_mode=True, print_func=messages.append)
    assert store.get("sample") is not None
    assert any("'A' -> 'ghost'" in message for message in messages)


def test_scenario_nodes_are_read_only() -> None:
    scenario = build_scenario(sample_document())
    with pytest.raises(TypeError):
        scenario.nodes["E"] = scenario.node("A")
    assert "E" not in scenario.nodes
