import json
from pathlib import Path

import pytest

from drfti.journeys import (
    JOURNEYS_KEY,
    FileStorage,
    JourneyError,
    JourneyStore,
    MemoryStorage,
    SavedJourney,
    WebStorage,
    default_storage,
)


class BrokenStorage:
    def get_item(self, key: str):
        raise RuntimeError("quota exceeded")

    def set_item(self, key: str, value: str) -> None:
        raise RuntimeError("quota exceeded")


class FakeLocalStorage:
    def __init__(self) -> None:
        self.data = {}

    def getItem(self, key: str):
        return self.data.get(key)

    def setItem(self, key: str, value: str) -> None:
        self.data[key] = value


def make_store(storage=None):
    messages = []
    store = JourneyStore(
        storage if storage is not None else MemoryStorage(),
        clock=lambda: "2026-01-01T00:00:00+00:00",
        print_func=messages.append,
    )
    return store, messages


def test_save_then_load() -> None:
    store, _ = make_store()
    saved = store.save("ramen-shop", ["a", "b", "c"])
    assert saved == SavedJourney("ramen-shop", ("a", "b", "c"), "2026-01-01T00:00:00+00:00")
    assert store.load("ramen-shop") == saved
    assert store.has("ramen-shop")
    assert store.load("cafe") is None


def test_save_replaces_existing_record_for_scenario() -> None:
    storage = MemoryStorage()
    store, _ = make_store(storage)
    store.save("ramen-shop", ["a"])
    store.save("cafe", ["x", "y"])
    store.save("ramen-shop", ["a", "b"])

    entries = json.loads(storage.items[JOURNEYS_KEY])
    assert [entry["scenario_id"] for entry in entries] == ["cafe", "ramen-shop"]
    assert store.load("ramen-shop").path == ("a", "b")
    assert store.load("cafe").path == ("x", "y")


def test_corrupt_data_reads_as_no_journey() -> None:
    store, messages = make_store(MemoryStorage({JOURNEYS_KEY: "{not json"}))
    assert store.load("ramen-shop") is None
    assert store.list_journeys() == []
    assert messages and messages[0].startswith("[Journeys]")


def test_non_list_payload_reads_as_no_journey() -> None:
    store, _ = make_store(MemoryStorage({JOURNEYS_KEY: json.dumps({"scenario_id": "cafe"})}))
    assert store.load("cafe") is None


def test_save_over_corrupt_data_is_skipped() -> None:
    storage = MemoryStorage({JOURNEYS_KEY: "]["})
    store, messages = make_store(storage)
    assert store.save("cafe", ["x"]) is None
    assert storage.items[JOURNEYS_KEY] == "]["
    assert any("skipped" in message for message in messages)


def test_malformed_entries_are_ignored_but_kept() -> None:
    raw = [{"scenario_id": "cafe", "path": "oops"}, "junk", {"scenario_id": "shoe-store", "path": ["s"]}]
    storage = MemoryStorage({JOURNEYS_KEY: json.dumps(raw)})
    store, _ = make_store(storage)

    assert [journey.scenario_id for journey in store.list_journeys()] == ["shoe-store"]

    store.save("ramen-shop", ["r"])
    entries = json.loads(storage.items[JOURNEYS_KEY])
    assert "junk" in entries
    assert len(entries) == 4


def test_unavailable_storage_never_raises() -> None:
    store, messages = make_store(BrokenStorage())
    assert store.save("cafe", ["x"]) is None
    assert store.load("cafe") is None
    assert not store.has("cafe")
    assert len(messages) == 3


def test_saved_journey_from_dict_rejects_bad_shapes() -> None:
    assert SavedJourney.from_dict(None) is None
    assert SavedJourney.from_dict({"scenario_id": 3, "path": []}) is None
    assert SavedJourney.from_dict({"scenario_id": "cafe", "path": ["a", 1]}) is None
    journey = SavedJourney.from_dict({"scenario_id": "cafe", "path": ["a"]})
    assert journey.saved_at == ""


def test_file_storage_persists_between_stores(tmp_path: Path) -> None:
    first, _ = make_store(FileStorage(tmp_path))
    first.save("cafe", ["f_staff_welcome", "f_cust_order"])

    second, _ = make_store(FileStorage(tmp_path))
    assert second.load("cafe").path == ("f_staff_welcome", "f_cust_order")
    assert (tmp_path / f"{JOURNEYS_KEY}.json").exists()
    assert not list(tmp_path.glob("*.tmp"))


def test_file_storage_sanitizes_keys(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path)
    assert storage.path_for("../evil key").name == ".._evil_key.json"
    assert storage.get_item("absent") is None


def test_file_storage_write_failure_is_a_journey_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocked"
    blocker.write_text("", encoding="utf-8")
    storage = FileStorage(blocker / "saves")
    with pytest.raises(JourneyError, match="Could not write"):
        storage.set_item("k", "v")


def test_web_storage_wraps_local_storage() -> None:
    local = FakeLocalStorage()
    store, _ = make_store(WebStorage(local))
    store.save("cafe", ["x"])
    assert JOURNEYS_KEY in local.data
    assert store.load("cafe").path == ("x",)


def test_default_storage_is_file_backed_off_the_web(tmp_path: Path) -> None:
    storage = default_storage(tmp_path)
    assert isinstance(storage, FileStorage)
    assert storage.base_path == tmp_path
