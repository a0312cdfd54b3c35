"""Saved-journey persistence.

All journeys live as one JSON list under a single namespaced key. Every
save reads the whole list, drops the entry for the scenario being saved,
appends the new record and writes the list back. Storage failures never
escape :class:`JourneyStore`; they read as "no journey" and saves become
no-ops.
"""

from __future__ import annotations

import json
import os
import re
import sys
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

JOURNEYS_KEY = "drfti_journeys"
DEFAULT_SAVE_ROOT = Path("saves")
IS_WEB = sys.platform == "emscripten"


class JourneyError(Exception):
    """Base class for journey storage failures."""


class JourneyCorruptError(JourneyError):
    """Raised when stored journey data cannot be parsed."""


@dataclass(frozen=True)
class SavedJourney:
    scenario_id: str
    path: Tuple[str, ...]
    saved_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {"scenario_id": self.scenario_id, "path": list(self.path), "saved_at": self.saved_at}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["SavedJourney"]:
        if not isinstance(data, dict):
            return None
        scenario_id = data.get("scenario_id")
        path = data.get("path")
        if not isinstance(scenario_id, str) or not isinstance(path, list):
            return None
        if not all(isinstance(node_id, str) for node_id in path):
            return None
        saved_at = data.get("saved_at")
        return cls(scenario_id=scenario_id, path=tuple(path), saved_at=str(saved_at or ""))


class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value


class FileStorage:
    """One JSON file per key under ``base_path``."""

    _UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

    def __init__(self, base_path: Path | str = DEFAULT_SAVE_ROOT) -> None:
        self.base_path = Path(base_path)

    def path_for(self, key: str) -> Path:
        return self.base_path / f"{self._UNSAFE_CHARS.sub('_', key)}.json"

    def get_item(self, key: str) -> Optional[str]:
        try:
            return self.path_for(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise JourneyError(f"Could not read {self.path_for(key)}: {exc}") from exc

    def set_item(self, key: str, value: str) -> None:
        path = self.path_for(key)
        tmp_path: Path | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", delete=False, dir=path.parent, prefix=path.name, suffix=".tmp", encoding="utf-8"
            ) as tmp_file:
                tmp_file.write(value)
                tmp_file.write("\n")
                tmp_path = Path(tmp_file.name)
            os.replace(str(tmp_path), str(path))
        except OSError as exc:
            if tmp_path is not None:
                try:
                    tmp_path.unlink()
                except OSError:
                    pass
            raise JourneyError(f"Could not write {path}: {exc}") from exc


class WebStorage:
    """Browser ``localStorage`` in a Pyodide build."""

    def __init__(self, local_storage: Any) -> None:
        self._local_storage = local_storage

    def get_item(self, key: str) -> Optional[str]:
        raw = self._local_storage.getItem(key)
        return None if raw is None else str(raw)

    def set_item(self, key: str, value: str) -> None:
        self._local_storage.setItem(key, value)


def get_local_storage() -> Optional[Any]:
    if not IS_WEB:
        return None
    try:
        from js import localStorage  # type: ignore
    except ImportError:
        return None
    return localStorage


def default_storage(base_path: Path | str = DEFAULT_SAVE_ROOT) -> KeyValueStorage:
    local_storage = get_local_storage()
    if local_storage is not None:
        return WebStorage(local_storage)
    return FileStorage(base_path)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _stderr(message: str) -> None:
    print(message, file=sys.stderr)


class JourneyStore:
    """Upsert/lookup of one saved journey per scenario."""

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = JOURNEYS_KEY,
        clock: Callable[[], str] = _utc_now,
        print_func: Callable[[str], None] = _stderr,
    ) -> None:
        self.storage = storage
        self.key = key
        self.clock = clock
        self.print = print_func

    # ---------- Public API ----------
    def save(self, scenario_id: str, path: Sequence[str]) -> Optional[SavedJourney]:
        journey = SavedJourney(scenario_id=scenario_id, path=tuple(path), saved_at=self.clock())
        try:
            entries = self._read_entries()
            kept = [
                entry
                for entry in entries
                if not (isinstance(entry, dict) and entry.get("scenario_id") == scenario_id)
            ]
            kept.append(journey.to_dict())
            self._write_entries(kept)
        except JourneyError as err:
            self.print(f"[Journeys] Save for '{scenario_id}' skipped: {err}")
            return None
        return journey

    def load(self, scenario_id: str) -> Optional[SavedJourney]:
        for journey in self.list_journeys():
            if journey.scenario_id == scenario_id:
                return journey
        return None

    def has(self, scenario_id: str) -> bool:
        return self.load(scenario_id) is not None

    def list_journeys(self) -> List[SavedJourney]:
        try:
            entries = self._read_entries()
        except JourneyError as err:
            self.print(f"[Journeys] Saved journeys unavailable: {err}")
            return []
        journeys = []
        for entry in entries:
            journey = SavedJourney.from_dict(entry)
            if journey is not None:
                journeys.append(journey)
        return journeys

    # ---------- Internal helpers ----------
    def _read_entries(self) -> List[Any]:
        try:
            raw = self.storage.get_item(self.key)
        except JourneyError:
            raise
        except Exception as exc:
            raise JourneyError(f"Storage read failed: {exc}") from exc
        if raw is None or raw == "":
            return []
        try:
            payload = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as exc:
            raise JourneyCorruptError(f"Invalid JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise JourneyCorruptError("Journey data was not a list.")
        return payload

    def _write_entries(self, entries: List[Any]) -> None:
        serialized = json.dumps(entries, ensure_ascii=False)
        try:
            self.storage.set_item(self.key, serialized)
        except JourneyError:
            raise
        except Exception as exc:
            raise JourneyError(f"Storage write failed: {exc}") from exc
