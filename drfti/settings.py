"""Learner preferences stored in ``settings.json`` next to the package."""

from __future__ import annotations

import json
import os
import sys
import tempfile
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from .schema import LANGUAGES

_BASE_DIR = Path(__file__).resolve().parent.parent
SETTINGS_PATH = _BASE_DIR / "settings.json"

# Numeric preferences and the range each one is held to.
BOUNDS: Mapping[str, Tuple[float, float]] = {
    "playback_rate": (0.5, 2.0),
    "note_duration": (1.0, 60.0),
    "replay_initial_delay": (0.05, 10.0),
    "replay_step_delay": (0.05, 10.0),
}

_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off"}


def _coerce_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        return default
    return default if value is None else bool(value)


@dataclass
class Settings:
    language: str = "ja"
    autoplay_audio: bool = True
    playback_rate: float = 1.0
    note_duration: float = 6.0
    replay_initial_delay: float = 0.8
    replay_step_delay: float = 0.6
    dev_mode: bool = False

    def clamp(self) -> "Settings":
        language = str(self.language).lower()
        self.language = language if language in LANGUAGES else "ja"
        self.autoplay_audio = _coerce_bool(self.autoplay_audio, True)
        self.dev_mode = _coerce_bool(self.dev_mode, False)
        for name, (low, high) in BOUNDS.items():
            value = _coerce_float(getattr(self, name), getattr(Settings, name))
            setattr(self, name, max(low, min(high, value)))
        return self

    def copy(self) -> "Settings":
        return Settings(**self.to_dict()).clamp()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "Settings":
        """Build settings from loaded JSON, ignoring unknown keys and bad values."""
        if not isinstance(data, dict):
            return cls()
        values: Dict[str, Any] = {}
        for item in fields(cls):
            default = getattr(cls, item.name)
            raw = data.get(item.name, default)
            if isinstance(default, bool):
                values[item.name] = _coerce_bool(raw, default)
            elif isinstance(default, float):
                values[item.name] = _coerce_float(raw, default)
            else:
                values[item.name] = str(raw)
        return cls(**values).clamp()


def load_settings(path: Path | str = SETTINGS_PATH) -> Settings:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return Settings()
    return Settings.from_dict(data)


def save_settings(settings: Settings, path: Path | str = SETTINGS_PATH) -> Settings:
    """Write a clamped copy of ``settings`` atomically and return that copy."""
    path = Path(path)
    sanitized = settings.copy()
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=path.name, suffix=".tmp")
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(sanitized.to_dict(), handle, indent=2)
            handle.write("\n")
        os.replace(tmp_name, path)
    except OSError as exc:
        print(f"[Settings] Could not save {path}: {exc}", file=sys.stderr)
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
    return sanitized
