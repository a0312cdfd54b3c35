"""Audio playback capability and the controller that cues node audio.

Decoding and rendering live behind :class:`PlaybackAdapter`; traversal
only asks for a line to be played and never waits for it to finish.
"""

from __future__ import annotations

import sys
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from .events import Event, NodeEntered

SPEED_PRESETS: Tuple[float, ...] = (0.75, 1.0, 1.25)

Handle = Any
HandleCallback = Callable[[Handle], None]


def audio_path(audio_key: str, language: str = "ja") -> str:
    return f"/audio/{language}/{audio_key}.mp3"


def nearest_speed(multiplier: float) -> float:
    return min(SPEED_PRESETS, key=lambda preset: (abs(preset - multiplier), preset))


def next_speed(multiplier: float) -> float:
    """Cycle 0.75 -> 1.0 -> 1.25 -> 0.75."""
    index = SPEED_PRESETS.index(nearest_speed(multiplier))
    return SPEED_PRESETS[(index + 1) % len(SPEED_PRESETS)]


class PlaybackAdapter(Protocol):
    def load(self, audio_key: str) -> Handle: ...

    def play(self, handle: Handle) -> None: ...

    def pause(self, handle: Handle) -> None: ...

    def seek(self, handle: Handle, position: float) -> None: ...

    def set_rate(self, handle: Handle, multiplier: float) -> None: ...

    def on_ready(self, callback: HandleCallback) -> None: ...

    def on_finish(self, callback: HandleCallback) -> None: ...

    def on_error(self, callback: HandleCallback) -> None: ...


class SilentPlayback:
    """Adapter with no audio output; records requests and finishes instantly."""

    def __init__(self, language: str = "ja") -> None:
        self.language = language
        self.calls: List[Tuple[str, Any]] = []
        self._callbacks: Dict[str, List[HandleCallback]] = {"ready": [], "finish": [], "error": []}

    def load(self, audio_key: str) -> str:
        handle = audio_path(audio_key, self.language)
        self.calls.append(("load", handle))
        self._fire("ready", handle)
        return handle

    def play(self, handle: Handle) -> None:
        self.calls.append(("play", handle))
        self._fire("finish", handle)

    def pause(self, handle: Handle) -> None:
        self.calls.append(("pause", handle))

    def seek(self, handle: Handle, position: float) -> None:
        self.calls.append(("seek", (handle, position)))

    def set_rate(self, handle: Handle, multiplier: float) -> None:
        self.calls.append(("rate", (handle, multiplier)))

    def on_ready(self, callback: HandleCallback) -> None:
        self._callbacks["ready"].append(callback)

    def on_finish(self, callback: HandleCallback) -> None:
        self._callbacks["finish"].append(callback)

    def on_error(self, callback: HandleCallback) -> None:
        self._callbacks["error"].append(callback)

    def _fire(self, name: str, handle: Handle) -> None:
        for callback in list(self._callbacks[name]):
            callback(handle)


def _stderr(message: str) -> None:
    print(message, file=sys.stderr)


class NarrationController:
    """Plays each entered node's line through a playback adapter."""

    def __init__(
        self,
        adapter: PlaybackAdapter,
        *,
        autoplay: bool = True,
        rate: float = 1.0,
        on_line_finished: Optional[Callable[[str], None]] = None,
        print_func: Callable[[str], None] = _stderr,
    ) -> None:
        self.adapter = adapter
        self.autoplay = autoplay
        self.rate = nearest_speed(rate)
        self.on_line_finished = on_line_finished
        self.print = print_func
        self.handle: Handle = None
        self.audio_key: Optional[str] = None
        self.failed = False
        self.playing = False
        adapter.on_finish(self._handle_finish)
        adapter.on_error(self._handle_error)

    def __call__(self, event: Event) -> None:
        if isinstance(event, NodeEntered):
            self.cue(event.audio_key)

    def cue(self, audio_key: str) -> None:
        self.audio_key = audio_key
        self.failed = False
        self.playing = False
        try:
            self.handle = self.adapter.load(audio_key)
            self.adapter.set_rate(self.handle, self.rate)
            if self.autoplay:
                self._play()
        except Exception as exc:  # adapter faults must not reach traversal
            self.failed = True
            self.handle = None
            self.print(f"[Audio] Could not play '{audio_key}': {exc}")

    def replay_line(self) -> None:
        if self.handle is None:
            return
        self.adapter.seek(self.handle, 0.0)
        self._play()

    def toggle(self, playing: Optional[bool] = None) -> None:
        """Pause when playing, resume otherwise. ``playing`` overrides the tracked state."""
        if self.handle is None:
            return
        if self.playing if playing is None else playing:
            self.playing = False
            self.adapter.pause(self.handle)
        else:
            self._play()

    def set_speed(self, multiplier: float) -> None:
        if multiplier not in SPEED_PRESETS:
            raise ValueError(f"Unsupported speed {multiplier}; choose from {SPEED_PRESETS}.")
        self.rate = multiplier
        if self.handle is not None:
            self.adapter.set_rate(self.handle, multiplier)

    def _play(self) -> None:
        # Adapters may report finish synchronously from inside play().
        self.playing = True
        self.adapter.play(self.handle)

    def _handle_finish(self, handle: Handle) -> None:
        if handle != self.handle:
            return
        self.playing = False
        if self.on_line_finished is not None and self.audio_key is not None:
            self.on_line_finished(self.audio_key)

    def _handle_error(self, handle: Handle) -> None:
        if handle != self.handle:
            return
        self.failed = True
        self.playing = False
        self.print(f"[Audio] Playback error for '{self.audio_key}'.")
