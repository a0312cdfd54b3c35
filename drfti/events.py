"""Events delivered to the presentation layer."""

from __future__ import annotations

from dataclasses import dataclass
import sys
from typing import Callable, List, Union


@dataclass(frozen=True)
class NodeEntered:
    scenario_id: str
    node_id: str
    audio_key: str
    scripted: bool = False


@dataclass(frozen=True)
class NoteShown:
    node_id: str
    note: str
    # Increments on every show so a repeated note still restarts its display.
    sequence: int


@dataclass(frozen=True)
class NoteDismissed:
    node_id: str
    reason: str  # "timeout", "dismissed" or "replaced"


@dataclass(frozen=True)
class JourneyComplete:
    scenario_id: str
    exchanges: int
    path_length: int


@dataclass(frozen=True)
class ReplayStarted:
    scenario_id: str
    steps: int


@dataclass(frozen=True)
class ReplayFinished:
    scenario_id: str
    reason: str  # "finished", "cancelled" or "missing-node"
    steps_applied: int


Event = Union[NodeEntered, NoteShown, NoteDismissed, JourneyComplete, ReplayStarted, ReplayFinished]
Listener = Callable[[Event], None]


def _stderr(message: str) -> None:
    print(message, file=sys.stderr)


class EventBus:
    """Synchronous fan-out to subscribed listeners.

    A listener that raises is reported through ``print_func`` and skipped;
    the remaining listeners still receive the event and the emitter carries on.
    """

    def __init__(self, print_func: Callable[[str], None] = _stderr) -> None:
        self._listeners: List[Listener] = []
        self.print = print_func

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: Event) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                name = getattr(listener, "__qualname__", type(listener).__name__)
                self.print(f"[Events] Listener {name} failed on {type(event).__name__}: {exc}")
