"""Transient cultural-note notifications."""

from __future__ import annotations

from typing import Optional

from .events import EventBus, NoteDismissed, NoteShown
from .timekeeping import CancelToken, Scheduler

DEFAULT_NOTE_DURATION = 6.0


class CulturalNoteNotifier:
    """Holds at most one active note and dismisses it after ``duration``.

    Showing a note while another is active replaces it and restarts the
    timer. Nothing here touches traversal state.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        bus: EventBus,
        *,
        duration: float = DEFAULT_NOTE_DURATION,
    ) -> None:
        self.scheduler = scheduler
        self.bus = bus
        self.duration = duration
        self.active_note: Optional[str] = None
        self.active_node_id: Optional[str] = None
        self.sequence = 0
        self._timer: Optional[CancelToken] = None

    def show(self, node_id: str, note: str) -> None:
        if self.active_note is not None:
            self._clear("replaced")
        self.sequence += 1
        self.active_note = note
        self.active_node_id = node_id
        sequence = self.sequence
        self._timer = self.scheduler.schedule(self.duration, lambda: self._expire(sequence))
        self.bus.emit(NoteShown(node_id=node_id, note=note, sequence=sequence))

    def dismiss(self) -> bool:
        if self.active_note is None:
            return False
        self._clear("dismissed")
        return True

    def _expire(self, sequence: int) -> None:
        # A stale timer from a replaced note must not clear the newer one.
        if sequence != self.sequence or self.active_note is None:
            return
        self._timer = None
        self._clear("timeout")

    def _clear(self, reason: str) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        node_id = self.active_node_id or ""
        self.active_note = None
        self.active_node_id = None
        self.bus.emit(NoteDismissed(node_id=node_id, reason=reason))
