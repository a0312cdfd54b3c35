"""Scripted replay of a saved journey on a fixed cadence."""

from __future__ import annotations

import sys
from typing import Callable, List, Optional, Sequence

from .events import ReplayFinished, ReplayStarted
from .journeys import JourneyStore, SavedJourney
from .timekeeping import CancelToken, Scheduler
from .traversal import Session, TraversalEngine

IDLE = "idle"
REPLAYING = "replaying"

DEFAULT_INITIAL_DELAY = 0.8
DEFAULT_STEP_DELAY = 0.6


def _stderr(message: str) -> None:
    print(message, file=sys.stderr)


class ReplayScheduler:
    """Re-walks a recorded path through :meth:`TraversalEngine.enter_node`.

    Idle -> Replaying -> Idle. A recorded node that no longer exists halts
    the replay at the last node that could be entered.
    """

    def __init__(
        self,
        engine: TraversalEngine,
        scheduler: Scheduler,
        *,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        step_delay: float = DEFAULT_STEP_DELAY,
        on_finish: Optional[Callable[[ReplayFinished], None]] = None,
        print_func: Callable[[str], None] = _stderr,
    ) -> None:
        if initial_delay <= 0 or step_delay <= 0:
            raise ValueError("Replay delays must be positive.")
        self.engine = engine
        self.scheduler = scheduler
        self.initial_delay = initial_delay
        self.step_delay = step_delay
        self.on_finish = on_finish
        self.print = print_func
        self.state = IDLE
        self.session: Optional[Session] = None
        self.steps_applied = 0
        self._steps: List[str] = []
        self._timer: Optional[CancelToken] = None

    @property
    def is_replaying(self) -> bool:
        return self.state == REPLAYING

    @property
    def remaining(self) -> int:
        return max(len(self._steps) - self.steps_applied, 0)

    # ---------- Public API ----------
    def start(self, session: Session, journey: SavedJourney | Sequence[str]) -> bool:
        path = list(journey.path if isinstance(journey, SavedJourney) else journey)
        owner = session.replay_owner
        if owner is not None and owner is not self:
            owner.cancel()
        self.cancel()

        self.engine.restart(session)
        if not path:
            return False
        root = self.engine.scenario.root_node_id
        if path[0] != root:
            self.print(
                f"[Replay] Saved journey for '{session.scenario_id}' starts at '{path[0]}', "
                f"not '{root}'; nothing to replay."
            )
            return False

        self.session = session
        self._steps = path[1:]
        self.steps_applied = 0
        self.state = REPLAYING
        session.replay_owner = self
        self.engine.bus.emit(ReplayStarted(scenario_id=session.scenario_id, steps=len(self._steps)))
        if not self._steps:
            self._finish("finished")
            return True
        self._timer = self.scheduler.schedule(self.initial_delay, self._step)
        return True

    def replay_saved(self, session: Session, store: JourneyStore) -> bool:
        journey = store.load(session.scenario_id)
        if journey is None:
            return False
        return self.start(session, journey)

    def cancel(self) -> bool:
        if self.state != REPLAYING:
            return False
        self._finish("cancelled")
        return True

    # ---------- Internal helpers ----------
    def _step(self) -> None:
        self._timer = None
        if self.state != REPLAYING or self.session is None:
            return
        node_id = self._steps[self.steps_applied]
        if not self.engine.enter_node(self.session, node_id, scripted=True):
            self.print(f"[Replay] Node '{node_id}' no longer exists; replay halted.")
            self._finish("missing-node")
            return
        self.steps_applied += 1
        if self.session.completed or self.steps_applied >= len(self._steps):
            self._finish("finished")
            return
        self._timer = self.scheduler.schedule(self.step_delay, self._step)

    def _finish(self, reason: str) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        session = self.session
        self.state = IDLE
        self.session = None
        if session is not None and session.replay_owner is self:
            session.replay_owner = None
        event = ReplayFinished(
            scenario_id=self.engine.scenario.id,
            reason=reason,
            steps_applied=self.steps_applied,
        )
        self.engine.bus.emit(event)
        if self.on_finish is not None:
            self.on_finish(event)
