"""Traversal engine: walks one session through a scenario graph."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from .events import EventBus, JourneyComplete, Listener, NodeEntered
from .graph import DialogueNode, Scenario, exchange_count, is_branching, is_terminal
from .notifications import CulturalNoteNotifier


class SessionError(RuntimeError):
    """Raised for caller bugs such as advancing a session that was never started."""


@dataclass
class Session:
    scenario_id: str
    current_node_id: Optional[str] = None
    path: List[str] = field(default_factory=list)
    selected_option_id: Optional[str] = None
    completed: bool = False
    # Replay currently driving this session, if any.
    replay_owner: Any = field(default=None, repr=False, compare=False)

    @property
    def started(self) -> bool:
        return bool(self.path)

    @property
    def exchanges(self) -> int:
        return exchange_count(self.path)


def _stderr(message: str) -> None:
    print(message, file=sys.stderr)


class TraversalEngine:
    def __init__(
        self,
        scenario: Scenario,
        *,
        bus: Optional[EventBus] = None,
        notifier: Optional[CulturalNoteNotifier] = None,
        dev_mode: bool = False,
        print_func: Callable[[str], None] = _stderr,
    ) -> None:
        self.scenario = scenario
        self.bus = bus or (notifier.bus if notifier is not None else EventBus(print_func))
        self.notifier = notifier
        self.dev_mode = dev_mode
        self.print = print_func

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.bus.subscribe(listener)

    # ---------- Public API ----------
    def start(self) -> Session:
        session = Session(scenario_id=self.scenario.id)
        self._reset(session)
        return session

    def restart(self, session: Session) -> Session:
        self._check_scenario(session)
        self._reset(session)
        if self.notifier is not None:
            self.notifier.dismiss()
        return session

    def current_node(self, session: Session) -> Optional[DialogueNode]:
        return self.scenario.node(session.current_node_id)

    def select_option(self, session: Session, option_id: str) -> bool:
        self._check_started(session)
        node = self.current_node(session)
        if not is_branching(node) or option_id not in node.options:
            return False
        session.selected_option_id = option_id
        return True

    def confirm(self, session: Session) -> Session:
        self._check_started(session)
        if session.completed:
            return session
        node = self.current_node(session)
        if node is None:
            self._diagnostic(f"current node '{session.current_node_id}' is missing; cannot advance.")
            return session

        if is_branching(node):
            target = session.selected_option_id
            if target is None:
                return session
        elif is_terminal(node):
            # Only reachable when the root itself ends the scenario.
            self._complete(session)
            return session
        else:
            target = node.next
            if target is None:
                self._diagnostic(f"node '{node.id}' has no 'next'; cannot advance.")
                return session

        self.enter_node(session, target)
        return session

    def enter_node(self, session: Session, node_id: str, *, scripted: bool = False) -> bool:
        """Apply every side effect of arriving at ``node_id``.

        Shared by live confirmation and scripted replay. A missing node
        leaves the session untouched and returns False.
        """
        self._check_started(session)
        node = self.scenario.node(node_id)
        if node is None:
            self._diagnostic(f"node '{session.current_node_id}' -> '{node_id}' does not exist.")
            return False

        session.path.append(node_id)
        session.current_node_id = node_id
        session.selected_option_id = None
        self.bus.emit(
            NodeEntered(
                scenario_id=self.scenario.id,
                node_id=node_id,
                audio_key=node.audio_key,
                scripted=scripted,
            )
        )
        if node.cultural_note and self.notifier is not None:
            self.notifier.show(node_id, node.cultural_note)
        if is_terminal(node):
            self._complete(session)
        return True

    # ---------- Internal helpers ----------
    def _reset(self, session: Session) -> None:
        root = self.scenario.root_node_id
        session.current_node_id = root
        session.path = [root]
        session.selected_option_id = None
        session.completed = False
        self.bus.emit(
            NodeEntered(
                scenario_id=self.scenario.id,
                node_id=root,
                audio_key=self.scenario.root.audio_key,
            )
        )

    def _complete(self, session: Session) -> None:
        if session.completed:
            return
        session.completed = True
        self.bus.emit(
            JourneyComplete(
                scenario_id=self.scenario.id,
                exchanges=session.exchanges,
                path_length=len(session.path),
            )
        )

    def _check_scenario(self, session: Session) -> None:
        if session.scenario_id != self.scenario.id:
            raise SessionError(
                f"Session for '{session.scenario_id}' cannot be driven by the "
                f"'{self.scenario.id}' engine."
            )

    def _check_started(self, session: Session) -> None:
        self._check_scenario(session)
        if not session.started:
            raise SessionError("Session was never started; call start() first.")

    def _diagnostic(self, message: str) -> None:
        if self.dev_mode:
            self.print(f"[!] {self.scenario.id}: {message}")
