#!/usr/bin/env python3
"""
drfti terminal runner
- Walk a spoken-dialogue scenario: pick responses and read each line aloud.
- Save the path you took and watch it replay on its own.
Usage: python -m drfti.cli [scenario_id] [--replay] [--dev]
While playing: digits pick a response, Enter continues, A repeats the line,
T pauses or resumes audio, V cycles the speed (saved to settings).
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional, Sequence, Tuple

from .events import Event, EventBus, JourneyComplete, NodeEntered, NoteShown, ReplayFinished, ReplayStarted
from .graph import Scenario, format_duration, is_branching
from .journeys import DEFAULT_SAVE_ROOT, JourneyStore, default_storage
from .notifications import CulturalNoteNotifier
from .playback import NarrationController, SilentPlayback, next_speed
from .replay import ReplayScheduler
from .settings import SETTINGS_PATH, Settings, load_settings, save_settings
from .store import DEFAULT_SCENARIO_DIR, ScenarioNotFound, ScenarioStore
from .timekeeping import AsyncioScheduler
from .traversal import Session, TraversalEngine

SPEAKER_LABELS = {"staff": "Staff", "customer": "You"}


def emit_print(*args, **kwargs) -> None:
    print(*args, **kwargs)


async def read_input(prompt: str = "") -> str:
    return await asyncio.to_thread(input, prompt)


def plural_exchanges(count: int) -> str:
    return f"{count} {'exchange' if count == 1 else 'exchanges'}"


def render_node(scenario: Scenario, node_id: str) -> None:
    node = scenario.node(node_id)
    if node is None:
        return
    emit_print("")
    emit_print(f"● {SPEAKER_LABELS.get(node.speaker, node.speaker)}")
    emit_print(f"  {node.text}")
    emit_print(f"  {node.phonetic}")
    emit_print(f"  {node.translation}")
    if is_branching(node):
        emit_print("  How do you respond?")
        for index, option_id in enumerate(node.options, start=1):
            option = scenario.node(option_id)
            if option is None:
                continue
            emit_print(f"    {index}. {option.text}  ({option.translation})")


class TerminalView:
    """Prints engine events as they arrive."""

    def __init__(self, scenario: Scenario) -> None:
        self.scenario = scenario

    def __call__(self, event: Event) -> None:
        if isinstance(event, NodeEntered):
            render_node(self.scenario, event.node_id)
        elif isinstance(event, NoteShown):
            emit_print(f"  [Note] {event.note}")
        elif isinstance(event, JourneyComplete):
            emit_print("")
            emit_print(f"{self.scenario.emoji} Scene complete: {plural_exchanges(event.exchanges)}")
        elif isinstance(event, ReplayStarted):
            emit_print(f"[Replay] Replaying saved journey ({event.steps} steps).")
        elif isinstance(event, ReplayFinished):
            emit_print(f"[Replay] Stopped: {event.reason} after {event.steps_applied} steps.")


async def pick_scenario(store: ScenarioStore, language: str) -> Optional[Scenario]:
    choices = store.by_language(language) or store.scenarios
    if not choices:
        emit_print("No scenarios available.")
        return None
    while True:
        emit_print("Choose a scenario:")
        for index, scenario in enumerate(choices, start=1):
            emit_print(
                f"  {index}. {scenario.emoji} {scenario.title} "
                f"({scenario.difficulty}, {format_duration(scenario.duration_minutes)})"
            )
        selection = (await read_input("> ")).strip().lower()
        if selection in {"q", "quit"}:
            return None
        if selection.isdigit() and 1 <= int(selection) <= len(choices):
            return choices[int(selection) - 1]
        emit_print("Pick a valid number or Q to quit.")


async def scenario_intro(scenario: Scenario, journeys: JourneyStore) -> Optional[str]:
    """Show a scenario's intro page. Returns "start", "replay", or None to go back."""
    can_replay = journeys.has(scenario.id)
    emit_print("")
    emit_print(f"=== {scenario.emoji} {scenario.title} ===")
    if scenario.description:
        emit_print(f"  {scenario.description}")
    emit_print(f"  {scenario.difficulty.capitalize()} · {format_duration(scenario.duration_minutes)}")
    if scenario.cultural_notes:
        emit_print(f"  [Cultural note] {scenario.cultural_notes[0]}")

    menu = "S. Start conversation"
    if can_replay:
        menu += "  P. Replay saved journey"
    menu += "  Q. Back"
    while True:
        emit_print(menu)
        raw = (await read_input("> ")).strip().lower()
        if raw in {"", "s"}:
            return "start"
        if raw == "p" and can_replay:
            return "replay"
        if raw in {"q", "quit", "b"}:
            return None
        emit_print("Pick S, P, or Q." if can_replay else "Pick S or Q.")


async def run_replay(replayer: ReplayScheduler, session: Session, journeys: JourneyStore) -> bool:
    if not journeys.has(session.scenario_id):
        emit_print("[!] No saved journey to replay.")
        return False
    done = asyncio.Event()
    replayer.on_finish = lambda _event: done.set()
    if not replayer.replay_saved(session, journeys):
        # The replayer has already said why.
        return False
    try:
        await done.wait()
    except asyncio.CancelledError:
        replayer.cancel()
        raise
    return True


def change_speed(narration: NarrationController, settings: Settings, settings_path: Path | str) -> float:
    rate = next_speed(narration.rate)
    narration.set_speed(rate)
    settings.playback_rate = rate
    # Persist only the speed; flags such as --dev stay out of the file.
    stored = load_settings(settings_path)
    stored.playback_rate = rate
    save_settings(stored, settings_path)
    return rate


async def play(
    scenario: Scenario,
    settings: Settings,
    journeys: JourneyStore,
    *,
    replay: bool,
    settings_path: Path | str = SETTINGS_PATH,
) -> None:
    scheduler = AsyncioScheduler()
    bus = EventBus(emit_print)
    notifier = CulturalNoteNotifier(scheduler, bus, duration=settings.note_duration)
    engine = TraversalEngine(
        scenario, notifier=notifier, dev_mode=settings.dev_mode, print_func=emit_print
    )
    narration = NarrationController(
        SilentPlayback(scenario.language),
        autoplay=settings.autoplay_audio,
        rate=settings.playback_rate,
        print_func=emit_print,
    )
    engine.subscribe(narration)
    engine.subscribe(TerminalView(scenario))
    replayer = ReplayScheduler(
        engine,
        scheduler,
        initial_delay=settings.replay_initial_delay,
        step_delay=settings.replay_step_delay,
        print_func=emit_print,
    )

    emit_print(f"\n=== {scenario.emoji} {scenario.title} ===")
    session = engine.start()
    if replay:
        await run_replay(replayer, session, journeys)

    while True:
        if session.completed:
            emit_print("S. Practice this journey (save & replay)  R. Try a different path  Q. Quit")
        else:
            emit_print(
                f"[{plural_exchanges(session.exchanges)}] Enter=continue  A=hear again  "
                f"T=pause/play  V=speed ({narration.rate}x)  D=dismiss note  R=restart  S=save  Q=quit"
            )
        raw = (await read_input("> ")).strip().lower()

        if raw in {"q", "quit"}:
            return
        if raw == "a":
            narration.replay_line()
            continue
        if raw == "t":
            resuming = not narration.playing
            narration.toggle()
            emit_print("[Audio] Playing." if resuming else "[Audio] Paused.")
            continue
        if raw == "v":
            emit_print(f"[Audio] Speed {change_speed(narration, settings, settings_path)}x")
            continue
        if raw == "d":
            notifier.dismiss()
            continue
        if raw == "r":
            engine.restart(session)
            continue
        if raw == "s":
            if journeys.save(scenario.id, session.path) is None:
                emit_print("[!] Journey could not be saved.")
                continue
            emit_print(f"[Saved] Journey for '{scenario.id}' ({len(session.path)} lines).")
            if session.completed:
                await run_replay(replayer, session, journeys)
            continue
        if raw == "p" and settings.dev_mode:
            emit_print(f"[Dev] node={session.current_node_id} path={session.path}")
            continue
        if session.completed:
            emit_print("Pick S, R, or Q.")
            continue

        node = engine.current_node(session)
        if raw.isdigit() and is_branching(node):
            index = int(raw)
            if 1 <= index <= len(node.options):
                option_id = node.options[index - 1]
                if engine.select_option(session, option_id) and scenario.node(option_id) is not None:
                    emit_print(f"  Selected: {scenario.node(option_id).text}")
            else:
                emit_print("Pick a valid response number.")
            continue
        if raw == "":
            if is_branching(node) and session.selected_option_id is None:
                emit_print("Choose a response first.")
                continue
            engine.confirm(session)
            continue
        emit_print("Enter a number, press Enter, or use A/T/V/D/R/S/Q.")


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Practice spoken-dialogue scenarios.")
    parser.add_argument("scenario", nargs="?", help="Scenario id, e.g. ramen-shop.")
    parser.add_argument("--replay", action="store_true", help="Replay the saved journey first.")
    parser.add_argument("--dev", action="store_true", help="Report broken references and debug lines.")
    parser.add_argument("--scenarios", default=str(DEFAULT_SCENARIO_DIR), help="Scenario directory.")
    parser.add_argument("--saves", default=str(DEFAULT_SAVE_ROOT), help="Saved journey directory.")
    parser.add_argument("--settings", default=str(SETTINGS_PATH), help="Settings file.")
    return parser.parse_args(argv)


async def choose(
    store: ScenarioStore, journeys: JourneyStore, language: str, scenario_id: Optional[str]
) -> Optional[Tuple[Scenario, bool]]:
    """Resolve the scenario to play and whether to replay first; None means quit."""
    if scenario_id:
        scenario = store.require(scenario_id)
        choice = await scenario_intro(scenario, journeys)
        return None if choice is None else (scenario, choice == "replay")
    while True:
        scenario = await pick_scenario(store, language)
        if scenario is None:
            return None
        choice = await scenario_intro(scenario, journeys)
        if choice is not None:
            return scenario, choice == "replay"


async def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = load_settings(args.settings)
    if args.dev:
        settings.dev_mode = True
    store = ScenarioStore.from_directory(
        Path(args.scenarios), dev_mode=settings.dev_mode, print_func=emit_print
    )
    journeys = JourneyStore(default_storage(args.saves), print_func=emit_print)

    try:
        if args.scenario and args.replay:
            chosen: Optional[Tuple[Scenario, bool]] = (store.require(args.scenario), True)
        else:
            chosen = await choose(store, journeys, settings.language, args.scenario)
    except ScenarioNotFound:
        emit_print(f"[!] Unknown scenario '{args.scenario}'.")
        return 1
    if chosen is None:
        return 0
    scenario, replay = chosen

    await play(scenario, settings, journeys, replay=replay, settings_path=args.settings)
    return 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        emit_print("\n[Interrupted] Bye.")


if __name__ == "__main__":
    run()
