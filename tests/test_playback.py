import pytest

from drfti.events import NodeEntered, NoteShown
from drfti.playback import (
    SPEED_PRESETS,
    NarrationController,
    SilentPlayback,
    audio_path,
    nearest_speed,
    next_speed,
)


class ErrorPlayback(SilentPlayback):
    """Loads fine but reports a decode error when played."""

    def play(self, handle) -> None:
        self.calls.append(("play", handle))
        self._fire("error", handle)


class MissingFilePlayback(SilentPlayback):
    def load(self, audio_key: str) -> str:
        raise FileNotFoundError(audio_key)


def entered(audio_key: str) -> NodeEntered:
    return NodeEntered(scenario_id="ramen-shop", node_id="n", audio_key=audio_key)


def test_audio_path_layout() -> None:
    assert audio_path("r_staff_welcome") == "/audio/ja/r_staff_welcome.mp3"
    assert audio_path("hello", "fr") == "/audio/fr/hello.mp3"


def test_node_entered_cues_line_at_current_rate() -> None:
    adapter = SilentPlayback()
    finished = []
    controller = NarrationController(adapter, rate=1.25, on_line_finished=finished.append)

    controller(entered("r_staff_welcome"))
    controller(NoteShown(node_id="n", note="ignored", sequence=1))

    handle = "/audio/ja/r_staff_welcome.mp3"
    assert adapter.calls == [("load", handle), ("rate", (handle, 1.25)), ("play", handle)]
    assert finished == ["r_staff_welcome"]


def test_autoplay_off_loads_without_playing() -> None:
    adapter = SilentPlayback()
    controller = NarrationController(adapter, autoplay=False)
    controller.cue("c_staff_welcome")
    assert [name for name, _ in adapter.calls] == ["load", "rate"]

    controller.replay_line()
    assert adapter.calls[-2:] == [
        ("seek", ("/audio/ja/c_staff_welcome.mp3", 0.0)),
        ("play", "/audio/ja/c_staff_welcome.mp3"),
    ]


def test_toggle_pauses_and_resumes() -> None:
    adapter = SilentPlayback()
    controller = NarrationController(adapter, autoplay=False)
    controller.toggle(True)
    assert adapter.calls == []

    controller.cue("f_staff_welcome")
    controller.toggle(True)
    controller.toggle(False)
    assert [name for name, _ in adapter.calls[-2:]] == ["pause", "play"]


def test_speed_must_be_a_preset() -> None:
    adapter = SilentPlayback()
    controller = NarrationController(adapter)
    controller.cue("s_staff_welcome")
    with pytest.raises(ValueError):
        controller.set_speed(1.1)
    controller.set_speed(SPEED_PRESETS[0])
    assert controller.rate == 0.75
    assert adapter.calls[-1] == ("rate", ("/audio/ja/s_staff_welcome.mp3", 0.75))


def test_playback_error_is_reported_not_raised() -> None:
    messages = []
    finished = []
    controller = NarrationController(
        ErrorPlayback(), on_line_finished=finished.append, print_func=messages.append
    )
    controller.cue("r_staff_welcome")
    assert controller.failed
    assert finished == []
    assert messages == ["[Audio] Playback error for 'r_staff_welcome'."]


def test_load_failure_does_not_escape() -> None:
    messages = []
    controller = NarrationController(MissingFilePlayback(), print_func=messages.append)
    controller.cue("ghost")
    assert controller.failed
    assert controller.handle is None
    assert messages[0].startswith("[Audio] Could not play 'ghost'")

    controller.replay_line()


@pytest.mark.parametrize(
    ("rate", "expected"),
    [(0.5, 0.75), (0.9, 1.0), (1.2, 1.25), (2.0, 1.25), (1.0, 1.0)],
)
def test_configured_rate_snaps_to_a_preset(rate: float, expected: float) -> None:
    assert nearest_speed(rate) == expected
    assert NarrationController(SilentPlayback(), rate=rate).rate == expected


def test_next_speed_cycles_through_presets() -> None:
    assert next_speed(0.75) == 1.0
    assert next_speed(1.0) == 1.25
    assert next_speed(1.25) == 0.75
    assert next_speed(0.5) == 1.0


def test_toggle_follows_tracked_play_state() -> None:
    adapter = SilentPlayback()
    controller = NarrationController(adapter, autoplay=False)
    controller.cue("f_staff_welcome")
    assert not controller.playing

    controller.toggle()
    # The silent adapter finishes the line as soon as it starts.
    assert [name for name, _ in adapter.calls[-1:]] == ["play"]
    assert not controller.playing

    controller.playing = True
    controller.toggle()
    assert adapter.calls[-1][0] == "pause"
    assert not controller.playing
