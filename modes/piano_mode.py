"""Main playing screen: keyboard, oscilloscope, recorder and song player."""
from pathlib import Path
from typing import TYPE_CHECKING, Dict

import numpy as np
from textual import events
from textual.binding import Binding
from textual.containers import Center, Horizontal, Vertical
from textual.timer import Timer
from textual.widgets import Label, ListItem, ListView, ProgressBar

from components.confirmation_dialog import ConfirmationDialog
from components.oscilloscope_widget import OscilloscopeWidget
from components.piano_widget import PianoWidget
from music.errors import InvalidConfigurationError
from music.input_dispatcher import PointerInput, TypingInput, default_keymap
from music.oscillator import WAVEFORMS

if TYPE_CHECKING:
    from music.synth_engine import SynthEngine

# Terminals report key presses but not releases; a typed note is released
# when its key has not repeated for this long.
TYPED_NOTE_TIMEOUT = 0.5
SCOPE_SAMPLES = 400
VOLUME_STEP = 0.05
RELEASE_STEP = 0.1


def format_time(seconds: float) -> str:
    seconds = int(seconds)
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class PianoMode(Vertical):
    """Widget for playing the piano and managing recordings."""

    DEFAULT_CSS = """
    PianoMode {
        layout: vertical;
        height: 100%;
        width: 100%;
        align: center top;
    }

    #piano {
        margin: 1 0;
    }

    #status {
        width: 100%;
        content-align: center middle;
        color: #888888;
        text-style: italic;
    }

    #lower {
        height: 1fr;
    }

    #songs {
        width: 40;
        border: solid cyan;
    }

    #song-progress-text {
        width: 100%;
        content-align: center middle;
    }
    """

    BINDINGS = [
        Binding("tab", "next_waveform", "Wave", show=True),
        Binding("left_square_bracket", "volume(-1)", "Vol -", show=True),
        Binding("right_square_bracket", "volume(1)", "Vol +", show=True),
        Binding("comma", "release(-1)", "Rel -", show=False),
        Binding("full_stop", "release(1)", "Rel +", show=False),
        Binding("minus", "shift_octaves(-1)", "Oct -", show=True),
        Binding("equals_sign", "shift_octaves(1)", "Oct +", show=True),
        Binding("pagedown", "instrument(-1)", "Instr -", show=False),
        Binding("pageup", "instrument(1)", "Instr +", show=False),
        Binding("ctrl+l", "toggle_labels", "Labels", show=False),
        Binding("ctrl+r", "toggle_recording", "Record", show=True),
        Binding("ctrl+p", "play_recording", "Play take", show=True),
        Binding("ctrl+s", "stop_playback", "Stop", show=True),
        Binding("space", "panic", "All off", show=True),
    ]

    can_focus = True

    def __init__(self, engine: 'SynthEngine'):
        super().__init__()
        self.engine = engine
        start, end = engine.octave_range
        self.piano_widget = PianoWidget(start, end, id="piano")
        self.scope_widget = OscilloscopeWidget(id="scope")
        self.pointer = PointerInput(engine.voice_manager, self.piano_widget.hit_test)
        self.typing = TypingInput(engine.voice_manager, default_keymap(self._base_note()))
        self._key_timers: Dict[str, Timer] = {}
        self._scope_buffer = np.zeros(SCOPE_SAMPLES, dtype=np.float32)
        self._songs = []

    def compose(self):
        with Center():
            yield self.piano_widget
        yield Label(self._get_status_text(), id="status")
        with Horizontal(id="lower"):
            with Vertical():
                yield self.scope_widget
                yield ProgressBar(total=1.0, show_eta=False, id="song-progress")
                yield Label("00:00 / 00:00", id="song-progress-text")
            yield ListView(id="songs")

    def on_mount(self):
        self.engine.on_progress = self._on_progress
        self.engine.on_playback_finished = self._on_playback_finished
        self.refresh_songs()
        self.set_interval(0.05, self._update_scope)

    def on_unmount(self):
        self.typing.release_all()
        self.pointer.release()
        self.engine.on_progress = None
        self.engine.on_playback_finished = None

    def _base_note(self) -> int:
        return (self.engine.octave_range[0] + 1) * 12

    # ── Display ──────────────────────────────────────────────────

    def set_key_state(self, note: int, pressed: bool):
        self.piano_widget.set_key_state(note, pressed)

    def _get_status_text(self) -> str:
        env = self.engine.envelope
        start, end = self.engine.octave_range
        parts = [
            f"Wave: {self.engine.waveform}",
            f"Vol: {self.engine.volume * 100:.0f}%",
            f"A/H/R: {env.attack:.2f}/{env.hold:.2f}/{env.release:.2f}s",
            f"Octaves: {start}-{end}",
            f"Instr: {self.engine.instrument}",
        ]
        if self.engine.is_recording():
            parts.append("● REC")
        if self.engine.midi_in.is_device_open():
            parts.append(f"MIDI in: {self.engine.midi_in.device_name}")
        return " | ".join(parts)

    def _update_status(self):
        self.query_one("#status", Label).update(self._get_status_text())

    def _update_scope(self):
        n = self.engine.oscilloscope_read(self._scope_buffer, SCOPE_SAMPLES)
        if n > 0:
            self.scope_widget.update_samples(self._scope_buffer[:n])

    def refresh_songs(self):
        list_view = self.query_one("#songs", ListView)
        list_view.clear()
        self._songs = self.engine.list_songs()
        if not self._songs:
            list_view.append(ListItem(Label("No songs in the songs folder")))
        for song in self._songs:
            list_view.append(ListItem(Label(f"♪ {song}", markup=False)))

    # ── Pointer ──────────────────────────────────────────────────

    def on_piano_widget_pointer_pressed(self, message: PianoWidget.PointerPressed):
        self.pointer.press(message.x, message.y)

    def on_piano_widget_pointer_moved(self, message: PianoWidget.PointerMoved):
        self.pointer.move(message.x, message.y)

    def on_piano_widget_pointer_released(self, message: PianoWidget.PointerReleased):
        self.pointer.release()

    # ── Typing keys ──────────────────────────────────────────────

    def on_key(self, event: events.Key) -> None:
        key = event.character
        if not key or not self.typing.press(key):
            return
        event.prevent_default()
        event.stop()
        timer = self._key_timers.pop(key, None)
        if timer is not None:
            timer.stop()
        self._key_timers[key] = self.set_timer(
            TYPED_NOTE_TIMEOUT, lambda: self._release_typed(key)
        )

    def _release_typed(self, key: str):
        self._key_timers.pop(key, None)
        self.typing.release(key)

    # ── Actions ──────────────────────────────────────────────────

    def action_next_waveform(self):
        index = WAVEFORMS.index(self.engine.waveform)
        self.engine.set_waveform(WAVEFORMS[(index + 1) % len(WAVEFORMS)])
        self._update_status()

    def action_volume(self, direction: int):
        volume = round(self.engine.volume + direction * VOLUME_STEP, 2)
        try:
            self.engine.set_volume(volume)
        except InvalidConfigurationError as e:
            self.app.notify(str(e), severity="warning", timeout=2)
        self._update_status()

    def action_release(self, direction: int):
        env = self.engine.envelope
        release = round(env.release + direction * RELEASE_STEP, 2)
        try:
            self.engine.set_envelope(env.attack, env.hold, release, env.sustain)
        except InvalidConfigurationError as e:
            self.app.notify(str(e), severity="warning", timeout=2)
        self._update_status()

    def action_shift_octaves(self, direction: int):
        start, end = self.engine.octave_range
        try:
            self.engine.set_octave_range(start + direction, end + direction)
        except InvalidConfigurationError as e:
            self.app.notify(str(e), severity="warning", timeout=2)
            return
        self.typing.set_keymap(default_keymap(self._base_note()))
        self.piano_widget.set_range(*self.engine.octave_range)
        self._update_status()

    def action_instrument(self, direction: int):
        program = self.engine.step_instrument(direction)
        self.app.notify(f"Instrument {program}", timeout=1)
        self._update_status()

    def action_toggle_labels(self):
        self.piano_widget.toggle_labels()

    def _recording_path(self) -> Path:
        if self.engine.config_manager:
            return self.engine.config_manager.get_recording_path()
        return Path("Recording.mid")

    def action_toggle_recording(self):
        if self.engine.is_recording():
            self.engine.record_stop_and_save(self._recording_path())
            self.refresh_songs()
            self._update_status()
            return
        path = self._recording_path()
        if path.exists():
            self.confirm_overwrite(path, self._start_recording)
        else:
            self._start_recording()

    def _start_recording(self):
        self.engine.record_start()
        self.app.notify("● Recording", timeout=2)
        self._update_status()

    def action_play_recording(self):
        path = self._recording_path()
        if self.engine.is_playing():
            self.engine.playback_stop()
            return
        if self.engine.is_recording():
            self.app.notify("Stop recording before playing it back", severity="warning", timeout=2)
            return
        self._start_song(path)

    def action_stop_playback(self):
        if self.engine.is_playing():
            self.engine.playback_stop()
            self._reset_progress()

    def action_panic(self):
        self.typing.release_all()
        self.pointer.release()
        self.engine.all_off()
        self.app.notify("🛑 All notes off", severity="warning", timeout=2)

    def on_list_view_selected(self, event: ListView.Selected):
        index = event.list_view.index
        if index is None or not 0 <= index < len(self._songs):
            return
        songs_dir = self.engine.config_manager.get_songs_dir() if self.engine.config_manager else Path("songs")
        self._start_song(Path(songs_dir) / self._songs[index])

    def _start_song(self, path):
        if self.engine.playback_start(path):
            self._update_progress(0.0, self.engine.playback_progress()[1])

    def confirm_overwrite(self, path, on_yes):
        self.app.push_screen(
            ConfirmationDialog("Overwrite recording?", str(path)),
            lambda answer: on_yes() if answer else None,
        )

    # ── Playback progress ────────────────────────────────────────

    def _update_progress(self, elapsed: float, total: float):
        # Posted updates can arrive after the mode was unmounted
        if not self.is_mounted:
            return
        bar = self.query_one("#song-progress", ProgressBar)
        bar.update(total=max(total, 0.001), progress=min(elapsed, total))
        self.query_one("#song-progress-text", Label).update(
            f"{format_time(elapsed)} / {format_time(total)}"
        )

    def _reset_progress(self):
        self._update_progress(0.0, 0.0)

    def _on_progress(self, elapsed: float, total: float):
        self._update_progress(elapsed, total)

    def _on_playback_finished(self):
        self._reset_progress()
