"""Piano engine: wires oscillators, mixer, audio output, MIDI and recording.

This is the surface the UI talks to. Configuration setters raise
InvalidConfigurationError and keep the previous value; device, file and
playback problems are reported through the single ``notify`` callback and
the engine keeps working without the failing piece.
"""
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

import numpy as np

from midi.device_manager import MIDIDeviceManager
from midi.input_handler import MIDIInputHandler
from midi.output_handler import MIDIOutputHandler
from midi.playback import Playback, PlaybackState, list_songs
from midi.recorder import Recorder
from music.envelope import EnvelopeSettings
from music.errors import (
    InvalidConfigurationError,
    MidiFileError,
    PlaybackError,
)
from music.input_dispatcher import MidiInput
from music.mixer import Mixer
from music.output_pipeline import OscilloscopeTap, OutputPipeline
from music.voice_manager import Origin, VoiceManager

MIN_OCTAVE = 1
MAX_OCTAVE = 7


class SynthEngine:
    """Polyphonic generated-waveform piano with MIDI in/out and recording."""

    def __init__(self, config_manager=None, sample_rate: int = 44100,
                 buffer_size: int = 512,
                 notify: Optional[Callable[[str, str], None]] = None,
                 post: Optional[Callable[[Callable[[], None]], None]] = None,
                 on_key_state: Optional[Callable[[object, bool], None]] = None):
        self.config_manager = config_manager
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self._notify = notify
        self._post = post
        self._reported = set()

        # UI hooks, called through post()
        self.on_progress: Optional[Callable[[float, float], None]] = None
        self.on_playback_finished: Optional[Callable[[], None]] = None

        self.mixer = Mixer()
        self.tap = OscilloscopeTap(sample_rate, duration_ms=100)
        self.output = OutputPipeline(self.mixer, sample_rate, buffer_size, self.tap)
        self.recorder = Recorder()
        self.midi_out = MIDIOutputHandler(on_error=lambda msg: self.report(msg, "error", key="midi_out"))
        self.voice_manager = VoiceManager(
            self.mixer, sample_rate,
            midi_out=self.midi_out, recorder=self.recorder,
            on_key_state=on_key_state, post=post,
        )
        self.playback = Playback(
            self.voice_manager,
            on_progress=self._playback_progress,
            on_finished=self._playback_finished,
        )
        self.midi_in = MIDIInputHandler(MidiInput(self.voice_manager))
        self.device_manager = MIDIDeviceManager(config_manager)

        self.instrument = 0
        self.octave_range: Tuple[int, int] = (3, 5)
        self._load_settings()

    # ── Lifecycle ────────────────────────────────────────────────

    def _load_settings(self):
        if not self.config_manager:
            return
        try:
            self.voice_manager.set_waveform(self.config_manager.get_waveform())
            self.voice_manager.set_gain(self.config_manager.get_volume())
            self.voice_manager.set_envelope(EnvelopeSettings(**self.config_manager.get_envelope()))
            start, end = self.config_manager.get_octave_range()
            self._validate_octave_range(start, end)
            self.octave_range = (start, end)
            self.instrument = self.config_manager.get_instrument()
        except (InvalidConfigurationError, TypeError, ValueError) as e:
            print(f"Error in saved settings, keeping defaults: {e}")

    def start(self) -> bool:
        """Open the sound device. Returns False (and reports once) if unavailable."""
        if self.output.start():
            return True
        self.report(self.output.last_error or "Audio device unavailable", "warning", key="audio")
        return False

    def shutdown(self):
        """Cancel playback, release every note, then close the devices."""
        self.playback.stop()
        self.voice_manager.all_off()
        self.mixer.clear()
        self.output.close()
        self.midi_in.close_device()
        self.midi_out.close_device()

    def is_available(self) -> bool:
        return self.output.is_available()

    # ── Notifications ────────────────────────────────────────────

    def report(self, message: str, severity: str = "error", key: Optional[str] = None):
        """Send a message to the UI. With a key, only the first report is sent."""
        if key is not None:
            if key in self._reported:
                return
            self._reported.add(key)
        if self._notify is None:
            print(message)
            return
        self._call_ui(lambda: self._notify(message, severity))

    def _call_ui(self, fn: Callable[[], None]):
        if self._post is not None:
            self._post(fn)
        else:
            fn()

    # ── Sound settings ───────────────────────────────────────────

    def set_waveform(self, waveform: str):
        self.voice_manager.set_waveform(waveform)
        if self.config_manager:
            self.config_manager.set_waveform(waveform)

    def set_volume(self, volume: float):
        self.voice_manager.set_gain(volume)
        if self.config_manager:
            self.config_manager.set_volume(volume)

    def set_envelope(self, attack: float, hold: float, release: float, sustain: float):
        settings = EnvelopeSettings(attack, hold, release, sustain).validate()
        self.voice_manager.set_envelope(settings)
        if self.config_manager:
            self.config_manager.set_envelope(attack, hold, release, sustain)

    def set_instrument(self, program: int):
        """Select a General MIDI program on the MIDI output."""
        if not isinstance(program, int) or not 0 <= program <= 127:
            raise InvalidConfigurationError(f"Instrument must be 0..127, got {program!r}")
        self.instrument = program
        self.midi_out.program_change(program)
        if self.config_manager:
            self.config_manager.set_instrument(program)

    def step_instrument(self, step: int) -> int:
        """Move to the next or previous program, wrapping around 0..127."""
        program = (self.instrument + step) % 128
        self.set_instrument(program)
        return program

    def _validate_octave_range(self, start: int, end: int):
        if not (MIN_OCTAVE <= start <= end <= MAX_OCTAVE):
            raise InvalidConfigurationError(
                f"Octave range must satisfy {MIN_OCTAVE} <= start <= end <= {MAX_OCTAVE}, "
                f"got {start}..{end}"
            )

    def set_octave_range(self, start: int, end: int):
        self._validate_octave_range(start, end)
        self.octave_range = (start, end)
        if self.config_manager:
            self.config_manager.set_octave_range(start, end)

    @property
    def waveform(self) -> str:
        return self.voice_manager.waveform

    @property
    def volume(self) -> float:
        return self.voice_manager.gain

    @property
    def envelope(self) -> EnvelopeSettings:
        return self.voice_manager.envelope

    # ── Notes ────────────────────────────────────────────────────

    def note_on(self, note: int, origin: Origin = Origin.POINTER, ui_key=None):
        self.voice_manager.note_on(note, origin, ui_key)

    def note_off(self, note: int):
        self.voice_manager.note_off(note)

    def all_off(self):
        self.voice_manager.all_off()

    def active_notes(self):
        return self.voice_manager.active_notes()

    # ── Recording ────────────────────────────────────────────────

    def record_start(self):
        self.recorder.arm()

    def is_recording(self) -> bool:
        return self.recorder.is_armed

    def record_stop_and_save(self, path: Union[str, Path, None] = None) -> bool:
        """Stop recording and save the take.

        Returns:
            True if a file was written.
        """
        if path is None:
            path = self.config_manager.get_recording_path() if self.config_manager else "Recording.mid"
        try:
            saved = self.recorder.disarm_and_save(path)
        except MidiFileError as e:
            print(f"Error saving recording: {e}")
            self.report(str(e), "error")
            return False
        if saved:
            self.report(f"MIDI recording saved to '{Path(path).name}'.", "information")
        return saved

    # ── Playback ─────────────────────────────────────────────────

    def playback_start(self, path: Union[str, Path]) -> bool:
        """Play a MIDI file, stopping any song already playing."""
        if self.playback.state != PlaybackState.IDLE:
            self.playback.stop()
        if not Path(path).exists():
            self.report(f"File not found: {path}", "error")
            return False
        try:
            return self.playback.start(path)
        except PlaybackError as e:
            print(f"Error starting playback: {e}")
            self.report(str(e), "error")
            return False

    def playback_stop(self):
        self.playback.stop()

    def playback_progress(self) -> Tuple[float, float]:
        return self.playback.progress()

    def is_playing(self) -> bool:
        return self.playback.is_playing

    def list_songs(self):
        songs_dir = self.config_manager.get_songs_dir() if self.config_manager else Path("songs")
        try:
            return list_songs(songs_dir)
        except OSError as e:
            self.report(f"Failed to load songs: {e}", "error")
            return []

    def _playback_progress(self, elapsed: float, total: float):
        callback = self.on_progress
        if callback:
            self._call_ui(lambda: callback(elapsed, total))

    def _playback_finished(self):
        callback = self.on_playback_finished
        if callback:
            self._call_ui(callback)

    # ── Oscilloscope ─────────────────────────────────────────────

    def oscilloscope_read(self, out: np.ndarray, max_samples: int) -> int:
        """Copy up to max_samples of recent output into out; returns the count."""
        samples = self.tap.read_samples(min(max_samples, len(out)))
        n = len(samples)
        out[:n] = samples
        return n

    # ── MIDI devices ─────────────────────────────────────────────

    def open_midi_output(self, device: Union[str, int]) -> bool:
        """Open a MIDI output by name or by its index in the device list."""
        device_name = self.device_manager.output_by_index(device) if isinstance(device, int) else device
        if device_name and self.midi_out.open_device(device_name):
            self._reported.discard("midi_out")
            if self.instrument:
                self.midi_out.program_change(self.instrument)
            return True
        self.report(f"MIDI output '{device}' unavailable", "warning", key="midi_out")
        return False

    def open_midi_input(self, device: Union[str, int]) -> bool:
        """Open a MIDI input by name or by its index in the device list."""
        device_name = self.device_manager.input_by_index(device) if isinstance(device, int) else device
        if device_name and self.midi_in.open_device(device_name):
            self._reported.discard("midi_in")
            return True
        self.report(f"MIDI input '{device}' unavailable", "warning", key="midi_in")
        return False

    def poll_midi(self) -> int:
        """Drain pending MIDI-in messages; call from the UI timer."""
        return self.midi_in.poll_messages()
