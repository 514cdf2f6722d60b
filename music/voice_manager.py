"""Note lifecycle: one voice per held note, retired through its envelope."""
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from music.envelope import Envelope, EnvelopeSettings
from music.errors import InvalidConfigurationError
from music.notes import is_valid_note, midi_to_frequency
from music.oscillator import Oscillator, WAVEFORMS

NOTE_ON_VELOCITY = 127


class Origin(str, Enum):
    """Where a note-on came from."""

    POINTER = "pointer"
    TYPING = "typing"
    MIDI_IN = "midi_in"
    PLAYBACK = "playback"


@dataclass
class Voice:
    """One sounding note: an oscillator wrapped by its envelope."""

    note: int
    frequency: float
    oscillator: Oscillator
    envelope: Envelope
    origin: Origin
    ui_key: object = None


class VoiceManager:
    """Maps note numbers to active voices and issues note-on / note-off.

    The active-voice table holds at most one voice per note. A released voice
    leaves the table immediately but stays in the mixer until its release
    ramp finishes, so playing the same note again starts a second voice
    alongside the fading one.

    Every operation is serialised by one re-entrant lock, which also keeps
    MIDI-out and the recorder in the order the manager observed the events.
    None of the operations raise.
    """

    def __init__(self, mixer, sample_rate: int = 44100,
                 midi_out=None, recorder=None,
                 on_key_state: Optional[Callable[[object, bool], None]] = None,
                 post: Optional[Callable[[Callable[[], None]], None]] = None):
        self.mixer = mixer
        self.sample_rate = sample_rate
        self.midi_out = midi_out
        self.recorder = recorder
        self.on_key_state = on_key_state
        self.post = post
        self._lock = threading.RLock()
        self._voices: Dict[int, Voice] = {}

        self.waveform = "sine"
        self.gain = 0.05
        self.envelope = EnvelopeSettings()

    # ── Settings ─────────────────────────────────────────────────

    def set_waveform(self, waveform: str):
        """Select the waveform for new voices and retune held ones."""
        if waveform not in WAVEFORMS:
            raise InvalidConfigurationError(f"Unknown waveform '{waveform}'")
        with self._lock:
            self.waveform = waveform
            for voice in self._voices.values():
                voice.oscillator.waveform = waveform

    def set_gain(self, gain: float):
        if gain is None or not 0.0 <= gain <= 1.0:
            raise InvalidConfigurationError(f"Volume must be in 0..1, got {gain}")
        with self._lock:
            self.gain = float(gain)
            for voice in self._voices.values():
                voice.oscillator.gain = self.gain

    def set_envelope(self, settings: EnvelopeSettings):
        """Envelope used by voices started from now on."""
        settings.validate()
        with self._lock:
            self.envelope = settings

    # ── Note lifecycle ───────────────────────────────────────────

    def note_on(self, note: int, origin: Origin = Origin.POINTER, ui_key=None) -> bool:
        """Start a voice for note. Returns False if the note was already held."""
        if not is_valid_note(note):
            print(f"Error: dropping note-on for invalid note {note!r}")
            return False
        try:
            origin = Origin(origin)
        except ValueError:
            print(f"Error: unknown note origin {origin!r}, treating as pointer")
            origin = Origin.POINTER
        with self._lock:
            if note in self._voices:
                return False

            frequency = midi_to_frequency(note)
            oscillator = Oscillator(frequency, self.sample_rate, self.waveform, self.gain)
            envelope = Envelope(oscillator, self.sample_rate, self.envelope, gated=True)
            voice = Voice(note, frequency, oscillator, envelope, origin, ui_key)
            self._voices[note] = voice
            self.mixer.add(envelope)

            self._notify_key(voice, True)
            if self.midi_out is not None:
                self.midi_out.note_on(note, NOTE_ON_VELOCITY)
            if self.recorder is not None and self.recorder.is_armed:
                self.recorder.record("note_on", note, NOTE_ON_VELOCITY)
            return True

    def note_off(self, note: int):
        with self._lock:
            voice = self._voices.pop(note, None)
            if voice is None:
                return

            voice.envelope.release()

            self._notify_key(voice, False)
            if self.midi_out is not None:
                self.midi_out.note_off(note)
            if self.recorder is not None and self.recorder.is_armed:
                self.recorder.record("note_off", note, 0)

    def all_off(self):
        """Release every held note."""
        with self._lock:
            for note in list(self._voices):
                self.note_off(note)

    # ── Queries ──────────────────────────────────────────────────

    def active_notes(self) -> List[int]:
        with self._lock:
            return sorted(self._voices)

    def is_active(self, note: int) -> bool:
        with self._lock:
            return note in self._voices

    def get_voice(self, note: int) -> Optional[Voice]:
        with self._lock:
            return self._voices.get(note)

    def _notify_key(self, voice: Voice, pressed: bool):
        if self.on_key_state is None:
            return
        key = voice.ui_key if voice.ui_key is not None else voice.note
        callback = self.on_key_state
        if self.post is not None:
            self.post(lambda: callback(key, pressed))
        else:
            callback(key, pressed)
