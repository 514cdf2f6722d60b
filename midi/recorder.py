"""Records the played note stream and saves it as a Standard MIDI File.

Timestamps are taken when the Voice Manager observes an event and stored as
milliseconds since arm(). Saving writes a single-track (format 0) file at
96 ticks per quarter note with a fixed tempo of 120 BPM, so one tick is
500/96 ms. Ticks are computed from the absolute time of each event and then
differenced, which keeps every event within one tick of its recorded time
however long the take is.
"""
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List

import mido

from music.errors import MidiFileError

TICKS_PER_BEAT = 96
TEMPO = 500000  # microseconds per quarter note (120 BPM)
MIDI_CHANNEL = 0
NOTE_ON_VELOCITY = 127
NOTE_OFF_VELOCITY = 0


@dataclass(frozen=True)
class RecordedEvent:
    """A single recorded note event."""

    time_ms: float
    kind: str       # "note_on" or "note_off"
    note: int
    velocity: int


def ms_to_ticks(ms: float) -> int:
    return int(ms * TICKS_PER_BEAT * 1000 / TEMPO)


def ticks_to_ms(ticks: int) -> float:
    return ticks * TEMPO / (TICKS_PER_BEAT * 1000)


class Recorder:
    """Time-stamps note events while armed.

    record() is called by the Voice Manager with its lock held, possibly
    from several threads; the event list has its own lock so saving never
    sees a half-appended list.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self.clock = clock
        self._events: List[RecordedEvent] = []
        self._armed = False
        self._start_time = 0.0
        self._lock = threading.Lock()

    @property
    def is_armed(self) -> bool:
        return self._armed

    @property
    def events(self) -> List[RecordedEvent]:
        """Return a copy of the recorded events."""
        with self._lock:
            return list(self._events)

    def elapsed_ms(self) -> float:
        return (self.clock() - self._start_time) * 1000.0

    def arm(self):
        """Start a new take, clearing any previous one."""
        with self._lock:
            self._events.clear()
            self._start_time = self.clock()
            self._armed = True

    def record(self, kind: str, note: int, velocity: int):
        if not self._armed:
            return
        if kind not in ("note_on", "note_off"):
            print(f"Error: ignoring unknown recorded event kind {kind!r}")
            return
        with self._lock:
            self._events.append(RecordedEvent(self.elapsed_ms(), kind, note, velocity))

    def disarm(self) -> List[RecordedEvent]:
        """Stop recording and return the balanced, time-sorted take.

        Notes still held are closed at the moment of disarming; note-offs for
        notes that were pressed before arm() are dropped.
        """
        with self._lock:
            if not self._armed:
                return list(self._events)
            self._armed = False
            stop_ms = self.elapsed_ms()
            events = sorted(self._events, key=lambda e: e.time_ms)

            balanced = []
            held = set()
            for event in events:
                if event.kind == "note_on":
                    if event.note in held:
                        continue
                    held.add(event.note)
                elif event.note in held:
                    held.discard(event.note)
                else:
                    continue
                balanced.append(event)
            for note in sorted(held):
                balanced.append(RecordedEvent(stop_ms, "note_off", note, NOTE_OFF_VELOCITY))

            self._events = balanced
            return list(balanced)

    def disarm_and_save(self, path) -> bool:
        """Stop recording and write the take to path.

        Returns:
            False if nothing was recorded (no file is written), True otherwise.

        Raises:
            MidiFileError: the file could not be written.
        """
        events = self.disarm()
        if not events:
            return False
        save_events(events, path)
        return True


def build_midi_file(events: List[RecordedEvent]) -> mido.MidiFile:
    """Format 0 file: SetTempo, the notes with delta ticks, End-of-Track."""
    midi_file = mido.MidiFile(type=0, ticks_per_beat=TICKS_PER_BEAT)
    track = mido.MidiTrack()
    midi_file.tracks.append(track)

    track.append(mido.MetaMessage('set_tempo', tempo=TEMPO, time=0))
    previous_tick = 0
    for event in sorted(events, key=lambda e: e.time_ms):
        tick = ms_to_ticks(event.time_ms)
        delta = max(0, tick - previous_tick)
        velocity = NOTE_ON_VELOCITY if event.kind == "note_on" else NOTE_OFF_VELOCITY
        track.append(mido.Message(event.kind, channel=MIDI_CHANNEL, note=event.note,
                                  velocity=velocity, time=delta))
        previous_tick += delta
    track.append(mido.MetaMessage('end_of_track', time=0))
    return midi_file


def save_events(events: List[RecordedEvent], path):
    try:
        path = Path(path)
        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        build_midi_file(events).save(str(path))
    except Exception as e:
        raise MidiFileError(f"Failed to save MIDI recording to '{path}': {e}") from e
