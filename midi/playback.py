"""Plays a MIDI file through the Voice Manager on a background thread."""
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import mido

from music.errors import PlaybackError
from music.voice_manager import Origin

PROGRESS_INTERVAL = 0.5  # seconds between progress callbacks
STOP_JOIN_TIMEOUT = 0.05


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    STOPPING = "stopping"


def load_schedule(path) -> Tuple[List[Tuple[float, mido.Message]], float]:
    """Parse a MIDI file into (seconds from start, message) note events.

    Format 0 and 1 files are supported; tracks are merged by absolute tick
    with events on the same tick kept in file order, and tempo changes are
    honoured.

    Returns:
        The note schedule and the total duration of the file in seconds.

    Raises:
        PlaybackError: the file is missing, corrupt or asynchronous (type 2).
    """
    try:
        midi_file = mido.MidiFile(str(path))
        if midi_file.type == 2:
            raise PlaybackError(f"'{Path(path).name}' is a type 2 MIDI file, which cannot be played")
        schedule = []
        now = 0.0
        for msg in midi_file:
            now += msg.time
            if msg.type in ('note_on', 'note_off'):
                schedule.append((now, msg))
    except PlaybackError:
        raise
    except Exception as e:
        raise PlaybackError(f"Failed to read MIDI file '{path}': {e}") from e
    return schedule, now


def list_songs(directory) -> List[str]:
    """Sorted .mid file names in the song directory (created if missing)."""
    folder = Path(directory)
    folder.mkdir(parents=True, exist_ok=True)
    return sorted(p.name for p in folder.iterdir()
                  if p.is_file() and p.suffix.lower() == '.mid')


class Playback:
    """idle -> loading -> playing -> (stopping ->) idle.

    The playback thread sleeps on the cancellation event until the next
    note is due, so stop() takes effect within one wait. Notes started by
    the file are tracked and released when playback finishes or stops.
    """

    def __init__(self, voice_manager,
                 on_progress: Optional[Callable[[float, float], None]] = None,
                 on_finished: Optional[Callable[[], None]] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.voice_manager = voice_manager
        self.on_progress = on_progress
        self.on_finished = on_finished
        self.clock = clock
        self._lock = threading.Lock()
        self._state = PlaybackState.IDLE
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._sounding = set()
        self._start_time = 0.0
        self._load_token = None
        self._total = 0.0
        self.path: Optional[Path] = None

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state == PlaybackState.PLAYING

    def progress(self) -> Tuple[float, float]:
        """(elapsed seconds, total seconds) of the current song."""
        if self._state != PlaybackState.PLAYING:
            return (0.0, 0.0)
        elapsed = min(self.clock() - self._start_time, self._total)
        return (max(0.0, elapsed), self._total)

    def start(self, path):
        """Load path and start playing it.

        Returns:
            True once the playback thread is running, False if stop() was
            called while the file was loading.

        Raises:
            PlaybackError: already playing, or the file could not be parsed.
        """
        with self._lock:
            if self._state != PlaybackState.IDLE:
                raise PlaybackError(f"Cannot start playback while {self._state.value}")
            self._state = PlaybackState.LOADING
            self._load_token = token = object()

        try:
            schedule, total = load_schedule(path)
        except PlaybackError:
            with self._lock:
                if self._load_token is token:
                    self._state = PlaybackState.IDLE
            raise

        with self._lock:
            # stop() while loading already returned to idle
            if self._state != PlaybackState.LOADING or self._load_token is not token:
                return False
            self.path = Path(path)
            self._total = total
            self._sounding = set()
            self._cancel = threading.Event()
            self._start_time = self.clock()
            self._state = PlaybackState.PLAYING
            self._thread = threading.Thread(
                target=self._run, args=(schedule, self._cancel),
                name="midi-playback", daemon=True,
            )
            self._thread.start()
        return True

    def stop(self):
        """Cancel playback, silence every note and return to idle."""
        with self._lock:
            if self._state not in (PlaybackState.PLAYING, PlaybackState.LOADING):
                return
            self._state = PlaybackState.STOPPING
            thread = self._thread
            self._cancel.set()

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=STOP_JOIN_TIMEOUT)

        self.voice_manager.all_off()
        with self._lock:
            self._sounding = set()
            self._thread = None
            self.path = None
            self._state = PlaybackState.IDLE

    def _run(self, schedule, cancel: threading.Event):
        try:
            next_progress = 0.0
            index = 0
            while index < len(schedule):
                if cancel.is_set():
                    return
                at, msg = schedule[index]
                now = self.clock() - self._start_time
                if now >= next_progress:
                    self._emit_progress(now)
                    next_progress = now + PROGRESS_INTERVAL
                wait = min(at, next_progress) - now
                if wait > 0:
                    if cancel.wait(wait):
                        return
                    continue
                self._dispatch(msg)
                index += 1
        except Exception as e:
            print(f"Error during MIDI playback: {e}")
        self._finish(cancel)

    def _dispatch(self, msg):
        if msg.type == 'note_on' and msg.velocity > 0:
            # A note the player is already holding stays theirs
            if self.voice_manager.note_on(msg.note, Origin.PLAYBACK):
                self._sounding.add(msg.note)
        elif msg.note in self._sounding:
            self._sounding.discard(msg.note)
            self.voice_manager.note_off(msg.note)

    def _emit_progress(self, elapsed: float):
        if self.on_progress:
            self.on_progress(min(elapsed, self._total), self._total)

    def _finish(self, cancel: threading.Event):
        with self._lock:
            if cancel.is_set() or self._state != PlaybackState.PLAYING:
                return
            self._state = PlaybackState.IDLE
            self._thread = None
            sounding = sorted(self._sounding)
            self._sounding = set()
        for note in sounding:
            self.voice_manager.note_off(note)
        self._emit_progress(self._total)
        if self.on_finished:
            self.on_finished()
