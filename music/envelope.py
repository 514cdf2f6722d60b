"""Linear attack / hold / release amplitude envelope."""
import threading
from dataclasses import dataclass

import numpy as np

from music.errors import InvalidConfigurationError


@dataclass(frozen=True)
class EnvelopeSettings:
    """Envelope times in seconds and the level reached after the attack."""

    attack: float = 0.01
    hold: float = 0.0
    release: float = 0.5
    sustain: float = 0.5

    def validate(self) -> "EnvelopeSettings":
        for name in ("attack", "hold", "release"):
            value = getattr(self, name)
            if value is None or value < 0:
                raise InvalidConfigurationError(f"Envelope {name} must be >= 0, got {value}")
        if self.sustain is None or not 0.0 <= self.sustain <= 1.0:
            raise InvalidConfigurationError(f"Envelope sustain must be in 0..1, got {self.sustain}")
        return self

    def to_dict(self) -> dict:
        return {
            "attack": self.attack,
            "hold": self.hold,
            "release": self.release,
            "sustain": self.sustain,
        }


class Envelope:
    """Multiplies an upstream source by a time-varying amplitude.

    The amplitude at sample position p is:

        p < attack            sustain * p / attack
        p < attack + hold     sustain
        p < total             level * (1 - (p - attack - hold) / release)
        otherwise             0, and the envelope is finished

    where `level` is the sustain level, or the level reached when release()
    was called. A gated envelope stays at the sustain level after the hold
    phase until release() is called, which is how a held key keeps sounding.

    Once finished, read() returns 0 so the mixer drops the source.
    """

    def __init__(self, source, sample_rate: int = 44100,
                 settings: EnvelopeSettings = None, gated: bool = False):
        self.source = source
        self.sample_rate = int(sample_rate)
        self.gated = gated
        self.position = 0
        self.finished = False
        self.released = not gated
        self.attack_samples = 0
        self.hold_samples = 0
        self.release_samples = 0
        self.total_samples = 0
        self.settings = EnvelopeSettings()
        self._release_level = None
        self._scratch = np.zeros(0, dtype=np.float32)
        self._lock = threading.Lock()
        self.set_parameters(settings or EnvelopeSettings())

    def set_parameters(self, settings: EnvelopeSettings):
        """Recompute the sample counts; the current position is kept."""
        settings.validate()
        with self._lock:
            self.settings = settings
            self.attack_samples = int(settings.attack * self.sample_rate)
            self.hold_samples = int(settings.hold * self.sample_rate)
            self.release_samples = int(settings.release * self.sample_rate)
            self.total_samples = self.attack_samples + self.hold_samples + self.release_samples

    @property
    def release_start(self) -> int:
        return self.attack_samples + self.hold_samples

    @property
    def is_releasing(self) -> bool:
        return self.released and not self.finished

    def _levels(self, positions: np.ndarray) -> np.ndarray:
        sustain = self.settings.sustain
        a = self.attack_samples
        ah = self.release_start
        levels = np.zeros(len(positions), dtype=np.float64)

        if a > 0:
            attack = positions < a
            levels[attack] = sustain * positions[attack] / a

        levels[(positions >= a) & (positions < ah)] = sustain

        if not self.released:
            levels[positions >= ah] = sustain
            return levels

        start_level = sustain if self._release_level is None else self._release_level
        if self.release_samples > 0:
            rel = (positions >= ah) & (positions < self.total_samples)
            levels[rel] = start_level * (1.0 - (positions[rel] - ah) / self.release_samples)
        return levels

    def current_level(self) -> float:
        """Amplitude that the next sample will be scaled by."""
        with self._lock:
            return self._current_level()

    def _current_level(self) -> float:
        if self.finished:
            return 0.0
        return float(self._levels(np.array([self.position], dtype=np.float64))[0])

    def release(self):
        """Start the release ramp from the current amplitude.

        May be called from any thread. A read() in progress finishes its
        block first, so the ramp begins at the first sample not yet produced.
        """
        with self._lock:
            if self.finished or (self.released and self.position >= self.release_start):
                return
            self._release_level = self._current_level()
            self.position = self.release_start
            self.released = True

    def read(self, buffer: np.ndarray, count: int) -> int:
        if self.finished or count <= 0:
            return 0

        if len(self._scratch) < count:
            self._scratch = np.zeros(count, dtype=np.float32)
        samples_read = self.source.read(self._scratch, count)

        # Held from the position snapshot to the commit; never across source.read
        with self._lock:
            if samples_read <= 0:
                self.finished = True
                return 0

            positions = self.position + np.arange(samples_read, dtype=np.float64)
            if not self.released:
                positions = np.minimum(positions, self.release_start)
            envelope = self._levels(positions)

            if self.released and self.position + samples_read >= self.total_samples:
                live = max(0, self.total_samples - self.position)
                buffer[:live] = self._scratch[:live] * envelope[:live]
                buffer[live:samples_read] = 0.0
                self.position = self.total_samples
                self.finished = True
                return samples_read

            buffer[:samples_read] = self._scratch[:samples_read] * envelope
            if self.released:
                self.position += samples_read
            else:
                self.position = min(self.position + samples_read, self.release_start)
            return samples_read
