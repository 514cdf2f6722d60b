"""Periodic waveform oscillator used as the sound source of every voice."""
import numpy as np

from music.errors import InvalidConfigurationError

WAVEFORMS = ("sine", "square", "saw", "triangle")

# Names the UI may list but the oscillator does not generate
RESERVED_WAVEFORMS = ("white_noise", "pink_noise", "sweep")

TWO_PI = 2.0 * np.pi


class Oscillator:
    """Infinite mono sample source for one (waveform, frequency, gain) setting.

    Reads are a pure function of the phase accumulator and the current
    settings. Waveform, frequency and gain may be changed between reads; the
    phase carries over so the change does not click.
    """

    def __init__(self, frequency: float, sample_rate: int = 44100,
                 waveform: str = "sine", gain: float = 1.0):
        if sample_rate <= 0:
            raise InvalidConfigurationError(f"Sample rate must be positive, got {sample_rate}")
        self.sample_rate = int(sample_rate)
        self.phase = 0.0
        self._frequency = 0.0
        self._waveform = "sine"
        self._gain = 0.0
        self.frequency = frequency
        self.waveform = waveform
        self.gain = gain
        self._ramp = np.arange(0, dtype=np.float64)

    @property
    def frequency(self) -> float:
        return self._frequency

    @frequency.setter
    def frequency(self, value: float):
        if value is None or value <= 0:
            raise InvalidConfigurationError(f"Frequency must be positive, got {value}")
        self._frequency = float(value)

    @property
    def waveform(self) -> str:
        return self._waveform

    @waveform.setter
    def waveform(self, value: str):
        if value in RESERVED_WAVEFORMS:
            raise InvalidConfigurationError(f"Waveform '{value}' is not supported by the oscillator")
        if value not in WAVEFORMS:
            raise InvalidConfigurationError(f"Unknown waveform '{value}'")
        self._waveform = value

    @property
    def gain(self) -> float:
        return self._gain

    @gain.setter
    def gain(self, value: float):
        self._gain = float(max(0.0, min(1.0, value)))

    @property
    def phase_increment(self) -> float:
        return TWO_PI * self._frequency / self.sample_rate

    def read(self, buffer: np.ndarray, count: int) -> int:
        """Fill buffer[:count] with samples. Always returns count."""
        if count <= 0:
            return 0
        if len(self._ramp) < count:
            self._ramp = np.arange(count, dtype=np.float64)

        phase_inc = self.phase_increment
        phases = self.phase + self._ramp[:count] * phase_inc
        t_norm = (phases / TWO_PI) % 1.0

        if self._waveform == "sine":
            samples = np.sin(phases)
        elif self._waveform == "square":
            samples = np.where(t_norm < 0.5, 1.0, -1.0)
        elif self._waveform == "triangle":
            samples = 1.0 - 4.0 * np.abs(t_norm - 0.5)
        else:  # saw
            samples = 2.0 * t_norm - 1.0

        buffer[:count] = samples * self._gain
        self.phase = (self.phase + count * phase_inc) % TWO_PI
        return count
