"""Sound device output and the oscilloscope tap."""
import threading
from typing import Optional

import numpy as np

from music.errors import DeviceUnavailableError

# Check for PyAudio availability
try:
    import pyaudio
    AUDIO_AVAILABLE = True
except ImportError:
    AUDIO_AVAILABLE = False
    pyaudio = None

BYTES_PER_SAMPLE = 4  # float32


class OscilloscopeTap:
    """Fixed-duration byte ring holding the most recent output samples.

    Writes never block and never fail: when the ring is full the oldest
    bytes are overwritten, so a slow reader only loses history.
    """

    def __init__(self, sample_rate: int = 44100, duration_ms: int = 100):
        samples = max(1, int(sample_rate * duration_ms / 1000))
        self.capacity = samples * BYTES_PER_SAMPLE
        self._buffer = bytearray(self.capacity)
        self._read_pos = 0
        self._count = 0
        self._lock = threading.Lock()

    @property
    def buffered_bytes(self) -> int:
        return self._count

    def write(self, data: bytes):
        data = memoryview(data).cast('B')
        if len(data) >= self.capacity:
            # Only the newest capacity bytes survive
            data = data[len(data) - self.capacity:]
        n = len(data)
        if n == 0:
            return
        with self._lock:
            write_pos = (self._read_pos + self._count) % self.capacity
            first = min(n, self.capacity - write_pos)
            self._buffer[write_pos:write_pos + first] = data[:first]
            if first < n:
                self._buffer[0:n - first] = data[first:]
            overflow = self._count + n - self.capacity
            if overflow > 0:
                self._read_pos = (self._read_pos + overflow) % self.capacity
                self._count = self.capacity
            else:
                self._count += n

    def read(self, max_bytes: int) -> bytes:
        """Return up to max_bytes of the oldest buffered data and consume it."""
        with self._lock:
            n = min(max_bytes, self._count)
            if n <= 0:
                return b""
            first = min(n, self.capacity - self._read_pos)
            out = bytes(self._buffer[self._read_pos:self._read_pos + first])
            if first < n:
                out += bytes(self._buffer[0:n - first])
            self._read_pos = (self._read_pos + n) % self.capacity
            self._count -= n
            return out

    def read_samples(self, max_samples: int) -> np.ndarray:
        """Like read() but decoded into float32 samples."""
        data = self.read(max_samples * BYTES_PER_SAMPLE)
        usable = len(data) - len(data) % BYTES_PER_SAMPLE
        return np.frombuffer(data[:usable], dtype=np.float32)

    def clear(self):
        with self._lock:
            self._read_pos = 0
            self._count = 0


class OutputPipeline:
    """Drives the sound device from the mixer and tees samples to the tap."""

    def __init__(self, mixer, sample_rate: int = 44100, buffer_size: int = 512,
                 tap: Optional[OscilloscopeTap] = None):
        self.mixer = mixer
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size
        self.tap = tap or OscilloscopeTap(sample_rate)
        self.audio = None
        self.stream = None
        self.running = False
        self.last_error: Optional[str] = None
        self._block = np.zeros(buffer_size, dtype=np.float32)

    def render(self, frame_count: int) -> bytes:
        """Pull one block from the mixer, copy it into the tap, return device bytes."""
        if len(self._block) < frame_count:
            self._block = np.zeros(frame_count, dtype=np.float32)
        block = self._block[:frame_count]
        self.mixer.read(block, frame_count)
        np.clip(block, -1.0, 1.0, out=block)
        data = block.tobytes()
        self.tap.write(data)
        return data

    def _audio_callback(self, in_data, frame_count, time_info, status):
        try:
            return (self.render(frame_count), pyaudio.paContinue)
        except Exception:
            return (np.zeros(frame_count, dtype=np.float32).tobytes(), pyaudio.paContinue)

    def _open_stream(self):
        """Open and start the PyAudio stream.

        Raises:
            DeviceUnavailableError: PyAudio is missing or the device refused.
        """
        if not AUDIO_AVAILABLE:
            raise DeviceUnavailableError("PyAudio is not installed - audio output disabled")
        try:
            self.audio = pyaudio.PyAudio()
            default_output = self.audio.get_default_output_device_info()
            self.stream = self.audio.open(
                format=pyaudio.paFloat32, channels=1, rate=self.sample_rate,
                output=True, output_device_index=default_output['index'],
                frames_per_buffer=self.buffer_size, stream_callback=self._audio_callback, start=False
            )
            self.stream.start_stream()
        except Exception as e:
            raise DeviceUnavailableError(f"Audio device unavailable: {e}") from e

    def start(self) -> bool:
        """Open the default output device and start streaming.

        Returns:
            True if audio is running, False if no device could be opened
            (the reason is kept in last_error).
        """
        if self.running:
            return True
        try:
            self._open_stream()
            self.running = True
            self.last_error = None
        except DeviceUnavailableError as e:
            print(f"Audio initialization failed: {e}")
            self.last_error = str(e)
            self.close()
        return self.running

    def close(self):
        self.running = False
        if self.stream:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except Exception as e:
                print(f"Error closing audio stream: {e}")
            finally:
                self.stream = None
        if self.audio:
            self.audio.terminate()
            self.audio = None

    def is_available(self) -> bool:
        return AUDIO_AVAILABLE and self.running
