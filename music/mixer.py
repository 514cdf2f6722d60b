"""Mixer that sums a changing set of sample sources into one mono stream."""
import threading
from typing import Tuple

import numpy as np


class Mixer:
    """Sums every active source into the output buffer.

    Sources are any objects with ``read(buffer, count) -> samples_read``.
    A source that returns 0 samples is finished and is removed. The mixer
    itself always fills the whole buffer (silence when nothing plays) so the
    output device never sees an end of stream.

    add()/remove() may be called from any thread while the audio thread is
    reading: the source list is copy-on-write and the lock is only held to
    swap it, never while a source is being read.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sources: Tuple = ()
        self._scratch = np.zeros(0, dtype=np.float32)

    def add(self, source):
        with self._lock:
            if source not in self._sources:
                self._sources = self._sources + (source,)

    def remove(self, source):
        with self._lock:
            self._sources = tuple(s for s in self._sources if s is not source)

    def clear(self):
        with self._lock:
            self._sources = ()

    @property
    def sources(self) -> Tuple:
        """Snapshot of the current sources."""
        return self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def __contains__(self, source) -> bool:
        return any(s is source for s in self._sources)

    def read(self, buffer: np.ndarray, count: int) -> int:
        """Fill buffer[:count] with the sum of all sources. Always returns count."""
        if count <= 0:
            return 0
        if len(self._scratch) < count:
            self._scratch = np.zeros(count, dtype=np.float32)

        out = buffer[:count]
        out[:] = 0.0
        sources = self._sources
        finished = []

        for source in sources:
            try:
                samples_read = source.read(self._scratch, count)
            except Exception as e:
                print(f"Error reading mixer source, dropping it: {e}")
                finished.append(source)
                continue
            if samples_read <= 0:
                finished.append(source)
                continue
            out[:samples_read] += self._scratch[:samples_read]

        for source in finished:
            self.remove(source)
        return count
