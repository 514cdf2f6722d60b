"""Text-mode oscilloscope trace of the audio output."""
import numpy as np
from textual.widgets import Static


class OscilloscopeWidget(Static):
    """Plots one dot per column for a block of samples in [-1, 1]."""

    ROWS = 7
    COLUMNS = 64
    SCALE = 0.8

    DEFAULT_CSS = """
    OscilloscopeWidget {
        width: auto;
        height: auto;
        color: cyan;
        border: round #444444;
    }
    """

    def __init__(self, **kwargs):
        super().__init__(self.render_trace(np.zeros(0, dtype=np.float32)), **kwargs)

    def render_trace(self, samples: np.ndarray) -> str:
        grid = [[" "] * self.COLUMNS for _ in range(self.ROWS)]
        middle = self.ROWS // 2
        for x in range(self.COLUMNS):
            grid[middle][x] = "─"

        peak = float(np.max(np.abs(samples))) if len(samples) else 0.0
        if peak > 1e-6:
            # Auto-scale: quiet master volumes still fill the trace
            gain = self.SCALE / peak
            for x in range(self.COLUMNS):
                value = float(samples[x * len(samples) // self.COLUMNS]) * gain
                value = max(-1.0, min(1.0, value))
                y = int(round((1.0 - value) / 2.0 * (self.ROWS - 1)))
                grid[y][x] = "•"

        return "\n".join("".join(row) for row in grid)

    def update_samples(self, samples: np.ndarray):
        self.update(self.render_trace(samples))
