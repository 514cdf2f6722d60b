"""Configuration file management."""
import json
from pathlib import Path
from typing import Optional, Tuple

DEFAULT_CONFIG = {
    "midi_input": None,
    "midi_output": None,
    "waveform": "sine",
    "volume": 0.05,
    "envelope": {"attack": 0.01, "hold": 0.0, "release": 0.5, "sustain": 0.5},
    "instrument": 0,
    "octave_range": [3, 5],
    "songs_dir": "songs",
    "recording_path": "Recording.mid",
}


class ConfigManager:
    """Manages application configuration."""

    def __init__(self, config_file: Optional[Path] = None, autosave: bool = True):
        self.config_file = Path(config_file) if config_file else Path(__file__).parent / "config.json"
        self.autosave = autosave
        self.config = self._load_config()

    def _load_config(self) -> dict:
        """Load configuration from file, filling gaps with defaults."""
        config = self._default_config()
        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    stored = json.load(f)
                if isinstance(stored, dict):
                    config.update(stored)
            except Exception as e:
                print(f"Error loading config, using defaults: {e}")
                return self._default_config()
        return config

    def _default_config(self) -> dict:
        """Return default configuration."""
        return json.loads(json.dumps(DEFAULT_CONFIG))

    def save_config(self):
        """Save configuration to file."""
        try:
            with open(self.config_file, 'w') as f:
                json.dump(self.config, f, indent=2)
        except Exception as e:
            print(f"Error saving config: {e}")

    def _set(self, key: str, value):
        self.config[key] = value
        if self.autosave:
            self.save_config()

    # ── MIDI devices ─────────────────────────────────────────────

    def get_midi_input(self) -> Optional[str]:
        return self.config.get("midi_input")

    def set_midi_input(self, device_name: Optional[str]):
        self._set("midi_input", device_name)

    def get_midi_output(self) -> Optional[str]:
        return self.config.get("midi_output")

    def set_midi_output(self, device_name: Optional[str]):
        self._set("midi_output", device_name)

    # ── Sound ────────────────────────────────────────────────────

    def get_waveform(self) -> str:
        return self.config.get("waveform", "sine")

    def set_waveform(self, waveform: str):
        self._set("waveform", waveform)

    def get_volume(self) -> float:
        return float(self.config.get("volume", 0.05))

    def set_volume(self, volume: float):
        """Persist the master volume. Clamped to [0, 1]."""
        self._set("volume", float(max(0.0, min(1.0, volume))))

    def get_envelope(self) -> dict:
        envelope = dict(DEFAULT_CONFIG["envelope"])
        stored = self.config.get("envelope")
        if isinstance(stored, dict):
            envelope.update({k: float(v) for k, v in stored.items() if k in envelope})
        return envelope

    def set_envelope(self, attack: float, hold: float, release: float, sustain: float):
        self._set("envelope", {
            "attack": attack, "hold": hold, "release": release, "sustain": sustain,
        })

    def get_instrument(self) -> int:
        return int(self.config.get("instrument", 0))

    def set_instrument(self, program: int):
        """Persist the MIDI program. Clamped to [0, 127]."""
        self._set("instrument", int(max(0, min(127, program))))

    # ── Keyboard and files ───────────────────────────────────────

    def get_octave_range(self) -> Tuple[int, int]:
        start, end = self.config.get("octave_range", [3, 5])
        return int(start), int(end)

    def set_octave_range(self, start: int, end: int):
        self._set("octave_range", [int(start), int(end)])

    def get_songs_dir(self) -> Path:
        songs = Path(self.config.get("songs_dir", "songs"))
        return songs if songs.is_absolute() else self.config_file.parent / songs

    def get_recording_path(self) -> Path:
        path = Path(self.config.get("recording_path", "Recording.mid"))
        return path if path.is_absolute() else self.config_file.parent / path
