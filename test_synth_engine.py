#!/usr/bin/env python3
"""ABOUTME: Tests for the SynthEngine facade and the configuration file manager.
ABOUTME: Runs without audio or MIDI devices; a fake MIDI port stands in for the synthesizer."""

import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

import mido
import numpy as np
import pytest

from config_manager import ConfigManager
from music.errors import InvalidConfigurationError
from music.synth_engine import SynthEngine
from music.voice_manager import Origin


class FakePort:
    def __init__(self):
        self.sent = []
        self.closed = False

    def send(self, msg):
        self.sent.append(msg)

    def close(self):
        self.closed = True


class BrokenPort(FakePort):
    def send(self, msg):
        raise OSError("port vanished")


@pytest.fixture
def config(tmp_path):
    return ConfigManager(tmp_path / "config.json")


@pytest.fixture
def notices():
    return []


@pytest.fixture
def engine(config, notices):
    return SynthEngine(config, sample_rate=1000, buffer_size=64,
                       notify=lambda message, severity: notices.append((message, severity)))


def test_config_defaults_and_persistence(tmp_path):
    path = tmp_path / "config.json"
    config = ConfigManager(path)
    assert config.get_waveform() == "sine"
    assert config.get_volume() == pytest.approx(0.05)
    assert config.get_octave_range() == (3, 5)

    config.set_waveform("square")
    config.set_volume(4.0)
    config.set_envelope(0.02, 0.1, 0.3, 0.7)
    config.set_octave_range(2, 4)

    reloaded = ConfigManager(path)
    assert reloaded.get_waveform() == "square"
    assert reloaded.get_volume() == 1.0
    assert reloaded.get_envelope() == {"attack": 0.02, "hold": 0.1, "release": 0.3, "sustain": 0.7}
    assert reloaded.get_octave_range() == (2, 4)


def test_config_paths_resolve_next_to_config_file(tmp_path):
    config = ConfigManager(tmp_path / "config.json")
    assert config.get_songs_dir() == tmp_path / "songs"
    assert config.get_recording_path() == tmp_path / "Recording.mid"


def test_corrupt_config_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{ not json")
    assert ConfigManager(path).get_waveform() == "sine"


def test_engine_loads_saved_settings(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "waveform": "triangle",
        "volume": 0.3,
        "octave_range": [2, 6],
        "envelope": {"attack": 0.0, "hold": 0.2, "release": 1.0, "sustain": 0.9},
    }))
    engine = SynthEngine(ConfigManager(path), sample_rate=1000)
    assert engine.waveform == "triangle"
    assert engine.volume == pytest.approx(0.3)
    assert engine.octave_range == (2, 6)
    assert engine.envelope.sustain == pytest.approx(0.9)


def test_bad_saved_settings_keep_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"waveform": "kazoo"}))
    engine = SynthEngine(ConfigManager(path), sample_rate=1000)
    assert engine.waveform == "sine"


def test_octave_range_validation(engine, config):
    engine.set_octave_range(1, 7)
    assert engine.octave_range == (1, 7)
    for start, end in ((0, 3), (3, 8), (5, 4)):
        with pytest.raises(InvalidConfigurationError):
            engine.set_octave_range(start, end)
    assert engine.octave_range == (1, 7)
    assert config.get_octave_range() == (1, 7)


def test_settings_setters_persist(engine, config):
    engine.set_waveform("saw")
    engine.set_volume(0.4)
    engine.set_envelope(0.05, 0.0, 0.2, 0.6)
    assert config.get_waveform() == "saw"
    assert config.get_volume() == pytest.approx(0.4)
    assert config.get_envelope()["release"] == pytest.approx(0.2)

    with pytest.raises(InvalidConfigurationError):
        engine.set_volume(-0.1)
    with pytest.raises(InvalidConfigurationError):
        engine.set_envelope(0.0, 0.0, 0.1, 2.0)
    assert engine.volume == pytest.approx(0.4)


def test_instrument_sends_program_change(engine):
    port = FakePort()
    engine.midi_out.port = port
    engine.set_instrument(19)
    assert port.sent[-1].type == "program_change"
    assert port.sent[-1].program == 19
    with pytest.raises(InvalidConfigurationError):
        engine.set_instrument(128)
    assert engine.instrument == 19


def test_notes_are_mirrored_to_midi_out(engine):
    port = FakePort()
    engine.midi_out.port = port
    engine.note_on(60, Origin.TYPING)
    engine.note_off(60)
    assert [(m.type, m.note, m.velocity) for m in port.sent] == [
        ("note_on", 60, 127),
        ("note_off", 60, 0),
    ]


def test_shutdown_releases_every_note_and_empties_mixer(engine):
    port = FakePort()
    engine.midi_out.port = port
    for note in (60, 62, 64, 65, 67):
        engine.note_on(note)
    assert len(engine.mixer) == 5

    engine.shutdown()

    offs = [m.note for m in port.sent if m.type == "note_off"]
    assert sorted(offs) == [60, 62, 64, 65, 67]
    assert engine.active_notes() == []
    assert len(engine.mixer) == 0
    assert port.closed


def test_midi_out_failure_is_reported_once(engine, notices):
    engine.midi_out.port = BrokenPort()
    engine.note_on(60)
    engine.note_on(62)
    errors = [n for n in notices if n[1] == "error"]
    assert len(errors) == 1
    assert engine.active_notes() == [60, 62]


def test_record_and_play_back(engine, notices, tmp_path):
    path = tmp_path / "take.mid"
    engine.record_start()
    assert engine.is_recording()
    engine.note_on(60)
    engine.note_off(60)

    assert engine.record_stop_and_save(path)
    assert not engine.is_recording()
    assert path.exists()
    assert any("saved" in message for message, _ in notices)

    assert engine.playback_start(path)
    engine.playback_stop()
    assert not engine.is_playing()


def test_empty_recording_saves_nothing(engine, tmp_path):
    engine.record_start()
    assert engine.record_stop_and_save(tmp_path / "nothing.mid") is False
    assert not (tmp_path / "nothing.mid").exists()


def test_playback_of_missing_file_notifies(engine, notices, tmp_path):
    assert engine.playback_start(tmp_path / "missing.mid") is False
    assert notices[-1][1] == "error"
    assert not engine.is_playing()


def test_playback_of_corrupt_file_notifies(engine, notices, tmp_path):
    path = tmp_path / "corrupt.mid"
    path.write_bytes(b"nope")
    assert engine.playback_start(path) is False
    assert notices[-1][1] == "error"


def test_list_songs_uses_config_directory(engine, config):
    songs = config.get_songs_dir()
    assert engine.list_songs() == []
    mido.MidiFile().save(str(songs / "tune.mid"))
    assert engine.list_songs() == ["tune.mid"]


def test_oscilloscope_read_returns_rendered_samples(engine):
    engine.set_envelope(0.0, 0.0, 0.5, 1.0)
    engine.note_on(69)
    engine.output.render(64)

    out = np.zeros(128, dtype=np.float32)
    n = engine.oscilloscope_read(out, 128)
    assert n == 64
    assert np.max(np.abs(out[:n])) > 0.0
    assert engine.oscilloscope_read(out, 128) == 0


def test_start_without_device_reports_once(engine, notices, monkeypatch):
    import music.output_pipeline as output_pipeline
    monkeypatch.setattr(output_pipeline, "AUDIO_AVAILABLE", False)
    assert engine.start() is False
    assert engine.start() is False
    assert len([n for n in notices if n[1] == "warning"]) == 1
    engine.note_on(60)
    assert engine.active_notes() == [60]


def test_posted_notifications_run_through_post(config):
    queue = []
    seen = []
    engine = SynthEngine(config, sample_rate=1000, post=queue.append,
                         notify=lambda message, severity: seen.append(message))
    engine.report("hello", "information")
    assert seen == []
    queue.pop()()
    assert seen == ["hello"]


def test_midi_output_opens_by_index_and_sends_instrument(engine, monkeypatch):
    import midi.device_manager as device_manager
    import midi.output_handler as output_handler
    port = FakePort()
    monkeypatch.setattr(device_manager.mido, "get_output_names", lambda: ["Thru", "Synth Out"])
    monkeypatch.setattr(output_handler.mido, "open_output", lambda name: port)

    engine.instrument = 5
    assert engine.open_midi_output(1)
    assert engine.midi_out.device_name == "Synth Out"
    assert port.sent[-1].type == "program_change"
    assert port.sent[-1].program == 5


def test_midi_input_bad_index_reports_once(engine, notices, monkeypatch):
    import midi.device_manager as device_manager
    monkeypatch.setattr(device_manager.mido, "get_input_names", lambda: [])
    assert not engine.open_midi_input(0)
    assert not engine.open_midi_input(0)
    assert len([n for n in notices if n[1] == "warning"]) == 1


def test_step_instrument_wraps_and_persists(engine, config):
    port = FakePort()
    engine.midi_out.port = port
    assert engine.step_instrument(-1) == 127
    assert port.sent[-1].program == 127
    assert engine.step_instrument(1) == 0
    assert engine.step_instrument(1) == 1
    assert config.get_instrument() == 1
