#!/usr/bin/env python3
"""ABOUTME: Tests for note arithmetic and the waveform oscillator.
ABOUTME: Checks equal-tempered frequencies, key colours, waveform shapes and phase continuity."""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

import numpy as np
import pytest

from music.errors import InvalidConfigurationError
from music.notes import (
    frequency_to_midi,
    is_black_key,
    is_valid_note,
    midi_to_frequency,
    note_from_name,
    note_name,
    octave_notes,
)
from music.oscillator import Oscillator


def test_a4_and_its_octaves():
    assert midi_to_frequency(69) == pytest.approx(440.0)
    assert midi_to_frequency(81) == pytest.approx(880.0)
    assert midi_to_frequency(57) == pytest.approx(220.0)
    assert midi_to_frequency(60) == pytest.approx(261.6256, rel=1e-5)


def test_frequency_to_midi_rounds_to_nearest_note():
    assert frequency_to_midi(440.0) == 69
    assert frequency_to_midi(445.0) == 69
    assert frequency_to_midi(midi_to_frequency(21)) == 21
    with pytest.raises(ValueError):
        frequency_to_midi(0)


def test_black_keys_follow_octave_pattern():
    c4 = 60
    pattern = [is_black_key(c4 + i) for i in range(12)]
    assert pattern == [False, True, False, True, False, False,
                       True, False, True, False, True, False]
    assert is_black_key(61 + 12) and not is_black_key(64 - 12)


def test_note_names():
    assert note_name(60) == "C4"
    assert note_name(61) == "C#4"
    assert note_name(0) == "C-1"
    assert note_from_name("C#4") == 61
    assert note_from_name("A4") == 69
    assert note_from_name("C-1") == 0
    assert note_from_name("H4") is None
    assert note_from_name("G9") == 127
    assert note_from_name("G#9") is None


def test_valid_note_range():
    assert is_valid_note(0) and is_valid_note(127)
    assert not is_valid_note(-1)
    assert not is_valid_note(128)
    assert not is_valid_note(60.0)


def test_octave_notes_cover_whole_octaves():
    notes = octave_notes(3, 5)
    assert len(notes) == 36
    assert notes[0] == 48
    assert notes[-1] == 83


def test_oscillator_rejects_bad_settings():
    with pytest.raises(InvalidConfigurationError):
        Oscillator(0.0)
    with pytest.raises(InvalidConfigurationError):
        Oscillator(-440.0)
    with pytest.raises(InvalidConfigurationError):
        Oscillator(440.0, waveform="white_noise")
    with pytest.raises(InvalidConfigurationError):
        Oscillator(440.0, waveform="organ")

    osc = Oscillator(440.0)
    with pytest.raises(InvalidConfigurationError):
        osc.waveform = "sweep"
    assert osc.waveform == "sine"


def test_gain_is_clamped():
    assert Oscillator(440.0, gain=3.0).gain == 1.0
    assert Oscillator(440.0, gain=-1.0).gain == 0.0


def test_sine_starts_at_zero_and_stays_in_range():
    osc = Oscillator(440.0, 44100, "sine", gain=0.5)
    buffer = np.zeros(1024, dtype=np.float32)
    assert osc.read(buffer, 1024) == 1024
    assert buffer[0] == pytest.approx(0.0, abs=1e-7)
    assert np.max(np.abs(buffer)) <= 0.5 + 1e-6


def test_waveform_shapes_at_quarter_period_steps():
    # 2 Hz at 8 samples/s: four samples per cycle, quarter-period phase steps
    buffer = np.zeros(4, dtype=np.float32)

    Oscillator(2.0, 8, "saw").read(buffer, 4)
    assert np.allclose(buffer, [-1.0, -0.5, 0.0, 0.5], atol=1e-6)

    Oscillator(2.0, 8, "triangle").read(buffer, 4)
    assert np.allclose(buffer, [-1.0, 0.0, 1.0, 0.0], atol=1e-6)

    Oscillator(2.0, 8, "square").read(buffer, 4)
    assert np.allclose(buffer, [1.0, 1.0, -1.0, -1.0])


def test_phase_is_continuous_across_reads():
    whole = np.zeros(300, dtype=np.float32)
    Oscillator(523.25, 44100, "triangle").read(whole, 300)

    split = np.zeros(300, dtype=np.float32)
    osc = Oscillator(523.25, 44100, "triangle")
    osc.read(split[:100], 100)
    osc.read(split[100:], 200)

    assert np.allclose(whole, split, atol=1e-5)


def test_changing_waveform_keeps_phase():
    osc = Oscillator(1000.0, 44100, "sine")
    buffer = np.zeros(64, dtype=np.float32)
    osc.read(buffer, 64)
    phase = osc.phase
    osc.waveform = "square"
    assert osc.phase == phase
    assert osc.read(buffer, 64) == 64
    assert set(np.unique(np.abs(buffer))) == {1.0}
