#!/usr/bin/env python3
"""ABOUTME: Tests for the output pipeline and the oscilloscope tap ring.
ABOUTME: Renders blocks without a sound device and checks the tap keeps only the newest samples."""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

import numpy as np

import music.output_pipeline as output_pipeline
from music.mixer import Mixer
from music.output_pipeline import BYTES_PER_SAMPLE, OscilloscopeTap, OutputPipeline


class ConstantSource:
    def __init__(self, value):
        self.value = value

    def read(self, buffer, count):
        buffer[:count] = self.value
        return count


def samples(values):
    return np.asarray(values, dtype=np.float32).tobytes()


def test_tap_capacity_matches_duration():
    tap = OscilloscopeTap(sample_rate=44100, duration_ms=100)
    assert tap.capacity == 4410 * BYTES_PER_SAMPLE
    assert tap.buffered_bytes == 0


def test_tap_overwrites_oldest_when_full():
    # 10 samples of capacity
    tap = OscilloscopeTap(sample_rate=1000, duration_ms=10)
    tap.write(samples(np.arange(6)))
    tap.write(samples(np.arange(6, 15)))

    assert tap.buffered_bytes == tap.capacity
    assert np.array_equal(tap.read_samples(100), np.arange(5, 15, dtype=np.float32))
    assert tap.buffered_bytes == 0


def test_tap_single_write_larger_than_ring():
    tap = OscilloscopeTap(sample_rate=1000, duration_ms=10)
    tap.write(samples(np.arange(25)))
    assert np.array_equal(tap.read_samples(10), np.arange(15, 25, dtype=np.float32))


def test_tap_read_consumes_oldest_first_across_wrap():
    tap = OscilloscopeTap(sample_rate=1000, duration_ms=10)
    tap.write(samples(np.arange(8)))
    assert np.array_equal(tap.read_samples(6), np.arange(6, dtype=np.float32))
    tap.write(samples(np.arange(8, 14)))
    assert np.array_equal(tap.read_samples(100), np.arange(6, 14, dtype=np.float32))


def test_tap_clear_and_empty_read():
    tap = OscilloscopeTap(sample_rate=1000, duration_ms=10)
    assert tap.read(64) == b""
    tap.write(samples([0.5, 0.25]))
    tap.clear()
    assert len(tap.read_samples(10)) == 0


def test_render_clips_and_tees_into_tap():
    mixer = Mixer()
    mixer.add(ConstantSource(0.75))
    mixer.add(ConstantSource(0.75))
    tap = OscilloscopeTap(sample_rate=1000, duration_ms=100)
    pipeline = OutputPipeline(mixer, sample_rate=1000, buffer_size=32, tap=tap)

    data = pipeline.render(32)

    assert len(data) == 32 * BYTES_PER_SAMPLE
    rendered = np.frombuffer(data, dtype=np.float32)
    assert np.all(rendered == 1.0)
    assert np.array_equal(tap.read_samples(64), rendered)


def test_render_silence_without_sources():
    pipeline = OutputPipeline(Mixer(), sample_rate=1000, buffer_size=16)
    data = pipeline.render(16)
    assert np.all(np.frombuffer(data, dtype=np.float32) == 0.0)


def test_render_grows_block_for_larger_requests():
    pipeline = OutputPipeline(Mixer(), sample_rate=1000, buffer_size=16)
    assert len(pipeline.render(100)) == 100 * BYTES_PER_SAMPLE


def test_start_without_audio_library_reports_error(monkeypatch):
    monkeypatch.setattr(output_pipeline, "AUDIO_AVAILABLE", False)
    pipeline = OutputPipeline(Mixer())
    assert pipeline.start() is False
    assert pipeline.last_error
    assert not pipeline.is_available()
    pipeline.close()
