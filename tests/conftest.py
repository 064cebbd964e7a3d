"""Shared fixtures for the fadescope test suite."""

import numpy as np
import pytest

from fadescope.capture_engine import AudioSource
from fadescope.config import VisualizerConfig
from fadescope.core.capture import CaptureBuffer, CaptureKind

# Spectral bytes: four (real, imag) pairs read with divisions=2
SCENARIO_BYTES = bytes([10, 20, 5, 5, 0, 0, 30, 0])


@pytest.fixture
def scenario_bytes():
    return SCENARIO_BYTES


@pytest.fixture
def scenario_buffer():
    return CaptureBuffer(CaptureKind.SPECTRAL, SCENARIO_BYTES, 0)


@pytest.fixture
def small_config():
    """A small surface with opaque white bars on black, divisions=2."""
    return VisualizerConfig(width=64, height=48, divisions=2)


@pytest.fixture
def sine_source():
    """Half a second of a 500 Hz sine at 8 kHz."""
    sr = 8000
    t = np.arange(sr // 2, dtype=np.float32) / sr
    y = (0.5 * np.sin(2 * np.pi * 500.0 * t)).astype(np.float32)
    return AudioSource(samples=y, sample_rate=sr, name="sine")


@pytest.fixture
def make_spectral():
    """Factory: CaptureBuffer from signed ints."""
    def _make(values, sequence=0):
        raw = np.asarray(values, dtype=np.int8).tobytes()
        return CaptureBuffer(CaptureKind.SPECTRAL, raw, sequence)
    return _make
