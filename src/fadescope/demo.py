"""Synthetic demo signal: a few drifting tones over a click track."""

from __future__ import annotations

import librosa
import numpy as np

from fadescope.capture_engine import AudioSource

DEMO_TONES_HZ = (110.0, 220.0, 440.0, 1320.0, 3520.0)


def build_demo_source(
    duration: float = 12.0,
    sr: int = 22050,
    bpm: float = 120.0,
    seed: int = 7,
) -> AudioSource:
    """
    Build a mono test signal with audible spectral motion.

    Each tone is swelled by its own slow LFO; clicks land on every beat
    so rise markers fire on a steady pulse.
    """
    n = int(duration * sr)
    t = np.arange(n, dtype=np.float32) / sr
    rng = np.random.default_rng(seed)

    y = np.zeros(n, dtype=np.float32)
    for freq in DEMO_TONES_HZ:
        tone = librosa.tone(freq, sr=sr, length=n).astype(np.float32)
        rate = rng.uniform(0.1, 0.6)
        phase = rng.uniform(0, 2 * np.pi)
        envelope = 0.5 + 0.5 * np.sin(2 * np.pi * rate * t + phase)
        y += tone * envelope.astype(np.float32)

    beat_times = np.arange(0.0, duration, 60.0 / bpm)
    y += 2.0 * librosa.clicks(times=beat_times, sr=sr, length=n, click_freq=2000.0).astype(np.float32)

    peak = float(np.max(np.abs(y))) or 1.0
    return AudioSource(samples=(0.9 * y / peak).astype(np.float32), sample_rate=sr, name="demo")
