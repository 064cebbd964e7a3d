"""
Spectral processing: FFT capture bytes to per-band magnitude and decibels.

Capture buffers interleave signed 8-bit real/imaginary components.  Only
every ``divisions``-th byte pair is read, so a buffer of ``L`` bytes yields
``L // divisions`` bands.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from fadescope.core.capture import CaptureBuffer

logger = logging.getLogger(__name__)


class GrowthArena:
    """
    Scratch arrays whose capacity never shrinks.

    ``reserve(n)`` returns with capacity >= n; it reallocates only when a
    larger frame arrives, carrying existing values over.  Smaller frames
    use a prefix of the existing storage.
    """

    def __init__(self, capacity: int = 0):
        self.capacity = 0
        self.magnitudes = np.zeros(0, dtype=np.float32)
        self.previous = np.zeros(0, dtype=np.float32)
        self.db = np.zeros(0, dtype=np.float32)
        if capacity:
            self.reserve(capacity)

    def reserve(self, n: int) -> bool:
        """Grow to hold at least ``n`` bands.  Returns True if storage was reallocated."""
        if n <= self.capacity:
            return False
        logger.debug("Growing spectral arena %d -> %d bands", self.capacity, n)
        self.magnitudes = _grown(self.magnitudes, n)
        self.previous = _grown(self.previous, n)
        self.db = _grown(self.db, n)
        self.capacity = n
        return True


def _grown(arr: np.ndarray, n: int) -> np.ndarray:
    out = np.zeros(n, dtype=arr.dtype)
    out[: arr.shape[0]] = arr
    return out


@dataclass
class SpectralFrame:
    """Views onto the arena for the current render pass."""

    magnitudes: np.ndarray  # (band_count,) energy, >= 0
    previous: np.ndarray    # (band_count,) magnitudes of the prior pass
    db: np.ndarray          # (band_count,) decibels, floored for silent bands
    has_previous: bool

    @property
    def band_count(self) -> int:
        return int(self.magnitudes.shape[0])


def band_count(buffer_length: int, divisions: int) -> int:
    return buffer_length // divisions


class SpectralProcessor:
    """
    Converts spectral capture buffers into magnitude and dB frames.

    Args:
        divisions: Byte stride between sampled bands (default 16).
        db_floor: Value substituted for the decibels of a zero-energy band.
    """

    def __init__(self, divisions: int = 16, db_floor: float = -999.0):
        if divisions < 2:
            raise ValueError(f"divisions must be >= 2 to read a real/imaginary pair, got {divisions}")
        self.divisions = divisions
        self.db_floor = float(db_floor)
        self.arena = GrowthArena()
        self._band_count = 0
        self._frames_processed = 0

    @property
    def band_count(self) -> int:
        """Band count of the most recently processed frame."""
        return self._band_count

    def process(self, buffer: Optional[CaptureBuffer]) -> Optional[SpectralFrame]:
        """
        Process one spectral buffer.

        Returns None when there is no spectral data (nothing to draw for
        this kind this frame); otherwise a SpectralFrame whose ``previous``
        holds the magnitudes of the last processed frame.
        """
        if buffer is None:
            return None
        n = band_count(len(buffer.data), self.divisions)
        if n == 0:
            return None

        arena = self.arena
        arena.reserve(n)

        raw = np.frombuffer(buffer.data, dtype=np.int8)
        idx = np.arange(n) * self.divisions
        real = raw[idx].astype(np.float32)
        imag = raw[idx + 1].astype(np.float32)

        # Previous is captured before the current frame overwrites it.
        arena.previous[:n] = arena.magnitudes[:n]
        np.add(real * real, imag * imag, out=arena.magnitudes[:n])
        self._fill_db(arena.magnitudes[:n], arena.db[:n])
        # Bands past this frame had no energy in it; a later, larger frame
        # must see 0 as their previous magnitude.
        arena.magnitudes[n:] = 0.0

        has_previous = self._frames_processed > 0
        self._frames_processed += 1
        self._band_count = n
        return SpectralFrame(
            magnitudes=arena.magnitudes[:n],
            previous=arena.previous[:n],
            db=arena.db[:n],
            has_previous=has_previous,
        )

    def reset(self) -> None:
        """Forget the previous frame (arena capacity is kept)."""
        self.arena.magnitudes[:] = 0.0
        self.arena.previous[:] = 0.0
        self._frames_processed = 0
        self._band_count = 0

    def _fill_db(self, magnitudes: np.ndarray, out: np.ndarray) -> None:
        positive = magnitudes > 0
        out.fill(self.db_floor)
        with np.errstate(divide="ignore"):
            np.log10(magnitudes, out=out, where=positive)
        np.multiply(out, 10.0, out=out, where=positive)
