"""
Line-segment geometry for the spectrum and waveform traces.

Both builders emit a flat float32 array of ``x0, y0, x1, y1`` quadruples
ready for a single batched line-draw call.
"""

from __future__ import annotations

import numpy as np

from fadescope.config import Orientation


class SpectrumGeometry:
    """
    Builds one vertical segment per band.

    Band ``i`` is anchored at ``x = i * 4 * divisions`` so the horizontal
    scale does not depend on the band count.  Bar height is
    ``db * gain + offset``; values outside the surface are simply not
    visible, there is no clamp.
    """

    def __init__(self, divisions: int = 16, gain: float = 2.0, offset: float = -10.0):
        if divisions < 2:
            raise ValueError(f"divisions must be >= 2, got {divisions}")
        self.divisions = divisions
        self.gain = gain
        self.offset = offset
        self._points = np.zeros(0, dtype=np.float32)

    def build(self, db: np.ndarray, surface_height: float, orientation: Orientation) -> np.ndarray:
        n = int(db.shape[0])
        if self._points.shape[0] < 4 * n:
            self._points = np.zeros(4 * n, dtype=np.float32)
        points = self._points[: 4 * n]
        segs = points.reshape(n, 4)

        x = np.arange(n, dtype=np.float32) * (4 * self.divisions)
        height = db * self.gain + self.offset
        segs[:, 0] = x
        segs[:, 2] = x
        if orientation is Orientation.TOP:
            segs[:, 1] = 0.0
            segs[:, 3] = height
        else:
            segs[:, 1] = surface_height
            segs[:, 3] = surface_height - height
        return points


def waveform_geometry(samples: bytes, width: float, height: float) -> np.ndarray:
    """
    Connected trace through unsigned 8-bit waveform samples.

    Sample ``i`` maps to ``x = width * i / (n - 1)``; amplitude spans a
    third of the surface height either side of the midline.
    """
    raw = np.frombuffer(samples, dtype=np.uint8).astype(np.float32)
    n = raw.shape[0]
    if n < 2:
        return np.zeros(0, dtype=np.float32)
    x = np.arange(n, dtype=np.float32) * (width / (n - 1))
    y = height / 2.0 + (raw - 128.0) * (height / 3.0) / 128.0
    segs = np.empty((n - 1, 4), dtype=np.float32)
    segs[:, 0] = x[:-1]
    segs[:, 1] = y[:-1]
    segs[:, 2] = x[1:]
    segs[:, 3] = y[1:]
    return segs.reshape(-1)
