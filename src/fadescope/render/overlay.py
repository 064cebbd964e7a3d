"""
Flash and rise-marker overlays.

Two independent triggers can fire in the same pass:

* an explicit flash, set from any thread and drawn once as a full-surface
  wash;
* per-band rise detection, drawing a marker for every band whose energy
  jumped by more than ``threshold`` since the previous pass.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image, ImageDraw

from fadescope.core.spectral import SpectralFrame
from fadescope.render.compositor import FadeCompositor

logger = logging.getLogger(__name__)


class MarkerUnavailableError(OSError):
    """The decoration raster could not be loaded."""


class FlashState:
    """At-most-once flash flag; redundant triggers before consumption collapse."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending = False

    def trigger(self) -> None:
        with self._lock:
            self._pending = True

    def consume(self) -> bool:
        """Return True exactly once per pending trigger, clearing it."""
        with self._lock:
            pending, self._pending = self._pending, False
        return pending

    @property
    def pending(self) -> bool:
        return self._pending


class MarkerAsset:
    """
    Decoration raster drawn for rising bands.

    Loaded once on first use, either from ``path`` or drawn in-process when
    no path is given.  A load failure is remembered so later passes do not
    retry the filesystem every frame.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None, size: Tuple[int, int] = (24, 24)):
        self.path = Path(path) if path is not None else None
        self.size = (int(size[0]), int(size[1]))
        self._raster: Optional[np.ndarray] = None
        self._error: Optional[MarkerUnavailableError] = None

    @property
    def loaded(self) -> bool:
        return self._raster is not None

    def require(self) -> np.ndarray:
        """
        Premultiplied float32 RGBA raster, shape (h, w, 4).

        Raises:
            MarkerUnavailableError: If the asset cannot be loaded.
        """
        if self._raster is not None:
            return self._raster
        if self._error is not None:
            raise self._error
        try:
            image = self._load()
        except (OSError, ValueError) as exc:
            self._error = MarkerUnavailableError(f"Cannot load marker {self.path}: {exc}")
            raise self._error from exc
        rgba = np.asarray(image.convert("RGBA"), dtype=np.float32) / 255.0
        rgba[..., :3] *= rgba[..., 3:4]
        self._raster = rgba
        return rgba

    def _load(self) -> Image.Image:
        if self.path is None:
            return default_marker(self.size)
        with Image.open(self.path) as img:
            img.load()
            if img.size != self.size:
                img = img.resize(self.size, Image.Resampling.LANCZOS)
            return img.copy()


def default_marker(size: Tuple[int, int]) -> Image.Image:
    """A soft diamond, used when no marker image is configured."""
    w, h = size
    img = Image.new("RGBA", (w, h), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    cx, cy = (w - 1) / 2.0, (h - 1) / 2.0
    draw.polygon([(cx, 0), (w - 1, cy), (cx, h - 1), (0, cy)], fill=(255, 210, 90, 200))
    inset = min(w, h) / 4.0
    draw.polygon(
        [(cx, inset), (w - 1 - inset, cy), (cx, h - 1 - inset), (inset, cy)],
        fill=(255, 255, 255, 255),
    )
    return img


def rising_bands(frame: SpectralFrame, threshold: float) -> np.ndarray:
    """Indices of bands whose magnitude exceeds the previous pass by more than ``threshold``."""
    if not frame.has_previous:
        return np.zeros(0, dtype=np.intp)
    return np.flatnonzero(frame.magnitudes > frame.previous + threshold)


def marker_positions(
    bands: Sequence[int],
    row_width: int,
    marker_size: Tuple[int, int],
    margin: int = 5,
) -> List[Tuple[int, int]]:
    """Wrap band indices into a grid ``row_width`` markers wide."""
    mw, mh = marker_size
    return [((int(i) % row_width) * mw + margin, (int(i) // row_width) * mh) for i in bands]


class FlashOverlay:
    """Draws the flash wash and the rise markers onto the compositor."""

    def __init__(
        self,
        flash_color: Sequence[int] = (0, 0, 0, 122),
        threshold: float = 3.0,
        row_width: int = 6,
        marker: Optional[MarkerAsset] = None,
        marker_margin: int = 5,
    ):
        self.flash_color = tuple(flash_color)
        self.threshold = threshold
        self.row_width = row_width
        self.marker = marker if marker is not None else MarkerAsset()
        self.marker_margin = marker_margin
        self.state = FlashState()
        self._warned = False

    def trigger(self) -> None:
        self.state.trigger()

    def draw_flash(self, compositor: FadeCompositor) -> bool:
        if not self.state.consume():
            return False
        compositor.fill(self.flash_color)
        return True

    def draw_markers(self, compositor: FadeCompositor, frame: Optional[SpectralFrame]) -> int:
        """Draw a marker per rising band.  Returns the number of rising bands."""
        if frame is None:
            return 0
        bands = rising_bands(frame, self.threshold)
        if bands.size == 0:
            return 0
        try:
            raster = self.marker.require()
        except MarkerUnavailableError as exc:
            if not self._warned:
                logger.warning("Rise markers disabled: %s", exc)
                self._warned = True
            return int(bands.size)
        h, w = raster.shape[:2]
        for x, y in marker_positions(bands, self.row_width, (w, h), self.marker_margin):
            compositor.blit(raster, x, y)
        return int(bands.size)
