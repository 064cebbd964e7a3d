"""
Persistent fading canvas.

Every render pass first attenuates the accumulated canvas with a
multiplicative fade, then draws the new frame on top, then presents.
Content drawn on pass ``k`` is therefore dimmed once per later pass and
decays smoothly instead of being cleared.

The canvas is premultiplied RGBA float32 in [0, 1], shape (H, W, 4).
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
from PIL import Image, ImageDraw

logger = logging.getLogger(__name__)


def premultiplied(color: Sequence[int]) -> np.ndarray:
    """RGBA 0-255 straight alpha -> premultiplied float32 RGBA in [0, 1]."""
    rgba = np.asarray(color, dtype=np.float32) / 255.0
    rgba[:3] *= rgba[3]
    return rgba


class FadeCompositor:
    """
    Owns the persistent canvas and every mutation of it.

    The canvas is created lazily on the first pass for a surface size and
    recreated only when that size changes.
    """

    def __init__(
        self,
        fade_color: Sequence[int] = (255, 255, 255, 238),
        background_color: Sequence[int] = (0, 0, 0),
    ):
        self.fade_color = premultiplied(fade_color)
        self.background = np.asarray(background_color, dtype=np.float32) / 255.0
        self._canvas: Optional[np.ndarray] = None
        self._size: Optional[Tuple[int, int]] = None
        self.epoch = 0

    @property
    def canvas(self) -> Optional[np.ndarray]:
        return self._canvas

    @property
    def size(self) -> Optional[Tuple[int, int]]:
        return self._size

    def ensure_canvas(self, size: Tuple[int, int]) -> bool:
        """Create the canvas for ``size`` (width, height).  Returns True if it was (re)created."""
        width, height = int(size[0]), int(size[1])
        if width <= 0 or height <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        if self._canvas is not None and self._size == (width, height):
            return False
        if self._size is not None:
            logger.debug("Surface resized %s -> %s, recreating canvas", self._size, (width, height))
        self._canvas = np.zeros((height, width, 4), dtype=np.float32)
        self._size = (width, height)
        self.epoch += 1
        return True

    def release(self) -> None:
        """Drop the canvas; the next pass starts a new size epoch."""
        self._canvas = None
        self._size = None

    # ------------------------------------------------------------------
    # Per-pass operations
    # ------------------------------------------------------------------

    def fade(self) -> None:
        """Multiply blend: attenuate prior content toward transparent."""
        self._canvas *= self.fade_color

    def fill(self, color: Sequence[int]) -> None:
        """Translucent full-surface wash."""
        src = premultiplied(color)
        self._canvas *= 1.0 - src[3]
        self._canvas += src

    def draw_lines(self, points: np.ndarray, color: Sequence[int], width: int = 1) -> None:
        """
        Draw all ``x0, y0, x1, y1`` segments in ``points`` with one blend.

        Segments are rasterised into a single coverage mask, so the cost of
        compositing is independent of the segment count.
        """
        if points.shape[0] < 4:
            return
        w, h = self._size
        mask = Image.new("L", (w, h), 0)
        draw = ImageDraw.Draw(mask)
        for x0, y0, x1, y1 in points.reshape(-1, 4).tolist():
            draw.line([(x0, y0), (x1, y1)], fill=255, width=width)
        coverage = np.asarray(mask, dtype=np.float32)[..., None] / 255.0
        src = premultiplied(color)
        self._canvas *= 1.0 - coverage * src[3]
        self._canvas += coverage * src

    def blit(self, raster: np.ndarray, x: int, y: int) -> None:
        """Source-over a premultiplied RGBA raster at (x, y), clipped to the canvas."""
        w, h = self._size
        rh, rw = raster.shape[:2]
        x0, y0 = max(x, 0), max(y, 0)
        x1, y1 = min(x + rw, w), min(y + rh, h)
        if x0 >= x1 or y0 >= y1:
            return
        src = raster[y0 - y:y1 - y, x0 - x:x1 - x]
        dst = self._canvas[y0:y1, x0:x1]
        dst *= 1.0 - src[..., 3:4]
        dst += src

    def present(self) -> np.ndarray:
        """Composite the canvas over the background. Returns (H, W, 3) uint8."""
        canvas = self._canvas
        rgb = canvas[..., :3] + self.background * (1.0 - canvas[..., 3:4])
        return (np.clip(rgb, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
