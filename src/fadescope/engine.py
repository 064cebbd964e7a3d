"""
Spectrum visualizer engine.

Wires the capture handoff, spectral processing, geometry, overlays and the
fading compositor into one render pass, and owns the link to a capture
engine.

Render pass
-----------
::

    CaptureAdapter.latest()          (one snapshot per kind)
        │
        ▼
    SpectralProcessor.process()  ──►  SpectrumGeometry.build()
        │                                   │
        ▼                                   ▼
    FadeCompositor: fade ─► lines ─► waveform ─► flash ─► markers ─► present
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from fadescope.capture_engine import AudioSource, CaptureEngine, SignalCaptureEngine, validate_source
from fadescope.config import Orientation, VisualizerConfig
from fadescope.core.capture import CaptureAdapter, CaptureKind
from fadescope.core.spectral import SpectralFrame, SpectralProcessor
from fadescope.render.compositor import FadeCompositor
from fadescope.render.geometry import SpectrumGeometry, waveform_geometry
from fadescope.render.overlay import FlashOverlay, MarkerAsset

logger = logging.getLogger(__name__)

EngineFactory = Callable[[AudioSource], CaptureEngine]


@dataclass
class RenderStats:
    """Counters for render passes."""
    frames: int = 0
    spectral_frames: int = 0   # Passes that had spectral data to draw
    flashes: int = 0
    rising_bands: int = 0

    def reset(self):
        """Reset all counters."""
        self.frames = 0
        self.spectral_frames = 0
        self.flashes = 0
        self.rising_bands = 0


class VisualizerEngine:
    """
    Real-time spectrum visualizer.

    Capture callbacks (``submit_waveform`` / ``submit_spectral``) may run on
    a different thread from ``render``.  Rendering never blocks capture.

    Parameters
    ----------
    config:
        Visualizer configuration (defaults to ``VisualizerConfig()``).
    engine_factory:
        Builds a capture engine for a source on ``attach``.  Defaults to a
        ``SignalCaptureEngine`` with the configured capture size.
    marker:
        Decoration raster for rise markers; defaults to one built from
        ``config.marker_path`` / ``config.marker_size``.
    """

    def __init__(
        self,
        config: Optional[VisualizerConfig] = None,
        engine_factory: Optional[EngineFactory] = None,
        marker: Optional[MarkerAsset] = None,
    ):
        self.cfg = config or VisualizerConfig()
        cfg = self.cfg

        self._redraw = threading.Event()
        self.capture = CaptureAdapter(on_redraw=self._redraw.set)
        self.processor = SpectralProcessor(cfg.divisions, cfg.db_floor)
        self.geometry = SpectrumGeometry(cfg.divisions, cfg.db_gain, cfg.db_offset)
        self.overlay = FlashOverlay(
            flash_color=cfg.flash_color,
            threshold=cfg.rise_threshold,
            row_width=cfg.row_width,
            marker=marker or MarkerAsset(cfg.marker_path, cfg.marker_size),
            marker_margin=cfg.marker_margin,
        )
        self.compositor = FadeCompositor(cfg.fade_color, cfg.background_color)
        self.orientation = cfg.orientation

        self._engine_factory = engine_factory or self._default_engine
        self._capture_engine: Optional[CaptureEngine] = None
        self.source: Optional[AudioSource] = None

        self.stats = RenderStats()
        self.last_frame: Optional[SpectralFrame] = None
        self.last_points = np.zeros(0, dtype=np.float32)

    # ------------------------------------------------------------------
    # Capture-facing API
    # ------------------------------------------------------------------

    def submit_waveform(self, data: Optional[bytes]) -> None:
        self.capture.submit_waveform(data)

    def submit_spectral(self, data: Optional[bytes]) -> None:
        self.capture.submit_spectral(data)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def flash(self) -> None:
        """Flash the surface on the next pass, e.g. at the start of a loop."""
        self.overlay.trigger()
        self._redraw.set()

    def set_orientation(self, orientation: Orientation) -> None:
        self.orientation = Orientation(orientation)
        self._redraw.set()

    def toggle_orientation(self) -> Orientation:
        self.set_orientation(self.orientation.toggled())
        return self.orientation

    def needs_redraw(self) -> bool:
        """True if a redraw was requested since the last call (coalesced)."""
        if self._redraw.is_set():
            self._redraw.clear()
            return True
        return False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def attached(self) -> bool:
        return self._capture_engine is not None

    @property
    def capturing(self) -> bool:
        engine = self._capture_engine
        return engine is not None and engine.enabled

    def attach(self, source: Optional[AudioSource]) -> None:
        """
        Link to ``source`` and start capture callbacks.

        Raises:
            InvalidLinkError: If the source is missing or invalid.  No
                capture engine is left attached in that case.
        """
        source = validate_source(source)
        if self._capture_engine is not None:
            self.release()

        engine = self._engine_factory(source)
        try:
            engine.set_listener(self.submit_waveform, self.submit_spectral, self.cfg.capture_rate_hz)
            engine.set_enabled(True)
        except Exception:
            engine.release()
            raise
        self._capture_engine = engine
        self.source = source
        logger.info("Attached to %r at %.1f Hz", source.name, self.cfg.capture_rate_hz)

    def detach(self) -> None:
        """
        Stop capture callbacks; the link can be re-enabled by attaching again.

        Called from the capture thread at end of source, so it may race
        ``release`` on the render thread.
        """
        engine, source = self._capture_engine, self.source
        if engine is None:
            return
        engine.set_enabled(False)
        logger.info("Capture disabled for %r", source.name if source else None)

    def release(self) -> None:
        """Free the capture engine.  Safe to call more than once."""
        engine, self._capture_engine = self._capture_engine, None
        if engine is None:
            return
        source, self.source = self.source, None
        engine.release()
        logger.info("Released capture engine for %r", source.name if source else None)

    def release_surface(self) -> None:
        self.compositor.release()

    def _default_engine(self, source: AudioSource) -> CaptureEngine:
        return SignalCaptureEngine(source, capture_size=self.cfg.capture_size, on_completion=self.detach)

    # ------------------------------------------------------------------
    # Render pass
    # ------------------------------------------------------------------

    def render(self, size: Optional[Tuple[int, int]] = None) -> np.ndarray:
        """
        Run one render pass and return the presented frame.

        Args:
            size: Output surface (width, height); defaults to the config size.
                A different size than the previous pass recreates the canvas.

        Returns:
            (H, W, 3) uint8 RGB frame.
        """
        cfg = self.cfg
        compositor = self.compositor
        compositor.ensure_canvas(size or cfg.size)
        _, height = compositor.size

        spectral = self.capture.latest(CaptureKind.SPECTRAL)
        waveform = self.capture.latest(CaptureKind.WAVEFORM)
        frame = self.processor.process(spectral)

        compositor.fade()

        if frame is not None:
            points = self.geometry.build(frame.db, height, self.orientation)
            compositor.draw_lines(points, cfg.line_color, cfg.line_width)
            self.stats.spectral_frames += 1
        else:
            points = np.zeros(0, dtype=np.float32)

        if cfg.show_waveform and waveform is not None:
            width = compositor.size[0]
            compositor.draw_lines(waveform_geometry(waveform.data, width, height), cfg.waveform_color)

        if self.overlay.draw_flash(compositor):
            self.stats.flashes += 1
        self.stats.rising_bands += self.overlay.draw_markers(compositor, frame)

        # Snapshots: the arena and the points buffer are reused next pass
        self.last_points = points.copy()
        self.last_frame = _snapshot(frame)
        self.stats.frames += 1
        return compositor.present()


def _snapshot(frame: Optional[SpectralFrame]) -> Optional[SpectralFrame]:
    if frame is None:
        return None
    return SpectralFrame(
        magnitudes=frame.magnitudes.copy(),
        previous=frame.previous.copy(),
        db=frame.db.copy(),
        has_previous=frame.has_previous,
    )
