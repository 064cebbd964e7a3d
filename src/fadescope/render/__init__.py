"""Geometry, overlay and compositing modules."""

from fadescope.render.compositor import FadeCompositor
from fadescope.render.geometry import SpectrumGeometry
from fadescope.render.overlay import FlashOverlay, MarkerAsset

__all__ = ["FadeCompositor", "FlashOverlay", "MarkerAsset", "SpectrumGeometry"]
