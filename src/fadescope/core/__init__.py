"""Core capture handoff and spectral processing modules."""

from fadescope.core.capture import CaptureAdapter, CaptureBuffer, CaptureKind, InvalidLinkError
from fadescope.core.spectral import GrowthArena, SpectralFrame, SpectralProcessor

__all__ = [
    "CaptureAdapter",
    "CaptureBuffer",
    "CaptureKind",
    "GrowthArena",
    "InvalidLinkError",
    "SpectralFrame",
    "SpectralProcessor",
]
