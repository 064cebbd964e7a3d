"""Real-time audio spectrum visualizer with a persistent fading canvas."""

from fadescope.capture_engine import AudioSource, CaptureEngine, SignalCaptureEngine
from fadescope.config import Orientation, VisualizerConfig
from fadescope.core.capture import CaptureAdapter, InvalidLinkError
from fadescope.core.spectral import SpectralProcessor
from fadescope.engine import VisualizerEngine

__version__ = "0.1.0"
__all__ = [
    "AudioSource",
    "CaptureAdapter",
    "CaptureEngine",
    "InvalidLinkError",
    "Orientation",
    "SignalCaptureEngine",
    "SpectralProcessor",
    "VisualizerConfig",
    "VisualizerEngine",
]
