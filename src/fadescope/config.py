"""
Visualizer configuration.

A single dataclass carries every tunable of the render pipeline; named
style presets from ``styles.json`` can be layered on top of the defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Optional, Tuple

from fadescope.styles import get_style, style_names

RGBA = Tuple[int, int, int, int]
RGB = Tuple[int, int, int]

# Platform maximum capture callback rate; capture runs at half of it.
MAX_CAPTURE_RATE_HZ = 20.0


class Orientation(str, Enum):
    """Edge the spectrum bars grow from."""

    TOP = "top"
    BOTTOM = "bottom"

    def toggled(self) -> "Orientation":
        return Orientation.BOTTOM if self is Orientation.TOP else Orientation.TOP


@dataclass
class VisualizerConfig:
    """Configuration for the spectrum visualizer."""

    width: int = 640
    height: int = 360

    # Spectral processing
    divisions: int = 16
    db_floor: float = -999.0

    # Geometry: bar height = db * db_gain + db_offset
    db_gain: float = 2.0
    db_offset: float = -10.0
    orientation: Orientation = Orientation.TOP

    # Rise detection markers
    rise_threshold: float = 3.0
    row_width: int = 6
    marker_path: Optional[str] = None
    marker_size: Tuple[int, int] = (24, 24)
    marker_margin: int = 5

    # Colours (RGBA, straight alpha)
    fade_color: RGBA = (255, 255, 255, 238)  # alpha controls how quickly trails fade
    flash_color: RGBA = (0, 0, 0, 122)
    line_color: RGBA = (255, 255, 255, 255)
    waveform_color: RGBA = (160, 200, 255, 180)
    background_color: RGB = (0, 0, 0)
    line_width: int = 1
    show_waveform: bool = False

    # Capture collaborator
    capture_rate_hz: float = MAX_CAPTURE_RATE_HZ / 2
    capture_size: int = 1024

    def __post_init__(self) -> None:
        self.orientation = Orientation(self.orientation)
        for name in ("fade_color", "flash_color", "line_color", "waveform_color"):
            setattr(self, name, _color(name, getattr(self, name), 4))
        self.background_color = _color("background_color", self.background_color, 3)
        self.marker_size = tuple(int(v) for v in self.marker_size)  # type: ignore[assignment]

        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Surface size must be positive, got {self.width}x{self.height}")
        if self.divisions < 2:
            raise ValueError(f"divisions must be >= 2 to address a real/imag pair, got {self.divisions}")
        if self.row_width < 1:
            raise ValueError(f"row_width must be >= 1, got {self.row_width}")
        if self.rise_threshold < 0:
            raise ValueError(f"rise_threshold must be >= 0, got {self.rise_threshold}")
        if self.line_width < 1:
            raise ValueError(f"line_width must be >= 1, got {self.line_width}")
        if len(self.marker_size) != 2 or min(self.marker_size) < 1:
            raise ValueError(f"marker_size must be two positive ints, got {self.marker_size}")
        if not 0 < self.capture_rate_hz <= MAX_CAPTURE_RATE_HZ:
            raise ValueError(
                f"capture_rate_hz must be in (0, {MAX_CAPTURE_RATE_HZ}], got {self.capture_rate_hz}"
            )
        if self.capture_size < 4 or self.capture_size & (self.capture_size - 1):
            raise ValueError(f"capture_size must be a power of two >= 4, got {self.capture_size}")

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @classmethod
    def from_style(cls, style: str, **overrides: Any) -> "VisualizerConfig":
        """
        Build a config from a named preset, then apply explicit overrides.

        Raises:
            ValueError: If the style is unknown.
        """
        preset = get_style(style)
        if preset is None:
            raise ValueError(f"Unknown style {style!r}; choose from {', '.join(style_names())}")
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in preset.items() if k in known}
        values.update(overrides)
        return cls(**values)


def _color(name: str, value: Any, channels: int) -> tuple:
    color = tuple(int(c) for c in value)
    if len(color) != channels or any(not 0 <= c <= 255 for c in color):
        raise ValueError(f"{name} must be {channels} ints in [0, 255], got {value!r}")
    return color
