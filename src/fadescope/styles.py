"""
Shared style preset definitions for the spectrum visualizer.

Presets live in a single packaged JSON file so the CLI, the preview window
and programmatic callers all agree on the same named colour schemes.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Dict

from importlib import resources


@lru_cache(maxsize=1)
def load_style_presets() -> Dict[str, Any]:
    """Load all style presets from the packaged JSON file."""
    with resources.files("fadescope").joinpath("styles.json").open(
        "r", encoding="utf-8"
    ) as f:
        return json.load(f)


def get_style(style: str) -> Dict[str, Any] | None:
    """
    Get the preset for a given style name.

    Returns a dictionary of VisualizerConfig-compatible overrides, or None
    if the style is unknown.
    """
    return load_style_presets().get("styles", {}).get(style)


def style_names() -> list[str]:
    """Names of all packaged styles, sorted."""
    return sorted(load_style_presets().get("styles", {}))
