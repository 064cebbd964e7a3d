"""
Offline rendering of the visualizer to a PNG sequence.

Drives the engine synchronously: capture buffers are produced at the
configured capture rate and render passes run at the output frame rate,
so the two cadences stay independent exactly as they are live.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

from PIL import Image

from fadescope.capture_engine import AudioSource, SignalCaptureEngine
from fadescope.engine import VisualizerEngine

logger = logging.getLogger(__name__)


def render_frames(
    engine: VisualizerEngine,
    source: AudioSource,
    output_dir: Path,
    fps: int = 30,
    max_frames: Optional[int] = None,
    flash_every: Optional[float] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> List[Path]:
    """
    Render ``source`` through ``engine`` into ``output_dir/frame_00000.png``...

    Args:
        engine: Engine to render with (no capture engine is attached).
        source: Signal to capture from.
        output_dir: Directory for PNG frames; created if missing.
        fps: Render passes per second of audio.
        max_frames: Optional cap on the number of frames.
        flash_every: Optional period in seconds between explicit flashes.
        progress_callback: Optional callback(current, total).

    Returns:
        Paths of the written frames, in order.
    """
    capture = SignalCaptureEngine(source, capture_size=engine.cfg.capture_size)
    output_dir.mkdir(parents=True, exist_ok=True)

    total = int(source.duration * fps)
    if max_frames is not None:
        total = min(total, max_frames)
    capture_period = 1.0 / engine.cfg.capture_rate_hz

    written: List[Path] = []
    next_capture = 0.0
    next_flash = 0.0 if flash_every else None
    for index in range(total):
        t = index / float(fps)
        if t >= next_capture:
            waveform, fft = capture.capture_at(int(t * source.sample_rate))
            engine.submit_waveform(waveform)
            engine.submit_spectral(fft)
            next_capture += capture_period
        if next_flash is not None and t >= next_flash:
            engine.flash()
            next_flash += flash_every

        frame = engine.render()
        path = output_dir / f"frame_{index:05d}.png"
        Image.fromarray(frame).save(path)
        written.append(path)
        if progress_callback:
            progress_callback(index + 1, total)

    logger.info("Wrote %d frames to %s", len(written), output_dir)
    return written
