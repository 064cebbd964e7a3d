"""
Real-time preview window for the spectrum visualizer.

Opens a resizable pygame window, links the engine to an audio source and
renders whenever a capture (or control) event requests a redraw.

Usage (via CLI):
    fadescope --preview
    fadescope --preview --style ember --waveform

Keyboard controls while previewing:
    ESC / Q        quit
    SPACE          pause / resume rendering (capture keeps running)
    F              flash
    T              toggle top / bottom orientation
"""

from __future__ import annotations

import logging

import numpy as np

from fadescope.capture_engine import AudioSource
from fadescope.engine import VisualizerEngine

logger = logging.getLogger(__name__)


def frame_to_surface(frame: np.ndarray):
    """(H, W, 3) uint8 -> pygame Surface."""
    import pygame

    # pygame expects (W, H, 3) for surfarray, numpy gives (H, W, 3)
    return pygame.surfarray.make_surface(frame.swapaxes(0, 1))


def run_preview(
    engine: VisualizerEngine,
    source: AudioSource,
    fps: int = 60,
    title: str = "fadescope",
) -> None:
    """
    Display the visualizer in a pygame window until the source ends or the
    user quits.

    Args:
        engine: Engine to drive; it is attached to ``source`` and released on exit.
        source: Audio source to capture from.
        fps:    Maximum redraw rate of the window.
        title:  Window title string.
    """
    import pygame

    pygame.init()
    screen = pygame.display.set_mode(engine.cfg.size, pygame.RESIZABLE)
    pygame.display.set_caption(title)
    clock = pygame.time.Clock()
    font = pygame.font.SysFont(None, 22)

    engine.attach(source)
    paused = False
    running = True
    try:
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.VIDEORESIZE:
                    screen = pygame.display.set_mode(event.size, pygame.RESIZABLE)
                elif event.type == pygame.KEYDOWN:
                    if event.key in (pygame.K_ESCAPE, pygame.K_q):
                        running = False
                    elif event.key == pygame.K_SPACE:
                        paused = not paused
                    elif event.key == pygame.K_f:
                        engine.flash()
                    elif event.key == pygame.K_t:
                        logger.info("Orientation: %s", engine.toggle_orientation().value)

            if not engine.capturing:
                logger.info("Source finished, closing preview")
                running = False

            if running and not paused and engine.needs_redraw():
                frame = engine.render(screen.get_size())
                screen.blit(frame_to_surface(frame), (0, 0))
                label = font.render(
                    f"{engine.stats.frames} frames  [F=flash  T=flip  SPACE=pause  ESC=quit]",
                    True,
                    (200, 200, 200),
                )
                screen.blit(label, (8, screen.get_height() - 24))
                pygame.display.flip()

            clock.tick(fps)
    finally:
        engine.release()
        engine.release_surface()
        pygame.quit()
