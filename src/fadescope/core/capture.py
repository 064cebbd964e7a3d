"""
Capture buffer handoff between the audio capture context and the renderer.

Architecture Overview
---------------------
::

    Capture thread (CaptureEngine callback)
        │
        ▼  submit_waveform(bytes) / submit_spectral(bytes)
    CaptureSlot  ── single-slot swap of an immutable CaptureBuffer
        │
        ▼  latest(kind)   (one reference per render pass)
    Render thread

Each submission copies the incoming bytes into a frozen snapshot and swaps
the slot reference in one assignment.  Rebinding an attribute is atomic in
CPython, so the writer never waits on the reader and the reader can never
observe a half-replaced buffer.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


class CaptureKind(str, Enum):
    WAVEFORM = "waveform"
    SPECTRAL = "spectral"


class InvalidLinkError(ValueError):
    """Raised when capture is requested against an absent or invalid audio source."""


@dataclass(frozen=True)
class CaptureBuffer:
    """Immutable snapshot of one capture callback's bytes."""

    kind: CaptureKind
    data: bytes
    sequence: int

    def __len__(self) -> int:
        return len(self.data)


@dataclass
class CaptureStats:
    """Counters for capture handoff."""
    submissions: int = 0
    reads: int = 0
    superseded: int = 0    # Buffers replaced before any render pass read them

    def reset(self):
        """Reset all counters."""
        self.submissions = 0
        self.reads = 0
        self.superseded = 0


class CaptureSlot:
    """
    Latest-value slot for one capture kind.

    Single producer, single consumer.  ``put`` never blocks; ``take``
    returns whatever snapshot is current, or None when nothing has been
    captured yet (or the last submission was empty).
    """

    def __init__(self, kind: CaptureKind, stats: CaptureStats):
        self.kind = kind
        self._stats = stats
        self._buffer: Optional[CaptureBuffer] = None
        self._read_sequence = -1

    def put(self, data: Optional[BytesLike], sequence: int) -> None:
        previous = self._buffer
        if previous is not None and previous.sequence != self._read_sequence:
            self._stats.superseded += 1
        if data is None or len(data) == 0:
            self._buffer = None
        else:
            self._buffer = CaptureBuffer(self.kind, bytes(data), sequence)
        self._stats.submissions += 1

    def take(self) -> Optional[CaptureBuffer]:
        buffer = self._buffer
        if buffer is not None and buffer.sequence != self._read_sequence:
            self._read_sequence = buffer.sequence
            self._stats.reads += 1
        return buffer


class CaptureAdapter:
    """
    Receives raw capture bytes and hands them to the render pass.

    Parameters
    ----------
    on_redraw:
        Called once per accepted submission to request a redraw.  The
        presentation layer may coalesce these requests.
    """

    def __init__(self, on_redraw: Optional[Callable[[], None]] = None):
        self.stats = CaptureStats()
        self._on_redraw = on_redraw
        self._sequence = itertools.count()
        self._slots: Dict[CaptureKind, CaptureSlot] = {
            kind: CaptureSlot(kind, self.stats) for kind in CaptureKind
        }

    def submit_waveform(self, data: Optional[BytesLike]) -> None:
        """Replace the held waveform buffer (unsigned 8-bit samples centred on 128)."""
        self._submit(CaptureKind.WAVEFORM, data)

    def submit_spectral(self, data: Optional[BytesLike]) -> None:
        """Replace the held spectral buffer (interleaved signed real/imag bytes)."""
        self._submit(CaptureKind.SPECTRAL, data)

    def latest(self, kind: CaptureKind) -> Optional[CaptureBuffer]:
        """Current snapshot of ``kind``, or None when there is no data yet."""
        return self._slots[kind].take()

    def _submit(self, kind: CaptureKind, data: Optional[BytesLike]) -> None:
        # next() on itertools.count is atomic under the GIL
        self._slots[kind].put(data, next(self._sequence))
        if self._on_redraw is not None:
            self._on_redraw()
