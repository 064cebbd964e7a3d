"""
Audio capture collaborators.

A capture engine is linked to an audio source and, once enabled, calls its
listener with waveform and FFT byte buffers at a fixed rate from its own
thread.  ``SignalCaptureEngine`` plays an in-memory signal in real time and
produces buffers in the same layout as a platform visualizer capture:

* waveform: ``capture_size`` unsigned 8-bit samples centred on 128;
* FFT: ``capture_size`` signed 8-bit values
  ``[Re(0), Re(n/2), Re(1), Im(1), ..., Re(n/2-1), Im(n/2-1)]``.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
from scipy import signal as scipy_signal

from fadescope.config import MAX_CAPTURE_RATE_HZ
from fadescope.core.capture import InvalidLinkError

logger = logging.getLogger(__name__)

ByteListener = Callable[[bytes], None]

# Full-scale sinusoid -> |bin| of 127 after window normalisation
FFT_GAIN = 127.0


@dataclass
class AudioSource:
    """Mono float samples in [-1, 1] plus their sample rate."""

    samples: np.ndarray
    sample_rate: int
    name: str = "signal"

    @property
    def duration(self) -> float:
        return self.samples.shape[0] / float(self.sample_rate)


def validate_source(source: Optional[AudioSource]) -> AudioSource:
    """
    Check a source can be captured from.

    Raises:
        InvalidLinkError: If the source is missing, empty or malformed.
    """
    if source is None:
        raise InvalidLinkError("Cannot link to a missing audio source")
    samples = getattr(source, "samples", None)
    if not isinstance(samples, np.ndarray) or samples.ndim != 1 or samples.size == 0:
        raise InvalidLinkError(f"Audio source {getattr(source, 'name', source)!r} has no mono samples")
    if getattr(source, "sample_rate", 0) <= 0:
        raise InvalidLinkError(f"Audio source {source.name!r} has invalid sample rate {source.sample_rate}")
    return source


class CaptureEngine(ABC):
    """Interface the visualizer engine expects from a capture backend."""

    @abstractmethod
    def set_listener(
        self,
        on_waveform: Optional[ByteListener],
        on_spectral: Optional[ByteListener],
        rate_hz: float,
    ) -> None:
        """Register byte callbacks, invoked at most ``rate_hz`` times a second."""

    @abstractmethod
    def set_enabled(self, enabled: bool) -> None:
        """Start or stop capture callbacks."""

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """True while callbacks are being delivered."""

    @abstractmethod
    def release(self) -> None:
        """Free the backend; calling it again does nothing."""


class SignalCaptureEngine(CaptureEngine):
    """
    Real-time capture of an in-memory ``AudioSource``.

    Playback position follows the wall clock from the moment the engine is
    enabled.  When the source runs out the engine disables itself and calls
    ``on_completion``.

    Parameters
    ----------
    source:
        Signal to capture.
    capture_size:
        Samples per capture window and bytes per emitted buffer.
    on_completion:
        Optional callback invoked (from the capture thread) at end of source.
    clock:
        Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        source: AudioSource,
        capture_size: int = 1024,
        on_completion: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = validate_source(source)
        self.capture_size = capture_size
        self.on_completion = on_completion
        self._clock = clock
        self._window = scipy_signal.get_window("hann", capture_size).astype(np.float32)
        self._window_scale = FFT_GAIN * 2.0 / float(self._window.sum())

        self._on_waveform: Optional[ByteListener] = None
        self._on_spectral: Optional[ByteListener] = None
        self.rate_hz = MAX_CAPTURE_RATE_HZ / 2

        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._start_time = 0.0
        self._start_position = 0
        self.position = 0
        self._released = False

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def capture_at(self, position: int) -> Tuple[bytes, bytes]:
        """Waveform and FFT bytes for the window starting at sample ``position``."""
        n = self.capture_size
        chunk = np.zeros(n, dtype=np.float32)
        segment = self.source.samples[max(position, 0):max(position, 0) + n]
        chunk[: segment.shape[0]] = segment

        waveform = np.clip(np.round(chunk * 128.0 + 128.0), 0, 255).astype(np.uint8)

        spectrum = np.fft.rfft(chunk * self._window) * self._window_scale
        packed = np.empty(n, dtype=np.float32)
        packed[0] = spectrum[0].real
        packed[1] = spectrum[n // 2].real
        packed[2::2] = spectrum[1:n // 2].real
        packed[3::2] = spectrum[1:n // 2].imag
        fft = np.clip(np.round(packed), -128, 127).astype(np.int8)
        return waveform.tobytes(), fft.tobytes()

    # ------------------------------------------------------------------
    # CaptureEngine interface
    # ------------------------------------------------------------------

    def set_listener(
        self,
        on_waveform: Optional[ByteListener],
        on_spectral: Optional[ByteListener],
        rate_hz: float,
    ) -> None:
        if not 0 < rate_hz <= MAX_CAPTURE_RATE_HZ:
            raise ValueError(f"rate_hz must be in (0, {MAX_CAPTURE_RATE_HZ}], got {rate_hz}")
        self._on_waveform = on_waveform
        self._on_spectral = on_spectral
        self.rate_hz = rate_hz

    @property
    def enabled(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def set_enabled(self, enabled: bool) -> None:
        if self._released:
            if enabled:
                raise RuntimeError("Capture engine has been released")
            return
        if enabled:
            if self.enabled:
                return
            self._stop.clear()
            self._start_time = self._clock()
            self._start_position = self.position
            self._thread = threading.Thread(
                target=self._run, name=f"capture-{self.source.name}", daemon=True
            )
            self._thread.start()
        else:
            self._stop.set()
            thread = self._thread
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=1.0)

    def release(self) -> None:
        if self._released:
            return
        self.set_enabled(False)
        self._on_waveform = None
        self._on_spectral = None
        self._released = True

    def _run(self) -> None:
        period = 1.0 / self.rate_hz
        total = self.source.samples.shape[0]
        while not self._stop.wait(period):
            elapsed = self._clock() - self._start_time
            self.position = self._start_position + int(elapsed * self.source.sample_rate)
            if self.position >= total:
                logger.info("Capture source %r completed", self.source.name)
                self._stop.set()
                if self.on_completion is not None:
                    self.on_completion()
                return
            waveform, fft = self.capture_at(self.position)
            on_waveform, on_spectral = self._on_waveform, self._on_spectral
            if on_waveform is not None:
                on_waveform(waveform)
            if on_spectral is not None:
                on_spectral(fft)
