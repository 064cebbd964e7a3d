"""End-to-end tests for the VisualizerEngine render pass and lifecycle."""

import sys
import threading

import numpy as np
import pytest

from fadescope.capture_engine import AudioSource, CaptureEngine
from fadescope.config import Orientation, VisualizerConfig
from fadescope.core.capture import InvalidLinkError
from fadescope.engine import VisualizerEngine


class FakeCaptureEngine(CaptureEngine):
    """Records lifecycle calls; ``emit`` plays the role of a capture callback."""

    def __init__(self, source, fail_enable=False):
        self.source = source
        self.fail_enable = fail_enable
        self.listener = None
        self.rate_hz = None
        self._enabled = False
        self.release_calls = 0

    def set_listener(self, on_waveform, on_spectral, rate_hz):
        self.listener = (on_waveform, on_spectral)
        self.rate_hz = rate_hz

    def set_enabled(self, enabled):
        if enabled and self.fail_enable:
            raise RuntimeError("device busy")
        self._enabled = enabled

    @property
    def enabled(self):
        return self._enabled

    def release(self):
        self.release_calls += 1
        self._enabled = False

    def emit(self, waveform=None, spectral=None):
        on_waveform, on_spectral = self.listener
        if waveform is not None:
            on_waveform(waveform)
        if spectral is not None:
            on_spectral(spectral)


@pytest.fixture
def source():
    return AudioSource(samples=np.zeros(100, dtype=np.float32), sample_rate=8000, name="quiet")


@pytest.fixture
def fakes():
    return []


@pytest.fixture
def engine(small_config, fakes):
    def factory(src):
        fake = FakeCaptureEngine(src)
        fakes.append(fake)
        return fake
    return VisualizerEngine(small_config, engine_factory=factory)


# ---------------------------------------------------------------------------
# Render pass
# ---------------------------------------------------------------------------

class TestScenario:
    def test_end_to_end(self, engine, scenario_bytes):
        engine.submit_spectral(scenario_bytes)
        frame = engine.render()

        assert frame.shape == (48, 64, 3)
        assert frame.dtype == np.uint8
        assert engine.last_frame.band_count == 4
        np.testing.assert_array_equal(engine.last_frame.magnitudes, [500, 50, 0, 900])
        assert engine.last_frame.db.tolist() == pytest.approx([26.99, 16.99, -999.0, 29.54], abs=0.01)

        segs = engine.last_points.reshape(-1, 4)
        assert engine.last_points.shape == (16,)
        np.testing.assert_array_equal(segs[:, 0], [0, 8, 16, 24])

    def test_bars_drawn_on_canvas(self, engine, scenario_bytes):
        engine.submit_spectral(scenario_bytes)
        frame = engine.render()
        # Band 0 bar reaches ~44px down from the top edge in opaque white
        assert frame[20, 0].tolist() == [255, 255, 255]
        # Silent band 2 (x=16) extends off-screen above its anchor row
        assert frame[1:, 16].max() == 0

    def test_new_content_is_not_faded_on_its_own_pass(self, engine, scenario_bytes):
        engine.submit_spectral(scenario_bytes)
        engine.render()
        assert engine.compositor.canvas[20, 0, 3] == 1.0


def test_no_capture_renders_background(engine):
    frame = engine.render()
    assert frame.max() == 0
    assert engine.stats.frames == 1
    assert engine.stats.spectral_frames == 0
    assert engine.last_frame is None
    assert engine.last_points.shape == (0,)


def test_trails_decay_after_capture_stops(engine, scenario_bytes):
    engine.submit_spectral(scenario_bytes)
    engine.render()
    engine.submit_spectral(None)

    values = [engine.compositor.canvas[20, 0, 3]]
    for _ in range(15):
        engine.render()
        values.append(engine.compositor.canvas[20, 0, 3])
    assert all(b <= a for a, b in zip(values, values[1:]))
    assert values[-1] < values[0]
    assert values[-1] > 0


def test_flash_twice_draws_once(engine):
    engine.flash()
    engine.flash()
    engine.render()
    engine.render()
    assert engine.stats.flashes == 1


def test_flash_without_spectral_data(engine):
    engine.flash()
    frame = engine.render()
    assert engine.stats.flashes == 1
    assert engine.compositor.canvas[..., 3].min() > 0
    assert frame.shape == (48, 64, 3)


def test_orientation_toggle_mirrors_geometry(engine, scenario_bytes):
    engine.submit_spectral(scenario_bytes)
    engine.render()
    top = engine.last_points.reshape(-1, 4).copy()

    assert engine.toggle_orientation() is Orientation.BOTTOM
    engine.render()
    bottom = engine.last_points.reshape(-1, 4)
    np.testing.assert_allclose(top[:, [1, 3]] + bottom[:, [1, 3]], 48.0, rtol=1e-5)


def test_surface_resize_recreates_canvas(engine, scenario_bytes):
    engine.submit_spectral(scenario_bytes)
    engine.render((64, 48))
    frame = engine.render((32, 24))
    assert frame.shape == (24, 32, 3)
    assert engine.compositor.epoch == 2
    engine.render((32, 24))
    assert engine.compositor.epoch == 2


def test_release_surface_then_render(engine):
    engine.render()
    engine.release_surface()
    assert engine.compositor.canvas is None
    engine.render()
    assert engine.compositor.epoch == 2


def test_exposed_frame_survives_next_pass(engine, scenario_bytes):
    engine.submit_spectral(scenario_bytes)
    engine.render()
    frame, points = engine.last_frame, engine.last_points

    engine.submit_spectral(bytes([1, 0]) * 8)
    engine.render()
    np.testing.assert_array_equal(frame.magnitudes, [500, 50, 0, 900])
    assert points.reshape(-1, 4)[:, 0].tolist() == [0, 8, 16, 24]
    assert points.shape == (16,)
    assert engine.last_frame.band_count == 8


def test_rise_markers_counted(engine):
    engine.submit_spectral(bytes(8))
    engine.render()
    engine.submit_spectral(bytes([0, 0, 40, 0, 0, 0, 0, 0]))
    engine.render()
    assert engine.stats.rising_bands == 1


def test_unavailable_marker_does_not_abort_pass(tmp_path, scenario_bytes):
    config = VisualizerConfig(width=64, height=48, divisions=2, marker_path=str(tmp_path / "gone.png"))
    engine = VisualizerEngine(config)
    engine.submit_spectral(bytes(8))
    engine.render()
    engine.submit_spectral(scenario_bytes)
    frame = engine.render()
    assert engine.stats.rising_bands == 3
    assert engine.stats.frames == 2
    assert frame[20, 0].tolist() == [255, 255, 255]


def test_waveform_trace_optional(scenario_bytes):
    config = VisualizerConfig(width=64, height=48, divisions=2, show_waveform=True,
                              waveform_color=(0, 255, 0, 255))
    engine = VisualizerEngine(config)
    engine.submit_waveform(bytes([128] * 32))
    frame = engine.render()
    assert frame[24, 40].tolist() == [0, 255, 0]

    hidden = VisualizerEngine(VisualizerConfig(width=64, height=48))
    hidden.submit_waveform(bytes([128] * 32))
    assert hidden.render().max() == 0


def test_redraw_requests_coalesce(engine, scenario_bytes):
    assert engine.needs_redraw() is False
    engine.submit_spectral(scenario_bytes)
    engine.submit_spectral(scenario_bytes)
    assert engine.needs_redraw() is True
    assert engine.needs_redraw() is False
    engine.flash()
    assert engine.needs_redraw() is True


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    def test_attach_starts_capture(self, engine, fakes, source):
        engine.attach(source)
        assert engine.attached
        assert engine.capturing
        assert fakes[0].rate_hz == 10.0
        assert engine.source is source

    def test_capture_callbacks_reach_render(self, engine, fakes, source, scenario_bytes):
        engine.attach(source)
        fakes[0].emit(waveform=bytes([128] * 8), spectral=scenario_bytes)
        assert engine.needs_redraw()
        engine.render()
        assert engine.last_frame.band_count == 4

    def test_detach_stops_capture(self, engine, fakes, source):
        engine.attach(source)
        engine.detach()
        assert engine.attached
        assert not engine.capturing

    def test_release_is_idempotent(self, engine, fakes, source):
        engine.attach(source)
        engine.release()
        engine.release()
        assert fakes[0].release_calls == 1
        assert not engine.attached
        assert engine.source is None

    def test_release_without_attach(self, engine):
        engine.release()
        engine.detach()
        assert not engine.attached

    def test_reattach_releases_previous(self, engine, fakes, source):
        engine.attach(source)
        engine.attach(source)
        assert fakes[0].release_calls == 1
        assert len(fakes) == 2

    @pytest.mark.parametrize(
        "bad",
        [
            None,
            AudioSource(samples=np.zeros(0, dtype=np.float32), sample_rate=8000),
            AudioSource(samples=np.zeros((10, 2), dtype=np.float32), sample_rate=8000),
            AudioSource(samples=np.zeros(10, dtype=np.float32), sample_rate=0),
        ],
    )
    def test_invalid_link_fails_fast(self, engine, fakes, bad):
        with pytest.raises(InvalidLinkError):
            engine.attach(bad)
        assert not engine.attached
        assert fakes == []

    def test_failed_enable_leaves_nothing_attached(self, small_config, source):
        created = []

        def factory(src):
            fake = FakeCaptureEngine(src, fail_enable=True)
            created.append(fake)
            return fake

        engine = VisualizerEngine(small_config, engine_factory=factory)
        with pytest.raises(RuntimeError):
            engine.attach(source)
        assert not engine.attached
        assert created[0].release_calls == 1

    def test_submissions_after_render_stops_are_dropped(self, engine, fakes, source, scenario_bytes):
        engine.attach(source)
        for _ in range(5):
            fakes[0].emit(spectral=scenario_bytes)
        assert engine.capture.stats.superseded == 4
        assert engine.stats.frames == 0


def test_end_of_source_detach_racing_release(small_config, source):
    """Detach from a capture thread while the render thread releases."""
    engine = VisualizerEngine(small_config, engine_factory=FakeCaptureEngine)
    errors = []

    def complete():
        try:
            engine.detach()
        except Exception as exc:  # surfaced to the assertion below
            errors.append(exc)

    interval = sys.getswitchinterval()
    sys.setswitchinterval(1e-6)
    try:
        for _ in range(200):
            engine.attach(source)
            worker = threading.Thread(target=complete)
            worker.start()
            engine.release()
            worker.join()
    finally:
        sys.setswitchinterval(interval)
    assert errors == []
    assert not engine.attached
