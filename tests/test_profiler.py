"""Tests for the frame-budget profiler."""

import time

import pytest

from gesture_morph.config import ConfigurationError
from gesture_morph.profiler import STEPS, FrameProfiler


class TestSteps:
    def test_step_timing(self):
        profiler = FrameProfiler()
        with profiler.step("classification"):
            time.sleep(0.001)
        profiler.end_frame()

        timing = profiler.timing("classification")
        assert timing is not None
        assert timing.samples == 1
        assert timing.mean_ms >= 0.5
        assert timing.share == pytest.approx(1.0)

    def test_repeated_step_is_summed(self):
        profiler = FrameProfiler()
        for _ in range(3):
            with profiler.step("blend"):
                time.sleep(0.001)
        profiler.end_frame()

        timing = profiler.timing("blend")
        assert timing.samples == 1
        assert timing.mean_ms >= 1.5

    def test_records_on_exception(self):
        profiler = FrameProfiler()
        with pytest.raises(RuntimeError):
            with profiler.step("timeline"):
                raise RuntimeError("boom")
        profiler.end_frame()
        assert profiler.timing("timeline").samples == 1

    def test_pending_steps_not_reported_before_end_frame(self):
        profiler = FrameProfiler()
        with profiler.step("star"):
            pass
        assert profiler.timing("star") is None

    def test_summary_in_frame_order(self):
        profiler = FrameProfiler()
        for name in ("star", "camera", "classification", "blend"):
            with profiler.step(name):
                pass
        profiler.end_frame()
        assert list(profiler.summary()) == ["classification", "blend", "star", "camera"]
        assert set(profiler.summary()["blend"]) == {"mean_ms", "worst_ms", "p95_ms", "share", "samples"}

    def test_known_steps(self):
        assert STEPS[:3] == ("classification", "timeline", "mode_selection")

    def test_history_window(self):
        profiler = FrameProfiler(history=5)
        for _ in range(20):
            with profiler.step("blend"):
                pass
            profiler.end_frame()
        assert profiler.timing("blend").samples == 5
        assert profiler.frame_count == 20


class TestBudget:
    def test_budget_from_fps(self):
        assert FrameProfiler(target_fps=50).budget_ms == pytest.approx(20.0)

    def test_overrun_detected(self):
        profiler = FrameProfiler(target_fps=1000)
        assert profiler.end_frame(5.0) is True
        assert profiler.end_frame(0.5) is False
        assert profiler.overruns == 1

    def test_budget_report(self):
        profiler = FrameProfiler(target_fps=100)
        for ms in (4.0, 12.0, 8.0, 20.0):
            profiler.end_frame(ms)

        report = profiler.budget_report()
        assert report["budget_ms"] == 10.0
        assert report["frames"] == 4
        assert report["overruns"] == 2
        assert report["overrun_rate"] == 0.5
        assert report["mean_frame_ms"] == pytest.approx(11.0)
        assert report["worst_frame_ms"] == 20.0

    def test_empty_report(self):
        report = FrameProfiler().budget_report()
        assert report["frames"] == 0
        assert report["overrun_rate"] == 0.0

    def test_share_of_frame(self):
        profiler = FrameProfiler(target_fps=1)
        with profiler.step("blend"):
            pass
        profiler.end_frame(1000.0)
        assert profiler.timing("blend").share < 0.01

    @pytest.mark.parametrize("fps", [0, -30])
    def test_invalid_fps(self, fps):
        with pytest.raises(ConfigurationError):
            FrameProfiler(target_fps=fps)

    def test_invalid_history(self):
        with pytest.raises(ConfigurationError):
            FrameProfiler(history=0)


class TestLifecycle:
    def test_disabled(self):
        profiler = FrameProfiler(target_fps=1000)
        profiler.enabled = False
        with profiler.step("classification"):
            pass
        assert profiler.end_frame(50.0) is False
        assert profiler.summary() == {}
        assert profiler.frame_count == 0

    def test_disabled_frame_not_carried_over(self):
        profiler = FrameProfiler()
        profiler.enabled = False
        with profiler.step("blend"):
            pass
        profiler.end_frame()
        profiler.enabled = True
        profiler.end_frame()
        assert profiler.timing("blend") is None

    def test_reset(self):
        profiler = FrameProfiler(target_fps=1000)
        with profiler.step("classification"):
            pass
        profiler.end_frame(5.0)
        profiler.reset()
        assert profiler.timing("classification") is None
        assert profiler.frame_count == 0
        assert profiler.overruns == 0
