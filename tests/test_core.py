"""Tests for the timing registry, scoped timer and debug context.

Tests use real instances of all internal classes (no mocking internal classes).
Only the clock is faked where exact durations are asserted.
"""

import threading
import time
from pathlib import Path

import pytest
from beartype.roar import BeartypeCallHintParamViolation

from debug_profiling import DebugContext, ScopedTimer, TimingRegistry, TimingStats


# ---------------------------------------------------------------------------
# TimingRegistry
# ---------------------------------------------------------------------------

class TestTimingRegistry:
    def test_two_intervals_accumulate(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        registry.start("load")
        clock.advance(0.050)
        registry.stop("load")
        clock.advance(0.010)
        registry.start("load")
        clock.advance(0.030)
        registry.stop("load")

        assert registry.call_count("load") == 2
        assert registry.total_time("load") == pytest.approx(0.080)
        assert registry.average_time("load") == pytest.approx(0.040)

    def test_stop_returns_elapsed(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        registry.start("op")
        clock.advance(0.25)
        assert registry.stop("op") == pytest.approx(0.25)

    def test_real_clock_elapsed_is_positive(self, context):
        registry = TimingRegistry(context)
        registry.start("sleep")
        time.sleep(0.01)
        elapsed = registry.stop("sleep")
        assert elapsed is not None and elapsed >= 0.009

    def test_stop_without_start_is_noop(self, context):
        registry = TimingRegistry(context)
        assert registry.stop("never_started") is None
        assert registry.snapshot() == ()
        assert len(registry) == 0

    def test_second_stop_is_noop(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        registry.start("op")
        clock.advance(1.0)
        registry.stop("op")
        clock.advance(1.0)
        assert registry.stop("op") is None
        assert registry.call_count("op") == 1
        assert registry.total_time("op") == pytest.approx(1.0)

    def test_double_start_overwrites_in_flight_start(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        registry.start("op")
        clock.advance(5.0)
        registry.start("op")
        clock.advance(1.0)
        registry.stop("op")
        assert registry.call_count("op") == 1
        assert registry.total_time("op") == pytest.approx(1.0)

    def test_start_alone_records_nothing(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        registry.start("pending")
        clock.advance(3.0)
        (stats,) = registry.snapshot()
        assert stats == TimingStats("pending", 0.0, 0, 0.0)

    def test_unknown_names_return_zero(self, context):
        registry = TimingRegistry(context)
        assert registry.average_time("ghost") == 0.0
        assert registry.call_count("ghost") == 0
        assert registry.total_time("ghost") == 0.0
        assert registry.stats("ghost") is None

    def test_snapshot_is_sorted_and_detached(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        for name in ("b", "a", "c"):
            registry.start(name)
            clock.advance(0.1)
            registry.stop(name)

        before = registry.snapshot()
        assert [s.name for s in before] == ["a", "b", "c"]

        registry.start("a")
        clock.advance(0.1)
        registry.stop("a")
        assert before[0].call_count == 1
        assert registry.call_count("a") == 2

    def test_stats_millis(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        for _ in range(4):
            registry.start("op")
            clock.advance(0.002)
            registry.stop("op")
        stats = registry.stats("op")
        assert stats.total_millis == pytest.approx(8.0)
        assert stats.average_millis == pytest.approx(2.0)

    def test_clear_empties_snapshot_and_ticks(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        registry.start("op")
        registry.stop("op")
        registry.tick()
        registry.tick()
        registry.clear()
        assert registry.snapshot() == ()
        assert registry.tick_count == 0

    def test_set_enabled_false_clears_history(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        registry.start("op")
        registry.stop("op")
        registry.set_enabled(False)
        assert registry.snapshot() == ()

        registry.start("op")
        registry.stop("op")
        assert registry.call_count("op") == 0

        registry.set_enabled(True)
        registry.start("op")
        registry.stop("op")
        assert registry.call_count("op") == 1

    def test_closed_gate_suppresses_collection(self, tmp_path: Path):
        context = DebugContext(enabled=False, debug_dir=tmp_path)
        registry = TimingRegistry(context)
        registry.start("op")
        assert registry.stop("op") is None
        assert registry.snapshot() == ()
        assert not registry.is_active

    def test_backwards_clock_raises(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        registry.start("op")
        clock.advance(-1.0)
        with pytest.raises(AssertionError, match="negative"):
            registry.stop("op")

    def test_beartype_rejects_non_str_name(self, context):
        registry = TimingRegistry(context)
        with pytest.raises(BeartypeCallHintParamViolation):
            registry.start(42)

    def test_thread_safety(self, context):
        registry = TimingRegistry(context)

        def time_many(name: str, n: int) -> None:
            for _ in range(n):
                registry.start(name)
                registry.stop(name)

        threads = [
            threading.Thread(target=time_many, args=(f"thread_{i}", 200))
            for i in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snapshot = {s.name: s for s in registry.snapshot()}
        for i in range(8):
            assert snapshot[f"thread_{i}"].call_count == 200

    def test_threads_sharing_one_name_never_raise(self, context):
        registry = TimingRegistry(context)
        errors: list[BaseException] = []

        def time_shared(n: int) -> None:
            try:
                for _ in range(n):
                    registry.start("shared")
                    registry.stop("shared")
            except BaseException as exc:  # collected for the assertion below
                errors.append(exc)

        threads = [threading.Thread(target=time_shared, args=(5000,)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        stats = registry.stats("shared")
        assert 0 < stats.call_count <= 8 * 5000
        assert stats.total_elapsed >= 0

    def test_stop_with_stats_reflects_this_stop(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        registry.start("op")
        clock.advance(0.010)
        registry.stop("op")
        registry.start("op")
        clock.advance(0.030)
        elapsed, stats = registry.stop_with_stats("op")
        assert elapsed == pytest.approx(0.030)
        assert stats.call_count == 2
        assert stats.total_elapsed == pytest.approx(0.040)

    def test_stop_with_stats_noop_returns_none(self, context):
        assert TimingRegistry(context).stop_with_stats("never_started") is None

    def test_snapshot_while_writing_is_coherent(self, context):
        registry = TimingRegistry(context)
        done = threading.Event()

        def writer() -> None:
            while not done.is_set():
                registry.start("busy")
                registry.stop("busy")

        thread = threading.Thread(target=writer)
        thread.start()
        try:
            for _ in range(200):
                for stats in registry.snapshot():
                    if stats.call_count:
                        assert stats.average_time == pytest.approx(
                            stats.total_elapsed / stats.call_count
                        )
        finally:
            done.set()
            thread.join()


# ---------------------------------------------------------------------------
# ScopedTimer
# ---------------------------------------------------------------------------

class TestScopedTimer:
    def test_starts_on_construction(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        timer = ScopedTimer(registry, "scope")
        clock.advance(0.5)
        timer.close()
        assert timer.elapsed == pytest.approx(0.5)
        assert registry.call_count("scope") == 1

    def test_stops_on_exception_and_propagates(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        with pytest.raises(ValueError, match="boom"):
            with registry.time_scope("failing"):
                clock.advance(0.2)
                raise ValueError("boom")
        assert registry.call_count("failing") == 1
        assert registry.total_time("failing") == pytest.approx(0.2)

    def test_close_is_idempotent(self, context, clock):
        registry = TimingRegistry(context, clock=clock)
        with registry.time_scope("once") as timer:
            clock.advance(0.1)
            timer.close()
        assert registry.call_count("once") == 1

    def test_body_never_touching_registry(self, context):
        registry = TimingRegistry(context)
        with ScopedTimer(registry, "empty"):
            pass
        assert registry.call_count("empty") == 1

    def test_elapsed_none_when_gate_closed(self, tmp_path: Path):
        registry = TimingRegistry(DebugContext(enabled=False, debug_dir=tmp_path))
        with registry.time_scope("off") as timer:
            pass
        assert timer.elapsed is None


# ---------------------------------------------------------------------------
# DebugContext
# ---------------------------------------------------------------------------

class TestDebugContext:
    def test_defaults_to_disabled(self):
        assert DebugContext().enabled is False

    def test_debug_none_leaves_state(self):
        context = DebugContext(enabled=True)
        assert context.debug() is True
        assert context.debug(None) is True
        assert context.debug(False) is False
        assert context.debug(None) is False
        assert context.debug(True) is True

    def test_closing_gate_clears_bound_registries(self, context, clock):
        first = TimingRegistry(context, clock=clock)
        second = TimingRegistry(context, clock=clock)
        for registry in (first, second):
            registry.start("op")
            registry.stop("op")

        context.debug(False)
        assert first.snapshot() == ()
        assert second.snapshot() == ()

    def test_reopening_gate_resumes_collection(self, context):
        registry = TimingRegistry(context)
        context.set_enabled(False)
        context.set_enabled(True)
        registry.start("op")
        registry.stop("op")
        assert registry.call_count("op") == 1

    def test_invalid_report_interval_raises(self):
        with pytest.raises(AssertionError, match="at least 1"):
            DebugContext(report_interval=0)

    def test_from_env(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("DEBUG_PROFILING_ENABLED", "true")
        monkeypatch.setenv("DEBUG_PROFILING_DIR", str(tmp_path / "env_debug"))
        monkeypatch.setenv("DEBUG_PROFILING_REPORT_INTERVAL", "5")
        context = DebugContext.from_env()
        assert context.enabled is True
        assert context.debug_dir == tmp_path / "env_debug"
        assert context.report_interval == 5

    def test_from_env_defaults(self, monkeypatch):
        for suffix in ("ENABLED", "DIR", "REPORT_INTERVAL"):
            monkeypatch.delenv(f"DEBUG_PROFILING_{suffix}", raising=False)
        context = DebugContext.from_env()
        assert context.enabled is False
        assert context.debug_dir == Path("debug")
        assert context.report_interval == 20

    @pytest.mark.parametrize("value", ["0", "false", "", "off"])
    def test_from_env_falsey_values(self, monkeypatch, value):
        monkeypatch.setenv("DEBUG_PROFILING_ENABLED", value)
        assert DebugContext.from_env().enabled is False

    def test_beartype_rejects_non_bool_gate(self):
        with pytest.raises(BeartypeCallHintParamViolation):
            DebugContext().debug("yes")
