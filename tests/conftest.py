"""Shared fixtures.

Real instances everywhere; only the clock is replaced for deterministic
timing assertions.
"""

from pathlib import Path

import pytest

from debug_profiling import AsyncFileSink, DebugContext


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def context(tmp_path: Path) -> DebugContext:
    return DebugContext(enabled=True, debug_dir=tmp_path / "debug", report_interval=20)


@pytest.fixture
def sink(context: DebugContext):
    file_sink = AsyncFileSink(context.debug_dir)
    yield file_sink
    file_sink.shutdown(wait=True)


@pytest.fixture
def broken_sink(tmp_path: Path):
    """Sink whose debug directory path is occupied by a regular file."""
    blocked = tmp_path / "blocked"
    blocked.write_text("not a directory")
    file_sink = AsyncFileSink(blocked)
    yield file_sink
    file_sink.shutdown(wait=True)
