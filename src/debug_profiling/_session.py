"""Per-owner profiling session: timings, event log and report flushing.

A Session composes one TimingRegistry, an event log and a profiling-lines
buffer, and writes them as a single report through an AsyncFileSink.

Design by Contract:
- owner MUST be a non-empty string
- Buffers are only trimmed after the report write succeeded
- A failed flush keeps every buffered line so flush() can be retried
"""

import threading
from collections.abc import Generator
from concurrent.futures import Future
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from beartype import beartype
from loguru import logger

from debug_profiling._context import DebugContext
from debug_profiling._core import TimingRegistry
from debug_profiling._report import (
    format_report,
    format_sections,
    format_timing_line,
    log_report,
)
from debug_profiling._sink import AsyncFileSink
from debug_profiling._system import collect_gc_stats, collect_system_metrics


class Session:
    """Profile, log and flush everything for one owner to one report file.

    Args:
        owner: Identity used in report headers and file prefixes
        context: DebugContext gating collection
        sink: AsyncFileSink that persists reports
        registry: Registry to record into (default: a new one bound to context)

    Example:
        session = Session("my_mod", context, sink)

        session.start_profiling("chunk_loading")
        load_chunks()
        session.stop_profiling("chunk_loading")

        with session.profile("data_loading"):
            load_data()

        session.log_event("Configuration loaded")
        path = session.flush().result()
    """

    @beartype
    def __init__(
        self,
        owner: str,
        context: DebugContext,
        sink: AsyncFileSink,
        registry: TimingRegistry | None = None,
    ) -> None:
        assert owner.strip(), "Session owner must be non-empty"
        self.owner = owner.strip()
        self.registry = registry if registry is not None else TimingRegistry(context)
        self._context = context
        self._sink = sink
        self._events: list[str] = []
        self._profiling_lines: list[str] = []
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def event_count(self) -> int:
        with self._lock:
            return len(self._events)

    @property
    def profiling_record_count(self) -> int:
        with self._lock:
            return len(self._profiling_lines)

    @beartype
    def start_profiling(self, operation: str) -> None:
        self.registry.start(operation)

    @beartype
    def stop_profiling(self, operation: str) -> float | None:
        """Stop ``operation`` and buffer its running summary line.

        Returns:
            Elapsed seconds, or None when the stop was a no-op.
        """
        stopped = self.registry.stop_with_stats(operation)
        if stopped is None:
            return None
        elapsed, stats = stopped
        with self._lock:
            self._profiling_lines.append(format_timing_line(stats))
        return elapsed

    @beartype
    @contextmanager
    def profile(self, operation: str) -> Generator[None, None, None]:
        """Context manager around start_profiling / stop_profiling."""
        self.start_profiling(operation)
        try:
            yield
        finally:
            self.stop_profiling(operation)

    @beartype
    def log_event(self, message: str) -> None:
        """Timestamp ``message`` and add it to the event log."""
        if not self._context.enabled:
            return
        formatted = f"[{datetime.now().isoformat()}] {message}"
        with self._lock:
            self._events.append(formatted)
        logger.info(f"Event logged: {formatted}")

    def flush(self) -> "Future[Path]":
        """Write buffered profiling lines and events to a fresh report file.

        Returns:
            Future resolving with the report path once written and the
            flushed entries have been dropped. On failure the future carries
            the DebugFileError and the buffers are left untouched.
        """
        with self._lock:
            lines = list(self._profiling_lines)
            events = list(self._events)
            generation = self._generation

        content = format_report(
            "Debug Data Report",
            datetime.now(),
            events=events,
            performance_lines=lines,
            header_fields={"Owner": self.owner},
        )
        result: "Future[Path]" = Future()

        def on_written(write: "Future[Path]") -> None:
            error = write.exception()
            if error is not None:
                logger.warning(
                    f"Debug data for {self.owner} not saved, keeping "
                    f"{len(lines)} profiling line(s) and {len(events)} event(s): {error}"
                )
                result.set_exception(error)
                return

            with self._lock:
                # A clear() or another flush already dropped these entries
                if generation == self._generation:
                    del self._profiling_lines[: len(lines)]
                    del self._events[: len(events)]
                    self._generation += 1
            path = write.result()
            logger.info(f"All debug data saved to: {path}")
            result.set_result(path)

        self._sink.write(f"{self.owner}_debug", content).add_done_callback(on_written)
        return result

    def clear(self) -> None:
        """Discard buffered lines, events and timings without writing."""
        with self._lock:
            self._profiling_lines.clear()
            self._events.clear()
            self._generation += 1
        self.registry.clear()

    @beartype
    def on_tick(self, counter: int | None = None) -> "Future[Path] | None":
        """Host tick hook; writes a performance report every Nth tick.

        Args:
            counter: Host-supplied monotonic tick count. When None the
                registry's own tick counter is used.

        Returns:
            Future for the report write, or None when no report was due.
        """
        if not self.registry.is_active:
            return None
        ticks = self.registry.tick()
        current = counter if counter is not None else ticks
        if current <= 0 or current % self._context.report_interval != 0:
            return None

        stats = [s for s in self.registry.snapshot() if s.call_count > 0]
        if not stats:
            return None

        content = format_report(
            "Performance Profiling Report",
            datetime.now(),
            stats=stats,
            header_fields={"Owner": self.owner, "Tick": current},
            include_totals=True,
        )
        log_report(content)
        return self._sink.write(f"{self.owner}_performance", content)

    def log_system_metrics(self) -> "Future[Path]":
        """Write a memory / thread / OS report sampled via psutil."""
        content = format_sections(
            "System Metrics Report",
            datetime.now(),
            collect_system_metrics(),
            header_fields={"Owner": self.owner},
        )
        return self._sink.write(f"{self.owner}_system_metrics", content)

    def log_gc_stats(self) -> "Future[Path]":
        """Write a garbage collection report."""
        content = format_sections(
            "Garbage Collection Report",
            datetime.now(),
            collect_gc_stats(),
            header_fields={"Owner": self.owner},
        )
        return self._sink.write(f"{self.owner}_gc_stats", content)
