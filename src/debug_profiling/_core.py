"""Core timing utilities.

Design by Contract:
- Elapsed time MUST be non-negative (crash if negative - clock bug)
- call_count increments exactly once per matched start/stop pair
- total_elapsed only grows on stop, never on start
- Misuse is tolerated: stray stops and unknown names are no-ops / zeros

Instrumentation must never crash the code it measures, so the registry has
no error paths for caller mistakes. All classes use beartype for runtime type
enforcement.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from beartype import beartype
from loguru import logger

from debug_profiling._context import DebugContext


@dataclass
class TimingRecord:
    """Mutable accumulator for one operation name. Owned by a TimingRegistry."""

    name: str
    total_elapsed: float = 0.0
    call_count: int = 0
    in_flight_start: float | None = None

    @property
    def average_time(self) -> float:
        return self.total_elapsed / self.call_count if self.call_count > 0 else 0.0


@dataclass(frozen=True)
class TimingStats:
    """Immutable snapshot entry for one operation (times in seconds)."""

    name: str
    total_elapsed: float
    call_count: int
    average_time: float

    @property
    def total_millis(self) -> float:
        return self.total_elapsed * 1000

    @property
    def average_millis(self) -> float:
        return self.average_time * 1000


def _freeze(record: TimingRecord) -> TimingStats:
    return TimingStats(
        name=record.name,
        total_elapsed=record.total_elapsed,
        call_count=record.call_count,
        average_time=record.average_time,
    )


class TimingRegistry:
    """Thread-safe mapping from operation name to accumulated timing.

    Args:
        context: DebugContext gating all collection
        clock: Monotonic clock returning seconds (default: time.perf_counter)

    Example:
        registry = TimingRegistry(context)
        registry.start("load")
        data = load()
        registry.stop("load")

        with registry.time_scope("parse"):
            parse(data)

        for stats in registry.snapshot():
            print(stats.name, stats.call_count, stats.average_millis)

    Quirks (kept as contracts):
        - start() twice without stop() overwrites the in-flight start
        - stop() without start() does nothing
        - set_enabled(False) discards history, it does not pause collection
    """

    @beartype
    def __init__(
        self,
        context: DebugContext,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._context = context
        self._clock = clock
        self._records: dict[str, TimingRecord] = {}
        self._enabled = True
        self._tick_count = 0
        self._lock = threading.Lock()
        context.bind(self)

    @property
    def context(self) -> DebugContext:
        return self._context

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def is_active(self) -> bool:
        """True when both this registry and the context gate are enabled."""
        return self._enabled and self._context.enabled

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @beartype
    def set_enabled(self, enabled: bool) -> None:
        """Enable or disable collection. Disabling clears all state."""
        self._enabled = enabled
        if not enabled:
            self.clear()

    @beartype
    def start(self, name: str) -> None:
        """Mark the start of ``name``, creating its record on first use."""
        if not self.is_active:
            return
        with self._lock:
            record = self._records.get(name)
            if record is None:
                record = self._records[name] = TimingRecord(name)
            # Read under the lock so markers and stop times stay ordered
            record.in_flight_start = self._clock()

    @beartype
    def stop(self, name: str) -> float | None:
        """Close the in-flight interval of ``name``.

        Returns:
            Elapsed seconds of the closed interval, or None when there was
            nothing to stop (inactive, unknown name or no matching start).
        """
        stopped = self.stop_with_stats(name)
        return stopped[0] if stopped is not None else None

    @beartype
    def stop_with_stats(self, name: str) -> tuple[float, TimingStats] | None:
        """Stop ``name`` and snapshot its record in the same locked step.

        Returns:
            (elapsed seconds, stats including this stop), or None when the
            stop was a no-op.
        """
        if not self.is_active:
            return None
        with self._lock:
            record = self._records.get(name)
            if record is None or record.in_flight_start is None:
                return None

            elapsed = self._clock() - record.in_flight_start
            assert elapsed >= 0, (
                f"Elapsed time cannot be negative: {elapsed:.9f}s for {name!r}. "
                f"Clock went backwards or timing bug."
            )
            record.total_elapsed += elapsed
            record.call_count += 1
            record.in_flight_start = None
            return elapsed, _freeze(record)

    @beartype
    def time_scope(self, name: str) -> "ScopedTimer":
        return ScopedTimer(self, name)

    @beartype
    def average_time(self, name: str) -> float:
        """Average seconds per completed call, 0.0 if never completed."""
        with self._lock:
            record = self._records.get(name)
            return record.average_time if record is not None else 0.0

    @beartype
    def call_count(self, name: str) -> int:
        with self._lock:
            record = self._records.get(name)
            return record.call_count if record is not None else 0

    @beartype
    def total_time(self, name: str) -> float:
        with self._lock:
            record = self._records.get(name)
            return record.total_elapsed if record is not None else 0.0

    @beartype
    def stats(self, name: str) -> TimingStats | None:
        """Snapshot of a single operation, None for unknown names."""
        with self._lock:
            record = self._records.get(name)
            return _freeze(record) if record is not None else None

    def snapshot(self) -> tuple[TimingStats, ...]:
        """Point-in-time copy of every record, sorted by name."""
        with self._lock:
            return tuple(
                _freeze(record)
                for record in sorted(self._records.values(), key=lambda r: r.name)
            )

    def tick(self) -> int:
        """Advance the tick counter and return its new value."""
        with self._lock:
            self._tick_count += 1
            return self._tick_count

    def clear(self) -> None:
        """Drop every record and reset the tick counter."""
        with self._lock:
            dropped = len(self._records)
            self._records.clear()
            self._tick_count = 0
        if dropped:
            logger.debug(f"Cleared {dropped} timing record(s)")

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class ScopedTimer:
    """Context manager that starts a timing on creation and stops it on exit.

    The stop happens exactly once, on normal exit and when an exception
    unwinds through the block. Exceptions are never suppressed.

    Args:
        registry: Registry to record into (anything with start/stop)
        name: Operation name

    Attributes:
        elapsed: Seconds measured by the stop, None until closed or when
            the stop was a no-op

    Example:
        with ScopedTimer(registry, "entity_ai") as timer:
            update_entities()
        print(timer.elapsed)
    """

    @beartype
    def __init__(self, registry: Any, name: str) -> None:
        self.name = name
        self.elapsed: float | None = None
        self._registry = registry
        self._closed = False
        registry.start(name)

    def __enter__(self) -> "ScopedTimer":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Stop the timing. Calling it again does nothing."""
        if self._closed:
            return
        self._closed = True
        self.elapsed = self._registry.stop(self.name)
