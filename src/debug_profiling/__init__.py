"""debug-profiling: In-process timing registry with asynchronous debug reports.

Provides:
- DebugContext: Process-wide debug gate, debug directory and tick interval
- TimingRegistry: Thread-safe start/stop accumulator of per-name timings
- ScopedTimer: Context manager that stops its timing on every exit path
- AsyncFileSink: Single-worker background writer for the debug directory
- Session: Per-owner profile / log / flush-to-one-report workflow
- format_report: Deterministic plain-text report formatting

Usage:
    from pathlib import Path
    from debug_profiling import AsyncFileSink, DebugContext, Session

    context = DebugContext(enabled=True, debug_dir=Path("debug"))
    sink = AsyncFileSink(context.debug_dir)
    session = Session("my_app", context, sink)

    with session.profile("data_loading"):
        load_data()
    session.log_event("Configuration loaded")

    path = session.flush().result()
"""

from debug_profiling._context import DebugContext
from debug_profiling._core import (
    ScopedTimer,
    TimingRecord,
    TimingRegistry,
    TimingStats,
)
from debug_profiling._errors import (
    DebugFileError,
    DebugFileIOError,
    DebugFileNotFoundError,
)
from debug_profiling._report import (
    format_report,
    format_sections,
    format_timing_line,
    log_report,
)
from debug_profiling._session import Session
from debug_profiling._sink import (
    AsyncFileSink,
    DirectoryHandle,
    JobMode,
    ReportJob,
)
from debug_profiling._system import collect_gc_stats, collect_system_metrics

__all__ = [
    "AsyncFileSink",
    "DebugContext",
    "DebugFileError",
    "DebugFileIOError",
    "DebugFileNotFoundError",
    "DirectoryHandle",
    "JobMode",
    "ReportJob",
    "ScopedTimer",
    "Session",
    "TimingRecord",
    "TimingRegistry",
    "TimingStats",
    "collect_gc_stats",
    "collect_system_metrics",
    "format_report",
    "format_sections",
    "format_timing_line",
    "log_report",
]

__version__ = "0.1.0"
