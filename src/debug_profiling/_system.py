"""Process and interpreter diagnostics rendered as report lines.

Memory tracking via psutil. Values are sampled at call time; nothing is cached.
"""

import gc
import os
import platform

import psutil
from beartype import beartype


@beartype
def collect_system_metrics() -> dict[str, list[str]]:
    """Sample memory, thread and OS information, grouped by report section."""
    process = psutil.Process()
    rss_mb = process.memory_info().rss / 1024**2
    virtual = psutil.virtual_memory()
    used_mb = (virtual.total - virtual.available) / 1024**2
    total_mb = virtual.total / 1024**2

    return {
        "Memory Usage": [
            f"Process RSS: {rss_mb:.1f}MB",
            f"System Memory: {used_mb:.0f}MB/{total_mb:.0f}MB ({virtual.percent:.1f}%)",
        ],
        "Thread Information": [
            f"Thread Count: {process.num_threads()}",
        ],
        "Operating System": [
            f"OS: {platform.system()} {platform.release()}",
            f"Architecture: {platform.machine()}",
            f"Available Processors: {os.cpu_count() or psutil.cpu_count()}",
            f"Python: {platform.python_version()}",
        ],
    }


@beartype
def collect_gc_stats() -> dict[str, list[str]]:
    """Per-generation garbage collector counters, one section per generation."""
    sections: dict[str, list[str]] = {}
    counts = gc.get_count()
    for generation, stats in enumerate(gc.get_stats()):
        sections[f"Generation {generation}"] = [
            f"Collections: {stats['collections']}",
            f"Collected: {stats['collected']}",
            f"Uncollectable: {stats['uncollectable']}",
            f"Pending Allocations: {counts[generation] if generation < len(counts) else 0}",
        ]
    return sections
