"""Plain-text report formatting.

Formatting is pure: identical inputs give identical text. Sections with no
lines are left out, so a report without timings or events is just a header
and a footer.

Layout:
    === <title> ===
    <Key>: <value>            (optional header fields)
    Generated: <iso timestamp>

    --- Performance ---
    Operation: load | Calls: 2 | Avg: 40.00ms

    --- Events ---
    [2025-01-01T12:00:00] something happened

    === End of Report ===
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from beartype import beartype
from loguru import logger

from debug_profiling._core import TimingStats

FOOTER = "=== End of Report ==="
PERFORMANCE_SECTION = "Performance"
EVENTS_SECTION = "Events"


@beartype
def format_timing_line(stats: TimingStats, include_total: bool = False) -> str:
    """One ``name | calls | average`` line for a snapshot entry."""
    line = (
        f"Operation: {stats.name} | Calls: {stats.call_count} | "
        f"Avg: {stats.average_millis:.2f}ms"
    )
    if include_total:
        line += f" | Total: {stats.total_millis:.2f}ms"
    return line


@beartype
def format_sections(
    title: str,
    generated_at: datetime,
    sections: Mapping[str, Sequence[str]],
    header_fields: Mapping[str, Any] | None = None,
) -> str:
    """Render a titled report from ordered named sections.

    Args:
        title: Report title for the header line
        generated_at: Generation timestamp (rendered in ISO format)
        sections: Section name to lines, rendered in mapping order
        header_fields: Extra ``Key: value`` lines placed under the title
    """
    out = [f"=== {title} ==="]
    for key, value in (header_fields or {}).items():
        out.append(f"{key}: {value}")
    out.append(f"Generated: {generated_at.isoformat()}")
    out.append("")

    for name, lines in sections.items():
        if not lines:
            continue
        out.append(f"--- {name} ---")
        out.extend(lines)
        out.append("")

    out.append(FOOTER)
    return "\n".join(out) + "\n"


@beartype
def format_report(
    title: str,
    generated_at: datetime,
    stats: Iterable[TimingStats] = (),
    events: Sequence[str] = (),
    performance_lines: Sequence[str] = (),
    header_fields: Mapping[str, Any] | None = None,
    include_totals: bool = False,
) -> str:
    """Combine timing aggregates and free-text events into one report.

    Entries with zero completed calls are omitted. Stats are ordered by name;
    ``performance_lines`` (pre-formatted) follow them verbatim, and events
    keep their insertion order.
    """
    performance = [
        format_timing_line(s, include_total=include_totals)
        for s in sorted(stats, key=lambda s: s.name)
        if s.call_count > 0
    ]
    performance.extend(performance_lines)

    return format_sections(
        title,
        generated_at,
        {PERFORMANCE_SECTION: performance, EVENTS_SECTION: list(events)},
        header_fields=header_fields,
    )


@beartype
def log_report(text: str, level: str = "INFO") -> None:
    """Emit a formatted report line by line via loguru."""
    logger.log(level, "")
    for line in text.splitlines():
        logger.log(level, line)
