"""Process-wide debug gate and configuration.

A DebugContext replaces a global "debug enabled" flag. It is created once by
the host and passed to every TimingRegistry and Session.

Design by Contract:
- report_interval MUST be >= 1
- Gate starts closed (enabled=False) unless set explicitly
- Closing the gate clears every registry bound to the context
"""

import os
import threading
import weakref
from pathlib import Path
from typing import Any

from beartype import beartype
from loguru import logger

_TRUTHY = frozenset({"1", "true", "yes", "on"})


class DebugContext:
    """Holds the debug gate, the debug directory and the tick report interval.

    Args:
        enabled: Initial gate state (default: False)
        debug_dir: Directory reports are written to
        report_interval: Emit a tick report every N ticks (MUST be >= 1)

    Example:
        context = DebugContext(enabled=True, debug_dir=Path("run/debug"))
        registry = TimingRegistry(context)
        context.debug(False)  # closes the gate and clears the registry
    """

    @beartype
    def __init__(
        self,
        enabled: bool = False,
        debug_dir: Path = Path("debug"),
        report_interval: int = 20,
    ) -> None:
        assert report_interval >= 1, (
            f"Report interval must be at least 1 tick: {report_interval}"
        )
        self.debug_dir = debug_dir
        self.report_interval = report_interval
        self._enabled = enabled
        self._lock = threading.Lock()
        self._bound: "weakref.WeakSet[Any]" = weakref.WeakSet()

    @classmethod
    @beartype
    def from_env(cls, prefix: str = "DEBUG_PROFILING") -> "DebugContext":
        """Build a context from ``<prefix>_ENABLED``, ``_DIR`` and ``_REPORT_INTERVAL``."""
        enabled = os.environ.get(f"{prefix}_ENABLED", "").strip().lower() in _TRUTHY
        debug_dir = Path(os.environ.get(f"{prefix}_DIR", "debug"))
        interval = int(os.environ.get(f"{prefix}_REPORT_INTERVAL", "20"))
        return cls(enabled=enabled, debug_dir=debug_dir, report_interval=interval)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @beartype
    def debug(self, value: bool | None = None) -> bool:
        """Set the gate when ``value`` is given and return the current state.

        Passing None leaves the gate unchanged, so the call is idempotent.
        """
        if value is not None:
            self.set_enabled(value)
        return self._enabled

    @beartype
    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            was_enabled = self._enabled
            self._enabled = enabled
            bound = list(self._bound)

        if was_enabled != enabled:
            logger.debug(f"Debug gate {'opened' if enabled else 'closed'}")
        if not enabled:
            for registry in bound:
                registry.clear()

    def bind(self, registry: Any) -> None:
        """Attach a registry so closing the gate clears it (held weakly)."""
        with self._lock:
            self._bound.add(registry)
