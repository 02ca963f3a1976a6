"""Serialized asynchronous file access for the debug directory.

Every write, append, read, delete and listing runs on one background worker
thread, in submission order. Callers get a ``concurrent.futures.Future`` back
immediately; filesystem errors surface only through that future.

Design by Contract:
- Exactly one worker (FIFO); the directory is never mutated elsewhere
- OSError and UnicodeError are wrapped in DebugFileIOError with the cause chained
- Submissions after shutdown() return an already-failed future
"""

import enum
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from beartype import beartype
from loguru import logger

from debug_profiling._errors import DebugFileIOError, DebugFileNotFoundError

T = TypeVar("T")

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
DEFAULT_PREFIX = "debug"
DEFAULT_EXTENSION = "txt"


class JobMode(enum.Enum):
    CREATE = "create"
    APPEND = "append"


@dataclass(frozen=True)
class ReportJob:
    """A single unit of work for the sink.

    For CREATE, ``target`` is a filename prefix (None for the default); for
    APPEND it is the exact filename.
    """

    target: str | None
    content: str | Sequence[str]
    mode: JobMode = JobMode.CREATE

    def render(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return "".join(f"{line}\n" for line in self.content)


class DirectoryHandle:
    """Lazily created debug directory, shared per path within the process.

    Concurrent first calls are safe: creation tolerates the directory
    appearing between the existence check and mkdir.
    """

    _instances: dict[Path, "DirectoryHandle"] = {}
    _instances_lock = threading.Lock()

    def __init__(self, path: Path) -> None:
        self.path = path
        self._resolved = False

    @classmethod
    @beartype
    def for_path(cls, path: Path) -> "DirectoryHandle":
        key = path.expanduser().absolute()
        with cls._instances_lock:
            handle = cls._instances.get(key)
            if handle is None:
                handle = cls._instances[key] = cls(key)
            return handle

    def resolve(self) -> Path:
        """Return the directory path, creating it on first use."""
        if self._resolved and self.path.is_dir():
            return self.path
        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DebugFileIOError(
                f"Failed to create debug directory: {self.path}"
            ) from exc
        self._resolved = True
        return self.path


class AsyncFileSink:
    """Single-worker background queue for debug directory I/O.

    Args:
        directory: Debug directory path or a shared DirectoryHandle

    Example:
        with AsyncFileSink(Path("debug")) as sink:
            path = sink.write("performance", "Block rendering took 16ms").result()
            sink.append(path.name, "Entity update took 8ms").result()
            print(sink.read(path.name).result())

    Ordering:
        Jobs run one at a time in submission order. A caller that needs
        ordering against its own earlier writes simply submits in order;
        results must be awaited only if later logic depends on them.
    """

    @beartype
    def __init__(self, directory: Path | DirectoryHandle) -> None:
        if isinstance(directory, Path):
            directory = DirectoryHandle.for_path(directory)
        self._directory = directory
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="debug-file-io"
        )
        self._closed = False
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._directory.path

    def __enter__(self) -> "AsyncFileSink":
        return self

    def __exit__(self, *args: Any) -> None:
        self.shutdown(wait=True)

    @beartype
    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs; optionally wait for queued jobs to finish."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def _submit(self, description: str, fn: Callable[[], T]) -> "Future[T]":
        def run() -> T:
            logger.debug(f"Debug file job started: {description}")
            result = fn()
            logger.debug(f"Debug file job finished: {description}")
            return result

        # shutdown() flips _closed under the same lock, so the executor is
        # still accepting work whenever we get past this check.
        with self._lock:
            if not self._closed:
                return self._executor.submit(run)

        future: "Future[T]" = Future()
        future.set_exception(
            DebugFileIOError(f"Debug file sink is shut down: {description}")
        )
        return future

    @staticmethod
    @beartype
    def generate_name(
        prefix: str | None = None,
        extension: str = DEFAULT_EXTENSION,
        now: datetime | None = None,
    ) -> str:
        """Build ``<prefix>_<YYYY-MM-DD_HH-MM-SS>.<extension>``.

        Blank or missing prefixes fall back to ``debug``. The timestamp sorts
        lexicographically in creation order.
        """
        timestamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
        if prefix is None or not prefix.strip():
            return f"{DEFAULT_PREFIX}_{timestamp}.{extension}"
        return f"{prefix.strip()}_{timestamp}.{extension}"

    @beartype
    def file_path(self, filename: str) -> Path:
        """Full path of ``filename`` inside the debug directory (no I/O)."""
        return self._directory.path / filename

    def resolve_directory(self) -> "Future[Path]":
        return self._submit("resolve directory", self._directory.resolve)

    @beartype
    def submit(self, job: ReportJob) -> "Future[Path]":
        """Queue a ReportJob; resolves with the path that was written."""
        if job.mode is JobMode.APPEND:
            return self._submit(f"append {job.target}", lambda: self._append(job))
        return self._submit(f"write {job.target or DEFAULT_PREFIX}", lambda: self._write(job))

    @beartype
    def write(self, prefix: str | None, content: str | Sequence[str]) -> "Future[Path]":
        """Write ``content`` to a freshly named file.

        A string is written exactly as given; a sequence is written one
        newline-terminated line per entry.
        """
        return self.submit(ReportJob(prefix, content, JobMode.CREATE))

    @beartype
    def append(self, filename: str, content: str) -> "Future[Path]":
        """Append to ``filename`` (created when absent) separated by a newline."""
        return self.submit(ReportJob(filename, content, JobMode.APPEND))

    @beartype
    def create(self, prefix: str | None = None) -> "Future[Path]":
        """Create a freshly named empty file. Fails if it already exists."""
        def create_file() -> Path:
            path = self._directory.resolve() / self.generate_name(prefix)
            try:
                path.touch(exist_ok=False)
            except OSError as exc:
                raise DebugFileIOError(f"Failed to create debug file: {path}") from exc
            return path

        return self._submit(f"create {prefix or DEFAULT_PREFIX}", create_file)

    @beartype
    def read(self, filename: str) -> "Future[str]":
        def read_file() -> str:
            path = self._directory.resolve() / filename
            if not path.is_file():
                raise DebugFileNotFoundError(f"Debug file not found: {filename}")
            try:
                return _read_text(path)
            except (OSError, UnicodeError) as exc:
                raise DebugFileIOError(f"Failed to read debug file: {path}") from exc

        return self._submit(f"read {filename}", read_file)

    @beartype
    def delete(self, filename: str) -> "Future[bool]":
        """Resolves True when a file was removed, False when it was absent."""
        def delete_file() -> bool:
            path = self._directory.resolve() / filename
            try:
                path.unlink()
            except FileNotFoundError:
                return False
            except OSError as exc:
                raise DebugFileIOError(f"Failed to delete debug file: {path}") from exc
            return True

        return self._submit(f"delete {filename}", delete_file)

    def list_files(self) -> "Future[list[str]]":
        """Names of the regular files in the debug directory, unordered."""
        def list_dir() -> list[str]:
            directory = self._directory.resolve()
            try:
                return [p.name for p in directory.iterdir() if p.is_file()]
            except OSError as exc:
                raise DebugFileIOError(
                    f"Failed to list debug directory: {directory}"
                ) from exc

        return self._submit("list files", list_dir)

    def _write(self, job: ReportJob) -> Path:
        path = self._directory.resolve() / self.generate_name(job.target)
        try:
            _write_text(path, job.render())
        except (OSError, UnicodeError) as exc:
            raise DebugFileIOError(f"Failed to write debug file: {path}") from exc
        return path

    def _append(self, job: ReportJob) -> Path:
        if not job.target:
            raise DebugFileIOError("Append jobs need an exact filename")
        path = self._directory.resolve() / job.target
        try:
            if path.exists():
                _write_text(path, _read_text(path) + "\n" + job.render())
            else:
                _write_text(path, job.render())
        except (OSError, UnicodeError) as exc:
            raise DebugFileIOError(f"Failed to append to debug file: {path}") from exc
        return path


def _write_text(path: Path, text: str) -> None:
    # Encode first so an unencodable string never truncates the file
    path.write_bytes(text.encode("utf-8"))


def _read_text(path: Path) -> str:
    return path.read_bytes().decode("utf-8")
