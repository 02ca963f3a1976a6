"""Error taxonomy for debug file operations.

Registry misuse (stray stops, unknown names) is never an error. Only the file
sink raises, and only through the futures it returns.
"""


class DebugFileError(Exception):
    """Base class for failures of debug directory operations."""


class DebugFileNotFoundError(DebugFileError, FileNotFoundError):
    """Raised when a requested debug file does not exist."""


class DebugFileIOError(DebugFileError):
    """Raised when the filesystem fails; the OSError is chained as __cause__."""
