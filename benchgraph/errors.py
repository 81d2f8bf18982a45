"""Exception hierarchy for benchgraph runs.

Only ``ConfigError`` is fatal for a whole run. The other errors are raised by a
single listing, lookup or unit execution and are converted by the driver into a
recorded failure for that branch of the graph.
"""

from __future__ import annotations

from typing import Any, Optional

from .common import ErrorCode


class BenchGraphError(Exception):
    """Base class for all benchgraph errors."""

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR


class ConfigError(BenchGraphError):
    """Invalid or missing run configuration; aborts before any work starts."""

    error_code = ErrorCode.CONFIG_ERROR


class ListingError(BenchGraphError):
    """Listing the children of one task failed or returned malformed output."""

    error_code = ErrorCode.LISTING_ERROR

    def __init__(self, kind: Any, task: Optional[str], cause: str):
        self.kind = kind
        self.task = task
        self.cause = cause
        kind_value = getattr(kind, "value", kind)
        scope = f" for task '{task}'" if task else ""
        super().__init__(f"Listing {kind_value}s{scope} failed: {cause}")


class ResolutionError(BenchGraphError):
    """Image or hash lookup for one entity failed."""

    error_code = ErrorCode.RESOLUTION_ERROR

    def __init__(self, ref: Any, cause: str):
        self.ref = ref
        self.cause = cause
        super().__init__(f"Resolution of {ref} failed: {cause}")


class ExecutionError(BenchGraphError):
    """A unit failed on every allowed attempt."""

    def __init__(
        self,
        unit: Any,
        attempt: int,
        cause: str,
        error_code: Optional[ErrorCode] = None,
    ):
        self.unit = unit
        self.attempt = attempt
        self.cause = cause
        self.error_code = error_code or ErrorCode.RUNTIME_ERROR
        super().__init__(f"Execution of {unit} failed after attempt {attempt}: {cause}")


class CollaboratorError(BenchGraphError):
    """An external collaborator call exited non-zero, timed out, or could not start."""

    error_code = ErrorCode.SYSTEM_ERROR

    def __init__(self, argv: Any, message: str, returncode: Optional[int] = None, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)
