"""Error classification utilities for benchgraph."""

import re
from typing import Optional

from benchgraph.common import ErrorCode

# Exit statuses that mean the process was killed by the kernel or the runtime,
# which in practice is the memory limit.
_KILLED_EXIT_CODES = {137, -9}


def classify_error(
    error_message: str,
    returncode: Optional[int] = None,
    timed_out: bool = False,
    context: Optional[str] = None,
) -> ErrorCode:
    """Classify a failed attempt into an appropriate error code."""
    if timed_out:
        return ErrorCode.TIMEOUT_ERROR
    if returncode in _KILLED_EXIT_CODES:
        return ErrorCode.RESOURCE_ERROR

    error_lower = (error_message or "").lower()
    if not error_lower and returncode is None and not context:
        return ErrorCode.UNKNOWN_ERROR

    resource_patterns = [
        r"out of memory",
        r"memoryerror",
        r"cannot allocate memory",
        r"oom.?kill",
        r"insufficient.*memory",
        r"memory.*exhausted",
        r"resource.*exhausted",
        r"no space left on device",
        r"killed",
    ]
    if any(re.search(pattern, error_lower) for pattern in resource_patterns):
        return ErrorCode.RESOURCE_ERROR

    timeout_patterns = [
        r"timed? ?out",
        r"time.*limit.*exceeded",
        r"deadline exceeded",
    ]
    if any(re.search(pattern, error_lower) for pattern in timeout_patterns):
        return ErrorCode.TIMEOUT_ERROR

    output_patterns = [
        r"output.*missing",
        r"missing.*output",
        r"did not produce",
    ]
    if any(re.search(pattern, error_lower) for pattern in output_patterns):
        return ErrorCode.OUTPUT_ERROR

    system_patterns = [
        r"could not start",
        r"no such file or directory",
        r"permission denied",
        r"cannot connect to the docker daemon",
        r"unable to find image",
        r"pull access denied",
        r"connection.*(refused|failed)",
    ]
    if any(re.search(pattern, error_lower) for pattern in system_patterns):
        return ErrorCode.SYSTEM_ERROR

    if context:
        context_lower = context.lower()
        if "list" in context_lower:
            return ErrorCode.LISTING_ERROR
        if "resol" in context_lower or "image" in context_lower or "hash" in context_lower:
            return ErrorCode.RESOLUTION_ERROR

    if returncode not in (None, 0):
        return ErrorCode.RUNTIME_ERROR
    return ErrorCode.UNKNOWN_ERROR


def get_error_description(error_code: ErrorCode) -> str:
    """Get human-readable description for error code."""
    descriptions = {
        ErrorCode.CONFIG_ERROR: "Configuration error - the run could not start",
        ErrorCode.LISTING_ERROR: "Listing failed - task children could not be enumerated",
        ErrorCode.RESOLUTION_ERROR: "Resolution failed - image or hash lookup error",
        ErrorCode.RUNTIME_ERROR: "Runtime error - the stage command exited non-zero",
        ErrorCode.OUTPUT_ERROR: "Output error - the stage command did not produce its artifact",
        ErrorCode.TIMEOUT_ERROR: "Timeout - the attempt exceeded its time budget",
        ErrorCode.SYSTEM_ERROR: "System error - the command or container could not be started",
        ErrorCode.RESOURCE_ERROR: "Resource error - memory or disk exhausted",
        ErrorCode.UNKNOWN_ERROR: "Unknown error - unclassified error type",
    }
    return descriptions.get(error_code, "Unknown error type")


def get_error_category(error_code: ErrorCode) -> str:
    """Get error category for grouping similar errors."""
    categories = {
        ErrorCode.CONFIG_ERROR: "config",
        ErrorCode.LISTING_ERROR: "planning",
        ErrorCode.RESOLUTION_ERROR: "planning",
        ErrorCode.RUNTIME_ERROR: "runtime",
        ErrorCode.OUTPUT_ERROR: "runtime",
        ErrorCode.TIMEOUT_ERROR: "timeout",
        ErrorCode.SYSTEM_ERROR: "system",
        ErrorCode.RESOURCE_ERROR: "resource",
        ErrorCode.UNKNOWN_ERROR: "unknown",
    }
    return categories.get(error_code, "unknown")
