"""Retry policy for unit execution."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from benchgraph.common import ErrorCode
from benchgraph.core.types import ResourceRequest

logger = logging.getLogger("benchgraph.worker.retry")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt ``n`` requests ``n`` times the base cpu, memory and time.

    Every failure is retried until ``max_attempts`` is reached, whatever its
    cause; the cause is only used for reporting. Optional ceilings cap the
    scaled cpu and memory requests.
    """

    max_attempts: int = 3
    delay_seconds: float = 0.0
    max_cpus: Optional[float] = None
    max_memory_gb: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    def attempts(self) -> Iterator[int]:
        return iter(range(1, self.max_attempts + 1))

    def resources_for(self, base: ResourceRequest, attempt: int) -> ResourceRequest:
        scaled = base.scaled(attempt)
        cpus = scaled.cpus if self.max_cpus is None else min(scaled.cpus, self.max_cpus)
        memory_gb = scaled.memory_gb if self.max_memory_gb is None else min(scaled.memory_gb, self.max_memory_gb)
        if (cpus, memory_gb) != (scaled.cpus, scaled.memory_gb):
            logger.debug(f"Attempt {attempt} request capped to cpus={cpus:g} memory={memory_gb:g}GB")
        return ResourceRequest(cpus=cpus, memory_gb=memory_gb, time_minutes=scaled.time_minutes)

    def should_retry(self, attempt: int, error_code: ErrorCode) -> bool:
        return attempt < self.max_attempts
