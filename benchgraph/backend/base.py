"""Isolation backend abstraction (run one command inside one image)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Sequence, Tuple

from benchgraph.core.types import ResourceRequest
from benchgraph.utils.process import ProcessOutcome


@dataclass(frozen=True)
class ExecutionRequest:
    """One attempt of one unit, as handed to a backend."""

    label: str
    image: str
    argv: Tuple[str, ...]
    workdir: Path
    resources: ResourceRequest
    attempt: int = 1
    mounts: Tuple[Path, ...] = field(default_factory=tuple)

    def environment(self) -> Dict[str, str]:
        return {
            "BENCHGRAPH_ATTEMPT": str(self.attempt),
            "BENCHGRAPH_CPUS": f"{self.resources.cpus:g}",
            "BENCHGRAPH_MEMORY_GB": f"{self.resources.memory_gb:g}",
            "BENCHGRAPH_TIME_MINUTES": f"{self.resources.time_minutes:g}",
        }


class IsolationBackend(ABC):
    name: str = "unknown"

    @abstractmethod
    async def execute(self, request: ExecutionRequest) -> ProcessOutcome:
        """Run ``request.argv`` in ``request.image`` and return its outcome."""

    async def close(self) -> None:
        """Optional cleanup hook."""


def mount_points(paths: Sequence[Path]) -> Tuple[Path, ...]:
    """Directories that must be visible for ``paths`` to be readable, deduplicated."""
    seen = []
    for path in paths:
        parent = Path(path).resolve().parent
        if parent not in seen:
            seen.append(parent)
    return tuple(seen)
