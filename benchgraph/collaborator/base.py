"""Collaborator abstraction (listing, resolution and stage commands)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Sequence

from benchgraph.common import EntityKind, StageKind


class Collaborator(ABC):
    """The external program that knows the benchmark's tasks and entities.

    Lookups are awaited in-process. Stage commands are only described here as
    argument vectors; they are run by an isolation backend inside the unit's
    image.
    """

    name: str = "unknown"

    @abstractmethod
    async def list_tasks(self) -> str:
        """Return newline-delimited task names."""

    @abstractmethod
    async def list_entities(self, kind: EntityKind, task: str) -> str:
        """Return newline-delimited names of ``kind`` children of ``task``."""

    @abstractmethod
    async def image(self, kind: EntityKind, task: str, name: str) -> str:
        """Return the container image an entity runs in."""

    @abstractmethod
    async def hash(self, kind: EntityKind, task: str, name: str) -> str:
        """Return the content hash of an entity's definition."""

    @abstractmethod
    def stage_command(
        self,
        stage: StageKind,
        task: str,
        name: str,
        inputs: Sequence[Path],
        output: Path,
    ) -> List[str]:
        """Argument vector that runs ``stage`` for one entity and writes ``output``."""
