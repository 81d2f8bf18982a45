"""Collaborator backed by an external command-line program."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from benchgraph.common import EntityKind, StageKind
from benchgraph.errors import CollaboratorError
from benchgraph.utils.process import run_process

from .base import Collaborator

logger = logging.getLogger("benchgraph.collaborator")

# Number of input artifacts each stage consumes.
STAGE_INPUTS = {
    StageKind.LOAD: 0,
    StageKind.RUN: 1,
    StageKind.EVALUATE: 1,
}


class CommandCollaborator(Collaborator):
    """Talks to ``<command> tasks|list|image|hash|load|run|evaluate ...``."""

    name = "command"

    def __init__(self, argv: Sequence[str], test_mode: bool = False, timeout: Optional[float] = 120.0):
        if not argv:
            raise ValueError("CommandCollaborator needs a command")
        self.argv = list(argv)
        self.test_mode = test_mode
        self.timeout = timeout

    async def _query(self, *args: str) -> str:
        argv = self.argv + list(args)
        outcome = await run_process(argv, timeout=self.timeout)
        if not outcome.ok:
            raise CollaboratorError(
                argv,
                f"'{' '.join(argv)}' failed: {outcome.describe()}",
                returncode=outcome.returncode,
                stderr=outcome.stderr,
            )
        logger.debug(f"'{' '.join(argv)}' finished in {outcome.duration:.2f}s")
        return outcome.stdout

    async def list_tasks(self) -> str:
        return await self._query("tasks")

    async def list_entities(self, kind: EntityKind, task: str) -> str:
        return await self._query("list", kind.value, task)

    async def image(self, kind: EntityKind, task: str, name: str) -> str:
        return await self._query("image", kind.value, task, name)

    async def hash(self, kind: EntityKind, task: str, name: str) -> str:
        return await self._query("hash", kind.value, task, name)

    def stage_command(
        self,
        stage: StageKind,
        task: str,
        name: str,
        inputs: Sequence[Path],
        output: Path,
    ) -> List[str]:
        expected = STAGE_INPUTS[stage]
        if len(inputs) != expected:
            raise ValueError(f"{stage.value} takes {expected} input artifact(s), got {len(inputs)}")
        argv = self.argv + [stage.value]
        if self.test_mode:
            argv.append("--test")
        argv.append(task)
        argv.extend(str(path) for path in inputs)
        argv.extend([name, str(output)])
        return argv
