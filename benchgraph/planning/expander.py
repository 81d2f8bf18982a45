"""Graph expansion: task names -> entity references per kind."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from benchgraph.collaborator import Collaborator
from benchgraph.common import EntityKind, ErrorCode
from benchgraph.core.channel import Channel
from benchgraph.core.naming import check_key_component
from benchgraph.core.types import EntityRef, Failure
from benchgraph.errors import BenchGraphError, ListingError

logger = logging.getLogger("benchgraph.expander")


def parse_listing(text: str) -> List[str]:
    """Split newline-delimited collaborator output into names.

    Blank lines and surrounding whitespace are ignored. A name listed twice, or
    one containing whitespace, a key separator or a path separator, is treated
    as malformed output.
    """
    if text is None:
        raise ValueError("listing output is missing")
    names: List[str] = []
    seen = set()
    for line in text.splitlines():
        name = line.strip()
        if not name:
            continue
        if name in seen:
            raise ValueError(f"duplicate name '{name}' in listing")
        if any(ch.isspace() for ch in name):
            raise ValueError(f"name '{name}' contains whitespace")
        check_key_component(name)
        seen.add(name)
        names.append(name)
    return names


@dataclass
class ExpansionResult:
    kind: EntityKind
    refs: List[EntityRef] = field(default_factory=list)
    failures: List[Failure] = field(default_factory=list)

    def tasks(self) -> List[str]:
        return list(dict.fromkeys(ref.task for ref in self.refs))


def listing_failure(error: ListingError) -> Failure:
    kind = error.kind.value if isinstance(error.kind, EntityKind) else str(error.kind)
    key = (error.task, kind) if error.task else (f"{kind}s",)
    return Failure(
        phase="listing",
        key=key,
        error_code=ErrorCode.LISTING_ERROR,
        message=error.cause,
    )


class GraphExpander:
    """Lists the children of each task through the collaborator.

    Each task is listed independently; a failure for one task is reported and
    does not stop the others.
    """

    def __init__(self, collaborator: Collaborator, max_concurrency: int = 16):
        self.collaborator = collaborator
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def list_tasks(self) -> List[str]:
        try:
            text = await self.collaborator.list_tasks()
            return parse_listing(text)
        except (BenchGraphError, ValueError) as e:
            raise ListingError("task", None, str(e)) from e

    async def list_children(self, task: str, kind: EntityKind) -> List[EntityRef]:
        """Refs for the ``kind`` children of one task, in listing order."""
        async with self._semaphore:
            try:
                text = await self.collaborator.list_entities(kind, task)
                names = parse_listing(text)
            except (BenchGraphError, ValueError) as e:
                raise ListingError(kind, task, str(e)) from e
        if not names:
            logger.info(f"Task {task} has no {kind.value}s")
        return [EntityRef(kind=kind, task=task, name=name) for name in names]

    async def expand(self, task_names: Sequence[str], kind: EntityKind) -> ExpansionResult:
        """List every task concurrently; refs keep task order, then listing order."""
        outcomes = await asyncio.gather(
            *(self.list_children(task, kind) for task in task_names),
            return_exceptions=True,
        )
        result = ExpansionResult(kind=kind)
        for task, outcome in zip(task_names, outcomes):
            if isinstance(outcome, ListingError):
                logger.error(str(outcome))
                result.failures.append(listing_failure(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.refs.extend(outcome)
        logger.info(
            f"Expanded {len(task_names)} task(s) into {len(result.refs)} {kind.value}(s), "
            f"{len(result.failures)} listing failure(s)"
        )
        return result

    async def expand_all(self, task_names: Sequence[str]) -> Dict[EntityKind, ExpansionResult]:
        """Run the dataset, method and metric expansions concurrently."""
        kinds = list(EntityKind)
        results = await asyncio.gather(*(self.expand(task_names, kind) for kind in kinds))
        return dict(zip(kinds, results))

    async def stream(
        self,
        task_names: Sequence[str],
        kind: EntityKind,
        sink: Channel,
        failures: Optional[List[Failure]] = None,
    ) -> None:
        """Push refs into ``sink`` as each task's listing completes, then close it."""

        async def _one(task: str) -> None:
            try:
                refs = await self.list_children(task, kind)
            except ListingError as e:
                logger.error(str(e))
                if failures is not None:
                    failures.append(listing_failure(e))
                return
            for ref in refs:
                await sink.put(ref)

        try:
            await asyncio.gather(*(_one(task) for task in task_names))
        finally:
            sink.close()
