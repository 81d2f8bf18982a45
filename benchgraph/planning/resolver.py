"""Resolution: entity reference -> container image and content hash."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Sequence, Tuple

from benchgraph.collaborator import Collaborator
from benchgraph.common import ErrorCode
from benchgraph.core.types import EntityRef, Failure, ResolvedUnit
from benchgraph.errors import BenchGraphError, ResolutionError

logger = logging.getLogger("benchgraph.resolver")


def resolution_failure(error: ResolutionError) -> Failure:
    ref: EntityRef = error.ref
    return Failure(
        phase="resolution",
        key=(ref.task, ref.kind.value, ref.name),
        error_code=ErrorCode.RESOLUTION_ERROR,
        message=error.cause,
    )


class Resolver:
    """Looks up (image, hash) for entity refs.

    A ref is looked up at most once per resolver; concurrent callers for the
    same ref share the in-flight lookup, and a later call returns the same
    ``ResolvedUnit``. Failed lookups are not memoized.
    """

    def __init__(self, collaborator: Collaborator, max_concurrency: int = 16):
        self.collaborator = collaborator
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._inflight: Dict[EntityRef, asyncio.Future] = {}

    async def _lookup(self, ref: EntityRef) -> ResolvedUnit:
        async with self._semaphore:
            image, content_hash = await asyncio.gather(
                self.collaborator.image(ref.kind, ref.task, ref.name),
                self.collaborator.hash(ref.kind, ref.task, ref.name),
                return_exceptions=True,
            )
        problems = [str(v) for v in (image, content_hash) if isinstance(v, BaseException)]
        for value in (image, content_hash):
            if isinstance(value, BaseException) and not isinstance(value, BenchGraphError):
                raise value
        if problems:
            raise ResolutionError(ref, "; ".join(problems))

        image = (image or "").strip()
        content_hash = (content_hash or "").strip()
        if not image:
            raise ResolutionError(ref, "image lookup returned nothing")
        if not content_hash:
            raise ResolutionError(ref, "hash lookup returned nothing")
        return ResolvedUnit(ref=ref, image=image, hash=content_hash)

    async def resolve(self, ref: EntityRef) -> ResolvedUnit:
        future = self._inflight.get(ref)
        if future is None:
            future = asyncio.ensure_future(self._lookup(ref))
            self._inflight[ref] = future
        try:
            unit = await asyncio.shield(future)
        except ResolutionError:
            self._inflight.pop(ref, None)
            raise
        logger.debug(f"Resolved {ref} -> image={unit.image} hash={unit.hash}")
        return unit

    async def resolve_many(self, refs: Sequence[EntityRef]) -> Tuple[List[ResolvedUnit], List[Failure]]:
        """Resolve all refs concurrently; failures exclude only the failing ref."""
        outcomes = await asyncio.gather(*(self.resolve(ref) for ref in refs), return_exceptions=True)
        units: List[ResolvedUnit] = []
        failures: List[Failure] = []
        for outcome in outcomes:
            if isinstance(outcome, ResolutionError):
                logger.error(str(outcome))
                failures.append(resolution_failure(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                units.append(outcome)
        return units, failures
