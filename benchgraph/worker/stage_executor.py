"""
Stage executor: runs one stage command for one resolved unit.

Each attempt runs through an isolation backend keyed by the unit's image, in
a working directory of its own:

    <work_root>/<run_id>/<stage>/<composite key>/attempt-<n>/

so concurrent units, and successive attempts of one unit, never share mutable
files. A failed attempt is retried with resources scaled by the attempt
number. A successful attempt's declared output is published through the
output layout and becomes the unit's artifact.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple

from benchgraph.backend import ExecutionRequest, IsolationBackend, mount_points
from benchgraph.collaborator import Collaborator
from benchgraph.common import STAGE_FOR_KIND, ErrorCode, StageKind, UnitStatus
from benchgraph.core.naming import artifact_filename, format_key
from benchgraph.core.types import Artifact, ResolvedUnit, ResourceRequest, UnitResult
from benchgraph.errors import ExecutionError
from benchgraph.storage import OutputLayout
from benchgraph.utils.error_classifier import classify_error

from .retry_policy import RetryPolicy

logger = logging.getLogger("benchgraph.worker")


class StageExecutor:
    def __init__(
        self,
        collaborator: Collaborator,
        backend: IsolationBackend,
        layout: OutputLayout,
        work_root: Path,
        base_resources: Callable[[StageKind], ResourceRequest],
        policy: Optional[RetryPolicy] = None,
        max_concurrency: int = 4,
        keep_work_dirs: bool = False,
        run_id: str = "run",
    ):
        self.collaborator = collaborator
        self.backend = backend
        self.layout = layout
        self.work_root = Path(work_root)
        self.base_resources = base_resources
        self.policy = policy or RetryPolicy()
        self.keep_work_dirs = keep_work_dirs
        self.run_id = run_id
        self._semaphore = asyncio.Semaphore(max_concurrency)

    def unit_dir(self, stage: StageKind, key: Sequence[str]) -> Path:
        return self.work_root / self.run_id / stage.value / format_key(key)

    async def execute(
        self,
        unit: ResolvedUnit,
        stage: StageKind,
        inputs: Sequence[Artifact],
        key: Sequence[str],
    ) -> Artifact:
        """Run ``stage`` for ``unit``; raises ``ExecutionError`` once attempts are exhausted."""
        artifact, _ = await self._execute_with_retries(unit, stage, inputs, tuple(key))
        return artifact

    async def run_unit(
        self,
        unit: ResolvedUnit,
        stage: StageKind,
        inputs: Sequence[Artifact],
        key: Sequence[str],
    ) -> UnitResult:
        """Like ``execute`` but returns an immutable result instead of raising."""
        key = tuple(key)
        try:
            artifact, attempts = await self._execute_with_retries(unit, stage, inputs, key)
        except ExecutionError as e:
            resources = self.policy.resources_for(self.base_resources(stage), max(e.attempt, 1))
            return UnitResult(
                stage=stage,
                key=key,
                status=UnitStatus.FAILED,
                attempts=e.attempt,
                image=unit.image,
                hash=unit.hash,
                error_code=e.error_code,
                error_message=e.cause,
                metadata={"resources": resources.to_dict()},
            )
        except Exception as e:
            # An unexpected error fails this unit only; sibling units keep running.
            logger.error(f"[{stage.value}:{format_key(key)}] unexpected error: {type(e).__name__}: {e}")
            return UnitResult(
                stage=stage,
                key=key,
                status=UnitStatus.FAILED,
                attempts=0,
                image=unit.image,
                hash=unit.hash,
                error_code=ErrorCode.SYSTEM_ERROR,
                error_message=f"{type(e).__name__}: {e}",
            )
        resources = self.policy.resources_for(self.base_resources(stage), attempts)
        return UnitResult(
            stage=stage,
            key=key,
            status=UnitStatus.COMPLETED,
            attempts=attempts,
            image=unit.image,
            hash=unit.hash,
            artifact=artifact,
            metadata={"resources": resources.to_dict()},
        )

    async def _execute_with_retries(
        self,
        unit: ResolvedUnit,
        stage: StageKind,
        inputs: Sequence[Artifact],
        key: Tuple[str, ...],
    ) -> Tuple[Artifact, int]:
        if STAGE_FOR_KIND[unit.kind] is not stage:
            raise ValueError(f"{unit} cannot run in the {stage.value} stage")

        label = f"{stage.value}:{format_key(key)}"
        base = self.base_resources(stage)
        unit_dir = self.unit_dir(stage, key)
        cause = "not attempted"
        error_code = ErrorCode.UNKNOWN_ERROR
        attempt = 0

        for attempt in self.policy.attempts():
            resources = self.policy.resources_for(base, attempt)
            workdir = unit_dir / f"attempt-{attempt}"
            if workdir.exists():
                shutil.rmtree(workdir)
            workdir.mkdir(parents=True)
            output = workdir / artifact_filename(stage, key)

            argv = self.collaborator.stage_command(
                stage,
                unit.task,
                unit.name,
                [artifact.path for artifact in inputs],
                output,
            )
            request = ExecutionRequest(
                label=label,
                image=unit.image,
                argv=tuple(argv),
                workdir=workdir,
                resources=resources,
                attempt=attempt,
                mounts=mount_points([artifact.path for artifact in inputs]),
            )

            logger.info(
                f"[{label}] attempt {attempt}/{self.policy.max_attempts} "
                f"cpus={resources.cpus:g} memory={resources.memory_gb:g}GB time={resources.time_minutes:g}m"
            )
            start = time.monotonic()
            async with self._semaphore:
                outcome = await self.backend.execute(request)
            elapsed = time.monotonic() - start

            if outcome.ok and output.is_file():
                artifact = await asyncio.to_thread(self.layout.publish, stage, key, output)
                logger.info(f"[{label}] completed on attempt {attempt} in {elapsed:.1f}s")
                if not self.keep_work_dirs:
                    await asyncio.to_thread(shutil.rmtree, unit_dir, True)
                return artifact, attempt

            if outcome.ok:
                cause = f"declared output missing: {output.name}"
                error_code = ErrorCode.OUTPUT_ERROR
            else:
                cause = outcome.describe()
                error_code = classify_error(cause, outcome.returncode, outcome.timed_out)
            logger.warning(f"[{label}] attempt {attempt} failed ({error_code.value}): {cause}")

            if not self.policy.should_retry(attempt, error_code):
                break
            if self.policy.delay_seconds > 0:
                await asyncio.sleep(self.policy.delay_seconds)

        logger.error(f"[{label}] giving up after {attempt} attempt(s)")
        raise ExecutionError(unit, attempt, cause, error_code)
