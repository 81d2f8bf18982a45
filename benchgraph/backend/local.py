"""Backend that runs commands as local subprocesses."""

from __future__ import annotations

import logging

from benchgraph.utils.process import ProcessOutcome, run_process

from .base import ExecutionRequest, IsolationBackend

logger = logging.getLogger("benchgraph.worker.local")


class LocalBackend(IsolationBackend):
    """Runs each attempt in its own working directory on the host.

    The image is recorded but not used; the collaborator is expected to be
    installed locally. Resource requests are exported as environment variables
    and the time budget is enforced as a timeout.
    """

    name = "local"

    async def execute(self, request: ExecutionRequest) -> ProcessOutcome:
        request.workdir.mkdir(parents=True, exist_ok=True)
        logger.debug(
            f"[{request.label}] attempt {request.attempt} locally (image {request.image} ignored)"
        )
        return await run_process(
            request.argv,
            cwd=request.workdir,
            timeout=request.resources.timeout_seconds,
            env=request.environment(),
        )
