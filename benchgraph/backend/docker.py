"""Backend that runs each attempt in a throwaway container."""

from __future__ import annotations

import logging
import re
import uuid
from typing import List

from benchgraph.utils.process import ProcessOutcome, run_process

from .base import ExecutionRequest, IsolationBackend

logger = logging.getLogger("benchgraph.worker.docker")

_NAME_UNSAFE = re.compile(r"[^a-zA-Z0-9_.-]+")


class DockerBackend(IsolationBackend):
    name = "docker"

    def __init__(self, docker_command: str = "docker"):
        self.docker_command = docker_command

    def container_name(self, request: ExecutionRequest) -> str:
        label = _NAME_UNSAFE.sub("-", request.label).strip("-.") or "unit"
        return f"benchgraph-{label[:80]}-a{request.attempt}-{uuid.uuid4().hex[:8]}"

    def build_argv(self, request: ExecutionRequest, container_name: str) -> List[str]:
        workdir = str(request.workdir.resolve())
        argv = [
            self.docker_command,
            "run",
            "--rm",
            "--name",
            container_name,
            "--cpus",
            f"{request.resources.cpus:g}",
            "--memory",
            f"{int(request.resources.memory_gb * 1024)}m",
            "-v",
            f"{workdir}:{workdir}",
            "-w",
            workdir,
        ]
        for mount in request.mounts:
            path = str(mount)
            argv.extend(["-v", f"{path}:{path}:ro"])
        for key, value in request.environment().items():
            argv.extend(["-e", f"{key}={value}"])
        argv.append(request.image)
        argv.extend(request.argv)
        return argv

    async def execute(self, request: ExecutionRequest) -> ProcessOutcome:
        request.workdir.mkdir(parents=True, exist_ok=True)
        container_name = self.container_name(request)
        argv = self.build_argv(request, container_name)
        logger.debug(f"[{request.label}] attempt {request.attempt} in {request.image} as {container_name}")
        outcome = await run_process(argv, timeout=request.resources.timeout_seconds)
        if outcome.timed_out:
            # killing the client does not stop the container
            kill = await run_process([self.docker_command, "kill", container_name], timeout=60)
            if not kill.ok:
                logger.warning(f"[{request.label}] could not kill {container_name}: {kill.describe()}")
        if outcome.returncode == 137 and not outcome.timed_out:
            logger.info(f"[{request.label}] container {container_name} was killed (exit 137), likely out of memory")
        return outcome
