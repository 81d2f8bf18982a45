"""Async subprocess helpers shared by collaborators and isolation backends."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence

logger = logging.getLogger("benchgraph.process")

# Captured output is truncated to this many characters per stream.
MAX_CAPTURE_CHARS = 64 * 1024

# Seconds a timed-out process group gets between SIGTERM and SIGKILL.
KILL_GRACE_SECONDS = 5.0


@dataclass(frozen=True)
class ProcessOutcome:
    returncode: Optional[int]
    stdout: str
    stderr: str
    timed_out: bool = False
    duration: float = 0.0
    start_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out and self.start_error is None

    def describe(self) -> str:
        if self.start_error:
            return f"could not start: {self.start_error}"
        if self.timed_out:
            return f"timed out after {self.duration:.1f}s"
        detail = (self.stderr or self.stdout).strip()
        if len(detail) > 2000:
            detail = "..." + detail[-2000:]
        return f"exit code {self.returncode}" + (f": {detail}" if detail else "")


def _signal_group(process: asyncio.subprocess.Process, sig: int) -> None:
    try:
        if hasattr(os, "killpg"):
            os.killpg(process.pid, sig)
        else:
            process.send_signal(sig)
    except (ProcessLookupError, PermissionError):
        pass


async def _kill_group(process: asyncio.subprocess.Process) -> None:
    """Terminate the process and everything it spawned, escalating to SIGKILL."""
    _signal_group(process, signal.SIGTERM)
    try:
        await asyncio.wait_for(process.wait(), timeout=KILL_GRACE_SECONDS)
    except asyncio.TimeoutError:
        logger.warning(f"Process group {process.pid} ignored SIGTERM, sending SIGKILL")
    # Descendants may outlive the leader and hold the output pipes open.
    _signal_group(process, getattr(signal, "SIGKILL", signal.SIGTERM))


def _decode(data: Optional[bytes]) -> str:
    text = (data or b"").decode("utf-8", errors="ignore")
    if len(text) > MAX_CAPTURE_CHARS:
        text = text[-MAX_CAPTURE_CHARS:]
    return text


async def run_process(
    argv: Sequence[str],
    *,
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
    env: Optional[Dict[str, str]] = None,
) -> ProcessOutcome:
    """Run ``argv`` to completion, killing it when ``timeout`` expires."""
    start_time = time.monotonic()
    full_env = None
    if env:
        full_env = dict(os.environ)
        full_env.update(env)
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=str(cwd) if cwd is not None else None,
            env=full_env,
            start_new_session=True,
        )
    except OSError as e:
        return ProcessOutcome(
            returncode=None,
            stdout="",
            stderr="",
            duration=time.monotonic() - start_time,
            start_error=str(e),
        )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Process {argv[0]} exceeded {timeout}s, killing process group {process.pid}")
        await _kill_group(process)
        stdout, stderr = await process.communicate()
        return ProcessOutcome(
            returncode=process.returncode,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            timed_out=True,
            duration=time.monotonic() - start_time,
        )
    except asyncio.CancelledError:
        await _kill_group(process)
        raise

    return ProcessOutcome(
        returncode=process.returncode,
        stdout=_decode(stdout),
        stderr=_decode(stderr),
        duration=time.monotonic() - start_time,
    )
