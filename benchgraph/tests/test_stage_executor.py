"""Tests for retry policy and stage execution."""

import asyncio
from pathlib import Path

import pytest

from benchgraph.common import EntityKind, ErrorCode, StageKind, UnitStatus
from benchgraph.core import Artifact, EntityRef, ResolvedUnit, ResourceRequest
from benchgraph.errors import ExecutionError
from benchgraph.storage import OutputLayout
from benchgraph.tests.helpers import FakeBackend, FakeCollaborator
from benchgraph.worker import RetryPolicy, StageExecutor

BASE = ResourceRequest(cpus=2.0, memory_gb=8.0, time_minutes=30.0)


def _unit(kind, name, task="taskA"):
    return ResolvedUnit(ref=EntityRef(kind=kind, task=task, name=name), image=f"img/{name}", hash=f"h-{name}")


def _executor(tmp_path, backend, policy=None, keep_work_dirs=False):
    return StageExecutor(
        FakeCollaborator({}),
        backend,
        OutputLayout(tmp_path / "results"),
        tmp_path / "work",
        base_resources=lambda stage: BASE,
        policy=policy,
        keep_work_dirs=keep_work_dirs,
        run_id="test-run",
    )


# ============================================================================
# Retry policy
# ============================================================================


def test_retry_policy_scales_and_caps_resources():
    policy = RetryPolicy(max_attempts=3, max_cpus=5.0)
    assert list(policy.attempts()) == [1, 2, 3]

    second = policy.resources_for(BASE, 2)
    assert (second.cpus, second.memory_gb, second.time_minutes) == (4.0, 16.0, 60.0)

    third = policy.resources_for(BASE, 3)
    assert third.cpus == 5.0
    assert third.memory_gb == 24.0

    assert policy.should_retry(2, ErrorCode.RUNTIME_ERROR)
    assert not policy.should_retry(3, ErrorCode.RUNTIME_ERROR)


def test_retry_policy_needs_one_attempt():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


# ============================================================================
# Stage executor
# ============================================================================


def test_fail_fail_succeed_takes_three_attempts(tmp_path):
    backend = FakeBackend(failures={"load:taskA.d1": 2})

    async def scenario():
        executor = _executor(tmp_path, backend)
        return await executor.run_unit(_unit(EntityKind.DATASET, "d1"), StageKind.LOAD, [], ("taskA", "d1"))

    result = asyncio.run(scenario())
    assert result.status is UnitStatus.COMPLETED
    assert result.attempts == 3
    assert result.metadata["resources"] == {"cpus": 6.0, "memory_gb": 24.0, "time_minutes": 90.0}
    assert result.artifact.path == tmp_path / "results" / "datasets" / "taskA.d1.dataset.h5ad"
    assert result.artifact.path.is_file()

    requests = backend.requests_for("load:taskA.d1")
    assert [r.attempt for r in requests] == [1, 2, 3]
    assert [r.resources.cpus for r in requests] == [2.0, 4.0, 6.0]
    assert [r.resources.memory_gb for r in requests] == [8.0, 16.0, 24.0]
    assert [r.resources.time_minutes for r in requests] == [30.0, 60.0, 90.0]
    # every attempt gets its own working directory
    assert len({r.workdir for r in requests}) == 3
    assert not (tmp_path / "work" / "test-run" / "load" / "taskA.d1").exists()


def test_exhausted_attempts_raise_execution_error(tmp_path):
    backend = FakeBackend(failures={"run:taskA.d1.m1": 3})
    dataset_file = tmp_path / "in.h5ad"
    dataset_file.write_text("data")
    inputs = [Artifact(("taskA", "d1"), dataset_file)]

    async def scenario():
        executor = _executor(tmp_path, backend)
        await executor.execute(_unit(EntityKind.METHOD, "m1"), StageKind.RUN, inputs, ("taskA", "d1", "m1"))

    with pytest.raises(ExecutionError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.attempt == 3
    assert exc_info.value.error_code is ErrorCode.RUNTIME_ERROR
    assert "crashed" in exc_info.value.cause
    assert not (tmp_path / "results" / "methods" / "taskA.d1.m1.method.h5ad").exists()
    assert len(backend.requests_for("run:taskA.d1.m1")) == 3


def test_run_unit_reports_failure_without_raising(tmp_path):
    backend = FakeBackend(silent={"load:taskA.d1"})

    async def scenario():
        executor = _executor(tmp_path, backend, policy=RetryPolicy(max_attempts=2), keep_work_dirs=True)
        return await executor.run_unit(_unit(EntityKind.DATASET, "d1"), StageKind.LOAD, [], ("taskA", "d1"))

    result = asyncio.run(scenario())
    assert result.status is UnitStatus.FAILED
    assert result.attempts == 2
    assert result.artifact is None
    assert result.error_code is ErrorCode.OUTPUT_ERROR
    assert (tmp_path / "work" / "test-run" / "load" / "taskA.d1" / "attempt-2").is_dir()


def test_stage_command_receives_input_artifacts(tmp_path):
    backend = FakeBackend()
    method_file = tmp_path / "taskA.d1.m1.method.h5ad"
    method_file.write_text("predictions")
    inputs = [Artifact(("taskA", "d1", "m1"), method_file)]

    async def scenario():
        executor = _executor(tmp_path, backend)
        return await executor.run_unit(
            _unit(EntityKind.METRIC, "acc"), StageKind.EVALUATE, inputs, ("taskA", "d1", "m1", "acc")
        )

    result = asyncio.run(scenario())
    request = backend.requests[0]
    assert request.image == "img/acc"
    assert request.argv[:4] == ("fake", "evaluate", "taskA", str(method_file))
    assert request.argv[4] == "acc"
    assert request.mounts == (method_file.resolve().parent,)
    assert result.artifact.path.read_text().strip() == "0.9"


def test_unit_kind_must_match_stage(tmp_path):
    async def scenario():
        executor = _executor(tmp_path, FakeBackend())
        await executor.execute(_unit(EntityKind.METHOD, "m1"), StageKind.LOAD, [], ("taskA", "m1"))

    with pytest.raises(ValueError):
        asyncio.run(scenario())


class _BrokenBackend(FakeBackend):
    async def execute(self, request):
        if request.label == "load:taskA.d1":
            raise OSError(28, "No space left on device")
        return await super().execute(request)


def test_unexpected_backend_error_fails_only_that_unit(tmp_path):
    backend = _BrokenBackend()

    async def scenario():
        executor = _executor(tmp_path, backend)
        return await asyncio.gather(
            executor.run_unit(_unit(EntityKind.DATASET, "d1"), StageKind.LOAD, [], ("taskA", "d1")),
            executor.run_unit(_unit(EntityKind.DATASET, "d2"), StageKind.LOAD, [], ("taskA", "d2")),
        )

    broken, healthy = asyncio.run(scenario())
    assert broken.status is UnitStatus.FAILED
    assert broken.error_code is ErrorCode.SYSTEM_ERROR
    assert "No space left on device" in broken.error_message
    assert broken.artifact is None
    assert healthy.status is UnitStatus.COMPLETED
    assert (tmp_path / "results" / "datasets" / "taskA.d2.dataset.h5ad").is_file()
