"""Tests for subprocess handling, collaborators and isolation backends."""

import asyncio
import sys
import time
from pathlib import Path

import pytest

from benchgraph.backend import DockerBackend, ExecutionRequest, LocalBackend, get_backend, list_backends
from benchgraph.collaborator import CommandCollaborator
from benchgraph.common import EntityKind, StageKind
from benchgraph.core import ResourceRequest
from benchgraph.errors import CollaboratorError
from benchgraph.utils import run_process


def _request(tmp_path, argv, time_minutes=1.0, attempt=2, mounts=()):
    return ExecutionRequest(
        label="load:taskA.d1",
        image="registry.local/taskA/d1:latest",
        argv=tuple(argv),
        workdir=tmp_path / "attempt-2",
        resources=ResourceRequest(cpus=2.0, memory_gb=1.5, time_minutes=time_minutes),
        attempt=attempt,
        mounts=tuple(mounts),
    )


# ============================================================================
# Subprocesses
# ============================================================================


def test_run_process_captures_output():
    outcome = asyncio.run(run_process([sys.executable, "-c", "import sys; print('hi'); sys.exit(3)"]))
    assert outcome.returncode == 3
    assert outcome.stdout.strip() == "hi"
    assert not outcome.ok
    assert outcome.describe().startswith("exit code 3")


def test_run_process_reports_missing_executable():
    outcome = asyncio.run(run_process(["benchgraph-no-such-program"]))
    assert outcome.start_error
    assert outcome.describe().startswith("could not start")


def test_run_process_kills_on_timeout():
    outcome = asyncio.run(run_process([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5))
    assert outcome.timed_out
    assert not outcome.ok


@pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX process groups")
def test_run_process_timeout_kills_grandchildren():
    # The shell forks sleep, which inherits the output pipes.
    start = time.monotonic()
    outcome = asyncio.run(run_process(["sh", "-c", "sleep 6; echo done"], timeout=1))
    elapsed = time.monotonic() - start

    assert outcome.timed_out
    assert elapsed < 4
    assert "done" not in outcome.stdout


# ============================================================================
# Command collaborator
# ============================================================================


def test_stage_commands_follow_collaborator_interface(tmp_path):
    collaborator = CommandCollaborator(["bench-cli"], test_mode=True)
    dataset_file = tmp_path / "taskA.d1.dataset.h5ad"
    output = tmp_path / "out.h5ad"

    assert collaborator.stage_command(StageKind.LOAD, "taskA", "d1", [], output) == [
        "bench-cli", "load", "--test", "taskA", "d1", str(output),
    ]
    assert collaborator.stage_command(StageKind.RUN, "taskA", "m1", [dataset_file], output) == [
        "bench-cli", "run", "--test", "taskA", str(dataset_file), "m1", str(output),
    ]
    with pytest.raises(ValueError):
        collaborator.stage_command(StageKind.EVALUATE, "taskA", "acc", [], output)


def test_command_collaborator_queries_and_errors():
    script = (
        "import sys\n"
        "args = sys.argv[1:]\n"
        "if args[0] == 'list': print('d1'); print('d2')\n"
        "elif args[0] == 'image': print('img/' + args[3])\n"
        "else: sys.exit(2)\n"
    )
    collaborator = CommandCollaborator([sys.executable, "-c", script], timeout=30)

    async def scenario():
        listing = await collaborator.list_entities(EntityKind.DATASET, "taskA")
        image = await collaborator.image(EntityKind.DATASET, "taskA", "d1")
        with pytest.raises(CollaboratorError) as exc_info:
            await collaborator.hash(EntityKind.DATASET, "taskA", "d1")
        return listing, image, exc_info.value

    listing, image, error = asyncio.run(scenario())
    assert listing.split() == ["d1", "d2"]
    assert image.strip() == "img/d1"
    assert error.returncode == 2


# ============================================================================
# Isolation backends
# ============================================================================


def test_backend_registry():
    assert set(list_backends()) == {"local", "docker"}
    assert isinstance(get_backend("docker", docker_command="podman"), DockerBackend)
    with pytest.raises(KeyError):
        get_backend("slurm")


def test_local_backend_runs_in_workdir_with_resource_env(tmp_path):
    script = "import os; open('out.txt', 'w').write(os.environ['BENCHGRAPH_ATTEMPT'] + ' ' + os.environ['BENCHGRAPH_CPUS'])"
    request = _request(tmp_path, [sys.executable, "-c", script])

    outcome = asyncio.run(LocalBackend().execute(request))

    assert outcome.ok
    assert (request.workdir / "out.txt").read_text() == "2 2"


def test_local_backend_enforces_time_budget(tmp_path):
    request = _request(tmp_path, [sys.executable, "-c", "import time; time.sleep(30)"], time_minutes=0.01)
    outcome = asyncio.run(LocalBackend().execute(request))
    assert outcome.timed_out


def test_docker_argv_carries_limits_and_mounts(tmp_path):
    mount = tmp_path / "datasets"
    request = _request(tmp_path, ["bench-cli", "load", "taskA", "d1", "out.h5ad"], mounts=[mount])
    backend = DockerBackend(docker_command="podman")

    argv = backend.build_argv(request, "benchgraph-test")

    assert argv[:5] == ["podman", "run", "--rm", "--name", "benchgraph-test"]
    assert argv[argv.index("--cpus") + 1] == "2"
    assert argv[argv.index("--memory") + 1] == "1536m"
    assert f"{mount}:{mount}:ro" in argv
    assert "BENCHGRAPH_ATTEMPT=2" in argv
    image_index = argv.index("registry.local/taskA/d1:latest")
    assert argv[image_index + 1:] == ["bench-cli", "load", "taskA", "d1", "out.h5ad"]
    assert backend.container_name(request).startswith("benchgraph-load-taskA.d1-a2-")
