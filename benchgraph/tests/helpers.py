"""In-memory collaborator and backend used by the test suite."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from benchgraph.backend import ExecutionRequest, IsolationBackend
from benchgraph.collaborator import Collaborator
from benchgraph.common import EntityKind, StageKind
from benchgraph.config import load_settings
from benchgraph.errors import CollaboratorError
from benchgraph.notify import Notifier
from benchgraph.utils.process import ProcessOutcome


class FakeCollaborator(Collaborator):
    """Answers listings and lookups from a nested dict.

    ``graph`` maps task -> kind value -> names. Entries in ``failing_listings``
    ((kind, task), or ("task", None) for the task listing) and
    ``failing_lookups`` ((kind, task, name)) raise ``CollaboratorError``.
    """

    name = "fake"

    def __init__(
        self,
        graph: Dict[str, Dict[str, List[str]]],
        failing_listings: Optional[Set[Tuple[str, Optional[str]]]] = None,
        failing_lookups: Optional[Set[Tuple[str, str, str]]] = None,
    ):
        self.graph = graph
        self.failing_listings = failing_listings or set()
        self.failing_lookups = failing_lookups or set()
        self.calls: Counter = Counter()

    def _fail(self, what: str) -> None:
        raise CollaboratorError(["fake", what], f"fake collaborator refused {what}", returncode=1)

    async def list_tasks(self) -> str:
        self.calls["tasks"] += 1
        if ("task", None) in self.failing_listings:
            self._fail("tasks")
        return "\n".join(self.graph) + "\n"

    async def list_entities(self, kind: EntityKind, task: str) -> str:
        self.calls[("list", kind.value, task)] += 1
        if (kind.value, task) in self.failing_listings:
            self._fail(f"list {kind.value} {task}")
        return "\n".join(self.graph.get(task, {}).get(kind.value, [])) + "\n"

    async def image(self, kind: EntityKind, task: str, name: str) -> str:
        self.calls[("image", kind.value, task, name)] += 1
        if (kind.value, task, name) in self.failing_lookups:
            self._fail(f"image {kind.value} {task} {name}")
        return f"registry.local/{task}/{name}:latest\n"

    async def hash(self, kind: EntityKind, task: str, name: str) -> str:
        self.calls[("hash", kind.value, task, name)] += 1
        if (kind.value, task, name) in self.failing_lookups:
            self._fail(f"hash {kind.value} {task} {name}")
        return f"sha-{kind.value}-{task}-{name}\n"

    def stage_command(
        self,
        stage: StageKind,
        task: str,
        name: str,
        inputs: Sequence[Path],
        output: Path,
    ) -> List[str]:
        return ["fake", stage.value, task] + [str(p) for p in inputs] + [name, str(output)]


class FakeBackend(IsolationBackend):
    """Writes the declared output (the last argv element) instead of running anything.

    ``failures`` maps a request label such as ``"run:taskA.d1.m1"`` to the
    number of attempts that should fail before one succeeds. Labels in
    ``silent`` exit 0 without writing their output.
    """

    name = "fake"

    def __init__(
        self,
        failures: Optional[Dict[str, int]] = None,
        silent: Optional[Set[str]] = None,
        metric_value: str = "0.9",
    ):
        self.failures = dict(failures or {})
        self.silent = silent or set()
        self.metric_value = metric_value
        self.requests: List[ExecutionRequest] = []
        self.closed = False

    def requests_for(self, label: str) -> List[ExecutionRequest]:
        return [r for r in self.requests if r.label == label]

    async def execute(self, request: ExecutionRequest) -> ProcessOutcome:
        self.requests.append(request)
        if self.failures.get(request.label, 0) > 0:
            self.failures[request.label] -= 1
            return ProcessOutcome(returncode=1, stdout="", stderr=f"{request.label} crashed")
        if request.label in self.silent:
            return ProcessOutcome(returncode=0, stdout="", stderr="")
        output = Path(request.argv[-1])
        stage = request.argv[1]
        if stage == StageKind.EVALUATE.value:
            output.write_text(f"{self.metric_value}\n", encoding="utf-8")
        else:
            inputs = " ".join(request.argv[3:-2])
            output.write_text(f"{request.label} <- {inputs}\n", encoding="utf-8")
        return ProcessOutcome(returncode=0, stdout="", stderr="")

    async def close(self) -> None:
        self.closed = True


class RecordingNotifier(Notifier):
    name = "recording"

    def __init__(self):
        self.summaries = []
        self.closed = False

    async def notify(self, summary) -> bool:
        self.summaries.append(summary)
        return True

    async def close(self) -> None:
        self.closed = True


def make_settings(tmp_path: Path, **overrides):
    values = {
        "output_dir": str(tmp_path / "results"),
        "work_dir": str(tmp_path / "work"),
        "log_to_file": False,
    }
    values.update(overrides)
    return load_settings(**values)


TASK_A = {
    "taskA": {
        "dataset": ["d1", "d2"],
        "method": ["m1"],
        "metric": ["acc"],
    }
}
