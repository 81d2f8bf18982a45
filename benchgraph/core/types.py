"""Core data models for the benchmark task graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from benchgraph.common import EntityKind, ErrorCode, StageKind, UnitStatus

from .naming import format_key, make_key


@dataclass(frozen=True)
class EntityRef:
    kind: EntityKind
    task: str
    name: str

    def __post_init__(self) -> None:
        make_key(self.task, self.name)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.task}.{self.name}"


@dataclass(frozen=True)
class ResolvedUnit:
    """An entity together with the container image and content hash it runs with."""

    ref: EntityRef
    image: str
    hash: str

    @property
    def kind(self) -> EntityKind:
        return self.ref.kind

    @property
    def task(self) -> str:
        return self.ref.task

    @property
    def name(self) -> str:
        return self.ref.name

    def __str__(self) -> str:
        return str(self.ref)


@dataclass(frozen=True)
class Artifact:
    key: Tuple[str, ...]
    path: Path

    @property
    def composite_key(self) -> str:
        return format_key(self.key)


@dataclass(frozen=True)
class ResourceRequest:
    """Resources requested from the isolation backend for one attempt."""

    cpus: float = 1.0
    memory_gb: float = 4.0
    time_minutes: float = 60.0

    def scaled(self, attempt: int) -> "ResourceRequest":
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        return ResourceRequest(
            cpus=self.cpus * attempt,
            memory_gb=self.memory_gb * attempt,
            time_minutes=self.time_minutes * attempt,
        )

    @property
    def timeout_seconds(self) -> float:
        return self.time_minutes * 60.0

    def to_dict(self) -> Dict[str, float]:
        return {"cpus": self.cpus, "memory_gb": self.memory_gb, "time_minutes": self.time_minutes}


def _check_unit(unit: ResolvedUnit, kind: EntityKind, task: str) -> None:
    if unit.kind is not kind:
        raise ValueError(f"Expected a {kind.value} unit, got {unit}")
    if unit.task != task:
        raise ValueError(f"Unit {unit} does not belong to task '{task}'")


def _check_artifact(artifact: Artifact, key: Tuple[str, ...]) -> None:
    if artifact.key != key:
        raise ValueError(f"Artifact key {artifact.key} does not match record key {key}")


@dataclass(frozen=True)
class DatasetRecord:
    """Output of the load stage, keyed by (task, dataset)."""

    task: str
    dataset: ResolvedUnit
    artifact: Artifact

    def __post_init__(self) -> None:
        _check_unit(self.dataset, EntityKind.DATASET, self.task)
        _check_artifact(self.artifact, self.key)

    @property
    def key(self) -> Tuple[str, ...]:
        return make_key(self.task, self.dataset.name)


@dataclass(frozen=True)
class MethodRecord:
    """Output of the run stage, keyed by (task, dataset, method)."""

    task: str
    dataset: ResolvedUnit
    method: ResolvedUnit
    artifact: Artifact

    def __post_init__(self) -> None:
        _check_unit(self.dataset, EntityKind.DATASET, self.task)
        _check_unit(self.method, EntityKind.METHOD, self.task)
        _check_artifact(self.artifact, self.key)

    @property
    def key(self) -> Tuple[str, ...]:
        return make_key(self.task, self.dataset.name, self.method.name)


@dataclass(frozen=True)
class MetricRecord:
    """Output of the evaluate stage, keyed by (task, dataset, method, metric)."""

    task: str
    dataset: ResolvedUnit
    method: ResolvedUnit
    metric: ResolvedUnit
    artifact: Artifact
    value: Optional[str] = None

    def __post_init__(self) -> None:
        _check_unit(self.dataset, EntityKind.DATASET, self.task)
        _check_unit(self.method, EntityKind.METHOD, self.task)
        _check_unit(self.metric, EntityKind.METRIC, self.task)
        _check_artifact(self.artifact, self.key)

    @property
    def key(self) -> Tuple[str, ...]:
        return make_key(self.task, self.dataset.name, self.method.name, self.metric.name)

    def hashes(self) -> Dict[str, str]:
        return {
            "dataset": self.dataset.hash,
            "method": self.method.hash,
            "metric": self.metric.hash,
        }


@dataclass(frozen=True)
class UnitResult:
    """Immutable outcome of executing one unit (after retries)."""

    stage: StageKind
    key: Tuple[str, ...]
    status: UnitStatus
    attempts: int
    image: str
    hash: str
    artifact: Optional[Artifact] = None
    error_code: Optional[ErrorCode] = None
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status is UnitStatus.COMPLETED

    @property
    def composite_key(self) -> str:
        return format_key(self.key)


@dataclass(frozen=True)
class Failure:
    """A listing or resolution failure recorded against a graph position."""

    phase: str
    key: Tuple[str, ...]
    error_code: ErrorCode
    message: str

    @property
    def composite_key(self) -> str:
        return format_key(self.key)
