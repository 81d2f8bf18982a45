"""Run summary models, built once by the driver when a run finishes."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from benchgraph.common import ErrorCode, StageKind, UnitStatus
from benchgraph.core.types import Failure, UnitResult


class UnitReport(BaseModel):
    """Outcome of one executed unit."""

    stage: StageKind = Field(..., description="Stage the unit ran in")
    key: str = Field(..., description="Composite key, e.g. task.dataset.method.metric")
    status: UnitStatus = Field(..., description="Final status after retries")
    attempts: int = Field(..., ge=0, description="Execution attempts issued")
    image: str = Field(..., description="Container image of the unit")
    hash: str = Field(..., description="Content hash of the unit's definition")
    artifact: Optional[str] = Field(default=None, description="Published artifact path")
    error_code: Optional[ErrorCode] = Field(default=None)
    error_message: Optional[str] = Field(default=None)

    @classmethod
    def from_result(cls, result: UnitResult) -> "UnitReport":
        return cls(
            stage=result.stage,
            key=result.composite_key,
            status=result.status,
            attempts=result.attempts,
            image=result.image,
            hash=result.hash,
            artifact=str(result.artifact.path) if result.artifact else None,
            error_code=result.error_code,
            error_message=result.error_message,
        )


class FailureReport(BaseModel):
    """A listing or resolution failure."""

    phase: str = Field(..., description="listing or resolution")
    key: str = Field(..., description="Composite key of the failed graph position")
    error_code: ErrorCode
    message: str

    @classmethod
    def from_failure(cls, failure: Failure) -> "FailureReport":
        return cls(
            phase=failure.phase,
            key=failure.composite_key,
            error_code=failure.error_code,
            message=failure.message,
        )


class StageCounts(BaseModel):
    completed: int = 0
    failed: int = 0


class RunSummary(BaseModel):
    """Aggregated outcome of a run, written to ``summary.json`` and sent to the notifier."""

    run_id: str
    started_at: datetime
    finished_at: datetime
    test_mode: bool = False
    tasks: List[str] = Field(default_factory=list)
    units: List[UnitReport] = Field(default_factory=list)
    failures: List[FailureReport] = Field(default_factory=list)
    stages: Dict[str, StageCounts] = Field(default_factory=dict)
    metric_results: Dict[str, Optional[str]] = Field(
        default_factory=dict,
        description="Metric composite key -> metric value text",
    )

    @classmethod
    def build(
        cls,
        run_id: str,
        started_at: datetime,
        finished_at: datetime,
        tasks: Sequence[str],
        results: Sequence[UnitResult],
        failures: Sequence[Failure],
        metric_values: Optional[Dict[str, Optional[str]]] = None,
        test_mode: bool = False,
    ) -> "RunSummary":
        stages = {stage.value: StageCounts() for stage in StageKind}
        for result in results:
            counts = stages[result.stage.value]
            if result.succeeded:
                counts.completed += 1
            else:
                counts.failed += 1
        units = sorted(
            (UnitReport.from_result(r) for r in results),
            key=lambda u: (list(StageKind).index(u.stage), u.key),
        )
        return cls(
            run_id=run_id,
            started_at=started_at,
            finished_at=finished_at,
            test_mode=test_mode,
            tasks=list(tasks),
            units=units,
            failures=sorted((FailureReport.from_failure(f) for f in failures), key=lambda f: f.key),
            stages=stages,
            metric_results=dict(sorted((metric_values or {}).items())),
        )

    @property
    def failed_units(self) -> List[UnitReport]:
        return [u for u in self.units if u.status is not UnitStatus.COMPLETED]

    @property
    def success(self) -> bool:
        return not self.failures and not self.failed_units

    @property
    def status(self) -> str:
        return "succeeded" if self.success else "failed"

    def render_text(self) -> str:
        """Human-readable summary listing failed units by composite key."""
        duration = (self.finished_at - self.started_at).total_seconds()
        lines = [
            f"Run {self.run_id} {self.status} in {duration:.1f}s"
            + (" (test mode)" if self.test_mode else ""),
            f"Tasks: {', '.join(self.tasks) if self.tasks else '(none)'}",
        ]
        for stage, counts in self.stages.items():
            lines.append(f"  {stage:<9} completed={counts.completed} failed={counts.failed}")
        lines.append(f"Metric results: {len(self.metric_results)}")
        if self.failures:
            lines.append("Planning failures:")
            for failure in self.failures:
                lines.append(f"  [{failure.phase}] {failure.key}: {failure.message}")
        if self.failed_units:
            lines.append("Failed units:")
            for unit in self.failed_units:
                code = unit.error_code.value if unit.error_code else "UNKNOWN_ERROR"
                lines.append(
                    f"  [{unit.stage.value}] {unit.key} after {unit.attempts} attempt(s) ({code}): "
                    f"{unit.error_message or ''}".rstrip()
                )
        return "\n".join(lines) + "\n"


class PlanReport(BaseModel):
    """Dry-run result: the units a run would execute, without executing them."""

    tasks: List[str] = Field(default_factory=list)
    datasets: List[str] = Field(default_factory=list, description="task.dataset load units")
    methods: List[str] = Field(default_factory=list, description="task.dataset.method run units")
    metrics: List[str] = Field(default_factory=list, description="task.dataset.method.metric evaluate units")
    failures: List[FailureReport] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures

    def render_text(self) -> str:
        lines = [
            f"Tasks: {', '.join(self.tasks) if self.tasks else '(none)'}",
            f"Units: load={len(self.datasets)} run={len(self.methods)} evaluate={len(self.metrics)}",
        ]
        for key in self.metrics:
            lines.append(f"  {key}")
        if self.failures:
            lines.append("Planning failures:")
            for failure in self.failures:
                lines.append(f"  [{failure.phase}] {failure.key}: {failure.message}")
        return "\n".join(lines) + "\n"
