"""Workflow controller abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .types import Failure, UnitResult


@dataclass
class WorkflowState:
    """Per-run collection of immutable unit results and failures.

    Units never mutate shared state; they return a ``UnitResult`` and the
    controller appends it here from the event loop.
    """

    tasks: List[str] = field(default_factory=list)
    results: List[UnitResult] = field(default_factory=list)
    failures: List[Failure] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)

    def record(self, result: UnitResult) -> None:
        self.results.append(result)

    def fail(self, failure: Failure) -> None:
        self.failures.append(failure)


class WorkflowController(ABC):
    @abstractmethod
    async def run(self) -> Any:
        """Run the workflow and return the final summary."""

    async def validate(self) -> Dict[str, Any]:
        """Optional pre-run validation hook."""
        return {"valid": True}

    async def on_unit_finished(self, state: WorkflowState, result: UnitResult) -> None:
        """Optional hook called after each unit settles."""
        return None

    @abstractmethod
    async def aggregate(self, state: WorkflowState) -> Any:
        """Aggregate state into the final summary."""
