"""benchgraph workflows."""

from .benchmark import BenchmarkWorkflowController, new_run_id

__all__ = ["BenchmarkWorkflowController", "new_run_id"]
