"""Serializable schema models for benchgraph runs."""

from .serialization import make_json_safe
from .summary import FailureReport, PlanReport, RunSummary, StageCounts, UnitReport

__all__ = [
    "make_json_safe",
    "FailureReport",
    "PlanReport",
    "RunSummary",
    "StageCounts",
    "UnitReport",
]
