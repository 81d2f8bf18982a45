"""benchgraph: expands and executes combinatorial benchmark task graphs."""

from .core import (
    Artifact,
    DatasetRecord,
    EntityRef,
    MethodRecord,
    MetricRecord,
    ResolvedUnit,
    UnitResult,
    WorkflowController,
    WorkflowState,
    Registry,
)
from .errors import BenchGraphError, ConfigError, ExecutionError, ListingError, ResolutionError
from .workflow import BenchmarkWorkflowController

__version__ = "0.1.0"

__all__ = [
    "Artifact",
    "DatasetRecord",
    "EntityRef",
    "MethodRecord",
    "MetricRecord",
    "ResolvedUnit",
    "UnitResult",
    "WorkflowController",
    "WorkflowState",
    "Registry",
    "BenchGraphError",
    "ConfigError",
    "ExecutionError",
    "ListingError",
    "ResolutionError",
    "BenchmarkWorkflowController",
]
