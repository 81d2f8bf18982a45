"""benchgraph core primitives."""

from .types import (
    Artifact,
    DatasetRecord,
    EntityRef,
    Failure,
    MethodRecord,
    MetricRecord,
    ResolvedUnit,
    ResourceRequest,
    UnitResult,
)
from .channel import Channel
from .workflow import WorkflowController, WorkflowState
from .registry import Registry

__all__ = [
    "Artifact",
    "DatasetRecord",
    "EntityRef",
    "Failure",
    "MethodRecord",
    "MetricRecord",
    "ResolvedUnit",
    "ResourceRequest",
    "UnitResult",
    "Channel",
    "WorkflowController",
    "WorkflowState",
    "Registry",
]
