"""Common types and enums shared across modules."""

from enum import Enum


class EntityKind(str, Enum):
    """Kinds of child entities listed under a task."""

    DATASET = "dataset"
    METHOD = "method"
    METRIC = "metric"


class StageKind(str, Enum):
    """Execution stage run for each entity kind."""

    LOAD = "load"
    RUN = "run"
    EVALUATE = "evaluate"


STAGE_FOR_KIND = {
    EntityKind.DATASET: StageKind.LOAD,
    EntityKind.METHOD: StageKind.RUN,
    EntityKind.METRIC: StageKind.EVALUATE,
}


class UnitStatus(str, Enum):
    """Final status of an executed unit."""

    COMPLETED = "completed"
    FAILED = "failed"


class ErrorCode(str, Enum):
    """Error code enumeration for different error types."""

    CONFIG_ERROR = "CONFIG_ERROR"
    LISTING_ERROR = "LISTING_ERROR"
    RESOLUTION_ERROR = "RESOLUTION_ERROR"
    RUNTIME_ERROR = "RUNTIME_ERROR"
    OUTPUT_ERROR = "OUTPUT_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    SYSTEM_ERROR = "SYSTEM_ERROR"
    RESOURCE_ERROR = "RESOURCE_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
