"""Unit execution under retry and resource-scaling policy."""

from .retry_policy import RetryPolicy
from .stage_executor import StageExecutor

__all__ = ["RetryPolicy", "StageExecutor"]
