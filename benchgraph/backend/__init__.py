"""benchgraph isolation backends."""

from .base import ExecutionRequest, IsolationBackend, mount_points
from .docker import DockerBackend
from .local import LocalBackend
from .registry import get_backend, list_backends, register_backend

__all__ = [
    "ExecutionRequest",
    "IsolationBackend",
    "mount_points",
    "DockerBackend",
    "LocalBackend",
    "get_backend",
    "list_backends",
    "register_backend",
]
