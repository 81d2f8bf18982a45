"""Backend registry and lookup helpers."""

from __future__ import annotations

from typing import Any, Dict, Type

from benchgraph.core import Registry

from .base import IsolationBackend
from .docker import DockerBackend
from .local import LocalBackend

_BACKEND_REGISTRY = Registry(kind="isolation backend")
_BACKEND_REGISTRY.register("local", LocalBackend)
_BACKEND_REGISTRY.register("docker", DockerBackend)


def get_backend(name: str, **kwargs: Any) -> IsolationBackend:
    return _BACKEND_REGISTRY.get(name or "local")(**kwargs)


def register_backend(name: str, backend_cls: Type[IsolationBackend]) -> None:
    _BACKEND_REGISTRY.register(name, backend_cls)


def list_backends() -> Dict[str, Type[IsolationBackend]]:
    return _BACKEND_REGISTRY.items()
