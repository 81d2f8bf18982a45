"""Notifier lookup by address scheme."""

from __future__ import annotations

from typing import Callable, Dict
from urllib.parse import urlparse

from benchgraph.core import Registry

from .base import Notifier
from .logging_notifier import LoggingNotifier
from .webhook import WebhookNotifier

NotifierFactory = Callable[..., Notifier]

_NOTIFIER_REGISTRY = Registry(kind="notifier scheme")
_NOTIFIER_REGISTRY.register("log", LoggingNotifier)
_NOTIFIER_REGISTRY.register("http", WebhookNotifier)
_NOTIFIER_REGISTRY.register("https", WebhookNotifier)


def get_notifier(address: str = "", timeout: float = 30.0) -> Notifier:
    """Pick a notifier from the address scheme.

    An empty address, or one whose scheme has no registered notifier, falls
    back to logging the summary.
    """
    address = (address or "").strip()
    scheme = urlparse(address).scheme.lower() if "://" in address else ""
    if not scheme or scheme not in _NOTIFIER_REGISTRY:
        return LoggingNotifier(address)
    factory = _NOTIFIER_REGISTRY.get(scheme)
    if factory is WebhookNotifier:
        return factory(address, timeout=timeout)
    return factory(address)


def register_notifier(scheme: str, factory: NotifierFactory) -> None:
    _NOTIFIER_REGISTRY.register(scheme, factory)


def list_notifiers() -> Dict[str, NotifierFactory]:
    return _NOTIFIER_REGISTRY.items()
