"""End-of-run notification."""

from .base import Notifier
from .logging_notifier import LoggingNotifier
from .webhook import WebhookNotifier
from .registry import get_notifier, list_notifiers, register_notifier

__all__ = [
    "Notifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "get_notifier",
    "list_notifiers",
    "register_notifier",
]
