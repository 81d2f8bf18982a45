"""benchgraph utilities."""

from .error_classifier import classify_error, get_error_category, get_error_description
from .process import ProcessOutcome, run_process

__all__ = [
    "classify_error",
    "get_error_category",
    "get_error_description",
    "ProcessOutcome",
    "run_process",
]
