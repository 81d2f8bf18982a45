"""Configuration module for benchgraph."""

from .settings import (
    STAGE_RESOURCES,
    Settings,
    get_logging_config,
    get_settings,
    load_settings,
    setup_logging,
    validate_run_settings,
)

__all__ = [
    "STAGE_RESOURCES",
    "Settings",
    "get_logging_config",
    "get_settings",
    "load_settings",
    "setup_logging",
    "validate_run_settings",
]
