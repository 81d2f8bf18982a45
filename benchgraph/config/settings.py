"""benchgraph configuration settings."""

import os
import shlex
import shutil
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from benchgraph.common import StageKind
from benchgraph.core.types import ResourceRequest
from benchgraph.errors import ConfigError


class Settings(BaseSettings):
    """Run-level settings, read once at startup from the environment or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="BENCHGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    test_mode: bool = Field(
        default=False,
        description="Pass --test to the collaborator so it loads reduced fixture data.",
    )
    output_dir: str = Field(default="results", description="Where artifacts and summaries are published.")
    work_dir: str = Field(default="work", description="Scratch space for per-attempt working directories.")
    keep_work_dirs: bool = Field(default=False, description="Keep attempt directories after success.")

    collaborator_command: str = Field(
        default="bench-cli",
        description="Executable that lists, resolves and executes benchmark entities.",
    )
    isolation_backend: str = Field(default="local", description="Isolation backend: local or docker.")
    docker_command: str = Field(default="docker", description="Container runtime executable.")

    max_concurrent_units: int = Field(default=4, ge=1, description="Concurrent unit executions.")
    max_concurrent_lookups: int = Field(default=16, ge=1, description="Concurrent listing/resolution calls.")
    lookup_timeout: float = Field(default=120.0, gt=0, description="Timeout in seconds for one lookup.")
    max_attempts: int = Field(default=3, ge=1, description="Execution attempts per unit.")
    retry_delay_seconds: float = Field(default=0.0, ge=0, description="Pause between attempts.")

    base_cpus: Optional[float] = Field(default=None, gt=0, description="Overrides every stage default.")
    base_memory_gb: Optional[float] = Field(default=None, gt=0, description="Overrides every stage default.")
    base_time_minutes: Optional[float] = Field(default=None, gt=0, description="Overrides every stage default.")
    max_cpus: Optional[float] = Field(default=None, gt=0, description="Ceiling for scaled cpu requests.")
    max_memory_gb: Optional[float] = Field(default=None, gt=0, description="Ceiling for scaled memory.")

    notification_address: str = Field(
        default="",
        description="Where the end-of-run summary is sent; http(s) URLs are POSTed to.",
    )
    notification_timeout: float = Field(default=30.0, gt=0)

    log_level: str = Field(default="INFO")
    log_dir: str = Field(default="logs")
    log_to_file: bool = Field(default=False)
    log_max_bytes: int = Field(default=104857600)
    log_backup_count: int = Field(default=5)

    @field_validator("isolation_backend", mode="before")
    @classmethod
    def validate_isolation_backend(cls, v):
        value = str(v or "local").strip().lower()
        if value not in ("local", "docker"):
            raise ValueError(f"isolation_backend must be 'local' or 'docker', got {v!r}")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v):
        value = str(v or "INFO").strip().upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level {v!r}")
        return value

    @field_validator("collaborator_command", mode="before")
    @classmethod
    def validate_collaborator_command(cls, v):
        if not str(v or "").strip():
            raise ValueError("collaborator_command must not be empty")
        return str(v).strip()

    def base_resources(self, stage: StageKind) -> ResourceRequest:
        """Attempt-1 resources for ``stage``; explicit base_* settings win over stage defaults."""
        defaults = STAGE_RESOURCES.get(stage.value, DEFAULT_STAGE_RESOURCES)
        return ResourceRequest(
            cpus=self.base_cpus or defaults["cpus"],
            memory_gb=self.base_memory_gb or defaults["memory_gb"],
            time_minutes=self.base_time_minutes or defaults["time_minutes"],
        )

    def collaborator_argv(self) -> List[str]:
        return shlex.split(self.collaborator_command)

    def log_path(self) -> Path:
        log_path = Path(self.log_dir)
        if not log_path.is_absolute():
            log_path = Path.cwd() / log_path
        return log_path

    def setup_log_directory(self) -> None:
        os.makedirs(self.log_path(), exist_ok=True)


DEFAULT_STAGE_RESOURCES: Dict[str, float] = {"cpus": 1.0, "memory_gb": 4.0, "time_minutes": 60.0}

# Attempt-1 allocation per stage, keyed by StageKind value.
STAGE_RESOURCES: Dict[str, Dict[str, float]] = {
    "load": {"cpus": 1.0, "memory_gb": 8.0, "time_minutes": 60.0},
    "run": {"cpus": 2.0, "memory_gb": 16.0, "time_minutes": 240.0},
    "evaluate": {"cpus": 1.0, "memory_gb": 8.0, "time_minutes": 60.0},
}


def load_settings(**overrides: Any) -> Settings:
    """Build a ``Settings`` instance, turning validation problems into ``ConfigError``."""
    try:
        return Settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'settings'}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from exc


def validate_run_settings(settings: "Settings", check_collaborator: bool = True, check_backend: bool = True) -> None:
    """Check everything a run needs before any stage starts.

    ``check_collaborator`` and ``check_backend`` are turned off when the caller
    supplies its own collaborator or backend instead of the configured ones.
    """
    errors = []

    if check_collaborator and shutil.which(settings.collaborator_argv()[0]) is None:
        errors.append(f"collaborator command '{settings.collaborator_command}' not found on PATH")

    if check_backend and settings.isolation_backend == "docker" and shutil.which(settings.docker_command) is None:
        errors.append(f"docker backend selected but '{settings.docker_command}' not found on PATH")

    for label, raw in (("output_dir", settings.output_dir), ("work_dir", settings.work_dir)):
        if not raw:
            errors.append(f"{label} is required")
            continue
        try:
            Path(raw).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            errors.append(f"{label} '{raw}' is not usable: {exc}")
            continue
        if not os.access(raw, os.W_OK):
            errors.append(f"{label} '{raw}' is not writable")

    for stage in StageKind:
        base = settings.base_resources(stage)
        if settings.max_cpus is not None and settings.max_cpus < base.cpus:
            errors.append(f"max_cpus is below the {stage.value} stage request of {base.cpus}")
        if settings.max_memory_gb is not None and settings.max_memory_gb < base.memory_gb:
            errors.append(f"max_memory_gb is below the {stage.value} stage request of {base.memory_gb}GB")

    if errors:
        raise ConfigError("; ".join(errors))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, built on first use."""
    return load_settings()


def get_logging_config(config: Optional[Settings] = None) -> Dict[str, Any]:
    config = config or get_settings()

    handlers: Dict[str, Any] = {
        "console": {
            "level": config.log_level,
            "formatter": "standard",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        }
    }

    if config.log_to_file:
        config.setup_log_directory()
        log_path = config.log_path()
        handlers.update(
            {
                "file_run": {
                    "level": config.log_level,
                    "formatter": "detailed",
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": str(log_path / "benchgraph.log"),
                    "maxBytes": config.log_max_bytes,
                    "backupCount": config.log_backup_count,
                    "encoding": "utf8",
                },
                "file_worker": {
                    "level": config.log_level,
                    "formatter": "detailed",
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": str(log_path / "units.log"),
                    "maxBytes": config.log_max_bytes,
                    "backupCount": config.log_backup_count,
                    "encoding": "utf8",
                },
            }
        )

    def _handlers(*extra: str):
        return ["console"] + ([h for h in extra] if config.log_to_file else [])

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"},
            "detailed": {
                "format": "%(asctime)s [%(levelname)s] %(name)s [%(filename)s:%(lineno)d] - %(message)s"
            },
        },
        "handlers": handlers,
        "loggers": {
            "benchgraph": {
                "handlers": _handlers("file_run"),
                "level": config.log_level,
                "propagate": False,
            },
            "benchgraph.worker": {
                "handlers": _handlers("file_worker"),
                "level": config.log_level,
                "propagate": False,
            },
        },
    }


def setup_logging(component_name: str = "run", config: Optional[Settings] = None):
    import logging.config

    config = config or get_settings()
    logging.config.dictConfig(get_logging_config(config))

    logger_name = "benchgraph.worker" if component_name == "worker" else "benchgraph"
    logger = logging.getLogger(logger_name)
    logger.info(f"Logging configured for {component_name} - File logging: {config.log_to_file}")
    if config.log_to_file:
        logger.info(f"Log files will be written to: {config.log_path()}")
    return logger
