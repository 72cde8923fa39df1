"""
cron-schedule configuration management.

Handles loading, saving, and validating configuration from various sources:
- Default values
- Configuration files (TOML)
- Environment variables
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

# Try to import tomllib (Python 3.11+) or tomli as fallback
try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

import yaml

logger = logging.getLogger(__name__)

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "cron-schedule"
DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_ENV_PREFIX = "CRON_SCHEDULE_"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ValidationError:
    """Validation error for configuration."""
    field: str
    message: str
    severity: str  # "error" or "warning"

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.field}: {self.message}"


@dataclass
class SchedulerConfig:
    """Configuration for the job scheduler."""

    # Launch jobs on start()
    enabled: bool = True

    # Seconds stop() waits for job loops to wind down
    shutdown_timeout: float = 10.0


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None
    max_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


@dataclass
class CronScheduleConfig:
    """Main configuration container."""

    config_dir: Path = DEFAULT_CONFIG_DIR

    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


def load_config(
    config_path: Optional[Path] = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
) -> CronScheduleConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Default values

    Args:
        config_path: Path to config file (default: ~/.config/cron-schedule/config.toml)
        env_prefix: Prefix for environment variables

    Returns:
        Loaded configuration
    """
    config = CronScheduleConfig()

    if config_path is None:
        env_config_dir = os.environ.get(f"{env_prefix}CONFIG_DIR")
        if env_config_dir:
            config_path = Path(env_config_dir) / DEFAULT_CONFIG_FILE
        else:
            config_path = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE

    if config_path.exists():
        config = _load_from_file(config_path, config)

    return _load_from_env(config, env_prefix)


def _load_from_file(path: Path, config: CronScheduleConfig) -> CronScheduleConfig:
    """Load configuration from a TOML file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")
        return config

    if "scheduler" in data:
        for key, value in data["scheduler"].items():
            if hasattr(config.scheduler, key):
                setattr(config.scheduler, key, value)

    if "logging" in data:
        for key, value in data["logging"].items():
            if key == "file":
                config.logging.file = Path(value) if value else None
            elif hasattr(config.logging, key):
                setattr(config.logging, key, value)

    if "config_dir" in data:
        config.config_dir = Path(data["config_dir"])

    return config


def _load_from_env(config: CronScheduleConfig, prefix: str) -> CronScheduleConfig:
    """Load configuration from environment variables."""

    # Scheduler settings
    if env_val := os.environ.get(f"{prefix}SCHEDULER_ENABLED"):
        config.scheduler.enabled = _parse_bool(env_val)
    if env_val := os.environ.get(f"{prefix}SHUTDOWN_TIMEOUT"):
        try:
            config.scheduler.shutdown_timeout = float(env_val)
        except ValueError:
            logger.warning(f"Ignoring non-numeric {prefix}SHUTDOWN_TIMEOUT={env_val!r}")

    # Logging settings
    if env_val := os.environ.get(f"{prefix}LOG_LEVEL"):
        config.logging.level = env_val.upper()
    if env_val := os.environ.get(f"{prefix}LOG_FILE"):
        config.logging.file = Path(env_val)

    # Paths
    if env_val := os.environ.get(f"{prefix}CONFIG_DIR"):
        config.config_dir = Path(env_val)

    return config


def save_config(config: CronScheduleConfig, path: Optional[Path] = None) -> None:
    """
    Save configuration to a TOML file.

    Args:
        config: Configuration to save
        path: Path to save to (default: config.config_dir / config.toml)
    """
    if path is None:
        path = config.config_dir / DEFAULT_CONFIG_FILE

    path.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        "# cron-schedule configuration",
        "# Generated automatically - edit with care",
        "",
        f'config_dir = "{config.config_dir}"',
        "",
        "[scheduler]",
        f"enabled = {str(config.scheduler.enabled).lower()}",
        f"shutdown_timeout = {float(config.scheduler.shutdown_timeout)}",
        "",
        "[logging]",
        f'level = "{config.logging.level}"',
        f'format = "{config.logging.format}"',
        f'file = "{config.logging.file or ""}"',
        f"max_size = {config.logging.max_size}",
        f"backup_count = {config.logging.backup_count}",
    ]

    with open(path, "w") as f:
        f.write("\n".join(lines) + "\n")


# Global configuration instance (lazy-loaded)
_global_config: Optional[CronScheduleConfig] = None


def get_config() -> CronScheduleConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def validate_config(config: Optional[CronScheduleConfig] = None) -> List[ValidationError]:
    """
    Validate configuration and return list of errors.

    Args:
        config: Configuration to validate (default: loaded from file)

    Returns:
        List of validation errors (empty if valid)
    """
    if config is None:
        config = load_config()

    errors: List[ValidationError] = []

    # Scheduler validation
    timeout = config.scheduler.shutdown_timeout
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout < 0:
        errors.append(ValidationError(
            field="scheduler.shutdown_timeout",
            message=f"Shutdown timeout must be a non-negative number, got {timeout!r}",
            severity="error"
        ))

    if not config.scheduler.enabled:
        errors.append(ValidationError(
            field="scheduler.enabled",
            message="Scheduler is disabled; start() will not launch any jobs.",
            severity="warning"
        ))

    # Logging validation
    if str(config.logging.level).upper() not in LOG_LEVELS:
        errors.append(ValidationError(
            field="logging.level",
            message=f"Unknown log level: {config.logging.level}",
            severity="error"
        ))

    if config.logging.max_size <= 0:
        errors.append(ValidationError(
            field="logging.max_size",
            message="Log file size limit must be positive",
            severity="error"
        ))

    if config.logging.backup_count < 0:
        errors.append(ValidationError(
            field="logging.backup_count",
            message="Log backup count cannot be negative",
            severity="error"
        ))

    if config.logging.file and not Path(config.logging.file).parent.exists():
        errors.append(ValidationError(
            field="logging.file",
            message=f"Log directory does not exist: {Path(config.logging.file).parent}",
            severity="warning"
        ))

    # Path validation
    if not config.config_dir.exists():
        errors.append(ValidationError(
            field="config_dir",
            message=f"Config directory does not exist: {config.config_dir}",
            severity="warning"
        ))

    return errors


def _config_to_dict(config: CronScheduleConfig) -> dict[str, Any]:
    """Convert configuration to a plain dictionary."""
    return {
        "config_dir": str(config.config_dir),
        "scheduler": {
            "enabled": config.scheduler.enabled,
            "shutdown_timeout": config.scheduler.shutdown_timeout,
        },
        "logging": {
            "level": config.logging.level,
            "format": config.logging.format,
            "file": str(config.logging.file) if config.logging.file else None,
            "max_size": config.logging.max_size,
            "backup_count": config.logging.backup_count,
        },
    }


def export_config_yaml(config: CronScheduleConfig) -> str:
    """Export configuration as YAML string."""
    return yaml.dump(_config_to_dict(config), default_flow_style=False, sort_keys=False, allow_unicode=True)

