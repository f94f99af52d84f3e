"""Structured logging utilities for ResumeWright.

This module provides configurable, structured logging with support for:
- JSON format for machine parsing
- Human-readable text format for development
- Component-specific log levels
- Log rotation

Example usage:
    >>> from resumewright.utils.logging import get_logger, LogConfig, configure_logging
    >>>
    >>> configure_logging(LogConfig(log_level="DEBUG", log_format="json"))
    >>> logger = get_logger("store")
    >>> logger.info("Saved progress", content_id="vidA", percent=42.0)
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from ..exceptions import ConfigurationError

ROOT_LOGGER_NAME = "resumewright"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class LogConfig:
    """Configuration for ResumeWright logging.

    Attributes:
        log_level: Default log level for all components
        log_format: Output format ('text' for human-readable, 'json' for structured)
        log_file: Optional file path for log output
        component_levels: Component-specific log levels, e.g. {"core.store": "DEBUG"}
        max_file_size_mb: Maximum log file size before rotation
        backup_count: Number of rotated log files to keep
        include_timestamp: Whether to include timestamps in text output
    """

    log_level: LogLevel = "WARNING"
    log_format: LogFormat = "text"
    log_file: Optional[str] = None
    component_levels: Dict[str, LogLevel] = field(default_factory=dict)
    max_file_size_mb: int = 10
    backup_count: int = 5
    include_timestamp: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not isinstance(self.log_level, str) or self.log_level.upper() not in _VALID_LEVELS:
            raise ConfigurationError(
                f"Invalid log_level '{self.log_level}'",
                config_key="log_level",
                config_value=self.log_level,
                valid_values=sorted(_VALID_LEVELS),
            )
        if self.log_format not in ("text", "json"):
            raise ConfigurationError(
                f"Invalid log_format '{self.log_format}'",
                config_key="log_format",
                config_value=self.log_format,
                valid_values=["text", "json"],
            )
        if self.log_file is not None and not isinstance(self.log_file, str):
            raise ConfigurationError(
                "log_file must be a path string",
                config_key="log_file",
                config_value=self.log_file,
            )
        if not isinstance(self.component_levels, dict):
            raise ConfigurationError(
                "component_levels must be a mapping",
                config_key="component_levels",
                config_value=self.component_levels,
            )
        for component, level in self.component_levels.items():
            if not isinstance(level, str) or level.upper() not in _VALID_LEVELS:
                raise ConfigurationError(
                    f"Invalid log level '{level}' for component '{component}'",
                    config_key=f"component_levels.{component}",
                    config_value=level,
                )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LogConfig":
        """Create LogConfig from dictionary."""
        return cls(
            log_level=data.get("log_level") or "WARNING",
            log_format=data.get("log_format") or "text",
            log_file=data.get("log_file"),
            component_levels=data.get("component_levels") or {},
            max_file_size_mb=data.get("max_file_size_mb", 10),
            backup_count=data.get("backup_count", 5),
            include_timestamp=data.get("include_timestamp", True),
        )


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Outputs one object per line:
    {"timestamp": "...Z", "level": "INFO", "component": "store", "message": "..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "component": record.name.split(".")[-1],
            "message": record.getMessage(),
        }

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter.

    2024-12-29 10:30:45 | INFO     | resumewright.core.store | Loaded 3 in-progress item(s)
    """

    def __init__(self, include_timestamp: bool = True) -> None:
        if include_timestamp:
            fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        else:
            fmt = "%(levelname)-8s | %(name)s | %(message)s"
        super().__init__(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            extra_str = ", ".join(f"{k}={v}" for k, v in extra_fields.items())
            message = f"{message} [{extra_str}]"
        return message


class ResumewrightLogger(logging.LoggerAdapter):
    """Logger adapter that turns keyword arguments into structured fields."""

    def __init__(
        self,
        logger: logging.Logger,
        component: str,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(logger, extra or {})
        self.component = component

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra_fields = {}
        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel", "extra"):
                extra_fields[key] = kwargs.pop(key)

        if self.extra:
            extra_fields.update(self.extra)

        kwargs.setdefault("extra", {})
        kwargs["extra"]["extra_fields"] = extra_fields
        return msg, kwargs


_log_config: Optional[LogConfig] = None
_configured_loggers: Dict[str, ResumewrightLogger] = {}


def _build_formatter(config: LogConfig) -> logging.Formatter:
    if config.log_format == "json":
        return JSONFormatter()
    return TextFormatter(include_timestamp=config.include_timestamp)


def configure_logging(config: Optional[LogConfig] = None) -> None:
    """Configure package logging handlers and levels.

    Call once at application startup. Library code only ever uses
    ``logging.getLogger(__name__)`` and inherits this setup.
    """
    global _log_config

    if config is None:
        config = LogConfig()
    _log_config = config

    level = getattr(logging, config.log_level.upper())
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = _build_formatter(config)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)

    for component, component_level in config.component_levels.items():
        logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}").setLevel(
            getattr(logging, component_level.upper())
        )

    root_logger.propagate = False


def get_logger(component: str) -> ResumewrightLogger:
    """Get a structured logger for a component.

    Example:
        >>> logger = get_logger("cli")
        >>> logger.info("Listed items", count=4)
    """
    if component in _configured_loggers:
        return _configured_loggers[component]

    base_logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")
    if _log_config and component in _log_config.component_levels:
        base_logger.setLevel(getattr(logging, _log_config.component_levels[component].upper()))

    logger = ResumewrightLogger(base_logger, component)
    _configured_loggers[component] = logger
    return logger


def get_config() -> Optional[LogConfig]:
    """Get current logging configuration."""
    return _log_config


def set_level(level: LogLevel, component: Optional[str] = None) -> None:
    """Set log level dynamically for the package or one component."""
    name = f"{ROOT_LOGGER_NAME}.{component}" if component else ROOT_LOGGER_NAME
    logging.getLogger(name).setLevel(getattr(logging, level.upper()))
