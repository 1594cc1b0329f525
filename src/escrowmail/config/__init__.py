from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from .models import (
    ApiConfig,
    AppConfig,
    CustodyConfig,
    DatabaseConfig,
    DirectoryConfig,
    EventLogConfig,
    LoggingConfig,
    NotificationsConfig,
    OutboxConfig,
    RedisConfig,
    TransfersConfig,
    WorkerConfig,
)


def load_config(path: Optional[str | Path] = None, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """YAML file (explicit path or ESCROWMAIL_CONFIG) plus environment overrides."""
    environ = os.environ if environ is None else environ
    path = path or environ.get("ESCROWMAIL_CONFIG")
    config = AppConfig.from_yaml(path) if path else AppConfig()
    return config.with_env(environ)


__all__ = [
    "ApiConfig",
    "AppConfig",
    "CustodyConfig",
    "DatabaseConfig",
    "DirectoryConfig",
    "EventLogConfig",
    "LoggingConfig",
    "NotificationsConfig",
    "OutboxConfig",
    "RedisConfig",
    "TransfersConfig",
    "WorkerConfig",
    "load_config",
]
