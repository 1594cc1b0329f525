"""
Pydantic configuration models.

Loaded from YAML (ESCROWMAIL_CONFIG) and overlaid with ESCROWMAIL_* environment
variables for URLs and secrets.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field

from escrowmail.core.errors import ConfigurationError
from escrowmail.domain.transfer import DEFAULT_CHAINS


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore")


class DatabaseConfig(_Section):
    url: Optional[str] = None  # None -> ESCROWMAIL_DB_URL or the sqlite default
    auto_create_schema: bool = True


class TransfersConfig(_Section):
    mode: Literal["local", "remote"] = "local"
    app_url: str = "https://app.escrowmail.dev"
    supported_chains: List[str] = Field(default_factory=lambda: list(DEFAULT_CHAINS))
    reminder_window_hours: int = Field(default=48, gt=0)
    stall_after_minutes: int = Field(default=15, gt=0)
    # mode: remote
    remote_base_url: Optional[str] = None
    remote_api_key: Optional[str] = None
    remote_timeout: int = 30


class CustodyConfig(_Section):
    backend: Literal["local", "http"] = "local"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: int = 30


class DirectoryUser(_Section):
    user_id: str
    email: str
    display_name: Optional[str] = None
    wallets: Dict[str, str] = Field(default_factory=dict)


class DirectoryConfig(_Section):
    backend: Literal["memory", "http"] = "memory"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    timeout: int = 15
    # backend: memory
    users: List[DirectoryUser] = Field(default_factory=list)


class NotificationsConfig(_Section):
    backend: Literal["logging", "resend"] = "logging"
    resend_api_key: Optional[str] = None
    from_address: str = "EscrowMail <noreply@escrowmail.dev>"
    support_email: str = "support@escrowmail.dev"
    templates_dir: Optional[str] = None


class OutboxConfig(_Section):
    backend: Literal["inprocess", "arq"] = "inprocess"
    max_attempts: int = Field(default=5, ge=1)
    base_delay_seconds: float = Field(default=2.0, ge=0)
    concurrency: int = Field(default=8, ge=1)


class EventLogConfig(_Section):
    backends: List[Literal["logging", "sqlalchemy", "memory"]] = Field(default_factory=lambda: ["logging", "sqlalchemy"])


class ApiConfig(_Section):
    api_key: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 8000


class RedisConfig(_Section):
    host: str = "127.0.0.1"
    port: int = 6379
    database: int = 0
    password: Optional[str] = None


class LoggingConfig(_Section):
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None
    max_bytes: int = 10485760
    backup_count: int = 5


class WorkerConfig(_Section):
    expiry_cron_minute: int = Field(default=0, ge=0, le=59)
    reminder_cron_hours: List[int] = Field(default_factory=lambda: [0, 6, 12, 18])
    reminder_cron_minute: int = Field(default=30, ge=0, le=59)
    run_at_startup: bool = False


# env var -> (section, field)
ENV_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "ESCROWMAIL_DB_URL": ("database", "url"),
    "ESCROWMAIL_MODE": ("transfers", "mode"),
    "ESCROWMAIL_APP_URL": ("transfers", "app_url"),
    "ESCROWMAIL_REMOTE_BASE_URL": ("transfers", "remote_base_url"),
    "ESCROWMAIL_REMOTE_API_KEY": ("transfers", "remote_api_key"),
    "ESCROWMAIL_CUSTODY_BACKEND": ("custody", "backend"),
    "ESCROWMAIL_CUSTODY_URL": ("custody", "base_url"),
    "ESCROWMAIL_CUSTODY_API_KEY": ("custody", "api_key"),
    "ESCROWMAIL_DIRECTORY_BACKEND": ("directory", "backend"),
    "ESCROWMAIL_DIRECTORY_URL": ("directory", "base_url"),
    "ESCROWMAIL_DIRECTORY_API_KEY": ("directory", "api_key"),
    "ESCROWMAIL_MAIL_BACKEND": ("notifications", "backend"),
    "ESCROWMAIL_RESEND_API_KEY": ("notifications", "resend_api_key"),
    "ESCROWMAIL_MAIL_FROM": ("notifications", "from_address"),
    "ESCROWMAIL_OUTBOX_BACKEND": ("outbox", "backend"),
    "ESCROWMAIL_API_KEY": ("api", "api_key"),
    "ESCROWMAIL_REDIS_HOST": ("redis", "host"),
    "ESCROWMAIL_REDIS_PORT": ("redis", "port"),
    "ESCROWMAIL_REDIS_DB": ("redis", "database"),
    "ESCROWMAIL_REDIS_PASSWORD": ("redis", "password"),
    "ESCROWMAIL_LOG_LEVEL": ("logging", "level"),
    "ESCROWMAIL_LOG_FILE": ("logging", "file"),
}


class AppConfig(BaseModel):
    database: DatabaseConfig = DatabaseConfig()
    transfers: TransfersConfig = TransfersConfig()
    custody: CustodyConfig = CustodyConfig()
    directory: DirectoryConfig = DirectoryConfig()
    notifications: NotificationsConfig = NotificationsConfig()
    outbox: OutboxConfig = OutboxConfig()
    event_log: EventLogConfig = EventLogConfig()
    api: ApiConfig = ApiConfig()
    redis: RedisConfig = RedisConfig()
    logging: LoggingConfig = LoggingConfig()
    worker: WorkerConfig = WorkerConfig()
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppConfig":
        file_path = Path(path).expanduser()
        if not file_path.exists():
            raise FileNotFoundError(f"Config file not found: {file_path}")
        data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
        return cls(**data, raw=data)

    def with_env(self, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """Return a copy with ESCROWMAIL_* overrides applied."""
        environ = os.environ if environ is None else environ
        data = self.model_dump(exclude={"raw"})
        for var, (section, field) in ENV_OVERRIDES.items():
            value = environ.get(var)
            if value:
                data[section][field] = value
        return type(self)(**data, raw=self.raw)

    def validate_required(self, *, serving: bool = False) -> None:
        """Raise ConfigurationError when a selected backend lacks its settings."""
        missing: List[str] = []
        if self.transfers.mode == "remote":
            if not self.transfers.remote_base_url:
                missing.append("transfers.remote_base_url (ESCROWMAIL_REMOTE_BASE_URL)")
            if not self.transfers.remote_api_key:
                missing.append("transfers.remote_api_key (ESCROWMAIL_REMOTE_API_KEY)")
        else:
            if self.custody.backend == "http" and not self.custody.base_url:
                missing.append("custody.base_url (ESCROWMAIL_CUSTODY_URL)")
            if self.directory.backend == "http" and not self.directory.base_url:
                missing.append("directory.base_url (ESCROWMAIL_DIRECTORY_URL)")
            if self.notifications.backend == "resend" and not self.notifications.resend_api_key:
                missing.append("notifications.resend_api_key (ESCROWMAIL_RESEND_API_KEY)")
        if serving and not self.api.api_key:
            missing.append("api.api_key (ESCROWMAIL_API_KEY)")
        if missing:
            raise ConfigurationError(
                message="Missing required configuration: " + ", ".join(missing),
                context={"missing": missing},
            )
