from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from escrowmail.config import AppConfig, load_config
from escrowmail.core.errors import ConfigurationError


def _write(tmp_path, data):
    path = tmp_path / "escrowmail.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_defaults():
    config = AppConfig()
    assert config.transfers.mode == "local"
    assert config.transfers.reminder_window_hours == 48
    assert config.transfers.supported_chains == ["evm", "solana", "tron"]
    assert config.outbox.backend == "inprocess"
    assert config.event_log.backends == ["logging", "sqlalchemy"]


def test_from_yaml_ignores_unknown_keys(tmp_path):
    path = _write(
        tmp_path,
        {
            "transfers": {"app_url": "https://pay.example.com", "legacy_flag": True},
            "directory": {
                "users": [{"user_id": "u1", "email": "a@example.com", "wallets": {"evm": "0xa"}}],
            },
            "worker": {"reminder_cron_hours": [8, 20]},
        },
    )
    config = AppConfig.from_yaml(path)

    assert config.transfers.app_url == "https://pay.example.com"
    assert config.directory.users[0].wallets == {"evm": "0xa"}
    assert config.worker.reminder_cron_hours == [8, 20]
    assert config.raw["transfers"]["legacy_flag"] is True


def test_from_yaml_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        AppConfig.from_yaml(tmp_path / "nope.yaml")


def test_env_overrides_yaml(tmp_path):
    path = _write(tmp_path, {"database": {"url": "sqlite:///from-yaml.db"}, "redis": {"port": 6379}})
    config = load_config(
        path,
        environ={
            "ESCROWMAIL_DB_URL": "sqlite:///from-env.db",
            "ESCROWMAIL_REDIS_PORT": "6380",
            "ESCROWMAIL_API_KEY": "k",
            "ESCROWMAIL_LOG_LEVEL": "",
        },
    )
    assert config.database.url == "sqlite:///from-env.db"
    assert config.redis.port == 6380
    assert config.api.api_key == "k"
    assert config.logging.level == "INFO"


def test_load_config_uses_env_path(tmp_path):
    path = _write(tmp_path, {"outbox": {"backend": "arq", "max_attempts": 2}})
    config = load_config(environ={"ESCROWMAIL_CONFIG": str(path)})
    assert config.outbox.backend == "arq"
    assert config.outbox.max_attempts == 2


def test_validate_required_local_backends():
    AppConfig().validate_required()

    config = AppConfig(
        custody={"backend": "http"},
        notifications={"backend": "resend"},
    )
    with pytest.raises(ConfigurationError) as exc:
        config.validate_required()
    missing = exc.value.context["missing"]
    assert any(m.startswith("custody.base_url") for m in missing)
    assert any(m.startswith("notifications.resend_api_key") for m in missing)


def test_validate_required_remote_mode_and_serving():
    config = AppConfig(transfers={"mode": "remote", "remote_base_url": "http://core:8000"})
    with pytest.raises(ConfigurationError) as exc:
        config.validate_required(serving=True)
    missing = exc.value.context["missing"]
    assert any("remote_api_key" in m for m in missing)
    assert any("api.api_key" in m for m in missing)


def test_example_config_is_valid():
    example = Path(__file__).resolve().parents[2] / "config" / "escrowmail.example.yaml"
    config = AppConfig.from_yaml(example)

    config.validate_required()
    assert [u.user_id for u in config.directory.users] == ["u-alice", "u-bob"]
    assert config.worker.reminder_cron_minute == 30
