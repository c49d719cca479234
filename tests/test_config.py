"""Tests for configuration loading."""
import os
from unittest.mock import patch

import pytest

from showstart_monitor.config import Settings, load_config
from showstart_monitor.exceptions import ConfigError

MONITOR_ENV = [
    "MONITOR_KEYWORDS", "MONITOR_WEBHOOK_URL", "MONITOR_ALERT_WEBHOOK_URL", "MONITOR_CITY_CODE",
    "MONITOR_INTERVAL_SECONDS", "MONITOR_STATE_DIR", "MONITOR_NOTIFY_NEW_EVENTS", "LOG_LEVEL",
    "SHOWSTART_TOKEN", "SHOWSTART_SIGN", "SHOWSTART_CTERMINAL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in MONITOR_ENV:
        monkeypatch.delenv(name, raising=False)


def required(**kwargs):
    values = {"MONITOR_KEYWORDS": "LANY", "MONITOR_WEBHOOK_URL": "https://hooks.example.com/a"}
    values.update(kwargs)
    return values


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self):
        config = load_config(env_file=None, **required())

        assert config.monitor.keywords == ["LANY"]
        assert config.monitor.city_code == "99999"
        assert config.monitor.interval_seconds == 180
        assert config.monitor.state_dir == "monitor_state"
        assert config.monitor.notify_new_events is False
        assert config.notification.webhook_urls == ["https://hooks.example.com/a"]
        assert config.notification.alert_urls == []
        assert config.log_level == "INFO"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("MONITOR_KEYWORDS", "LANY, 五月天 ,")
        monkeypatch.setenv("MONITOR_WEBHOOK_URL", "https://a.example.com,https://b.example.com")
        monkeypatch.setenv("MONITOR_ALERT_WEBHOOK_URL", "https://ops.example.com")
        monkeypatch.setenv("MONITOR_CITY_CODE", "10")
        monkeypatch.setenv("MONITOR_INTERVAL_SECONDS", "60")
        monkeypatch.setenv("MONITOR_NOTIFY_NEW_EVENTS", "true")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("SHOWSTART_TOKEN", "tok")
        monkeypatch.setenv("SHOWSTART_CTERMINAL", "wap")

        config = load_config(env_file=None)

        assert config.monitor.keywords == ["LANY", "五月天"]
        assert config.notification.webhook_urls == ["https://a.example.com", "https://b.example.com"]
        assert config.notification.alert_urls == ["https://ops.example.com"]
        assert config.monitor.city_code == "10"
        assert config.monitor.interval_seconds == 60
        assert config.monitor.notify_new_events is True
        assert config.log_level == "DEBUG"
        assert config.credentials.token == "tok"
        assert config.credentials.device_no == "tok"
        assert config.credentials.app_id == "wap"

    def test_overrides_win_over_environment(self, monkeypatch):
        monkeypatch.setenv("MONITOR_KEYWORDS", "from-env")
        monkeypatch.setenv("MONITOR_WEBHOOK_URL", "https://hooks.example.com/a")

        config = load_config(env_file=None, MONITOR_KEYWORDS=["cli1", "cli2"], MONITOR_CITY_CODE=None)

        assert config.monitor.keywords == ["cli1", "cli2"]
        assert config.monitor.city_code == "99999"

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("MONITOR_KEYWORDS=LANY\nMONITOR_WEBHOOK_URL=https://hooks.example.com/a\n")

        with patch.dict(os.environ):
            config = load_config(env_file=str(env_file))

        assert config.monitor.keywords == ["LANY"]

    @pytest.mark.parametrize("interval", [0, -10])
    def test_non_positive_interval_defaults(self, interval):
        config = load_config(env_file=None, **required(MONITOR_INTERVAL_SECONDS=interval))

        assert config.monitor.interval_seconds == 180

    def test_blank_city_code_defaults(self):
        config = load_config(env_file=None, **required(MONITOR_CITY_CODE="  "))

        assert config.monitor.city_code == "99999"

    @pytest.mark.parametrize("overrides,message", [
        ({"MONITOR_KEYWORDS": ""}, "MONITOR_KEYWORDS"),
        ({"MONITOR_KEYWORDS": "!!!"}, "no letters or digits"),
        ({"MONITOR_WEBHOOK_URL": " , "}, "MONITOR_WEBHOOK_URL"),
        ({"MONITOR_WEBHOOK_URL": "ftp://example.com"}, "http"),
        ({"MONITOR_ALERT_WEBHOOK_URL": "not-a-url"}, "MONITOR_ALERT_WEBHOOK_URL"),
        ({"LOG_LEVEL": "LOUD"}, "LOG_LEVEL"),
    ])
    def test_invalid_values_are_rejected(self, overrides, message):
        with pytest.raises(ConfigError, match=message):
            load_config(env_file=None, **required(**overrides))

    def test_missing_required_settings(self):
        with pytest.raises(ConfigError, match="MONITOR_KEYWORDS"):
            load_config(env_file=None)


def test_settings_to_app_config_transport():
    settings = Settings(**required(SHOWSTART_BASE_URL="https://api.example.com/v3"))

    config = settings.to_app_config()

    assert config.transport.base_url == "https://api.example.com/v3"
    assert config.transport.max_attempts == 3
