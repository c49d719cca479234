"""Configuration settings using Pydantic with environment variables."""
import logging
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError
from .matching import normalize
from .models import (
    DEFAULT_BASE_URL,
    DEFAULT_CITY_CODE,
    DEFAULT_INTERVAL_SECONDS,
    DEFAULT_STATE_DIR,
    AppConfig,
    Credentials,
    MonitorConfig,
    NotificationConfig,
    TransportConfig,
    split_csv,
)

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _validate_urls(value: str, name: str) -> str:
    for url in split_csv(value):
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"{name} entries must start with http:// or https:// (got {url!r})")
    return value


class Settings(BaseSettings):
    """Application settings with environment variable loading and validation."""

    # Session credentials captured from a logged-in client
    SHOWSTART_SIGN: str = Field("", description="Session sign value")
    SHOWSTART_TOKEN: str = Field("", description="Session token")
    SHOWSTART_COOKIE: str = Field("", description="Cookie header")
    SHOWSTART_ST_FLPV: str = Field("", description="st_flpv device fingerprint")
    SHOWSTART_CUSID: str = Field("", description="User id")
    SHOWSTART_CUSNAME: str = Field("", description="User name")
    SHOWSTART_CVERSION: str = Field("", description="Client version")
    SHOWSTART_CTERMINAL: str = Field("", description="Terminal id")
    SHOWSTART_CDEVICEINFO: str = Field("", description="Device info header")
    SHOWSTART_BASE_URL: str = Field(DEFAULT_BASE_URL, description="Upstream API base URL")

    # Required settings
    MONITOR_KEYWORDS: str = Field(..., description="Comma-separated keywords to watch")
    MONITOR_WEBHOOK_URL: str = Field(..., description="Comma-separated notification webhooks")

    # Optional settings with defaults
    MONITOR_ALERT_WEBHOOK_URL: str = Field("", description="Comma-separated operator alert webhooks")
    MONITOR_CITY_CODE: str = Field(DEFAULT_CITY_CODE, description="City code to search in")
    MONITOR_INTERVAL_SECONDS: int = Field(DEFAULT_INTERVAL_SECONDS, description="Seconds between checks")
    MONITOR_STATE_DIR: str = Field(DEFAULT_STATE_DIR, description="Directory for deduplication state")
    MONITOR_NOTIFY_NEW_EVENTS: bool = Field(False, description="Also notify when a matching activity first appears")
    LOG_LEVEL: str = Field("INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")

    model_config = SettingsConfigDict(case_sensitive=True, extra="ignore")

    @field_validator("MONITOR_KEYWORDS", mode="before")
    @classmethod
    def validate_keywords(cls, v: Any) -> str:
        """Accept a list or a comma-separated string; every keyword must keep some letters or digits."""
        if isinstance(v, (list, tuple)):
            v = ",".join(str(item) for item in v)
        keywords = split_csv(v)
        if not keywords:
            raise ValueError("MONITOR_KEYWORDS must list at least one keyword")
        for keyword in keywords:
            if not normalize(keyword):
                raise ValueError(f"keyword {keyword!r} has no letters or digits to match on")
        return ",".join(keywords)

    @field_validator("MONITOR_WEBHOOK_URL")
    @classmethod
    def validate_webhook_url(cls, v: str) -> str:
        if not split_csv(v):
            raise ValueError("MONITOR_WEBHOOK_URL is required for monitoring")
        return _validate_urls(v, "MONITOR_WEBHOOK_URL")

    @field_validator("MONITOR_ALERT_WEBHOOK_URL")
    @classmethod
    def validate_alert_webhook_url(cls, v: str) -> str:
        return _validate_urls(v, "MONITOR_ALERT_WEBHOOK_URL")

    @field_validator("MONITOR_CITY_CODE")
    @classmethod
    def default_city_code(cls, v: str) -> str:
        return v.strip() or DEFAULT_CITY_CODE

    @field_validator("MONITOR_INTERVAL_SECONDS")
    @classmethod
    def default_interval(cls, v: int) -> int:
        return v if v > 0 else DEFAULT_INTERVAL_SECONDS

    @field_validator("MONITOR_STATE_DIR")
    @classmethod
    def default_state_dir(cls, v: str) -> str:
        return v.strip() or DEFAULT_STATE_DIR

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate LOG_LEVEL is a valid logging level."""
        if v.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(VALID_LOG_LEVELS)}")
        return v.upper()

    def to_app_config(self) -> AppConfig:
        credentials = Credentials(
            sign=self.SHOWSTART_SIGN,
            token=self.SHOWSTART_TOKEN,
            cookie=self.SHOWSTART_COOKIE,
            device_info=self.SHOWSTART_CDEVICEINFO,
            user_id=self.SHOWSTART_CUSID,
            user_name=self.SHOWSTART_CUSNAME,
            terminal=self.SHOWSTART_CTERMINAL,
            client_version=self.SHOWSTART_CVERSION,
            st_flpv=self.SHOWSTART_ST_FLPV,
        )
        return AppConfig(
            credentials=credentials,
            monitor=MonitorConfig(
                keywords=split_csv(self.MONITOR_KEYWORDS),
                city_code=self.MONITOR_CITY_CODE,
                interval_seconds=self.MONITOR_INTERVAL_SECONDS,
                state_dir=self.MONITOR_STATE_DIR,
                notify_new_events=self.MONITOR_NOTIFY_NEW_EVENTS,
            ),
            notification=NotificationConfig(
                webhook_urls=split_csv(self.MONITOR_WEBHOOK_URL),
                alert_urls=split_csv(self.MONITOR_ALERT_WEBHOOK_URL),
            ),
            transport=TransportConfig(base_url=self.SHOWSTART_BASE_URL),
            log_level=self.LOG_LEVEL,
        )


def load_config(env_file: Optional[str] = ".env", **overrides: Any) -> AppConfig:
    """Load configuration from the environment (and ``env_file`` if it exists).

    Keyword overrides take precedence over environment values and go through
    the same validation.

    Raises:
        ConfigError: if a required setting is missing or a value is invalid.
    """
    if env_file:
        load_dotenv(dotenv_path=env_file)

    overrides = {key: value for key, value in overrides.items() if value is not None}
    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e

    if not settings.SHOWSTART_TOKEN:
        logger.warning("SHOWSTART_TOKEN is empty; upstream requests will likely be rejected")
    return settings.to_app_config()
