"""Data models and types for the ShowStart monitor."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

DEFAULT_BASE_URL = "https://wap.showstart.com/v3"
DEFAULT_CITY_CODE = "99999"
DEFAULT_INTERVAL_SECONDS = 180
DEFAULT_STATE_DIR = "monitor_state"

TIMED_PURCHASE_LABEL = "支持定时购票"
ACTIVITY_DETAIL_URL = "https://wap.showstart.com/pages/activity/detail/detail?activityId={activity_id}"


@dataclass(frozen=True)
class SessionIdentifiers:
    """Identifiers that a request signature is bound to."""
    sign: str = ""
    token: str = ""
    access_token: str = ""
    id_token: str = ""
    user_id: str = ""
    terminal: str = ""


@dataclass(frozen=True)
class Credentials:
    """Opaque session credentials bound to one API client.

    ``device_no``, ``user_ref`` and ``app_id`` fall back to the values the
    web client derives them from when they are left empty.
    """
    sign: str = ""
    token: str = ""
    cookie: str = ""
    device_info: str = ""
    device_no: str = ""
    user_id: str = ""
    user_name: str = ""
    terminal: str = ""
    app_id: str = ""
    client_version: str = ""
    user_ref: str = ""
    st_flpv: str = ""
    access_token: str = ""
    id_token: str = ""

    def __post_init__(self):
        if not self.device_no:
            object.__setattr__(self, "device_no", self.token)
        if not self.user_ref:
            object.__setattr__(self, "user_ref", self.token)
        if not self.app_id:
            object.__setattr__(self, "app_id", self.terminal)

    @property
    def user_token(self) -> str:
        """Value sent as the ``cusut`` header."""
        return self.sign

    def session(self) -> SessionIdentifiers:
        return SessionIdentifiers(
            sign=self.sign,
            token=self.token,
            access_token=self.access_token,
            id_token=self.id_token,
            user_id=self.user_id,
            terminal=self.terminal,
        )


@dataclass
class Activity:
    """An event listing returned by the activity search."""
    activity_id: int
    title: str
    show_time: str = ""
    site_name: str = ""
    labels: List[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        """Identifier used in the deduplication store."""
        return str(self.activity_id)

    @property
    def detail_url(self) -> str:
        return ACTIVITY_DETAIL_URL.format(activity_id=self.activity_id)

    @property
    def supports_timed_purchase(self) -> bool:
        return TIMED_PURCHASE_LABEL in self.labels

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Activity":
        """Build an activity from one entry of the upstream ``activityInfo`` list."""
        labels = []
        for label in payload.get("otherLabel") or []:
            if isinstance(label, dict) and label.get("name"):
                labels.append(str(label["name"]))
        try:
            activity_id = int(payload.get("activityId") or 0)
        except (TypeError, ValueError):
            activity_id = 0
        return cls(
            activity_id=activity_id,
            title=str(payload.get("title") or ""),
            show_time=str(payload.get("showTime") or ""),
            site_name=str(payload.get("siteName") or ""),
            labels=labels,
        )


@dataclass
class Notification:
    """Represents a webhook payload to be delivered."""
    payload: Dict[str, Any]
    description: str = "notification"


@dataclass
class TransportConfig:
    """Limits applied to upstream HTTP calls."""
    base_url: str = DEFAULT_BASE_URL
    max_attempts: int = 3
    base_backoff: float = 0.5  # seconds, doubled on every retry
    request_timeout: float = 20.0
    connect_timeout: float = 10.0
    read_timeout: float = 15.0
    keepalive_expiry: float = 30.0
    max_connections: int = 100
    max_keepalive_connections: int = 10


@dataclass
class NotificationConfig:
    """Configuration for webhook notifications."""
    webhook_urls: List[str] = field(default_factory=list)
    alert_urls: List[str] = field(default_factory=list)
    timeout: float = 10.0
    retry_attempts: int = 2
    retry_delay: float = 1.0  # seconds


@dataclass
class MonitorConfig:
    """Configuration for the keyword monitor."""
    keywords: List[str] = field(default_factory=list)
    city_code: str = DEFAULT_CITY_CODE
    interval_seconds: int = DEFAULT_INTERVAL_SECONDS
    state_dir: str = DEFAULT_STATE_DIR
    notify_new_events: bool = False

    @property
    def interval(self) -> float:
        if self.interval_seconds <= 0:
            return float(DEFAULT_INTERVAL_SECONDS)
        return float(self.interval_seconds)


@dataclass
class AppConfig:
    """Main application configuration."""
    credentials: Credentials = field(default_factory=Credentials)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    log_level: str = "INFO"


def split_csv(raw: Optional[str]) -> List[str]:
    """Split a comma-separated setting, dropping blank entries."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def parse_activity_list(payload: Dict[str, Any]) -> Tuple[List[Activity], int]:
    """Extract activities from a search response body.

    Returns the parsed activities and the number of entries that were skipped
    because they were not objects.
    """
    result = payload.get("result") or {}
    if not isinstance(result, dict):
        return [], 0
    activities: List[Activity] = []
    skipped = 0
    for entry in result.get("activityInfo") or []:
        if not isinstance(entry, dict):
            skipped += 1
            continue
        activities.append(Activity.from_payload(entry))
    return activities, skipped
