"""Exception types raised by the ShowStart monitor."""
from typing import Optional


class MonitorError(Exception):
    """Base class for all monitor errors."""


class ConfigError(MonitorError):
    """Configuration is missing or invalid."""


class StateError(MonitorError):
    """Persisted monitor state could not be loaded or the state directory is unusable."""


class RequestBuildError(MonitorError):
    """A request could not be signed or encrypted."""


class TransportError(MonitorError):
    """A request failed after all attempts were exhausted."""


class UpstreamStatusError(TransportError):
    """The upstream API answered with an error status code."""

    def __init__(self, status_code: int, body: str = "", path: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.path = path
        super().__init__(f"http {status_code}: {body}" if body else f"http {status_code}")

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500


class UpstreamError(MonitorError):
    """The upstream API returned a payload that signals failure or cannot be parsed."""


class NotificationError(MonitorError):
    """A notification could not be delivered to at least one endpoint."""
