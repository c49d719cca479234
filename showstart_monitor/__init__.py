"""ShowStart Monitor package.

This package watches ShowStart activity search results for configured
keywords and sends webhook notifications when a matching activity opens
timed purchase.
"""

__version__ = "0.1.0"

# Import key components to make them available at the package level
from .app import ActivityMonitor, main
from .client import ActivityQueryClient, ActivitySource
from .config import Settings, load_config
from .exceptions import (
    ConfigError,
    MonitorError,
    NotificationError,
    RequestBuildError,
    StateError,
    TransportError,
    UpstreamError,
    UpstreamStatusError,
)
from .matching import keyword_matches, normalize
from .models import Activity, AppConfig, Credentials, MonitorConfig, NotificationConfig, TransportConfig
from .notifications import Notifier, create_notifier
from .signing import SignedRequestBuilder
from .state import DeduplicationStore
from .transport import ResilientTransport

__all__ = [
    'main',
    'ActivityMonitor',
    'ActivityQueryClient',
    'ActivitySource',
    'Settings',
    'load_config',
    'ConfigError',
    'MonitorError',
    'NotificationError',
    'RequestBuildError',
    'StateError',
    'TransportError',
    'UpstreamError',
    'UpstreamStatusError',
    'keyword_matches',
    'normalize',
    'Activity',
    'AppConfig',
    'Credentials',
    'MonitorConfig',
    'NotificationConfig',
    'TransportConfig',
    'Notifier',
    'create_notifier',
    'SignedRequestBuilder',
    'DeduplicationStore',
    'ResilientTransport',
]
