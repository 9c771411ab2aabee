"""
waku-messenger — topic messenger for the Waku network.

Publish and receive small JSON events over Waku content topics without
managing peer dialing, subscription liveness or wire encoding.
"""

from waku_messenger.client import WakuClient
from waku_messenger.config import WakuConfig
from waku_messenger.connection import ConnectionManager, ConnectionState
from waku_messenger.errors import (
    WakuError,
    ConfigurationError,
    ConnectivityError,
    SubscriptionError,
    DecodeError,
    PublishError,
    TransportError,
)
from waku_messenger.models.envelope import WakuMessageEvent
from waku_messenger.registry import SubscriptionRegistry
from waku_messenger.service import WakuClientService
from waku_messenger.topics import resolve_topic

__version__ = "0.1.0"
__all__ = [
    "WakuClient",
    "WakuClientService",
    "WakuConfig",
    "ConnectionManager",
    "ConnectionState",
    "SubscriptionRegistry",
    "WakuMessageEvent",
    "resolve_topic",
    "WakuError",
    "ConfigurationError",
    "ConnectivityError",
    "SubscriptionError",
    "DecodeError",
    "PublishError",
    "TransportError",
]
