"""
Waku messenger error types.

Errors that mean the client cannot do its job (configuration, connectivity,
subscription) propagate to the caller. Errors scoped to a single message
(decode, publish) are logged and swallowed by the client.
"""

from typing import Any, Optional

# Ping error text the filter service returns when it silently dropped our subscription.
SUBSCRIPTION_LOST_SIGNAL = "peer has no subscriptions"


class WakuError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class ConfigurationError(WakuError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("configuration_error", message, details)


class ConnectivityError(WakuError):
    def __init__(self, message: str):
        super().__init__("connectivity_error", message)


class SubscriptionError(WakuError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("subscription_error", message, details)


class DecodeError(WakuError):
    def __init__(self, message: str):
        super().__init__("decode_error", message)


class PublishError(WakuError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("publish_error", message, details)


class TransportError(WakuError):
    """Raised by node adapters when the underlying network operation fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__("transport_error", message, {"status_code": status_code} if status_code else None)
        self.status_code = status_code


def is_subscription_lost(error: BaseException) -> bool:
    return SUBSCRIPTION_LOST_SIGNAL in str(error)
