"""
Node interface consumed by the messenger.

A node is the local handle on the Waku network: it dials peers, reports
readiness, opens filter subscriptions and publishes through light push.
Adapters raise TransportError for every failed network operation.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Union

from pydantic import BaseModel, Field

MessageCallback = Callable[[Optional[bytes]], Union[None, Awaitable[None]]]


class Protocols:
    LIGHT_PUSH = "lightpush"
    FILTER = "filter"
    RELAY = "relay"
    STORE = "store"


class NodeOptions(BaseModel):
    static_peers: list[str] = Field(default_factory=list)
    default_bootstrap: bool = False


class FilterSubscription(ABC):
    """A live filter subscription on a single content topic."""

    @abstractmethod
    def on_message(self, callback: MessageCallback) -> None:
        """Deliver every inbound payload (None when the message carried none) to ``callback``."""

    @abstractmethod
    async def ping(self) -> None:
        ...

    @abstractmethod
    async def unsubscribe(self) -> None:
        ...


class WakuNode(ABC):
    @abstractmethod
    async def dial(self, address: str) -> None:
        ...

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def wait_for_peers(self, protocols: list[str], timeout: float) -> None:
        """Return once connected peers serve every protocol in ``protocols``; raise after ``timeout`` seconds."""

    @abstractmethod
    def is_connected(self) -> bool:
        ...

    @abstractmethod
    async def subscribe(self, topic: str) -> FilterSubscription:
        ...

    @abstractmethod
    async def publish(self, topic: str, payload: bytes) -> None:
        ...


NodeFactory = Callable[[NodeOptions], WakuNode]
