"""In-memory Waku node used by the unit tests."""

import inspect
from collections import Counter, defaultdict
from typing import Optional

import pytest

from waku_messenger.config import WakuConfig
from waku_messenger.errors import TransportError
from waku_messenger.transport.node import FilterSubscription, NodeOptions, WakuNode

CONTENT_TOPIC = "/chroma/1/PLACEHOLDER/proto"


class FakeSubscription(FilterSubscription):
    def __init__(self, topic: str, ping_errors: Optional[list[Optional[str]]] = None, bus: Optional["FakeBus"] = None):
        self.topic = topic
        self.callbacks = []
        self.ping_errors = list(ping_errors or [])
        self.pings = 0
        self.unsubscribed = False
        self.unsubscribe_error: Optional[str] = None
        self.bus = bus

    def on_message(self, callback) -> None:
        self.callbacks.append(callback)

    async def ping(self) -> None:
        self.pings += 1
        if self.ping_errors:
            error = self.ping_errors.pop(0)
            if error:
                raise TransportError(error)

    async def unsubscribe(self) -> None:
        if self.unsubscribe_error:
            raise TransportError(self.unsubscribe_error)
        self.unsubscribed = True
        if self.bus is not None:
            self.bus.detach(self)

    async def deliver(self, payload: Optional[bytes]) -> None:
        for callback in list(self.callbacks):
            result = callback(payload)
            if inspect.isawaitable(result):
                await result


class FakeBus:
    """Loopback network: a publish reaches every attached subscription on the topic."""

    def __init__(self) -> None:
        self.subscriptions: dict[str, list[FakeSubscription]] = defaultdict(list)

    def attach(self, subscription: FakeSubscription) -> None:
        self.subscriptions[subscription.topic].append(subscription)

    def detach(self, subscription: FakeSubscription) -> None:
        if subscription in self.subscriptions[subscription.topic]:
            self.subscriptions[subscription.topic].remove(subscription)

    async def publish(self, topic: str, payload: Optional[bytes]) -> None:
        for subscription in list(self.subscriptions[topic]):
            await subscription.deliver(payload)


class FakeNode(WakuNode):
    def __init__(
        self,
        options: NodeOptions,
        bus: Optional[FakeBus] = None,
        dial_failures: Optional[dict[str, int]] = None,
        peer_wait_failures: int = 0,
        report_connected: bool = True,
        subscribe_errors: int = 0,
        ping_errors: Optional[list[list[Optional[str]]]] = None,
        publish_error: Optional[str] = None,
    ):
        self.options = options
        self.bus = bus or FakeBus()
        self.dial_failures = dict(dial_failures or {})  # address -> failed attempts before success
        self.dial_attempts: Counter = Counter()
        self.dialed: list[str] = []
        self.peer_wait_failures = peer_wait_failures
        self.report_connected = report_connected
        self.wait_calls = 0
        self.connected = False
        self.started = False
        self.stop_calls = 0
        self.subscribe_errors = subscribe_errors
        self.ping_errors = list(ping_errors or [])  # one list of ping outcomes per subscription
        self.subscriptions: list[FakeSubscription] = []
        self.publish_error = publish_error
        self.published: list[tuple[str, bytes]] = []

    async def dial(self, address: str) -> None:
        self.dial_attempts[address] += 1
        if self.dial_attempts[address] <= self.dial_failures.get(address, 0):
            raise TransportError(f"dial {address} refused")
        self.dialed.append(address)

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.stop_calls += 1

    async def wait_for_peers(self, protocols: list[str], timeout: float) -> None:
        self.wait_calls += 1
        if self.wait_calls <= self.peer_wait_failures:
            raise TransportError("no peers yet")
        self.connected = self.report_connected

    def is_connected(self) -> bool:
        return self.connected

    async def subscribe(self, topic: str) -> FakeSubscription:
        if self.subscribe_errors:
            self.subscribe_errors -= 1
            raise TransportError("filter peer refused subscription")
        errors = self.ping_errors.pop(0) if self.ping_errors else []
        subscription = FakeSubscription(topic, errors, bus=self.bus)
        self.subscriptions.append(subscription)
        self.bus.attach(subscription)
        return subscription

    async def publish(self, topic: str, payload: bytes) -> None:
        if self.publish_error:
            raise TransportError(self.publish_error)
        self.published.append((topic, payload))
        await self.bus.publish(topic, payload)


class FakeNodeFactory:
    def __init__(self, **node_kwargs):
        self.node_kwargs = node_kwargs
        self.nodes: list[FakeNode] = []

    def __call__(self, options: NodeOptions) -> FakeNode:
        node = FakeNode(options, **self.node_kwargs)
        self.nodes.append(node)
        return node

    @property
    def node(self) -> FakeNode:
        return self.nodes[-1]


@pytest.fixture
def config() -> WakuConfig:
    return WakuConfig(content_topic=CONTENT_TOPIC, topic="intents", ping_count=3)


@pytest.fixture
def make_factory():
    return FakeNodeFactory


@pytest.fixture
def make_subscription():
    return FakeSubscription
