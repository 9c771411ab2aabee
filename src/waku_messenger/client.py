"""
WakuClient: publish and receive JSON events on Waku content topics.

Composes the connection manager, topic resolver, envelope codec and
subscription registry. Inbound decode failures and outbound publish failures
are logged and dropped: delivery is best effort, at most once.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from waku_messenger.config import WakuConfig
from waku_messenger.connection import RETRY_DELAY_S, ConnectionManager, ConnectionState
from waku_messenger.errors import (
    DecodeError,
    PublishError,
    SubscriptionError,
    TransportError,
    WakuError,
    is_subscription_lost,
)
from waku_messenger.models.envelope import WakuMessageEvent
from waku_messenger.registry import DEFAULT_TTL_S, SubscriptionRegistry
from waku_messenger.topics import resolve_topic
from waku_messenger.transport.envelope import decode_envelope, encode_envelope, now_ms
from waku_messenger.transport.node import MessageCallback, NodeFactory
from waku_messenger.transport.rest import rest_node_factory

logger = logging.getLogger(__name__)

MAX_RESUBSCRIBES = 3

EventHandler = Callable[[WakuMessageEvent], Union[None, Awaitable[None]]]


class WakuClient:
    def __init__(
        self,
        config: WakuConfig,
        node_factory: Optional[NodeFactory] = None,
        registry: Optional[SubscriptionRegistry] = None,
        retry_delay: float = RETRY_DELAY_S,
    ):
        self._config = config
        self._retry_delay = retry_delay
        self._connection = ConnectionManager(
            static_peers=config.static_peers,
            ping_count=config.ping_count,
            node_factory=node_factory or rest_node_factory(
                config.node_url,
                pubsub_topic=config.pubsub_topic,
                poll_interval=config.poll_interval,
            ),
            retry_delay=retry_delay,
        )
        self._registry = registry if registry is not None else SubscriptionRegistry()
        self._sweep_task: Optional[asyncio.Task[None]] = None

    @property
    def config(self) -> WakuConfig:
        return self._config

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    @property
    def state(self) -> ConnectionState:
        return self._connection.state

    @property
    def connected(self) -> bool:
        return self._connection.ready

    async def init(self) -> None:
        """Connect to the network. Raises ConnectivityError when no peer becomes ready."""
        await self._connection.init()
        if self._config.sweep_interval and self._sweep_task is None:
            self._sweep_task = asyncio.get_running_loop().create_task(
                self._sweep_expired(self._config.sweep_interval)
            )

    async def _sweep_expired(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self._registry.purge_expired()

    async def subscribe(
        self,
        topic: str,
        handler: EventHandler,
        expiration_seconds: float = DEFAULT_TTL_S,
    ) -> str:
        """Subscribe ``handler`` to a topic hint and return the concrete topic.

        An empty hint subscribes to the default topic. The subscription is
        pinged until it answers; if the peer reports it lost our subscription,
        the whole subscribe is retried (at most MAX_RESUBSCRIBES times).
        """
        return await self._subscribe(topic, handler, expiration_seconds, resubscribes=0)

    async def _subscribe(
        self,
        topic: str,
        handler: EventHandler,
        expiration_seconds: float,
        resubscribes: int,
    ) -> str:
        if not topic:
            self._config.require_default_topic()

        subscribed_topic = self.build_full_topic(topic)
        subscription = await self._registry.create(self._connection.node, subscribed_topic)
        subscription.on_message(self._dispatcher(subscribed_topic, handler))

        for attempt in range(self._config.ping_count):
            try:
                await subscription.ping()
                break
            except TransportError as e:
                if is_subscription_lost(e):
                    await self._registry.release(subscribed_topic, subscription)
                    if resubscribes >= MAX_RESUBSCRIBES:
                        raise SubscriptionError(
                            f"Subscription to {subscribed_topic} lost after {resubscribes} resubscribe attempts",
                            details={"topic": subscribed_topic},
                        ) from e
                    logger.warning("Peer has no subs, retrying subscription...")
                    return await self._subscribe(topic, handler, expiration_seconds, resubscribes + 1)
                logger.warning(f"Subscription ping attempt {attempt} error, retrying... ({e})")
                await asyncio.sleep(self._retry_delay)
        else:
            logger.warning(f"Subscription to {subscribed_topic} never answered a ping; keeping it anyway")

        logger.info(f"Subscribed to topic: {subscribed_topic}")
        await self._registry.put(subscribed_topic, subscription, expiration_seconds)
        return subscribed_topic

    def _dispatcher(self, topic: str, handler: EventHandler) -> MessageCallback:
        async def on_message(payload: Optional[bytes]) -> None:
            if not payload:
                logger.error(f"Received message with no payload on {topic}")
                return
            try:
                event = decode_envelope(payload)
            except DecodeError as e:
                logger.error(f"Error decoding message payload on {topic}: {e}")
                return
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Message handler for {topic} raised")

        return on_message

    async def publish(self, body: Any, topic: str, room_id: str) -> str:
        """Publish ``body`` to a topic hint and return the concrete topic.

        Raises ConfigurationError or ConnectivityError before anything is sent,
        and PublishError when the node rejects the message.
        """
        full_topic = self.build_full_topic(topic)
        node = self._connection.node
        payload = encode_envelope(now_ms(), room_id, body)

        logger.info(f"Sending message to topic {full_topic} => {body!r}")
        try:
            await node.publish(full_topic, payload)
        except TransportError as e:
            raise PublishError(
                f"Publish to {full_topic} failed: {e}",
                details={"topic": full_topic, "status_code": e.status_code},
            ) from e
        logger.info("Message sent!")
        return full_topic

    async def send_message(self, body: Any, topic: str, room_id: str) -> bool:
        """Publish ``body`` to a topic hint. Never raises; returns whether the node accepted it."""
        try:
            await self.publish(body, topic, room_id)
        except (WakuError, TypeError, ValueError) as e:
            logger.error(f"Error sending message: {e}")
            return False
        return True

    async def unsubscribe(self, topic: str) -> bool:
        """Drop the subscription for a topic hint.

        Pass the concrete topic returned by subscribe() for ephemeral topics;
        an ephemeral hint resolves to a fresh topic every time.
        """
        if not self._connection.ready:
            logger.debug(f"Not connected; nothing to unsubscribe for {topic!r}")
            return False
        return await self._registry.remove(self.build_full_topic(topic))

    async def stop(self) -> None:
        """Stop the node. Live subscriptions are not unsubscribed first."""
        task, self._sweep_task = self._sweep_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._connection.stop()

    def default_topic(self) -> str:
        return self.build_full_topic("")

    def build_full_topic(self, topic: Optional[str] = None) -> str:
        return resolve_topic(
            topic,
            self._config.content_topic,
            self._config.topic,
            ephemeral_bytes=self._config.ephemeral_bytes,
        )
