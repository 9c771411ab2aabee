"""
Subscription registry: concrete topic -> live filter subscription.

The registry is the only place subscription handles are created and
released, and owns every handle it holds. Expiration is bookkeeping;
entries leave the registry through remove() or an explicit purge_expired().
"""

import asyncio
import logging
import time
from typing import Optional

from waku_messenger.errors import SubscriptionError, TransportError
from waku_messenger.transport.node import FilterSubscription, WakuNode

logger = logging.getLogger(__name__)

DEFAULT_TTL_S = 20


class SubscriptionEntry:
    __slots__ = ("topic", "subscription", "expiration")

    def __init__(self, topic: str, subscription: FilterSubscription, expiration: float):
        self.topic = topic
        self.subscription = subscription
        self.expiration = expiration  # epoch seconds

    def expired(self, now: Optional[float] = None) -> bool:
        return (time.time() if now is None else now) >= self.expiration

    def __repr__(self) -> str:
        return f"SubscriptionEntry(topic={self.topic!r}, expiration={self.expiration!r})"


class SubscriptionRegistry:
    def __init__(self) -> None:
        self._entries: dict[str, SubscriptionEntry] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, topic: object) -> bool:
        return topic in self._entries

    def topics(self) -> list[str]:
        return list(self._entries)

    def get(self, topic: str) -> Optional[SubscriptionEntry]:
        return self._entries.get(topic)

    async def put(self, topic: str, subscription: FilterSubscription, ttl_seconds: float = DEFAULT_TTL_S) -> SubscriptionEntry:
        entry = SubscriptionEntry(topic, subscription, time.time() + ttl_seconds)
        async with self._lock:
            previous = self._entries.get(topic)
            self._entries[topic] = entry
        if previous is not None and previous.subscription is not subscription:
            logger.info(f"Replacing existing subscription for topic: {topic}")
            await self.release(topic, previous.subscription)
        return entry

    async def remove(self, topic: str) -> bool:
        async with self._lock:
            entry = self._entries.pop(topic, None)
        if entry is None:
            logger.warning(f"No subscription found for topic: {topic}")
            return False
        logger.info(f"Unsubscribing from topic: {topic}")
        await self.release(topic, entry.subscription)
        return True

    def expired(self, now: Optional[float] = None) -> list[str]:
        now = time.time() if now is None else now
        return [topic for topic, entry in self._entries.items() if entry.expired(now)]

    async def purge_expired(self, now: Optional[float] = None) -> list[str]:
        """Release and drop every expired entry. Returns the purged topics."""
        now = time.time() if now is None else now
        async with self._lock:
            stale = [entry for entry in self._entries.values() if entry.expired(now)]
            for entry in stale:
                del self._entries[entry.topic]
        for entry in stale:
            logger.info(f"Subscription to {entry.topic} expired")
            await self.release(entry.topic, entry.subscription)
        return [entry.topic for entry in stale]

    @staticmethod
    async def create(node: WakuNode, topic: str) -> FilterSubscription:
        """Open a filter subscription on ``node``. The caller hands it back through put()."""
        try:
            return await node.subscribe(topic)
        except TransportError as e:
            raise SubscriptionError(f"Error creating subscription: {e}", details={"topic": topic}) from e

    @staticmethod
    async def release(topic: str, subscription: FilterSubscription) -> None:
        """Tell the transport to drop ``subscription``; failures are logged."""
        try:
            await subscription.unsubscribe()
        except TransportError as e:
            logger.error(f"Error unsubscribing from {topic}: {e}")
