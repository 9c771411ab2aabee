"""
REST adapter for a running nwaku node.

Peers are dialed through the admin endpoints, subscriptions go through
filter v2 and publishing through light push. The REST API has no push
channel, so each subscription runs a task that polls the node for messages
cached on its content topic.
"""

import asyncio
import base64
import binascii
import inspect
import logging
import time
import uuid
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx

from waku_messenger.errors import TransportError
from waku_messenger.transport.http import HttpClient
from waku_messenger.transport.node import (
    FilterSubscription,
    MessageCallback,
    NodeFactory,
    NodeOptions,
    Protocols,
    WakuNode,
)

logger = logging.getLogger(__name__)

# Codec prefixes; the version suffix differs between nwaku releases.
PROTOCOL_CODECS = {
    Protocols.LIGHT_PUSH: "/vac/waku/lightpush/",
    Protocols.FILTER: "/vac/waku/filter-subscribe/",
    Protocols.RELAY: "/vac/waku/relay/",
    Protocols.STORE: "/vac/waku/store",
}
PEER_POLL_INTERVAL_S = 0.5
DEFAULT_POLL_INTERVAL_S = 1.0


def _check_status(result: Any) -> None:
    """Filter endpoints may answer 200 with an error status in the body."""
    if isinstance(result, dict):
        code = result.get("statusCode")
        if isinstance(code, int) and code >= 400:
            raise TransportError(str(result.get("statusDesc") or f"status {code}"), status_code=code)


def _connected_codecs(peer: dict[str, Any]) -> set[str]:
    """Codecs served over a live connection, for one /admin/v1/peers entry.

    Older nodes report ``protocols: [{protocol, connected}]``; newer ones report
    plain codec strings plus a peer-level ``connected`` field.
    """
    flag = peer.get("connected")
    if isinstance(flag, str):
        peer_connected = flag.lower() == "connected"
    else:
        peer_connected = flag is None or bool(flag)

    codecs: set[str] = set()
    for proto in peer.get("protocols") or []:
        if isinstance(proto, dict):
            if proto.get("connected", peer_connected):
                codecs.add(str(proto.get("protocol", "")))
        elif peer_connected:
            codecs.add(str(proto))
    return codecs


class RestFilterSubscription(FilterSubscription):
    def __init__(
        self,
        http: HttpClient,
        topic: str,
        request_id: str,
        pubsub_topic: Optional[str] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        on_close: Optional[Callable[["RestFilterSubscription"], None]] = None,
        topic_in_use: Optional[Callable[[str], bool]] = None,
    ):
        self._http = http
        self._topic = topic
        self._request_id = request_id
        self._pubsub_topic = pubsub_topic
        self._poll_interval = poll_interval
        self._on_close = on_close
        self._topic_in_use = topic_in_use
        self._callbacks: list[MessageCallback] = []
        self._poll_task: Optional[asyncio.Task[None]] = None
        self._closed = False

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def request_id(self) -> str:
        return self._request_id

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def on_message(self, callback: MessageCallback) -> None:
        self._callbacks.append(callback)
        if self._poll_task is None:
            self._poll_task = asyncio.get_running_loop().create_task(self._poll())

    async def _poll(self) -> None:
        path = f"/filter/v2/messages/{quote(self._topic, safe='')}"
        while not self._closed:
            try:
                messages = await self._http.get(path) or []
                if not isinstance(messages, list):
                    messages = []
            except TransportError as e:
                logger.warning(f"Polling messages for {self._topic} failed: {e}")
                messages = []
            for message in messages:
                if self._closed:
                    break
                await self._deliver(message)
            await asyncio.sleep(self._poll_interval)

    async def _deliver(self, message: Any) -> None:
        payload: Optional[bytes] = None
        raw = message.get("payload") if isinstance(message, dict) else None
        if raw:
            try:
                payload = base64.b64decode(raw, validate=True)
            except (binascii.Error, ValueError):
                logger.error(f"Dropping message on {self._topic}: payload is not base64")
                return
        for callback in list(self._callbacks):
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Message callback for {self._topic} failed")

    async def ping(self) -> None:
        result = await self._http.get(f"/filter/v2/subscriptions/{quote(self._request_id, safe='')}")
        _check_status(result)

    async def close(self) -> None:
        """Stop polling without telling the node."""
        self._closed = True
        task, self._poll_task = self._poll_task, None
        if self._on_close is not None:
            self._on_close(self)
        # a callback may close its own subscription; the poll loop then exits on its own
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def unsubscribe(self) -> None:
        await self.close()
        if self._http.closed:
            logger.debug(f"Node behind {self._topic} is stopped; nothing to unsubscribe")
            return
        if self._topic_in_use is not None and self._topic_in_use(self._topic):
            # another local subscription still relies on the node-side filter
            return
        body: dict[str, Any] = {"requestId": str(uuid.uuid4()), "contentFilters": [self._topic]}
        if self._pubsub_topic:
            body["pubsubTopic"] = self._pubsub_topic
        _check_status(await self._http.delete("/filter/v2/subscriptions", body))


class RestLightNode(WakuNode):
    def __init__(
        self,
        base_url: str,
        options: Optional[NodeOptions] = None,
        pubsub_topic: Optional[str] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL_S,
        http: Optional[HttpClient] = None,
    ):
        self._options = options or NodeOptions()
        self._http = http or HttpClient(base_url)
        self._pubsub_topic = pubsub_topic
        self._poll_interval = poll_interval
        self._connected = False
        self._subscriptions: set[RestFilterSubscription] = set()

    @property
    def options(self) -> NodeOptions:
        return self._options

    async def dial(self, address: str) -> None:
        await self._http.post("/admin/v1/peers", [address])

    async def start(self) -> None:
        info = await self._http.get("/debug/v1/info")
        addresses = info.get("listenAddresses") if isinstance(info, dict) else None
        logger.info(f"Waku node at {self._http.base_url} is up, listening on {addresses}")
        if self._options.default_bootstrap:
            logger.info("No static peers given; relying on the node's bootstrap and discovery")

    async def stop(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.close()
        self._connected = False
        await self._http.close()

    async def wait_for_peers(self, protocols: list[str], timeout: float) -> None:
        required = [PROTOCOL_CODECS.get(p, p) for p in protocols]
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            peers = await self._http.get("/admin/v1/peers") or []
            available: set[str] = set()
            for peer in peers:
                if isinstance(peer, dict):
                    available |= _connected_codecs(peer)
            if all(any(codec.startswith(prefix) for codec in available) for prefix in required):
                self._connected = True
                return
            self._connected = False
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise TransportError(f"Timed out after {timeout}s waiting for peers serving {protocols}")
            await asyncio.sleep(min(PEER_POLL_INTERVAL_S, remaining))

    def is_connected(self) -> bool:
        return self._connected

    async def subscribe(self, topic: str) -> RestFilterSubscription:
        request_id = str(uuid.uuid4())
        body: dict[str, Any] = {"requestId": request_id, "contentFilters": [topic]}
        if self._pubsub_topic:
            body["pubsubTopic"] = self._pubsub_topic
        _check_status(await self._http.post("/filter/v2/subscriptions", body))
        subscription = RestFilterSubscription(
            self._http, topic, request_id,
            pubsub_topic=self._pubsub_topic,
            poll_interval=self._poll_interval,
            on_close=self._subscriptions.discard,
            topic_in_use=self._topic_in_use,
        )
        self._subscriptions.add(subscription)
        return subscription

    def _topic_in_use(self, topic: str) -> bool:
        return any(s.topic == topic for s in self._subscriptions)

    async def publish(self, topic: str, payload: bytes) -> None:
        body: dict[str, Any] = {
            "message": {
                "payload": base64.b64encode(payload).decode("ascii"),
                "contentTopic": topic,
                "timestamp": time.time_ns(),
            },
        }
        if self._pubsub_topic:
            body["pubsubTopic"] = self._pubsub_topic
        await self._http.post("/lightpush/v1/message", body)


def rest_node_factory(
    base_url: str,
    pubsub_topic: Optional[str] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL_S,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> NodeFactory:
    """Node factory for the messenger; ``transport`` lets tests mock the HTTP layer."""

    def create(options: NodeOptions) -> RestLightNode:
        return RestLightNode(
            base_url,
            options,
            pubsub_topic=pubsub_topic,
            poll_interval=poll_interval,
            http=HttpClient(base_url, transport=transport),
        )

    return create
