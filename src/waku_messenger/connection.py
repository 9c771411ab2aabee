"""
Connection manager. Owns the Waku node and brings it to a usable state.

init() dials static peers (or lets the node bootstrap on its own), starts the
node, then waits until peers serving light push and filter are connected.
Every retry loop uses a fixed attempt count and a fixed delay.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from waku_messenger.errors import ConnectivityError, TransportError
from waku_messenger.transport.node import NodeFactory, NodeOptions, Protocols, WakuNode

logger = logging.getLogger(__name__)

RETRY_DELAY_S = 0.5
DIAL_ATTEMPTS = 5
PEER_TIMEOUT_S = 5.0
REQUIRED_PROTOCOLS = [Protocols.LIGHT_PUSH, Protocols.FILTER]


class ConnectionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    PEER_DIALING = "peer_dialing"
    AWAITING_PEERS = "awaiting_peers"
    READY = "ready"
    FAILED = "failed"
    STOPPED = "stopped"


class ConnectionManager:
    def __init__(
        self,
        static_peers: list[str],
        ping_count: int,
        node_factory: NodeFactory,
        retry_delay: float = RETRY_DELAY_S,
        dial_attempts: int = DIAL_ATTEMPTS,
        peer_timeout: float = PEER_TIMEOUT_S,
    ):
        self._static_peers = list(static_peers)
        self._ping_count = ping_count
        self._node_factory = node_factory
        self._retry_delay = retry_delay
        self._dial_attempts = dial_attempts
        self._peer_timeout = peer_timeout
        self._node: Optional[WakuNode] = None
        self._state = ConnectionState.UNINITIALIZED

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state == ConnectionState.READY and self._node is not None

    @property
    def node(self) -> WakuNode:
        if not self.ready:
            raise ConnectivityError(f"Waku node is not ready (state: {self._state.value}). Call init() first.")
        return self._node  # type: ignore[return-value]

    async def init(self) -> None:
        self._state = ConnectionState.BOOTSTRAPPING
        if self._static_peers:
            node = self._node_factory(NodeOptions(static_peers=self._static_peers, default_bootstrap=False))
            self._node = node
            self._state = ConnectionState.PEER_DIALING
            connected = [peer for peer in self._static_peers if await self._dial(node, peer)]
            logger.info(f"Dialed {len(connected)}/{len(self._static_peers)} static peers")
        else:
            node = self._node_factory(NodeOptions(default_bootstrap=True))
            self._node = node

        try:
            await node.start()
        except TransportError as e:
            self._state = ConnectionState.FAILED
            raise ConnectivityError(f"Could not start Waku node: {e}") from e

        self._state = ConnectionState.AWAITING_PEERS
        await self._wait_for_peers(node)
        self._state = ConnectionState.READY
        logger.info("Connected to Waku")

    async def _dial(self, node: WakuNode, peer: str) -> bool:
        """Dial one peer; a peer that never answers is skipped."""
        for attempt in range(self._dial_attempts):
            try:
                await node.dial(peer)
                logger.info(f"{peer} connected")
                return True
            except TransportError as e:
                logger.error(f"Error {attempt} dialing peer {peer}: {e}")
                await asyncio.sleep(self._retry_delay)
        logger.error(f"Giving up on peer {peer} after {self._dial_attempts} attempts")
        return False

    async def _wait_for_peers(self, node: WakuNode) -> None:
        for attempt in range(self._ping_count):
            try:
                await node.wait_for_peers(REQUIRED_PROTOCOLS, self._peer_timeout)
                if node.is_connected():
                    return
                reason = "node reports no connection"
            except TransportError as e:
                reason = str(e)
            logger.info(f"Attempt {attempt + 1}/{self._ping_count} => still waiting for peers ({reason})")
            if attempt == self._ping_count - 1:
                break
            await asyncio.sleep(self._retry_delay)
        self._state = ConnectionState.FAILED
        raise ConnectivityError("Could not find remote peer after max attempts")

    async def stop(self) -> None:
        if self._node is None:
            return
        node, self._node = self._node, None
        logger.info("Stopping Waku node...")
        self._state = ConnectionState.STOPPED
        await node.stop()
