"""
Process-wide entry point: one initialized WakuClient per process.
"""

import logging
from typing import Optional

from waku_messenger.client import WakuClient
from waku_messenger.config import WakuConfig
from waku_messenger.transport.node import NodeFactory

logger = logging.getLogger(__name__)


class WakuClientService:
    def __init__(self, node_factory: Optional[NodeFactory] = None):
        self._node_factory = node_factory
        self._instance: Optional[WakuClient] = None

    @property
    def instance(self) -> Optional[WakuClient]:
        return self._instance

    async def start(self, config: Optional[WakuConfig] = None) -> WakuClient:
        """Return the running client, creating and initializing it on first call.

        Without ``config`` the WAKU_* environment variables are used.
        """
        if self._instance is not None:
            return self._instance

        client = WakuClient(config or WakuConfig.from_env(), node_factory=self._node_factory)
        try:
            await client.init()
        except BaseException:
            await client.stop()
            raise

        logger.info("Waku client started")
        self._instance = client
        return client

    async def stop(self) -> None:
        if self._instance is None:
            return
        client, self._instance = self._instance, None
        await client.stop()
