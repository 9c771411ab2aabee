"""
Decoded inbound message handed to subscription handlers.
"""

from typing import Any

from pydantic import BaseModel


class WakuMessageEvent(BaseModel):
    timestamp: int  # ms since epoch, set by the producer
    room_id: str
    body: Any = None  # any JSON value
