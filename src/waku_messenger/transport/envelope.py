"""
Wire envelope encoding and decoding.

The envelope is a protobuf ``ChatMessage``:

    field 1  timestamp  uint64  ms since epoch
    field 2  body       bytes   compact JSON text, UTF-8
    field 3  roomId     bytes   UTF-8

The descriptor is built at import time so no generated module is needed.
"""

import json
import time
from typing import Any

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError as ProtobufDecodeError

from waku_messenger.errors import DecodeError
from waku_messenger.models.envelope import WakuMessageEvent

_FIELD = descriptor_pb2.FieldDescriptorProto


def _build_chat_message_class() -> type:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="waku_messenger/chat_message.proto",
        package="waku_messenger",
        syntax="proto2",
    )
    message = file_proto.message_type.add(name="ChatMessage")
    message.field.add(name="timestamp", number=1, type=_FIELD.TYPE_UINT64, label=_FIELD.LABEL_OPTIONAL)
    message.field.add(name="body", number=2, type=_FIELD.TYPE_BYTES, label=_FIELD.LABEL_OPTIONAL)
    message.field.add(name="roomId", number=3, type=_FIELD.TYPE_BYTES, label=_FIELD.LABEL_OPTIONAL)

    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    return message_factory.GetMessageClass(pool.FindMessageTypeByName("waku_messenger.ChatMessage"))


ChatMessage = _build_chat_message_class()


def now_ms() -> int:
    return int(time.time() * 1000)


def encode_envelope(timestamp: int, room_id: str, body: Any) -> bytes:
    """Pack a message. Raises TypeError/ValueError only if ``body`` is not JSON-serializable."""
    message = ChatMessage(
        timestamp=timestamp,
        body=json.dumps(body, separators=(",", ":")).encode("utf-8"),
        roomId=room_id.encode("utf-8"),
    )
    return message.SerializeToString()


def decode_envelope(payload: bytes) -> WakuMessageEvent:
    try:
        message = ChatMessage.FromString(bytes(payload))
    except ProtobufDecodeError as e:
        raise DecodeError(f"Malformed envelope: {e}") from e

    try:
        room_id = message.roomId.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"roomId is not valid UTF-8: {e}") from e

    try:
        body = json.loads(message.body.decode("utf-8"))
    except ValueError as e:
        raise DecodeError(f"body is not valid JSON: {e}") from e

    return WakuMessageEvent(timestamp=message.timestamp, room_id=room_id, body=body)
