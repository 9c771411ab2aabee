"""
Client configuration.

Values come from WAKU_* environment variables (see ``ENV_VARS``) or are passed
directly. Validation failures are reported as a single ConfigurationError that
lists every offending field.
"""

import os
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from waku_messenger.errors import ConfigurationError
from waku_messenger.topics import DEFAULT_EPHEMERAL_BYTES, PLACEHOLDER

DEFAULT_NODE_URL = "http://127.0.0.1:8645"
DEFAULT_PING_COUNT = 20

ENV_VARS = {
    "WAKU_CONTENT_TOPIC": "content_topic",
    "WAKU_TOPIC": "topic",
    "WAKU_PING_COUNT": "ping_count",
    "WAKU_STATIC_PEERS": "static_peers",
    "WAKU_NODE_URL": "node_url",
    "WAKU_PUBSUB_TOPIC": "pubsub_topic",
    "WAKU_EPHEMERAL_BYTES": "ephemeral_bytes",
    "WAKU_POLL_INTERVAL": "poll_interval",
    "WAKU_SWEEP_INTERVAL": "sweep_interval",
}


class WakuConfig(BaseModel):
    content_topic: Optional[str] = None  # template, e.g. "/my-app/1/PLACEHOLDER/proto"
    topic: Optional[str] = None          # default subtopic
    ping_count: int = Field(DEFAULT_PING_COUNT, ge=1)
    static_peers: list[str] = Field(default_factory=list)
    node_url: str = DEFAULT_NODE_URL
    pubsub_topic: Optional[str] = None
    ephemeral_bytes: int = Field(DEFAULT_EPHEMERAL_BYTES, ge=1)
    poll_interval: float = Field(1.0, gt=0)
    sweep_interval: Optional[float] = Field(None, gt=0)

    @field_validator("content_topic", "topic", "pubsub_topic", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("content_topic")
    @classmethod
    def _single_placeholder(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value.count(PLACEHOLDER) != 1:
            raise ValueError(f"must contain exactly one {PLACEHOLDER}")
        return value

    @field_validator("ping_count", mode="before")
    @classmethod
    def _lenient_ping_count(cls, value: Any) -> Any:
        # Unparsable or zero counts fall back to the default.
        if value is None:
            return DEFAULT_PING_COUNT
        if isinstance(value, str):
            try:
                value = int(value.strip())
            except ValueError:
                return DEFAULT_PING_COUNT
        return value or DEFAULT_PING_COUNT

    @field_validator("static_peers", mode="before")
    @classmethod
    def _split_peers(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple)):
            return [str(p).strip() for p in value if str(p).strip()]
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "WakuConfig":
        env = os.environ if environ is None else environ
        values = {field: env[name] for name, field in ENV_VARS.items() if env.get(name, "").strip()}
        return validate_config(values)

    def require_default_topic(self) -> None:
        """The default topic needs both the template and the default subtopic."""
        if not self.content_topic or not self.topic:
            raise ConfigurationError(
                "subscription not configured: WAKU_CONTENT_TOPIC and WAKU_TOPIC are required "
                "to use the default topic"
            )


def validate_config(values: Mapping[str, Any]) -> WakuConfig:
    try:
        return WakuConfig.model_validate(dict(values))
    except ValidationError as e:
        lines = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ConfigurationError(
            "Waku configuration validation failed:\n" + "\n".join(lines),
            details={"errors": lines},
        ) from e
