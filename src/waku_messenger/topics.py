"""
Content topic resolution.

A caller passes a topic *hint*; the resolver turns it into the concrete content
topic used on the wire, in this order:

1. empty hint        -> template with the default subtopic
2. contains "random" -> template with a fresh random hex subtopic (ephemeral)
3. relative name     -> template with the hint as subtopic
4. starts with "/"   -> used verbatim

The ephemeral check runs before the fully-qualified check, so "/a/random/b"
resolves to a fresh ephemeral topic.
"""

import secrets
from typing import Optional

from waku_messenger.errors import ConfigurationError

PLACEHOLDER = "PLACEHOLDER"
EPHEMERAL_MARKER = "random"
TOPIC_SEPARATOR = "/"
DEFAULT_EPHEMERAL_BYTES = 16


def random_hex_string(byte_length: int = DEFAULT_EPHEMERAL_BYTES) -> str:
    """Random hex string of ``byte_length`` bytes (twice as many characters)."""
    return secrets.token_hex(byte_length)


def fill_template(template: Optional[str], subtopic: Optional[str]) -> str:
    if not template:
        raise ConfigurationError("content topic template is not configured")
    if not subtopic:
        raise ConfigurationError("subtopic is not configured")
    # first occurrence only
    return template.replace(PLACEHOLDER, subtopic, 1)


def resolve_topic(
    hint: Optional[str],
    template: Optional[str],
    default_subtopic: Optional[str],
    ephemeral_bytes: int = DEFAULT_EPHEMERAL_BYTES,
) -> str:
    if not hint:
        return fill_template(template, default_subtopic)
    if EPHEMERAL_MARKER in hint:
        return fill_template(template, random_hex_string(ephemeral_bytes))
    if not hint.startswith(TOPIC_SEPARATOR):
        return fill_template(template, hint)
    return hint
