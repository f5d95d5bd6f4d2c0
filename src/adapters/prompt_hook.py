"""Pre-send hook that expands history macros inside an outgoing prompt.

Payloads come in three shapes: a plain prompt string, a list of chat
messages ({"role", "content"}), or a dict carrying "prompt" and/or
"messages". The caller's payload is never modified; a rewritten copy is
returned.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from adapters.macros import MacroRegistry

LOGGER = logging.getLogger(__name__)


def _rewrite_messages(messages: list, registry: MacroRegistry) -> list:
    rewritten = []
    for message in messages:
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            message = dict(message)
            message["content"] = registry.expand(message["content"])
        rewritten.append(message)
    return rewritten


def rewrite_prompt_payload(payload: Any, registry: MacroRegistry) -> Any:
    """Return payload with every macro placeholder expanded."""

    if isinstance(payload, str):
        return registry.expand(payload)

    if isinstance(payload, list):
        return _rewrite_messages(payload, registry)

    if isinstance(payload, dict):
        rewritten = copy.copy(payload)
        if isinstance(payload.get("prompt"), str):
            rewritten["prompt"] = registry.expand(payload["prompt"])
        if isinstance(payload.get("messages"), list):
            rewritten["messages"] = _rewrite_messages(payload["messages"], registry)
        return rewritten

    LOGGER.debug("Leaving prompt payload of type %s untouched", type(payload).__name__)
    return payload
