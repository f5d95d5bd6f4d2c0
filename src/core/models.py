"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any host-specific message types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class Speaker(str, Enum):
    """Who authored a turn."""

    USER = "user"
    OTHER = "other"


@dataclass(frozen=True)
class Turn:
    """One conversation message, as read from the host."""

    text: str
    speaker: Speaker
    id: Optional[Union[int, str]] = None


def parse_speaker(value: Union[str, Speaker, None]) -> Optional[Speaker]:
    """Map user-facing speaker names to a Speaker, None meaning any speaker."""

    if value is None or isinstance(value, Speaker):
        return value
    lowered = value.strip().lower()
    if lowered in {"", "any", "all"}:
        return None
    if lowered == "user":
        return Speaker.USER
    if lowered in {"other", "assistant", "char", "bot"}:
        return Speaker.OTHER
    raise ValueError(f"Unsupported speaker: {value}")
