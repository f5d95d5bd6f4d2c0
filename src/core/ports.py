"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for conversation and configuration
adapters so that the core can be reused with different hosts.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from core.config import HistoryConfig
from core.models import Turn


class ConversationPort(Protocol):
    """Read-only access to the live conversation, oldest turn first."""

    def get_turns(self) -> Optional[Sequence[Turn]]:
        ...


class ConfigProviderPort(Protocol):
    """Supplies the current merged configuration on every call."""

    def get_config(self) -> HistoryConfig:
        ...
