"""Core history pipeline.

This module is host-agnostic. It only relies on ports for the conversation and
configuration, and re-reads both on every call so edits made through the
settings surface or new chat messages are always picked up.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from core.config import HistoryConfig
from core.formatter import format_history, format_turn
from core.models import Speaker, Turn
from core.ports import ConfigProviderPort, ConversationPort
from core.selector import select_history

LOGGER = logging.getLogger(__name__)


class HistoryProcessor:
    """Orchestrates selection, rewriting, and formatting of chat history."""

    def __init__(self, conversation: ConversationPort, config_provider: ConfigProviderPort) -> None:
        self._conversation = conversation
        self._config_provider = config_provider

    def _snapshot(self) -> List[Turn]:
        # Shallow copy: the host may append to its list while we work.
        return list(self._conversation.get_turns() or [])

    def selected_turns(self, config: Optional[HistoryConfig] = None) -> List[Turn]:
        """Return the turns that would be rendered, oldest first."""

        config = config or self._config_provider.get_config()
        return select_history(self._snapshot(), config.selection)

    def build_formatted_history(self, style: Optional[str] = None, last: Optional[int] = None) -> str:
        """Select, rewrite, and format the conversation.

        When last is a positive int only the newest `last` selected turns are
        rendered.
        """

        config = self._config_provider.get_config()
        turns = self.selected_turns(config)
        if last is not None and last > 0:
            turns = turns[-last:]
        LOGGER.debug("Formatting %s turns with style %s", len(turns), style or config.formatting.style)
        return format_history(turns, config.formatting, style)

    def last_matching_turn(self, speaker: Optional[Speaker] = None) -> Optional[Turn]:
        """Return the newest raw turn from speaker (any speaker when None).

        Skip, drop, and token-window settings are deliberately ignored here.
        """

        for turn in reversed(self._snapshot()):
            if speaker is None or turn.speaker is speaker:
                return turn
        return None

    def last_matching_turn_formatted(self, speaker: Optional[Speaker] = None, style: Optional[str] = None) -> str:
        """Render last_matching_turn as a single block, or "" if none."""

        turn = self.last_matching_turn(speaker)
        if turn is None:
            return ""
        config = self._config_provider.get_config()
        return format_turn(turn, config.formatting, style)
