"""Named macro registry and template expansion.

Hosts expand placeholders such as {{history}} or {{history::6}} inside prompt
templates. The registry maps names to callables and wraps the pure entry
points of HistoryProcessor; the core itself knows nothing about macros.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, List, Optional

from core.config import STYLES
from core.models import Speaker
from core.ports import ConfigProviderPort
from core.processor import HistoryProcessor

LOGGER = logging.getLogger(__name__)

# {{name}} or {{name::argument}}
MACRO_PATTERN = re.compile(r"\{\{\s*([A-Za-z_]\w*)\s*(?:::(.*?))?\s*\}\}", re.DOTALL)

MacroFn = Callable[[Optional[str]], str]


class MacroRegistry:
    """Name -> callable table used by expand()."""

    def __init__(self) -> None:
        self._macros: Dict[str, MacroFn] = {}

    def register(self, name: str, fn: MacroFn) -> None:
        if name in self._macros:
            LOGGER.info("Replacing macro %s", name)
        self._macros[name] = fn

    def names(self) -> List[str]:
        return sorted(self._macros)

    def __contains__(self, name: str) -> bool:
        return name in self._macros

    def call(self, name: str, argument: Optional[str] = None) -> str:
        return self._macros[name](argument)

    def expand(self, text: str) -> str:
        """Replace every known {{macro}} in text; unknown ones stay verbatim."""

        def _substitute(match: re.Match) -> str:
            name, argument = match.group(1), match.group(2)
            if name not in self._macros:
                return match.group(0)
            try:
                return self._macros[name](argument)
            except Exception:
                LOGGER.exception("Macro %s failed", name)
                return ""

        return MACRO_PATTERN.sub(_substitute, text or "")


def parse_turn_count(argument: Optional[str], default: int) -> int:
    """Parse the N in {{history::N}}, falling back to default on bad input."""

    try:
        value = int(str(argument).strip())
    except (TypeError, ValueError):
        LOGGER.warning("Invalid turn count %r, using %s", argument, default)
        return default
    if value <= 0:
        LOGGER.warning("Non-positive turn count %r, using %s", argument, default)
        return default
    return value


def _resolve_style(argument: Optional[str]) -> Optional[str]:
    style = (argument or "").strip()
    if not style:
        return None
    if style not in STYLES:
        LOGGER.warning("Unknown history style %r, using the configured style", style)
        return None
    return style


def build_default_registry(processor: HistoryProcessor, config_provider: ConfigProviderPort) -> MacroRegistry:
    """Register the standard history macros against a processor."""

    registry = MacroRegistry()

    def history(argument: Optional[str]) -> str:
        if argument is None or not argument.strip():
            return processor.build_formatted_history()
        default = config_provider.get_config().macro_default_turns
        return processor.build_formatted_history(last=parse_turn_count(argument, default))

    def history_style(argument: Optional[str]) -> str:
        return processor.build_formatted_history(style=_resolve_style(argument))

    def last_text(speaker: Optional[Speaker]) -> MacroFn:
        def _macro(argument: Optional[str]) -> str:
            turn = processor.last_matching_turn(speaker)
            return turn.text if turn else ""

        return _macro

    def last_block(speaker: Optional[Speaker]) -> MacroFn:
        def _macro(argument: Optional[str]) -> str:
            return processor.last_matching_turn_formatted(speaker, _resolve_style(argument))

        return _macro

    registry.register("history", history)
    # Name used by templates written for the SillyTavern chat-to-roleplay extension.
    registry.register("chatToRoleplay", history)
    registry.register("historyStyle", history_style)
    registry.register("lastUserMessage", last_text(Speaker.USER))
    registry.register("lastOtherMessage", last_text(Speaker.OTHER))
    registry.register("lastMessage", last_text(None))
    registry.register("lastUserBlock", last_block(Speaker.USER))
    registry.register("lastOtherBlock", last_block(Speaker.OTHER))
    return registry
