"""Core configuration dataclasses.

Settings are stored as a flat dict outside the core; build_history_config turns
that dict into the shapes the core expects and clamps numbers the core does
not validate itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, List, Mapping

from core.models import Speaker
from core.rules_engine import RewriteRule, build_rewrite_rules

LOGGER = logging.getLogger(__name__)

DEFAULT_CHARS_PER_TOKEN = 4
DEFAULT_MACRO_TURNS = 10
DEFAULT_STYLE = "roleplay"

# Output styles understood by core.formatter.
STYLES = ("roleplay", "tagged", "transcript", "numbered", "quoted", "bracketed")

_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off", ""}


@dataclass(frozen=True)
class RoleTemplate:
    """Presentation settings for one speaker."""

    display_name: str
    header_text: str = ""
    wrapper_tag: str = ""


@dataclass(frozen=True)
class SelectionConfig:
    """Filtering and token-budget settings for history selection."""

    skip_last_other_turn: bool = True
    drop_last_user_turn: bool = False
    max_tokens: int = 0
    chars_per_token: float = DEFAULT_CHARS_PER_TOKEN
    soft_limit: bool = False


@dataclass(frozen=True)
class FormattingConfig:
    """Per-speaker templates plus the ordered rewrite rules."""

    user: RoleTemplate
    other: RoleTemplate
    rewrite_rules: List[RewriteRule] = field(default_factory=list)
    style: str = DEFAULT_STYLE

    def template_for(self, speaker: Speaker) -> RoleTemplate:
        return self.user if speaker is Speaker.USER else self.other


@dataclass(frozen=True)
class HistoryConfig:
    """Everything one pipeline invocation reads."""

    selection: SelectionConfig
    formatting: FormattingConfig
    macro_default_turns: int = DEFAULT_MACRO_TURNS


def _positive_number(raw: Any, default: float, key: str) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        LOGGER.warning("Invalid %s %r, using %s", key, raw, default)
        return default
    if value <= 0:
        LOGGER.warning("Non-positive %s %r, using %s", key, raw, default)
        return default
    return value


def _non_negative_int(raw: Any, key: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        LOGGER.warning("Invalid %s %r, treating as unlimited", key, raw)
        return 0
    if value < 0:
        LOGGER.warning("Negative %s %r, treating as unlimited", key, raw)
        return 0
    return value


def _flag(raw: Any, default: bool, key: str) -> bool:
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_WORDS:
            return True
        if lowered in _FALSE_WORDS:
            return False
        LOGGER.warning("Invalid %s %r, using %s", key, raw, default)
        return default
    if raw is None:
        return default
    return bool(raw)


def _style(raw: Any) -> str:
    if not raw:
        return DEFAULT_STYLE
    if raw not in STYLES:
        LOGGER.warning("Unknown style %r, using %s", raw, DEFAULT_STYLE)
        return DEFAULT_STYLE
    return raw


def build_history_config(raw: Mapping[str, Any]) -> HistoryConfig:
    """Build a HistoryConfig from a merged settings dict."""

    selection = SelectionConfig(
        skip_last_other_turn=_flag(raw.get("skip_last_other"), True, "skip_last_other"),
        drop_last_user_turn=_flag(raw.get("drop_last_user"), False, "drop_last_user"),
        max_tokens=_non_negative_int(raw.get("max_tokens", 0), "max_tokens"),
        chars_per_token=_positive_number(
            raw.get("chars_per_token", DEFAULT_CHARS_PER_TOKEN),
            DEFAULT_CHARS_PER_TOKEN,
            "chars_per_token",
        ),
        soft_limit=_flag(raw.get("soft_token_limit"), False, "soft_token_limit"),
    )
    formatting = FormattingConfig(
        user=RoleTemplate(
            display_name=raw.get("user_name") or "",
            header_text=raw.get("user_header") or "",
            wrapper_tag=raw.get("user_tag") or "",
        ),
        other=RoleTemplate(
            display_name=raw.get("other_name") or "",
            header_text=raw.get("other_header") or "",
            wrapper_tag=raw.get("other_tag") or "",
        ),
        rewrite_rules=build_rewrite_rules(raw.get("rewrite_rules") or []),
        style=_style(raw.get("style")),
    )
    macro_turns = int(
        _positive_number(raw.get("macro_default_turns", DEFAULT_MACRO_TURNS), DEFAULT_MACRO_TURNS, "macro_default_turns")
    )
    return HistoryConfig(selection=selection, formatting=formatting, macro_default_turns=macro_turns)
