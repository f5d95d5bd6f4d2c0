"""Page-markup conversation adapter.

Some hosts only expose the rendered chat page. This adapter rebuilds turns by
querying that markup with BeautifulSoup, and satisfies the same
ConversationPort as the structured chat log adapter.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag

from core.models import Speaker, Turn

LOGGER = logging.getLogger(__name__)

MESSAGE_SELECTOR = "div.mes"
TEXT_SELECTOR = ".mes_text"


def _is_truthy_attr(value: Optional[str]) -> bool:
    return str(value or "").strip().lower() == "true"


def _message_text(node: Tag) -> str:
    for br in node.find_all("br"):
        br.replace_with("\n")
    paragraphs = node.find_all("p")
    if paragraphs:
        return "\n\n".join(p.get_text().strip() for p in paragraphs if p.get_text().strip())
    return node.get_text().strip()


def turns_from_markup(
    markup: str,
    message_selector: str = MESSAGE_SELECTOR,
    text_selector: str = TEXT_SELECTOR,
) -> List[Turn]:
    """Parse rendered chat markup into turns, oldest first."""

    if not markup:
        return []

    soup = BeautifulSoup(markup, "html.parser")
    turns: List[Turn] = []
    for index, node in enumerate(soup.select(message_selector)):
        if _is_truthy_attr(node.get("is_system")):
            continue
        body = node.select_one(text_selector)
        if body is None:
            LOGGER.debug("Message node %s has no %s element", index, text_selector)
            continue
        speaker = Speaker.USER if _is_truthy_attr(node.get("is_user")) else Speaker.OTHER
        turns.append(Turn(text=_message_text(body), speaker=speaker, id=node.get("mesid", index)))
    return turns


class HtmlConversation:
    """Conversation adapter that re-scrapes markup on every call."""

    def __init__(
        self,
        markup_loader: Callable[[], str],
        message_selector: str = MESSAGE_SELECTOR,
        text_selector: str = TEXT_SELECTOR,
    ) -> None:
        self._markup_loader = markup_loader
        self._message_selector = message_selector
        self._text_selector = text_selector

    @classmethod
    def from_file(cls, path: str) -> "HtmlConversation":
        def _load() -> str:
            try:
                with open(path, "r", encoding="utf-8") as handle:
                    return handle.read()
            except (OSError, UnicodeDecodeError) as exc:
                LOGGER.warning("Cannot read chat page %s: %s", path, exc)
                return ""

        return cls(_load)

    def get_turns(self) -> List[Turn]:
        return turns_from_markup(self._markup_loader(), self._message_selector, self._text_selector)
