"""Chat-log-to-core turn mapping adapter.

Reads a conversation from disk and keeps file-format details out of the core.
Two record shapes are understood:
- SillyTavern chat lines: {"name", "is_user", "is_system", "mes", ...}
- Chat-completion messages: {"role": "user" | "assistant" | ..., "content"}

The file can be JSONL (one record per line) or a JSON array, optionally
wrapped as {"messages": [...]}.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Iterable, List, Optional

from core.models import Speaker, Turn

LOGGER = logging.getLogger(__name__)


def turn_from_record(record: Any, index: int) -> Optional[Turn]:
    """Build a core Turn from one chat record, or None if it is not a message."""

    if not isinstance(record, dict):
        return None

    if "mes" in record:
        # System notes are host bookkeeping, not part of the dialogue.
        if record.get("is_system"):
            return None
        speaker = Speaker.USER if record.get("is_user") else Speaker.OTHER
        text = record.get("mes")
    elif "role" in record:
        role = str(record.get("role") or "").lower()
        if role == "system":
            return None
        speaker = Speaker.USER if role == "user" else Speaker.OTHER
        text = record.get("content")
    else:
        # Header lines (chat metadata) have no message body.
        return None

    if not isinstance(text, str):
        text = "" if text is None else str(text)

    return Turn(text=text, speaker=speaker, id=record.get("id", index))


def turns_from_records(records: Iterable[Any]) -> List[Turn]:
    turns: List[Turn] = []
    for index, record in enumerate(records):
        turn = turn_from_record(record, index)
        if turn is not None:
            turns.append(turn)
    return turns


def _read_records(path: str) -> List[Any]:
    with open(path, "r", encoding="utf-8") as handle:
        raw = handle.read()

    stripped = raw.lstrip()
    if stripped.startswith("["):
        return json.loads(stripped)
    if stripped.startswith("{"):
        # A single (possibly pretty-printed) object; JSONL falls through.
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError:
            pass
        else:
            if isinstance(data, dict) and isinstance(data.get("messages"), list):
                return data["messages"]
            return [data]

    records: List[Any] = []
    for line_no, line in enumerate(raw.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError as exc:
            LOGGER.warning("Skipping malformed line %s in %s: %s", line_no, path, exc)
    return records


class ChatLogConversation:
    """Conversation adapter backed by a chat log file.

    The file is re-read on every call so turns appended by the host are seen
    immediately.
    """

    def __init__(self, path: str) -> None:
        self._path = path

    def get_turns(self) -> List[Turn]:
        if not os.path.exists(self._path):
            LOGGER.warning("Chat log not found: %s", self._path)
            return []
        try:
            records = _read_records(self._path)
        except json.JSONDecodeError as exc:
            LOGGER.warning("Chat log %s is not valid JSON: %s", self._path, exc)
            return []
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Cannot read chat log %s: %s", self._path, exc)
            return []
        return turns_from_records(records)
