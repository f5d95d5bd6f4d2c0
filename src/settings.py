"""Static configuration for rolecast.

All user-editable settings (names, headers, tags, token budget, rewrite rules,
logging) live in a single JSON file that is merged over the defaults below.
"""

import copy
import json
import logging
import os
from typing import Any, Optional

from dotenv import load_dotenv

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

load_dotenv()

# ROLECAST_CONFIG may point at a settings file outside the project.
CONFIG_PATH = os.getenv("ROLECAST_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")

DEFAULT_SETTINGS: dict[str, Any] = {
    "user_name": "Student",
    "other_name": "Teacher",
    "user_header": "## Student's Turn",
    "other_header": "## Teacher's Turn",
    "user_tag": "student",
    "other_tag": "teacher",
    # Regeneration leaves the discarded reply as the last turn; keep it out.
    "skip_last_other": True,
    "drop_last_user": False,
    # 0 = unlimited
    "max_tokens": 0,
    "chars_per_token": 4,
    "soft_token_limit": False,
    "rewrite_rules": [],
    "style": "roleplay",
    # Used when a macro like {{history::N}} gets a bad N.
    "macro_default_turns": 10,
    "logging": {"enabled": False},
}


def _load_json_config(path: str) -> dict:
    """Load a settings file with a flat, user-friendly schema."""

    with open(path, "r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Config file is not valid JSON: {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a JSON object: {path}")
    return data


def merge_settings(persisted: Optional[dict]) -> dict[str, Any]:
    """Return a fresh dict of persisted values layered over the defaults."""

    merged = copy.deepcopy(DEFAULT_SETTINGS)
    merged.update(copy.deepcopy(persisted or {}))
    return merged


def load_settings(path: Optional[str] = None) -> dict[str, Any]:
    """Load the settings file (if any) merged over the defaults."""

    path = path or CONFIG_PATH
    if not os.path.exists(path):
        logging.getLogger(__name__).info("No config file at %s, using defaults", path)
        return merge_settings(None)
    return merge_settings(_load_json_config(path))
