"""In-memory settings surface.

Implements the core ConfigProviderPort. Persisted settings are merged over the
defaults once at startup; edits land through set() and every get_config()
builds a fresh HistoryConfig from the current values.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Optional

import settings
from core.config import HistoryConfig, build_history_config

LOGGER = logging.getLogger(__name__)


class SettingsStore:
    """Mutable settings holder that satisfies the ConfigProviderPort contract."""

    def __init__(self, persisted: Optional[dict[str, Any]] = None) -> None:
        self._values = settings.merge_settings(persisted)

    @classmethod
    def from_file(cls, path: Optional[str] = None) -> "SettingsStore":
        store = cls()
        store._values = settings.load_settings(path)
        return store

    def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._values.get(key, default))

    def set(self, key: str, value: Any) -> None:
        """Update a single setting; takes effect on the next pipeline call."""

        if key not in settings.DEFAULT_SETTINGS:
            LOGGER.warning("Setting unknown key %s", key)
        self._values[key] = copy.deepcopy(value)

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._values)

    def get_config(self) -> HistoryConfig:
        return build_history_config(self._values)
