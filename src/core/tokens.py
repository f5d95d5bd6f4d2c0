"""Character-ratio token estimate (core domain)."""

from __future__ import annotations

import math
from typing import Optional


def estimate_tokens(text: Optional[str], chars_per_token: float) -> int:
    """Return ceil(len(text) / chars_per_token), or 0 for empty text.

    chars_per_token must be positive; build_history_config clamps it before it
    reaches the core.
    """

    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)
