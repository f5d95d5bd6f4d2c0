"""History selection: filtering and token-budget windowing (core domain).

Selection runs in a strict order:
1) Drop a trailing OTHER turn (a discarded draft left behind by regeneration)
2) Drop the most recent USER turn, when requested
3) Window from the newest turn backwards under the token budget

The input sequence is never mutated; every step works on a copy.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from core.config import SelectionConfig
from core.models import Speaker, Turn
from core.tokens import estimate_tokens

LOGGER = logging.getLogger(__name__)


def _skip_last_other(turns: List[Turn]) -> List[Turn]:
    if turns and turns[-1].speaker is Speaker.OTHER:
        return turns[:-1]
    return turns


def _drop_last_user(turns: List[Turn]) -> List[Turn]:
    for index in range(len(turns) - 1, -1, -1):
        if turns[index].speaker is Speaker.USER:
            return turns[:index] + turns[index + 1 :]
    return turns


def window_by_tokens(
    turns: Sequence[Turn],
    max_tokens: int,
    chars_per_token: float,
    soft_limit: bool = False,
) -> List[Turn]:
    """Return the newest suffix of turns that fits the token budget.

    Hard mode stops before a turn that would push the total over max_tokens.
    Soft mode always adds the turn, then stops once the total reaches the
    budget, so the crossing turn is the oldest one kept.
    """

    if max_tokens <= 0:
        return list(turns)

    window: List[Turn] = []
    total = 0
    for turn in reversed(turns):
        cost = estimate_tokens(turn.text, chars_per_token)
        if soft_limit:
            window.insert(0, turn)
            total += cost
            if total >= max_tokens:
                break
        else:
            if total + cost > max_tokens:
                break
            window.insert(0, turn)
            total += cost

    LOGGER.debug("Token window kept %s of %s turns (~%s tokens)", len(window), len(turns), total)
    return window


def select_history(turns: Optional[Sequence[Turn]], config: SelectionConfig) -> List[Turn]:
    """Return the filtered, budget-constrained turns, oldest first."""

    selected = list(turns or [])

    if config.skip_last_other_turn:
        selected = _skip_last_other(selected)

    if config.drop_last_user_turn:
        selected = _drop_last_user(selected)

    return window_by_tokens(
        selected,
        config.max_tokens,
        config.chars_per_token,
        soft_limit=config.soft_limit,
    )
