from __future__ import annotations

from core.config import SelectionConfig
from core.models import Speaker, Turn
from core.selector import select_history
from core.tokens import estimate_tokens


def _turns(*pairs: tuple[Speaker, str]) -> list[Turn]:
    return [Turn(text=text, speaker=speaker, id=index) for index, (speaker, text) in enumerate(pairs)]


def _alternating(count: int, chars: int = 40) -> list[Turn]:
    speakers = [Speaker.USER, Speaker.OTHER]
    return [Turn(text="x" * chars, speaker=speakers[i % 2], id=i) for i in range(count)]


def _config(**overrides) -> SelectionConfig:
    values = dict(
        skip_last_other_turn=False,
        drop_last_user_turn=False,
        max_tokens=0,
        chars_per_token=4,
        soft_limit=False,
    )
    values.update(overrides)
    return SelectionConfig(**values)


def test_unlimited_keeps_everything_when_last_is_user() -> None:
    turns = _turns((Speaker.USER, "hi"), (Speaker.OTHER, "hello"), (Speaker.USER, "bye"))
    selected = select_history(turns, _config(skip_last_other_turn=True))
    assert selected == turns


def test_skip_last_other_matches_pre_trimmed_conversation() -> None:
    turns = _alternating(6)
    assert turns[-1].speaker is Speaker.OTHER
    config = _config(skip_last_other_turn=True, max_tokens=25)
    trimmed = select_history(turns[:-1], _config(max_tokens=25))
    assert select_history(turns, config) == trimmed


def test_skip_last_other_only_drops_one() -> None:
    turns = _turns((Speaker.USER, "a"), (Speaker.OTHER, "b"), (Speaker.OTHER, "c"))
    assert select_history(turns, _config(skip_last_other_turn=True)) == turns[:2]


def test_drop_last_user_removes_only_the_newest_user_turn() -> None:
    turns = _turns(
        (Speaker.USER, "u1"),
        (Speaker.OTHER, "o1"),
        (Speaker.USER, "u2"),
        (Speaker.OTHER, "o2"),
    )
    selected = select_history(turns, _config(drop_last_user_turn=True))
    assert [turn.text for turn in selected] == ["u1", "o1", "o2"]


def test_drop_last_user_without_user_turns_is_noop() -> None:
    turns = _turns((Speaker.OTHER, "o1"), (Speaker.OTHER, "o2"))
    assert select_history(turns, _config(drop_last_user_turn=True)) == turns


def test_skip_runs_before_drop() -> None:
    turns = _turns((Speaker.USER, "u1"), (Speaker.USER, "u2"), (Speaker.OTHER, "draft"))
    selected = select_history(turns, _config(skip_last_other_turn=True, drop_last_user_turn=True))
    assert [turn.text for turn in selected] == ["u1"]


def test_hard_limit_keeps_two_most_recent() -> None:
    turns = _alternating(5)
    selected = select_history(turns, _config(max_tokens=25))
    assert selected == turns[-2:]


def test_soft_limit_keeps_three_most_recent() -> None:
    turns = _alternating(5)
    selected = select_history(turns, _config(max_tokens=25, soft_limit=True))
    assert selected == turns[-3:]


def test_hard_limit_never_exceeds_budget() -> None:
    turns = [Turn(text="y" * length, speaker=Speaker.USER) for length in (3, 17, 9, 30, 1, 12, 8)]
    for budget in range(1, 25):
        selected = select_history(turns, _config(max_tokens=budget))
        assert sum(estimate_tokens(turn.text, 4) for turn in selected) <= budget
        assert selected == turns[len(turns) - len(selected) :]


def test_soft_limit_stops_at_crossing_turn() -> None:
    turns = [Turn(text="y" * length, speaker=Speaker.OTHER) for length in (40, 8, 20, 4)]
    selected = select_history(turns, _config(max_tokens=6, soft_limit=True))
    # 1 + 5 = 6 reaches the budget on the second-newest turn.
    assert selected == turns[2:]


def test_oversized_single_turn() -> None:
    turns = _turns((Speaker.USER, "z" * 400))
    assert select_history(turns, _config(max_tokens=10)) == []
    assert select_history(turns, _config(max_tokens=10, soft_limit=True)) == turns


def test_input_sequence_is_not_mutated() -> None:
    turns = _alternating(4)
    original = list(turns)
    select_history(turns, _config(skip_last_other_turn=True, drop_last_user_turn=True, max_tokens=15))
    assert turns == original


def test_empty_or_missing_conversation() -> None:
    assert select_history([], _config(max_tokens=10)) == []
    assert select_history(None, _config()) == []
