from __future__ import annotations

import logging
from typing import Optional

import pytest

import settings
from core.config import HistoryConfig, build_history_config
from core.models import Speaker, Turn, parse_speaker
from core.processor import HistoryProcessor


class FakeConversation:
    def __init__(self, turns: Optional[list[Turn]]) -> None:
        self.turns = turns
        self.reads = 0

    def get_turns(self) -> Optional[list[Turn]]:
        self.reads += 1
        return self.turns


class FakeConfigProvider:
    def __init__(self, **overrides) -> None:
        self.values = settings.merge_settings(
            {
                "user_name": "U",
                "other_name": "O",
                "user_header": "",
                "other_header": "",
                "user_tag": "",
                "other_tag": "",
            }
        )
        self.values.update(overrides)

    def get_config(self) -> HistoryConfig:
        return build_history_config(self.values)


def _conversation() -> list[Turn]:
    return [
        Turn(text="hi", speaker=Speaker.USER, id=0),
        Turn(text="hello", speaker=Speaker.OTHER, id=1),
        Turn(text="bye", speaker=Speaker.USER, id=2),
        Turn(text="draft reply", speaker=Speaker.OTHER, id=3),
    ]


def test_end_to_end_default_style() -> None:
    processor = HistoryProcessor(FakeConversation(_conversation()), FakeConfigProvider())
    assert processor.build_formatted_history() == "U: hi\n\nO: hello\n\nU: bye"


def test_last_n_turns_of_selection() -> None:
    processor = HistoryProcessor(FakeConversation(_conversation()), FakeConfigProvider())
    assert processor.build_formatted_history(style="transcript", last=2) == "O: hello\n\nU: bye"
    assert processor.build_formatted_history(last=0) == "U: hi\n\nO: hello\n\nU: bye"


def test_config_changes_apply_on_next_call() -> None:
    provider = FakeConfigProvider()
    conversation = FakeConversation(_conversation())
    processor = HistoryProcessor(conversation, provider)
    first = processor.build_formatted_history()

    provider.values["skip_last_other"] = False
    provider.values["rewrite_rules"] = [{"pattern": "draft", "replacement": "final"}]
    second = processor.build_formatted_history()

    assert "draft" not in first
    assert second.endswith("O: final reply")


def test_conversation_is_reread_every_call() -> None:
    conversation = FakeConversation(_conversation())
    processor = HistoryProcessor(conversation, FakeConfigProvider())
    processor.build_formatted_history()
    conversation.turns = conversation.turns + [Turn(text="again", speaker=Speaker.USER)]
    assert processor.build_formatted_history().endswith("U: again")
    assert conversation.reads == 2


def test_last_matching_turn_ignores_selection_settings() -> None:
    provider = FakeConfigProvider(drop_last_user=True, max_tokens=1, skip_last_other=True)
    processor = HistoryProcessor(FakeConversation(_conversation()), provider)

    assert processor.selected_turns() == []
    assert processor.last_matching_turn(Speaker.USER).text == "bye"
    assert processor.last_matching_turn(Speaker.OTHER).text == "draft reply"
    assert processor.last_matching_turn().id == 3


def test_last_matching_turn_formatted() -> None:
    provider = FakeConfigProvider(rewrite_rules=[{"pattern": "bye", "replacement": "ciao", "scope": "user"}])
    processor = HistoryProcessor(FakeConversation(_conversation()), provider)
    assert processor.last_matching_turn_formatted(Speaker.USER) == "U: ciao"
    assert processor.last_matching_turn_formatted(Speaker.USER, "bracketed") == "[U] ciao"


def test_missing_conversation_degrades_to_empty() -> None:
    processor = HistoryProcessor(FakeConversation(None), FakeConfigProvider(max_tokens=50))
    assert processor.build_formatted_history() == ""
    assert processor.last_matching_turn(Speaker.USER) is None
    assert processor.last_matching_turn_formatted(Speaker.OTHER) == ""


def test_malformed_rules_do_not_break_pipeline() -> None:
    provider = FakeConfigProvider(
        rewrite_rules=[
            {"pattern": "[oops", "replacement": "x"},
            {"pattern": "hi", "replacement": "hey", "flags": "zz"},
            {"pattern": "hello", "replacement": "howdy"},
        ]
    )
    processor = HistoryProcessor(FakeConversation(_conversation()), provider)
    assert processor.build_formatted_history() == "U: hi\n\nO: howdy\n\nU: bye"


def test_selection_preserves_chronological_order() -> None:
    turns = [Turn(text=f"m{i}" * (i + 1), speaker=Speaker.USER if i % 2 else Speaker.OTHER, id=i) for i in range(9)]
    provider = FakeConfigProvider(max_tokens=30, chars_per_token=2, skip_last_other=False)
    selected = HistoryProcessor(FakeConversation(turns), provider).selected_turns()
    ids = [turn.id for turn in selected]
    assert ids == sorted(ids)
    assert ids[-1] == 8


def test_parse_speaker_names() -> None:
    assert parse_speaker("user") is Speaker.USER
    assert parse_speaker("Assistant") is Speaker.OTHER
    assert parse_speaker("any") is None
    assert parse_speaker(Speaker.OTHER) is Speaker.OTHER
    with pytest.raises(ValueError):
        parse_speaker("narrator")


def test_unknown_configured_style_falls_back_to_default(caplog) -> None:
    processor = HistoryProcessor(FakeConversation(_conversation()), FakeConfigProvider(style="fancy"))
    with caplog.at_level(logging.WARNING):
        assert processor.build_formatted_history() == "U: hi\n\nO: hello\n\nU: bye"
        assert processor.last_matching_turn_formatted(Speaker.USER) == "U: bye"
    assert "fancy" in caplog.text
