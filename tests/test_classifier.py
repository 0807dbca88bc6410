"""Tests for message classification (prefix vs. mention)."""

import pytest

from mute.classifier import classify, has_char_prefix, has_mention_prefix
from mute.models import Classification, ClassificationKind, InboundMessage

BOT_ID = 123


def _make_message(content: str, mentions=()) -> InboundMessage:
    return InboundMessage(
        content=content,
        author_id=42,
        channel_id=100,
        mentioned_user_ids=frozenset(mentions),
    )


def test_prefix_command_offset_is_one():
    result = classify(_make_message("!ping"), BOT_ID)
    assert result == Classification.command(1)
    assert result.is_command


@pytest.mark.parametrize("content", ["!", "!ping", "!weather paris", "!!double", "! spaced"])
def test_any_prefixed_message_is_command_at_one(content):
    assert classify(_make_message(content), BOT_ID).offset == 1


def test_mention_command_skips_one_space():
    result = classify(_make_message("<@123> weather paris", mentions=[BOT_ID]), BOT_ID)
    assert result.kind == ClassificationKind.COMMAND
    # "<@123>" is 6 characters, plus the separating space
    assert result.offset == 7


def test_nickname_mention_form():
    result = classify(_make_message("<@!123> ping", mentions=[BOT_ID]), BOT_ID)
    assert result.offset == 8


def test_mention_without_separator():
    result = classify(_make_message("<@123>ping", mentions=[BOT_ID]), BOT_ID)
    assert result.offset == 6


def test_mention_skips_exactly_one_separator():
    assert has_mention_prefix("<@123>  ping", BOT_ID) == 7


def test_bare_mention_offset_is_end_of_content():
    content = "<@123>"
    result = classify(_make_message(content, mentions=[BOT_ID]), BOT_ID)
    assert result.offset == len(content)


def test_mention_then_prefix_keeps_mention_offset():
    result = classify(_make_message("<@123> !ping", mentions=[BOT_ID]), BOT_ID)
    assert result.offset == 7


def test_mention_of_other_user_at_start_is_not_command():
    result = classify(_make_message("<@999> ping", mentions=[999]), BOT_ID)
    assert result.kind == ClassificationKind.NOT_COMMAND


def test_mention_with_non_ascii_digits_is_not_command():
    # Arabic-Indic digits for 123; Discord only emits ASCII ids
    assert has_mention_prefix("<@١٢٣> ping", BOT_ID) is None
    result = classify(_make_message("<@١٢٣> ping"), BOT_ID)
    assert result.kind == ClassificationKind.NOT_COMMAND


def test_bot_mentioned_later_in_message():
    result = classify(_make_message("hello <@123>", mentions=[BOT_ID]), BOT_ID)
    assert result == Classification.bot_mentioned()
    assert result.offset is None
    assert not result.is_command


def test_prefix_wins_over_mention():
    result = classify(_make_message("!<@123> ping", mentions=[BOT_ID]), BOT_ID)
    assert result.offset == 1


def test_plain_message_is_not_command():
    assert classify(_make_message("hello there"), BOT_ID) == Classification.not_command()


def test_empty_content_is_not_command():
    assert classify(_make_message(""), BOT_ID).kind == ClassificationKind.NOT_COMMAND


def test_custom_prefix():
    assert classify(_make_message("?ping"), BOT_ID, prefix="?").offset == 1
    assert classify(_make_message("!ping"), BOT_ID, prefix="?").kind == ClassificationKind.NOT_COMMAND


def test_has_char_prefix_none_without_prefix():
    assert has_char_prefix("ping") is None
    assert has_char_prefix("") is None


def test_malformed_mention_is_not_a_prefix():
    assert has_mention_prefix("<@abc> ping", BOT_ID) is None
    assert has_mention_prefix("<@123 ping", BOT_ID) is None


def test_offset_never_exceeds_length():
    for content in ["!", "<@123>", "<@123> ", "<@!123>"]:
        result = classify(_make_message(content), BOT_ID)
        assert 0 <= result.offset <= len(content)


def test_classification_rejects_offset_for_non_command():
    with pytest.raises(ValueError):
        Classification(kind=ClassificationKind.NOT_COMMAND, offset=3)
