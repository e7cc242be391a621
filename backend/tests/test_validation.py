"""Tests for submission text validation."""

import pytest

from mailslot.core.validation import MAX_MESSAGE_LENGTH, strip_tags, validate
from mailslot.errors import ValidationError
from mailslot.models.message import Message


def _code(raw):
    with pytest.raises(ValidationError) as info:
        validate(raw)
    return info.value.code


@pytest.mark.parametrize("raw", [None, 42, ["hello world"], {"message": "hello"}])
def test_missing_or_non_text(raw):
    assert _code(raw) == ValidationError.EMPTY_OR_NOT_TEXT


def test_too_short():
    assert _code("hi") == ValidationError.TOO_SHORT
    assert _code("   abc    ") == ValidationError.TOO_SHORT


def test_too_long_uses_untrimmed_length():
    assert _code("a" * (MAX_MESSAGE_LENGTH + 1)) == ValidationError.TOO_LONG
    # Padding counts: the check runs on what the caller actually sent
    assert _code("hello" + " " * MAX_MESSAGE_LENGTH) == ValidationError.TOO_LONG


def test_exactly_max_length_passes():
    assert validate("a" * MAX_MESSAGE_LENGTH) == "a" * MAX_MESSAGE_LENGTH


def test_tags_stripped():
    assert validate("<b>ok!!</b>") == "ok!!"
    assert validate("  hello <i>there</i> friend  ") == "hello there friend"


def test_only_markup_fails_after_sanitization():
    assert _code("<p></p><br/>") == ValidationError.TOO_SHORT_AFTER_SANITIZATION


def test_strip_tags_is_not_a_parser():
    # Unterminated tags are left alone
    assert strip_tags("a < b and c > d") == "a  d"
    assert strip_tags("x <unclosed") == "x <unclosed"


def test_error_is_client_error():
    with pytest.raises(ValidationError) as info:
        validate("hi")
    assert info.value.status_code == 400
    assert info.value.extras() == {"code": "TooShort"}


def test_title_is_first_sixty_characters():
    text = "x" * 70
    message = Message.from_content(text)
    assert message.title == "x" * 60
    assert message.content == text
