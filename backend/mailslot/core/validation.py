# mailslot/core/validation.py

import re

from mailslot.errors import ValidationError

MAX_MESSAGE_LENGTH = 500
MIN_MESSAGE_LENGTH = 5            # trimmed input, before tag stripping
MIN_SANITIZED_LENGTH = 1          # after tag stripping

# Best-effort tag removal, not an HTML parser; escaping happens at render time
_TAG_PATTERN = re.compile(r"<[^>]*>")


def strip_tags(text: str) -> str:
    return _TAG_PATTERN.sub("", text)


def validate(raw) -> str:
    """Return the cleaned message text or raise ValidationError."""
    if not isinstance(raw, str):
        raise ValidationError(
            ValidationError.EMPTY_OR_NOT_TEXT,
            "Message must be non-empty text.",
        )

    trimmed = raw.strip()
    if len(trimmed) < MIN_MESSAGE_LENGTH:
        raise ValidationError(
            ValidationError.TOO_SHORT,
            f"Message is too short, at least {MIN_MESSAGE_LENGTH} characters are required.",
        )

    # Original length: stripping tags could hide an oversized submission
    if len(raw) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            ValidationError.TOO_LONG,
            f"Message is too long, at most {MAX_MESSAGE_LENGTH} characters are allowed.",
        )

    clean = strip_tags(trimmed).strip()
    if len(clean) < MIN_SANITIZED_LENGTH:
        raise ValidationError(
            ValidationError.TOO_SHORT_AFTER_SANITIZATION,
            "Message is empty once markup is removed.",
        )

    return clean[:MAX_MESSAGE_LENGTH]
