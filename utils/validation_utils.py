"""
utils/validation_utils.py

Purpose: Input validation

- Topic and brief-answer validation
- Callback payload parsing (language, template, page count)
- Profile trigger detection
- Input sanitization
"""

import re
from typing import Optional

from utils.constants import (
    CALLBACK_LANGUAGE_PREFIX,
    CALLBACK_PAGES_PREFIX,
    CALLBACK_TEMPLATE_PREFIX,
    MAX_BRIEF_ANSWER_LENGTH,
    MAX_TOPIC_LENGTH,
    PAGE_COUNT_OPTIONS,
    PROFILE_TRIGGERS,
    SUPPORTED_LANGUAGES,
    TEMPLATE_IDS,
)

PROFILE_COMMAND_REGEX = re.compile(r"^/(profile|profil)(@\w+)?$", re.IGNORECASE)


def sanitize_input(text: str, max_length: int = 1000) -> str:
    """
    Normalizes free-form user input.

    Args:
        text: Input text
        max_length: Maximum allowed length

    Returns:
        Trimmed text with collapsed whitespace
    """
    if not text:
        return ""

    # Normalize whitespace
    text = " ".join(text.split())

    return text[:max_length].strip()


def validate_topic(topic: Optional[str]) -> bool:
    """
    A topic is plain, non-empty text that is not a bot command.

    Args:
        topic: Raw message text

    Returns:
        True if the text can be used as a presentation topic
    """
    if not topic:
        return False

    topic = topic.strip()
    if not topic or topic.startswith("/"):
        return False

    return len(topic) <= MAX_TOPIC_LENGTH


def validate_brief_answer(answer: Optional[str]) -> bool:
    """
    Brief answers follow the same rules as topics, with a shorter cap.
    """
    if not answer:
        return False

    answer = answer.strip()
    if not answer or answer.startswith("/"):
        return False

    return len(answer) <= MAX_BRIEF_ANSWER_LENGTH


def parse_language(callback_data: Optional[str]) -> Optional[str]:
    """
    Parses ``lang:<code>`` into a supported language code.
    """
    if not callback_data or not callback_data.startswith(CALLBACK_LANGUAGE_PREFIX):
        return None

    code = callback_data[len(CALLBACK_LANGUAGE_PREFIX):].strip().lower()
    return code if code in SUPPORTED_LANGUAGES else None


def _parse_int_option(callback_data: Optional[str], prefix: str, allowed) -> Optional[int]:
    if not callback_data or not callback_data.startswith(prefix):
        return None

    raw = callback_data[len(prefix):].strip()
    if not raw.isdigit():
        return None

    value = int(raw)
    return value if value in allowed else None


def parse_template_id(callback_data: Optional[str]) -> Optional[int]:
    """
    Parses ``template:<n>``; only ids 1-4 are accepted.
    """
    return _parse_int_option(callback_data, CALLBACK_TEMPLATE_PREFIX, TEMPLATE_IDS)


def parse_page_count(callback_data: Optional[str]) -> Optional[int]:
    """
    Parses ``pages:<n>``; only 4, 6 or 8 pages are accepted.
    """
    return _parse_int_option(callback_data, CALLBACK_PAGES_PREFIX, PAGE_COUNT_OPTIONS)


def is_profile_trigger(message: Optional[str]) -> bool:
    """
    Checks whether a text message asks for the profile screen.
    """
    if not message:
        return False

    normalized = message.strip().lower()
    return normalized in PROFILE_TRIGGERS or bool(PROFILE_COMMAND_REGEX.match(normalized))


def strip_bot_mention(command: str) -> str:
    """
    ``/start@MyBot`` -> ``/start``
    """
    return command.split("@", 1)[0] if command.startswith("/") else command
