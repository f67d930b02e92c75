import pytest

from utils.validation_utils import (
    is_profile_trigger,
    parse_language,
    parse_page_count,
    parse_template_id,
    sanitize_input,
    strip_bot_mention,
    validate_brief_answer,
    validate_topic,
)


@pytest.mark.parametrize(
    "topic,valid",
    [
        ("Climate policy", True),
        ("  Iqlim o'zgarishi  ", True),
        ("", False),
        ("   ", False),
        (None, False),
        ("/start", False),
        ("x" * 301, False),
    ],
)
def test_validate_topic(topic, valid):
    assert validate_topic(topic) is valid


def test_validate_brief_answer_length():
    assert validate_brief_answer("students")
    assert not validate_brief_answer("x" * 201)
    assert not validate_brief_answer("/help")


def test_sanitize_input_collapses_whitespace():
    assert sanitize_input("  Climate \n\t policy  ") == "Climate policy"
    assert sanitize_input("abcdef", max_length=3) == "abc"
    assert sanitize_input("") == ""


def test_callback_parsers():
    assert parse_language("lang:ru") == "ru"
    assert parse_language("lang:de") is None
    assert parse_language("template:1") is None

    assert parse_template_id("template:4") == 4
    assert parse_template_id("template:5") is None
    assert parse_template_id("template:x") is None

    assert parse_page_count("pages:8") == 8
    assert parse_page_count("pages:7") is None
    assert parse_page_count(None) is None


@pytest.mark.parametrize("text", ["👤 Profile", "profile", "/profile", "/PROFIL", "/profile@SlideBot"])
def test_profile_triggers(text):
    assert is_profile_trigger(text)


def test_not_profile_trigger():
    assert not is_profile_trigger("my profile please")
    assert not is_profile_trigger(None)


def test_strip_bot_mention():
    assert strip_bot_mention("/start@slidebot") == "/start"
    assert strip_bot_mention("hello@there") == "hello@there"
