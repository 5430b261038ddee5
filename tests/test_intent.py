import pytest

from aurorael.intent import (
    DATE,
    TIME,
    WEATHER,
    detect_language,
    detect_lookup_intent,
    extract_location,
    is_qualified_location,
)
from aurorael.sessions import Turn
from aurorael.text import adaptive_truncate, normalize_text, prepare_history


def test_normalize_text_strips_diacritics_and_case():
    assert normalize_text("¿Quién te CREÓ?") == "¿quien te creo?"
    assert normalize_text("España") == "espana"
    assert normalize_text(None) == ""


def test_adaptive_truncate():
    assert adaptive_truncate("", 5) == ""
    assert adaptive_truncate(None, 5) == ""
    assert adaptive_truncate("abc", 5) == "abc"
    assert adaptive_truncate("abcdefgh", 5) == "abcde…"


def test_prepare_history_caps_window_and_truncates_by_role():
    history = [Turn("user", "u" * 20), Turn("assistant", "a" * 20), Turn("user", "short")]
    prepared = prepare_history(history, max_history=2, max_user_chars=10, max_assistant_chars=4)
    assert prepared == [
        {"role": "assistant", "content": "aaaa…"},
        {"role": "user", "content": "short"},
    ]
    # stored history untouched
    assert len(history) == 3
    assert history[1].content == "a" * 20


@pytest.mark.parametrize(
    "text,expected",
    [
        ("what is the weather like", "en"),
        ("who are you?", "en"),
        ("¿qué hora es?", "es"),
        ("what time is it? qué hora es", "es"),
        ("hola", "es"),
        ("", "es"),
    ],
)
def test_detect_language(text, expected):
    assert detect_language(text) == expected


def test_lookup_intent_precedence():
    assert detect_lookup_intent("what's the weather and what time is it") == WEATHER
    assert detect_lookup_intent("what time is it today") == TIME
    assert detect_lookup_intent("what date is it today") == DATE
    assert detect_lookup_intent("¿Qué fecha es hoy?") == DATE
    assert detect_lookup_intent("¿qué clima hace?") == WEATHER
    assert detect_lookup_intent("explain hegel") is None


def test_extract_location_spanish_and_english():
    assert extract_location("¿qué hora es en Madrid, España?") == "madrid, españa"
    assert extract_location("what's the weather in London, UK!") == "london, uk"
    assert extract_location("what time is it in Paris") == "paris"
    assert extract_location("hello") is None
    assert extract_location("") is None


def test_is_qualified_location():
    assert is_qualified_location("madrid, españa")
    assert not is_qualified_location("paris")
    assert not is_qualified_location(", france")
    assert not is_qualified_location("paris,")
    assert not is_qualified_location(None)
