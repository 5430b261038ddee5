import re
from typing import Optional


ENGLISH_MARKERS = ("who", "what", "how", "why", "time", "weather", "date")
SPANISH_MARKERS = ("que", "como", "quien", "hora", "clima", "fecha", "tiempo")

_WEATHER_RE = re.compile(r"clima|temperatura|frio|frío|weather|cold|hot")
_TIME_RE = re.compile(r"hora|what time|current time")
_DATE_RE = re.compile(r"fecha|qué día|que dia|what date|today")

# "en <lugar>" is tried before "in <place>"; both run on the lowercased prompt.
_SPANISH_LOCATION_RE = re.compile(r"\ben\s+([a-záéíóúñü0-9 ,.-]{2,80})")
_ENGLISH_LOCATION_RE = re.compile(r"\bin\s+([a-z0-9 ,.-]{2,80})")
_TRAILING_PUNCT_RE = re.compile(r"[\s?¡!.,]+$")

WEATHER = "weather"
TIME = "time"
DATE = "date"


def detect_language(text: str | None) -> str:
    lower = (text or "").lower()
    has_en = any(word in lower for word in ENGLISH_MARKERS)
    has_es = any(word in lower for word in SPANISH_MARKERS)
    return "en" if has_en and not has_es else "es"


def is_weather_question(text: str | None) -> bool:
    return _WEATHER_RE.search((text or "").lower()) is not None


def is_time_question(text: str | None) -> bool:
    return _TIME_RE.search((text or "").lower()) is not None


def is_date_question(text: str | None) -> bool:
    return _DATE_RE.search((text or "").lower()) is not None


def detect_lookup_intent(text: str | None) -> Optional[str]:
    """Weather wins over time, time wins over date."""
    if is_weather_question(text):
        return WEATHER
    if is_time_question(text):
        return TIME
    if is_date_question(text):
        return DATE
    return None


def extract_location(prompt: str | None) -> Optional[str]:
    lower = (prompt or "").lower()
    match = _SPANISH_LOCATION_RE.search(lower) or _ENGLISH_LOCATION_RE.search(lower)
    if not match:
        return None
    phrase = _TRAILING_PUNCT_RE.sub("", match.group(1).strip())
    return phrase or None


def is_qualified_location(text: str | None) -> bool:
    """True for the "<place>, <country>" shape."""
    if not text or "," not in text:
        return False
    place, _, country = text.rpartition(",")
    return bool(place.strip()) and bool(country.strip())
