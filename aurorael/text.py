import re
import unicodedata
from typing import Dict, Iterable, List


_COMBINING_MARKS = re.compile("[\u0300-\u036f]")


def normalize_text(text: str | None) -> str:
    """Lowercase and drop diacritics ("¿Quién?" -> "¿quien?")."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    return _COMBINING_MARKS.sub("", decomposed)


def adaptive_truncate(text: str | None, max_chars: int) -> str:
    if not text:
        return ""
    if len(text) > max_chars:
        return text[:max_chars] + "…"
    return text


def prepare_history(
    history: Iterable,
    max_history: int,
    max_user_chars: int,
    max_assistant_chars: int,
) -> List[Dict[str, str]]:
    """Build the outbound copy of a session history.

    Only the last ``max_history`` turns are kept and each turn is truncated to
    the budget of its role. The stored history is left untouched.
    """
    turns = list(history)
    if max_history <= 0:
        return []
    prepared: List[Dict[str, str]] = []
    for turn in turns[-max_history:]:
        budget = max_assistant_chars if turn.role == "assistant" else max_user_chars
        prepared.append({"role": turn.role, "content": adaptive_truncate(turn.content, budget)})
    return prepared
