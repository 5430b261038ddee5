import os
import re
from typing import Any, Dict, Optional

import httpx
import pytest


SERVER_URL = os.getenv("AURORAEL_URL", "").rstrip("/")
CHAT_ENDPOINT = f"{SERVER_URL}/api/chat"
DEFAULT_TIMEOUT = float(os.getenv("TEST_HTTP_TIMEOUT", "60"))

pytestmark = pytest.mark.skipif(not SERVER_URL, reason="AURORAEL_URL not set; live server tests skipped")


def _chat(prompt: str, session_id: Optional[str] = None, **extra: Any) -> httpx.Response:
    body: Dict[str, Any] = {"prompt": prompt, **extra}
    if session_id:
        body["sessionId"] = session_id
    with httpx.Client(timeout=DEFAULT_TIMEOUT) as client:
        return client.post(CHAT_ENDPOINT, json=body)


def test_health():
    with httpx.Client(timeout=DEFAULT_TIMEOUT) as client:
        resp = client.get(CHAT_ENDPOINT)
    assert resp.status_code == 200
    assert resp.json() == {"status": "OK"}


def test_author_shortcut():
    resp = _chat("¿Quién te creó?")
    assert resp.status_code == 200
    data = resp.json()
    assert "Adrian Corro" in data["result"]
    assert data["videoId"]


def test_empty_prompt():
    resp = _chat("   ")
    assert resp.status_code == 400
    assert resp.json()["sessionId"]


def test_location_continuation():
    first = _chat("what time is it in Paris").json()
    assert first.get("pendingLocation") is True

    second = _chat("Paris, France", first["sessionId"], location="Paris, France")
    assert second.status_code == 200
    assert re.search(r"\b\d{2}:\d{2}\b", second.json()["result"])


def test_date_from_time_zone():
    resp = _chat("what date is it today?", timeZone="Europe/Madrid")
    assert resp.status_code == 200
    assert re.search(r"\b20\d{2}\b", resp.json()["result"])
