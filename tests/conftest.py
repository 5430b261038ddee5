"""
Shared pytest configuration.

Puts the project root on sys.path so `import aurorael` and `import client_cli`
work without an editable install, and provides small builders for the chat
service tests.
"""

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest


ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from aurorael.config import _Config  # noqa: E402


PARIS_PAYLOAD = {
    "name": "Paris",
    "sys": {"country": "FR"},
    "main": {"temp": 12.5, "feels_like": 11.0},
    "weather": [{"description": "light rain"}],
    "timezone": 3600,
}

MADRID_PAYLOAD = {
    "name": "Madrid",
    "sys": {"country": "ES"},
    "main": {"temp": 30.1, "feels_like": 31.4},
    "weather": [{"description": "cielo claro"}],
    "timezone": 7200,
}


class FakeModelBackend:
    """Records every call; ``outcomes`` maps a model name to a list of results
    (returned) or exceptions (raised), consumed in order."""

    def __init__(self, outcomes: Optional[Dict[str, List[Any]]] = None, default: Any = "respuesta"):
        self.outcomes = {k: list(v) for k, v in (outcomes or {}).items()}
        self.default = default
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, model, messages, *, temperature, max_output_tokens):
        self.calls.append(
            {
                "model": model,
                "messages": messages,
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
            }
        )
        queue = self.outcomes.get(model)
        outcome = queue.pop(0) if queue else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def models_called(self) -> List[str]:
        return [c["model"] for c in self.calls]


def weather_handler(payloads: Dict[str, Dict[str, Any]], log: Optional[List[httpx.Request]] = None) -> Callable:
    """MockTransport handler: ``q`` values in ``payloads`` succeed, everything else is a 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        if log is not None:
            log.append(request)
        q = request.url.params.get("q")
        if request.url.path.endswith("/weather") and q in payloads:
            return httpx.Response(200, json=payloads[q])
        if request.url.path.endswith("/direct"):
            return httpx.Response(200, json=[])
        return httpx.Response(404, json={"cod": "404", "message": "city not found"})

    return handler


@pytest.fixture
def config() -> _Config:
    cfg = _Config()
    cfg.openweather_api_key = "test-key"
    cfg.openweather_base = "https://weather.test/data/2.5"
    cfg.openweather_geo_base = "https://weather.test/geo/1.0"
    cfg.model_primary = "primary-model"
    cfg.model_fallback = "fallback-model"
    cfg.model_backoff_base_sec = 0.0
    cfg.rate_limit = "1000/minute"
    cfg.max_in_flight = 6
    cfg.session_ttl_sec = 3600
    return cfg
