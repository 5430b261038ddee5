"""Language-model calls with a primary/fallback strategy.

``ModelClient.run`` never raises for provider failures: it returns either a
``ModelSuccess`` or a ``ProviderError`` produced by ``normalize_error``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple, Union

import google.generativeai as genai


RATE_LIMIT = "rate_limit"
TRANSIENT = "transient"
PROVIDER_ERROR = "provider_error"

TRANSIENT_STATUSES = {502, 503, 504}
RATE_LIMIT_CODES = {"insufficient_quota", "rate_limit", "rate_limit_exceeded", "resource_exhausted"}

_RETRY_IN_RE = re.compile(r"retry in\s+([\d.]+)\s*s", re.IGNORECASE)
_RATE_LIMIT_CODE_RE = re.compile(r"rate[_ -]?limit", re.IGNORECASE)


@dataclass(frozen=True)
class ProviderError:
    kind: str
    status: Optional[int]
    message: str
    retry_after: Optional[float] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def is_rate_limit(self) -> bool:
        return self.kind == RATE_LIMIT


@dataclass(frozen=True)
class ModelSuccess:
    response: Any
    used_fallback: bool
    model: str

    @property
    def ok(self) -> bool:
        return True


ModelCallResult = Union[ModelSuccess, ProviderError]


class ModelBackend(Protocol):
    async def generate(
        self,
        model: str,
        messages: Any,
        *,
        temperature: float,
        max_output_tokens: int,
    ) -> Any: ...


def to_gemini_contents(messages: Any) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    """Split chat turns into Gemini's system instruction and contents.

    Accepts a plain string, a list of strings, or a list of ``{role, content}``
    (``message`` is accepted in place of ``content``). Empty turns are dropped.
    """
    if messages is None:
        return None, []
    if isinstance(messages, str):
        return None, [{"role": "user", "parts": [messages]}]
    if not isinstance(messages, (list, tuple)):
        return None, [{"role": "user", "parts": [json.dumps(messages, default=str)]}]

    system_parts: List[str] = []
    contents: List[Dict[str, Any]] = []
    for item in messages:
        if isinstance(item, dict):
            role = str(item.get("role") or "user")
            content = item.get("content")
            if content is None:
                content = item.get("message", "")
            content = str(content)
        else:
            role, content = "user", str(item)
        if not content:
            continue
        if role == "system":
            system_parts.append(content)
        elif role in ("assistant", "model"):
            contents.append({"role": "model", "parts": [content]})
        else:
            contents.append({"role": "user", "parts": [content]})
    system = "\n\n".join(system_parts) or None
    return system, contents


class GeminiBackend:
    def __init__(self, api_key: Optional[str]) -> None:
        if not api_key:
            logging.warning("GEMINI_API_KEY not configured; model calls will fail")
        genai.configure(api_key=api_key)

    async def generate(
        self,
        model: str,
        messages: Any,
        *,
        temperature: float,
        max_output_tokens: int,
    ) -> Any:
        system, contents = to_gemini_contents(messages)
        gm = genai.GenerativeModel(
            model,
            system_instruction=system,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
            },
        )
        return await gm.generate_content_async(contents)


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    try:
        return getattr(obj, name, None)
    except Exception:
        # SDK properties (e.g. Gemini's ``.text``) raise when there is no text part.
        return None


def _first(seq: Any) -> Any:
    if isinstance(seq, (str, bytes, dict)) or seq is None:
        return None
    try:
        return seq[0] if len(seq) else None
    except (TypeError, KeyError, IndexError):
        return None


def _first_text(items: Any) -> Optional[str]:
    if isinstance(items, (str, bytes, dict)) or items is None:
        return None
    try:
        iterator = iter(items)
    except TypeError:
        return None
    for item in iterator:
        text = _field(item, "text")
        if isinstance(text, str) and text:
            return text
    return None


def _status_of(exc: BaseException) -> Optional[int]:
    for name in ("status_code", "status", "code", "http_status"):
        value = getattr(exc, name, None)
        if isinstance(value, int) and not isinstance(value, bool) and 100 <= value <= 599:
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def _code_of(exc: BaseException) -> Optional[str]:
    for name in ("reason", "error_code", "type", "code"):
        value = getattr(exc, name, None)
        if isinstance(value, str) and value:
            return value
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error") if isinstance(body.get("error"), dict) else body
        for name in ("code", "type", "status"):
            value = error.get(name)
            if isinstance(value, str) and value:
                return value
    return None


def _as_seconds(value: Any) -> Optional[float]:
    if value is None:
        return None
    seconds = getattr(value, "seconds", None)
    if seconds is not None and not callable(seconds):
        value = seconds + getattr(value, "nanos", 0) / 1e9
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if result >= 0 else None


def _retry_after_of(exc: BaseException, message: str) -> Optional[float]:
    for holder in (getattr(exc, "response", None), exc):
        headers = getattr(holder, "headers", None)
        if headers is not None and hasattr(headers, "get"):
            value = _as_seconds(headers.get("Retry-After") or headers.get("retry-after"))
            if value is not None:
                return value
    value = _as_seconds(getattr(exc, "retry_after", None))
    if value is not None:
        return value
    details = getattr(exc, "details", None)
    if isinstance(details, (list, tuple)):
        for detail in details:
            value = _as_seconds(_field(detail, "retry_delay"))
            if value is not None:
                return value
    match = _RETRY_IN_RE.search(message or "")
    if match:
        return _as_seconds(match.group(1))
    return None


def normalize_error(exc: BaseException) -> ProviderError:
    """Map any provider/transport exception onto one ``ProviderError``."""
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ProviderError(kind=TRANSIENT, status=None, message=str(exc) or "Model call timed out")

    status = _status_of(exc)
    code = (_code_of(exc) or "").lower()
    message = str(getattr(exc, "message", "") or exc) or exc.__class__.__name__
    lower = message.lower()

    if (
        status == 429
        or code in RATE_LIMIT_CODES
        or _RATE_LIMIT_CODE_RE.search(code)
        or "rate limit" in lower
        or "too many requests" in lower
        or "insufficient_quota" in lower
        or "quota exceeded" in lower
    ):
        return ProviderError(
            kind=RATE_LIMIT,
            status=429,
            message=message,
            retry_after=_retry_after_of(exc, message),
        )

    if (
        status in TRANSIENT_STATUSES
        or isinstance(exc, ConnectionError)
        or any(hint in lower for hint in ("timeout", "timed out", "econnreset", "connection reset", "network"))
    ):
        return ProviderError(kind=TRANSIENT, status=status, message=message)

    return ProviderError(kind=PROVIDER_ERROR, status=status, message=message)


def extract_text(response: Any, max_dump_chars: int = 2000) -> str:
    """Pull the reply text out of whatever shape the provider returned."""
    if isinstance(response, str):
        return response

    for name in ("output_text", "text"):
        text = _field(response, name)
        if isinstance(text, str) and text:
            return text

    first_output = _first(_field(response, "output"))
    text = _first_text(_field(first_output, "content"))
    if text:
        return text

    first_candidate = _first(_field(response, "candidates"))
    text = _first_text(_field(_field(first_candidate, "content"), "parts"))
    if text:
        return text

    first_choice = _first(_field(response, "choices"))
    text = _field(_field(first_choice, "message"), "content")
    if isinstance(text, str) and text:
        return text

    to_dict = getattr(response, "to_dict", None)
    payload = to_dict() if callable(to_dict) else response
    try:
        dumped = json.dumps(payload, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        dumped = str(payload)
    return dumped[:max_dump_chars]


class ModelClient:
    def __init__(
        self,
        backend: ModelBackend,
        primary_model: str,
        fallback_model: str,
        timeout_sec: float = 30.0,
        transient_retries: int = 2,
        backoff_base_sec: float = 0.3,
        temperature: float = 0.8,
        max_output_tokens: int = 800,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self.timeout_sec = timeout_sec
        self.transient_retries = transient_retries
        self.backoff_base_sec = backoff_base_sec
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._sleep = sleep

    async def _call(
        self, model: str, messages: Any, temperature: float, max_output_tokens: int, timeout_sec: float
    ) -> Any:
        start_time = time.monotonic()
        ok = False
        try:
            response = await asyncio.wait_for(
                self.backend.generate(
                    model,
                    messages,
                    temperature=temperature,
                    max_output_tokens=max_output_tokens,
                ),
                timeout=timeout_sec,
            )
            ok = True
            return response
        except asyncio.TimeoutError:
            raise asyncio.TimeoutError(f"Model {model} timed out after {timeout_sec:g}s")
        finally:
            latency_ms = (time.monotonic() - start_time) * 1000
            log_data = {
                "ts": datetime.now(timezone.utc).isoformat(),
                "tool": "gemini",
                "fn": model,
                "latency_ms": f"{latency_ms:.2f}",
                "ok": ok,
            }
            logging.info(json.dumps(log_data))

    async def run(
        self,
        messages: Any,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        timeout_sec: Optional[float] = None,
    ) -> ModelCallResult:
        temperature = self.temperature if temperature is None else temperature
        max_output_tokens = max_output_tokens or self.max_output_tokens
        timeout_sec = timeout_sec or self.timeout_sec

        primary_error: Optional[ProviderError] = None
        attempt = 0
        while True:
            try:
                response = await self._call(
                    self.primary_model, messages, temperature, max_output_tokens, timeout_sec
                )
                return ModelSuccess(response=response, used_fallback=False, model=self.primary_model)
            except Exception as e:
                primary_error = normalize_error(e)

            if primary_error.is_rate_limit:
                logging.warning("Primary model rate-limited: %s", primary_error.message)
                return primary_error
            if primary_error.kind == TRANSIENT and attempt < self.transient_retries:
                backoff = self.backoff_base_sec * (2 ** attempt)
                logging.warning(
                    "Transient error on %s (attempt %d), retrying in %.2fs: %s",
                    self.primary_model,
                    attempt,
                    backoff,
                    primary_error.message,
                )
                await self._sleep(backoff)
                attempt += 1
                continue
            break

        logging.warning(
            "Primary model %s failed (%s); trying fallback %s",
            self.primary_model,
            primary_error.message,
            self.fallback_model,
        )
        try:
            response = await self._call(
                self.fallback_model, messages, temperature, max_output_tokens, timeout_sec
            )
            return ModelSuccess(response=response, used_fallback=True, model=self.fallback_model)
        except Exception as e:
            fallback_error = normalize_error(e)

        if fallback_error.is_rate_limit:
            return fallback_error
        return ProviderError(
            kind=PROVIDER_ERROR,
            status=fallback_error.status or primary_error.status or 500,
            message=fallback_error.message or primary_error.message or "Unknown error",
        )
