"""Per-prompt routing: author short-circuit, weather/time/date lookups, or a
general model completion, with the session history kept up to date."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from . import replies
from .intent import (
    TIME,
    WEATHER,
    detect_language,
    detect_lookup_intent,
    extract_location,
    is_qualified_location,
)
from .model import ModelClient, ProviderError, extract_text
from .sessions import Session, SessionStore
from .text import adaptive_truncate, normalize_text, prepare_history
from .weather import WeatherClient, WeatherError


@dataclass
class ChatReply:
    status: int
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)


def _resolve_zone(time_zone: Optional[str]) -> Optional[ZoneInfo]:
    if not time_zone:
        return None
    try:
        return ZoneInfo(time_zone)
    except (ZoneInfoNotFoundError, ValueError):
        logging.info("Ignoring unknown client time zone %r", time_zone)
        return None


class ChatService:
    def __init__(
        self,
        sessions: SessionStore,
        weather: WeatherClient,
        model: ModelClient,
        config: Any,
        now=None,
    ) -> None:
        self.sessions = sessions
        self.weather = weather
        self.model = model
        self.config = config
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._author_keywords = [normalize_text(k) for k in config.author_keywords if k.strip()]

    async def handle(
        self,
        prompt: Optional[str],
        session_id: Optional[str] = None,
        location: Optional[str] = None,
        time_zone: Optional[str] = None,
    ) -> ChatReply:
        prompt = (prompt or "").strip()
        session = self.sessions.get_or_create((session_id or "").strip() or None)
        if not prompt:
            return ChatReply(400, {"error": replies.EMPTY_PROMPT, "sessionId": session.id})

        async with session.lock:
            return await self._dispatch(
                session,
                prompt,
                (location or "").strip() or None,
                (time_zone or "").strip() or None,
            )

    def asks_for_author(self, prompt: str) -> bool:
        clean = normalize_text(prompt)
        return any(keyword in clean for keyword in self._author_keywords)

    async def _dispatch(
        self, session: Session, prompt: str, location: Optional[str], time_zone: Optional[str]
    ) -> ChatReply:
        if self.asks_for_author(prompt):
            logging.info("Author keyword matched for session %s", session.id)
            return ChatReply(
                200,
                {
                    "result": self.config.author_message,
                    "videoId": self.config.author_video_id,
                    "sessionId": session.id,
                },
            )

        if session.pending_location:
            session.pending_location = False
            pending = session.last_user_turn()
            if location and pending is not None and not detect_lookup_intent(prompt):
                question = pending.content
                intent = detect_lookup_intent(question)
                if intent:
                    logging.info("Resuming %s lookup for session %s", intent, session.id)
                    return await self._answer_lookup(
                        session, prompt, question, intent, location, time_zone
                    )

        intent = detect_lookup_intent(prompt)
        if intent:
            return await self._answer_lookup(session, prompt, prompt, intent, location, time_zone)
        return await self._answer_general(session, prompt)

    def _resolve_location(
        self, question: str, explicit: Optional[str], session: Session
    ) -> Tuple[Optional[str], bool]:
        """Return the location to look up and whether the question named a place."""
        if explicit:
            return explicit, True
        extracted = extract_location(question)
        if extracted:
            # A bare place name ("in paris") is too ambiguous to look up.
            return (extracted if is_qualified_location(extracted) else None), True
        return session.last_location, False

    async def _answer_lookup(
        self,
        session: Session,
        prompt: str,
        question: str,
        intent: str,
        explicit_location: Optional[str],
        time_zone: Optional[str],
    ) -> ChatReply:
        lang = detect_language(question)
        location, named_place = self._resolve_location(question, explicit_location, session)
        zone = None
        if intent != WEATHER and not named_place:
            zone = _resolve_zone(time_zone)

        if not location and zone is None:
            ask = replies.ASK_LOCATION[lang]
            self.sessions.push_history(session, "user", prompt)
            self.sessions.push_history(session, "assistant", ask)
            session.pending_location = True
            return ChatReply(200, {"result": ask, "sessionId": session.id, "pendingLocation": True})

        if not location:
            moment = self._now().astimezone(zone)
            place = time_zone
        else:
            try:
                report = await self.weather.fetch(location)
            except WeatherError as e:
                logging.warning("Location lookup failed for %r: %s", location, e.message)
                return ChatReply(
                    500,
                    {
                        "error": replies.LOCATION_ERROR[lang],
                        "detalle": e.message,
                        "sessionId": session.id,
                    },
                )
            session.last_location = location
            if intent == WEATHER:
                return self._record(session, prompt, replies.weather_reply(report, lang))
            moment = self._now().astimezone(timezone(timedelta(seconds=report.utc_offset_sec)))
            place = report.name or location

        if intent == TIME:
            text = replies.time_reply(place, moment, lang)
        else:
            text = replies.date_reply(place, moment, lang)
        return self._record(session, prompt, text)

    def _record(self, session: Session, prompt: str, text: str) -> ChatReply:
        self.sessions.push_history(session, "user", prompt)
        self.sessions.push_history(session, "assistant", text)
        return ChatReply(200, {"result": text, "sessionId": session.id})

    def build_messages(self, session: Session, prompt: str, lang: str) -> List[Dict[str, str]]:
        cfg = self.config
        messages = [{"role": "system", "content": replies.PERSONA[lang]}]
        if session.last_location:
            messages.append(
                {
                    "role": "system",
                    "content": replies.LOCATION_NOTE[lang].format(location=session.last_location),
                }
            )
        messages.extend(
            prepare_history(
                session.history, cfg.max_history, cfg.max_chars_user, cfg.max_chars_assistant
            )
        )
        messages.append({"role": "user", "content": adaptive_truncate(prompt, cfg.prompt_max_chars)})
        return messages

    async def _answer_general(self, session: Session, prompt: str) -> ChatReply:
        lang = detect_language(prompt)
        result = await self.model.run(self.build_messages(session, prompt, lang))

        if isinstance(result, ProviderError):
            if result.is_rate_limit:
                retry_after = int(round(result.retry_after)) if result.retry_after else None
                header_value = retry_after or self.config.retry_after_default_sec
                return ChatReply(
                    429,
                    {
                        "error": replies.RATE_LIMITED[lang],
                        "detalle": result.message,
                        "retryAfter": retry_after,
                        "sessionId": session.id,
                    },
                    headers={"Retry-After": str(header_value)},
                )
            logging.error("Model call failed (status=%s): %s", result.status, result.message)
            return ChatReply(
                500,
                {
                    "error": replies.MODEL_FAILED[lang],
                    "detalle": result.message,
                    "sessionId": session.id,
                },
            )

        if result.used_fallback:
            logging.info("Answered with fallback model %s", result.model)
        text = extract_text(result.response)
        self.sessions.push_history(session, "user", prompt)
        self.sessions.push_history(session, "assistant", text)
        return ChatReply(200, {"result": text, "sessionId": session.id})
