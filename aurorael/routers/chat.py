from typing import Optional
import logging
import json

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .. import replies
from ..conversation import ChatService
from ..cors import cors_headers
from ..deps import get_allowed_origins, get_chat_service, get_gate
from ..gate import InFlightGate


router = APIRouter()


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = ""
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    location: Optional[str] = None
    time_zone: Optional[str] = Field(default=None, alias="timeZone")


async def _parse_body(request: Request) -> ChatRequest:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        payload = {}
    if not isinstance(payload, dict):
        payload = {}
    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as e:
        logging.info("Ignoring malformed chat fields: %s", e.errors())
        invalid = {err["loc"][0] for err in e.errors() if err.get("loc")}
        kept = {key: value for key, value in payload.items() if key not in invalid}
        try:
            return ChatRequest.model_validate(kept)
        except ValidationError:
            return ChatRequest()


@router.post("/chat")
async def chat(
    request: Request,
    service: ChatService = Depends(get_chat_service),
    gate: InFlightGate = Depends(get_gate),
    allowed_origins: list = Depends(get_allowed_origins),
):
    headers = cors_headers(request.headers.get("origin"), allowed_origins)

    if not gate.try_enter():
        logging.warning("Rejecting request: %d requests already in flight", gate.in_flight)
        return JSONResponse(
            {"error": replies.BUSY},
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            headers={**headers, "Retry-After": "1"},
        )

    try:
        body = await _parse_body(request)
        reply = await service.handle(
            body.prompt,
            session_id=body.session_id,
            location=body.location,
            time_zone=body.time_zone,
        )
    except Exception as e:
        logging.exception("Chat processing failed: %s", e)
        return JSONResponse(
            {"error": replies.INTERNAL_ERROR, "detalle": str(e)},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            headers=headers,
        )
    finally:
        gate.leave()

    return JSONResponse(reply.body, status_code=reply.status, headers={**headers, **reply.headers})


@router.options("/chat")
async def chat_options(request: Request, allowed_origins: list = Depends(get_allowed_origins)):
    return Response(
        status_code=status.HTTP_204_NO_CONTENT,
        headers=cors_headers(request.headers.get("origin"), allowed_origins),
    )


@router.get("/chat")
async def chat_health():
    return JSONResponse({"status": "OK"}, headers={"Access-Control-Allow-Origin": "*"})
