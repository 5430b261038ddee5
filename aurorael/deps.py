from fastapi import HTTPException, Request, status

from .conversation import ChatService
from .gate import InFlightGate


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{name} not initialized",
        )
    return value


def get_chat_service(request: Request) -> ChatService:
    return _state(request, "chat_service")


def get_gate(request: Request) -> InFlightGate:
    return _state(request, "gate")


def get_allowed_origins(request: Request) -> list:
    return _state(request, "config").allowed_origins
