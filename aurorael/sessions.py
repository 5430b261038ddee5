import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional


@dataclass
class Turn:
    role: str  # "user" | "assistant"
    content: str


@dataclass
class Session:
    id: str
    created_at: float
    history: List[Turn] = field(default_factory=list)
    last_location: Optional[str] = None
    pending_location: bool = False
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def last_user_turn(self) -> Optional[Turn]:
        for turn in reversed(self.history):
            if turn.role == "user":
                return turn
        return None


class SessionStore:
    """In-memory conversation state keyed by session id.

    Entries expire lazily: an entry older than ``ttl_sec`` is evicted the next
    time it is looked up. Nothing sweeps the map in the background.
    """

    def __init__(self, ttl_sec: float, clock: Callable[[], float] = time.time) -> None:
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get_or_create(self, session_id: Optional[str] = None) -> Session:
        now = self._clock()
        if session_id:
            session = self._sessions.get(session_id)
            if session is not None:
                if now - session.created_at < self._ttl_sec:
                    return session
                logging.info("Session %s expired; evicting", session_id)
                del self._sessions[session_id]

        session = Session(id=str(uuid.uuid4()), created_at=now)
        self._sessions[session.id] = session
        return session

    def push_history(self, session: Session, role: str, content: str) -> None:
        session.history.append(Turn(role=role, content=content))
