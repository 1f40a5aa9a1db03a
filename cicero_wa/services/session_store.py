import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from cicero_wa.config import settings


@dataclass
class InputMeta:
    step: str
    normalized: str
    at: float


@dataclass
class ProcessedInput:
    field: str
    value: str
    raw_input: str


@dataclass
class Session:
    """Mutable user menu state for one chat."""

    step: Optional[str] = None
    identity_confirmed: bool = False
    user_id: Optional[str] = None
    bind_user_id: Optional[str] = None
    update_user_id: Optional[str] = None
    is_ditbinmas: bool = False

    update_field: Optional[str] = None
    available_titles: Optional[list[str]] = None
    available_satfung: Optional[list[str]] = None
    update_ask_field_retry: int = 0

    last_invalid_input_meta: Optional[InputMeta] = None
    repeated_invalid_feedback_meta: dict[str, float] = field(default_factory=dict)

    activity_seq: int = 0
    step_version: int = 0

    timeout: Optional[asyncio.TimerHandle] = None
    warning_timeout: Optional[asyncio.TimerHandle] = None
    no_reply_timeout: Optional[asyncio.TimerHandle] = None

    exit: bool = False

    last_processed_input: Optional[ProcessedInput] = None
    last_processed_at: Optional[str] = None

    def clear_field_cache(self) -> None:
        self.update_field = None
        self.available_titles = None
        self.available_satfung = None

    def clear_timers(self) -> None:
        for attr in ("timeout", "warning_timeout", "no_reply_timeout"):
            handle = getattr(self, attr)
            if handle is not None:
                handle.cancel()
            setattr(self, attr, None)


class SessionStore:
    """User menu sessions keyed by chat id."""

    def __init__(self):
        self._sessions: dict[str, Session] = {}

    def get(self, chat_id: str) -> Optional[Session]:
        return self._sessions.get(chat_id)

    def get_or_create(self, chat_id: str) -> Session:
        session = self._sessions.get(chat_id)
        if session is None:
            session = Session()
            self._sessions[chat_id] = session
        return session

    def delete(self, chat_id: str) -> Optional[Session]:
        session = self._sessions.pop(chat_id, None)
        if session is not None:
            session.clear_timers()
        return session

    def is_current(self, chat_id: str, session: Session) -> bool:
        return self._sessions.get(chat_id) is session

    def __contains__(self, chat_id: str) -> bool:
        return chat_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        for chat_id in list(self._sessions):
            self.delete(chat_id)



class ClientRequestSessionStore:
    """Operator *clientrequest* sessions; an entry older than the TTL is gone on lookup."""

    def __init__(self, ttl_seconds: Optional[float] = None):
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.client_request_session_ttl_seconds
        self._sessions: dict[str, dict[str, Any]] = {}

    def set(self, chat_id: str, data: dict[str, Any], *, now: Optional[float] = None) -> None:
        self._sessions[chat_id] = {**data, "time": now if now is not None else time.monotonic()}

    def get(self, chat_id: str, *, now: Optional[float] = None) -> Optional[dict[str, Any]]:
        entry = self._sessions.get(chat_id)
        if entry is None:
            return None
        now = now if now is not None else time.monotonic()
        if now - entry["time"] > self.ttl_seconds:
            del self._sessions[chat_id]
            return None
        return entry

    def clear(self, chat_id: str) -> None:
        self._sessions.pop(chat_id, None)
