"""In-memory session collection, optionally persisted to a JSON file."""
from __future__ import annotations

import json
import math
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Optional
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from chatsync.models.enums import ChatRole

DEFAULT_TOPIC = 'New Chat'


def now_ms() -> int:
    return int(time.time() * 1000)


def format_date(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now()).strftime('%Y/%m/%d %H:%M:%S')


class LocalMessage(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    role: ChatRole
    content: str
    date: str = Field(default_factory=format_date)
    model: Optional[str] = None
    tools: Optional[list[dict[str, Any]]] = None
    audio_url: Optional[str] = None
    is_mcp_response: bool = False


class SessionStat(BaseModel):
    token_count: int = 0
    word_count: int = 0
    char_count: int = 0


class LocalSession(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    topic: str = DEFAULT_TOPIC
    memory_prompt: str = ''
    messages: list[LocalMessage] = Field(default_factory=list)
    last_update: int = Field(default_factory=now_ms)
    mask: dict[str, Any] = Field(default_factory=dict)
    stat: SessionStat = Field(default_factory=SessionStat)
    last_summarize_index: int = 0
    clear_context_index: Optional[int] = None


def compute_stat(messages: Iterable[LocalMessage]) -> SessionStat:
    chars = 0
    words = 0
    for message in messages:
        chars += len(message.content)
        words += len(message.content.split())
    # rough estimate: four characters per token
    return SessionStat(token_count=math.ceil(chars / 4), word_count=words, char_count=chars)


class ChangeKind(str, Enum):
    SESSIONS = 'sessions'
    MESSAGE = 'message'
    REPLACED = 'replaced'
    DELETED = 'deleted'


@dataclass(frozen=True)
class StoreEvent:
    kind: ChangeKind
    session_id: Optional[str] = None
    message_id: Optional[str] = None


StoreListener = Callable[[StoreEvent], None]

EDITABLE_FIELDS = frozenset(
    {'topic', 'memory_prompt', 'mask', 'last_summarize_index', 'clear_context_index'}
)


class LocalStore:
    """Ordered sessions plus the active-session pointer.

    Every mutation is a plain synchronous method, so it is applied in one
    step relative to any coroutine reading the store. Listeners run after
    the mutation is complete.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path
        self._sessions: list[LocalSession] = []
        self._current_index = 0
        self._listeners: list[StoreListener] = []
        if path is not None:
            self._load()

    @property
    def sessions(self) -> list[LocalSession]:
        return list(self._sessions)

    @property
    def current_index(self) -> int:
        return self._current_index

    def current(self) -> Optional[LocalSession]:
        if not self._sessions:
            return None
        return self._sessions[min(self._current_index, len(self._sessions) - 1)]

    def get(self, session_id: str) -> Optional[LocalSession]:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def select(self, index: int) -> None:
        if not 0 <= index < len(self._sessions):
            raise IndexError(f'no session at index {index}')
        self._current_index = index
        self._save()

    def new_session(self, topic: str = DEFAULT_TOPIC, mask: Optional[dict[str, Any]] = None) -> LocalSession:
        session = LocalSession(topic=topic, mask=dict(mask or {}))
        self._sessions.insert(0, session)
        self._current_index = 0
        self._commit(StoreEvent(ChangeKind.SESSIONS, session_id=session.id))
        return session

    def update_session(self, session_id: str, **fields: Any) -> LocalSession:
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f'fields not editable: {sorted(unknown)}')
        session = self._require(session_id)
        updated = session.model_copy(update={**fields, 'last_update': now_ms()}, deep=True)
        self._replace(session_id, updated)
        self._commit(StoreEvent(ChangeKind.SESSIONS, session_id=session_id))
        return updated

    def append_message(
        self,
        session_id: str,
        role: ChatRole,
        content: str,
        **extra: Any,
    ) -> LocalMessage:
        session = self._require(session_id)
        message = LocalMessage(role=role, content=content, **extra)
        messages = [*session.messages, message]
        updated = session.model_copy(
            update={'messages': messages, 'stat': compute_stat(messages), 'last_update': now_ms()},
        )
        self._replace(session_id, updated)
        self._commit(StoreEvent(ChangeKind.MESSAGE, session_id=session_id, message_id=message.id))
        return message

    def delete_session(self, session_id: str) -> Optional[LocalSession]:
        for index, session in enumerate(self._sessions):
            if session.id == session_id:
                del self._sessions[index]
                if self._current_index >= len(self._sessions):
                    self._current_index = max(len(self._sessions) - 1, 0)
                self._commit(StoreEvent(ChangeKind.DELETED, session_id=session_id))
                return session
        return None

    def rekey(self, old_id: str, new_id: str) -> LocalSession:
        """Swap a local-only id for the id the remote assigned on first sync."""
        session = self._require(old_id)
        if old_id == new_id:
            return session
        if self.get(new_id) is not None:
            raise ValueError(f'session id already present: {new_id}')
        updated = session.model_copy(update={'id': new_id})
        self._replace(old_id, updated)
        self._commit(StoreEvent(ChangeKind.SESSIONS, session_id=new_id))
        return updated

    def replace_all(self, sessions: Iterable[LocalSession]) -> None:
        self._sessions = list(sessions)
        self._current_index = 0
        self._commit(StoreEvent(ChangeKind.REPLACED))

    def _require(self, session_id: str) -> LocalSession:
        session = self.get(session_id)
        if session is None:
            raise KeyError(session_id)
        return session

    def _replace(self, session_id: str, updated: LocalSession) -> None:
        for index, session in enumerate(self._sessions):
            if session.id == session_id:
                self._sessions[index] = updated
                return
        raise KeyError(session_id)

    def _commit(self, event: StoreEvent) -> None:
        self._save()
        for listener in list(self._listeners):
            listener(event)

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding='utf-8'))
            sessions = [LocalSession.model_validate(item) for item in raw.get('sessions', [])]
        except (OSError, ValueError, ValidationError, AttributeError) as exc:
            logger.warning('sync.store.load_failed', path=str(self._path), error=str(exc))
            return
        self._sessions = sessions
        index = raw.get('current_index', 0)
        self._current_index = index if isinstance(index, int) and 0 <= index < len(sessions) else 0

    def _save(self) -> None:
        if self._path is None:
            return
        payload = {
            'sessions': [session.model_dump(mode='json') for session in self._sessions],
            'current_index': self._current_index,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, ensure_ascii=False), encoding='utf-8')
