from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Optional

from loguru import logger
from pydantic import BaseModel, ValidationError

from chatsync.models.enums import UserRole

AuthListener = Callable[[bool], None]


class Identity(BaseModel):
    id: str
    email: str
    username: str
    role: UserRole = UserRole.USER


class CredentialStore:
    """Bearer token plus identity record, optionally persisted as JSON.

    Listeners receive the new authenticated flag on every transition
    (never on a no-op set or clear).
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path
        self._token: Optional[str] = None
        self._identity: Optional[Identity] = None
        self._listeners: list[AuthListener] = []
        if path is not None:
            self._load()

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None and self._identity is not None

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set(self, token: str, identity: Identity) -> None:
        was_authenticated = self.is_authenticated
        self._token = token
        self._identity = identity
        self._save()
        if not was_authenticated:
            self._emit(True)

    def clear(self) -> None:
        was_authenticated = self.is_authenticated
        self._token = None
        self._identity = None
        self._save()
        if was_authenticated:
            self._emit(False)

    def _emit(self, authenticated: bool) -> None:
        for listener in list(self._listeners):
            listener(authenticated)

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding='utf-8'))
            token = raw.get('token')
            identity = Identity.model_validate(raw.get('user'))
        except (OSError, ValueError, ValidationError, AttributeError) as exc:
            logger.warning('sync.credentials.load_failed', path=str(self._path), error=str(exc))
            return
        if token:
            self._token = token
            self._identity = identity

    def _save(self) -> None:
        if self._path is None:
            return
        if self._token is None:
            self._path.unlink(missing_ok=True)
            return
        payload = {'token': self._token, 'user': self._identity.model_dump(mode='json') if self._identity else None}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, ensure_ascii=False), encoding='utf-8')
