from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import httpx
from loguru import logger

from chatsync.core.config import settings
from chatsync.sync.api_client import RemoteClient
from chatsync.sync.auth import AuthClient
from chatsync.sync.credentials import CredentialStore, Identity
from chatsync.sync.engine import ReconciliationEngine
from chatsync.sync.local_store import LocalStore
from chatsync.sync.observer import ActivationObserver


def _log_sign_in_required() -> None:
    logger.warning('sync.auth.sign_in_required')


def _path(value: Optional[str]) -> Optional[Path]:
    return Path(value).expanduser() if value else None


class SyncRuntime:
    """Wire the sync client together for one process."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
        state_path: Optional[Path] = None,
        credentials_path: Optional[Path] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
        guard_interval_ms: Optional[int] = None,
        settle_delay_ms: Optional[int] = None,
    ) -> None:
        self.credentials = CredentialStore(credentials_path or _path(settings.CREDENTIALS_PATH))
        self.store = LocalStore(state_path or _path(settings.LOCAL_STATE_PATH))
        self.client = RemoteClient(
            self.credentials,
            base_url=base_url,
            http=http,
            on_unauthorized=on_unauthorized or _log_sign_in_required,
        )
        self.auth = AuthClient(self.client)
        self.engine = ReconciliationEngine(
            self.store,
            self.client,
            guard_interval_ms=guard_interval_ms,
            settle_delay_ms=settle_delay_ms,
        )
        self.observer = ActivationObserver(self.credentials, self.engine)

    async def start(self) -> None:
        """Begin observing auth state; a restored credential is validated first."""
        if self.credentials.is_authenticated:
            await self.auth.validate()
        self.observer.start()

    async def login(self, email: str, password: str) -> Identity:
        identity = await self.auth.login(email, password)
        await self.observer.wait_activated()
        return identity

    async def register(self, email: str, username: str, password: str) -> Identity:
        identity = await self.auth.register(email, username, password)
        await self.observer.wait_activated()
        return identity

    def logout(self) -> None:
        self.auth.logout()

    async def close(self) -> None:
        await self.engine.drain()
        self.observer.stop()
        await self.client.aclose()
