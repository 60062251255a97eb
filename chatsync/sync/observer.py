from __future__ import annotations

import asyncio
from typing import Callable, Optional

from loguru import logger

from chatsync.sync.credentials import CredentialStore
from chatsync.sync.engine import ReconciliationEngine


class ActivationObserver:
    """Start the initial pull when the caller becomes authenticated.

    The pull is triggered once per authenticated lifetime; signing out
    resets the engine so that the next sign-in pulls again.
    """

    def __init__(self, credentials: CredentialStore, engine: ReconciliationEngine) -> None:
        self._credentials = credentials
        self._engine = engine
        self._authenticated = False
        self._activation: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def activation(self) -> Optional[asyncio.Task]:
        return self._activation

    def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._credentials.subscribe(self._on_auth_change)
        self._engine.start()
        if self._credentials.is_authenticated:
            self._on_auth_change(True)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._engine.stop()

    def _on_auth_change(self, authenticated: bool) -> None:
        if authenticated and not self._authenticated:
            self._authenticated = True
            logger.info('sync.observer.activated')
            self._activation = asyncio.get_running_loop().create_task(self._engine.activate())
        elif not authenticated and self._authenticated:
            self._authenticated = False
            if self._activation is not None and not self._activation.done():
                self._activation.cancel()
            self._activation = None
            self._engine.deactivate()
            logger.info('sync.observer.deactivated')

    async def wait_activated(self) -> None:
        if self._activation is not None:
            await asyncio.shield(self._activation)
