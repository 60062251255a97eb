from __future__ import annotations

from typing import Any

from loguru import logger

from chatsync.sync.api_client import RemoteClient
from chatsync.sync.credentials import CredentialStore, Identity
from chatsync.sync.errors import NetworkError, SyncError, Unauthorized


class AuthClient:
    def __init__(self, client: RemoteClient) -> None:
        self._client = client

    @property
    def credentials(self) -> CredentialStore:
        return self._client.credentials

    def _store(self, payload: dict[str, Any]) -> Identity:
        identity = Identity.model_validate(payload['user'])
        self.credentials.set(payload['token'], identity)
        logger.info('sync.auth.signed_in', user_id=identity.id)
        return identity

    async def login(self, email: str, password: str) -> Identity:
        return self._store(await self._client.login(email, password))

    async def register(self, email: str, username: str, password: str) -> Identity:
        return self._store(await self._client.register(email, username, password))

    async def validate(self) -> bool:
        """Confirm a restored credential with the server, signing out when it is rejected."""
        if not self.credentials.is_authenticated:
            return False
        try:
            payload = await self._client.me()
        except Unauthorized:
            return False
        except NetworkError as exc:
            logger.warning('sync.auth.validate_unreachable', error=str(exc))
            return True
        except SyncError as exc:
            logger.warning('sync.auth.validate_failed', error=str(exc))
            self.logout()
            return False
        token = self.credentials.token
        if token is not None:
            self.credentials.set(token, Identity.model_validate(payload))
        return True

    def logout(self) -> None:
        self.credentials.clear()
        logger.info('sync.auth.signed_out')
