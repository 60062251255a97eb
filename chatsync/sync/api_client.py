"""Typed HTTP wrapper around the remote session store."""
from __future__ import annotations

from typing import Any, Callable, Optional

import httpx
from loguru import logger

from chatsync.core.config import settings
from chatsync.sync.credentials import CredentialStore
from chatsync.sync.errors import NetworkError, Unauthorized, classify_response


class RemoteClient:
    """Attaches the bearer credential to every call and classifies failures.

    An ``Unauthorized`` response clears the stored credential and fires
    ``on_unauthorized`` once for that failure. Later calls made without a
    credential fail fast without reaching the network or the hook.
    """

    def __init__(
        self,
        credentials: CredentialStore,
        *,
        base_url: Optional[str] = None,
        http: Optional[httpx.AsyncClient] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._credentials = credentials
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            base_url=base_url or settings.REMOTE_BASE_URL,
            timeout=timeout if timeout is not None else settings.SYNC_REQUEST_TIMEOUT,
        )
        self._on_unauthorized = on_unauthorized

    @property
    def credentials(self) -> CredentialStore:
        return self._credentials

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _headers(self, auth: bool) -> dict[str, str]:
        headers = {'Content-Type': 'application/json'}
        if auth and self._credentials.token:
            headers['Authorization'] = f'Bearer {self._credentials.token}'
        return headers

    def _handle_unauthorized(self) -> None:
        self._credentials.clear()
        if self._on_unauthorized is not None:
            self._on_unauthorized()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        auth: bool = True,
    ) -> Any:
        if auth and not self._credentials.token:
            raise Unauthorized('Not authenticated', status_code=401)
        try:
            response = await self._http.request(method, path, json=json, headers=self._headers(auth))
        except httpx.TransportError as exc:
            logger.warning('sync.http.network_error', method=method, path=path, error=str(exc))
            raise NetworkError(str(exc) or exc.__class__.__name__) from exc

        logger.debug('sync.http.response', method=method, path=path, status=response.status_code)
        if response.is_success:
            return response.json() if response.content else None

        error = classify_response(response)
        if auth and isinstance(error, Unauthorized):
            self._handle_unauthorized()
        raise error

    async def list_sessions(self) -> list[dict[str, Any]]:
        return await self._request('GET', '/sessions')

    async def list_session_ids(self) -> set[str]:
        return {record['id'] for record in await self.list_sessions()}

    async def get_session(self, session_id: str) -> dict[str, Any]:
        return await self._request('GET', f'/sessions/{session_id}')

    async def create_session(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request('POST', '/sessions', json=payload)

    async def update_session(self, session_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        return await self._request('PATCH', f'/sessions/{session_id}', json=fields)

    async def delete_session(self, session_id: str) -> dict[str, Any]:
        return await self._request('DELETE', f'/sessions/{session_id}')

    async def append_message(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._request('POST', '/messages', json=payload)

    async def login(self, email: str, password: str) -> dict[str, Any]:
        return await self._request('POST', '/auth/login', json={'email': email, 'password': password}, auth=False)

    async def register(self, email: str, username: str, password: str) -> dict[str, Any]:
        return await self._request(
            'POST',
            '/auth/register',
            json={'email': email, 'username': username, 'password': password},
            auth=False,
        )

    async def me(self) -> dict[str, Any]:
        return await self._request('GET', '/auth/me')
