from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional
from uuid import uuid4

import httpx

from chatsync.main import app
from chatsync.sync.api_client import RemoteClient
from chatsync.sync.credentials import CredentialStore

BASE_URL = 'http://testserver/api/v1'


def asgi_http(**kwargs: Any) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=BASE_URL, **kwargs)


@asynccontextmanager
async def remote_client(
    credentials: Optional[CredentialStore] = None,
    on_unauthorized: Optional[Callable[[], None]] = None,
    **http_kwargs: Any,
) -> AsyncIterator[RemoteClient]:
    async with asgi_http(**http_kwargs) as http:
        yield RemoteClient(credentials or CredentialStore(), http=http, on_unauthorized=on_unauthorized)


def new_account() -> tuple[str, str, str]:
    suffix = uuid4().hex[:12]
    return f"{suffix}@b.com", f"u{suffix}", 'secret123'
