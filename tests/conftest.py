import asyncio
import itertools
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import pytest

TEST_DB_PATH = Path(tempfile.mkdtemp(prefix='chatsync-test-')) / 'test.db'
TEST_DB_URL = os.getenv('TEST_DB_URL', f'sqlite:///{TEST_DB_PATH}')
os.environ['DATABASE_URL'] = TEST_DB_URL

from chatsync.core.config import settings
from chatsync.db.init_db import init_db
from chatsync.sync.errors import NotFoundOrForbidden, SyncError

settings.DATABASE_URL = TEST_DB_URL


@pytest.fixture(autouse=True, scope="session")
def _configure_test_database():
    init_db(drop_all=True)
    yield


@pytest.fixture
def anyio_backend():
    return "asyncio"


class FakeRemote:
    """In-memory stand-in for RemoteClient that records every call."""

    def __init__(self) -> None:
        self.sessions: dict[str, dict[str, Any]] = {}
        self.messages: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, Optional[str]]] = []
        self.failures: dict[tuple[str, Optional[str]], SyncError] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self._ids = itertools.count(1)

    def seed(self, topic: str, mask_config: str = '{}', messages: Optional[list[str]] = None) -> str:
        session_id = f"remote-{next(self._ids)}"
        self.sessions[session_id] = {
            'id': session_id,
            'topic': topic,
            'memoryPrompt': '',
            'maskConfig': mask_config,
            'lastSummarizeIndex': 0,
            'lastUpdate': '2024-05-01T12:00:00Z',
        }
        self.messages[session_id] = [
            {'id': f"msg-{next(self._ids)}", 'role': 'user', 'content': text, 'date': ''}
            for text in messages or []
        ]
        return session_id

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)

    async def _enter(self, op: str, key: Optional[str] = None) -> None:
        self.calls.append((op, key))
        gate = self.gates.get(op)
        if gate is not None:
            await gate.wait()
        error = self.failures.get((op, key)) or self.failures.get((op, None))
        if error is not None:
            raise error

    async def list_sessions(self) -> list[dict[str, Any]]:
        await self._enter('list')
        return [dict(record, messageCount=len(self.messages[record['id']])) for record in self.sessions.values()]

    async def list_session_ids(self) -> set[str]:
        return {record['id'] for record in await self.list_sessions()}

    async def get_session(self, session_id: str) -> dict[str, Any]:
        await self._enter('get', session_id)
        if session_id not in self.sessions:
            raise NotFoundOrForbidden('Session not found', status_code=404)
        return dict(self.sessions[session_id], messages=list(self.messages[session_id]))

    async def create_session(self, payload: dict[str, Any]) -> dict[str, Any]:
        await self._enter('create', payload.get('topic'))
        session_id = f"remote-{next(self._ids)}"
        self.sessions[session_id] = {'id': session_id, 'lastUpdate': '2024-05-01T12:00:00Z', **payload}
        self.messages[session_id] = []
        return dict(self.sessions[session_id])

    async def update_session(self, session_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        await self._enter('update', session_id)
        if session_id not in self.sessions:
            raise NotFoundOrForbidden('Session not found', status_code=404)
        self.sessions[session_id].update(fields)
        return dict(self.sessions[session_id])

    async def delete_session(self, session_id: str) -> dict[str, Any]:
        await self._enter('delete', session_id)
        if session_id not in self.sessions:
            raise NotFoundOrForbidden('Session not found', status_code=404)
        del self.sessions[session_id]
        del self.messages[session_id]
        return {'status': 'ok'}

    async def append_message(self, payload: dict[str, Any]) -> dict[str, Any]:
        session_id = payload['sessionId']
        await self._enter('append', session_id)
        if session_id not in self.sessions:
            raise NotFoundOrForbidden('Session not found', status_code=404)
        record = {'id': f"msg-{next(self._ids)}", **payload}
        self.messages[session_id].append(record)
        return record


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()
