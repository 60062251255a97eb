"""Pull-on-activate, merge, and debounced push of local sessions.

The engine lives on one asyncio loop. It owns a ``SyncLifecycle`` that is
reset on sign-out, a single debounce timer handle, and one lock per
session id so that create, update, message flush and delete against the
same session never interleave.

Known limitations: a pull replaces every session the remote knows about,
so local edits to a synced session that have not been pushed yet are lost
when a pull lands. Pull runs once per authentication transition, so a
failed first pull is not retried until the next sign-in; the lifecycle
records it in ``pull_failed`` and pushes keep working against the remote
message counts instead of the pulled history.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Protocol

from loguru import logger

from chatsync.core.config import settings
from chatsync.sync import transcoder
from chatsync.sync.errors import SyncError, Unauthorized, Unexpected
from chatsync.sync.local_store import ChangeKind, LocalSession, LocalStore, StoreEvent

PUSH_FIELDS = ('topic', 'memoryPrompt', 'maskConfig')


class RemoteSessions(Protocol):
    async def list_sessions(self) -> list[dict[str, Any]]: ...

    async def get_session(self, session_id: str) -> dict[str, Any]: ...

    async def create_session(self, payload: dict[str, Any]) -> dict[str, Any]: ...

    async def update_session(self, session_id: str, fields: dict[str, Any]) -> dict[str, Any]: ...

    async def delete_session(self, session_id: str) -> dict[str, Any]: ...

    async def append_message(self, payload: dict[str, Any]) -> dict[str, Any]: ...


class SyncState(str, Enum):
    IDLE = 'idle'
    PULLING = 'pulling'
    MERGED = 'merged'
    DIRTY = 'dirty'
    PUSHING = 'pushing'


class PushAction(str, Enum):
    CREATED = 'created'
    UPDATED = 'updated'
    SKIPPED = 'skipped'
    FAILED = 'failed'


@dataclass
class PushResult:
    session_id: str
    action: PushAction
    remote_id: Optional[str] = None
    error: Optional[SyncError] = None


@dataclass
class SyncLifecycle:
    state: SyncState = SyncState.IDLE
    has_loaded: bool = False
    pull_failed: bool = False
    last_sync_at: Optional[float] = None
    last_scheduled_at: Optional[float] = None
    remote_ids: set[str] = field(default_factory=set)
    pushed_messages: set[str] = field(default_factory=set)
    aliases: dict[str, str] = field(default_factory=dict)

    def resolve(self, session_id: str) -> str:
        return self.aliases.get(session_id, session_id)

    def is_synced(self, session_id: str) -> bool:
        return self.resolve(session_id) in self.remote_ids


def merge_sessions(
    remote: Iterable[LocalSession],
    local: Iterable[LocalSession],
) -> list[LocalSession]:
    """Remote wins on every id it knows; local-only sessions are kept."""
    merged: dict[str, LocalSession] = {}
    for session in remote:
        merged[session.id] = session
    for session in local:
        if session.id not in merged:
            merged[session.id] = session
    return list(merged.values())


class ReconciliationEngine:
    def __init__(
        self,
        store: LocalStore,
        client: RemoteSessions,
        *,
        guard_interval_ms: Optional[int] = None,
        settle_delay_ms: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._client = client
        self._guard = (guard_interval_ms if guard_interval_ms is not None else settings.SYNC_GUARD_INTERVAL_MS) / 1000
        self._settle = (settle_delay_ms if settle_delay_ms is not None else settings.SYNC_SETTLE_DELAY_MS) / 1000
        self._clock = clock
        self.lifecycle = SyncLifecycle()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._muted = False

    @property
    def state(self) -> SyncState:
        return self.lifecycle.state

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_store_event)

    def stop(self) -> None:
        self._cancel_timer()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def activate(self) -> bool:
        """Run the initial pull once per lifecycle. Returns False when it already ran."""
        if self.lifecycle.has_loaded:
            return False
        self.lifecycle.has_loaded = True
        await self.pull()
        return True

    def deactivate(self) -> None:
        self._cancel_timer()
        for task in list(self._tasks):
            task.cancel()
        self._locks.clear()
        self.lifecycle = SyncLifecycle()
        logger.info('sync.engine.deactivated')

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def pull(self) -> bool:
        lifecycle = self.lifecycle
        previous = lifecycle.state
        lifecycle.state = SyncState.PULLING
        logger.info('sync.pull.start')
        try:
            summaries = await self._client.list_sessions()
            remote = [transcoder.to_local(await self._client.get_session(item['id'])) for item in summaries]
        except SyncError as exc:
            self._pull_failed(lifecycle, previous)
            logger.warning('sync.pull.failed', error=str(exc), kind=type(exc).__name__)
            return False
        except Exception:
            self._pull_failed(lifecycle, previous)
            logger.exception('sync.pull.unexpected')
            return False

        if lifecycle is not self.lifecycle:
            logger.info('sync.pull.discarded')
            return False
        lifecycle.remote_ids.update(session.id for session in remote)
        for session in remote:
            lifecycle.pushed_messages.update(message.id for message in session.messages)

        merged = merge_sessions(remote, self._store.sessions)
        self._store.replace_all(merged)
        lifecycle.pull_failed = False
        lifecycle.state = SyncState.DIRTY if self._timer is not None else SyncState.MERGED
        lifecycle.last_sync_at = self._clock()
        logger.info('sync.pull.merged', remote=len(remote), total=len(merged))

        if any(not lifecycle.is_synced(session.id) for session in merged):
            self.schedule_push()
        return True

    def _pull_failed(self, lifecycle: SyncLifecycle, previous: SyncState) -> None:
        lifecycle.pull_failed = True
        if self._timer is not None:
            lifecycle.state = SyncState.DIRTY
        else:
            lifecycle.state = previous if previous != SyncState.IDLE else SyncState.MERGED

    def schedule_push(self) -> None:
        """Debounce a full push.

        A change outside the guard window replaces the live timer. Inside
        the window a live timer is left alone (it reads state when it fires);
        with no live timer a single trailing one is armed at the window edge.
        """
        if self.lifecycle.state == SyncState.IDLE:
            return
        loop = asyncio.get_running_loop()
        now = self._clock()
        last = self.lifecycle.last_scheduled_at
        if self.lifecycle.state != SyncState.PULLING:
            self.lifecycle.state = SyncState.DIRTY

        if last is None or now - last >= self._guard:
            self._cancel_timer()
            self.lifecycle.last_scheduled_at = now
            self._timer = loop.call_later(self._settle, self._fire)
            return

        if self._timer is not None:
            return
        remaining = self._guard - (now - last)
        self.lifecycle.last_scheduled_at = last + self._guard
        self._timer = loop.call_later(remaining + self._settle, self._fire)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        self._spawn(self.push_all())

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock

    def _on_store_event(self, event: StoreEvent) -> None:
        if self._muted or self.lifecycle.state == SyncState.IDLE:
            return
        if event.kind in (ChangeKind.REPLACED, ChangeKind.DELETED):
            return
        if (
            event.kind == ChangeKind.MESSAGE
            and event.session_id is not None
            and event.message_id is not None
            and self.lifecycle.is_synced(event.session_id)
        ):
            self._spawn(self.push_message(event.session_id, event.message_id))
        self.schedule_push()

    async def push_all(self) -> list[PushResult]:
        lifecycle = self.lifecycle
        if lifecycle.state == SyncState.PULLING:
            # the pull is about to replace the store; push what it leaves behind
            logger.info('sync.push.deferred')
            self._cancel_timer()
            self._timer = asyncio.get_running_loop().call_later(self._settle, self._fire)
            return []
        lifecycle.state = SyncState.PUSHING
        results: list[PushResult] = []
        session_ids = [session.id for session in self._store.sessions]
        logger.info('sync.push.start', sessions=len(session_ids))

        for index, session_id in enumerate(session_ids):
            result = await self.push_session(session_id)
            results.append(result)
            if isinstance(result.error, Unauthorized):
                results.extend(PushResult(pending, PushAction.SKIPPED) for pending in session_ids[index + 1:])
                break

        if lifecycle is self.lifecycle:
            lifecycle.last_sync_at = self._clock()
            if lifecycle.state == SyncState.PUSHING:
                lifecycle.state = SyncState.MERGED
        failed = sum(1 for result in results if result.action == PushAction.FAILED)
        logger.info('sync.push.done', sessions=len(results), failed=failed)
        return results

    async def push_session(self, session_id: str) -> PushResult:
        async with self._lock_for(session_id):
            target = self.lifecycle.resolve(session_id)
            session = self._store.get(target)
            if session is None:
                return PushResult(session_id, PushAction.SKIPPED)
            try:
                summaries = await self._client.list_sessions()
                remote_counts = {str(item['id']): int(item.get('messageCount') or 0) for item in summaries}
                if session.id in remote_counts:
                    self._mark_stored_messages(session, remote_counts[session.id])
                    fields = transcoder.to_remote(session, 'update', fields=PUSH_FIELDS)
                    await self._client.update_session(session.id, fields)
                    self.lifecycle.remote_ids.add(session.id)
                    action = PushAction.UPDATED
                else:
                    created = await self._client.create_session(transcoder.to_remote(session, 'create'))
                    session = self._adopt(session, str(created['id']))
                    action = PushAction.CREATED
                await self._flush_messages(session.id)
            except SyncError as exc:
                logger.warning('sync.push.failed', session_id=session_id, error=str(exc), kind=type(exc).__name__)
                return PushResult(session_id, PushAction.FAILED, error=exc)
            except Exception as exc:
                logger.exception('sync.push.unexpected', session_id=session_id)
                return PushResult(session_id, PushAction.FAILED, error=Unexpected(str(exc)))
            return PushResult(session_id, action, remote_id=session.id)

    def _mark_stored_messages(self, session: LocalSession, remote_count: int) -> None:
        """Messages are append-only, so the remote already holds the first ``remote_count`` of them."""
        self.lifecycle.pushed_messages.update(message.id for message in session.messages[:remote_count])

    def _adopt(self, session: LocalSession, remote_id: str) -> LocalSession:
        lifecycle = self.lifecycle
        lifecycle.remote_ids.add(remote_id)
        if remote_id == session.id:
            return session
        lifecycle.aliases[session.id] = remote_id
        self._locks[remote_id] = self._lock_for(session.id)
        logger.info('sync.push.adopted_id', local_id=session.id, remote_id=remote_id)
        self._muted = True
        try:
            return self._store.rekey(session.id, remote_id)
        finally:
            self._muted = False

    async def push_message(self, session_id: str, message_id: str) -> None:
        """Push a freshly appended message of a synced session right away."""
        async with self._lock_for(session_id):
            target = self.lifecycle.resolve(session_id)
            if not self.lifecycle.is_synced(target):
                return
            try:
                await self._flush_messages(target, up_to=message_id)
            except SyncError as exc:
                logger.warning('sync.message.failed', session_id=target, message_id=message_id, error=str(exc))
            except Exception:
                logger.exception('sync.message.unexpected', session_id=target, message_id=message_id)

    async def _flush_messages(self, session_id: str, up_to: Optional[str] = None) -> int:
        session = self._store.get(session_id)
        if session is None:
            return 0
        pushed = 0
        for message in session.messages:
            if message.id not in self.lifecycle.pushed_messages:
                await self._client.append_message(transcoder.message_to_remote(session_id, message))
                self.lifecycle.pushed_messages.add(message.id)
                pushed += 1
            if message.id == up_to:
                break
        return pushed

    async def delete_session(self, session_id: str) -> Optional[LocalSession]:
        """User-initiated delete, mirrored to the remote when it knows the session."""
        async with self._lock_for(session_id):
            target = self.lifecycle.resolve(session_id)
            removed = self._store.delete_session(target)
            if self.lifecycle.is_synced(target):
                await self._client.delete_session(target)
                self.lifecycle.remote_ids.discard(target)
                logger.info('sync.delete.mirrored', session_id=target)
            return removed
