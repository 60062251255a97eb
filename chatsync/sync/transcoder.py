"""Pure mapping between remote session records and local sessions.

Remote records are decoded JSON (camelCase keys); local sessions are
``LocalSession`` models. Nothing here raises on bad data: a malformed
``maskConfig`` becomes an empty mask and an unreadable timestamp becomes 0.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Literal, Mapping, Optional

from loguru import logger

from chatsync.models.enums import ChatRole
from chatsync.sync.local_store import LocalMessage, LocalSession, SessionStat

CREATE_FIELDS = ('topic', 'memoryPrompt', 'maskConfig')
UPDATE_FIELDS = ('topic', 'memoryPrompt', 'lastSummarizeIndex', 'clearContextIndex', 'maskConfig', 'stat')


def parse_mask(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return dict(raw)
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning('sync.transcode.mask_invalid', raw=str(raw)[:200])
        return {}
    if not isinstance(decoded, dict):
        logger.warning('sync.transcode.mask_not_object', kind=type(decoded).__name__)
        return {}
    return decoded


def encode_mask(mask: Mapping[str, Any]) -> str:
    return json.dumps(dict(mask), ensure_ascii=False)


def to_epoch_ms(raw: Any) -> int:
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, (int, float)):
        return int(raw)
    if isinstance(raw, datetime):
        moment = raw
    elif isinstance(raw, str) and raw:
        try:
            moment = datetime.fromisoformat(raw.replace('Z', '+00:00'))
        except ValueError:
            logger.warning('sync.transcode.timestamp_invalid', raw=raw)
            return 0
    else:
        return 0
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def _index(raw: Any, name: str) -> Optional[int]:
    if raw is None or raw == '':
        return None
    try:
        return int(raw)
    except (TypeError, ValueError, OverflowError):
        logger.warning('sync.transcode.index_invalid', field=name, raw=str(raw)[:50])
        return None


def _role(raw: Any) -> ChatRole:
    try:
        return ChatRole(raw)
    except ValueError:
        logger.warning('sync.transcode.role_unknown', role=raw)
        return ChatRole.USER


def _content(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    if raw is None:
        return ''
    return json.dumps(raw, ensure_ascii=False)


def _tools(raw: Any) -> Optional[list[dict[str, Any]]]:
    if isinstance(raw, dict):
        return [raw]
    if isinstance(raw, list):
        return [item for item in raw if isinstance(item, dict)] or None
    return None


def message_to_local(remote: Mapping[str, Any]) -> LocalMessage:
    return LocalMessage(
        id=str(remote['id']),
        role=_role(remote.get('role')),
        content=_content(remote.get('content')),
        date=remote.get('date') or '',
        model=remote.get('model'),
        tools=_tools(remote.get('tools')),
        audio_url=remote.get('audioUrl'),
        is_mcp_response=bool(remote.get('isMcpResponse', False)),
    )


def message_to_remote(session_id: str, message: LocalMessage) -> dict[str, Any]:
    payload: dict[str, Any] = {
        'sessionId': session_id,
        'role': message.role.value,
        'content': message.content,
        'date': message.date,
        'isMcpResponse': message.is_mcp_response,
    }
    if message.model is not None:
        payload['model'] = message.model
    if message.tools:
        payload['tools'] = message.tools
    if message.audio_url is not None:
        payload['audioUrl'] = message.audio_url
    return payload


def to_local(remote: Mapping[str, Any]) -> LocalSession:
    return LocalSession(
        id=str(remote.get('id') or ''),
        topic=remote.get('topic') or '',
        memory_prompt=remote.get('memoryPrompt') or '',
        messages=[message_to_local(item) for item in remote.get('messages') or []],
        last_update=to_epoch_ms(remote.get('lastUpdate')),
        mask=parse_mask(remote.get('maskConfig')),
        # counters are not transmitted by the remote yet
        stat=SessionStat(),
        last_summarize_index=_index(remote.get('lastSummarizeIndex'), 'lastSummarizeIndex') or 0,
        clear_context_index=_index(remote.get('clearContextIndex'), 'clearContextIndex'),
    )


def to_remote(
    session: LocalSession,
    mode: Literal['create', 'update'] = 'create',
    fields: Optional[tuple[str, ...]] = None,
) -> dict[str, Any]:
    full: dict[str, Any] = {
        'topic': session.topic,
        'memoryPrompt': session.memory_prompt,
        'lastSummarizeIndex': session.last_summarize_index,
        'clearContextIndex': session.clear_context_index,
        'maskConfig': encode_mask(session.mask),
        'stat': {
            'tokenCount': session.stat.token_count,
            'wordCount': session.stat.word_count,
            'charCount': session.stat.char_count,
        },
    }
    allowed = CREATE_FIELDS if mode == 'create' else UPDATE_FIELDS
    if fields is not None:
        allowed = tuple(name for name in allowed if name in fields)
    payload = {name: full[name] for name in allowed}
    if payload.get('clearContextIndex', 0) is None:
        payload.pop('clearContextIndex')
    return payload
