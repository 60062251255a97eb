import json
from datetime import datetime
from typing import Any, Optional, Union
from sqlalchemy import func
from sqlmodel import Session, select
from chatsync.models.base import utc_now
from chatsync.models.chat_session import ChatSession
from chatsync.models.chat_message import ChatMessage
from chatsync.schemas.chat import ChatMessageCreate, ChatSessionCreate, ChatSessionUpdate


def encode_mask_config(value: Optional[Union[str, dict[str, Any]]]) -> str:
    if value is None:
        return '{}'
    if isinstance(value, str):
        return value or '{}'
    return json.dumps(value, ensure_ascii=False)


def _encode_content(value: Union[str, list, dict]) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def decode_tools(value: Optional[str]) -> Optional[Union[list, dict]]:
    if not value:
        return None
    try:
        decoded = json.loads(value)
    except ValueError:
        return None
    return decoded if isinstance(decoded, (list, dict)) else None


def _format_date(moment: datetime) -> str:
    return moment.astimezone().strftime('%Y/%m/%d %H:%M:%S')


def create_session(session: Session, user_id: str, payload: ChatSessionCreate) -> ChatSession:
    record = ChatSession(
        user_id=user_id,
        topic=payload.topic or 'New Chat',
        memory_prompt=payload.memory_prompt or '',
        mask_config=encode_mask_config(payload.mask_config),
    )
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def list_sessions(session: Session, user_id: str) -> list[tuple[ChatSession, int]]:
    counts = (
        select(ChatMessage.session_id, func.count(ChatMessage.id).label('message_count'))
        .group_by(ChatMessage.session_id)
        .subquery()
    )
    statement = (
        select(ChatSession, func.coalesce(counts.c.message_count, 0))
        .outerjoin(counts, counts.c.session_id == ChatSession.id)
        .where(ChatSession.user_id == user_id)
        .order_by(ChatSession.last_update.desc())
    )
    return [(record, int(count)) for record, count in session.exec(statement).all()]


def get_owned_session(session: Session, session_id: str, user_id: str) -> Optional[ChatSession]:
    return session.exec(
        select(ChatSession).where((ChatSession.id == session_id) & (ChatSession.user_id == user_id))
    ).first()


def update_session(session: Session, record: ChatSession, payload: ChatSessionUpdate) -> ChatSession:
    data = payload.model_dump(exclude_unset=True)
    for field in ('topic', 'memory_prompt', 'last_summarize_index', 'clear_context_index'):
        if field in data and data[field] is not None:
            setattr(record, field, data[field])
    if 'mask_config' in data and data['mask_config'] is not None:
        record.mask_config = encode_mask_config(payload.mask_config)
    if payload.stat is not None:
        record.token_count = payload.stat.token_count
        record.word_count = payload.stat.word_count
        record.char_count = payload.stat.char_count
    record.last_update = utc_now()
    session.add(record)
    session.commit()
    session.refresh(record)
    return record


def delete_session(session: Session, record: ChatSession) -> None:
    messages = session.exec(select(ChatMessage).where(ChatMessage.session_id == record.id)).all()
    for message in messages:
        session.delete(message)
    session.delete(record)
    session.commit()


def create_message(session: Session, record: ChatSession, payload: ChatMessageCreate) -> ChatMessage:
    position = session.exec(
        select(func.count(ChatMessage.id)).where(ChatMessage.session_id == record.id)
    ).one()
    now = utc_now()
    message = ChatMessage(
        session_id=record.id,
        position=int(position),
        role=payload.role,
        content=_encode_content(payload.content),
        date=payload.date or _format_date(now),
        model=payload.model,
        tools=json.dumps(payload.tools, ensure_ascii=False) if payload.tools else None,
        audio_url=payload.audio_url,
        is_mcp_response=payload.is_mcp_response,
    )
    record.last_update = now
    session.add(message)
    session.add(record)
    session.commit()
    session.refresh(message)
    return message


def list_messages(session: Session, session_id: str) -> list[ChatMessage]:
    statement = (
        select(ChatMessage)
        .where(ChatMessage.session_id == session_id)
        .order_by(ChatMessage.position.asc(), ChatMessage.created_at.asc())
    )
    return list(session.exec(statement).all())
