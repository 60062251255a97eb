from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from chatsync.db.session import get_session
from chatsync.models.chat_message import ChatMessage
from chatsync.models.chat_session import ChatSession
from chatsync.models.user import User
from chatsync.schemas.chat import (
    ChatMessageOut,
    ChatSessionCreate,
    ChatSessionDetailOut,
    ChatSessionOut,
    ChatSessionUpdate,
)
from chatsync.services.auth_service import get_current_user
from chatsync.services.chat_service import (
    create_session,
    decode_tools,
    delete_session,
    get_owned_session,
    list_messages,
    list_sessions,
    update_session,
)

router = APIRouter(prefix='/sessions', tags=['sessions'])


def ensure_session(session: Session, session_id: str, user: User) -> ChatSession:
    # missing and foreign records look the same to the caller
    record = get_owned_session(session, session_id, user.id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Session not found')
    return record


def to_message_out(record: ChatMessage) -> ChatMessageOut:
    return ChatMessageOut(
        id=record.id,
        session_id=record.session_id,
        role=record.role,
        content=record.content,
        date=record.date,
        model=record.model,
        tools=decode_tools(record.tools),
        audio_url=record.audio_url,
        is_mcp_response=record.is_mcp_response,
        created_at=record.created_at,
    )


def _to_session_out(record: ChatSession, message_count: int = 0) -> ChatSessionOut:
    return ChatSessionOut(
        id=record.id,
        topic=record.topic,
        memory_prompt=record.memory_prompt,
        last_summarize_index=record.last_summarize_index,
        clear_context_index=record.clear_context_index,
        mask_config=record.mask_config,
        last_update=record.last_update,
        created_at=record.created_at,
        message_count=message_count,
    )


@router.get('', response_model=list[ChatSessionOut])
def list_chat_sessions(
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> list[ChatSessionOut]:
    return [_to_session_out(record, count) for record, count in list_sessions(session, user.id)]


@router.post('', response_model=ChatSessionOut, status_code=status.HTTP_201_CREATED)
def create_chat_session(
    payload: ChatSessionCreate,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ChatSessionOut:
    record = create_session(session, user.id, payload)
    return _to_session_out(record)


@router.get('/{session_id}', response_model=ChatSessionDetailOut)
def get_chat_session(
    session_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ChatSessionDetailOut:
    record = ensure_session(session, session_id, user)
    messages = [to_message_out(message) for message in list_messages(session, record.id)]
    summary = _to_session_out(record, len(messages))
    return ChatSessionDetailOut(**summary.model_dump(), messages=messages)


@router.patch('/{session_id}', response_model=ChatSessionOut)
def update_chat_session(
    session_id: str,
    payload: ChatSessionUpdate,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ChatSessionOut:
    record = ensure_session(session, session_id, user)
    record = update_session(session, record, payload)
    return _to_session_out(record, len(list_messages(session, record.id)))


@router.delete('/{session_id}')
def delete_chat_session(
    session_id: str,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> dict:
    record = ensure_session(session, session_id, user)
    delete_session(session, record)
    return {'status': 'ok'}
