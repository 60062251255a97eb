from fastapi import APIRouter, Depends, status
from sqlmodel import Session
from chatsync.api.v1.sessions import ensure_session, to_message_out
from chatsync.db.session import get_session
from chatsync.models.user import User
from chatsync.schemas.chat import ChatMessageCreate, ChatMessageOut
from chatsync.services.auth_service import get_current_user
from chatsync.services.chat_service import create_message

router = APIRouter(prefix='/messages', tags=['messages'])


@router.post('', response_model=ChatMessageOut, status_code=status.HTTP_201_CREATED)
def create_chat_message(
    payload: ChatMessageCreate,
    session: Session = Depends(get_session),
    user: User = Depends(get_current_user),
) -> ChatMessageOut:
    record = ensure_session(session, payload.session_id, user)
    return to_message_out(create_message(session, record, payload))
