from typing import Optional
from sqlalchemy import func
from sqlmodel import Session, select

from chatsync.models.chat_message import ChatMessage
from chatsync.models.chat_session import ChatSession
from chatsync.models.user import User
from chatsync.schemas.user import AdminUserOut, UserOut


def to_user_out(user: User) -> UserOut:
    return UserOut(id=user.id, email=user.email, username=user.username, role=user.role)


def to_admin_user_out(user: User, session_count: int) -> AdminUserOut:
    return AdminUserOut(
        id=user.id,
        email=user.email,
        username=user.username,
        role=user.role,
        is_active=user.is_active,
        created_at=user.created_at,
        session_count=session_count,
    )


def list_users(session: Session) -> list[tuple[User, int]]:
    counts = (
        select(ChatSession.user_id, func.count(ChatSession.id).label('session_count'))
        .group_by(ChatSession.user_id)
        .subquery()
    )
    statement = (
        select(User, func.coalesce(counts.c.session_count, 0))
        .outerjoin(counts, counts.c.user_id == User.id)
        .order_by(User.created_at.desc())
    )
    return [(user, int(count)) for user, count in session.exec(statement).all()]


def get_user(session: Session, user_id: str) -> Optional[User]:
    return session.exec(select(User).where(User.id == user_id)).first()


def count_sessions(session: Session, user_id: str) -> int:
    return int(
        session.exec(select(func.count(ChatSession.id)).where(ChatSession.user_id == user_id)).one()
    )


def set_user_active(session: Session, actor: User, user: User, is_active: bool) -> User:
    if actor.id == user.id:
        raise ValueError('Cannot change your own account status')
    user.is_active = is_active
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def delete_user(session: Session, actor: User, user: User) -> None:
    if actor.id == user.id:
        raise ValueError('Cannot delete your own account')
    session_ids = list(session.exec(select(ChatSession.id).where(ChatSession.user_id == user.id)).all())
    if session_ids:
        for message in session.exec(select(ChatMessage).where(ChatMessage.session_id.in_(session_ids))).all():
            session.delete(message)
        for record in session.exec(select(ChatSession).where(ChatSession.user_id == user.id)).all():
            session.delete(record)
    session.delete(user)
    session.commit()
