from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from chatsync.db.session import get_session
from chatsync.models.user import User
from chatsync.schemas.user import AdminUserOut, AdminUserUpdate
from chatsync.services.auth_service import require_admin
from chatsync.services.user_service import (
    count_sessions,
    delete_user,
    get_user,
    list_users,
    set_user_active,
    to_admin_user_out,
)

router = APIRouter(prefix='/admin', tags=['admin'])


def _ensure_user(session: Session, user_id: str) -> User:
    record = get_user(session, user_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found')
    return record


@router.get('/users', response_model=list[AdminUserOut])
def list_users_endpoint(
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
) -> list[AdminUserOut]:
    return [to_admin_user_out(user, count) for user, count in list_users(session)]


@router.patch('/users/{user_id}', response_model=AdminUserOut)
def update_user_endpoint(
    user_id: str,
    payload: AdminUserUpdate,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
) -> AdminUserOut:
    record = _ensure_user(session, user_id)
    try:
        record = set_user_active(session, admin, record, payload.is_active)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return to_admin_user_out(record, count_sessions(session, record.id))


@router.delete('/users/{user_id}')
def delete_user_endpoint(
    user_id: str,
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
) -> dict:
    record = _ensure_user(session, user_id)
    try:
        delete_user(session, admin, record)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {'status': 'ok'}
