from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session
from chatsync.core.config import settings
from chatsync.db.session import get_session
from chatsync.models.user import User
from chatsync.schemas.auth import AuthResponse, LoginRequest, RegisterRequest
from chatsync.schemas.user import UserOut
from chatsync.services.auth_service import (
    authenticate_user,
    create_access_token,
    create_user,
    get_current_user,
)
from chatsync.services.user_service import to_user_out

router = APIRouter(prefix='/auth', tags=['auth'])


@router.post('/register', response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, session: Session = Depends(get_session)) -> AuthResponse:
    if not settings.ALLOW_REGISTER:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Registration is closed')
    try:
        user = create_user(session, payload.email, payload.username, payload.password)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return AuthResponse(token=create_access_token(user), user=to_user_out(user))


@router.post('/login', response_model=AuthResponse)
def login(payload: LoginRequest, session: Session = Depends(get_session)) -> AuthResponse:
    user = authenticate_user(session, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid email or password')
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Account disabled')
    return AuthResponse(token=create_access_token(user), user=to_user_out(user))


@router.get('/me', response_model=UserOut)
def me(user: User = Depends(get_current_user)) -> UserOut:
    return to_user_out(user)
