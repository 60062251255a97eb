from datetime import datetime
from pydantic import EmailStr
from chatsync.models.enums import UserRole
from chatsync.schemas.base import CamelModel


class UserOut(CamelModel):
    id: str
    email: EmailStr
    username: str
    role: UserRole


class AdminUserOut(UserOut):
    is_active: bool
    created_at: datetime
    session_count: int = 0


class AdminUserUpdate(CamelModel):
    is_active: bool
