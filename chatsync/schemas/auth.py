from pydantic import EmailStr, Field
from chatsync.schemas.base import CamelModel
from chatsync.schemas.user import UserOut


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterRequest(CamelModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=20)
    password: str = Field(min_length=6)


class AuthResponse(CamelModel):
    token: str
    user: UserOut
