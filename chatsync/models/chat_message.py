from typing import Optional
from sqlalchemy import Text
from sqlmodel import Field, SQLModel
from chatsync.models.base import IDModel, TimestampModel
from chatsync.models.enums import ChatRole, enum_column


class ChatMessage(IDModel, TimestampModel, SQLModel, table=True):
    __tablename__ = 'chat_messages'

    session_id: str = Field(index=True)
    position: int = Field(default=0, index=True)
    role: ChatRole = Field(sa_column=enum_column(ChatRole, 'chat_role'))
    content: str = Field(sa_type=Text)
    date: str = ''
    model: Optional[str] = None
    tools: Optional[str] = Field(default=None, sa_type=Text)
    audio_url: Optional[str] = None
    is_mcp_response: bool = False
