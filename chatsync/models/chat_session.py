from datetime import datetime
from typing import Optional
from sqlalchemy import Text
from sqlmodel import Field, SQLModel
from chatsync.models.base import IDModel, TimestampModel, timestamp_type, utc_now


class ChatSession(IDModel, TimestampModel, SQLModel, table=True):
    __tablename__ = 'chat_sessions'

    user_id: str = Field(index=True)
    topic: str = 'New Chat'
    memory_prompt: str = Field(default='', sa_type=Text)
    last_summarize_index: int = 0
    clear_context_index: Optional[int] = None
    mask_config: str = Field(default='{}', sa_type=Text)
    token_count: int = 0
    word_count: int = 0
    char_count: int = 0
    last_update: datetime = Field(
        default_factory=utc_now,
        sa_type=timestamp_type(),
        sa_column_kwargs={"nullable": False},
        index=True,
    )
