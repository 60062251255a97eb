from typing import Any, Optional, Union
from datetime import datetime
from pydantic import Field
from chatsync.models.enums import ChatRole
from chatsync.schemas.base import CamelModel

MaskConfigIn = Union[str, dict[str, Any]]


class SessionStatIn(CamelModel):
    token_count: int = 0
    word_count: int = 0
    char_count: int = 0


class ChatSessionCreate(CamelModel):
    topic: Optional[str] = None
    memory_prompt: Optional[str] = None
    mask_config: Optional[MaskConfigIn] = None


class ChatSessionUpdate(CamelModel):
    topic: Optional[str] = None
    memory_prompt: Optional[str] = None
    last_summarize_index: Optional[int] = None
    clear_context_index: Optional[int] = None
    mask_config: Optional[MaskConfigIn] = None
    stat: Optional[SessionStatIn] = None


class ChatMessageCreate(CamelModel):
    session_id: str = Field(min_length=1)
    role: ChatRole
    content: Union[str, list[Any], dict[str, Any]]
    date: Optional[str] = None
    model: Optional[str] = None
    tools: Optional[Union[list[Any], dict[str, Any]]] = None
    audio_url: Optional[str] = None
    is_mcp_response: bool = False


class ChatMessageOut(CamelModel):
    id: str
    session_id: str
    role: ChatRole
    content: str
    date: str
    model: Optional[str] = None
    tools: Optional[Union[list[Any], dict[str, Any]]] = None
    audio_url: Optional[str] = None
    is_mcp_response: bool = False
    created_at: datetime


class ChatSessionOut(CamelModel):
    id: str
    topic: str
    memory_prompt: str
    last_summarize_index: int
    clear_context_index: Optional[int] = None
    mask_config: str
    last_update: datetime
    created_at: datetime
    message_count: int = 0


class ChatSessionDetailOut(ChatSessionOut):
    messages: list[ChatMessageOut] = []
