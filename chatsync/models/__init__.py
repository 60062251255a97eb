from chatsync.models.base import IDModel, TimestampModel
from chatsync.models.user import User
from chatsync.models.chat_session import ChatSession
from chatsync.models.chat_message import ChatMessage

__all__ = [
    'IDModel',
    'TimestampModel',
    'User',
    'ChatSession',
    'ChatMessage',
]
