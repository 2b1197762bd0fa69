# chat_relay/domain/events.py
from datetime import datetime

from pydantic import BaseModel


class Event(BaseModel):
    pass


class MessageCreated(Event):
    id: str
    sender_id: str
    receiver_id: str | None = None
    group_id: str | None = None
    content: str
    created_at: datetime


class UserCreated(Event):
    id: str
    username: str


class GroupCreated(Event):
    id: str
    name: str
    created_at: datetime


class GroupMemberAdded(Event):
    group_id: str
    user_id: str
