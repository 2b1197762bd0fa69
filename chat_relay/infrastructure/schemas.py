# chat_relay/infrastructure/schemas.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from chat_relay.domain.entities import ConversationRef, ConversationType


class UserBasic(BaseModel):
    id: str
    username: str

    model_config = ConfigDict(from_attributes=True)


class User(UserBasic):
    last_seen: datetime | None = None


class LoginRequest(BaseModel):
    username: str

    @field_validator("username")
    @classmethod
    def strip_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("username must not be empty")
        return value


class GroupCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("group name must not be empty")
        return value


class Group(BaseModel):
    id: str
    name: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GroupMember(BaseModel):
    group_id: str
    user_id: str

    model_config = ConfigDict(from_attributes=True)


class GroupMemberCreate(BaseModel):
    user_id: str


class MessageCreate(BaseModel):
    content: str
    receiver_id: str | None = None
    group_id: str | None = None

    @field_validator("content")
    @classmethod
    def strip_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("message content must not be empty")
        return value

    @model_validator(mode="after")
    def check_single_target(self) -> "MessageCreate":
        if (self.receiver_id is None) == (self.group_id is None):
            raise ValueError("exactly one of receiver_id and group_id must be set")
        return self

    @classmethod
    def for_conversation(cls, ref: ConversationRef, content: str) -> "MessageCreate":
        if ref.type is ConversationType.GROUP:
            return cls(content=content, group_id=ref.target_id)
        return cls(content=content, receiver_id=ref.target_id)


class Message(BaseModel):
    id: str
    sender_id: str
    receiver_id: str | None = None
    group_id: str | None = None
    content: str
    created_at: datetime
    sender: UserBasic | None = None

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def check_single_target(self) -> "Message":
        if (self.receiver_id is None) == (self.group_id is None):
            raise ValueError("exactly one of receiver_id and group_id must be set")
        return self


class ConversationList(BaseModel):
    users: list[User] = Field(default_factory=list)
    groups: list[Group] = Field(default_factory=list)


class ActiveConversation(BaseModel):
    type: ConversationType
    target_id: str


class ReadModel(BaseModel):
    active: ActiveConversation | None = None
    messages: list[Message] = Field(default_factory=list)
    unread_counts: dict[str, int] = Field(default_factory=dict)
