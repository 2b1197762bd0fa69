# chat_relay/domain/resolver.py
from dataclasses import dataclass
from typing import Protocol

from chat_relay.domain.entities import ConversationRef, ConversationType


class MessageLike(Protocol):
    sender_id: str
    receiver_id: str | None
    group_id: str | None


@dataclass(frozen=True)
class Resolution:
    conversation_id: str
    relevant: bool
    self_authored: bool

    @property
    def counts_as_unread(self) -> bool:
        return self.relevant and not self.self_authored


def conversation_id_for(message: MessageLike, observer_id: str) -> str:
    """Key of the conversation ``message`` belongs to, from ``observer_id``'s side.

    Group messages map to the group. Direct messages map to whichever
    participant is not the observer, so both ends of an exchange agree.
    """
    if message.group_id:
        return message.group_id
    if message.sender_id == observer_id:
        return message.receiver_id
    return message.sender_id


def is_relevant(message: MessageLike, observer_id: str) -> bool:
    # group membership is checked by whoever subscribed, not here
    return bool(message.group_id) or message.receiver_id == observer_id


def resolve(message: MessageLike, observer_id: str) -> Resolution:
    return Resolution(
        conversation_id=conversation_id_for(message, observer_id),
        relevant=is_relevant(message, observer_id),
        self_authored=message.sender_id == observer_id,
    )


def belongs_to(message: MessageLike, observer_id: str, ref: ConversationRef) -> bool:
    """Whether ``message`` is part of the conversation ``ref`` opened by ``observer_id``."""
    if ref.type is ConversationType.GROUP:
        return message.group_id == ref.target_id
    if message.group_id:
        return False
    return (
        message.sender_id == observer_id and message.receiver_id == ref.target_id
    ) or (message.sender_id == ref.target_id and message.receiver_id == observer_id)
