# chat_relay/domain/entities.py
from dataclasses import dataclass
from enum import Enum


class ConversationType(str, Enum):
    DIRECT = "direct"
    GROUP = "group"


@dataclass(frozen=True)
class ConversationRef:
    """A conversation as seen by one observer.

    For a direct conversation ``target_id`` is the other participant's user id,
    for a group conversation it is the group id. In both cases it doubles as
    the key of the observer's unread map.
    """

    type: ConversationType
    target_id: str

    @classmethod
    def direct(cls, user_id: str) -> "ConversationRef":
        return cls(ConversationType.DIRECT, user_id)

    @classmethod
    def group(cls, group_id: str) -> "ConversationRef":
        return cls(ConversationType.GROUP, group_id)

    @property
    def is_group(self) -> bool:
        return self.type is ConversationType.GROUP
