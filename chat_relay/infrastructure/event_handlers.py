# chat_relay/infrastructure/event_handlers.py
from chat_relay.domain.events import (
    Event,
    GroupCreated,
    GroupMemberAdded,
    MessageCreated,
    UserCreated,
)
from chat_relay.infrastructure.change_feed import ChangeFeed

MESSAGES_TABLE = "messages"
USERS_TABLE = "users"
GROUPS_TABLE = "groups"
GROUP_MEMBERS_TABLE = "group_members"


class EventHandlers:
    """Turns committed inserts into change feed rows."""

    def __init__(self, change_feed: ChangeFeed):
        self.change_feed = change_feed

    def register_all(self, event_dispatcher) -> None:
        event_dispatcher.register(MessageCreated, self.publish_message_created)
        event_dispatcher.register(UserCreated, self.publish_user_created)
        event_dispatcher.register(GroupCreated, self.publish_group_created)
        event_dispatcher.register(GroupMemberAdded, self.publish_group_member_added)

    async def publish_row(self, table: str, event: Event) -> None:
        await self.change_feed.publish(table, event.model_dump(mode="json"))

    async def publish_message_created(self, event: MessageCreated):
        await self.publish_row(MESSAGES_TABLE, event)

    async def publish_user_created(self, event: UserCreated):
        await self.publish_row(USERS_TABLE, event)

    async def publish_group_created(self, event: GroupCreated):
        await self.publish_row(GROUPS_TABLE, event)

    async def publish_group_member_added(self, event: GroupMemberAdded):
        await self.publish_row(GROUP_MEMBERS_TABLE, event)
