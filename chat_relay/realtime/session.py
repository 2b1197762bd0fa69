# chat_relay/realtime/session.py
import logging
from typing import Any

from chat_relay.config import AppConfig
from chat_relay.domain.entities import ConversationRef
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.change_feed import ChangeFeed, FeedFilter, Row
from chat_relay.infrastructure.event_handlers import (
    GROUP_MEMBERS_TABLE,
    GROUPS_TABLE,
    MESSAGES_TABLE,
    USERS_TABLE,
)
from chat_relay.interactors.factory import InteractorFactory
from chat_relay.realtime.conversation_loader import ConversationLoader
from chat_relay.realtime.event_queue import FeedEventQueue
from chat_relay.realtime.notifications import NotificationRegistry, SessionEvent
from chat_relay.realtime.unread_tracker import UnreadTracker


class SessionClosedError(RuntimeError):
    pass


class ChatSession:
    """One observer's live connection to the chat.

    Owns the unread tracker, the conversation loader and every feed
    subscription made on the observer's behalf. Two listeners run side by
    side after login: the table-wide ``messages`` subscription feeding the
    unread tracker, and the loader's per-conversation subscription. Both may
    see the same insert; the tracker ignores the active conversation and only
    the loader writes the message list, so neither path duplicates the other.
    """

    def __init__(
        self,
        interactors: InteractorFactory,
        change_feed: ChangeFeed,
        config: AppConfig,
        logger: logging.Logger | None = None,
    ):
        self.interactors = interactors
        self.change_feed = change_feed
        self.config = config
        self.logger = logger or logging.getLogger("ChatRelay.session")
        self.notifications = NotificationRegistry(self.logger)

        self.current_user: schemas.User | None = None
        self.tracker: UnreadTracker | None = None
        self.loader: ConversationLoader | None = None
        self.event_queue: FeedEventQueue | None = None
        self._member_group_ids: set[str] = set()

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.logout()

    @property
    def is_logged_in(self) -> bool:
        return self.current_user is not None

    def _require_login(self) -> schemas.User:
        if self.current_user is None:
            raise SessionClosedError("Not logged in")
        return self.current_user

    async def login(self, username: str) -> schemas.User:
        if self.current_user:
            await self.logout()

        async with self.interactors.users() as user_interactor:
            user = await user_interactor.login(username)

        self.current_user = user
        self.tracker = UnreadTracker(user.id, self.config.SEEN_MESSAGE_WINDOW)
        self.event_queue = FeedEventQueue(self.change_feed, self.logger)
        self.event_queue.start()
        self.loader = ConversationLoader(
            user.id, self.interactors, self.event_queue, self.notifications, self.logger
        )

        try:
            await self.event_queue.subscribe(MESSAGES_TABLE, self._on_message_row)
            await self.event_queue.subscribe(USERS_TABLE, self._on_directory_row)
            await self.event_queue.subscribe(GROUPS_TABLE, self._on_directory_row)
            await self.event_queue.subscribe(
                GROUP_MEMBERS_TABLE,
                self._on_membership_row,
                FeedFilter.eq("user_id", user.id),
            )
            async with self.interactors.groups() as group_interactor:
                self._member_group_ids = set(
                    await group_interactor.get_group_ids_for_user(user.id)
                )
        except Exception as e:
            self.logger.error(f"Session setup failed for {user.username}: {e!s}")
            await self.logout()
            raise

        self.logger.info(f"Session started for {user.username}")
        await self.notifications.notify(
            SessionEvent.USER_LOGGED_IN, {"user": user.model_dump(mode="json")}
        )
        return user

    async def logout(self) -> None:
        if self.current_user is None:
            return
        user = self.current_user
        await self.loader.close()
        await self.event_queue.stop()

        self.current_user = None
        self.tracker = None
        self.loader = None
        self.event_queue = None
        self._member_group_ids = set()

        self.logger.info(f"Session ended for {user.username}")
        await self.notifications.notify(
            SessionEvent.USER_LOGGED_OUT, {"user": user.model_dump(mode="json")}
        )

    async def list_conversations(self) -> schemas.ConversationList:
        user = self._require_login()
        async with self.interactors.users() as user_interactor:
            users = await user_interactor.get_users(
                exclude_user_id=user.id, limit=self.config.USER_LIST_LIMIT
            )
        async with self.interactors.groups() as group_interactor:
            groups = await group_interactor.get_groups()
        return schemas.ConversationList(users=users, groups=groups)

    async def activate_conversation(self, ref: ConversationRef) -> list[schemas.Message]:
        self._require_login()
        # zero and mark active before anything can yield to queued feed rows
        changed = self.tracker.on_conversation_activated(ref.target_id)
        if changed:
            await self._notify_unread(ref.target_id)
        await self.notifications.notify(
            SessionEvent.CONVERSATION_ACTIVATED,
            {"type": ref.type.value, "conversation_id": ref.target_id},
        )
        return await self.loader.load(ref)

    async def deactivate_conversation(self) -> None:
        self._require_login()
        self.tracker.on_conversation_deactivated()
        await self.loader.close()

    async def send_message(self, ref: ConversationRef, content: str) -> schemas.Message:
        user = self._require_login()
        message = schemas.MessageCreate.for_conversation(ref, content)
        async with self.interactors.messages() as message_interactor:
            sent = await message_interactor.send_message(message, user.id)
        if self.loader.active == ref:
            # the feed echo of this row is dropped as a duplicate later
            await self.loader.append(sent)
        return sent

    async def create_group(self, name: str) -> schemas.Group:
        user = self._require_login()
        async with self.interactors.groups() as group_interactor:
            group = await group_interactor.create_group(
                schemas.GroupCreate(name=name), user.id
            )
        self._member_group_ids.add(group.id)
        await self.activate_conversation(ConversationRef.group(group.id))
        return group

    async def join_group(self, group_id: str) -> schemas.GroupMember:
        user = self._require_login()
        async with self.interactors.groups() as group_interactor:
            membership = await group_interactor.add_member(group_id, user.id)
        if membership is None:
            raise ValueError(f"Group {group_id} not found")
        self._member_group_ids.add(group_id)
        return membership

    def is_member_of(self, group_id: str) -> bool:
        return group_id in self._member_group_ids

    @property
    def unread_counts(self) -> dict[str, int]:
        return self.tracker.counts if self.tracker else {}

    @property
    def read_model(self) -> schemas.ReadModel:
        if self.loader is None or self.loader.active is None:
            return schemas.ReadModel(unread_counts=self.unread_counts)
        return schemas.ReadModel(
            active=schemas.ActiveConversation(
                type=self.loader.active.type, target_id=self.loader.active.target_id
            ),
            messages=list(self.loader.messages),
            unread_counts=self.unread_counts,
        )

    async def drain(self) -> None:
        """Wait for every feed row delivered so far to be processed."""
        if self.event_queue:
            await self.event_queue.drain()

    async def _notify_unread(self, conversation_id: str) -> None:
        await self.notifications.notify(
            SessionEvent.UNREAD_COUNT_CHANGED,
            {
                "conversation_id": conversation_id,
                "count": self.tracker.count(conversation_id),
            },
        )

    async def _on_message_row(self, row: Row) -> None:
        message = schemas.Message.model_validate(row)
        if message.group_id and message.group_id not in self._member_group_ids:
            self.logger.debug(f"Ignoring message for foreign group {message.group_id}")
            return
        conversation_id = self.tracker.on_message_observed(message)
        if conversation_id:
            await self._notify_unread(conversation_id)

    async def _on_directory_row(self, row: Row) -> None:
        conversations = await self.list_conversations()
        payload: dict[str, Any] = conversations.model_dump(mode="json")
        await self.notifications.notify(SessionEvent.CONVERSATIONS_CHANGED, payload)

    async def _on_membership_row(self, row: Row) -> None:
        self._member_group_ids.add(row["group_id"])
