# chat_relay/realtime/conversation_loader.py
import logging

from sqlalchemy.exc import SQLAlchemyError

from chat_relay.domain.entities import ConversationRef
from chat_relay.domain.resolver import belongs_to
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.change_feed import FeedFilter, Row
from chat_relay.infrastructure.event_handlers import MESSAGES_TABLE
from chat_relay.interactors.factory import InteractorFactory
from chat_relay.realtime.event_queue import FeedEventQueue, SessionSubscription
from chat_relay.realtime.notifications import NotificationRegistry, SessionEvent


class ConversationLoader:
    """Message list of the conversation an observer has open.

    ``load`` subscribes to the feed first and then fetches the full history;
    rows arriving while the fetch is in flight are held back and merged after
    it, so nothing committed around the switch is lost or shown twice. Group
    conversations are filtered by the feed (``group_id=eq.<id>``); direct ones
    get the whole table and are matched here against the same pair predicate
    the history query uses.
    """

    def __init__(
        self,
        observer_id: str,
        interactors: InteractorFactory,
        event_queue: FeedEventQueue,
        notifications: NotificationRegistry,
        logger: logging.Logger,
    ):
        self.observer_id = observer_id
        self.interactors = interactors
        self.event_queue = event_queue
        self.notifications = notifications
        self.logger = logger

        self.active: ConversationRef | None = None
        self.messages: list[schemas.Message] = []
        self._message_ids: set[str] = set()
        self._subscription: SessionSubscription | None = None
        self._generation = 0
        self._loading = False
        self._pending: list[schemas.Message] = []
        self._senders: dict[str, schemas.UserBasic] = {}

    async def load(self, ref: ConversationRef) -> list[schemas.Message]:
        await self.close()
        self._generation += 1
        generation = self._generation
        self.active = ref
        self._loading = True

        event_filter = FeedFilter.eq("group_id", ref.target_id) if ref.is_group else None
        self._subscription = await self.event_queue.subscribe(
            MESSAGES_TABLE, self._on_row, event_filter
        )

        try:
            async with self.interactors.messages() as message_interactor:
                history = await message_interactor.get_history(self.observer_id, ref)
        except Exception:
            if generation == self._generation:
                await self._finish_loading([])
            raise

        if generation != self._generation:
            # switched again while the fetch was in flight
            return []
        await self._finish_loading(history)
        self.logger.info(
            f"Loaded {len(history)} messages for {ref.type.value} {ref.target_id}"
        )
        return list(self.messages)

    async def close(self) -> None:
        self._generation += 1
        if self._subscription:
            await self.event_queue.unsubscribe(self._subscription)
            self._subscription = None
        self.active = None
        self.messages = []
        self._message_ids = set()
        self._loading = False
        self._pending = []

    async def append(self, message: schemas.Message) -> bool:
        """Append to the open conversation unless the id is already listed."""
        if message.id in self._message_ids:
            return False
        self._message_ids.add(message.id)
        self.messages.append(message)
        await self.notifications.notify(
            SessionEvent.MESSAGE_APPENDED,
            {
                "conversation_id": self.active.target_id if self.active else None,
                "message": message.model_dump(mode="json"),
            },
        )
        return True

    async def _finish_loading(self, history: list[schemas.Message]) -> None:
        self.messages = list(history)
        self._message_ids = {message.id for message in history}
        for message in history:
            if message.sender:
                self._senders[message.sender_id] = message.sender
        self._loading = False

        await self.notifications.notify(
            SessionEvent.MESSAGES_LOADED,
            {
                "conversation_id": self.active.target_id,
                "type": self.active.type.value,
                "messages": [message.model_dump(mode="json") for message in history],
            },
        )

        pending, self._pending = self._pending, []
        for message in pending:
            await self.append(message)

    async def _on_row(self, row: Row) -> None:
        ref = self.active
        if ref is None:
            return
        message = schemas.Message.model_validate(row)
        if not belongs_to(message, self.observer_id, ref):
            return
        if message.id in self._message_ids:
            return

        generation = self._generation
        message = await self._with_sender(message)
        if generation != self._generation:
            return

        if self._loading:
            self._pending.append(message)
        else:
            await self.append(message)

    async def _with_sender(self, message: schemas.Message) -> schemas.Message:
        # feed rows are bare, the sender profile is joined here
        if message.sender:
            return message
        sender = self._senders.get(message.sender_id)
        if sender is None:
            try:
                async with self.interactors.users() as user_interactor:
                    user = await user_interactor.get_user(message.sender_id)
            except SQLAlchemyError as e:
                self.logger.warning(
                    f"Could not resolve sender {message.sender_id}: {e!s}"
                )
                return message
            if user is None:
                return message
            sender = schemas.UserBasic(id=user.id, username=user.username)
            self._senders[sender.id] = sender
        return message.model_copy(update={"sender": sender})
