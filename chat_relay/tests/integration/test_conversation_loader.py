# chat_relay/tests/integration/test_conversation_loader.py
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime

import pytest

from chat_relay.domain.entities import ConversationRef
from chat_relay.domain.errors import QueryFailure
from chat_relay.infrastructure import schemas
from chat_relay.realtime.conversation_loader import ConversationLoader
from chat_relay.realtime.event_queue import FeedEventQueue
from chat_relay.realtime.notifications import NotificationRegistry, SessionEvent

pytestmark = pytest.mark.asyncio


def make_row(message_id, sender_id, receiver_id=None, group_id=None):
    return {
        "id": message_id,
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "group_id": group_id,
        "content": f"content of {message_id}",
        "created_at": datetime(2024, 1, 1, 12, 0, 0).isoformat(),
    }


def make_message(message_id, sender_id, receiver_id=None, group_id=None):
    return schemas.Message(
        **make_row(message_id, sender_id, receiver_id, group_id),
        sender=schemas.UserBasic(id=sender_id, username=sender_id),
    )


class FakeInteractors:
    """Stands in for InteractorFactory; history and user lookups are scripted."""

    def __init__(self):
        self.histories: dict[str, list[schemas.Message]] = {}
        self.before_fetch = {}
        self.failing: set[str] = set()
        self.user_lookups: list[str] = []

    @asynccontextmanager
    async def messages(self):
        yield self

    @asynccontextmanager
    async def users(self):
        yield self

    async def get_history(self, user_id, ref):
        hook = self.before_fetch.get(ref.target_id)
        if hook:
            await hook()
        if ref.target_id in self.failing:
            raise QueryFailure(f"Could not load {ref.type.value} conversation")
        return list(self.histories.get(ref.target_id, []))

    async def get_user(self, user_id):
        self.user_lookups.append(user_id)
        return schemas.User(id=user_id, username=user_id)


@pytest.fixture
async def event_queue(change_feed, logger):
    queue = FeedEventQueue(change_feed, logger)
    queue.start()
    yield queue
    await queue.stop()


@pytest.fixture
def fake_interactors():
    return FakeInteractors()


@pytest.fixture
def notifications(logger):
    return NotificationRegistry(logger)


@pytest.fixture
def loader(fake_interactors, event_queue, notifications, logger):
    return ConversationLoader("me", fake_interactors, event_queue, notifications, logger)


async def test_load_returns_history_and_notifies(loader, fake_interactors, notifications):
    fake_interactors.histories["bob"] = [make_message("m1", "bob", receiver_id="me")]
    loaded = []
    notifications.subscribe(SessionEvent.MESSAGES_LOADED, loaded.append)

    messages = await loader.load(ConversationRef.direct("bob"))

    assert [message.id for message in messages] == ["m1"]
    assert loaded[0]["conversation_id"] == "bob"
    assert loaded[0]["type"] == "direct"


async def test_rows_during_load_are_merged_without_duplicates(
    loader, fake_interactors, change_feed, event_queue
):
    fake_interactors.histories["bob"] = [make_message("m1", "bob", receiver_id="me")]

    async def live_rows_while_fetching():
        await change_feed.publish("messages", make_row("m1", "bob", receiver_id="me"))
        await change_feed.publish("messages", make_row("m2", "me", receiver_id="bob"))
        await change_feed.publish("messages", make_row("m3", "carol", receiver_id="me"))
        await event_queue.drain()

    fake_interactors.before_fetch["bob"] = live_rows_while_fetching

    messages = await loader.load(ConversationRef.direct("bob"))

    assert [message.id for message in messages] == ["m1", "m2"]
    assert messages[1].sender.username == "me"


async def test_live_rows_after_load_are_appended_once(
    loader, fake_interactors, change_feed, event_queue
):
    await loader.load(ConversationRef.direct("bob"))

    row = make_row("m1", "bob", receiver_id="me")
    await change_feed.publish("messages", row)
    await change_feed.publish("messages", row)
    await change_feed.publish("messages", make_row("m2", "bob", receiver_id="me"))
    await event_queue.drain()

    assert [message.id for message in loader.messages] == ["m1", "m2"]
    # sender profile resolved once and cached
    assert fake_interactors.user_lookups == ["bob"]


async def test_group_subscription_is_filtered(loader, change_feed, event_queue):
    await loader.load(ConversationRef.group("g1"))

    await change_feed.publish("messages", make_row("m1", "bob", group_id="g2"))
    await change_feed.publish("messages", make_row("m2", "bob", group_id="g1"))
    await change_feed.publish("messages", make_row("m3", "bob", receiver_id="me"))
    await event_queue.drain()

    assert [message.id for message in loader.messages] == ["m2"]


async def test_query_failure_leaves_view_empty(
    loader, fake_interactors, change_feed, event_queue, notifications
):
    fake_interactors.failing.add("g1")
    loaded = []
    notifications.subscribe(SessionEvent.MESSAGES_LOADED, loaded.append)

    with pytest.raises(QueryFailure):
        await loader.load(ConversationRef.group("g1"))

    assert loader.messages == []
    assert loaded[0]["messages"] == []
    assert loader.active == ConversationRef.group("g1")

    # the live subscription stays in place
    await change_feed.publish("messages", make_row("m1", "bob", group_id="g1"))
    await event_queue.drain()
    assert [message.id for message in loader.messages] == ["m1"]


async def test_superseded_load_is_discarded(loader, fake_interactors):
    release = asyncio.Event()

    async def slow_fetch():
        await release.wait()

    fake_interactors.before_fetch["bob"] = slow_fetch
    fake_interactors.histories["bob"] = [make_message("m1", "bob", receiver_id="me")]
    fake_interactors.histories["carol"] = [make_message("m2", "carol", receiver_id="me")]

    slow_load = asyncio.create_task(loader.load(ConversationRef.direct("bob")))
    await asyncio.sleep(0)
    await loader.load(ConversationRef.direct("carol"))
    release.set()

    assert await slow_load == []
    assert loader.active == ConversationRef.direct("carol")
    assert [message.id for message in loader.messages] == ["m2"]


async def test_close_stops_delivery(loader, change_feed, event_queue):
    await loader.load(ConversationRef.direct("bob"))
    await loader.close()
    await loader.close()

    await change_feed.publish("messages", make_row("m1", "bob", receiver_id="me"))
    await event_queue.drain()

    assert loader.active is None
    assert loader.messages == []


async def test_append_deduplicates(loader):
    await loader.load(ConversationRef.direct("bob"))
    message = make_message("m1", "me", receiver_id="bob")

    assert await loader.append(message) is True
    assert await loader.append(message) is False
    assert len(loader.messages) == 1
