# chat_relay/tests/integration/test_session_commands.py
from unittest.mock import AsyncMock

import pytest

from chat_relay.api.sessions import (
    decode_frame,
    handle_command,
    parse_conversation,
    push_event,
)
from chat_relay.domain.entities import ConversationRef
from chat_relay.realtime.notifications import SessionEvent

pytestmark = pytest.mark.asyncio


async def test_parse_conversation():
    assert parse_conversation({"type": "group", "id": "g1"}) == ConversationRef.group("g1")
    with pytest.raises(ValueError):
        parse_conversation({"type": "channel", "id": "c1"})
    with pytest.raises(ValueError):
        parse_conversation({"type": "direct"})


async def test_send_and_activate_commands(make_session):
    alice = await make_session("alice")
    bob = await make_session("bob")
    bob_id = bob.current_user.id

    reply = await handle_command(
        alice, {"action": "send", "type": "direct", "id": bob_id, "content": "hi"}
    )
    assert reply["event"] == "reply"
    assert reply["data"]["receiver_id"] == bob_id
    await bob.drain()

    reply = await handle_command(
        bob, {"action": "activate", "type": "direct", "id": alice.current_user.id}
    )
    assert [message["content"] for message in reply["data"]] == ["hi"]

    reply = await handle_command(bob, {"action": "read_model"})
    assert reply["data"]["active"] == {"type": "direct", "target_id": alice.current_user.id}
    assert reply["data"]["unread_counts"] == {alice.current_user.id: 0}

    reply = await handle_command(bob, {"action": "deactivate"})
    assert reply == {"event": "reply", "action": "deactivate", "data": None}


async def test_group_commands(make_session):
    alice = await make_session("alice")
    bob = await make_session("bob")

    reply = await handle_command(alice, {"action": "create_group", "name": "team"})
    group_id = reply["data"]["id"]

    reply = await handle_command(bob, {"action": "join_group", "group_id": group_id})
    assert reply["data"] == {"group_id": group_id, "user_id": bob.current_user.id}

    reply = await handle_command(bob, {"action": "list_conversations"})
    assert [group["id"] for group in reply["data"]["groups"]] == [group_id]
    assert [user["username"] for user in reply["data"]["users"]] == ["alice"]


async def test_bad_commands_reply_with_errors(make_session):
    alice = await make_session("alice")

    reply = await handle_command(alice, {"action": "dance"})
    assert reply["event"] == "error"
    assert "Unknown action" in reply["data"]["detail"]

    reply = await handle_command(
        alice, {"action": "send", "type": "direct", "id": "someone", "content": " "}
    )
    assert reply["event"] == "error"

    reply = await handle_command(alice, {"action": "join_group", "group_id": "missing"})
    assert reply["event"] == "error"

    await alice.logout()
    reply = await handle_command(alice, {"action": "list_conversations"})
    assert reply == {
        "event": "error",
        "action": "list_conversations",
        "data": {"detail": "Not logged in"},
    }


async def test_push_event_frames_notifications():
    websocket = AsyncMock()
    await push_event(websocket, SessionEvent.UNREAD_COUNT_CHANGED, {"count": 2})
    websocket.send_json.assert_called_once_with(
        {"event": "unread_count_changed", "data": {"count": 2}}
    )


@pytest.mark.parametrize("text", ["not json", '["activate"]', '"activate"', "null"])
async def test_decode_frame_rejects_non_objects(text):
    with pytest.raises(ValueError):
        decode_frame(text)


async def test_decode_frame_returns_object():
    assert decode_frame('{"action": "read_model"}') == {"action": "read_model"}


async def test_non_object_payload_replies_with_error(make_session):
    alice = await make_session("alice")

    reply = await handle_command(alice, ["activate"])
    assert reply == {
        "event": "error",
        "action": None,
        "data": {"detail": "Frame must be a JSON object"},
    }
    assert alice.is_logged_in
