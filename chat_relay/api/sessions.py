# chat_relay/api/sessions.py
import json
from functools import partial
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chat_relay.domain.entities import ConversationRef, ConversationType
from chat_relay.domain.errors import ChatRelayError, IdentityConflict
from chat_relay.realtime.notifications import SessionEvent
from chat_relay.realtime.session import ChatSession, SessionClosedError

router = APIRouter()


def decode_frame(text: str) -> dict[str, Any]:
    """Parse one client frame. Raises ValueError unless it is a JSON object."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Malformed frame: {e.msg}") from e
    if not isinstance(payload, dict):
        raise ValueError("Frame must be a JSON object")
    return payload


def error_frame(action: Any, detail: str) -> dict[str, Any]:
    return {"event": "error", "action": action, "data": {"detail": detail}}


def parse_conversation(payload: dict[str, Any]) -> ConversationRef:
    try:
        return ConversationRef(ConversationType(payload["type"]), str(payload["id"]))
    except KeyError as e:
        raise ValueError(f"Missing conversation field {e.args[0]!r}") from e


async def handle_command(session: ChatSession, payload: dict[str, Any]) -> dict[str, Any]:
    """Run one client action against the session and build the reply frame."""
    if not isinstance(payload, dict):
        return error_frame(None, "Frame must be a JSON object")
    action = payload.get("action")
    try:
        if action == "activate":
            ref = parse_conversation(payload)
            messages = await session.activate_conversation(ref)
            data: Any = [m.model_dump(mode="json") for m in messages]
        elif action == "deactivate":
            await session.deactivate_conversation()
            data = None
        elif action == "send":
            ref = parse_conversation(payload)
            sent = await session.send_message(ref, payload.get("content", ""))
            data = sent.model_dump(mode="json")
        elif action == "create_group":
            group = await session.create_group(payload.get("name", ""))
            data = group.model_dump(mode="json")
        elif action == "join_group":
            membership = await session.join_group(str(payload.get("group_id", "")))
            data = membership.model_dump(mode="json")
        elif action == "list_conversations":
            conversations = await session.list_conversations()
            data = conversations.model_dump(mode="json")
        elif action == "read_model":
            data = session.read_model.model_dump(mode="json")
        else:
            raise ValueError(f"Unknown action: {action!r}")
    except (ChatRelayError, SessionClosedError, ValueError) as e:
        session.logger.warning(f"Command {action!r} failed: {e!s}")
        return error_frame(action, str(e))
    return {"event": "reply", "action": action, "data": data}


async def push_event(websocket: WebSocket, event: SessionEvent, data: dict[str, Any]):
    await websocket.send_json({"event": event.value, "data": data})


@router.websocket("/ws")
async def session_socket(websocket: WebSocket, username: str):
    state = websocket.app.state
    await websocket.accept()

    session = ChatSession(
        state.interactors,
        state.change_feed,
        state.config,
        state.logger.getChild("session"),
    )
    for event in SessionEvent:
        session.notifications.subscribe(event, partial(push_event, websocket, event))

    try:
        await session.login(username)
    except (IdentityConflict, ValueError) as e:
        await websocket.send_json({"event": "error", "data": {"detail": str(e)}})
        await websocket.close(code=4409)
        return

    try:
        while True:
            text = await websocket.receive_text()
            try:
                payload = decode_frame(text)
            except ValueError as e:
                state.logger.warning(f"Rejected frame from {username}: {e!s}")
                await websocket.send_json(error_frame(None, str(e)))
                continue
            await websocket.send_json(await handle_command(session, payload))
    except WebSocketDisconnect:
        state.logger.info(f"Websocket closed for {username}")
    finally:
        session.notifications.clear()
        await session.logout()
