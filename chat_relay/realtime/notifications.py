# chat_relay/realtime/notifications.py
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any


class SessionEvent(Enum):
    """State transitions a presentation layer can listen to."""

    USER_LOGGED_IN = "user_logged_in"
    USER_LOGGED_OUT = "user_logged_out"
    CONVERSATIONS_CHANGED = "conversations_changed"
    CONVERSATION_ACTIVATED = "conversation_activated"
    MESSAGES_LOADED = "messages_loaded"
    MESSAGE_APPENDED = "message_appended"
    UNREAD_COUNT_CHANGED = "unread_count_changed"


Listener = Callable[[dict[str, Any]], Awaitable[None] | None]


class NotificationRegistry:
    """Observer registry for one chat session.

    Listeners may be plain functions or coroutines. A listener that raises is
    logged and skipped so one broken view cannot stall the session.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self.logger = logger
        self._listeners: dict[SessionEvent, list[Listener]] = {
            event: [] for event in SessionEvent
        }

    def subscribe(self, event: SessionEvent, listener: Listener) -> None:
        if listener not in self._listeners[event]:
            self._listeners[event].append(listener)
            self.logger.debug(f"Subscribed to {event.value}")

    def unsubscribe(self, event: SessionEvent, listener: Listener) -> None:
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)
            self.logger.debug(f"Unsubscribed from {event.value}")

    def clear(self) -> None:
        for listeners in self._listeners.values():
            listeners.clear()

    async def notify(self, event: SessionEvent, data: dict[str, Any]) -> None:
        # copy, listeners may unsubscribe themselves while being notified
        for listener in list(self._listeners[event]):
            try:
                result = listener(data)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error(f"Error in listener for {event.value}: {e!s}")
