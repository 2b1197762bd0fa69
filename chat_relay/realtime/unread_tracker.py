# chat_relay/realtime/unread_tracker.py
from collections import OrderedDict

from chat_relay.domain.resolver import resolve
from chat_relay.infrastructure import schemas


class UnreadTracker:
    """Unread counts per conversation for one observer.

    The active conversation's count stays at 0: activation zeroes it and
    observed messages for it are ignored. Nothing else ever resets a count.
    The tracker is synchronous; callers decide how to announce changes.
    """

    def __init__(self, observer_id: str, seen_window: int = 1000):
        self.observer_id = observer_id
        self.active_conversation_id: str | None = None
        self._counts: dict[str, int] = {}
        self._seen_window = seen_window
        self._counted: OrderedDict[str, None] = OrderedDict()

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)

    def count(self, conversation_id: str) -> int:
        return self._counts.get(conversation_id, 0)

    def on_message_observed(self, message: schemas.Message) -> str | None:
        """Count ``message`` if it is unread. Returns the conversation id it bumped."""
        resolution = resolve(message, self.observer_id)
        if not resolution.counts_as_unread:
            return None
        # the feed is at-least-once; ids seen while active are remembered too
        if message.id in self._counted:
            return None
        self._remember(message.id)
        if resolution.conversation_id == self.active_conversation_id:
            return None

        conversation_id = resolution.conversation_id
        self._counts[conversation_id] = self._counts.get(conversation_id, 0) + 1
        return conversation_id

    def on_conversation_activated(self, conversation_id: str) -> bool:
        """Zero the count and mark the conversation active. True if the map changed."""
        changed = self._counts.get(conversation_id) != 0
        self._counts[conversation_id] = 0
        self.active_conversation_id = conversation_id
        return changed

    def on_conversation_deactivated(self) -> None:
        self.active_conversation_id = None

    def _remember(self, message_id: str) -> None:
        self._counted[message_id] = None
        while len(self._counted) > self._seen_window:
            self._counted.popitem(last=False)
