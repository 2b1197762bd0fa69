# chat_relay/infrastructure/event_dispatcher.py
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable

from chat_relay.domain.errors import TransientFeedFailure
from chat_relay.domain.events import Event

EventHandler = Callable[[Event], Awaitable[None]]


class EventDispatcher:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self.logger = logger or logging.getLogger("ChatRelay.events")

    def register(self, event_type: type[Event], handler: EventHandler) -> None:
        self.handlers[event_type.__name__].append(handler)

    async def dispatch(self, event: Event) -> None:
        for handler in self.handlers[event.__class__.__name__]:
            await handler(event)

    async def dispatch_committed(self, event: Event) -> None:
        """Dispatch an event for a row that is already persisted.

        A feed outage must not turn a successful insert into a failure:
        live subscribers catch up on their next full fetch.
        """
        try:
            await self.dispatch(event)
        except TransientFeedFailure as e:
            self.logger.warning(
                f"{event.__class__.__name__} not delivered to the feed: {e!s}"
            )
