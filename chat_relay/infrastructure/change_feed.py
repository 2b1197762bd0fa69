# chat_relay/infrastructure/change_feed.py
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

Row = dict[str, Any]
RowCallback = Callable[[Row], Awaitable[None]]


@dataclass(frozen=True)
class FeedFilter:
    """Equality filter evaluated by the feed before delivery, e.g. ``group_id=eq.<id>``."""

    column: str
    value: str

    @classmethod
    def eq(cls, column: str, value: str) -> "FeedFilter":
        return cls(column, value)

    def matches(self, row: Row) -> bool:
        return row.get(self.column) == self.value

    def __str__(self) -> str:
        return f"{self.column}=eq.{self.value}"


class Subscription:
    def __init__(
        self, table: str, callback: RowCallback, event_filter: FeedFilter | None = None
    ):
        self.id = uuid.uuid4().hex
        self.table = table
        self.callback = callback
        self.event_filter = event_filter
        self.active = True

    def matches(self, table: str, row: Row) -> bool:
        if table != self.table:
            return False
        return self.event_filter is None or self.event_filter.matches(row)

    def cancel(self) -> None:
        self.active = False

    def __repr__(self) -> str:
        target = f"{self.table}:{self.event_filter}" if self.event_filter else self.table
        return f"<Subscription {self.id[:8]} {target} active={self.active}>"


class ChangeFeed(ABC):
    """Pushes every inserted row of a table to its live subscribers.

    Delivery is at-least-once and carries no ordering guarantee across
    subscriptions. ``unsubscribe`` only stops further delivery and may be
    called more than once.
    """

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def subscribe(
        self, table: str, callback: RowCallback, event_filter: FeedFilter | None = None
    ) -> Subscription:
        pass

    @abstractmethod
    async def unsubscribe(self, subscription: Subscription) -> None:
        pass

    @abstractmethod
    async def publish(self, table: str, row: Row) -> None:
        pass


class InMemoryChangeFeed(ChangeFeed):
    """Process-local feed, used when the app runs without Redis."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.subscriptions: dict[str, Subscription] = {}

    async def subscribe(
        self, table: str, callback: RowCallback, event_filter: FeedFilter | None = None
    ) -> Subscription:
        subscription = Subscription(table, callback, event_filter)
        self.subscriptions[subscription.id] = subscription
        self.logger.debug(f"Subscribed {subscription!r}")
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        subscription.cancel()
        if self.subscriptions.pop(subscription.id, None):
            self.logger.debug(f"Unsubscribed {subscription!r}")

    async def publish(self, table: str, row: Row) -> None:
        for subscription in list(self.subscriptions.values()):
            if not subscription.active or not subscription.matches(table, row):
                continue
            try:
                await subscription.callback(dict(row))
            except Exception as e:
                self.logger.error(
                    f"Subscriber {subscription!r} failed on {table} row: {e!s}"
                )

    async def disconnect(self) -> None:
        for subscription in self.subscriptions.values():
            subscription.cancel()
        self.subscriptions.clear()
