# chat_relay/realtime/event_queue.py
import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress

from chat_relay.infrastructure.change_feed import ChangeFeed, FeedFilter, Row, Subscription

RowHandler = Callable[[Row], Awaitable[None]]


class SessionSubscription:
    def __init__(self, label: str, handler: RowHandler):
        self.label = label
        self.handler = handler
        self.subscription: Subscription | None = None
        self.active = True

    def __repr__(self) -> str:
        return f"<SessionSubscription {self.label} active={self.active}>"


class FeedEventQueue:
    """Funnels every feed subscription of one session through a single worker.

    Feed callbacks only enqueue; the worker runs handlers one at a time, so
    handlers of the same session never interleave. Rows still queued for a
    subscription that has been cancelled are dropped, nothing is replayed.
    """

    def __init__(self, change_feed: ChangeFeed, logger: logging.Logger):
        self.change_feed = change_feed
        self.logger = logger
        self._queue: asyncio.Queue[tuple[SessionSubscription, Row]] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._routes: list[SessionSubscription] = []

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if not self.running:
            self._worker = asyncio.create_task(self._run())

    async def stop(self) -> None:
        for route in list(self._routes):
            await self.unsubscribe(route)
        if self._worker:
            self._worker.cancel()
            with suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

    async def subscribe(
        self, table: str, handler: RowHandler, event_filter: FeedFilter | None = None
    ) -> SessionSubscription:
        label = f"{table}:{event_filter}" if event_filter else table
        route = SessionSubscription(label, handler)

        async def enqueue(row: Row) -> None:
            if route.active:
                self._queue.put_nowait((route, row))

        route.subscription = await self.change_feed.subscribe(table, enqueue, event_filter)
        self._routes.append(route)
        self.logger.info(f"Listening on {label}")
        return route

    async def unsubscribe(self, route: SessionSubscription) -> None:
        if not route.active:
            return
        route.active = False
        if route in self._routes:
            self._routes.remove(route)
        if route.subscription:
            await self.change_feed.unsubscribe(route.subscription)
        self.logger.info(f"Stopped listening on {route.label}")

    async def drain(self) -> None:
        """Wait until every row queued so far has been handled."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            route, row = await self._queue.get()
            try:
                if route.active:
                    await route.handler(row)
            except Exception as e:
                self.logger.error(f"Handler for {route.label} failed: {e!s}")
            finally:
                self._queue.task_done()
