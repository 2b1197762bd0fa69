# chat_relay/infrastructure/redis_feed.py
import asyncio
import json
import logging
from contextlib import suppress

import redis.asyncio as redis
from redis.asyncio.client import PubSub

from chat_relay.domain.errors import TransientFeedFailure
from chat_relay.infrastructure.change_feed import (
    ChangeFeed,
    FeedFilter,
    Row,
    RowCallback,
    Subscription,
)

# columns that get their own channel so subscribers can filter server-side
FILTERABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "messages": ("group_id", "receiver_id"),
    "group_members": ("group_id", "user_id"),
}


class RedisClient:
    def __init__(self, host: str, port: int, logger: logging.Logger):
        self.host = host
        self.port = port
        self.client: redis.Redis | None = None
        self.logger = logger

    async def connect(self):
        self.client = redis.Redis(
            host=self.host,
            port=self.port,
            db=0,
            decode_responses=True,
        )
        try:
            await self.client.ping()
            self.logger.info(
                f"Successfully connected to Redis at {self.host}:{self.port}"
            )
        except redis.ConnectionError as e:
            self.logger.error(f"Failed to connect to Redis: {e!s}")
            self.logger.error(f"Redis host: {self.host}, Redis port: {self.port}")
            raise e

    async def disconnect(self):
        if self.client:
            await self.client.aclose()
            self.logger.info("Disconnected from Redis")

    async def publish(self, channel: str, message: str) -> None:
        if self.client is None:
            raise RuntimeError("Redis client not connected")
        await self.client.publish(channel, message)
        self.logger.debug(f"Published message to channel {channel}")

    def pubsub(self) -> PubSub:
        if self.client is None:
            raise RuntimeError("Redis client not connected")
        return self.client.pubsub()


class RedisChangeFeed(ChangeFeed):
    """Change feed over Redis pub/sub.

    Each row is published to ``<prefix>:<table>`` and, for every filterable
    column it carries, to ``<prefix>:<table>:<column>=<value>``. A filtered
    subscription listens on the column channel only, which is how the
    ``group_id=eq.<id>`` filter ends up being applied by Redis rather than by
    the subscriber. Each subscription owns a pubsub connection and a listener
    task; failed reads are logged and polling resumes.
    """

    def __init__(
        self,
        redis_client: RedisClient,
        logger: logging.Logger,
        prefix: str = "feed",
        poll_timeout: float = 1.0,
        retry_delay: float = 0.5,
    ):
        self.redis_client = redis_client
        self.logger = logger
        self.prefix = prefix
        self.poll_timeout = poll_timeout
        self.retry_delay = retry_delay
        self._listeners: dict[str, tuple[PubSub, asyncio.Task]] = {}

    def channel_for(self, table: str, event_filter: FeedFilter | None = None) -> str:
        if event_filter is None:
            return f"{self.prefix}:{table}"
        if event_filter.column not in FILTERABLE_COLUMNS.get(table, ()):
            raise ValueError(f"Column {event_filter.column!r} of {table} is not filterable")
        return f"{self.prefix}:{table}:{event_filter.column}={event_filter.value}"

    def channels_for_row(self, table: str, row: Row) -> list[str]:
        channels = [self.channel_for(table)]
        for column in FILTERABLE_COLUMNS.get(table, ()):
            value = row.get(column)
            if value is not None:
                channels.append(self.channel_for(table, FeedFilter.eq(column, value)))
        return channels

    async def connect(self) -> None:
        await self.redis_client.connect()

    async def disconnect(self) -> None:
        for subscription_id in list(self._listeners):
            await self._stop_listener(subscription_id)
        await self.redis_client.disconnect()

    async def publish(self, table: str, row: Row) -> None:
        payload = json.dumps(row, default=str)
        try:
            for channel in self.channels_for_row(table, row):
                await self.redis_client.publish(channel, payload)
        except redis.RedisError as e:
            raise TransientFeedFailure(f"Could not publish {table} row: {e!s}") from e

    async def subscribe(
        self, table: str, callback: RowCallback, event_filter: FeedFilter | None = None
    ) -> Subscription:
        subscription = Subscription(table, callback, event_filter)
        channel = self.channel_for(table, event_filter)
        pubsub = self.redis_client.pubsub()
        await pubsub.subscribe(channel)
        task = asyncio.create_task(self._listen(subscription, pubsub, channel))
        self._listeners[subscription.id] = (pubsub, task)
        self.logger.info(f"Subscribed to feed channel {channel}")
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        subscription.cancel()
        await self._stop_listener(subscription.id)

    async def _stop_listener(self, subscription_id: str) -> None:
        listener = self._listeners.pop(subscription_id, None)
        if listener is None:
            return
        pubsub, task = listener
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        try:
            await pubsub.unsubscribe()
            await pubsub.aclose()
        except redis.RedisError as e:
            self.logger.warning(f"Error closing feed subscription: {e!s}")

    async def _listen(self, subscription: Subscription, pubsub: PubSub, channel: str):
        while subscription.active:
            try:
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=self.poll_timeout
                )
            except redis.RedisError as e:
                self.logger.warning(f"Feed read failed on {channel}: {e!s}")
                await asyncio.sleep(self.retry_delay)
                continue
            if not message or message.get("type") != "message":
                continue
            try:
                row = json.loads(message["data"])
            except (json.JSONDecodeError, TypeError) as e:
                self.logger.error(f"Malformed feed payload on {channel}: {e!s}")
                continue
            if not subscription.active:
                break
            try:
                await subscription.callback(row)
            except Exception as e:
                self.logger.error(f"Subscriber failed on {channel}: {e!s}")
