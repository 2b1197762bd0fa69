# chat_relay/config.py
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    PROJECT_NAME: str = "Chat Relay"
    PROJECT_VERSION: str = "1.0.0"
    PROJECT_DESCRIPTION: str = "Realtime chat delivery and unread tracking"
    API_V1_STR: str = "/api/v1"
    DATABASE_URL: str = "sqlite+aiosqlite:///:memory:"
    LOG_LEVEL: str = "INFO"

    FEED_BACKEND: Literal["redis", "memory"] = "redis"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    FEED_CHANNEL_PREFIX: str = "feed"
    FEED_POLL_TIMEOUT: float = 1.0
    FEED_RETRY_DELAY: float = 0.5

    # how many recently counted message ids a session remembers
    SEEN_MESSAGE_WINDOW: int = 1000
    USER_LIST_LIMIT: int = 500

    model_config = SettingsConfigDict(env_file=".env", extra="allow")
