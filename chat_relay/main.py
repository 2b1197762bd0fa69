# chat_relay/main.py
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chat_relay.api import groups, messages, sessions, users
from chat_relay.config import AppConfig
from chat_relay.domain.errors import IdentityConflict, QueryFailure, SendFailure
from chat_relay.infrastructure.change_feed import ChangeFeed, InMemoryChangeFeed
from chat_relay.infrastructure.database import create_database, create_engine
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.infrastructure.event_handlers import EventHandlers
from chat_relay.infrastructure.redis_feed import RedisChangeFeed, RedisClient
from chat_relay.interactors.factory import InteractorFactory


class Application:
    def __init__(self, config: AppConfig):
        self.config = config
        self.logger = self.setup_logger()
        self.database = create_database(create_engine(config.DATABASE_URL))
        self.change_feed = self.create_change_feed()
        self.event_dispatcher = EventDispatcher(self.logger.getChild("events"))
        self.event_handlers = EventHandlers(self.change_feed)
        self.event_handlers.register_all(self.event_dispatcher)

    def create_change_feed(self) -> ChangeFeed:
        feed_logger = self.logger.getChild("feed")
        if self.config.FEED_BACKEND == "memory":
            return InMemoryChangeFeed(feed_logger)
        redis_client = RedisClient(
            self.config.REDIS_HOST, self.config.REDIS_PORT, feed_logger
        )
        return RedisChangeFeed(
            redis_client,
            feed_logger,
            prefix=self.config.FEED_CHANNEL_PREFIX,
            poll_timeout=self.config.FEED_POLL_TIMEOUT,
            retry_delay=self.config.FEED_RETRY_DELAY,
        )

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        await self.database.connect()
        await self.change_feed.connect()
        yield
        await self.change_feed.disconnect()
        await self.database.disconnect()

    def setup_logger(self):
        logger = logging.getLogger("ChatRelay")
        logger.setLevel(self.config.LOG_LEVEL)

        if not logger.handlers:
            c_handler = logging.StreamHandler(sys.stdout)
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            c_handler.setFormatter(formatter)
            logger.addHandler(c_handler)

        return logger

    def create_app(self) -> FastAPI:
        app = FastAPI(
            title=self.config.PROJECT_NAME,
            version=self.config.PROJECT_VERSION,
            description=self.config.PROJECT_DESCRIPTION,
            openapi_url=f"{self.config.API_V1_STR}/openapi.json",
            lifespan=self.lifespan,
        )

        app.state.config = self.config
        app.state.event_dispatcher = self.event_dispatcher
        app.state.database = self.database
        app.state.change_feed = self.change_feed
        app.state.logger = self.logger
        app.state.interactors = InteractorFactory(
            self.database, self.event_dispatcher, self.logger
        )

        app.include_router(
            users.router, prefix=f"{self.config.API_V1_STR}/users", tags=["users"]
        )
        app.include_router(
            groups.router, prefix=f"{self.config.API_V1_STR}/groups", tags=["groups"]
        )
        app.include_router(
            messages.router,
            prefix=f"{self.config.API_V1_STR}/messages",
            tags=["messages"],
        )
        app.include_router(
            sessions.router,
            prefix=f"{self.config.API_V1_STR}/sessions",
            tags=["sessions"],
        )

        @app.exception_handler(IdentityConflict)
        async def identity_conflict_handler(request: Request, exc: IdentityConflict):
            return JSONResponse(status_code=409, content={"detail": str(exc)})

        @app.exception_handler(SendFailure)
        @app.exception_handler(QueryFailure)
        async def store_failure_handler(request: Request, exc: Exception):
            return JSONResponse(status_code=502, content={"detail": str(exc)})

        @app.exception_handler(ValueError)
        async def value_error_handler(request: Request, exc: ValueError):
            return JSONResponse(status_code=422, content={"detail": str(exc)})

        @app.exception_handler(Exception)
        async def global_exception_handler(request: Request, exc: Exception):
            self.logger.error(f"Unhandled error on {request.url.path}: {exc!s}")
            return JSONResponse(
                status_code=500,
                content={"message": f"An unexpected error occurred: {str(exc)}"},
            )

        @app.get("/")
        async def root():
            return {"message": "Welcome to the Chat Relay API"}

        return app


def create():
    config = AppConfig()
    application = Application(config)
    app = application.create_app()
    application.logger.info("Application created and configured")

    return app


app = create()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
