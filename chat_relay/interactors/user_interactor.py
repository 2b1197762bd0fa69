# chat_relay/interactors/user_interactor.py
import logging

from sqlalchemy.exc import SQLAlchemyError

from chat_relay.domain.errors import IdentityConflict
from chat_relay.domain.events import UserCreated
from chat_relay.gateways.interfaces import IUserGateway
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.infrastructure.uow import UoWModel


class UserInteractor:
    def __init__(
        self,
        user_gateway: IUserGateway,
        event_dispatcher: EventDispatcher,
        logger: logging.Logger,
    ):
        self.user_gateway = user_gateway
        self.event_dispatcher = event_dispatcher
        self.logger = logger

    async def get_user(self, user_id: str) -> schemas.User | None:
        user: UoWModel | None = await self.user_gateway.get_user(user_id)
        return schemas.User.model_validate(user._model) if user else None

    async def get_user_by_username(self, username: str) -> schemas.User | None:
        user: UoWModel | None = await self.user_gateway.get_by_username(username)
        return schemas.User.model_validate(user._model) if user else None

    async def get_users(
        self, exclude_user_id: str | None = None, limit: int = 500
    ) -> list[schemas.User]:
        users: list[UoWModel] = await self.user_gateway.get_all(exclude_user_id, limit)
        return [schemas.User.model_validate(user._model) for user in users]

    async def login(self, username: str) -> schemas.User:
        """Look the username up, creating the user on first login.

        There is no authentication. If the lookup misses and the insert fails
        too (typically a concurrent login won the unique constraint) the
        login fails with IdentityConflict; it is not retried.
        """
        username = username.strip()
        if not username:
            raise ValueError("username must not be empty")

        existing = await self.get_user_by_username(username)
        if existing:
            return existing

        try:
            new_user: UoWModel = await self.user_gateway.create_user(username)
        except SQLAlchemyError as e:
            self.logger.error(f"Could not create user '{username}': {e!s}")
            raise IdentityConflict(username) from e

        user = schemas.User.model_validate(new_user._model)
        self.logger.info(f"Created user '{user.username}' ({user.id})")
        await self.event_dispatcher.dispatch_committed(
            UserCreated(id=user.id, username=user.username)
        )
        return user
