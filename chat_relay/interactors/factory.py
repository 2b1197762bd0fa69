# chat_relay/interactors/factory.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from chat_relay.gateways.group_gateway import GroupGateway
from chat_relay.gateways.message_gateway import MessageGateway
from chat_relay.gateways.user_gateway import UserGateway
from chat_relay.infrastructure.database import Database
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.infrastructure.uow import UnitOfWork
from chat_relay.interactors.group_interactor import GroupInteractor
from chat_relay.interactors.message_interactor import MessageInteractor
from chat_relay.interactors.user_interactor import UserInteractor


class InteractorFactory:
    """Hands out interactors bound to a fresh database session.

    Long-lived chat sessions use this instead of the per-request dependency
    chain in ``chat_relay.api.dependencies``.
    """

    def __init__(
        self,
        database: Database,
        event_dispatcher: EventDispatcher,
        logger: logging.Logger,
    ):
        self.database = database
        self.event_dispatcher = event_dispatcher
        self.logger = logger

    @asynccontextmanager
    async def users(self) -> AsyncIterator[UserInteractor]:
        async with self.database.session() as session:
            uow = UnitOfWork(session)
            yield UserInteractor(
                UserGateway(session, uow), self.event_dispatcher, self.logger
            )

    @asynccontextmanager
    async def groups(self) -> AsyncIterator[GroupInteractor]:
        async with self.database.session() as session:
            uow = UnitOfWork(session)
            yield GroupInteractor(
                GroupGateway(session, uow), self.event_dispatcher, self.logger
            )

    @asynccontextmanager
    async def messages(self) -> AsyncIterator[MessageInteractor]:
        async with self.database.session() as session:
            uow = UnitOfWork(session)
            yield MessageInteractor(
                MessageGateway(session, uow), self.event_dispatcher, self.logger
            )
