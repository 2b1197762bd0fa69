# chat_relay/api/dependencies.py
from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.config import AppConfig
from chat_relay.gateways.group_gateway import GroupGateway
from chat_relay.gateways.message_gateway import MessageGateway
from chat_relay.gateways.user_gateway import UserGateway
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.infrastructure.uow import UnitOfWork
from chat_relay.interactors.group_interactor import GroupInteractor
from chat_relay.interactors.message_interactor import MessageInteractor
from chat_relay.interactors.user_interactor import UserInteractor


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_event_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.event_dispatcher


def get_logger(request: Request):
    return request.app.state.logger


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.database.session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_uow(session: AsyncSession = Depends(get_session)) -> UnitOfWork:
    return UnitOfWork(session)


async def get_user_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return UserGateway(session, uow)


async def get_group_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return GroupGateway(session, uow)


async def get_message_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return MessageGateway(session, uow)


async def get_user_interactor(
    user_gateway: UserGateway = Depends(get_user_gateway),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
    logger=Depends(get_logger),
):
    return UserInteractor(user_gateway, event_dispatcher, logger)


async def get_group_interactor(
    group_gateway: GroupGateway = Depends(get_group_gateway),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
    logger=Depends(get_logger),
):
    return GroupInteractor(group_gateway, event_dispatcher, logger)


async def get_message_interactor(
    message_gateway: MessageGateway = Depends(get_message_gateway),
    event_dispatcher: EventDispatcher = Depends(get_event_dispatcher),
    logger=Depends(get_logger),
):
    return MessageInteractor(message_gateway, event_dispatcher, logger)


async def get_current_user(
    x_user_id: str = Header(..., description="Id returned by /users/login"),
    user_interactor: UserInteractor = Depends(get_user_interactor),
) -> schemas.User:
    # identity only, there is no authentication in this service
    user = await user_interactor.get_user(x_user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user, log in first",
        )
    return user
