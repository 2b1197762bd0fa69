# chat_relay/gateways/user_gateway.py

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.gateways.interfaces import IUserGateway
from chat_relay.infrastructure import models
from chat_relay.infrastructure.data_mappers import UserMapper
from chat_relay.infrastructure.uow import UnitOfWork, UoWModel


class UserGateway(IUserGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.User] = UserMapper(session)

    async def get_user(self, user_id: str) -> UoWModel | None:
        stmt = select(models.User).filter(models.User.id == user_id)
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        return UoWModel(user, self.uow) if user else None

    async def get_by_username(self, username: str) -> UoWModel | None:
        stmt = select(models.User).filter(models.User.username == username)
        result = await self.session.execute(stmt)
        user = result.scalar_one_or_none()
        return UoWModel(user, self.uow) if user else None

    async def get_all(
        self, exclude_user_id: str | None = None, limit: int = 500
    ) -> list[UoWModel]:
        stmt = select(models.User)
        if exclude_user_id:
            stmt = stmt.filter(models.User.id != exclude_user_id)
        stmt = stmt.order_by(models.User.username).limit(limit)
        result = await self.session.execute(stmt)
        users = result.scalars().all()
        return [UoWModel(user, self.uow) for user in users]

    async def create_user(self, username: str) -> UoWModel:
        db_user = models.User(username=username)
        uow_user = self.uow.register_new(db_user)
        await self.uow.commit()
        return uow_user
