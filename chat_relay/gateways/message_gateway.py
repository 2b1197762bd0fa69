# chat_relay/gateways/message_gateway.py

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.gateways.interfaces import IMessageGateway
from chat_relay.infrastructure import models, schemas
from chat_relay.infrastructure.data_mappers import MessageMapper
from chat_relay.infrastructure.uow import UnitOfWork, UoWModel


class MessageGateway(IMessageGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.Message] = MessageMapper(session)

    async def _history(self, *criteria) -> list[UoWModel]:
        stmt = (
            select(models.Message)
            .filter(*criteria)
            .order_by(models.Message.created_at.asc(), models.Message.seq.asc())
        )
        result = await self.session.execute(stmt)
        return [UoWModel(message, self.uow) for message in result.scalars().all()]

    async def get_direct_history(
        self, user_id: str, other_user_id: str
    ) -> list[UoWModel]:
        return await self._history(
            or_(
                and_(
                    models.Message.sender_id == user_id,
                    models.Message.receiver_id == other_user_id,
                ),
                and_(
                    models.Message.sender_id == other_user_id,
                    models.Message.receiver_id == user_id,
                ),
            )
        )

    async def get_group_history(self, group_id: str) -> list[UoWModel]:
        return await self._history(models.Message.group_id == group_id)

    async def create_message(
        self, message: schemas.MessageCreate, sender_id: str
    ) -> UoWModel:
        db_message = models.Message(
            sender_id=sender_id,
            receiver_id=message.receiver_id,
            group_id=message.group_id,
            content=message.content,
        )
        self.uow.register_new(db_message)
        await self.uow.commit()

        # Reload so the sender relationship is populated for the caller
        stmt = (
            select(models.Message)
            .filter(models.Message.id == db_message.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return UoWModel(result.scalar_one(), self.uow)
