# chat_relay/infrastructure/data_mappers.py

from typing import Protocol, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.infrastructure import models

ModelT_contra = TypeVar("ModelT_contra", contravariant=True)


class DataMapper(Protocol[ModelT_contra]):
    async def insert(self, model: ModelT_contra):
        raise NotImplementedError


class SessionMapper:
    """Inserts rows through an AsyncSession. Rows are never updated or deleted."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, model) -> None:
        self.session.add(model)
        await self.session.flush()


class UserMapper(SessionMapper, DataMapper[models.User]):
    pass


class GroupMapper(SessionMapper, DataMapper[models.Group]):
    pass


class GroupMemberMapper(SessionMapper, DataMapper[models.GroupMember]):
    pass


class MessageMapper(SessionMapper, DataMapper[models.Message]):
    pass
