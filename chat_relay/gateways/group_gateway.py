# chat_relay/gateways/group_gateway.py

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.gateways.interfaces import IGroupGateway
from chat_relay.infrastructure import models, schemas
from chat_relay.infrastructure.data_mappers import GroupMapper, GroupMemberMapper
from chat_relay.infrastructure.uow import UnitOfWork, UoWModel


class GroupGateway(IGroupGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.Group] = GroupMapper(session)
        uow.mappers[models.GroupMember] = GroupMemberMapper(session)

    async def get_group(self, group_id: str) -> UoWModel | None:
        stmt = select(models.Group).filter(models.Group.id == group_id)
        result = await self.session.execute(stmt)
        group = result.scalar_one_or_none()
        return UoWModel(group, self.uow) if group else None

    async def get_all(self) -> list[UoWModel]:
        stmt = select(models.Group).order_by(models.Group.created_at)
        result = await self.session.execute(stmt)
        return [UoWModel(group, self.uow) for group in result.scalars().all()]

    async def create_group(
        self, group: schemas.GroupCreate, creator_id: str | None = None
    ) -> UoWModel:
        """Insert the group, and the creator's membership in the same commit."""
        db_group = models.Group(id=models.new_id(), name=group.name)
        uow_group = self.uow.register_new(db_group)
        if creator_id:
            self.uow.register_new(
                models.GroupMember(group_id=db_group.id, user_id=creator_id)
            )
        await self.uow.commit()
        return uow_group

    async def add_member(self, group_id: str, user_id: str) -> UoWModel | None:
        """Add ``user_id`` to the group. Returns None when already a member."""
        stmt = select(models.GroupMember).filter(
            models.GroupMember.group_id == group_id,
            models.GroupMember.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        if result.scalar_one_or_none():
            return None
        membership = models.GroupMember(group_id=group_id, user_id=user_id)
        uow_membership = self.uow.register_new(membership)
        await self.uow.commit()
        return uow_membership

    async def get_group_ids_for_user(self, user_id: str) -> list[str]:
        stmt = select(models.GroupMember.group_id).filter(
            models.GroupMember.user_id == user_id
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
