# chat_relay/interactors/group_interactor.py
import logging

from chat_relay.domain.events import GroupCreated, GroupMemberAdded
from chat_relay.gateways.interfaces import IGroupGateway
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.event_dispatcher import EventDispatcher


class GroupInteractor:
    def __init__(
        self,
        group_gateway: IGroupGateway,
        event_dispatcher: EventDispatcher,
        logger: logging.Logger,
    ):
        self.group_gateway = group_gateway
        self.event_dispatcher = event_dispatcher
        self.logger = logger

    async def get_group(self, group_id: str) -> schemas.Group | None:
        group = await self.group_gateway.get_group(group_id)
        return schemas.Group.model_validate(group._model) if group else None

    async def get_groups(self) -> list[schemas.Group]:
        groups = await self.group_gateway.get_all()
        return [schemas.Group.model_validate(group._model) for group in groups]

    async def get_group_ids_for_user(self, user_id: str) -> list[str]:
        return await self.group_gateway.get_group_ids_for_user(user_id)

    async def create_group(
        self, group: schemas.GroupCreate, creator_id: str
    ) -> schemas.Group:
        new_group = await self.group_gateway.create_group(group, creator_id)
        created = schemas.Group.model_validate(new_group._model)
        self.logger.info(f"Group '{created.name}' ({created.id}) created by {creator_id}")

        await self.event_dispatcher.dispatch_committed(
            GroupCreated(id=created.id, name=created.name, created_at=created.created_at)
        )
        await self.event_dispatcher.dispatch_committed(
            GroupMemberAdded(group_id=created.id, user_id=creator_id)
        )
        return created

    async def add_member(self, group_id: str, user_id: str) -> schemas.GroupMember | None:
        """Add a member. None when the group does not exist; adding twice is a no-op."""
        if not await self.group_gateway.get_group(group_id):
            return None
        membership = await self.group_gateway.add_member(group_id, user_id)
        if membership:
            await self.event_dispatcher.dispatch_committed(
                GroupMemberAdded(group_id=group_id, user_id=user_id)
            )
        return schemas.GroupMember(group_id=group_id, user_id=user_id)
