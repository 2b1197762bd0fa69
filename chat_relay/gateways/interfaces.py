# chat_relay/gateways/interfaces.py
from abc import ABC, abstractmethod
from typing import List, Optional

from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.uow import UoWModel


class IUserGateway(ABC):
    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def get_all(
        self, exclude_user_id: Optional[str] = None, limit: int = 500
    ) -> List[UoWModel]:
        pass

    @abstractmethod
    async def create_user(self, username: str) -> UoWModel:
        pass


class IGroupGateway(ABC):
    @abstractmethod
    async def get_group(self, group_id: str) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def get_all(self) -> List[UoWModel]:
        pass

    @abstractmethod
    async def create_group(
        self, group: schemas.GroupCreate, creator_id: Optional[str] = None
    ) -> UoWModel:
        pass

    @abstractmethod
    async def add_member(self, group_id: str, user_id: str) -> Optional[UoWModel]:
        pass

    @abstractmethod
    async def get_group_ids_for_user(self, user_id: str) -> List[str]:
        pass


class IMessageGateway(ABC):
    @abstractmethod
    async def get_direct_history(self, user_id: str, other_user_id: str) -> List[UoWModel]:
        pass

    @abstractmethod
    async def get_group_history(self, group_id: str) -> List[UoWModel]:
        pass

    @abstractmethod
    async def create_message(
        self, message: schemas.MessageCreate, sender_id: str
    ) -> UoWModel:
        pass
