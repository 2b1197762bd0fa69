# chat_relay/infrastructure/uow.py

from typing import Any, Dict, Type

from sqlalchemy.ext.asyncio import AsyncSession


class UoWModel:
    """Read-only view over a tracked row.

    Every table here is append-only, so a tracked model never turns dirty;
    writes through the wrapper are refused instead of being registered.
    """

    def __init__(self, model: Any, uow: "UnitOfWork"):
        self.__dict__["_model"] = model
        self.__dict__["_uow"] = uow

    def __getattr__(self, key):
        return getattr(self._model, key)

    def __setattr__(self, key, value):
        raise AttributeError(f"{type(self._model).__name__} rows are immutable")


class UnitOfWork:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.new: Dict[int, Any] = {}
        self.mappers: Dict[Type, Any] = {}

    def register_new(self, model: Any) -> UoWModel:
        if isinstance(model, UoWModel):
            model = model._model
        self.new[id(model)] = model
        return UoWModel(model, self)

    async def commit(self) -> None:
        try:
            for model in self.new.values():
                await self.mappers[type(model)].insert(model)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        finally:
            self.new.clear()

    async def rollback(self) -> None:
        self.new.clear()
        await self.session.rollback()
