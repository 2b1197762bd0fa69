# chat_relay/tests/unit/test_user_interactor.py
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy.exc import IntegrityError

from chat_relay.domain.errors import IdentityConflict
from chat_relay.domain.events import UserCreated
from chat_relay.gateways.interfaces import IUserGateway
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.infrastructure.uow import UoWModel
from chat_relay.interactors.user_interactor import UserInteractor


@pytest.fixture
def mock_user_gateway():
    return Mock(spec=IUserGateway)


@pytest.fixture
def mock_dispatcher():
    dispatcher = Mock(spec=EventDispatcher)
    dispatcher.dispatch_committed = AsyncMock()
    return dispatcher


@pytest.fixture
def user_interactor(mock_user_gateway, mock_dispatcher):
    return UserInteractor(mock_user_gateway, mock_dispatcher, logging.getLogger("test_users"))


@pytest.fixture
def mock_uow_user():
    user = SimpleNamespace(id="u1", username="testuser", last_seen=None)
    return Mock(spec=UoWModel, _model=user)


class TestUserInteractor:
    @pytest.mark.asyncio
    async def test_get_user_found(self, user_interactor, mock_user_gateway, mock_uow_user):
        mock_user_gateway.get_user.return_value = mock_uow_user

        result = await user_interactor.get_user("u1")

        assert isinstance(result, schemas.User)
        assert result.username == "testuser"
        mock_user_gateway.get_user.assert_called_once_with("u1")

    @pytest.mark.asyncio
    async def test_get_user_not_found(self, user_interactor, mock_user_gateway):
        mock_user_gateway.get_user.return_value = None

        assert await user_interactor.get_user("missing") is None

    @pytest.mark.asyncio
    async def test_login_existing_user(
        self, user_interactor, mock_user_gateway, mock_dispatcher, mock_uow_user
    ):
        mock_user_gateway.get_by_username.return_value = mock_uow_user

        result = await user_interactor.login("  testuser ")

        assert result.id == "u1"
        mock_user_gateway.get_by_username.assert_called_once_with("testuser")
        mock_user_gateway.create_user.assert_not_called()
        mock_dispatcher.dispatch_committed.assert_not_called()

    @pytest.mark.asyncio
    async def test_login_creates_new_user(
        self, user_interactor, mock_user_gateway, mock_dispatcher, mock_uow_user
    ):
        mock_user_gateway.get_by_username.return_value = None
        mock_user_gateway.create_user.return_value = mock_uow_user

        result = await user_interactor.login("testuser")

        assert result.id == "u1"
        mock_user_gateway.create_user.assert_called_once_with("testuser")
        mock_dispatcher.dispatch_committed.assert_called_once_with(
            UserCreated(id="u1", username="testuser")
        )

    @pytest.mark.asyncio
    async def test_login_conflict(self, user_interactor, mock_user_gateway, mock_dispatcher):
        mock_user_gateway.get_by_username.return_value = None
        mock_user_gateway.create_user.side_effect = IntegrityError("insert", {}, Exception())

        with pytest.raises(IdentityConflict) as exc_info:
            await user_interactor.login("testuser")

        assert exc_info.value.username == "testuser"
        mock_dispatcher.dispatch_committed.assert_not_called()

    @pytest.mark.asyncio
    async def test_login_rejects_blank_username(self, user_interactor, mock_user_gateway):
        with pytest.raises(ValueError):
            await user_interactor.login("   ")
        mock_user_gateway.get_by_username.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_users_excludes_caller(self, user_interactor, mock_user_gateway, mock_uow_user):
        mock_user_gateway.get_all.return_value = [mock_uow_user]

        result = await user_interactor.get_users(exclude_user_id="me", limit=10)

        assert [user.id for user in result] == ["u1"]
        mock_user_gateway.get_all.assert_called_once_with("me", 10)
