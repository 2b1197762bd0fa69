# chat_relay/api/users.py
from typing import List

from fastapi import APIRouter, Depends

from chat_relay.api.dependencies import get_config, get_current_user, get_user_interactor
from chat_relay.config import AppConfig
from chat_relay.infrastructure import schemas
from chat_relay.interactors.user_interactor import UserInteractor

router = APIRouter()


@router.post("/login", response_model=schemas.User)
async def login(
    login_request: schemas.LoginRequest,
    user_interactor: UserInteractor = Depends(get_user_interactor),
):
    return await user_interactor.login(login_request.username)


@router.get("/", response_model=List[schemas.User])
async def read_users(
    user_interactor: UserInteractor = Depends(get_user_interactor),
    current_user: schemas.User = Depends(get_current_user),
    config: AppConfig = Depends(get_config),
):
    return await user_interactor.get_users(
        exclude_user_id=current_user.id, limit=config.USER_LIST_LIMIT
    )


@router.get("/me", response_model=schemas.User)
async def read_users_me(current_user: schemas.User = Depends(get_current_user)):
    return current_user
