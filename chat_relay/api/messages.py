# chat_relay/api/messages.py
from typing import List

from fastapi import APIRouter, Depends

from chat_relay.api.dependencies import get_current_user, get_message_interactor
from chat_relay.domain.entities import ConversationRef
from chat_relay.infrastructure import schemas
from chat_relay.interactors.message_interactor import MessageInteractor

router = APIRouter()


@router.post("/", response_model=schemas.Message)
async def create_message(
    message: schemas.MessageCreate,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await message_interactor.send_message(message, current_user.id)


@router.get("/direct/{user_id}", response_model=List[schemas.Message])
async def read_direct_messages(
    user_id: str,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await message_interactor.get_history(
        current_user.id, ConversationRef.direct(user_id)
    )


@router.get("/group/{group_id}", response_model=List[schemas.Message])
async def read_group_messages(
    group_id: str,
    message_interactor: MessageInteractor = Depends(get_message_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await message_interactor.get_history(
        current_user.id, ConversationRef.group(group_id)
    )
