# chat_relay/api/groups.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from chat_relay.api.dependencies import get_current_user, get_group_interactor
from chat_relay.infrastructure import schemas
from chat_relay.interactors.group_interactor import GroupInteractor

router = APIRouter()


@router.get("/", response_model=List[schemas.Group])
async def read_groups(
    group_interactor: GroupInteractor = Depends(get_group_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await group_interactor.get_groups()


@router.post("/", response_model=schemas.Group)
async def create_group(
    group: schemas.GroupCreate,
    group_interactor: GroupInteractor = Depends(get_group_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    return await group_interactor.create_group(group, current_user.id)


@router.post("/{group_id}/members", response_model=schemas.GroupMember)
async def add_group_member(
    group_id: str,
    member: schemas.GroupMemberCreate,
    group_interactor: GroupInteractor = Depends(get_group_interactor),
    current_user: schemas.User = Depends(get_current_user),
):
    membership = await group_interactor.add_member(group_id, member.user_id)
    if membership is None:
        raise HTTPException(status_code=404, detail="Group not found")
    return membership
