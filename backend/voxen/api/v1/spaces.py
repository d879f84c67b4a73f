"""Spaces API endpoints"""
from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from voxen.api.deps import get_current_user_id
from voxen.models.activity import ActivityType
from voxen.models.database import get_db
from voxen.schemas.common import Pagination
from voxen.schemas.space import (
    ActivityListResponse,
    ActivityResponse,
    CreateSpaceRequest,
    MemberResponse,
    SpaceResponse,
)
from voxen.services.activity_service import ActivityService
from voxen.services.space_service import SpaceService

router = APIRouter()


@router.post("", response_model=SpaceResponse, status_code=201)
async def create_space(
    request: CreateSpaceRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a space; the caller becomes its owner"""
    try:
        space = await SpaceService(db).create_space(
            creator_id=user_id,
            name=request.name,
            description=request.description,
            visibility=request.visibility.value,
            voting_strategy=request.voting_strategy,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SpaceResponse.model_validate(space)


@router.get("/{space_id}", response_model=SpaceResponse)
async def get_space(space_id: str = Path(...), db: AsyncSession = Depends(get_db)):
    """Get a space"""
    space = await SpaceService(db).get_space(space_id)
    if not space:
        raise HTTPException(status_code=404, detail="Space not found")
    return SpaceResponse.model_validate(space)


@router.post("/{space_id}/join", response_model=MemberResponse)
async def join_space(
    space_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Join a space as a regular member"""
    spaces = SpaceService(db)
    space = await spaces.get_space(space_id)
    if not space:
        raise HTTPException(status_code=404, detail="Space not found")

    existing = await spaces.get_membership(space_id, user_id)
    member = await spaces.add_member(space_id, user_id)
    if existing is None:
        await ActivityService(db).log(
            space_id,
            user_id,
            ActivityType.MEMBER_JOINED,
            f'Joined space "{space.name}"',
        )
    return MemberResponse.model_validate(member)


@router.get("/{space_id}/activity", response_model=ActivityListResponse)
async def list_activity(
    space_id: str = Path(...),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Recent activity in a space"""
    if not await SpaceService(db).get_space(space_id):
        raise HTTPException(status_code=404, detail="Space not found")

    activities, total = await ActivityService(db).list_for_space(space_id, page, limit)
    return ActivityListResponse(
        data=[ActivityResponse.model_validate(a) for a in activities],
        pagination=Pagination.build(page, limit, total),
    )
