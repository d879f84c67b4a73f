"""Space and membership schemas"""
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, Union, Any, Dict, List
from enum import Enum

from voxen.schemas.common import Pagination


class SpaceVisibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class MemberRole(str, Enum):
    MEMBER = "member"
    MODERATOR = "moderator"
    ADMIN = "admin"
    OWNER = "owner"


class CreateSpaceRequest(BaseModel):
    name: str
    description: Optional[str] = None
    visibility: SpaceVisibility = SpaceVisibility.PUBLIC
    voting_strategy: str = "one-person-one-vote"


class SpaceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    description: Optional[str] = None
    visibility: str
    voting_strategy: str
    member_count: int
    proposal_count: int
    creator_id: str
    created_at: datetime


class MemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    space_id: str
    user_id: str
    role: str
    voting_power: Union[int, float]
    joined_at: datetime


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    space_id: str
    user_id: str
    activity_type: str
    description: str
    proposal_id: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict, serialization_alias="metadata")
    created_at: datetime


class ActivityListResponse(BaseModel):
    data: List[ActivityResponse]
    pagination: Pagination
