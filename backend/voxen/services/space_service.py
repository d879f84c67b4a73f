"""Space membership service"""
import re
from typing import Optional, Union

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from voxen.models.space import Space, SpaceMember

logger = structlog.get_logger()

MEMBER_ROLES = ("member", "moderator", "admin", "owner")


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "space"


class SpaceService:
    """Reads and writes spaces and their members."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_space(
        self,
        creator_id: str,
        name: str,
        description: Optional[str] = None,
        visibility: str = "public",
        voting_strategy: str = "one-person-one-vote",
    ) -> Space:
        """Create a space and make its creator the owner."""
        if not name or not name.strip():
            raise ValueError("Space name is required")

        base_slug = slugify(name)
        slug = base_slug
        counter = 1
        while await self._slug_taken(slug):
            slug = f"{base_slug}-{counter}"
            counter += 1

        space = Space(
            name=name.strip(),
            slug=slug,
            description=description,
            visibility=visibility,
            voting_strategy=voting_strategy,
            creator_id=creator_id,
            member_count=1,
            proposal_count=0,
        )
        self.db.add(space)
        await self.db.flush()

        self.db.add(SpaceMember(space_id=space.id, user_id=creator_id, role="owner", voting_power=1))
        await self.db.flush()

        logger.info("Space created", space_id=space.id, slug=slug, creator_id=creator_id)
        return space

    async def _slug_taken(self, slug: str) -> bool:
        result = await self.db.execute(select(Space.id).where(Space.slug == slug))
        return result.scalar_one_or_none() is not None

    async def get_space(self, space_id: str) -> Optional[Space]:
        result = await self.db.execute(select(Space).where(Space.id == space_id))
        return result.scalar_one_or_none()

    async def get_membership(self, space_id: str, user_id: str) -> Optional[SpaceMember]:
        result = await self.db.execute(
            select(SpaceMember).where(
                SpaceMember.space_id == space_id,
                SpaceMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_member_role(self, space_id: str, user_id: str) -> Optional[str]:
        member = await self.get_membership(space_id, user_id)
        return member.role if member else None

    async def add_member(
        self,
        space_id: str,
        user_id: str,
        role: str = "member",
        voting_power: Union[int, float] = 1,
    ) -> SpaceMember:
        """Add a member; returns the existing membership if already joined."""
        if role not in MEMBER_ROLES:
            raise ValueError(f"Invalid role: {role}")

        existing = await self.get_membership(space_id, user_id)
        if existing:
            return existing

        member = SpaceMember(space_id=space_id, user_id=user_id, role=role, voting_power=voting_power)
        self.db.add(member)
        await self.db.execute(
            update(Space).where(Space.id == space_id).values(member_count=Space.member_count + 1)
        )
        await self.db.flush()

        logger.info("Member joined space", space_id=space_id, user_id=user_id, role=role)
        return member

    async def increment_proposal_count(self, space_id: str) -> None:
        await self.db.execute(
            update(Space).where(Space.id == space_id).values(proposal_count=Space.proposal_count + 1)
        )
