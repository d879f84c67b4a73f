"""Activity log service"""
from typing import Any, Dict, List, Optional, Tuple

import structlog
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from voxen.models.activity import Activity, ActivityType

logger = structlog.get_logger()


class ActivityService:
    """Records and lists per-space activity."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        space_id: str,
        user_id: str,
        activity_type: ActivityType,
        description: str,
        proposal_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Activity:
        """
        Record an activity in the current unit of work.

        Args:
            space_id: Space the activity happened in
            user_id: Acting user
            activity_type: Kind of activity
            description: Human-readable summary
            proposal_id: Related proposal, if any
            metadata: Extra JSON data

        Returns:
            The created Activity (flushed, not committed)
        """
        activity = Activity(
            space_id=space_id,
            user_id=user_id,
            activity_type=activity_type.value,
            description=description,
            proposal_id=proposal_id,
            extra=metadata or {},
        )
        self.db.add(activity)
        await self.db.flush()

        logger.debug("Activity recorded", space_id=space_id, activity_type=activity_type.value)
        return activity

    async def list_for_space(self, space_id: str, page: int = 1, limit: int = 20) -> Tuple[List[Activity], int]:
        result = await self.db.execute(
            select(Activity)
            .where(Activity.space_id == space_id)
            .order_by(Activity.created_at.desc(), Activity.id)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        activities = list(result.scalars().all())

        total = await self.db.scalar(
            select(func.count(Activity.id)).where(Activity.space_id == space_id)
        )
        return activities, total or 0
