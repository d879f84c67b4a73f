"""Space activity log"""
import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, ForeignKey, Index, JSON, String, Text

from voxen.models.database import Base


class ActivityType(str, enum.Enum):
    """Activity types recorded per space"""
    PROPOSAL_CREATED = "proposal_created"
    PROPOSAL_VOTED = "proposal_voted"
    PROPOSAL_CLOSED = "proposal_closed"
    MEMBER_JOINED = "member_joined"
    MEMBER_LEFT = "member_left"


class Activity(Base):
    """Something a user did in a space"""
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    space_id = Column(String(36), ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    activity_type = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    proposal_id = Column(String(36), ForeignKey("proposals.id", ondelete="SET NULL"), nullable=True, index=True)
    extra = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_activities_space_created", "space_id", "created_at"),
    )

    def __repr__(self):
        return f"<Activity {self.activity_type} in {self.space_id[:8]}>"
