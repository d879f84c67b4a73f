"""Space and membership models"""
import uuid
from datetime import datetime
from sqlalchemy import Column, Integer, Float, String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from voxen.models.database import Base


class Space(Base):
    """Community that owns proposals"""
    __tablename__ = "spaces"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    slug = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    visibility = Column(String(20), nullable=False, default="public")  # public, private
    voting_strategy = Column(String(50), nullable=False, default="one-person-one-vote")
    member_count = Column(Integer, default=0)
    proposal_count = Column(Integer, default=0)
    creator_id = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    members = relationship("SpaceMember", back_populates="space", lazy="dynamic")
    proposals = relationship("Proposal", back_populates="space", lazy="dynamic")

    def __repr__(self):
        return f"<Space {self.slug}>"


class SpaceMember(Base):
    """Membership of a user in a space, with role and voting power"""
    __tablename__ = "space_members"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    space_id = Column(String(36), ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="member")  # member, moderator, admin, owner
    voting_power = Column(Float, nullable=False, default=1)
    joined_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("space_id", "user_id", name="uq_space_members_space_user"),
    )

    # Relationships
    space = relationship("Space", back_populates="members")

    def __repr__(self):
        return f"<SpaceMember {self.user_id[:8]}... ({self.role})>"
