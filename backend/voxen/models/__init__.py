"""Database models"""
from voxen.models.database import Base, get_db
from voxen.models.space import Space, SpaceMember
from voxen.models.proposal import Proposal, ProposalVote
from voxen.models.activity import Activity, ActivityType

__all__ = [
    "Base",
    "get_db",
    "Space",
    "SpaceMember",
    "Proposal",
    "ProposalVote",
    "Activity",
    "ActivityType",
]
