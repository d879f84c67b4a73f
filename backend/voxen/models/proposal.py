"""Proposal and vote record models"""
import enum
import uuid
from datetime import datetime
from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship

from voxen.models.database import Base
from voxen.models.types import BallotPayload, OptionList, ResultsMap


class ProposalStatus(str, enum.Enum):
    """Allowed proposal statuses"""
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class Proposal(Base):
    """Vote-able item owned by a space"""
    __tablename__ = "proposals"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    space_id = Column(String(36), ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True)
    creator_id = Column(String(36), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    voting_type = Column(String(20), nullable=False, default="single")  # single, multiple, weighted
    options = Column(OptionList, nullable=False)

    start_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    end_date = Column(DateTime, nullable=False)

    status = Column(String(20), nullable=False, default="active", index=True)  # draft, active, closed, cancelled
    results = Column(ResultsMap, nullable=False)
    vote_count = Column(Integer, nullable=False, default=0)

    # Blockchain linkage
    blockchain_proposal_id = Column(String(78), nullable=True)  # uint256 as decimal string
    transaction_hash = Column(String(66), nullable=True)
    contract_address = Column(String(42), nullable=True)
    use_blockchain = Column(Boolean, nullable=False, default=False)
    blockchain_verified = Column(Boolean, nullable=False, default=False)
    content_hash = Column(String(66), nullable=True)
    is_hash_verified = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    space = relationship("Space", back_populates="proposals")
    votes = relationship("ProposalVote", back_populates="proposal", lazy="dynamic")

    @property
    def option_count(self) -> int:
        return len(self.options or [])

    def __repr__(self):
        return f"<Proposal {self.id[:8]} ({self.status})>"


class ProposalVote(Base):
    """A user's vote on a proposal; at most one per (proposal, user)"""
    __tablename__ = "proposal_votes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    proposal_id = Column(String(36), ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    space_id = Column(String(36), ForeignKey("spaces.id", ondelete="CASCADE"), nullable=False, index=True)
    votes = Column(BallotPayload, nullable=False)  # shape depends on proposal voting_type
    vote_power = Column(Float, nullable=False, default=1)
    blockchain_tx_hash = Column(String(66), nullable=True)
    vote_hash = Column(String(66), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("proposal_id", "user_id", name="uq_proposal_votes_proposal_user"),
    )

    # Relationships
    proposal = relationship("Proposal", back_populates="votes")

    def __repr__(self):
        return f"<ProposalVote {self.user_id[:8]}... on {self.proposal_id[:8]}>"
