"""Proposal and vote schemas"""
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional, Dict, Any, List, Union
from enum import Enum

from voxen.models.proposal import ProposalStatus
from voxen.schemas.common import Pagination
from voxen.services.tally import VotingType

class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class CreateProposalRequest(BaseModel):
    title: str
    description: Optional[str] = None
    voting_type: Optional[VotingType] = None  # Falls back to the space's strategy
    options: List[str] = []
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    # Blockchain fields, set by the client after the on-chain create
    blockchain_proposal_id: Optional[str] = None
    blockchain_tx_hash: Optional[str] = None
    contract_address: Optional[str] = None
    use_blockchain: bool = False
    blockchain_verified: bool = False


class ProposalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    space_id: str
    creator_id: str
    title: str
    description: Optional[str] = None
    voting_type: str
    options: List[str]
    start_date: datetime
    end_date: datetime
    status: str
    results: Dict[str, Union[int, float]]
    vote_count: int
    blockchain_proposal_id: Optional[str] = None
    transaction_hash: Optional[str] = None
    contract_address: Optional[str] = None
    use_blockchain: bool = False
    blockchain_verified: bool = False
    content_hash: Optional[str] = None
    is_hash_verified: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None


class CastVoteRequest(BaseModel):
    votes: Any = None  # {"option": i} | [i, ...] | {"i": weight, ...}
    blockchain_tx_hash: Optional[str] = None
    vote_hash: Optional[str] = None


class VoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    proposal_id: str
    user_id: str
    space_id: str
    votes: Any
    vote_power: Union[int, float]
    blockchain_tx_hash: Optional[str] = None
    vote_hash: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class ProposalDetailResponse(ProposalResponse):
    user_vote: Optional[VoteResponse] = None


class CastVoteResponse(BaseModel):
    vote: VoteResponse
    proposal: ProposalResponse


class CheckVoteResponse(BaseModel):
    voted: bool
    vote: Optional[VoteResponse] = None


class ProposalListResponse(BaseModel):
    data: List[ProposalResponse]
    pagination: Pagination


class VoteListResponse(BaseModel):
    data: List[VoteResponse]
    pagination: Pagination


class UpdateStatusRequest(BaseModel):
    status: str


class OptionResult(BaseModel):
    option: str
    votes: Union[int, float]
    percentage: int


class VoterEntry(BaseModel):
    user_id: str
    voted_at: datetime
    vote_power: Union[int, float]


class ProposalAnalytics(BaseModel):
    total_votes: int
    total_vote_power: Union[int, float]
    voting_results: List[OptionResult]
    top_option: Optional[OptionResult] = None
    voter_list: List[VoterEntry]


class ProposalAnalyticsResponse(BaseModel):
    proposal: ProposalResponse
    is_ended: bool
    analytics: ProposalAnalytics


class ContentHashRequest(BaseModel):
    title: str
    description: Optional[str] = None
    options: List[str] = Field(default_factory=list)


class VerifyContentHashRequest(ContentHashRequest):
    expected_hash: str


class ContentHashResponse(BaseModel):
    content_hash: str


class VerifyContentHashResponse(BaseModel):
    valid: bool
    content_hash: str


class ChainVerificationResponse(BaseModel):
    proposal_id: str
    content_hash: Optional[str] = None
    onchain_hash: Optional[str] = None
    is_hash_verified: bool
