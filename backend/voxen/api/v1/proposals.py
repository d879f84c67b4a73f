"""Proposals API endpoints"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from voxen.api.deps import get_chain, get_current_user_id, get_optional_user_id
from voxen.models.activity import ActivityType
from voxen.models.database import get_db
from voxen.models.proposal import Proposal
from voxen.models.space import Space
from voxen.schemas.common import Pagination
from voxen.schemas.proposal import (
    CastVoteRequest,
    CastVoteResponse,
    ChainVerificationResponse,
    CheckVoteResponse,
    CreateProposalRequest,
    ProposalAnalyticsResponse,
    ProposalDetailResponse,
    ProposalListResponse,
    ProposalResponse,
    ProposalStatus,
    SortOrder,
    UpdateStatusRequest,
    VoteListResponse,
    VoteResponse,
)
from voxen.services.activity_service import ActivityService
from voxen.services.chain_client import ChainClient, ChainReadError
from voxen.services.proposal_service import ProposalService
from voxen.services.space_service import SpaceService

router = APIRouter()
logger = structlog.get_logger()


async def _get_space_or_404(db: AsyncSession, space_id: str) -> Space:
    space = await SpaceService(db).get_space(space_id)
    if not space:
        raise HTTPException(status_code=404, detail="Space not found")
    return space


async def _get_proposal_or_404(db: AsyncSession, space_id: str, proposal_id: str) -> Proposal:
    proposal = await ProposalService(db).get_proposal(proposal_id, space_id)
    if not proposal:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal


async def _require_owner(db: AsyncSession, space_id: str, user_id: str, action: str) -> None:
    role = await SpaceService(db).get_member_role(space_id, user_id)
    if role != "owner":
        raise HTTPException(status_code=403, detail=f"Only space owners can {action}")


@router.post("", response_model=ProposalResponse, status_code=201)
async def create_proposal(
    request: CreateProposalRequest,
    space_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a proposal (space owners only)"""
    space = await _get_space_or_404(db, space_id)
    await _require_owner(db, space_id, user_id, "create proposals")

    # Spaces created with a non-tally strategy fall back to single choice
    voting_type = request.voting_type or (
        space.voting_strategy if space.voting_strategy in ("single", "multiple", "weighted") else "single"
    )

    proposal = await ProposalService(db).create_proposal(
        space_id=space_id,
        creator_id=user_id,
        title=request.title,
        description=request.description,
        voting_type=voting_type,
        options=request.options,
        start_date=request.start_date,
        end_date=request.end_date,
        blockchain_proposal_id=request.blockchain_proposal_id,
        transaction_hash=request.blockchain_tx_hash,
        contract_address=request.contract_address,
        use_blockchain=request.use_blockchain,
        blockchain_verified=request.blockchain_verified,
    )

    await SpaceService(db).increment_proposal_count(space_id)
    await ActivityService(db).log(
        space_id,
        user_id,
        ActivityType.PROPOSAL_CREATED,
        f'Created proposal: "{proposal.title}"',
        proposal_id=proposal.id,
        metadata={"voting_type": proposal.voting_type},
    )
    return ProposalResponse.model_validate(proposal)


@router.get("", response_model=ProposalListResponse)
async def list_proposals(
    space_id: str = Path(...),
    status: Optional[ProposalStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_order: SortOrder = SortOrder.DESC,
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    """List a space's proposals"""
    space = await _get_space_or_404(db, space_id)

    if space.visibility == "private":
        role = await SpaceService(db).get_member_role(space_id, user_id) if user_id else None
        if not role:
            raise HTTPException(status_code=403, detail="You do not have access to this private space")

    proposals, total = await ProposalService(db).list_space_proposals(
        space_id,
        status=status.value if status else None,
        page=page,
        limit=limit,
        sort_order=sort_order.value,
    )
    return ProposalListResponse(
        data=[ProposalResponse.model_validate(p) for p in proposals],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{proposal_id}", response_model=ProposalDetailResponse)
async def get_proposal(
    space_id: str = Path(...),
    proposal_id: str = Path(...),
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Get a proposal, with the caller's vote when authenticated"""
    proposal = await _get_proposal_or_404(db, space_id, proposal_id)

    user_vote = None
    if user_id:
        vote = await ProposalService(db).get_user_vote(proposal_id, user_id)
        user_vote = VoteResponse.model_validate(vote) if vote else None

    response = ProposalDetailResponse.model_validate(proposal)
    response.user_vote = user_vote
    return response


@router.post("/{proposal_id}/vote", response_model=CastVoteResponse)
async def cast_vote(
    request: CastVoteRequest,
    space_id: str = Path(...),
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Cast or change the caller's vote"""
    if request.votes is None:
        raise HTTPException(status_code=400, detail="Votes data is required")

    proposal = await _get_proposal_or_404(db, space_id, proposal_id)

    if proposal.status != ProposalStatus.ACTIVE.value:
        raise HTTPException(
            status_code=400,
            detail=f"Proposal is {proposal.status} and not accepting votes",
        )
    if datetime.utcnow() > proposal.end_date:
        raise HTTPException(status_code=400, detail="Voting period has ended")

    membership = await SpaceService(db).get_membership(space_id, user_id)
    if not membership:
        raise HTTPException(status_code=403, detail="You must be a member of this space to vote")

    proposals = ProposalService(db)
    vote = await proposals.cast_vote(
        proposal_id,
        user_id,
        space_id,
        request.votes,
        vote_power=membership.voting_power if membership.voting_power is not None else 1,
        blockchain_tx_hash=request.blockchain_tx_hash,
        vote_hash=request.vote_hash,
    )
    updated = await proposals.require_proposal(proposal_id)

    await ActivityService(db).log(
        space_id,
        user_id,
        ActivityType.PROPOSAL_VOTED,
        f'Voted on proposal: "{proposal.title}"',
        proposal_id=proposal_id,
        metadata={"voting_type": proposal.voting_type},
    )
    return CastVoteResponse(
        vote=VoteResponse.model_validate(vote),
        proposal=ProposalResponse.model_validate(updated),
    )


@router.get("/{proposal_id}/votes", response_model=VoteListResponse)
async def list_votes(
    space_id: str = Path(...),
    proposal_id: str = Path(...),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Page through the votes on a proposal"""
    await _get_proposal_or_404(db, space_id, proposal_id)

    votes, total = await ProposalService(db).get_proposal_votes(proposal_id, page, limit)
    return VoteListResponse(
        data=[VoteResponse.model_validate(v) for v in votes],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/{proposal_id}/check-vote", response_model=CheckVoteResponse)
async def check_vote(
    space_id: str = Path(...),
    proposal_id: str = Path(...),
    user_id: Optional[str] = Depends(get_optional_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Whether the caller has voted on a proposal"""
    if not user_id:
        return CheckVoteResponse(voted=False, vote=None)

    await _get_proposal_or_404(db, space_id, proposal_id)
    vote = await ProposalService(db).get_user_vote(proposal_id, user_id)
    return CheckVoteResponse(
        voted=vote is not None,
        vote=VoteResponse.model_validate(vote) if vote else None,
    )


@router.get("/{proposal_id}/analytics", response_model=ProposalAnalyticsResponse)
async def get_analytics(
    space_id: str = Path(...),
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Detailed results for a proposal (space owners only)"""
    proposal = await _get_proposal_or_404(db, space_id, proposal_id)
    await _require_owner(db, space_id, user_id, "view analytics")

    analytics = await ProposalService(db).get_analytics(proposal)
    return ProposalAnalyticsResponse(
        proposal=ProposalResponse.model_validate(proposal),
        is_ended=proposal.end_date <= datetime.utcnow(),
        analytics=analytics,
    )


@router.post("/{proposal_id}/close", response_model=ProposalResponse)
async def close_proposal(
    space_id: str = Path(...),
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Close voting and finalize results (space owners only)"""
    proposal = await _get_proposal_or_404(db, space_id, proposal_id)
    await _require_owner(db, space_id, user_id, "close proposals")

    finalized = await ProposalService(db).close_proposal(proposal_id)

    await ActivityService(db).log(
        space_id,
        user_id,
        ActivityType.PROPOSAL_CLOSED,
        f'Closed proposal: "{proposal.title}"',
        proposal_id=proposal_id,
    )
    return ProposalResponse.model_validate(finalized)


@router.patch("/{proposal_id}/status", response_model=ProposalResponse)
async def update_status(
    request: UpdateStatusRequest,
    space_id: str = Path(...),
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Set a proposal's status (space owners only)"""
    await _get_proposal_or_404(db, space_id, proposal_id)
    await _require_owner(db, space_id, user_id, "change proposal status")

    updated = await ProposalService(db).update_status(proposal_id, request.status)
    return ProposalResponse.model_validate(updated)


@router.post("/{proposal_id}/recompute", response_model=ProposalResponse)
async def recompute_results(
    space_id: str = Path(...),
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Rebuild results from all stored votes (space owners only)"""
    await _get_proposal_or_404(db, space_id, proposal_id)
    await _require_owner(db, space_id, user_id, "recompute results")

    updated = await ProposalService(db).recompute_results(proposal_id)
    return ProposalResponse.model_validate(updated)


@router.post("/{proposal_id}/verify-chain", response_model=ChainVerificationResponse)
async def verify_chain(
    space_id: str = Path(...),
    proposal_id: str = Path(...),
    user_id: str = Depends(get_current_user_id),
    chain: ChainClient = Depends(get_chain),
    db: AsyncSession = Depends(get_db),
):
    """Check the stored content against the hash committed on-chain (space owners only)"""
    await _get_proposal_or_404(db, space_id, proposal_id)
    await _require_owner(db, space_id, user_id, "verify proposals")

    try:
        proposal, onchain_hash = await ProposalService(db).verify_onchain_hash(proposal_id, chain)
    except ChainReadError as e:
        logger.error("Failed to read on-chain proposal", proposal_id=proposal_id, error=str(e))
        raise HTTPException(status_code=502, detail="Failed to read proposal from chain")

    return ChainVerificationResponse(
        proposal_id=proposal.id,
        content_hash=proposal.content_hash,
        onchain_hash=onchain_hash,
        is_hash_verified=proposal.is_hash_verified,
    )
