"""Proposal store: proposals, vote records and their tallies."""
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import structlog
from sqlalchemy import select, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from voxen.models.proposal import Proposal, ProposalStatus, ProposalVote
from voxen.services.chain_client import ChainClient
from voxen.services.content_hash import generate_content_hash, verify_content_hash
from voxen.services.tally import VotingType, compute_results, empty_results, normalize_total

logger = structlog.get_logger()

PROPOSAL_STATUSES = tuple(s.value for s in ProposalStatus)
SORT_ORDERS = ("ASC", "DESC")


class ProposalValidationError(ValueError):
    """Request data rejected before anything is written."""


class ProposalNotFoundError(LookupError):
    """Proposal id does not resolve."""


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _upsert_insert(dialect_name: str):
    """Dialect insert construct that supports ON CONFLICT DO UPDATE."""
    if dialect_name == "postgresql":
        return postgresql.insert
    if dialect_name == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Vote upsert is not supported on {dialect_name}")


class ProposalService:
    """Creates proposals, records votes and keeps results in sync with them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_proposal(
        self,
        space_id: str,
        creator_id: str,
        title: Optional[str],
        options: Optional[Sequence[str]],
        end_date: Optional[datetime],
        description: Optional[str] = None,
        voting_type: Union[VotingType, str] = VotingType.SINGLE,
        start_date: Optional[datetime] = None,
        blockchain_proposal_id: Optional[str] = None,
        transaction_hash: Optional[str] = None,
        contract_address: Optional[str] = None,
        use_blockchain: bool = False,
        blockchain_verified: bool = False,
    ) -> Proposal:
        """
        Validate and store a new proposal with zeroed results.

        When ``use_blockchain`` is set the content hash is computed over the
        title, description and options exactly as received, so it
        matches the hash the client committed on-chain.

        Raises:
            ProposalValidationError: missing title or end date, fewer than two
                options, unknown voting type, or end date not after start date
        """
        if not title or not title.strip():
            raise ProposalValidationError("Proposal title is required")
        if end_date is None:
            raise ProposalValidationError("End date is required")
        options = list(options or [])
        if len(options) < 2:
            raise ProposalValidationError("At least 2 voting options are required")
        try:
            voting_type = VotingType(voting_type)
        except ValueError:
            raise ProposalValidationError(f"Invalid voting type: {voting_type}")

        start = _as_naive_utc(start_date) if start_date else datetime.utcnow()
        end = _as_naive_utc(end_date)
        if end <= start:
            raise ProposalValidationError("End date must be after start date")

        content_hash = None
        if use_blockchain:
            content_hash = generate_content_hash(title, description, options)

        proposal = Proposal(
            space_id=space_id,
            creator_id=creator_id,
            title=title,
            description=description,
            voting_type=voting_type.value,
            options=options,
            start_date=start,
            end_date=end,
            status=ProposalStatus.ACTIVE.value,
            results=empty_results(len(options)),
            vote_count=0,
            blockchain_proposal_id=blockchain_proposal_id,
            transaction_hash=transaction_hash,
            contract_address=contract_address,
            use_blockchain=use_blockchain,
            blockchain_verified=blockchain_verified,
            content_hash=content_hash,
            is_hash_verified=bool(blockchain_verified),
        )
        self.db.add(proposal)
        await self.db.flush()

        logger.info(
            "Proposal created",
            proposal_id=proposal.id,
            space_id=space_id,
            voting_type=voting_type.value,
            options=len(options),
        )
        return proposal

    async def get_proposal(self, proposal_id: str, space_id: Optional[str] = None) -> Optional[Proposal]:
        query = select(Proposal).where(Proposal.id == proposal_id)
        if space_id is not None:
            query = query.where(Proposal.space_id == space_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def require_proposal(self, proposal_id: str, space_id: Optional[str] = None) -> Proposal:
        proposal = await self.get_proposal(proposal_id, space_id)
        if proposal is None:
            raise ProposalNotFoundError("Proposal not found")
        return proposal

    async def list_space_proposals(
        self,
        space_id: str,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        sort_order: str = "DESC",
    ) -> Tuple[List[Proposal], int]:
        """List a space's proposals by creation time, optionally by status."""
        sort_order = (sort_order or "DESC").upper()
        if sort_order not in SORT_ORDERS:
            raise ProposalValidationError(f"Invalid sort order: {sort_order}")
        if status is not None and status not in PROPOSAL_STATUSES:
            raise ProposalValidationError(f"Invalid status: {status}")
        _check_page(page, limit)

        conditions = [Proposal.space_id == space_id]
        if status is not None:
            conditions.append(Proposal.status == status)

        order = Proposal.created_at.asc() if sort_order == "ASC" else Proposal.created_at.desc()
        result = await self.db.execute(
            select(Proposal)
            .where(*conditions)
            .order_by(order, Proposal.id)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        proposals = list(result.scalars().all())

        total = await self.db.scalar(select(func.count(Proposal.id)).where(*conditions))
        return proposals, total or 0

    async def cast_vote(
        self,
        proposal_id: str,
        user_id: str,
        space_id: str,
        votes: Any,
        vote_power: Union[int, float] = 1,
        blockchain_tx_hash: Optional[str] = None,
        vote_hash: Optional[str] = None,
    ) -> ProposalVote:
        """
        Record a user's vote, replacing any earlier vote by the same user.

        A single INSERT ... ON CONFLICT (proposal_id, user_id) DO UPDATE keeps
        one row per voter; the row id and created_at survive re-casts. The
        proposal's results are recomputed afterwards.

        Note: ``vote_power`` is taken as given. HTTP callers pass the voter's
        membership voting power.
        """
        if not isinstance(votes, (dict, list)):
            raise ProposalValidationError("Votes must be a JSON object or list")
        await self.require_proposal(proposal_id)

        now = datetime.utcnow()
        insert = _upsert_insert(self.db.get_bind().dialect.name)
        stmt = insert(ProposalVote).values(
            id=str(uuid.uuid4()),
            proposal_id=proposal_id,
            user_id=user_id,
            space_id=space_id,
            votes=votes,
            vote_power=vote_power,
            blockchain_tx_hash=blockchain_tx_hash,
            vote_hash=vote_hash,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["proposal_id", "user_id"],
            set_={
                "votes": stmt.excluded.votes,
                "vote_power": stmt.excluded.vote_power,
                "blockchain_tx_hash": stmt.excluded.blockchain_tx_hash,
                "vote_hash": stmt.excluded.vote_hash,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.db.execute(stmt)

        vote = await self.get_user_vote(proposal_id, user_id)
        logger.info("Vote cast", proposal_id=proposal_id, user_id=user_id, vote_power=vote_power)

        await self.recompute_results(proposal_id)
        return vote

    async def get_user_vote(self, proposal_id: str, user_id: str) -> Optional[ProposalVote]:
        result = await self.db.execute(
            select(ProposalVote)
            .where(
                ProposalVote.proposal_id == proposal_id,
                ProposalVote.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_proposal_votes(
        self, proposal_id: str, page: int = 1, limit: int = 50
    ) -> Tuple[List[ProposalVote], int]:
        """Page through a proposal's vote records, newest first."""
        _check_page(page, limit)
        await self.require_proposal(proposal_id)

        result = await self.db.execute(
            select(ProposalVote)
            .where(ProposalVote.proposal_id == proposal_id)
            .order_by(ProposalVote.created_at.desc(), ProposalVote.id)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        votes = list(result.scalars().all())

        total = await self.db.scalar(
            select(func.count(ProposalVote.id)).where(ProposalVote.proposal_id == proposal_id)
        )
        return votes, total or 0

    async def _all_votes(self, proposal_id: str) -> List[ProposalVote]:
        result = await self.db.execute(
            select(ProposalVote)
            .where(ProposalVote.proposal_id == proposal_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def recompute_results(self, proposal_id: str) -> Proposal:
        """Rebuild results and vote_count from every stored vote record."""
        proposal = await self.require_proposal(proposal_id)
        votes = await self._all_votes(proposal_id)

        proposal.results = compute_results(proposal.voting_type, proposal.option_count, votes)
        proposal.vote_count = len(votes)
        proposal.updated_at = datetime.utcnow()
        await self.db.flush()

        logger.debug("Results recomputed", proposal_id=proposal_id, vote_count=proposal.vote_count)
        return proposal

    async def update_status(self, proposal_id: str, status: str) -> Proposal:
        """Set a proposal's status. Any allowed status may follow any other."""
        if status not in PROPOSAL_STATUSES:
            raise ProposalValidationError("Invalid status")

        proposal = await self.require_proposal(proposal_id)
        proposal.status = status
        proposal.updated_at = datetime.utcnow()
        await self.db.flush()

        logger.info("Proposal status updated", proposal_id=proposal_id, status=status)
        return proposal

    async def close_proposal(self, proposal_id: str) -> Proposal:
        """Close voting and compute final results."""
        await self.update_status(proposal_id, ProposalStatus.CLOSED.value)
        return await self.recompute_results(proposal_id)

    async def count_active_proposals(self, space_id: str) -> int:
        total = await self.db.scalar(
            select(func.count(Proposal.id)).where(
                Proposal.space_id == space_id,
                Proposal.status == ProposalStatus.ACTIVE.value,
            )
        )
        return total or 0

    async def get_analytics(self, proposal: Proposal) -> Dict[str, Any]:
        """Per-option totals and percentages of total vote power."""
        votes = await self._all_votes(proposal.id)
        votes.sort(key=lambda v: (v.created_at, v.id), reverse=True)

        total_vote_power = normalize_total(math.fsum(v.vote_power or 1 for v in votes))
        results = proposal.results or {}

        voting_results = []
        for index, option in enumerate(proposal.options or []):
            value = results.get(str(index), 0)
            percentage = math.floor(value / total_vote_power * 100 + 0.5) if total_vote_power > 0 else 0
            voting_results.append({"option": option, "votes": value, "percentage": percentage})

        top_option = None
        for entry in voting_results:
            if top_option is None or entry["votes"] > top_option["votes"]:
                top_option = entry

        return {
            "total_votes": len(votes),
            "total_vote_power": total_vote_power,
            "voting_results": voting_results,
            "top_option": top_option,
            "voter_list": [
                {"user_id": v.user_id, "voted_at": v.created_at, "vote_power": v.vote_power}
                for v in votes
            ],
        }

    async def verify_onchain_hash(self, proposal_id: str, chain_client: ChainClient) -> Tuple[Proposal, str]:
        """Compare the stored content with the hash committed on-chain."""
        proposal = await self.require_proposal(proposal_id)
        if not proposal.blockchain_proposal_id:
            raise ProposalValidationError("Proposal is not linked to an on-chain proposal")
        try:
            onchain_id = int(proposal.blockchain_proposal_id)
        except ValueError:
            raise ProposalValidationError("Invalid on-chain proposal id")

        onchain_hash = await chain_client.get_content_hash(onchain_id, proposal.contract_address)
        matched = verify_content_hash(proposal.title, proposal.description, proposal.options, onchain_hash)

        if proposal.content_hash is None:
            proposal.content_hash = generate_content_hash(proposal.title, proposal.description, proposal.options)
        proposal.is_hash_verified = matched
        await self.db.flush()

        logger.info(
            "On-chain content hash checked",
            proposal_id=proposal_id,
            onchain_id=onchain_id,
            matched=matched,
        )
        return proposal, onchain_hash


def _check_page(page: int, limit: int) -> None:
    if page < 1 or limit < 1:
        raise ProposalValidationError("page and limit must be positive")
