"""Integration tests for the proposal store and vote recording.

These run against an in-memory SQLite database and exercise the real
ON CONFLICT upsert and tally recomputation.
"""
import uuid
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from voxen.models.proposal import Proposal, ProposalVote
from voxen.models.space import Space
from voxen.services.content_hash import generate_content_hash
from voxen.services.proposal_service import (
    ProposalNotFoundError,
    ProposalService,
    ProposalValidationError,
)


def _user() -> str:
    return str(uuid.uuid4())


def _end_date() -> datetime:
    return datetime.utcnow() + timedelta(days=3)


class TestCreateProposal:
    """Tests for proposal creation and validation"""

    @pytest.mark.asyncio
    async def test_results_are_zero_seeded(self, db_session: AsyncSession, space: Space, owner_id: str):
        proposal = await ProposalService(db_session).create_proposal(
            space.id, owner_id, title="Pick one", options=["A", "B", "C", "D"], end_date=_end_date()
        )
        assert proposal.results == {"0": 0, "1": 0, "2": 0, "3": 0}
        assert proposal.vote_count == 0
        assert proposal.status == "active"

    @pytest.mark.asyncio
    async def test_content_is_stored_as_received(self, db_session: AsyncSession, space: Space, owner_id: str):
        proposal = await ProposalService(db_session).create_proposal(
            space.id, owner_id, title="  Pick one  ", description="Details\n", options=["A", "B"], end_date=_end_date()
        )
        assert proposal.title == "  Pick one  "
        assert proposal.description == "Details\n"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"title": "   "}, "title"),
            ({"title": None}, "title"),
            ({"end_date": None}, "End date"),
            ({"options": ["Only one"]}, "2 voting options"),
            ({"options": []}, "2 voting options"),
            ({"voting_type": "ranked"}, "voting type"),
        ],
    )
    async def test_validation_errors(self, db_session: AsyncSession, space: Space, owner_id: str, overrides, message):
        data = {"title": "Pick one", "options": ["A", "B"], "end_date": _end_date()}
        data.update(overrides)

        with pytest.raises(ProposalValidationError, match=message):
            await ProposalService(db_session).create_proposal(space.id, owner_id, **data)

        count = await db_session.scalar(select(func.count(Proposal.id)))
        assert count == 0

    @pytest.mark.asyncio
    async def test_end_date_must_follow_start_date(self, db_session: AsyncSession, space: Space, owner_id: str):
        # Chosen invariant: an end date at or before the start is rejected
        start = datetime.utcnow() + timedelta(days=2)
        with pytest.raises(ProposalValidationError, match="after start date"):
            await ProposalService(db_session).create_proposal(
                space.id, owner_id, title="Backwards", options=["A", "B"],
                start_date=start, end_date=start - timedelta(hours=1),
            )

    @pytest.mark.asyncio
    async def test_blockchain_proposal_gets_content_hash(self, db_session: AsyncSession, space: Space, owner_id: str):
        proposal = await ProposalService(db_session).create_proposal(
            space.id, owner_id, title="On chain", description="Anchored", options=["Yes", "No"],
            end_date=_end_date(), use_blockchain=True, blockchain_proposal_id="7",
        )
        assert proposal.content_hash == generate_content_hash("On chain", "Anchored", ["Yes", "No"])
        assert proposal.is_hash_verified is False

    @pytest.mark.asyncio
    async def test_off_chain_proposal_has_no_content_hash(self, db_session: AsyncSession, space: Space, owner_id: str):
        proposal = await ProposalService(db_session).create_proposal(
            space.id, owner_id, title="Off chain", options=["Yes", "No"], end_date=_end_date()
        )
        assert proposal.content_hash is None


class TestCastVote:
    """Tests for vote recording and idempotence"""

    @pytest_asyncio.fixture
    async def proposal(self, db_session: AsyncSession, space: Space, owner_id: str) -> Proposal:
        proposal = await ProposalService(db_session).create_proposal(
            space.id, owner_id, title="Pick one", options=["A", "B", "C"], end_date=_end_date()
        )
        await db_session.commit()
        return proposal

    @pytest.mark.asyncio
    async def test_single_choice_tally(self, db_session: AsyncSession, space: Space, proposal: Proposal):
        service = ProposalService(db_session)
        await service.cast_vote(proposal.id, _user(), space.id, {"option": 0}, vote_power=1)
        await service.cast_vote(proposal.id, _user(), space.id, {"option": 0}, vote_power=2)
        await service.cast_vote(proposal.id, _user(), space.id, {"option": 2}, vote_power=1)

        updated = await service.require_proposal(proposal.id)
        assert updated.results == {"0": 3, "1": 0, "2": 1}
        assert updated.vote_count == 3

    @pytest.mark.asyncio
    async def test_recast_updates_in_place(self, db_session: AsyncSession, space: Space, proposal: Proposal):
        service = ProposalService(db_session)
        voter = _user()

        first = await service.cast_vote(proposal.id, voter, space.id, {"option": 0}, vote_hash="0xaa")
        first_id, first_created = first.id, first.created_at

        second = await service.cast_vote(proposal.id, voter, space.id, {"option": 1}, vote_power=3)

        assert second.id == first_id
        assert second.created_at == first_created
        assert second.votes == {"option": 1}
        assert second.vote_power == 3
        assert second.vote_hash is None

        count = await db_session.scalar(
            select(func.count(ProposalVote.id)).where(ProposalVote.proposal_id == proposal.id)
        )
        assert count == 1

        updated = await service.require_proposal(proposal.id)
        assert updated.vote_count == 1
        assert updated.results == {"0": 0, "1": 3, "2": 0}

    @pytest.mark.asyncio
    async def test_payload_round_trips(self, db_session: AsyncSession, space: Space, proposal: Proposal):
        service = ProposalService(db_session)
        voter = _user()
        await service.cast_vote(proposal.id, voter, space.id, {"option": 2})
        await db_session.commit()
        db_session.expunge_all()

        stored = await service.get_user_vote(proposal.id, voter)
        assert stored.votes == {"option": 2}
        assert isinstance(stored.votes["option"], int)

    @pytest.mark.asyncio
    async def test_malformed_vote_does_not_block_tally(self, db_session: AsyncSession, space: Space, proposal: Proposal):
        service = ProposalService(db_session)
        await service.cast_vote(proposal.id, _user(), space.id, {"choice": 0}, vote_power=5)
        await service.cast_vote(proposal.id, _user(), space.id, {"option": 1}, vote_power=1)

        updated = await service.recompute_results(proposal.id)
        assert updated.results == {"0": 0, "1": 1, "2": 0}
        assert updated.vote_count == 2

    @pytest.mark.asyncio
    async def test_non_json_payload_is_rejected(self, db_session: AsyncSession, space: Space, proposal: Proposal):
        with pytest.raises(ProposalValidationError):
            await ProposalService(db_session).cast_vote(proposal.id, _user(), space.id, "not a ballot")

        count = await db_session.scalar(select(func.count(ProposalVote.id)))
        assert count == 0

    @pytest.mark.asyncio
    async def test_cast_vote_unknown_proposal(self, db_session: AsyncSession, space: Space):
        with pytest.raises(ProposalNotFoundError):
            await ProposalService(db_session).cast_vote(str(uuid.uuid4()), _user(), space.id, {"option": 0})


class TestTallyModes:
    """Tests for multiple and weighted proposals through the store"""

    @pytest.mark.asyncio
    async def test_weighted(self, db_session: AsyncSession, space: Space, owner_id: str):
        service = ProposalService(db_session)
        proposal = await service.create_proposal(
            space.id, owner_id, title="Split", options=["A", "B"], voting_type="weighted", end_date=_end_date()
        )
        await service.cast_vote(proposal.id, _user(), space.id, {"0": 0.5, "1": 0.5}, vote_power=10)

        updated = await service.require_proposal(proposal.id)
        assert updated.results == {"0": 5, "1": 5}

    @pytest.mark.asyncio
    async def test_multiple(self, db_session: AsyncSession, space: Space, owner_id: str):
        service = ProposalService(db_session)
        proposal = await service.create_proposal(
            space.id, owner_id, title="Many", options=["A", "B", "C"], voting_type="multiple", end_date=_end_date()
        )
        await service.cast_vote(proposal.id, _user(), space.id, [0, 1], vote_power=1)

        updated = await service.require_proposal(proposal.id)
        assert updated.results == {"0": 1, "1": 1, "2": 0}


class TestRecompute:
    """Tests for explicit recomputation"""

    @pytest.mark.asyncio
    async def test_recompute_is_idempotent(self, db_session: AsyncSession, space: Space, owner_id: str):
        service = ProposalService(db_session)
        proposal = await service.create_proposal(
            space.id, owner_id, title="Again", options=["A", "B"], end_date=_end_date()
        )
        await service.cast_vote(proposal.id, _user(), space.id, {"option": 1}, vote_power=2)

        first = dict((await service.recompute_results(proposal.id)).results)
        first_count = proposal.vote_count
        second = dict((await service.recompute_results(proposal.id)).results)

        assert first == second == {"0": 0, "1": 2}
        assert proposal.vote_count == first_count == 1

    @pytest.mark.asyncio
    async def test_recompute_unknown_proposal(self, db_session: AsyncSession):
        with pytest.raises(ProposalNotFoundError):
            await ProposalService(db_session).recompute_results(str(uuid.uuid4()))


class TestStatusAndListing:
    """Tests for status updates and listing"""

    @pytest.mark.asyncio
    async def test_invalid_status(self, db_session: AsyncSession, space: Space, owner_id: str):
        service = ProposalService(db_session)
        proposal = await service.create_proposal(
            space.id, owner_id, title="S", options=["A", "B"], end_date=_end_date()
        )
        with pytest.raises(ProposalValidationError):
            await service.update_status(proposal.id, "archived")

    @pytest.mark.asyncio
    async def test_status_transitions_are_not_restricted(self, db_session: AsyncSession, space: Space, owner_id: str):
        # Chosen behaviour: any allowed status may follow any other, including closed -> active
        service = ProposalService(db_session)
        proposal = await service.create_proposal(
            space.id, owner_id, title="S", options=["A", "B"], end_date=_end_date()
        )
        await service.close_proposal(proposal.id)
        reopened = await service.update_status(proposal.id, "active")
        assert reopened.status == "active"

    @pytest.mark.asyncio
    async def test_list_filters_and_paginates(self, db_session: AsyncSession, space: Space, owner_id: str):
        service = ProposalService(db_session)
        created = []
        for i in range(3):
            created.append(await service.create_proposal(
                space.id, owner_id, title=f"P{i}", options=["A", "B"], end_date=_end_date()
            ))
        await service.update_status(created[0].id, "cancelled")

        active, total = await service.list_space_proposals(space.id, status="active", page=1, limit=1)
        assert total == 2
        assert len(active) == 1

        assert await service.count_active_proposals(space.id) == 2

    @pytest.mark.asyncio
    async def test_invalid_sort_order(self, db_session: AsyncSession, space: Space):
        with pytest.raises(ProposalValidationError):
            await ProposalService(db_session).list_space_proposals(space.id, sort_order="sideways")

    @pytest.mark.asyncio
    async def test_proposal_votes_pagination(self, db_session: AsyncSession, space: Space, owner_id: str):
        service = ProposalService(db_session)
        proposal = await service.create_proposal(
            space.id, owner_id, title="Paged", options=["A", "B"], end_date=_end_date()
        )
        for _ in range(5):
            await service.cast_vote(proposal.id, _user(), space.id, {"option": 0})

        page_one, total = await service.get_proposal_votes(proposal.id, page=1, limit=2)
        page_three, _ = await service.get_proposal_votes(proposal.id, page=3, limit=2)
        assert total == 5
        assert len(page_one) == 2
        assert len(page_three) == 1


class TestVerifyOnchainHash:
    """Tests for comparing stored content with the chain"""

    @pytest.mark.asyncio
    async def test_surrounding_whitespace_still_verifies(
        self, db_session: AsyncSession, space: Space, owner_id: str, fake_chain
    ):
        service = ProposalService(db_session)
        proposal = await service.create_proposal(
            space.id, owner_id, title="Budget 2025 ", description="Spend it\n", options=["A", "B"],
            end_date=_end_date(), use_blockchain=True, blockchain_proposal_id="7",
        )
        fake_chain.content_hashes[7] = generate_content_hash("Budget 2025 ", "Spend it\n", ["A", "B"])

        verified, _ = await service.verify_onchain_hash(proposal.id, fake_chain)
        assert proposal.content_hash == fake_chain.content_hashes[7]
        assert verified.is_hash_verified is True

    @pytest.mark.asyncio
    async def test_matching_hash_marks_verified(self, db_session: AsyncSession, space: Space, owner_id: str, fake_chain):
        service = ProposalService(db_session)
        proposal = await service.create_proposal(
            space.id, owner_id, title="Anchored", options=["Yes", "No"], end_date=_end_date(),
            use_blockchain=True, blockchain_proposal_id="3",
        )
        fake_chain.content_hashes[3] = proposal.content_hash.upper().replace("0X", "0x")

        verified, onchain = await service.verify_onchain_hash(proposal.id, fake_chain)
        assert verified.is_hash_verified is True
        assert fake_chain.calls == [3]

    @pytest.mark.asyncio
    async def test_tampered_content_fails(self, db_session: AsyncSession, space: Space, owner_id: str, fake_chain):
        service = ProposalService(db_session)
        proposal = await service.create_proposal(
            space.id, owner_id, title="Anchored", options=["Yes", "No"], end_date=_end_date(),
            use_blockchain=True, blockchain_proposal_id="4",
        )
        fake_chain.content_hashes[4] = generate_content_hash("Anchored", None, ["Yes", "Maybe"])

        verified, _ = await service.verify_onchain_hash(proposal.id, fake_chain)
        assert verified.is_hash_verified is False

    @pytest.mark.asyncio
    async def test_requires_onchain_id(self, db_session: AsyncSession, space: Space, owner_id: str, fake_chain):
        service = ProposalService(db_session)
        proposal = await service.create_proposal(
            space.id, owner_id, title="Local", options=["Yes", "No"], end_date=_end_date()
        )
        with pytest.raises(ProposalValidationError):
            await service.verify_onchain_hash(proposal.id, fake_chain)
