"""Voxen backend services"""
from .tally import compute_results, parse_ballot, empty_results, VotingType
from .content_hash import generate_content_hash, verify_content_hash
from .proposal_service import ProposalService, ProposalValidationError, ProposalNotFoundError
from .space_service import SpaceService
from .activity_service import ActivityService

__all__ = [
    # Tally engine
    "compute_results",
    "parse_ballot",
    "empty_results",
    "VotingType",
    # Content hash
    "generate_content_hash",
    "verify_content_hash",
    # Stores
    "ProposalService",
    "ProposalValidationError",
    "ProposalNotFoundError",
    "SpaceService",
    "ActivityService",
]
