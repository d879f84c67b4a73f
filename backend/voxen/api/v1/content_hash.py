"""Content hash API endpoints"""
from fastapi import APIRouter

from voxen.schemas.proposal import (
    ContentHashRequest,
    ContentHashResponse,
    VerifyContentHashRequest,
    VerifyContentHashResponse,
)
from voxen.services.content_hash import generate_content_hash, verify_content_hash

router = APIRouter()


@router.post("", response_model=ContentHashResponse)
async def generate_hash(request: ContentHashRequest):
    """Hash proposal content the way the proposal contract does"""
    return ContentHashResponse(
        content_hash=generate_content_hash(request.title, request.description, request.options)
    )


@router.post("/verify", response_model=VerifyContentHashResponse)
async def verify_hash(request: VerifyContentHashRequest):
    """Check proposal content against an expected hash"""
    return VerifyContentHashResponse(
        valid=verify_content_hash(request.title, request.description, request.options, request.expected_hash),
        content_hash=generate_content_hash(request.title, request.description, request.options),
    )
