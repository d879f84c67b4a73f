"""API v1 router aggregation"""
from fastapi import APIRouter

from voxen.api.v1 import spaces, proposals, content_hash

api_router = APIRouter()

api_router.include_router(spaces.router, prefix="/spaces", tags=["Spaces"])
# Proposal endpoints are scoped to a space ({space_id} in the prefix)
api_router.include_router(proposals.router, prefix="/spaces/{space_id}/proposals", tags=["Proposals"])
api_router.include_router(content_hash.router, prefix="/content-hash", tags=["Content Hash"])
