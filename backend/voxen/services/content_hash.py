"""Proposal content hashing.

The hash must match what the proposal contract computes on-chain:

    keccak256(abi.encode(title, description, options))

with ``(string, string, string[])`` as the ABI types.
"""
from typing import Optional, Sequence

from eth_abi import encode
from eth_utils import keccak

CONTENT_ABI_TYPES = ["string", "string", "string[]"]


def encode_content(title: str, description: Optional[str], options: Sequence[str]) -> bytes:
    """ABI-encode proposal content. A missing description encodes as ''."""
    return encode(CONTENT_ABI_TYPES, [title, description or "", list(options)])


def generate_content_hash(title: str, description: Optional[str], options: Sequence[str]) -> str:
    """Return the 0x-prefixed keccak256 hex digest of the proposal content."""
    return "0x" + keccak(encode_content(title, description, options)).hex()


def verify_content_hash(
    title: str,
    description: Optional[str],
    options: Sequence[str],
    expected_hash: Optional[str],
) -> bool:
    """Check content against a hash read from the chain (case-insensitive)."""
    if not expected_hash:
        return False
    return generate_content_hash(title, description, options) == expected_hash.lower()
