"""
Deterministic vesting schedule identifiers.

An id is the SHA3-256 digest of the beneficiary's 20 address bytes followed
by the per-beneficiary sequence index as a 32-byte big-endian word, the same
packing as ``keccak256(abi.encodePacked(holder, index))``. Sequence indices
only grow and are scoped to one beneficiary, so ids never collide or repeat.
"""

from __future__ import annotations

import hashlib

from ..address_utils import address_to_bytes

INDEX_WIDTH_BYTES = 32


def compute_schedule_id(beneficiary: str, index: int) -> str:
    """
    Compute the schedule id for a beneficiary and sequence index.

    Args:
        beneficiary: Beneficiary address
        index: 0-based position in the beneficiary's schedule list

    Returns:
        0x-prefixed 64-hex-digit id
    """
    if index < 0:
        raise ValueError("index cannot be negative")
    packed = address_to_bytes(beneficiary) + index.to_bytes(INDEX_WIDTH_BYTES, "big")
    return "0x" + hashlib.sha3_256(packed).hexdigest()
