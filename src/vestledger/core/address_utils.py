"""
Address helpers for 0x-prefixed, 20-byte hex identities.

Addresses are compared case-insensitively and stored lowercase.
"""

from __future__ import annotations

ZERO_ADDRESS = "0x" + "0" * 40
HEX_DIGITS = frozenset("0123456789abcdef")


def normalize_address(address: str) -> str:
    """Normalize address to lowercase."""
    return address.strip().lower()


def is_valid_address(address: object) -> bool:
    """True for a well-formed 0x-prefixed 40-hex-digit address."""
    if not isinstance(address, str):
        return False
    candidate = normalize_address(address)
    if len(candidate) != 42 or not candidate.startswith("0x"):
        return False
    return all(ch in HEX_DIGITS for ch in candidate[2:])


def is_zero_address(address: str) -> bool:
    return normalize_address(address) == ZERO_ADDRESS


def address_to_bytes(address: str) -> bytes:
    """
    Decode an address into its 20 raw bytes.

    Raises:
        ValueError: If the address is malformed
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return bytes.fromhex(normalize_address(address)[2:])


def short_address(address: str) -> str:
    """First 10 characters, the truncation used in log payloads."""
    return (address or "")[:10]
