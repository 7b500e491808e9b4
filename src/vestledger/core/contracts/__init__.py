"""
vestledger Contract Implementations.

This module provides the contract-style ledger and its default token:
- TokenVesting: cliff + linear vesting ledger with revocation
- ERC20: Fungible token used as the custody and transfer collaborator
- Factory for deploying new tokens
"""

from .erc20 import ERC20Factory, ERC20Token, TokenEvent
from .token_vesting import TokenVesting

__all__ = [
    "ERC20Factory",
    "ERC20Token",
    "TokenEvent",
    "TokenVesting",
]
