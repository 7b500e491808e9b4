"""
vestledger - Token Vesting Ledger

Deferred, time-gated release of a fungible token to beneficiaries according
to individually configured vesting schedules.

Main Components:
- Vesting: schedule identifiers, schedule store, release calculator, accounting guard
- Contracts: the TokenVesting ledger and an in-memory ERC20 token for custody
- Access Control: owner authority and pause gate collaborators
- CLI: operator commands over a locally persisted ledger
"""

__version__ = "0.1.0"
__author__ = "vestledger Development Team"

__all__ = []
