"""
vestledger Core Module

Core functionality for the vesting ledger including:
- Vesting schedule model, identifiers and storage
- Release computation and committed-balance accounting
- Contract-style ledger and token collaborators
- Configuration, logging, metrics and persistence
"""

__all__ = []
