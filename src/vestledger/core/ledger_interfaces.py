"""
Collaborator Protocol Interfaces - Decoupling the ledger from its environment.

The vesting ledger depends on these protocols rather than on concrete
classes, so tests and embedders can inject any token, authority or gate:

    ledger = TokenVesting(
        token=ERC20Token(...),          # TokenProvider
        authority=Ownable(owner),       # AuthorityProvider
        gate=PauseGate(authority),      # OperationalGateProvider
        event_sink=RecordingEventSink(),
    )
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenProvider(Protocol):
    """
    Value-transfer collaborator.

    ``transfer`` must be all-or-nothing: it either moves the full amount and
    returns True, or leaves every balance untouched and returns False or
    raises.
    """

    @property
    def address(self) -> str:
        """Token contract address."""
        ...

    def balance_of(self, account: str) -> int:
        """Balance held by ``account``."""
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move ``amount`` from ``sender`` to ``recipient``."""
        ...


@runtime_checkable
class AuthorityProvider(Protocol):
    """Identifies the single designated authority."""

    @property
    def authority(self) -> str:
        """Current authority address."""
        ...

    def is_authority(self, caller: str) -> bool:
        """True when ``caller`` is the authority."""
        ...


@runtime_checkable
class OperationalGateProvider(Protocol):
    """Pause/resume gate checked before every mutating operation."""

    def is_operational(self) -> bool:
        """False while operations are paused."""
        ...
