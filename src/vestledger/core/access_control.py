"""
Owner-based Access Control and Pause Gate.

Default collaborators for the vesting ledger:
- Ownable: a single owner address acting as the designated authority
- PauseGate: owner-controlled pause/unpause of every mutating operation

Both keep an audit trail of privileged actions.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .address_utils import is_valid_address, is_zero_address, normalize_address, short_address
from .ledger_interfaces import AuthorityProvider
from .vesting_exceptions import InvalidParameterError, NotOperationalError, UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass
class AuditEntry:
    """Record of a privileged action."""
    actor: str
    action: str
    timestamp: float
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class Ownable:
    """
    Single-owner authority.

    The owner is the only address allowed to create schedules, revoke
    them, withdraw uncommitted tokens and pause the ledger.
    """

    owner: str
    audit_log: list[AuditEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._validate_owner(self.owner)
        self.owner = normalize_address(self.owner)

    @property
    def authority(self) -> str:
        return self.owner

    def is_authority(self, caller: str) -> bool:
        return isinstance(caller, str) and normalize_address(caller) == self.owner

    def require_owner(self, caller: str) -> None:
        """
        Raises:
            UnauthorizedError: If caller is not the owner
        """
        if not self.is_authority(caller):
            logger.warning(
                "Access denied: caller is not the owner",
                extra={
                    "event": "access_control.not_owner",
                    "caller": short_address(caller if isinstance(caller, str) else ""),
                },
            )
            raise UnauthorizedError("Ownable: caller is not the owner")

    def transfer_ownership(self, caller: str, new_owner: str) -> bool:
        """Transfer ownership (owner only)."""
        self.require_owner(caller)
        self._validate_owner(new_owner)

        previous = self.owner
        self.owner = normalize_address(new_owner)
        self._log_action(previous, "transfer_ownership", {"new_owner": self.owner})

        logger.info(
            "Ownership transferred",
            extra={
                "event": "access_control.ownership_transferred",
                "previous_owner": short_address(previous),
                "new_owner": short_address(self.owner),
            },
        )
        return True

    def _validate_owner(self, owner: str) -> None:
        if not is_valid_address(owner) or is_zero_address(owner):
            raise InvalidParameterError("Ownable: new owner is the zero address")

    def _log_action(self, actor: str, action: str, details: dict[str, Any]) -> None:
        self.audit_log.append(AuditEntry(actor=actor, action=action, timestamp=time.time(), details=details))


@dataclass
class PauseGate:
    """
    Operational gate controlled by the authority.

    While paused, ``is_operational`` is False and the ledger rejects every
    mutating operation with NotOperationalError.
    """

    authority: AuthorityProvider
    paused: bool = False
    audit_log: list[AuditEntry] = field(default_factory=list)

    def is_operational(self) -> bool:
        return not self.paused

    def pause(self, caller: str) -> bool:
        """Pause all mutating ledger operations (authority only)."""
        self._require_authority(caller)
        if self.paused:
            raise NotOperationalError("Pausable: paused")

        self.paused = True
        self.audit_log.append(AuditEntry(actor=normalize_address(caller), action="pause", timestamp=time.time()))

        logger.warning(
            "Ledger paused",
            extra={"event": "pause_gate.paused", "authority": short_address(caller)},
        )
        return True

    def unpause(self, caller: str) -> bool:
        """Resume operations (authority only)."""
        self._require_authority(caller)
        if not self.paused:
            raise InvalidParameterError("Pausable: not paused")

        self.paused = False
        self.audit_log.append(AuditEntry(actor=normalize_address(caller), action="unpause", timestamp=time.time()))

        logger.info(
            "Ledger unpaused",
            extra={"event": "pause_gate.unpaused", "authority": short_address(caller)},
        )
        return True

    def _require_authority(self, caller: str) -> None:
        if not self.authority.is_authority(caller):
            raise UnauthorizedError("Ownable: caller is not the owner")
