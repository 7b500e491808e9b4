"""
Committed-balance accounting.

``total_committed`` is the value promised to live schedules and not yet
paid out. It may never exceed the balance the ledger custodies; whatever
exceeds it is withdrawable by the authority.
"""

from __future__ import annotations

import logging

from ..vesting_exceptions import InsufficientTreasuryError, InvalidParameterError

logger = logging.getLogger(__name__)


class AccountingGuard:
    """Running total of committed-but-unreleased value."""

    def __init__(self, total_committed: int = 0) -> None:
        if total_committed < 0:
            raise InvalidParameterError("total_committed cannot be negative")
        self._total_committed = total_committed

    @property
    def total_committed(self) -> int:
        return self._total_committed

    def withdrawable(self, custodied_balance: int) -> int:
        """Custodied balance not backing any schedule."""
        return custodied_balance - self._total_committed

    def require_available(self, amount: int, custodied_balance: int, action: str) -> None:
        """
        Ensure ``amount`` fits in the withdrawable balance.

        Raises:
            InsufficientTreasuryError: If it does not
        """
        available = self.withdrawable(custodied_balance)
        if amount > available:
            raise InsufficientTreasuryError(
                f"TokenVesting: cannot {action} because not sufficient tokens "
                f"({amount} > {available})",
                requested=amount,
                withdrawable=available,
            )

    def commit(self, amount: int) -> None:
        """Reserve ``amount`` for a new schedule."""
        self._require_non_negative(amount)
        self._total_committed += amount

    def settle(self, amount: int) -> None:
        """Account for ``amount`` paid out to a beneficiary."""
        self._reduce(amount, "settle")

    def forfeit(self, amount: int) -> None:
        """Release ``amount`` of a revoked schedule back to the treasury."""
        self._reduce(amount, "forfeit")

    def restore(self, total_committed: int) -> None:
        """Reset the total to a previously observed value (rollback)."""
        self._total_committed = total_committed

    def is_solvent(self, custodied_balance: int) -> bool:
        return 0 <= self._total_committed <= custodied_balance

    def assert_solvent(self, custodied_balance: int) -> None:
        if not self.is_solvent(custodied_balance):
            logger.critical(
                "Committed total exceeds custodied balance",
                extra={
                    "event": "accounting.insolvent",
                    "total_committed": self._total_committed,
                    "custodied_balance": custodied_balance,
                },
            )
            raise InsufficientTreasuryError(
                f"Ledger insolvent: committed {self._total_committed} "
                f"exceeds custodied balance {custodied_balance}",
                requested=self._total_committed,
                withdrawable=self.withdrawable(custodied_balance),
            )

    def _reduce(self, amount: int, action: str) -> None:
        self._require_non_negative(amount)
        if amount > self._total_committed:
            raise InvalidParameterError(
                f"cannot {action} {amount}: only {self._total_committed} committed"
            )
        self._total_committed -= amount

    @staticmethod
    def _require_non_negative(amount: int) -> None:
        if amount < 0:
            raise InvalidParameterError("amount cannot be negative")
