"""
Vesting-specific exception hierarchy for vestledger.

Provides typed exceptions for ledger operations so callers can tell every
failure kind apart and handle, retry or report it precisely. Every exception
raised from a ledger operation means the operation had no effect.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class VestingError(Exception):
    """Base exception for all vesting ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
        code: Stable machine-readable error kind
    """

    code = "vesting_error"
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if recoverable is not None:
            self.recoverable = recoverable


# ==================== Authorization & Gating Errors ====================


class UnauthorizedError(VestingError):
    """Raised when the caller is neither the authority nor the beneficiary required."""

    code = "unauthorized"


class NotOperationalError(VestingError):
    """Raised when the operational gate reports the ledger as paused."""

    code = "not_operational"
    recoverable = True  # Can retry once the ledger is unpaused


# ==================== Schedule Errors ====================


class ScheduleNotFoundError(VestingError):
    """Raised for an uninitialized schedule id or an out-of-bounds index."""

    code = "not_found"


class AlreadyRevokedError(VestingError):
    """Raised when operating on a schedule that has already been revoked."""

    code = "already_revoked"


class NotRevocableError(VestingError):
    """Raised when revoking a schedule created as non-revocable."""

    code = "not_revocable"


class InvalidParameterError(VestingError):
    """Raised for zero duration, zero amount, slice period below 1 or a bad beneficiary."""

    code = "invalid_parameter"


# ==================== Accounting Errors ====================


class InsufficientVestedError(VestingError):
    """Raised when a release asks for more than the computed releasable amount."""

    code = "insufficient_vested"

    def __init__(
        self,
        message: str,
        requested: Optional[int] = None,
        releasable: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.requested = requested
        self.releasable = releasable


class InsufficientTreasuryError(VestingError):
    """Raised when a creation or withdrawal exceeds the withdrawable balance."""

    code = "insufficient_treasury"

    def __init__(
        self,
        message: str,
        requested: Optional[int] = None,
        withdrawable: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.requested = requested
        self.withdrawable = withdrawable


# ==================== Execution Errors ====================


class TransferFailureError(VestingError):
    """Raised when the token collaborator rejects a value movement."""

    code = "transfer_failure"
    recoverable = True  # Caller may retry; the ledger was left untouched


class ReentrancyError(VestingError):
    """Raised when a mutating operation is re-entered while another is in flight."""

    code = "reentrancy"


class TokenError(VestingError):
    """Raised by the token contract (balance, pause, address or ownership checks)."""

    code = "token_error"


# ==================== Storage & Configuration Errors ====================


class StorageError(VestingError):
    """Raised when ledger persistence fails."""

    code = "storage_error"


class CorruptedDataError(StorageError):
    """Raised when a persisted ledger fails its integrity check."""

    code = "corrupted_data"


class ConfigurationError(VestingError):
    """Raised when required configuration is missing or invalid."""

    code = "configuration_error"


# ==================== Utility Functions ====================


def is_recoverable_error(exc: Exception) -> bool:
    """Check if an exception represents a recoverable error.

    Args:
        exc: The exception to check

    Returns:
        True if the error is recoverable and the operation can be retried
    """
    if isinstance(exc, VestingError):
        return exc.recoverable

    recoverable_types = (
        ConnectionError,
        TimeoutError,
    )
    return isinstance(exc, recoverable_types)


def get_error_context(exc: Exception) -> Dict[str, Any]:
    """Extract error context from an exception for logging.

    Args:
        exc: The exception to extract context from

    Returns:
        Dictionary containing error type, message, and any additional details
    """
    context = {
        "error_type": type(exc).__name__,
        "error_message": str(exc),
    }

    if isinstance(exc, VestingError):
        context["code"] = exc.code
        context["recoverable"] = exc.recoverable
        if exc.details:
            context["details"] = exc.details

    if isinstance(exc, InsufficientVestedError):
        if exc.requested is not None:
            context["requested"] = exc.requested
        if exc.releasable is not None:
            context["releasable"] = exc.releasable

    if isinstance(exc, InsufficientTreasuryError):
        if exc.requested is not None:
            context["requested"] = exc.requested
        if exc.withdrawable is not None:
            context["withdrawable"] = exc.withdrawable

    return context
