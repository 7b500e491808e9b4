"""
Token Vesting Ledger.

Custodies a fungible token balance and pays it out to beneficiaries over
time according to individually configured schedules.

Features:
- Cliff + linear vesting quantized to whole slice periods
- Multiple schedules per beneficiary with deterministic ids
- Authority-only creation, revocation and treasury withdrawal
- Partial releases by the beneficiary or the authority
- Committed-balance accounting: promised value is never withdrawable

Security features:
- Reentrancy protection across the outbound token transfer
- Checks-effects-interactions with rollback when the transfer fails
- Operational gate checked before every mutating operation
- Integer-only arithmetic, multiply before divide
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from dataclasses import replace
from typing import Any, Callable

from ..access_control import PauseGate
from ..address_utils import is_valid_address, is_zero_address, normalize_address, short_address
from ..ledger_interfaces import AuthorityProvider, OperationalGateProvider, TokenProvider
from ..vesting.accounting import AccountingGuard
from ..vesting.events import (
    EventSink,
    RecordingEventSink,
    TokensReleased,
    TreasuryWithdrawn,
    VestingEvent,
    VestingScheduleCreated,
    VestingScheduleRevoked,
)
from ..vesting.release_calculator import compute_releasable_amount, compute_vested_amount
from ..vesting.schedule import VestingSchedule
from ..vesting.schedule_ids import compute_schedule_id
from ..vesting.schedule_store import ScheduleStore
from ..vesting_exceptions import (
    AlreadyRevokedError,
    CorruptedDataError,
    InsufficientVestedError,
    InvalidParameterError,
    NotOperationalError,
    NotRevocableError,
    ReentrancyError,
    TransferFailureError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

UINT256_MAX = 2**256 - 1


def _derive_custody_address(token_address: str) -> str:
    digest = hashlib.sha3_256(f"TokenVesting:{normalize_address(token_address)}".encode()).digest()
    return f"0x{digest[-20:].hex()}"


class TokenVesting:
    """
    Vesting ledger over one token.

    Collaborators are injected:
        token: moves value out of the ledger's custody address
        authority: identifies the single privileged caller
        gate: pauses every mutating operation when not operational
        event_sink: receives one record per successful mutation
        time_provider: returns the current Unix time in seconds

    Every mutating operation either completes fully or raises a
    ``VestingError`` subclass with no effect on ledger or token state.
    """

    def __init__(
        self,
        token: TokenProvider,
        authority: AuthorityProvider,
        gate: OperationalGateProvider | None = None,
        event_sink: EventSink | None = None,
        time_provider: Callable[[], int] | None = None,
        address: str | None = None,
    ) -> None:
        self._token = token
        self._authority = authority
        self._gate = gate if gate is not None else PauseGate(authority)
        self._event_sink = event_sink if event_sink is not None else RecordingEventSink()
        self._time_provider = time_provider or (lambda: int(time.time()))

        self.address = normalize_address(address or _derive_custody_address(token.address))

        self._store = ScheduleStore()
        self._accounting = AccountingGuard()

        # Global serialization; reentrancy is detected with the flag below
        self._lock = threading.RLock()
        self._locked = False

        logger.info(
            "TokenVesting initialized",
            extra={
                "event": "vesting.initialized",
                "address": short_address(self.address),
                "token": short_address(token.address),
                "authority": short_address(authority.authority),
            },
        )

    # ==================== Collaborators ====================

    @property
    def token(self) -> TokenProvider:
        return self._token

    @property
    def authority(self) -> AuthorityProvider:
        return self._authority

    @property
    def gate(self) -> OperationalGateProvider:
        return self._gate

    @property
    def event_sink(self) -> EventSink:
        return self._event_sink

    # ==================== Mutating Operations ====================

    def create_vesting_schedule(
        self,
        caller: str,
        beneficiary: str,
        start: int,
        cliff: int,
        duration: int,
        slice_period_seconds: int,
        revocable: bool,
        amount: int,
    ) -> str:
        """
        Create a new vesting schedule (authority only).

        Args:
            caller: Address calling (must be the authority)
            beneficiary: Address receiving the vested tokens
            start: Unix time the vesting period starts
            cliff: Cliff offset in seconds from ``start``
            duration: Vesting period length in seconds
            slice_period_seconds: Release granularity in seconds
            revocable: Whether the authority may revoke the schedule
            amount: Total base units to vest

        Returns:
            The new schedule id

        Raises:
            NotOperationalError: If the ledger is paused
            UnauthorizedError: If caller is not the authority
            InsufficientTreasuryError: If ``amount`` exceeds the withdrawable amount
            InvalidParameterError: If any parameter is invalid
        """
        with self._lock:
            self._require_not_locked()
            self._require_operational()
            self._require_authority(caller)

            for name, value in (
                ("start", start),
                ("cliff", cliff),
                ("duration", duration),
                ("slice_period_seconds", slice_period_seconds),
                ("amount", amount),
            ):
                self._require_int(name, value)

            self._accounting.require_available(
                amount, self._custodied_balance(), "create vesting schedule"
            )

            if duration <= 0:
                raise InvalidParameterError("TokenVesting: duration must be > 0")
            if amount <= 0:
                raise InvalidParameterError("TokenVesting: amount must be > 0")
            if slice_period_seconds < 1:
                raise InvalidParameterError("TokenVesting: slicePeriodSeconds must be >= 1")
            if not isinstance(beneficiary, str) or not is_valid_address(beneficiary) or is_zero_address(beneficiary):
                raise InvalidParameterError(
                    "TokenVesting: beneficiary cannot be the zero address",
                    details={"beneficiary": beneficiary},
                )
            if start < 0:
                raise InvalidParameterError("TokenVesting: start cannot be negative")
            if cliff < 0:
                raise InvalidParameterError("TokenVesting: cliff cannot be negative")
            if duration < cliff:
                raise InvalidParameterError("TokenVesting: duration must be >= cliff")
            if amount > UINT256_MAX:
                raise InvalidParameterError("TokenVesting: amount exceeds uint256")

            schedule = VestingSchedule(
                initialized=True,
                beneficiary=normalize_address(beneficiary),
                cliff=start + cliff,
                start=start,
                duration=duration,
                slice_period_seconds=slice_period_seconds,
                revocable=bool(revocable),
                amount_total=amount,
            )
            schedule_id = self._store.insert(schedule)
            self._accounting.commit(amount)

            logger.info(
                "Vesting schedule created",
                extra={
                    "event": "vesting.create",
                    "schedule_id": schedule_id[:18],
                    "beneficiary": short_address(schedule.beneficiary),
                    "amount": amount,
                    "start": start,
                    "cliff": schedule.cliff,
                    "duration": duration,
                    "revocable": schedule.revocable,
                },
            )

            self._emit(
                VestingScheduleCreated(
                    schedule_id=schedule_id,
                    beneficiary=schedule.beneficiary,
                    cliff=schedule.cliff,
                    start=start,
                    duration=duration,
                    slice_period_seconds=slice_period_seconds,
                    revocable=schedule.revocable,
                    amount=amount,
                )
            )
            return schedule_id

    def release(self, caller: str, schedule_id: str, amount: int) -> int:
        """
        Release vested tokens to the beneficiary.

        Callable by the beneficiary or the authority. A zero amount is a
        permitted no-op transfer.

        Returns:
            The amount released

        Raises:
            NotOperationalError: If the ledger is paused
            ScheduleNotFoundError: If the schedule does not exist
            UnauthorizedError: If caller is neither beneficiary nor authority
            AlreadyRevokedError: If the schedule was revoked
            InsufficientVestedError: If ``amount`` exceeds the releasable amount
            TransferFailureError: If the token transfer fails (state rolled back)
            ReentrancyError: If called from within another ledger operation
        """
        with self._lock:
            self._require_not_locked()
            self._require_operational()
            schedule = self._store.get(schedule_id)
            if not self._is_beneficiary_or_authority(caller, schedule):
                logger.warning(
                    "Release denied",
                    extra={
                        "event": "vesting.release_denied",
                        "schedule_id": schedule_id[:18],
                        "caller": short_address(caller if isinstance(caller, str) else ""),
                    },
                )
                raise UnauthorizedError(
                    "TokenVesting: only beneficiary and owner can release vested tokens"
                )
            if schedule.revoked:
                raise AlreadyRevokedError(
                    "TokenVesting: vesting schedule revoked",
                    details={"schedule_id": schedule_id},
                )
            self._require_int("amount", amount)
            if amount < 0:
                raise InvalidParameterError("TokenVesting: amount cannot be negative")

            now = self._current_time()
            snapshot = self._snapshot(schedule_id)
            self._locked = True
            try:
                event = self._release_unguarded(schedule_id, amount, now)
            except Exception:
                self._rollback(snapshot)
                raise
            finally:
                self._locked = False

            self._emit(event)
            return amount

    def revoke(self, caller: str, schedule_id: str) -> int:
        """
        Revoke a revocable schedule (authority only).

        Whatever has vested is released to the beneficiary first; the
        remainder is forfeited back to the withdrawable balance.

        Returns:
            The forfeited (unreleased) amount

        Raises:
            NotOperationalError: If the ledger is paused
            UnauthorizedError: If caller is not the authority
            ScheduleNotFoundError: If the schedule does not exist
            NotRevocableError: If the schedule is not revocable
            AlreadyRevokedError: If the schedule was already revoked
            TransferFailureError: If the vested payout fails (state rolled back)
        """
        with self._lock:
            self._require_not_locked()
            self._require_operational()
            self._require_authority(caller)
            schedule = self._store.get(schedule_id)
            if not schedule.revocable:
                raise NotRevocableError(
                    "TokenVesting: vesting schedule not revocable",
                    details={"schedule_id": schedule_id},
                )
            if schedule.revoked:
                raise AlreadyRevokedError(
                    "TokenVesting: vesting schedule revoked",
                    details={"schedule_id": schedule_id},
                )

            now = self._current_time()
            snapshot = self._snapshot(schedule_id)
            events: list[VestingEvent] = []
            self._locked = True
            try:
                vested = compute_releasable_amount(schedule, now)
                if vested > 0:
                    events.append(self._release_unguarded(schedule_id, vested, now))

                schedule = self._store.get(schedule_id)
                unreleased = schedule.amount_total - schedule.released
                self._accounting.forfeit(unreleased)
                schedule.revoked = True
            except Exception:
                self._rollback(snapshot)
                raise
            finally:
                self._locked = False

            logger.warning(
                "Vesting schedule revoked",
                extra={
                    "event": "vesting.revoke",
                    "schedule_id": schedule_id[:18],
                    "beneficiary": short_address(schedule.beneficiary),
                    "vested_paid": vested,
                    "forfeited": unreleased,
                },
            )

            events.append(
                VestingScheduleRevoked(
                    schedule_id=schedule_id,
                    beneficiary=schedule.beneficiary,
                    unreleased_forfeited=unreleased,
                )
            )
            for event in events:
                self._emit(event)
            return unreleased

    def withdraw(self, caller: str, amount: int) -> int:
        """
        Withdraw uncommitted tokens to the authority.

        Raises:
            NotOperationalError: If the ledger is paused
            UnauthorizedError: If caller is not the authority
            InsufficientTreasuryError: If ``amount`` exceeds the withdrawable amount
            TransferFailureError: If the token transfer fails
        """
        with self._lock:
            self._require_not_locked()
            self._require_operational()
            self._require_authority(caller)
            self._require_int("amount", amount)
            if amount < 0:
                raise InvalidParameterError("TokenVesting: amount cannot be negative")
            self._accounting.require_available(amount, self._custodied_balance(), "withdraw")

            recipient = normalize_address(caller)
            self._locked = True
            try:
                self._transfer_out(recipient, amount)
            finally:
                self._locked = False

            logger.info(
                "Treasury withdrawal",
                extra={
                    "event": "vesting.withdraw",
                    "authority": short_address(recipient),
                    "amount": amount,
                },
            )

            self._emit(TreasuryWithdrawn(authority=recipient, amount=amount))
            return amount

    # ==================== Queries ====================

    def get_vesting_schedule(self, schedule_id: str) -> VestingSchedule:
        """Copy of an initialized schedule; raises ScheduleNotFoundError otherwise."""
        with self._lock:
            return replace(self._store.get(schedule_id))

    def compute_releasable_amount(self, schedule_id: str) -> int:
        with self._lock:
            return compute_releasable_amount(self._store.get(schedule_id), self._current_time())

    def compute_vested_amount(self, schedule_id: str) -> int:
        """Total vested so far, released part included."""
        with self._lock:
            return compute_vested_amount(self._store.get(schedule_id), self._current_time())

    def get_vesting_schedules_count_by_beneficiary(self, beneficiary: str) -> int:
        self._require_address("beneficiary", beneficiary)
        with self._lock:
            return self._store.count_for(beneficiary)

    def get_vesting_id_at_index_for_holder(self, beneficiary: str, index: int) -> str:
        self._require_address("beneficiary", beneficiary)
        self._require_index(index)
        with self._lock:
            return self._store.id_at(beneficiary, index)

    def get_vesting_schedules_count(self) -> int:
        with self._lock:
            return self._store.schedule_count

    def get_vesting_schedules_total_amount(self) -> int:
        """Committed-but-unreleased value across live schedules."""
        with self._lock:
            return self._accounting.total_committed

    def get_withdrawable_amount(self) -> int:
        with self._lock:
            return self._accounting.withdrawable(self._custodied_balance())

    def get_token(self) -> str:
        return self._token.address

    def get_current_time(self) -> int:
        return self._current_time()

    def compute_next_vesting_schedule_id_for_holder(self, beneficiary: str) -> str:
        self._require_address("beneficiary", beneficiary)
        with self._lock:
            return self._store.next_id(beneficiary)

    def compute_vesting_schedule_id_for_address_and_index(self, beneficiary: str, index: int) -> str:
        self._require_address("beneficiary", beneficiary)
        self._require_index(index)
        return compute_schedule_id(beneficiary, index)

    def get_last_vesting_schedule_for_holder(self, beneficiary: str) -> VestingSchedule:
        self._require_address("beneficiary", beneficiary)
        with self._lock:
            count = self._store.count_for(beneficiary)
            return replace(self._store.get(self._store.id_at(beneficiary, count - 1)))

    def get_vesting_schedule_by_address_and_index(self, beneficiary: str, index: int) -> VestingSchedule:
        self._require_address("beneficiary", beneficiary)
        self._require_index(index)
        with self._lock:
            return replace(self._store.get(self._store.id_at(beneficiary, index)))

    def get_vesting_id_at_index(self, index: int) -> str:
        self._require_index(index)
        with self._lock:
            return self._store.id_at_global(index)

    def get_vesting_schedules_ids(self) -> list[str]:
        with self._lock:
            return self._store.ids()

    def assert_solvent(self) -> None:
        """
        Raises:
            InsufficientTreasuryError: If committed value exceeds the custodied balance
        """
        with self._lock:
            self._accounting.assert_solvent(self._custodied_balance())

    # ==================== Internal Operations ====================

    def _release_unguarded(self, schedule_id: str, amount: int, now: int) -> TokensReleased:
        """
        Apply a release and pay it out.

        Callers hold the lock, have set the reentrancy flag and own the
        rollback snapshot.
        """
        schedule = self._store.get(schedule_id)
        releasable = compute_releasable_amount(schedule, now)
        if amount > releasable:
            raise InsufficientVestedError(
                "TokenVesting: cannot release tokens, not enough vested tokens",
                requested=amount,
                releasable=releasable,
            )

        schedule.released += amount
        self._accounting.settle(amount)
        self._transfer_out(schedule.beneficiary, amount)

        logger.info(
            "Tokens released",
            extra={
                "event": "vesting.release",
                "schedule_id": schedule_id[:18],
                "beneficiary": short_address(schedule.beneficiary),
                "amount": amount,
                "released_total": schedule.released,
            },
        )
        return TokensReleased(
            schedule_id=schedule_id, beneficiary=schedule.beneficiary, amount=amount
        )

    def _transfer_out(self, recipient: str, amount: int) -> None:
        """Move ``amount`` from custody to ``recipient`` or raise."""
        try:
            ok = self._token.transfer(self.address, recipient, amount)
        except ReentrancyError:
            raise
        except Exception as exc:
            logger.error(
                "Token transfer raised",
                extra={
                    "event": "vesting.transfer_failed",
                    "recipient": short_address(recipient),
                    "amount": amount,
                    "error": str(exc),
                },
            )
            raise TransferFailureError(
                f"TokenVesting: token transfer failed: {exc}",
                details={"recipient": recipient, "amount": amount},
            ) from exc
        if ok is not True:
            logger.error(
                "Token transfer rejected",
                extra={
                    "event": "vesting.transfer_failed",
                    "recipient": short_address(recipient),
                    "amount": amount,
                },
            )
            raise TransferFailureError(
                "TokenVesting: token transfer returned false",
                details={"recipient": recipient, "amount": amount},
            )

    def _snapshot(self, schedule_id: str) -> tuple[str, VestingSchedule, int]:
        return schedule_id, self._store.snapshot_of(schedule_id), self._accounting.total_committed

    def _rollback(self, snapshot: tuple[str, VestingSchedule, int]) -> None:
        schedule_id, schedule, total_committed = snapshot
        self._store.restore(schedule_id, schedule)
        self._accounting.restore(total_committed)
        logger.warning(
            "Operation rolled back",
            extra={"event": "vesting.rollback", "schedule_id": schedule_id[:18]},
        )

    def _emit(self, event: VestingEvent) -> None:
        # State is already committed when sinks run
        try:
            self._event_sink.emit(event)
        except Exception as exc:
            logger.exception(
                "Event sink failed",
                extra={
                    "event": "vesting.sink_error",
                    "event_type": event.event_type,
                    "error": str(exc),
                },
            )

    # ==================== Guards ====================

    def _require_not_locked(self) -> None:
        if self._locked:
            logger.warning(
                "Reentrant call rejected",
                extra={"event": "vesting.reentrancy", "address": short_address(self.address)},
            )
            raise ReentrancyError("ReentrancyGuard: reentrant call")

    def _require_operational(self) -> None:
        if not self._gate.is_operational():
            raise NotOperationalError("Pausable: paused")

    def _require_authority(self, caller: str) -> None:
        if not self._authority.is_authority(caller):
            logger.warning(
                "Access denied: caller is not the authority",
                extra={
                    "event": "vesting.unauthorized",
                    "caller": short_address(caller if isinstance(caller, str) else ""),
                },
            )
            raise UnauthorizedError("Ownable: caller is not the owner")

    def _is_beneficiary_or_authority(self, caller: str, schedule: VestingSchedule) -> bool:
        if not isinstance(caller, str):
            return False
        return normalize_address(caller) == schedule.beneficiary or self._authority.is_authority(caller)

    @staticmethod
    def _require_int(name: str, value: Any) -> None:
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidParameterError(
                f"TokenVesting: {name} must be an integer",
                details={name: repr(value)},
            )

    @staticmethod
    def _require_address(name: str, value: Any) -> None:
        if not is_valid_address(value):
            raise InvalidParameterError(
                f"TokenVesting: {name} is not a valid address",
                details={name: repr(value)},
            )

    @classmethod
    def _require_index(cls, index: Any) -> None:
        cls._require_int("index", index)
        if index < 0:
            raise InvalidParameterError("TokenVesting: index cannot be negative")

    def _custodied_balance(self) -> int:
        return self._token.balance_of(self.address)

    def _current_time(self) -> int:
        timestamp = self._time_provider()
        try:
            return int(timestamp)
        except (TypeError, ValueError) as exc:
            raise InvalidParameterError("time_provider must return an integer timestamp") from exc

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        """Serialize ledger state (collaborators are stored by reference)."""
        with self._lock:
            return {
                "address": self.address,
                "token": self._token.address,
                "authority": self._authority.authority,
                "paused": not self._gate.is_operational(),
                "total_committed": self._accounting.total_committed,
                "store": self._store.to_dict(),
            }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        token: TokenProvider,
        authority: AuthorityProvider,
        gate: OperationalGateProvider | None = None,
        event_sink: EventSink | None = None,
        time_provider: Callable[[], int] | None = None,
    ) -> "TokenVesting":
        """
        Rebuild a ledger from ``to_dict`` output.

        Raises:
            CorruptedDataError: If the data does not match the collaborators
                or violates the committed-total identity
        """
        if normalize_address(data.get("token", "")) != normalize_address(token.address):
            raise CorruptedDataError(
                "Persisted ledger belongs to a different token",
                details={"expected": token.address, "found": data.get("token")},
            )
        if normalize_address(data.get("authority", "")) != normalize_address(authority.authority):
            raise CorruptedDataError("Persisted ledger belongs to a different authority")

        if gate is None:
            gate = PauseGate(authority, paused=bool(data.get("paused", False)))

        ledger = cls(
            token=token,
            authority=authority,
            gate=gate,
            event_sink=event_sink,
            time_provider=time_provider,
            address=data.get("address"),
        )
        ledger._store = ScheduleStore.from_dict(data.get("store", {}))

        total_committed = int(data.get("total_committed", 0))
        expected = sum(
            schedule.unreleased for _, schedule in ledger._store if not schedule.revoked
        )
        if total_committed != expected:
            raise CorruptedDataError(
                f"Committed total {total_committed} does not match schedules ({expected})"
            )
        ledger._accounting = AccountingGuard(total_committed)
        return ledger
