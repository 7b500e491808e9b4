"""
TokenVesting security tests.

Covers reentrancy through the token collaborator, rollback when the
outbound transfer fails, misbehaving event sinks and concurrent callers.
"""

import threading

import pytest

from vestledger.core.contracts.token_vesting import TokenVesting
from vestledger.core.vesting.events import RecordingEventSink, TokensReleased, VestingScheduleRevoked
from vestledger.core.vesting_exceptions import (
    InsufficientVestedError,
    InvalidParameterError,
    NotOperationalError,
    ReentrancyError,
    TransferFailureError,
    UnauthorizedError,
    is_recoverable_error,
)

from tests.vestledger_tests.helpers import (
    ALICE,
    DAY,
    FUNDING,
    MALLORY,
    OWNER,
    T0,
    YEAR,
    FailingToken,
    ReentrantToken,
)


def build_ledger(token_provider, authority, clock, sink=None):
    ledger = TokenVesting(
        token=token_provider,
        authority=authority,
        event_sink=sink or RecordingEventSink(),
        time_provider=clock,
    )
    return ledger


def fund(token, ledger, amount=FUNDING):
    token.transfer(OWNER, ledger.address, amount)


def create(ledger, amount=1000, revocable=True):
    return ledger.create_vesting_schedule(OWNER, ALICE, T0, DAY, YEAR, DAY, revocable, amount)


# ==================== Reentrancy ====================


class TestReentrancy:
    @pytest.fixture
    def attacked(self, token, authority, clock):
        provider = ReentrantToken(token, attack=lambda: None)
        ledger = build_ledger(provider, authority, clock)
        fund(token, ledger)
        schedule_id = create(ledger)
        clock.now = T0 + 172_800
        return provider, ledger, schedule_id

    def test_reentrant_release_rejected(self, attacked, token):
        provider, ledger, schedule_id = attacked
        provider.attack = lambda: ledger.release(ALICE, schedule_id, 1)

        ledger.release(ALICE, schedule_id, 4)

        assert len(provider.attack_errors) == 1
        assert isinstance(provider.attack_errors[0], ReentrancyError)
        assert ledger.get_vesting_schedule(schedule_id).released == 4
        assert token.balance_of(ALICE) == 4

    def test_reentrant_revoke_during_release(self, attacked):
        provider, ledger, schedule_id = attacked
        provider.attack = lambda: ledger.revoke(OWNER, schedule_id)

        ledger.release(ALICE, schedule_id, 5)

        assert isinstance(provider.attack_errors[0], ReentrancyError)
        assert not ledger.get_vesting_schedule(schedule_id).revoked

    def test_reentrant_withdraw_during_revoke(self, attacked):
        provider, ledger, schedule_id = attacked
        provider.attack = lambda: ledger.withdraw(OWNER, 1)

        ledger.revoke(OWNER, schedule_id)

        assert isinstance(provider.attack_errors[0], ReentrancyError)
        assert ledger.get_vesting_schedule(schedule_id).revoked

    def test_reentrant_create_during_withdraw(self, attacked):
        provider, ledger, _ = attacked
        provider.attack = lambda: create(ledger, amount=1)

        ledger.withdraw(OWNER, 10)

        assert isinstance(provider.attack_errors[0], ReentrancyError)
        assert ledger.get_vesting_schedules_count() == 1

    def test_propagated_reentrancy_rolls_back(self, attacked, token):
        provider, ledger, schedule_id = attacked
        provider.attack = lambda: ledger.release(ALICE, schedule_id, 1)
        provider.propagate = True

        with pytest.raises(ReentrancyError):
            ledger.release(ALICE, schedule_id, 5)

        assert ledger.get_vesting_schedule(schedule_id).released == 0
        assert ledger.get_vesting_schedules_total_amount() == 1000
        assert token.balance_of(ALICE) == 0

    def test_reads_during_transfer_see_applied_effects(self, attacked):
        provider, ledger, schedule_id = attacked
        observed = []
        provider.attack = lambda: observed.append(ledger.get_vesting_schedules_total_amount())

        ledger.release(ALICE, schedule_id, 5)

        # Effects are applied before the transfer is attempted
        assert observed == [995]
        assert provider.attack_errors == []

    def test_guard_released_after_operation(self, attacked):
        provider, ledger, schedule_id = attacked
        provider.attack = lambda: ledger.release(ALICE, schedule_id, 1)
        ledger.release(ALICE, schedule_id, 1)

        provider.attack = lambda: None
        assert ledger.release(ALICE, schedule_id, 1) == 1


# ==================== Transfer Failure Rollback ====================


class TestTransferFailure:
    @pytest.fixture
    def failing(self, token, authority, clock):
        provider = FailingToken(token)
        sink = RecordingEventSink()
        ledger = build_ledger(provider, authority, clock, sink)
        fund(token, ledger)
        schedule_id = create(ledger)
        sink.clear()
        clock.now = T0 + 172_800
        return provider, ledger, schedule_id, sink

    @pytest.mark.parametrize("mode", ["false", "raise"])
    def test_release_rolls_back(self, failing, token, mode):
        provider, ledger, schedule_id, sink = failing
        provider.mode = mode

        with pytest.raises(TransferFailureError) as exc_info:
            ledger.release(ALICE, schedule_id, 5)

        assert is_recoverable_error(exc_info.value)
        assert ledger.get_vesting_schedule(schedule_id).released == 0
        assert ledger.get_vesting_schedules_total_amount() == 1000
        assert ledger.compute_releasable_amount(schedule_id) == 5
        assert token.balance_of(ALICE) == 0
        assert sink.events == []

    def test_raised_error_is_chained(self, failing):
        provider, ledger, schedule_id, _ = failing
        provider.mode = "raise"
        with pytest.raises(TransferFailureError) as exc_info:
            ledger.release(ALICE, schedule_id, 5)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_revoke_rolls_back(self, failing, token):
        provider, ledger, schedule_id, sink = failing
        provider.mode = "false"

        with pytest.raises(TransferFailureError):
            ledger.revoke(OWNER, schedule_id)

        schedule = ledger.get_vesting_schedule(schedule_id)
        assert not schedule.revoked
        assert schedule.released == 0
        assert ledger.get_vesting_schedules_total_amount() == 1000
        assert sink.events == []

    def test_withdraw_failure(self, failing, token):
        provider, ledger, _, sink = failing
        provider.mode = "false"
        withdrawable = ledger.get_withdrawable_amount()

        with pytest.raises(TransferFailureError):
            ledger.withdraw(OWNER, 10)

        assert ledger.get_withdrawable_amount() == withdrawable
        assert sink.events == []

    def test_retry_after_failure_succeeds(self, failing, token):
        provider, ledger, schedule_id, sink = failing
        provider.mode = "false"
        with pytest.raises(TransferFailureError):
            ledger.release(ALICE, schedule_id, 5)

        provider.mode = "ok"
        assert ledger.release(ALICE, schedule_id, 5) == 5
        assert token.balance_of(ALICE) == 5
        assert [type(event) for event in sink.events] == [TokensReleased]

    def test_paused_token_surfaces_as_transfer_failure(self, ledger, token, clock):
        schedule_id = create(ledger)
        clock.now = T0 + YEAR
        token.pause(OWNER)

        with pytest.raises(TransferFailureError):
            ledger.release(ALICE, schedule_id, 10)
        assert ledger.get_vesting_schedule(schedule_id).released == 0


# ==================== Event Sinks ====================


class ExplodingSink:
    def __init__(self, error=None):
        self.calls = 0
        self.error = error or RuntimeError("sink offline")

    def emit(self, event):
        self.calls += 1
        raise self.error


class TestEventSinkFailures:
    def test_sink_failure_does_not_undo_operation(self, token, authority, clock):
        sink = ExplodingSink()
        ledger = build_ledger(token, authority, clock, sink)
        fund(token, ledger)

        schedule_id = create(ledger)
        clock.now = T0 + 172_800
        ledger.revoke(OWNER, schedule_id)

        assert sink.calls == 3
        assert ledger.get_vesting_schedule(schedule_id).revoked
        assert token.balance_of(ALICE) == 5

    def test_os_error_from_sink_keeps_release(self, token, authority, clock):
        sink = ExplodingSink(OSError("disk full"))
        ledger = build_ledger(token, authority, clock, sink)
        fund(token, ledger)
        schedule_id = create(ledger)
        clock.now = T0 + 172_800

        assert ledger.release(ALICE, schedule_id, 5) == 5
        assert ledger.get_vesting_schedule(schedule_id).released == 5
        assert ledger.get_vesting_schedules_total_amount() == 995
        assert token.balance_of(ALICE) == 5

    def test_sink_calling_back_into_ledger(self, token, authority, clock):
        class CallbackSink(RecordingEventSink):
            def emit(self, event):
                super().emit(event)
                if isinstance(event, TokensReleased):
                    ledger.withdraw(MALLORY, 1)

        sink = CallbackSink()
        ledger = build_ledger(token, authority, clock, sink)
        fund(token, ledger)
        schedule_id = create(ledger)
        clock.now = T0 + 172_800

        assert ledger.revoke(OWNER, schedule_id) == 995
        assert [type(event) for event in sink.events][-2:] == [
            TokensReleased,
            VestingScheduleRevoked,
        ]
        assert token.balance_of(ALICE) == 5


# ==================== Pause Gate ====================


class TestPauseGate:
    def test_all_mutations_blocked_while_paused(self, ledger, gate, clock):
        schedule_id = create(ledger)
        clock.now = T0 + YEAR
        gate.pause(OWNER)

        with pytest.raises(NotOperationalError):
            create(ledger)
        with pytest.raises(NotOperationalError):
            ledger.release(ALICE, schedule_id, 1)
        with pytest.raises(NotOperationalError):
            ledger.revoke(OWNER, schedule_id)
        with pytest.raises(NotOperationalError):
            ledger.withdraw(OWNER, 1)

        # Queries remain available
        assert ledger.compute_releasable_amount(schedule_id) == 1000

    def test_only_authority_pauses(self, gate):
        with pytest.raises(UnauthorizedError):
            gate.pause(MALLORY)
        assert gate.is_operational()

    def test_double_pause_and_unpause(self, gate):
        gate.pause(OWNER)
        with pytest.raises(NotOperationalError):
            gate.pause(OWNER)
        gate.unpause(OWNER)
        with pytest.raises(InvalidParameterError):
            gate.unpause(OWNER)


# ==================== Concurrency ====================


class TestConcurrency:
    def test_concurrent_releases_never_over_release(self, ledger, token, clock):
        schedule_id = create(ledger)
        clock.now = T0 + 172_800  # 5 releasable
        barrier = threading.Barrier(10)
        outcomes = []
        outcomes_lock = threading.Lock()

        def worker():
            barrier.wait()
            try:
                ledger.release(ALICE, schedule_id, 1)
                result = "ok"
            except InsufficientVestedError:
                result = "insufficient"
            with outcomes_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 5
        assert outcomes.count("insufficient") == 5
        assert token.balance_of(ALICE) == 5
        assert ledger.get_vesting_schedules_total_amount() == 995

    def test_concurrent_creates_keep_ids_unique(self, ledger):
        barrier = threading.Barrier(8)
        ids = []
        ids_lock = threading.Lock()

        def worker():
            barrier.wait()
            schedule_id = create(ledger, amount=10)
            with ids_lock:
                ids.append(schedule_id)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(set(ids)) == 8
        assert ledger.get_vesting_schedules_count_by_beneficiary(ALICE) == 8
        assert ledger.get_vesting_schedules_total_amount() == 80


def test_revocation_event_carries_forfeited_amount(ledger, sink, clock):
    schedule_id = create(ledger)
    clock.now = T0 + 172_800
    ledger.revoke(OWNER, schedule_id)
    revoked = sink.of_type(VestingScheduleRevoked)
    assert revoked[0].unreleased_forfeited == 995
