"""
Property-based tests for the release computation.

Properties:
1. Vested amount never decreases as time advances
2. 0 <= vested <= amount_total at every instant
3. Nothing vests before the cliff; everything has vested at the end
4. Vesting only moves at slice boundaries
5. Releasable amount is vested minus released, zero once revoked

Usage:
    pytest tests/vestledger_tests/property -v
"""

from hypothesis import assume, given, settings, strategies as st

from vestledger.core.vesting.release_calculator import (
    compute_releasable_amount,
    compute_vested_amount,
)
from vestledger.core.vesting.schedule import VestingSchedule

from tests.vestledger_tests.helpers import ALICE

# ============================================================================
# CUSTOM STRATEGIES
# ============================================================================

timestamps = st.integers(min_value=0, max_value=2**40)
token_amounts = st.integers(min_value=1, max_value=2**256 - 1)


@st.composite
def schedules(draw):
    """Generate initialized schedules satisfying the creation rules."""
    start = draw(st.integers(min_value=0, max_value=2**34))
    duration = draw(st.integers(min_value=1, max_value=10 * 365 * 86400))
    cliff_offset = draw(st.integers(min_value=0, max_value=duration))
    slice_period = draw(st.integers(min_value=1, max_value=duration))
    amount = draw(token_amounts)
    return VestingSchedule(
        initialized=True,
        beneficiary=ALICE,
        cliff=start + cliff_offset,
        start=start,
        duration=duration,
        slice_period_seconds=slice_period,
        revocable=draw(st.booleans()),
        amount_total=amount,
    )


# ============================================================================
# VESTING CURVE PROPERTIES
# ============================================================================


class TestVestingCurveProperties:
    @given(schedules(), timestamps, timestamps)
    @settings(max_examples=200)
    def test_monotonic_in_time(self, schedule, first, second):
        """Property: a later instant never has less vested."""
        earlier, later = sorted((first, second))
        assert compute_vested_amount(schedule, earlier) <= compute_vested_amount(schedule, later)

    @given(schedules(), timestamps)
    def test_bounded_by_total(self, schedule, now):
        vested = compute_vested_amount(schedule, now)
        assert 0 <= vested <= schedule.amount_total

    @given(schedules(), st.data())
    def test_zero_before_cliff(self, schedule, data):
        assume(schedule.cliff > 0)
        now = data.draw(st.integers(min_value=0, max_value=schedule.cliff - 1))
        assert compute_vested_amount(schedule, now) == 0

    @given(schedules(), st.integers(min_value=0, max_value=2**32))
    def test_fully_vested_at_end(self, schedule, extra):
        assert compute_vested_amount(schedule, schedule.end + extra) == schedule.amount_total

    @given(schedules(), st.data())
    @settings(max_examples=200)
    def test_constant_within_a_slice(self, schedule, data):
        """Property: between slice boundaries the vested amount does not move."""
        assume(schedule.cliff < schedule.end)
        now = data.draw(st.integers(min_value=schedule.cliff, max_value=schedule.end - 1))
        boundary = schedule.start + (
            (now - schedule.start) // schedule.slice_period_seconds
        ) * schedule.slice_period_seconds
        if boundary >= schedule.cliff:
            assert compute_vested_amount(schedule, now) == compute_vested_amount(schedule, boundary)

    @given(schedules(), st.data())
    def test_matches_integer_formula(self, schedule, data):
        assume(schedule.cliff < schedule.end)
        now = data.draw(st.integers(min_value=schedule.cliff, max_value=schedule.end - 1))
        elapsed = now - schedule.start
        vested_seconds = elapsed - elapsed % schedule.slice_period_seconds
        expected = schedule.amount_total * vested_seconds // schedule.duration
        assert compute_vested_amount(schedule, now) == expected


# ============================================================================
# RELEASABLE AMOUNT PROPERTIES
# ============================================================================


class TestReleasableProperties:
    @given(schedules(), timestamps, st.data())
    def test_releasable_is_vested_minus_released(self, schedule, now, data):
        vested = compute_vested_amount(schedule, now)
        schedule.released = data.draw(st.integers(min_value=0, max_value=vested))
        releasable = compute_releasable_amount(schedule, now)
        assert releasable == vested - schedule.released
        assert schedule.released + releasable <= schedule.amount_total

    @given(schedules(), timestamps)
    def test_revoked_releases_nothing(self, schedule, now):
        schedule.revoked = True
        assert compute_releasable_amount(schedule, now) == 0

    @given(schedules(), timestamps)
    def test_uninitialized_releases_nothing(self, schedule, now):
        schedule.initialized = False
        assert compute_vested_amount(schedule, now) == 0
        assert compute_releasable_amount(schedule, now) == 0
