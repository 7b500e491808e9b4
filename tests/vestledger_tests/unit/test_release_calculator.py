"""
Release Calculator - cliff, slice quantization and end-of-schedule tests.
"""

import pytest

from vestledger.core.vesting.release_calculator import (
    compute_releasable_amount,
    compute_vested_amount,
)
from vestledger.core.vesting.schedule import ScheduleStatus, VestingSchedule

from tests.vestledger_tests.helpers import ALICE, DAY, T0, YEAR


def make_schedule(**overrides) -> VestingSchedule:
    fields = dict(
        initialized=True,
        beneficiary=ALICE,
        start=T0,
        cliff=T0 + DAY,
        duration=YEAR,
        slice_period_seconds=DAY,
        revocable=True,
        amount_total=1000,
    )
    fields.update(overrides)
    return VestingSchedule(**fields)


class TestReferenceScenario:
    """One year, one day cliff, daily slices, 1000 units."""

    def test_nothing_before_cliff(self):
        assert compute_releasable_amount(make_schedule(), T0 + 43_200) == 0

    def test_two_slices_after_cliff(self):
        # 1000 * 172800 // 31536000 == 5
        assert compute_releasable_amount(make_schedule(), T0 + 172_800) == 5

    def test_everything_after_end(self):
        assert compute_releasable_amount(make_schedule(), T0 + 31_622_400) == 1000

    def test_exactly_at_end(self):
        assert compute_releasable_amount(make_schedule(), T0 + YEAR) == 1000

    def test_exactly_at_cliff(self):
        # One whole slice has elapsed at the cliff
        assert compute_vested_amount(make_schedule(), T0 + DAY) == 1000 * DAY // YEAR


class TestSliceQuantization:
    def test_partial_slice_does_not_vest(self):
        schedule = make_schedule(cliff=T0)
        assert compute_vested_amount(schedule, T0 + DAY - 1) == 0
        assert compute_vested_amount(schedule, T0 + DAY) == 2

    def test_value_constant_within_slice(self):
        schedule = make_schedule(cliff=T0)
        at_slice = compute_vested_amount(schedule, T0 + 10 * DAY)
        assert compute_vested_amount(schedule, T0 + 10 * DAY + DAY - 1) == at_slice

    def test_slice_of_one_second_is_linear(self):
        schedule = make_schedule(cliff=T0, duration=100, slice_period_seconds=1, amount_total=100)
        assert compute_vested_amount(schedule, T0 + 37) == 37


class TestReleasedAndRevoked:
    def test_released_is_subtracted(self):
        schedule = make_schedule(released=3)
        assert compute_releasable_amount(schedule, T0 + 172_800) == 2

    def test_after_end_returns_unreleased(self):
        schedule = make_schedule(released=400)
        assert compute_releasable_amount(schedule, T0 + 2 * YEAR) == 600

    def test_revoked_releases_nothing(self):
        schedule = make_schedule(revoked=True)
        assert compute_releasable_amount(schedule, T0 + 2 * YEAR) == 0
        assert schedule.status is ScheduleStatus.REVOKED

    def test_uninitialized_releases_nothing(self):
        schedule = VestingSchedule()
        assert compute_vested_amount(schedule, T0) == 0
        assert compute_releasable_amount(schedule, T0) == 0
        assert schedule.status is ScheduleStatus.UNINITIALIZED

    def test_inconsistent_state_clamps_to_zero(self):
        schedule = make_schedule(released=900)
        assert compute_releasable_amount(schedule, T0 + 172_800) == 0


class TestLargeAmounts:
    def test_no_precision_loss_at_uint256_scale(self):
        amount = 2**255
        schedule = make_schedule(cliff=T0, amount_total=amount, slice_period_seconds=1)
        half = T0 + YEAR // 2
        assert compute_vested_amount(schedule, half) == amount * (YEAR // 2) // YEAR

    @pytest.mark.parametrize("now", [T0 + YEAR, T0 + 10 * YEAR])
    def test_full_amount_at_or_after_end(self, now):
        amount = 10**30 + 7
        schedule = make_schedule(amount_total=amount)
        assert compute_vested_amount(schedule, now) == amount


class TestScheduleRecord:
    def test_end_and_unreleased(self):
        schedule = make_schedule(released=250)
        assert schedule.end == T0 + YEAR
        assert schedule.unreleased == 750
        assert schedule.status is ScheduleStatus.ACTIVE

    def test_dict_round_trip(self):
        schedule = make_schedule(released=5)
        assert VestingSchedule.from_dict(schedule.to_dict()) == schedule
