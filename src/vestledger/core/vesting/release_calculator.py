"""
Time-based release computation.

Vesting is cliff-gated, linear over ``duration`` and quantized to whole
slice periods. All arithmetic is on Python ints and multiplies before it
divides, so ``amount_total * vested_seconds`` never loses precision or
wraps, whatever the token quantity or duration.
"""

from __future__ import annotations

from .schedule import VestingSchedule


def compute_vested_amount(schedule: VestingSchedule, now: int) -> int:
    """
    Total amount vested at ``now``, including what was already released.

    Args:
        schedule: Schedule to evaluate
        now: Current Unix timestamp in seconds

    Returns:
        Vested amount in base units (0 before the cliff)
    """
    if not schedule.initialized:
        return 0
    if now < schedule.cliff:
        return 0
    if now >= schedule.start + schedule.duration:
        return schedule.amount_total

    elapsed = now - schedule.start
    vested_slice_periods = elapsed // schedule.slice_period_seconds
    vested_seconds = vested_slice_periods * schedule.slice_period_seconds
    return schedule.amount_total * vested_seconds // schedule.duration


def compute_releasable_amount(schedule: VestingSchedule, now: int) -> int:
    """
    Amount the beneficiary may withdraw at ``now``.

    Uninitialized and revoked schedules release nothing; past the end of
    the schedule everything not yet released is releasable.
    """
    if not schedule.initialized or schedule.revoked:
        return 0
    # Invariant released <= vested keeps this non-negative for valid state
    return max(0, compute_vested_amount(schedule, now) - schedule.released)
