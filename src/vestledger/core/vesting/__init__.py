"""
Vesting schedule model and pure ledger components.

- schedule: VestingSchedule record and lifecycle state
- schedule_ids: deterministic (beneficiary, index) identifiers
- schedule_store: append-only schedule storage and indexes
- release_calculator: cliff + sliced linear release computation
- accounting: committed-balance guard
- events: ledger notifications and sinks
"""

from .accounting import AccountingGuard
from .events import (
    CompositeEventSink,
    EventSink,
    LoggingEventSink,
    RecordingEventSink,
    TokensReleased,
    TreasuryWithdrawn,
    VestingEvent,
    VestingScheduleCreated,
    VestingScheduleRevoked,
)
from .release_calculator import compute_releasable_amount, compute_vested_amount
from .schedule import ScheduleStatus, VestingSchedule
from .schedule_ids import compute_schedule_id
from .schedule_store import ScheduleStore

__all__ = [
    "AccountingGuard",
    "CompositeEventSink",
    "EventSink",
    "LoggingEventSink",
    "RecordingEventSink",
    "ScheduleStatus",
    "ScheduleStore",
    "TokensReleased",
    "TreasuryWithdrawn",
    "VestingEvent",
    "VestingSchedule",
    "VestingScheduleCreated",
    "VestingScheduleRevoked",
    "compute_releasable_amount",
    "compute_schedule_id",
    "compute_vested_amount",
]
