"""
Vesting schedule record and lifecycle state.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class ScheduleStatus(Enum):
    """Per-schedule lifecycle state. REVOKED is terminal."""
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    REVOKED = "revoked"


@dataclass
class VestingSchedule:
    """
    One beneficiary's entitlement.

    ``cliff`` is absolute (start + cliff offset). ``amount_total`` and
    ``released`` are integer base units; ``released`` only ever grows and
    never exceeds ``amount_total``.
    """

    initialized: bool = False
    beneficiary: str = ""
    cliff: int = 0
    start: int = 0
    duration: int = 0
    slice_period_seconds: int = 1
    revocable: bool = False
    amount_total: int = 0
    released: int = 0
    revoked: bool = False

    @property
    def status(self) -> ScheduleStatus:
        if not self.initialized:
            return ScheduleStatus.UNINITIALIZED
        if self.revoked:
            return ScheduleStatus.REVOKED
        return ScheduleStatus.ACTIVE

    @property
    def end(self) -> int:
        return self.start + self.duration

    @property
    def unreleased(self) -> int:
        """Amount still owed to the beneficiary or forfeitable on revocation."""
        return self.amount_total - self.released

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VestingSchedule":
        return cls(
            initialized=bool(data.get("initialized", False)),
            beneficiary=data.get("beneficiary", ""),
            cliff=int(data.get("cliff", 0)),
            start=int(data.get("start", 0)),
            duration=int(data.get("duration", 0)),
            slice_period_seconds=int(data.get("slice_period_seconds", 1)),
            revocable=bool(data.get("revocable", False)),
            amount_total=int(data.get("amount_total", 0)),
            released=int(data.get("released", 0)),
            revoked=bool(data.get("revoked", False)),
        )
