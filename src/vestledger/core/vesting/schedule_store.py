"""
Append-only storage of vesting schedules.

Schedules are keyed by id; each beneficiary has an ordered list of its ids
and the store keeps the global creation order. Nothing is ever removed.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterator

from ..address_utils import normalize_address
from ..vesting_exceptions import CorruptedDataError, ScheduleNotFoundError
from .schedule import VestingSchedule
from .schedule_ids import compute_schedule_id

logger = logging.getLogger(__name__)


class ScheduleStore:
    """Schedules by id plus per-beneficiary and global id indexes."""

    def __init__(self) -> None:
        self._schedules: dict[str, VestingSchedule] = {}
        self._holder_ids: dict[str, list[str]] = {}
        self._ids: list[str] = []

    # ==================== Identifier Allocation ====================

    def next_id(self, beneficiary: str) -> str:
        """Id the next schedule for ``beneficiary`` will receive."""
        return compute_schedule_id(beneficiary, self.count_for(beneficiary))

    # ==================== Mutation ====================

    def insert(self, schedule: VestingSchedule) -> str:
        """
        Store a new schedule under the beneficiary's next id.

        Returns:
            The allocated schedule id
        """
        holder = normalize_address(schedule.beneficiary)
        schedule_id = self.next_id(holder)
        if schedule_id in self._schedules:
            # Only reachable through tampered persisted state
            raise CorruptedDataError(f"Schedule id {schedule_id} already allocated")

        schedule.beneficiary = holder
        self._schedules[schedule_id] = schedule
        self._holder_ids.setdefault(holder, []).append(schedule_id)
        self._ids.append(schedule_id)

        logger.debug(
            "Schedule stored",
            extra={
                "event": "store.insert",
                "schedule_id": schedule_id[:18],
                "index": len(self._holder_ids[holder]) - 1,
            },
        )
        return schedule_id

    def restore(self, schedule_id: str, snapshot: VestingSchedule) -> None:
        """Put back a schedule's field values captured by ``snapshot_of``."""
        if schedule_id not in self._schedules:
            raise ScheduleNotFoundError(f"Vesting schedule {schedule_id} not found")
        self._schedules[schedule_id] = replace(snapshot)

    def snapshot_of(self, schedule_id: str) -> VestingSchedule:
        return replace(self.get(schedule_id))

    # ==================== Queries ====================

    def find(self, schedule_id: str) -> VestingSchedule | None:
        if not isinstance(schedule_id, str):
            return None
        schedule = self._schedules.get(schedule_id)
        if schedule is None or not schedule.initialized:
            return None
        return schedule

    def get(self, schedule_id: str) -> VestingSchedule:
        """
        Get an initialized schedule.

        Raises:
            ScheduleNotFoundError: If no schedule exists under ``schedule_id``
        """
        schedule = self.find(schedule_id)
        if schedule is None:
            raise ScheduleNotFoundError(
                f"Vesting schedule {schedule_id} not found",
                details={"schedule_id": schedule_id},
            )
        return schedule

    def count_for(self, beneficiary: str) -> int:
        return len(self._holder_ids.get(normalize_address(beneficiary), ()))

    def ids_for(self, beneficiary: str) -> list[str]:
        return list(self._holder_ids.get(normalize_address(beneficiary), ()))

    def id_at(self, beneficiary: str, index: int) -> str:
        """
        Id of the beneficiary's ``index``-th schedule.

        Raises:
            ScheduleNotFoundError: If ``index`` is out of bounds
        """
        ids = self._holder_ids.get(normalize_address(beneficiary), [])
        if index < 0 or index >= len(ids):
            raise ScheduleNotFoundError(
                f"Index {index} out of bounds for beneficiary with {len(ids)} schedules",
                details={"beneficiary": beneficiary, "index": index},
            )
        return ids[index]

    def id_at_global(self, index: int) -> str:
        """Id of the ``index``-th schedule ever created."""
        if index < 0 or index >= len(self._ids):
            raise ScheduleNotFoundError(
                f"Index {index} out of bounds for {len(self._ids)} schedules",
                details={"index": index},
            )
        return self._ids[index]

    def ids(self) -> list[str]:
        return list(self._ids)

    @property
    def schedule_count(self) -> int:
        return len(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, schedule_id: object) -> bool:
        return isinstance(schedule_id, str) and self.find(schedule_id) is not None

    def __iter__(self) -> Iterator[tuple[str, VestingSchedule]]:
        for schedule_id in self._ids:
            yield schedule_id, self._schedules[schedule_id]

    # ==================== Serialization ====================

    def to_dict(self) -> dict[str, Any]:
        return {
            "schedules": [
                {"id": schedule_id, **schedule.to_dict()} for schedule_id, schedule in self
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScheduleStore":
        """Rebuild a store by replaying schedules in creation order."""
        store = cls()
        for entry in data.get("schedules", []):
            entry = dict(entry)
            expected_id = entry.pop("id", None)
            schedule_id = store.insert(VestingSchedule.from_dict(entry))
            if expected_id is not None and expected_id != schedule_id:
                raise CorruptedDataError(
                    f"Stored schedule id {expected_id} does not match derived id {schedule_id}"
                )
        return store
