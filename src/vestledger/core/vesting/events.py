"""
Ledger notifications and the sinks that consume them.

The ledger emits one record per successful mutation. Sinks implement
``emit(event)``; the defaults record events in memory, write them through
the structured logger, or fan out to several sinks.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..structured_logger import StructuredLogger


@dataclass(frozen=True)
class VestingScheduleCreated:
    schedule_id: str
    beneficiary: str
    cliff: int
    start: int
    duration: int
    slice_period_seconds: int
    revocable: bool
    amount: int
    timestamp: float = field(default_factory=time.time, compare=False)

    event_type = "VestingScheduleCreated"

    def to_dict(self) -> dict[str, Any]:
        return {"event_type": self.event_type, **asdict(self)}


@dataclass(frozen=True)
class TokensReleased:
    schedule_id: str
    beneficiary: str
    amount: int
    timestamp: float = field(default_factory=time.time, compare=False)

    event_type = "TokensReleased"

    def to_dict(self) -> dict[str, Any]:
        return {"event_type": self.event_type, **asdict(self)}


@dataclass(frozen=True)
class VestingScheduleRevoked:
    schedule_id: str
    beneficiary: str
    unreleased_forfeited: int
    timestamp: float = field(default_factory=time.time, compare=False)

    event_type = "VestingScheduleRevoked"

    def to_dict(self) -> dict[str, Any]:
        return {"event_type": self.event_type, **asdict(self)}


@dataclass(frozen=True)
class TreasuryWithdrawn:
    authority: str
    amount: int
    timestamp: float = field(default_factory=time.time, compare=False)

    event_type = "TreasuryWithdrawn"

    def to_dict(self) -> dict[str, Any]:
        return {"event_type": self.event_type, **asdict(self)}


VestingEvent = VestingScheduleCreated | TokensReleased | VestingScheduleRevoked | TreasuryWithdrawn


@runtime_checkable
class EventSink(Protocol):
    def emit(self, event: VestingEvent) -> None: ...


class RecordingEventSink:
    """Keeps every event in order; used by tests and the CLI."""

    def __init__(self) -> None:
        self.events: list[VestingEvent] = []

    def emit(self, event: VestingEvent) -> None:
        self.events.append(event)

    def of_type(self, event_cls: type) -> list[VestingEvent]:
        return [event for event in self.events if isinstance(event, event_cls)]

    def clear(self) -> None:
        self.events.clear()


class LoggingEventSink:
    """Writes events through a StructuredLogger."""

    def __init__(self, structured_logger: "StructuredLogger | None" = None) -> None:
        if structured_logger is None:
            from ..structured_logger import get_structured_logger

            structured_logger = get_structured_logger()
        self.logger = structured_logger

    def emit(self, event: VestingEvent) -> None:
        if isinstance(event, VestingScheduleCreated):
            self.logger.schedule_created(
                event.schedule_id,
                event.beneficiary,
                event.amount,
                event.start,
                event.cliff,
                event.duration,
                event.slice_period_seconds,
                event.revocable,
            )
        elif isinstance(event, TokensReleased):
            self.logger.tokens_released(event.schedule_id, event.beneficiary, event.amount)
        elif isinstance(event, VestingScheduleRevoked):
            self.logger.schedule_revoked(
                event.schedule_id, event.beneficiary, event.unreleased_forfeited
            )
        elif isinstance(event, TreasuryWithdrawn):
            self.logger.treasury_withdrawal(event.authority, event.amount)
        else:
            raise TypeError(f"Unsupported vesting event: {type(event).__name__}")


class CompositeEventSink:
    """Fans one event out to several sinks in order."""

    def __init__(self, *sinks: EventSink) -> None:
        self.sinks = list(sinks)

    def add(self, sink: EventSink) -> None:
        self.sinks.append(sink)

    def emit(self, event: VestingEvent) -> None:
        for sink in self.sinks:
            sink.emit(event)
