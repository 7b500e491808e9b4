"""
Vesting ledger instrumentation.

Provides Prometheus metrics tracking schedule creation, releases,
revocations, treasury withdrawals and the committed balance, plus an event
sink that updates them from ledger notifications.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge

from .vesting.events import (
    TokensReleased,
    TreasuryWithdrawn,
    VestingEvent,
    VestingScheduleCreated,
    VestingScheduleRevoked,
)

if TYPE_CHECKING:
    from .contracts.token_vesting import TokenVesting


class VestingMetrics:
    """Metric family bundle bound to one collector registry."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        self.schedules_created = Counter(
            "vestledger_schedules_created_total",
            "Total vesting schedules created",
            ["revocable"],
            registry=registry,
        )
        self.amount_committed = Counter(
            "vestledger_amount_committed_total",
            "Total base units committed to vesting schedules",
            registry=registry,
        )
        self.amount_released = Counter(
            "vestledger_amount_released_total",
            "Total base units released to beneficiaries",
            registry=registry,
        )
        self.release_events = Counter(
            "vestledger_release_events_total",
            "Total release operations",
            registry=registry,
        )
        self.schedules_revoked = Counter(
            "vestledger_schedules_revoked_total",
            "Total vesting schedules revoked",
            registry=registry,
        )
        self.amount_forfeited = Counter(
            "vestledger_amount_forfeited_total",
            "Total base units forfeited by revocation",
            registry=registry,
        )
        self.amount_withdrawn = Counter(
            "vestledger_amount_withdrawn_total",
            "Total base units withdrawn from the treasury",
            registry=registry,
        )
        self.committed_balance = Gauge(
            "vestledger_committed_balance",
            "Base units currently committed to live schedules",
            registry=registry,
        )

    def record(self, event: VestingEvent) -> None:
        """Update the metric families for one ledger event."""
        if isinstance(event, VestingScheduleCreated):
            self.schedules_created.labels(revocable=str(event.revocable).lower()).inc()
            self.amount_committed.inc(event.amount)
        elif isinstance(event, TokensReleased):
            self.release_events.inc()
            if event.amount > 0:
                self.amount_released.inc(event.amount)
        elif isinstance(event, VestingScheduleRevoked):
            self.schedules_revoked.inc()
            if event.unreleased_forfeited > 0:
                self.amount_forfeited.inc(event.unreleased_forfeited)
        elif isinstance(event, TreasuryWithdrawn):
            if event.amount > 0:
                self.amount_withdrawn.inc(event.amount)

    def set_committed(self, total_committed: int) -> None:
        """Mirror the ledger's committed total into the gauge."""
        self.committed_balance.set(total_committed)


_global_vesting_metrics: Optional[VestingMetrics] = None


def get_vesting_metrics() -> VestingMetrics:
    """Get the process-wide metrics bundle on the default registry."""
    global _global_vesting_metrics
    if _global_vesting_metrics is None:
        _global_vesting_metrics = VestingMetrics()
    return _global_vesting_metrics


class MetricsEventSink:
    """
    Event sink feeding ledger notifications into Prometheus.

    Counters are driven by events. The committed gauge is read from the
    bound ledger, so a ledger rebuilt from disk reports its real total.
    """

    def __init__(self, metrics: Optional[VestingMetrics] = None) -> None:
        self.metrics = metrics or get_vesting_metrics()
        self.ledger: Optional["TokenVesting"] = None

    def bind(self, ledger: "TokenVesting") -> None:
        self.ledger = ledger
        self.metrics.set_committed(ledger.get_vesting_schedules_total_amount())

    def emit(self, event: VestingEvent) -> None:
        self.metrics.record(event)
        if self.ledger is not None:
            self.metrics.set_committed(self.ledger.get_vesting_schedules_total_amount())
