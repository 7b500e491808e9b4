#!/usr/bin/env python3
"""
vestledger CLI Commands - Operator Interface over a Local Ledger

Every command loads the ledger from the state file, applies one operation
and saves the result:
- Ledger initialization with a freshly deployed token
- Schedule creation, listing, release and revocation
- Treasury withdrawal and pause control
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core import config as vest_config
from ..core.contracts.erc20 import ERC20Factory
from ..core.contracts.token_vesting import TokenVesting
from ..core.access_control import Ownable
from ..core.logging_config import setup_ledger_logging
from ..core.structured_logger import get_structured_logger
from ..core.vesting.events import CompositeEventSink, LoggingEventSink, RecordingEventSink
from ..core.vesting_exceptions import VestingError, get_error_context
from ..core.vesting_metrics import MetricsEventSink
from ..core.vesting_storage import VestingStorage

logger = logging.getLogger(__name__)
console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, extra={"event": "cli.error", **_safe_context(exc)})
    console.print(f"[bold red]Error:[/] {exc}", markup=True, highlight=False)
    sys.exit(exit_code)


def _safe_context(exc: Exception) -> dict[str, Any]:
    context = get_error_context(exc)
    return {"error_code": context.get("code", "unexpected"), "error_type": context["error_type"]}


def _emit_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def _build_sink(ctx: click.Context) -> CompositeEventSink:
    recorder = RecordingEventSink()
    ctx.obj["recorder"] = recorder
    structured = get_structured_logger(log_dir=vest_config.Config.LOG_DIR or None)
    sink = CompositeEventSink(recorder, LoggingEventSink(structured))
    if vest_config.Config.METRICS_ENABLED:
        metrics_sink = MetricsEventSink()
        ctx.obj["metrics_sink"] = metrics_sink
        sink.add(metrics_sink)
    return sink


def _bind_metrics(ctx: click.Context, ledger: TokenVesting) -> TokenVesting:
    metrics_sink = ctx.obj.get("metrics_sink")
    if metrics_sink is not None:
        metrics_sink.bind(ledger)
    return ledger


def _time_provider(ctx: click.Context):
    at = ctx.obj.get("at")
    if at is None:
        return None
    return lambda: at


def _load_ledger(ctx: click.Context) -> TokenVesting:
    storage: VestingStorage = ctx.obj["storage"]
    ledger = storage.load_ledger(event_sink=_build_sink(ctx), time_provider=_time_provider(ctx))
    return _bind_metrics(ctx, ledger)


def _save_ledger(ctx: click.Context, ledger: TokenVesting) -> None:
    ctx.obj["storage"].save_ledger(ledger)


def _recorded_events(ctx: click.Context) -> list[dict[str, Any]]:
    recorder = ctx.obj.get("recorder")
    if recorder is None:
        return []
    return [event.to_dict() for event in recorder.events]


def _ledger_summary(ledger: TokenVesting) -> dict[str, Any]:
    balance = ledger.token.balance_of(ledger.address)
    committed = ledger.get_vesting_schedules_total_amount()
    return {
        "address": ledger.address,
        "token": ledger.get_token(),
        "authority": ledger.authority.authority,
        "paused": not ledger.gate.is_operational(),
        "balance": balance,
        "total_committed": committed,
        "withdrawable": ledger.get_withdrawable_amount(),
        "schedule_count": ledger.get_vesting_schedules_count(),
        "current_time": ledger.get_current_time(),
        "solvent": 0 <= committed <= balance,
    }


def _schedule_row(ledger: TokenVesting, schedule_id: str) -> dict[str, Any]:
    schedule = ledger.get_vesting_schedule(schedule_id)
    return {
        "id": schedule_id,
        "beneficiary": schedule.beneficiary,
        "start": schedule.start,
        "cliff": schedule.cliff,
        "duration": schedule.duration,
        "slice_period_seconds": schedule.slice_period_seconds,
        "revocable": schedule.revocable,
        "amount_total": schedule.amount_total,
        "released": schedule.released,
        "vested": ledger.compute_vested_amount(schedule_id),
        "releasable": ledger.compute_releasable_amount(schedule_id),
        "status": schedule.status.value,
    }


@click.group()
@click.option(
    "--state-file",
    type=click.Path(dir_okay=False),
    envvar="VESTLEDGER_STATE_FILE",
    default=None,
    help="Ledger state file (defaults to the network's configured path)",
)
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.option("--at", type=int, default=None, help="Override the current Unix time")
@click.option("--verbose", "-v", is_flag=True, help="Log to stderr")
@click.pass_context
def cli(ctx: click.Context, state_file: str | None, json_output: bool, at: int | None, verbose: bool):
    """
    vestledger - Token Vesting Ledger

    Manage cliff + linear vesting schedules over a local ledger state file.
    Amounts are integer base units; times are Unix seconds.
    """
    ctx.ensure_object(dict)
    config = vest_config.Config
    setup_ledger_logging(config, enable_console=verbose)

    ctx.obj["storage"] = VestingStorage(state_file or config.STATE_FILE)
    ctx.obj["json_output"] = json_output
    ctx.obj["at"] = at


@cli.command("init")
@click.option("--owner", required=True, help="Authority address (token owner)")
@click.option("--supply", type=int, default=None, help="Initial token supply in base units")
@click.option("--fund", type=int, default=None, help="Amount moved into ledger custody (default: all)")
@click.option("--name", "token_name", default=None, help="Token name")
@click.option("--symbol", default=None, help="Token symbol")
@click.option("--decimals", type=int, default=None, help="Token decimals")
@click.option("--force", is_flag=True, help="Overwrite an existing state file")
@click.pass_context
def init_ledger(
    ctx: click.Context,
    owner: str,
    supply: int | None,
    fund: int | None,
    token_name: str | None,
    symbol: str | None,
    decimals: int | None,
    force: bool,
):
    """
    Deploy a token and an empty vesting ledger.

    Example:
        vestledger init --owner 0xOWNER --supply 1000000
    """
    config = vest_config.Config
    storage: VestingStorage = ctx.obj["storage"]

    try:
        if storage.exists():
            if not force:
                raise click.ClickException(
                    f"State file {storage.state_file} already exists (use --force to overwrite)"
                )
            if not config.ALLOW_STATE_RESET:
                raise click.ClickException("State reset is disabled on this network")

        supply = config.INITIAL_SUPPLY if supply is None else supply
        authority = Ownable(owner)
        token = ERC20Factory().create_token(
            creator=authority.owner,
            name=token_name or config.TOKEN_NAME,
            symbol=symbol or config.TOKEN_SYMBOL,
            decimals=config.TOKEN_DECIMALS if decimals is None else decimals,
            initial_supply=supply,
        )
        ledger = TokenVesting(
            token=token,
            authority=authority,
            event_sink=_build_sink(ctx),
            time_provider=_time_provider(ctx),
        )
        _bind_metrics(ctx, ledger)
        fund = supply if fund is None else fund
        if fund:
            token.transfer(authority.owner, ledger.address, fund)

        _save_ledger(ctx, ledger)
        summary = _ledger_summary(ledger)

        if ctx.obj.get("json_output"):
            _emit_json(summary)
            return

        console.print(
            Panel(
                f"Ledger [cyan]{ledger.address}[/]\n"
                f"Token [cyan]{token.address}[/] ({token.symbol})\n"
                f"Funded with [green]{fund}[/] base units",
                title="[bold green]Ledger Initialized",
                border_style="green",
            )
        )
    except (click.ClickException, VestingError, ValueError) as exc:
        _handle_cli_error(exc)


@cli.command("info")
@click.pass_context
def ledger_info(ctx: click.Context):
    """Show balances, committed total and withdrawable amount."""
    try:
        ledger = _load_ledger(ctx)
        summary = _ledger_summary(ledger)

        if ctx.obj.get("json_output"):
            _emit_json(summary)
            return

        table = Table(show_header=False, box=box.ROUNDED)
        table.add_row("[bold cyan]Ledger", summary["address"])
        table.add_row("[bold cyan]Token", summary["token"])
        table.add_row("[bold cyan]Authority", summary["authority"])
        table.add_row("[bold yellow]Paused", str(summary["paused"]))
        table.add_row("[bold green]Balance", str(summary["balance"]))
        table.add_row("[bold magenta]Committed", str(summary["total_committed"]))
        table.add_row("[bold green]Withdrawable", str(summary["withdrawable"]))
        table.add_row("[bold cyan]Schedules", str(summary["schedule_count"]))
        table.add_row("[bold cyan]Current Time", str(summary["current_time"]))
        solvent = "[green]yes" if summary["solvent"] else "[bold red]NO"
        table.add_row("[bold cyan]Solvent", solvent)
        console.print(Panel(table, title="[bold green]Vesting Ledger", border_style="green"))
    except (VestingError, ValueError) as exc:
        _handle_cli_error(exc)


@cli.command("create")
@click.option("--caller", required=True, help="Authority address")
@click.option("--beneficiary", required=True, help="Beneficiary address")
@click.option("--amount", type=int, required=True, help="Total base units to vest")
@click.option("--duration", type=int, required=True, help="Vesting duration in seconds")
@click.option("--cliff", type=int, default=0, show_default=True, help="Cliff offset in seconds")
@click.option("--start", type=int, default=None, help="Start time (default: now)")
@click.option("--slice", "slice_period", type=int, default=None, help="Slice period in seconds")
@click.option("--revocable/--non-revocable", default=True, show_default=True)
@click.pass_context
def create_schedule(
    ctx: click.Context,
    caller: str,
    beneficiary: str,
    amount: int,
    duration: int,
    cliff: int,
    start: int | None,
    slice_period: int | None,
    revocable: bool,
):
    """
    Create a vesting schedule.

    Example:
        vestledger create --caller 0xOWNER --beneficiary 0xBEN \\
            --amount 1000 --duration 31536000 --cliff 86400
    """
    try:
        ledger = _load_ledger(ctx)
        schedule_id = ledger.create_vesting_schedule(
            caller,
            beneficiary,
            ledger.get_current_time() if start is None else start,
            cliff,
            duration,
            vest_config.Config.DEFAULT_SLICE_PERIOD_SECONDS if slice_period is None else slice_period,
            revocable,
            amount,
        )
        _save_ledger(ctx, ledger)

        if ctx.obj.get("json_output"):
            _emit_json({"schedule_id": schedule_id, "events": _recorded_events(ctx)})
            return

        console.print(f"[bold green]Schedule created:[/] {schedule_id}")
    except (VestingError, ValueError) as exc:
        _handle_cli_error(exc)


@cli.command("schedules")
@click.option("--beneficiary", default=None, help="Only this beneficiary's schedules")
@click.pass_context
def list_schedules(ctx: click.Context, beneficiary: str | None):
    """List vesting schedules with their releasable amounts."""
    try:
        ledger = _load_ledger(ctx)
        if beneficiary:
            count = ledger.get_vesting_schedules_count_by_beneficiary(beneficiary)
            ids = [ledger.get_vesting_id_at_index_for_holder(beneficiary, i) for i in range(count)]
        else:
            ids = ledger.get_vesting_schedules_ids()
        rows = [_schedule_row(ledger, schedule_id) for schedule_id in ids]

        if ctx.obj.get("json_output"):
            _emit_json(rows)
            return

        if not rows:
            console.print("[yellow]No vesting schedules[/]")
            return

        table = Table(title="Vesting Schedules", box=box.ROUNDED)
        table.add_column("ID", style="cyan")
        table.add_column("Beneficiary", style="cyan")
        table.add_column("Total", justify="right")
        table.add_column("Released", justify="right")
        table.add_column("Releasable", justify="right", style="green")
        table.add_column("Status")
        for row in rows:
            status_style = "red" if row["status"] == "revoked" else "green"
            table.add_row(
                row["id"][:18] + "...",
                row["beneficiary"][:10] + "...",
                str(row["amount_total"]),
                str(row["released"]),
                str(row["releasable"]),
                f"[{status_style}]{row['status']}",
            )
        console.print(table)
    except (VestingError, ValueError) as exc:
        _handle_cli_error(exc)


@cli.command("release")
@click.option("--caller", required=True, help="Beneficiary or authority address")
@click.option("--schedule-id", required=True, help="Schedule id")
@click.option("--amount", type=int, default=None, help="Amount to release (default: all releasable)")
@click.pass_context
def release_tokens(ctx: click.Context, caller: str, schedule_id: str, amount: int | None):
    """Release vested tokens to the beneficiary."""
    try:
        ledger = _load_ledger(ctx)
        if amount is None:
            amount = ledger.compute_releasable_amount(schedule_id)
        released = ledger.release(caller, schedule_id, amount)
        _save_ledger(ctx, ledger)

        if ctx.obj.get("json_output"):
            _emit_json({"schedule_id": schedule_id, "released": released, "events": _recorded_events(ctx)})
            return

        console.print(f"[bold green]Released[/] {released} base units from {schedule_id[:18]}...")
    except (VestingError, ValueError) as exc:
        _handle_cli_error(exc)


@cli.command("revoke")
@click.option("--caller", required=True, help="Authority address")
@click.option("--schedule-id", required=True, help="Schedule id")
@click.pass_context
def revoke_schedule(ctx: click.Context, caller: str, schedule_id: str):
    """Revoke a schedule, paying out what has vested."""
    try:
        ledger = _load_ledger(ctx)
        forfeited = ledger.revoke(caller, schedule_id)
        _save_ledger(ctx, ledger)

        if ctx.obj.get("json_output"):
            _emit_json({"schedule_id": schedule_id, "forfeited": forfeited, "events": _recorded_events(ctx)})
            return

        console.print(
            f"[bold yellow]Revoked[/] {schedule_id[:18]}... ({forfeited} base units forfeited)"
        )
    except (VestingError, ValueError) as exc:
        _handle_cli_error(exc)


@cli.command("withdraw")
@click.option("--caller", required=True, help="Authority address")
@click.option("--amount", type=int, required=True, help="Amount to withdraw")
@click.pass_context
def withdraw_tokens(ctx: click.Context, caller: str, amount: int):
    """Withdraw uncommitted tokens to the authority."""
    try:
        ledger = _load_ledger(ctx)
        withdrawn = ledger.withdraw(caller, amount)
        _save_ledger(ctx, ledger)

        if ctx.obj.get("json_output"):
            _emit_json({"withdrawn": withdrawn, "withdrawable": ledger.get_withdrawable_amount()})
            return

        console.print(f"[bold green]Withdrew[/] {withdrawn} base units")
    except (VestingError, ValueError) as exc:
        _handle_cli_error(exc)


@cli.command("pause")
@click.option("--caller", required=True, help="Authority address")
@click.pass_context
def pause_ledger(ctx: click.Context, caller: str):
    """Pause every mutating ledger operation."""
    try:
        ledger = _load_ledger(ctx)
        ledger.gate.pause(caller)
        _save_ledger(ctx, ledger)

        if ctx.obj.get("json_output"):
            _emit_json({"paused": True})
            return

        console.print("[bold yellow]Ledger paused[/]")
    except (VestingError, ValueError) as exc:
        _handle_cli_error(exc)


@cli.command("unpause")
@click.option("--caller", required=True, help="Authority address")
@click.pass_context
def unpause_ledger(ctx: click.Context, caller: str):
    """Resume ledger operations."""
    try:
        ledger = _load_ledger(ctx)
        ledger.gate.unpause(caller)
        _save_ledger(ctx, ledger)

        if ctx.obj.get("json_output"):
            _emit_json({"paused": False})
            return

        console.print("[bold green]Ledger unpaused[/]")
    except (VestingError, ValueError) as exc:
        _handle_cli_error(exc)
