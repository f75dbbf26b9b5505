"""
Shared helpers for ffund CLI commands.

Loads snapshot files, builds allocators for them and prints results.
Commands only read snapshots; nothing is written back.
"""
import json
from datetime import date
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError

from ffund.constants import DATE_FORMAT_ERROR
from ffund.exceptions import SnapshotError
from ffund.managers import (
    MilestoneAllocator,
    MutationGatekeeper,
    PhaseAllocator,
    SettingsResolver,
)
from ffund.models.files import SnapshotFile
from ffund.models.results import AllocationResult
from ffund.stores import StaticSettingsStore
from ffund.utils import parse_date, to_decimal


class DecimalParam(click.ParamType):
    """Click parameter for currency amounts and ratios."""

    name = "amount"

    def convert(self, value, param, ctx):
        amount = to_decimal(value)
        if amount is None:
            self.fail(f"'{value}' is not a valid amount.", param, ctx)
        return amount


class DateParam(click.ParamType):
    """Click parameter accepting any supported date format."""

    name = "date"

    def convert(self, value, param, ctx):
        if isinstance(value, date):
            return value
        parsed = parse_date(value)
        if parsed is None:
            self.fail(DATE_FORMAT_ERROR, param, ctx)
        return parsed


DECIMAL = DecimalParam()
DATE = DateParam()

snapshot_option = click.option(
    "-s",
    "--snapshot",
    "snapshot_path",
    required=True,
    envvar="FFUND_SNAPSHOT",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Project snapshot JSON file (or $FFUND_SNAPSHOT).",
)
json_option = click.option("-j", "--json", "json_output", is_flag=True, help="Output in JSON format.")
yes_option = click.option("-y", "--yes", is_flag=True, help="Accept warnings without prompting.")
today_option = click.option("--today", type=DATE, default=None, help="Override today's date.")


def load_snapshot(path: Path) -> SnapshotFile:
    """Load and validate a snapshot file.

    Raises:
        SnapshotError: If the file is not valid JSON or does not match the schema.
    """
    try:
        with open(path, "r") as f:
            data = json.load(f)
        return SnapshotFile.model_validate(data)
    except (json.JSONDecodeError, ValidationError, OSError) as e:
        raise SnapshotError(f"Failed to load snapshot {path}: {e}")


def open_snapshot(path: Path) -> SnapshotFile:
    """``load_snapshot`` for commands: errors become ClickException."""
    try:
        return load_snapshot(path)
    except SnapshotError as e:
        raise click.ClickException(str(e))


def settings_for(snapshot: SnapshotFile) -> SettingsResolver:
    return SettingsResolver(StaticSettingsStore(snapshot.settings))


def phase_allocator_for(today: Optional[date] = None) -> PhaseAllocator:
    clock = (lambda: today) if today is not None else None
    return PhaseAllocator(MutationGatekeeper(), today=clock)


def milestone_allocator_for(snapshot: SnapshotFile) -> MilestoneAllocator:
    return MilestoneAllocator(MutationGatekeeper(), settings_for(snapshot))


def require_phase(snapshot: SnapshotFile, phase_ref: str):
    """Find a phase by id or number, or fail the command."""
    phase = snapshot.get_phase(phase_ref)
    if phase is None:
        raise click.ClickException(
            f"Phase '{phase_ref}' not found. Use a phase id or phase number."
        )
    return phase


def report(result: AllocationResult, json_output: bool, yes: bool, describe) -> None:
    """Print an allocator result.

    Errors exit with status 1. Warnings are echoed and must be confirmed
    unless ``yes`` is set; declining aborts with status 1.

    Args:
        result: Allocator result.
        json_output: Print the value and warnings as JSON instead of text.
        yes: Accept warnings without prompting.
        describe: Callable turning the result value into a one-line summary.
    """
    if not result.ok:
        issue = result.error
        if json_output:
            click.echo(json.dumps({"error": issue.model_dump(mode="json")}, indent=2))
            click.get_current_context().exit(1)
        raise click.ClickException(f"{issue.kind.value}: {issue.message}")

    if json_output:
        payload = {
            "value": result.value.model_dump(mode="json") if result.value is not None else None,
            "warnings": [w.model_dump(mode="json") for w in result.warnings],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    for warning in result.warnings:
        click.echo(f"  ⚠ {warning.message}", err=True)
    if result.warnings and not yes:
        click.confirm("Proceed anyway?", abort=True)

    click.echo(f"✓ {describe(result.value)}")
