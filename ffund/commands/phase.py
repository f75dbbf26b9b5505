"""
Phase commands for the ffund CLI.

Check a phase addition, change or removal against a project snapshot.
"""
from pathlib import Path
from typing import Optional

import click

from ffund.commands.snapshot import (
    DATE,
    DECIMAL,
    json_option,
    open_snapshot,
    phase_allocator_for,
    require_phase,
    report,
    snapshot_option,
    today_option,
    yes_option,
)
from ffund.exceptions import AllocationStateError
from ffund.models.proposals import PhaseCandidate, PhaseChanges
from ffund.utils import format_currency, format_date


@click.group()
def phase():
    """Check funding phase changes against a project snapshot."""
    pass


def _describe_phase(value) -> str:
    return (
        f"Phase {value.phase_number}: {format_currency(value.funding_goal)}, "
        f"{format_date(value.start_date)} to {format_date(value.end_date)} "
        f"({value.duration_days} days)"
    )


@phase.command(name="add")
@snapshot_option
@click.option("-g", "--goal", type=DECIMAL, help="Funding goal of the phase.")
@click.option("--start", "start_date", type=DATE, help="Start date of the phase.")
@click.option("-d", "--duration", type=int, help="Duration in days.")
@click.option("-n", "--name", help="Phase name.")
@click.option("--description", help="Phase description.")
@today_option
@yes_option
@json_option
def add_phase(snapshot_path: Path, goal, start_date, duration: Optional[int],
              name: Optional[str], description: Optional[str], today, yes: bool,
              json_output: bool):
    """Check a new phase appended to the project."""
    snapshot = open_snapshot(snapshot_path)
    candidate = PhaseCandidate(
        funding_goal=goal,
        start_date=start_date,
        duration_days=duration,
        name=name,
        description=description,
    )
    try:
        result = phase_allocator_for(today).propose_add_phase(
            snapshot.project, snapshot.phases, candidate
        )
    except AllocationStateError as e:
        raise click.ClickException(str(e))
    report(result, json_output, yes, lambda value: f"Would add {_describe_phase(value)}")


@phase.command(name="update")
@click.argument("phase_ref")
@snapshot_option
@click.option("-g", "--goal", type=DECIMAL, help="New funding goal.")
@click.option("--start", "start_date", type=DATE, help="New start date.")
@click.option("-d", "--duration", type=int, help="New duration in days.")
@click.option("-n", "--name", help="New phase name.")
@click.option("--description", help="New phase description.")
@today_option
@yes_option
@json_option
def update_phase(phase_ref: str, snapshot_path: Path, goal, start_date,
                 duration: Optional[int], name: Optional[str],
                 description: Optional[str], today, yes: bool, json_output: bool):
    """Check changes to a phase.

    PHASE_REF is a phase id or phase number.
    """
    snapshot = open_snapshot(snapshot_path)
    current = require_phase(snapshot, phase_ref)
    changes = PhaseChanges(
        funding_goal=goal,
        start_date=start_date,
        duration_days=duration,
        name=name,
        description=description,
    )
    if changes.is_empty():
        raise click.ClickException("Nothing to change. Pass at least one option.")
    try:
        result = phase_allocator_for(today).propose_update_phase(
            snapshot.project, snapshot.phases, current.id, changes
        )
    except AllocationStateError as e:
        raise click.ClickException(str(e))
    report(result, json_output, yes, lambda value: f"Would update {_describe_phase(value)}")


@phase.command(name="remove")
@click.argument("phase_ref")
@snapshot_option
@yes_option
@json_option
def remove_phase(phase_ref: str, snapshot_path: Path, yes: bool, json_output: bool):
    """Check removing a phase and show the renumbered sequence.

    PHASE_REF is a phase id or phase number.
    """
    snapshot = open_snapshot(snapshot_path)
    current = require_phase(snapshot, phase_ref)
    try:
        result = phase_allocator_for().propose_remove_phase(
            snapshot.project, snapshot.phases, current.id
        )
    except AllocationStateError as e:
        raise click.ClickException(str(e))

    def describe(plan) -> str:
        lines = [f"Would remove phase {current.phase_number} ({current.id})"]
        for p in plan.renumbered_phases:
            lines.append(f"  {p.phase_number}. {p.name or p.id} {format_currency(p.funding_goal)}")
        lines.append(f"  Allocated: {format_currency(plan.remaining_total)}")
        return "\n".join(lines)

    report(result, json_output, yes, describe)
