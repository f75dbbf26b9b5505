"""
Milestone commands for the ffund CLI.

Check milestone additions, changes and removals against a phase in a
project snapshot, and show how much of a phase goal is still open.
"""
import json
from pathlib import Path
from typing import Optional

import click

from ffund.commands.snapshot import (
    DECIMAL,
    json_option,
    milestone_allocator_for,
    open_snapshot,
    report,
    require_phase,
    snapshot_option,
    yes_option,
)
from ffund.exceptions import AllocationStateError
from ffund.models.files import SnapshotFile
from ffund.models.proposals import MilestoneCandidate, MilestoneChanges
from ffund.utils import format_currency


@click.group()
def milestone():
    """Check milestone changes against a project snapshot."""
    pass


def _milestone_and_phase(snapshot: SnapshotFile, milestone_id: str):
    """Find a milestone and its phase, or fail the command."""
    current = next((m for m in snapshot.milestones if m.id == milestone_id), None)
    if current is None:
        raise click.ClickException(f"Milestone '{milestone_id}' not found.")
    phase = next((p for p in snapshot.phases if p.id == current.phase_id), None)
    if phase is None:
        raise click.ClickException(
            f"Milestone '{milestone_id}' belongs to phase '{current.phase_id}', "
            f"which is not in the snapshot."
        )
    return current, phase


def _describe_milestone(value) -> str:
    return f"'{value.title}' at {format_currency(value.price)}"


@milestone.command(name="add")
@click.argument("phase_ref")
@snapshot_option
@click.option("-t", "--title", help="Milestone title.")
@click.option("-p", "--price", type=DECIMAL, help="Milestone price.")
@click.option("--description", help="Milestone description.")
@click.option("--max-percentage", type=DECIMAL,
              help="Per-milestone cap (0.2 or 20). Defaults to the snapshot setting.")
@yes_option
@json_option
def add_milestone(phase_ref: str, snapshot_path: Path, title: Optional[str], price,
                  description: Optional[str], max_percentage, yes: bool,
                  json_output: bool):
    """Check a new milestone for a phase.

    PHASE_REF is a phase id or phase number.
    """
    snapshot = open_snapshot(snapshot_path)
    target = require_phase(snapshot, phase_ref)
    candidate = MilestoneCandidate(title=title, price=price, description=description)
    try:
        result = milestone_allocator_for(snapshot).propose_add_milestone(
            target,
            snapshot.milestones_for(target.id),
            candidate,
            max_percentage=max_percentage,
            project=snapshot.project,
        )
    except AllocationStateError as e:
        raise click.ClickException(str(e))
    report(
        result, json_output, yes,
        lambda value: f"Would add milestone {_describe_milestone(value)} to phase {target.phase_number}",
    )


@milestone.command(name="update")
@click.argument("milestone_id")
@snapshot_option
@click.option("-t", "--title", help="New title.")
@click.option("-p", "--price", type=DECIMAL, help="New price.")
@click.option("--description", help="New description.")
@click.option("--max-percentage", type=DECIMAL,
              help="Per-milestone cap (0.2 or 20). Defaults to the snapshot setting.")
@yes_option
@json_option
def update_milestone(milestone_id: str, snapshot_path: Path, title: Optional[str], price,
                     description: Optional[str], max_percentage, yes: bool,
                     json_output: bool):
    """Check changes to a milestone."""
    snapshot = open_snapshot(snapshot_path)
    current, target = _milestone_and_phase(snapshot, milestone_id)
    changes = MilestoneChanges(title=title, price=price, description=description)
    if not changes.model_dump(exclude_none=True):
        raise click.ClickException("Nothing to change. Pass at least one option.")
    try:
        result = milestone_allocator_for(snapshot).propose_update_milestone(
            target,
            snapshot.milestones_for(target.id),
            current.id,
            changes,
            max_percentage=max_percentage,
            project=snapshot.project,
        )
    except AllocationStateError as e:
        raise click.ClickException(str(e))
    report(
        result, json_output, yes,
        lambda value: f"Would update milestone {_describe_milestone(value)}",
    )


@milestone.command(name="remove")
@click.argument("milestone_id")
@snapshot_option
@yes_option
@json_option
def remove_milestone(milestone_id: str, snapshot_path: Path, yes: bool, json_output: bool):
    """Check removing a milestone."""
    snapshot = open_snapshot(snapshot_path)
    current, target = _milestone_and_phase(snapshot, milestone_id)
    try:
        result = milestone_allocator_for(snapshot).propose_remove_milestone(
            target, snapshot.milestones_for(target.id), current.id, project=snapshot.project
        )
    except AllocationStateError as e:
        raise click.ClickException(str(e))
    report(
        result, json_output, yes,
        lambda plan: (
            f"Would remove milestone '{current.title}'; "
            f"{format_currency(plan.unallocated)} of phase {target.phase_number} left to allocate"
        ),
    )


@milestone.command(name="remaining")
@click.argument("phase_ref")
@snapshot_option
@click.option("-x", "--excluding", "excluding_id", help="Leave this milestone out of the total.")
@json_option
def remaining(phase_ref: str, snapshot_path: Path, excluding_id: Optional[str],
              json_output: bool):
    """Show the unallocated part of a phase goal and the per-milestone cap.

    PHASE_REF is a phase id or phase number.
    """
    snapshot = open_snapshot(snapshot_path)
    target = require_phase(snapshot, phase_ref)
    allocator = milestone_allocator_for(snapshot)
    try:
        budget = allocator.compute_remaining_budget(
            target, snapshot.milestones_for(target.id), excluding_id
        )
    except AllocationStateError as e:
        raise click.ClickException(str(e))
    cap = allocator.max_allowed_price(target)

    if json_output:
        click.echo(json.dumps({
            "phase_id": target.id,
            "funding_goal": str(target.funding_goal),
            "remaining": str(budget),
            "max_milestone_price": str(cap),
        }, indent=2))
        return

    click.echo(f"Phase {target.phase_number}: {format_currency(target.funding_goal)} goal")
    click.echo(f"  Remaining: {format_currency(budget)}")
    click.echo(f"  Max per milestone: {format_currency(cap)}")
