"""
Plan commands for the ffund CLI.

Show the totals of a funding plan and what still blocks its submission.
"""
import json
from pathlib import Path

import click

from ffund.commands.snapshot import json_option, open_snapshot, settings_for, snapshot_option
from ffund.managers import PlanReviewer
from ffund.utils import format_currency, format_date


@click.group()
def plan():
    """Review the funding plan of a project snapshot."""
    pass


@plan.command(name="summary")
@snapshot_option
@json_option
def summary(snapshot_path: Path, json_output: bool):
    """Show phase goals, milestone allocation and campaign duration."""
    snapshot = open_snapshot(snapshot_path)
    result = PlanReviewer().summarize(
        snapshot.project, snapshot.phases, snapshot.milestones_by_phase()
    )

    if json_output:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return

    click.echo(f"Project: {snapshot.project.title or snapshot.project.id}")
    click.echo(f"Target: {format_currency(result.target_amount) if result.target_amount is not None else 'not set'}")
    click.echo(f"Total funding goal: {format_currency(result.total_funding_goal)}")
    if result.unallocated is not None:
        click.echo(f"Unallocated: {format_currency(result.unallocated)}")
    click.echo(f"Total duration: {result.total_duration_days} days")
    click.echo(f"Milestone coverage: {result.milestone_coverage}%")

    if not result.phases:
        click.echo("\nNo phases.")
        return

    click.echo("\nPhases:")
    for p in result.phases:
        status_indicator = " ✓" if p.remaining == 0 else ""
        click.echo(
            f"  {p.phase_number}. {p.name or p.phase_id} [{p.status.value}] "
            f"{format_date(p.start_date)} to {format_date(p.end_date)}"
        )
        click.echo(
            f"     {format_currency(p.allocated)} of {format_currency(p.funding_goal)} "
            f"allocated ({p.allocation_percentage}%), {p.milestone_count} milestone(s)"
            f"{status_indicator}"
        )


@plan.command(name="review")
@snapshot_option
@json_option
def review(snapshot_path: Path, json_output: bool):
    """List what keeps the plan from being complete.

    Exits with status 1 when anything is found.
    """
    snapshot = open_snapshot(snapshot_path)
    cap = settings_for(snapshot).max_milestone_percentage()
    issues = PlanReviewer().review(
        snapshot.project, snapshot.phases, snapshot.milestones_by_phase(), cap
    )

    if json_output:
        click.echo(json.dumps([i.model_dump(mode="json") for i in issues], indent=2))
    elif not issues:
        click.echo("✓ Plan is ready for submission.")
    else:
        click.echo(f"{len(issues)} issue(s) found:")
        for issue in issues:
            click.echo(f"  ✗ {issue.kind.value}: {issue.message}")

    if issues:
        click.get_current_context().exit(1)
