"""
PlanReviewer for the ffund allocation engine.

Summarizes a funding plan and lists what still blocks submission.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from ffund.constants import (
    get_currency_tolerance,
    get_min_phase_duration_days,
    get_percentage_round_precision,
    get_phase_count_tiers,
    get_phase_gap_days,
)
from ffund.models.base import Milestone, Phase, PhaseStatus, Project
from ffund.models.results import AllocationIssue, ErrorKind
from ffund.utils import (
    format_currency,
    format_date,
    money_equal,
    percentage,
    floor_money,
    round_money,
    sum_money,
)


class PhaseAllocationSummary(BaseModel):
    """Allocation figures of one phase."""

    phase_id: str
    phase_number: int
    name: Optional[str] = None
    status: PhaseStatus
    funding_goal: Decimal
    allocated: Decimal
    remaining: Decimal
    allocation_percentage: float
    milestone_count: int
    start_date: date
    end_date: date
    duration_days: int


class PlanSummary(BaseModel):
    """Allocation figures of a whole project."""

    project_id: str
    target_amount: Optional[Decimal] = None
    total_funding_goal: Decimal
    unallocated: Optional[Decimal] = None
    total_duration_days: int
    milestone_coverage: float
    phases: List[PhaseAllocationSummary] = Field(default_factory=list)


class PlanReviewer:
    """
    Read-only checks over a complete project snapshot.

    Handles:
    - Totals: funding goal, unallocated target, campaign duration
    - Per-phase milestone allocation percentages
    - Milestone coverage (share of phases with at least one milestone)
    - Readiness issues: phase count for the project size, phase and
      milestone sums, duration and spacing of stored phases, milestone caps
    """

    def __init__(
        self,
        tolerance: Optional[Decimal] = None,
        min_duration_days: Optional[int] = None,
        gap_days: Optional[int] = None,
        phase_count_tiers: Optional[Sequence[Tuple[Decimal, int]]] = None,
        round_precision: Optional[int] = None,
    ) -> None:
        """
        Initialize PlanReviewer.

        Args:
            tolerance: Allowed difference for sum equality. Defaults to config value.
            min_duration_days: Minimum phase length. Defaults to config value.
            gap_days: Minimum days between phases. Defaults to config value.
            phase_count_tiers: (minimum target, required phases) pairs. Defaults to config value.
            round_precision: Decimal places for percentages. Defaults to config value.
        """
        self._tolerance = tolerance if tolerance is not None else get_currency_tolerance()
        self._min_duration = (
            min_duration_days if min_duration_days is not None else get_min_phase_duration_days()
        )
        self._gap_days = gap_days if gap_days is not None else get_phase_gap_days()
        tiers = phase_count_tiers if phase_count_tiers is not None else get_phase_count_tiers()
        self._tiers = sorted(((Decimal(str(t)), int(n)) for t, n in tiers), key=lambda tier: tier[0])
        self._round_precision = (
            round_precision if round_precision is not None else get_percentage_round_precision()
        )

    def required_phase_count(self, target: Optional[Decimal]) -> int:
        """Minimum number of phases for a project of this size."""
        required = 1
        if target is None:
            return required
        for threshold, count in self._tiers:
            if target >= threshold:
                required = count
        return required

    def summarize(
        self,
        project: Project,
        phases: List[Phase],
        milestones_by_phase: Dict[str, List[Milestone]],
    ) -> PlanSummary:
        """Build the totals shown next to the phase list."""
        ordered = sorted(phases, key=lambda p: p.phase_number)
        phase_summaries = []
        for phase in ordered:
            milestones = milestones_by_phase.get(phase.id, [])
            allocated = sum_money(m.price for m in milestones)
            goal = round_money(phase.funding_goal)
            phase_summaries.append(
                PhaseAllocationSummary(
                    phase_id=phase.id,
                    phase_number=phase.phase_number,
                    name=phase.name,
                    status=phase.status,
                    funding_goal=goal,
                    allocated=allocated,
                    remaining=goal - allocated,
                    allocation_percentage=percentage(allocated, goal, self._round_precision),
                    milestone_count=len(milestones),
                    start_date=phase.start_date,
                    end_date=phase.end_date,
                    duration_days=phase.duration_days,
                )
            )

        total = sum_money(p.funding_goal for p in ordered)
        target = (
            round_money(project.total_target_amount)
            if project.total_target_amount is not None
            else None
        )
        covered = sum(1 for s in phase_summaries if s.milestone_count > 0)
        return PlanSummary(
            project_id=project.id,
            target_amount=target,
            total_funding_goal=total,
            unallocated=None if target is None else target - total,
            total_duration_days=sum(p.duration_days for p in ordered),
            milestone_coverage=percentage(covered, len(ordered), self._round_precision)
            if ordered
            else 0.0,
            phases=phase_summaries,
        )

    def review(
        self,
        project: Project,
        phases: List[Phase],
        milestones_by_phase: Dict[str, List[Milestone]],
        max_percentage: Optional[Decimal] = None,
    ) -> List[AllocationIssue]:
        """List every issue that keeps the plan from being complete.

        Args:
            project: Project to review.
            phases: All phases of the project.
            milestones_by_phase: Milestones keyed by phase id.
            max_percentage: Per-milestone cap ratio; cap is not checked when None.

        Returns:
            Issues in plan order; empty when the plan is ready.
        """
        issues: List[AllocationIssue] = []
        ordered = sorted(phases, key=lambda p: p.phase_number)
        target = project.total_target_amount

        required = self.required_phase_count(target)
        if len(ordered) < required:
            issues.append(
                AllocationIssue(
                    kind=ErrorKind.TOO_FEW_PHASES,
                    message=(
                        f"This project needs at least {required} funding phase(s); "
                        f"{len(ordered)} defined."
                    ),
                    field="phases",
                    bound=str(required),
                )
            )

        total = sum_money(p.funding_goal for p in ordered)
        if target is None:
            issues.append(
                AllocationIssue(
                    kind=ErrorKind.TARGET_AMOUNT_UNAVAILABLE,
                    message="Project has no total target amount.",
                    field="total_target_amount",
                )
            )
        elif ordered and not money_equal(total, target, self._tolerance):
            issues.append(
                AllocationIssue(
                    kind=ErrorKind.UNBALANCED_PROJECT_ALLOCATION,
                    message=(
                        f"Phase goals total {format_currency(total)} but the project "
                        f"target is {format_currency(target)}."
                    ),
                    field="phases",
                    bound=str(round_money(target)),
                )
            )

        gap = timedelta(days=self._gap_days)
        previous: Optional[Phase] = None
        for phase in ordered:
            field = f"phases[{phase.phase_number}]"
            if phase.duration_days < self._min_duration:
                issues.append(
                    AllocationIssue(
                        kind=ErrorKind.DURATION_TOO_SHORT,
                        message=(
                            f"Phase {phase.phase_number} lasts {phase.duration_days} days; "
                            f"minimum is {self._min_duration}."
                        ),
                        field=field,
                        bound=str(self._min_duration),
                    )
                )
            if previous is not None and phase.start_date < previous.end_date + gap:
                earliest = previous.end_date + gap
                issues.append(
                    AllocationIssue(
                        kind=ErrorKind.START_DATE_TOO_EARLY,
                        message=(
                            f"Phase {phase.phase_number} starts {format_date(phase.start_date)}, "
                            f"before {format_date(earliest)}."
                        ),
                        field=field,
                        bound=format_date(earliest),
                    )
                )
            previous = phase

            milestones = milestones_by_phase.get(phase.id, [])
            allocated = sum_money(m.price for m in milestones)
            if not money_equal(allocated, phase.funding_goal, self._tolerance):
                issues.append(
                    AllocationIssue(
                        kind=ErrorKind.UNBALANCED_PHASE_ALLOCATION,
                        message=(
                            f"Milestones of phase {phase.phase_number} total "
                            f"{format_currency(allocated)}; phase goal is "
                            f"{format_currency(phase.funding_goal)}."
                        ),
                        field=field,
                        bound=str(round_money(phase.funding_goal)),
                    )
                )

            if max_percentage is not None:
                cap = round_money(phase.funding_goal) * max_percentage
                shown = floor_money(cap)
                for milestone in milestones:
                    if milestone.price > cap:
                        issues.append(
                            AllocationIssue(
                                kind=ErrorKind.EXCEEDS_PER_MILESTONE_CAP,
                                message=(
                                    f"Milestone '{milestone.title}' costs "
                                    f"{format_currency(milestone.price)}, above the "
                                    f"{format_currency(shown)} cap of phase {phase.phase_number}."
                                ),
                                field=f"{field}.milestones",
                                bound=str(shown),
                            )
                        )

        return issues

    def is_ready(
        self,
        project: Project,
        phases: List[Phase],
        milestones_by_phase: Dict[str, List[Milestone]],
        max_percentage: Optional[Decimal] = None,
    ) -> bool:
        """True when ``review`` finds nothing."""
        return not self.review(project, phases, milestones_by_phase, max_percentage)
