"""
PhaseAllocator for the ffund allocation engine.

Splits a project's funding target across an ordered sequence of
time-boxed phases.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, List, Optional, Tuple

from ffund.constants import (
    VALIDATION_DURATION_REQUIRED,
    VALIDATION_GOAL_REQUIRED,
    VALIDATION_START_REQUIRED,
    get_min_phase_duration_days,
    get_phase_gap_days,
)
from ffund.exceptions import AllocationStateError, StoreError
from ffund.managers.gatekeeper import MutationGatekeeper, MutationRequest
from ffund.models.base import Phase, Project
from ffund.models.proposals import (
    MutationKind,
    NormalizedPhase,
    PhaseCandidate,
    PhaseChanges,
)
from ffund.models.results import (
    AllocationIssue,
    AllocationResult,
    AllocationWarning,
    ErrorKind,
    RemovalPlan,
    WarningKind,
)
from ffund.utils import add_days, format_currency, format_date, round_money, sum_money

logger = logging.getLogger(__name__)

TargetLookup = Callable[[str], Optional[Decimal]]


class PhaseAllocator:
    """
    Validates phase proposals against a project snapshot.

    Handles:
    - Minimum phase duration (14 days by default)
    - Minimum gap between consecutive phases (7 days by default)
    - Phase goals never exceeding the project target
    - Under-allocation advisories
    - Removal plans with renumbered phases

    The allocator is stateless. Every call works on the snapshot it is
    given and returns new objects.
    """

    def __init__(
        self,
        gatekeeper: Optional[MutationGatekeeper] = None,
        target_lookup: Optional[TargetLookup] = None,
        today: Optional[Callable[[], date]] = None,
        min_duration_days: Optional[int] = None,
        gap_days: Optional[int] = None,
    ) -> None:
        """
        Initialize PhaseAllocator.

        Args:
            gatekeeper: Edit policy. Defaults to a MutationGatekeeper built from config.
            target_lookup: Fetches a project's target when the snapshot lacks it.
                Should raise StoreError or return None on failure.
            today: Clock for the first phase's earliest start. Defaults to date.today.
            min_duration_days: Minimum phase length. Defaults to config value.
            gap_days: Minimum days between phases. Defaults to config value.
        """
        self.gatekeeper = gatekeeper or MutationGatekeeper()
        self._target_lookup = target_lookup
        self._today = today or date.today
        self._min_duration = (
            min_duration_days if min_duration_days is not None else get_min_phase_duration_days()
        )
        self._gap = timedelta(
            days=gap_days if gap_days is not None else get_phase_gap_days()
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def min_allowed_start(self, existing_phases: List[Phase]) -> date:
        """Earliest start date for a phase appended after ``existing_phases``.

        Seven days after the latest existing end date, or seven days from
        today when there are no phases.
        """
        if not existing_phases:
            return self._today() + self._gap
        return max(phase.end_date for phase in existing_phases) + self._gap

    def allocated_total(self, existing_phases: List[Phase]) -> Decimal:
        """Sum of phase goals, rounded."""
        return sum_money(phase.funding_goal for phase in existing_phases)

    # =========================================================================
    # Proposals
    # =========================================================================

    def propose_add_phase(
        self,
        project: Project,
        existing_phases: List[Phase],
        candidate: PhaseCandidate,
    ) -> AllocationResult[NormalizedPhase]:
        """Validate a new phase appended to the project.

        Args:
            project: Owning project.
            existing_phases: Current phases of the project.
            candidate: Requested funding goal, start date and duration.

        Returns:
            The normalized phase, with a PartialAllocationWarning when it is
            the first phase and leaves the target under-allocated.
        """
        phases = self._ordered(project, existing_phases)

        missing = self._check_required(candidate)
        if missing:
            return AllocationResult.from_issue(missing)

        auth = self.gatekeeper.authorize(
            MutationRequest(kind=MutationKind.ADD_PHASE, project=project)
        )
        if not auth.ok:
            return AllocationResult.from_issue(auth.error)

        issue = self._check_duration(candidate.duration_days)
        if issue:
            return AllocationResult.from_issue(issue)

        issue = self._check_start(candidate.start_date, self.min_allowed_start(phases))
        if issue:
            return AllocationResult.from_issue(issue)

        target, issue = self._resolve_target(project)
        if issue:
            return AllocationResult.from_issue(issue)

        existing_total = self.allocated_total(phases)
        goal = round_money(candidate.funding_goal)
        new_total = existing_total + goal
        if new_total > target:
            return self._exceeds_target(target, existing_total, goal)

        warnings = []
        if new_total < target and not phases:
            warnings.append(self._partial_warning(new_total, target))

        normalized = NormalizedPhase(
            project_id=project.id,
            phase_number=len(phases) + 1,
            name=candidate.name,
            description=candidate.description,
            funding_goal=goal,
            start_date=candidate.start_date,
            duration_days=candidate.duration_days,
            end_date=add_days(candidate.start_date, candidate.duration_days),
        )
        logger.debug(
            "Accepted phase %d for project %s: goal=%s total=%s/%s",
            normalized.phase_number, project.id, goal, new_total, target,
        )
        return AllocationResult.success(normalized, warnings)

    def propose_update_phase(
        self,
        project: Project,
        existing_phases: List[Phase],
        phase_id: str,
        changes: PhaseChanges,
    ) -> AllocationResult[NormalizedPhase]:
        """Validate changes to an existing phase.

        The phase is taken out of the sequence and re-inserted with the new
        values: its start must respect the preceding phase, its end must
        leave the gap before the following phase, and the project total is
        recomputed without its old goal.
        """
        phases = self._ordered(project, existing_phases)

        current = next((p for p in phases if p.id == phase_id), None)
        if current is None:
            return self._phase_not_found(phase_id)

        auth = self.gatekeeper.authorize(
            MutationRequest(
                kind=MutationKind.UPDATE_PHASE, project=project, target_phase=current
            )
        )
        if not auth.ok:
            return AllocationResult.from_issue(auth.error)

        if changes.funding_goal is not None:
            self._check_amount(changes.funding_goal)
            if round_money(changes.funding_goal) == 0:
                return AllocationResult.failure(
                    ErrorKind.MISSING_REQUIRED_FIELD, VALIDATION_GOAL_REQUIRED, field="funding_goal"
                )
        candidate = changes.merged_with(current)
        self._check_amount(candidate.funding_goal)

        index = phases.index(current)
        preceding = phases[:index]
        following = phases[index + 1:]

        issue = self._check_duration(candidate.duration_days)
        if issue:
            return AllocationResult.from_issue(issue)

        # An untouched start date is only re-checked against the previous phase,
        # so a planned phase whose start is near does not become uneditable.
        if preceding or changes.start_date is not None:
            issue = self._check_start(candidate.start_date, self.min_allowed_start(preceding))
            if issue:
                return AllocationResult.from_issue(issue)

        end_date = add_days(candidate.start_date, candidate.duration_days)
        if following:
            latest_end = following[0].start_date - self._gap
            if end_date > latest_end:
                return AllocationResult.failure(
                    ErrorKind.SCHEDULE_CONFLICT,
                    f"Phase {current.phase_number} would end on {format_date(end_date)}, "
                    f"leaving less than {self._gap.days} days before phase "
                    f"{following[0].phase_number} starts. Latest allowed end date is "
                    f"{format_date(latest_end)}.",
                    field="duration_days",
                    bound=format_date(latest_end),
                )

        target, issue = self._resolve_target(project)
        if issue:
            return AllocationResult.from_issue(issue)

        others_total = self.allocated_total([p for p in phases if p.id != phase_id])
        goal = round_money(candidate.funding_goal)
        new_total = others_total + goal
        if new_total > target:
            return self._exceeds_target(target, others_total, goal)

        warnings = []
        if new_total < target:
            warnings.append(self._partial_warning(new_total, target))

        normalized = NormalizedPhase(
            id=current.id,
            project_id=project.id,
            phase_number=current.phase_number,
            name=candidate.name,
            description=candidate.description,
            funding_goal=goal,
            start_date=candidate.start_date,
            duration_days=candidate.duration_days,
            end_date=end_date,
            status=current.status,
        )
        logger.debug(
            "Accepted update of phase %s: goal=%s total=%s/%s",
            current.id, goal, new_total, target,
        )
        return AllocationResult.success(normalized, warnings)

    def propose_remove_phase(
        self,
        project: Project,
        existing_phases: List[Phase],
        phase_id: str,
    ) -> AllocationResult[RemovalPlan]:
        """Validate removing a phase and describe the resulting sequence.

        Remaining phases are renumbered 1..n in their current order. When
        they no longer cover the project target, a RemovalUnderfundsProject
        warning accompanies the plan.
        """
        phases = self._ordered(project, existing_phases)

        current = next((p for p in phases if p.id == phase_id), None)
        if current is None:
            return self._phase_not_found(phase_id)

        auth = self.gatekeeper.authorize(
            MutationRequest(
                kind=MutationKind.REMOVE_PHASE, project=project, target_phase=current
            )
        )
        if not auth.ok:
            return AllocationResult.from_issue(auth.error)

        target, issue = self._resolve_target(project)
        if issue:
            return AllocationResult.from_issue(issue)

        remaining = [p for p in phases if p.id != phase_id]
        renumbered = [
            p if p.phase_number == number else p.model_copy(update={"phase_number": number})
            for number, p in enumerate(remaining, start=1)
        ]
        remaining_total = self.allocated_total(remaining)

        warnings = []
        if remaining and remaining_total < target:
            warnings.append(
                AllocationWarning(
                    kind=WarningKind.REMOVAL_UNDERFUNDS_PROJECT,
                    message=(
                        f"Removing phase {current.phase_number} leaves "
                        f"{format_currency(remaining_total)} of the "
                        f"{format_currency(target)} target allocated."
                    ),
                    allocated=remaining_total,
                    target=target,
                )
            )

        plan = RemovalPlan(
            target_kind="phase",
            target_id=phase_id,
            remaining_total=remaining_total,
            target_amount=target,
            remaining_ids=[p.id for p in renumbered],
            renumbered_phases=renumbered,
        )
        return AllocationResult.success(plan, warnings)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _ordered(self, project: Project, phases: List[Phase]) -> List[Phase]:
        """Return a sorted copy of ``phases`` after checking they belong to ``project``."""
        numbers = set()
        for phase in phases:
            if phase.project_id != project.id:
                raise AllocationStateError(
                    f"Phase {phase.id} belongs to project {phase.project_id}, not {project.id}."
                )
            if phase.phase_number in numbers:
                raise AllocationStateError(
                    f"Duplicate phase number {phase.phase_number} in project {project.id}."
                )
            numbers.add(phase.phase_number)
        return sorted(phases, key=lambda p: p.phase_number)

    @staticmethod
    def _check_amount(amount: Decimal) -> None:
        if amount < 0:
            raise AllocationStateError(f"Funding goal cannot be negative: {amount}")

    def _check_required(self, candidate: PhaseCandidate) -> Optional[AllocationIssue]:
        if candidate.funding_goal is not None:
            self._check_amount(candidate.funding_goal)
        if candidate.funding_goal is None or round_money(candidate.funding_goal) == 0:
            return AllocationIssue(
                kind=ErrorKind.MISSING_REQUIRED_FIELD,
                message=VALIDATION_GOAL_REQUIRED,
                field="funding_goal",
            )
        if candidate.start_date is None:
            return AllocationIssue(
                kind=ErrorKind.MISSING_REQUIRED_FIELD,
                message=VALIDATION_START_REQUIRED,
                field="start_date",
            )
        if candidate.duration_days is None:
            return AllocationIssue(
                kind=ErrorKind.MISSING_REQUIRED_FIELD,
                message=VALIDATION_DURATION_REQUIRED,
                field="duration_days",
            )
        return None

    def _check_duration(self, duration_days: int) -> Optional[AllocationIssue]:
        if duration_days < self._min_duration:
            return AllocationIssue(
                kind=ErrorKind.DURATION_TOO_SHORT,
                message=f"Phase duration must be at least {self._min_duration} days.",
                field="duration_days",
                bound=str(self._min_duration),
            )
        return None

    def _check_start(self, start_date: date, earliest: date) -> Optional[AllocationIssue]:
        if start_date < earliest:
            return AllocationIssue(
                kind=ErrorKind.START_DATE_TOO_EARLY,
                message=(
                    f"Phase cannot start before {format_date(earliest)}. Phases must "
                    f"start at least {self._gap.days} days after the previous phase "
                    f"ends, or after today for the first phase."
                ),
                field="start_date",
                bound=format_date(earliest),
            )
        return None

    def _resolve_target(self, project: Project) -> Tuple[Optional[Decimal], Optional[AllocationIssue]]:
        """Return the project's target, asking the lookup when the snapshot lacks it."""
        if project.total_target_amount is not None:
            return round_money(project.total_target_amount), None

        target = None
        if self._target_lookup is not None:
            try:
                target = self._target_lookup(project.id)
            except StoreError as e:
                logger.warning("Target lookup for project %s failed: %s", project.id, e)
                target = None

        if target is None or target <= 0:
            return None, AllocationIssue(
                kind=ErrorKind.TARGET_AMOUNT_UNAVAILABLE,
                message=(
                    f"Could not determine the total target amount of project {project.id}. "
                    f"Please try again later."
                ),
                field="total_target_amount",
            )
        return round_money(target), None

    @staticmethod
    def _exceeds_target(target: Decimal, allocated: Decimal, goal: Decimal) -> AllocationResult:
        allowance = max(target - allocated, Decimal("0"))
        return AllocationResult.failure(
            ErrorKind.EXCEEDS_PROJECT_TARGET,
            f"Phase goal {format_currency(goal)} exceeds the project target. "
            f"At most {format_currency(allowance)} of {format_currency(target)} "
            f"is left to allocate.",
            field="funding_goal",
            bound=allowance,
        )

    @staticmethod
    def _partial_warning(allocated: Decimal, target: Decimal) -> AllocationWarning:
        return AllocationWarning(
            kind=WarningKind.PARTIAL_ALLOCATION,
            message=(
                f"Phases cover {format_currency(allocated)} of the "
                f"{format_currency(target)} project target; "
                f"{format_currency(target - allocated)} is still unallocated."
            ),
            allocated=allocated,
            target=target,
        )

    @staticmethod
    def _phase_not_found(phase_id: str) -> AllocationResult:
        return AllocationResult.failure(
            ErrorKind.PHASE_NOT_FOUND,
            f"Phase '{phase_id}' not found in the current snapshot. Refresh and try again.",
            field="phase_id",
        )
