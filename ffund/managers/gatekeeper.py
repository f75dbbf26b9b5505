"""
MutationGatekeeper for the ffund allocation engine.

Decides whether a phase or milestone may currently be written to.
Both allocators call ``authorize`` before accepting any proposal.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from ffund.constants import get_locked_project_statuses
from ffund.models.base import (
    PHASE_STATUS_ORDER,
    Milestone,
    Phase,
    PhaseStatus,
    Project,
    ProjectStatus,
)
from ffund.models.proposals import MutationKind
from ffund.models.results import AllocationResult, ErrorKind


@dataclass(frozen=True)
class MutationRequest:
    """A write the caller wants to perform.

    ``target_phase`` is the phase being changed, or the owning phase of
    ``target_milestone``. Adding a phase has no target phase.
    """

    kind: MutationKind
    project: Optional[Project] = None
    target_phase: Optional[Phase] = None
    target_milestone: Optional[Milestone] = None


class MutationGatekeeper:
    """
    Status-based edit policy.

    Rules:
    - A phase is editable only while its status is PLAN.
    - A milestone is editable only while its owning phase is editable.
    - Nothing under a project in a locked status (SUSPENDED, CANCELLED by
      default) is editable, whatever the phase status.

    The gatekeeper holds no state besides the locked-status set, so the
    same snapshot always yields the same answer.
    """

    def __init__(self, locked_project_statuses: Optional[Iterable[str]] = None) -> None:
        """
        Initialize MutationGatekeeper.

        Args:
            locked_project_statuses: Project statuses that forbid editing.
                Defaults to config value.
        """
        if locked_project_statuses is None:
            locked_project_statuses = get_locked_project_statuses()
        self._locked = frozenset(ProjectStatus(s) for s in locked_project_statuses)

    @property
    def locked_project_statuses(self) -> frozenset:
        return self._locked

    def is_project_editable(self, project: Optional[Project]) -> bool:
        """True unless the project is in a locked status."""
        if project is None:
            return True
        return project.status not in self._locked

    def is_phase_editable(self, phase: Phase, project: Optional[Project] = None) -> bool:
        """True iff the phase is in PLAN and its project is not locked."""
        return phase.status == PhaseStatus.PLAN and self.is_project_editable(project)

    def is_milestone_editable(
        self, milestone: Milestone, owning_phase: Phase, project: Optional[Project] = None
    ) -> bool:
        """A milestone follows its owning phase."""
        return self.is_phase_editable(owning_phase, project)

    def authorize(self, operation: MutationRequest) -> AllocationResult[None]:
        """Check a mutation against the edit policy.

        Args:
            operation: The write to check.

        Returns:
            Success with no value, or a failure of kind ``NotEditable``
            (project locked) or ``PhaseNotEditable`` (phase past PLAN).
        """
        project = operation.project
        if not self.is_project_editable(project):
            return AllocationResult.failure(
                ErrorKind.NOT_EDITABLE,
                f"Project is {project.status.value.lower()} and cannot be edited.",
                field="project.status",
            )

        phase = operation.target_phase
        if phase is None:
            return AllocationResult.success(None)

        if phase.status != PhaseStatus.PLAN:
            target = "milestones of phase" if operation.target_milestone else "phase"
            return AllocationResult.failure(
                ErrorKind.PHASE_NOT_EDITABLE,
                f"Cannot modify {target} {phase.phase_number} while it is in "
                f"'{phase.status.value}' status. Only phases in 'PLAN' can be edited.",
                field="phase.status",
            )

        return AllocationResult.success(None)

    @staticmethod
    def can_transition(current: PhaseStatus, new: PhaseStatus) -> bool:
        """True when moving from ``current`` to ``new`` keeps the lifecycle monotonic."""
        return PHASE_STATUS_ORDER.index(new) >= PHASE_STATUS_ORDER.index(current)
