"""
FundingCore - orchestration for the ffund allocation engine.

Fetches the authoritative snapshot from the stores, runs the matching
allocator, asks the caller to confirm warnings, persists accepted
proposals and re-fetches. The allocators themselves never see a store.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, Generic, Iterable, List, Optional, TypeVar

from ffund.managers import (
    MilestoneAllocator,
    MutationGatekeeper,
    PhaseAllocator,
    PlanReviewer,
    SettingsResolver,
)
from ffund.managers.plan_review import PlanSummary
from ffund.models.base import Milestone, Phase, Project
from ffund.models.proposals import (
    MilestoneCandidate,
    MilestoneChanges,
    PhaseCandidate,
    PhaseChanges,
)
from ffund.models.results import (
    AllocationIssue,
    AllocationResult,
    AllocationWarning,
    ErrorKind,
)
from ffund.stores import MilestoneStore, ProjectStore, SettingsStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

Confirm = Callable[[List[AllocationWarning]], bool]


def decline_warnings(warnings: List[AllocationWarning]) -> bool:
    """Default confirmation: never apply a proposal that carries warnings."""
    return False


def accept_warnings(warnings: List[AllocationWarning]) -> bool:
    """Confirmation that applies proposals regardless of warnings."""
    return True


@dataclass
class MutationOutcome(Generic[T]):
    """What happened to a requested mutation.

    ``proposal`` is the allocator's verdict. ``applied`` is True only
    when the store accepted the write; ``stored`` is the entity the store
    returned and ``snapshot`` the re-fetched siblings.
    """

    proposal: AllocationResult
    applied: bool = False
    stored: Optional[T] = None
    snapshot: List = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.proposal.ok

    @property
    def error(self) -> Optional[AllocationIssue]:
        return self.proposal.error

    @property
    def warnings(self) -> List[AllocationWarning]:
        return self.proposal.warnings

    @property
    def declined(self) -> bool:
        """Valid proposal the caller chose not to apply."""
        return self.proposal.ok and not self.applied


class FundingCore:
    """
    Caller-side contract around the allocators.

    Every mutation:
    1. fetches the project, its phases and (for milestones) the phase's milestones,
    2. runs the allocator on that snapshot,
    3. stops on error, or on warnings the confirm callback declines,
    4. writes through the store and re-fetches the affected collection.

    Store failures raise StoreError; the core never retries. A stale
    snapshot shows up as PhaseNotFound/MilestoneNotFound and calls for a
    fresh attempt.
    """

    def __init__(
        self,
        project_store: ProjectStore,
        milestone_store: MilestoneStore,
        settings_store: Optional[SettingsStore] = None,
        today: Optional[Callable[[], date]] = None,
        confirm: Optional[Confirm] = None,
        locked_project_statuses: Optional[Iterable[str]] = None,
    ):
        """
        Initialize the FundingCore.

        Args:
            project_store: Store for projects and phases.
            milestone_store: Store for milestones.
            settings_store: Store for global settings (milestone cap).
            today: Clock used for the first phase's earliest start.
            confirm: Default confirmation for proposals with warnings.
            locked_project_statuses: Project statuses that forbid editing.
        """
        self.project_store = project_store
        self.milestone_store = milestone_store
        self.gatekeeper = MutationGatekeeper(locked_project_statuses)
        self.settings = SettingsResolver(settings_store)
        self.phase_allocator = PhaseAllocator(
            self.gatekeeper, target_lookup=self._lookup_target, today=today
        )
        self.milestone_allocator = MilestoneAllocator(self.gatekeeper, self.settings)
        self.reviewer = PlanReviewer()
        self._confirm = confirm or decline_warnings

    # =========================================================================
    # Snapshot access
    # =========================================================================

    def _lookup_target(self, project_id: str) -> Optional[Decimal]:
        return self.project_store.get_project_by_id(project_id).total_target_amount

    def load_project(self, project_id: str) -> Project:
        return self.project_store.get_project_by_id(project_id)

    def load_phases(self, project_id: str) -> List[Phase]:
        """Phases of a project in sequence order."""
        phases = self.project_store.get_phases_by_project(project_id)
        return sorted(phases, key=lambda p: p.phase_number)

    def load_milestones(self, phase_id: str) -> List[Milestone]:
        return list(self.milestone_store.get_milestones_by_phase(phase_id))

    def load_milestones_by_phase(self, phases: List[Phase]) -> Dict[str, List[Milestone]]:
        return {phase.id: self.load_milestones(phase.id) for phase in phases}

    def _find_phase(self, project_id: str, phase_id: str):
        """Return (project, phase) or (project, None) when the phase is gone."""
        project = self.load_project(project_id)
        phase = next((p for p in self.load_phases(project_id) if p.id == phase_id), None)
        return project, phase

    @staticmethod
    def _phase_missing(phase_id: str) -> "MutationOutcome":
        return MutationOutcome(
            AllocationResult.failure(
                ErrorKind.PHASE_NOT_FOUND,
                f"Phase '{phase_id}' not found. Refresh and try again.",
                field="phase_id",
            )
        )

    def _should_apply(self, result: AllocationResult, confirm: Optional[Confirm]) -> bool:
        if not result.ok:
            logger.debug("Proposal rejected: %s", result.error.kind.value)
            return False
        if result.warnings:
            return (confirm or self._confirm)(result.warnings)
        return True

    # =========================================================================
    # Phases
    # =========================================================================

    def add_phase(
        self, project_id: str, candidate: PhaseCandidate, confirm: Optional[Confirm] = None
    ) -> MutationOutcome[Phase]:
        """Validate and create a phase at the end of the sequence."""
        project = self.load_project(project_id)
        phases = self.load_phases(project_id)
        result = self.phase_allocator.propose_add_phase(project, phases, candidate)
        if not self._should_apply(result, confirm):
            return MutationOutcome(result)

        stored = self.project_store.create_phase(project_id, result.value.to_payload())
        logger.info("Created phase %s for project %s", stored.id, project_id)
        return MutationOutcome(result, True, stored, self.load_phases(project_id))

    def update_phase(
        self,
        project_id: str,
        phase_id: str,
        changes: PhaseChanges,
        confirm: Optional[Confirm] = None,
    ) -> MutationOutcome[Phase]:
        """Validate and apply changes to a phase."""
        project = self.load_project(project_id)
        phases = self.load_phases(project_id)
        result = self.phase_allocator.propose_update_phase(project, phases, phase_id, changes)
        if not self._should_apply(result, confirm):
            return MutationOutcome(result)

        stored = self.project_store.update_phase(phase_id, result.value.to_payload())
        logger.info("Updated phase %s of project %s", phase_id, project_id)
        return MutationOutcome(result, True, stored, self.load_phases(project_id))

    def remove_phase(
        self, project_id: str, phase_id: str, confirm: Optional[Confirm] = None
    ) -> MutationOutcome[None]:
        """Validate and delete a phase, then renumber the phases after it."""
        project = self.load_project(project_id)
        phases = self.load_phases(project_id)
        result = self.phase_allocator.propose_remove_phase(project, phases, phase_id)
        if not self._should_apply(result, confirm):
            return MutationOutcome(result)

        self.project_store.delete_phase(phase_id)
        original = {p.id: p.phase_number for p in phases}
        for phase in result.value.renumbered_phases:
            if original.get(phase.id) != phase.phase_number:
                self.project_store.update_phase(phase.id, {"phase_number": phase.phase_number})
        logger.info("Removed phase %s of project %s", phase_id, project_id)
        return MutationOutcome(result, True, None, self.load_phases(project_id))

    # =========================================================================
    # Milestones
    # =========================================================================

    def add_milestone(
        self,
        project_id: str,
        phase_id: str,
        candidate: MilestoneCandidate,
        confirm: Optional[Confirm] = None,
    ) -> MutationOutcome[Milestone]:
        """Validate and create a milestone in a phase."""
        project, phase = self._find_phase(project_id, phase_id)
        if phase is None:
            return self._phase_missing(phase_id)

        milestones = self.load_milestones(phase_id)
        result = self.milestone_allocator.propose_add_milestone(
            phase, milestones, candidate, project=project
        )
        if not self._should_apply(result, confirm):
            return MutationOutcome(result)

        stored = self.milestone_store.create_milestone(phase_id, result.value.to_payload())
        logger.info("Created milestone %s in phase %s", stored.id, phase_id)
        return MutationOutcome(result, True, stored, self.load_milestones(phase_id))

    def update_milestone(
        self,
        project_id: str,
        phase_id: str,
        milestone_id: str,
        changes: MilestoneChanges,
        confirm: Optional[Confirm] = None,
    ) -> MutationOutcome[Milestone]:
        """Validate and apply changes to a milestone."""
        project, phase = self._find_phase(project_id, phase_id)
        if phase is None:
            return self._phase_missing(phase_id)

        milestones = self.load_milestones(phase_id)
        result = self.milestone_allocator.propose_update_milestone(
            phase, milestones, milestone_id, changes, project=project
        )
        if not self._should_apply(result, confirm):
            return MutationOutcome(result)

        stored = self.milestone_store.update_milestone(milestone_id, result.value.to_payload())
        logger.info("Updated milestone %s in phase %s", milestone_id, phase_id)
        return MutationOutcome(result, True, stored, self.load_milestones(phase_id))

    def remove_milestone(
        self,
        project_id: str,
        phase_id: str,
        milestone_id: str,
        confirm: Optional[Confirm] = None,
    ) -> MutationOutcome[None]:
        """Validate and delete a milestone."""
        project, phase = self._find_phase(project_id, phase_id)
        if phase is None:
            return self._phase_missing(phase_id)

        milestones = self.load_milestones(phase_id)
        result = self.milestone_allocator.propose_remove_milestone(
            phase, milestones, milestone_id, project=project
        )
        if not self._should_apply(result, confirm):
            return MutationOutcome(result)

        self.milestone_store.delete_milestone(milestone_id)
        logger.info("Removed milestone %s from phase %s", milestone_id, phase_id)
        return MutationOutcome(result, True, None, self.load_milestones(phase_id))

    # =========================================================================
    # Queries
    # =========================================================================

    def remaining_budget(
        self, project_id: str, phase_id: str, excluding_milestone_id: Optional[str] = None
    ) -> Optional[Decimal]:
        """Unallocated part of a phase goal, or None when the phase is gone."""
        _, phase = self._find_phase(project_id, phase_id)
        if phase is None:
            return None
        return self.milestone_allocator.compute_remaining_budget(
            phase, self.load_milestones(phase_id), excluding_milestone_id
        )

    def plan_summary(self, project_id: str) -> PlanSummary:
        project = self.load_project(project_id)
        phases = self.load_phases(project_id)
        return self.reviewer.summarize(project, phases, self.load_milestones_by_phase(phases))

    def review_plan(self, project_id: str) -> List[AllocationIssue]:
        """Readiness issues of the whole plan, including milestone caps."""
        project = self.load_project(project_id)
        phases = self.load_phases(project_id)
        return self.reviewer.review(
            project,
            phases,
            self.load_milestones_by_phase(phases),
            self.settings.max_milestone_percentage(),
        )
