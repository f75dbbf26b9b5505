"""
MilestoneAllocator for the ffund allocation engine.

Splits a phase's funding goal across its milestones, with a
per-milestone cap expressed as a share of the phase goal.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from ffund.constants import (
    VALIDATION_PHASE_REQUIRED,
    VALIDATION_PRICE_REQUIRED,
    VALIDATION_TITLE_REQUIRED,
)
from ffund.exceptions import AllocationStateError
from ffund.managers.gatekeeper import MutationGatekeeper, MutationRequest
from ffund.managers.settings import SettingsResolver
from ffund.models.base import Milestone, Phase, Project
from ffund.models.proposals import (
    MilestoneCandidate,
    MilestoneChanges,
    MutationKind,
    NormalizedMilestone,
)
from ffund.models.results import (
    AllocationResult,
    AllocationWarning,
    ErrorKind,
    RemovalPlan,
    WarningKind,
)
from ffund.utils import (
    floor_money,
    format_currency,
    percentage,
    round_money,
    sum_money,
)

logger = logging.getLogger(__name__)


class MilestoneAllocator:
    """
    Validates milestone proposals against a phase snapshot.

    Rules:
    - A milestone price may not exceed ``funding_goal * max_percentage``.
    - Milestone prices of a phase may not add up to more than its goal.
    - Under-allocation is accepted with a PartialAllocationWarning.
    - Only milestones of phases in PLAN can change (via the gatekeeper).

    ``max_percentage`` passed per call wins; otherwise the settings
    resolver is asked, which falls back to 0.20.
    """

    def __init__(
        self,
        gatekeeper: Optional[MutationGatekeeper] = None,
        settings: Optional[SettingsResolver] = None,
    ) -> None:
        self.gatekeeper = gatekeeper or MutationGatekeeper()
        self.settings = settings or SettingsResolver()

    # =========================================================================
    # Queries
    # =========================================================================

    def compute_remaining_budget(
        self,
        phase: Phase,
        existing_milestones: List[Milestone],
        excluding_milestone_id: Optional[str] = None,
    ) -> Decimal:
        """Phase goal minus the prices of all milestones except the excluded one.

        Pure: reads its inputs and never changes them. Negative when the
        phase is already over-allocated.
        """
        allocated = sum_money(
            m.price for m in existing_milestones if m.id != excluding_milestone_id
        )
        return round_money(phase.funding_goal) - allocated

    def max_allowed_price(self, phase: Phase, max_percentage: Optional[Decimal] = None) -> Decimal:
        """Largest whole-cent price a single milestone of ``phase`` may carry."""
        ratio = self._ratio(max_percentage)
        return floor_money(round_money(phase.funding_goal) * ratio)

    # =========================================================================
    # Proposals
    # =========================================================================

    def propose_add_milestone(
        self,
        phase: Optional[Phase],
        existing_milestones: List[Milestone],
        candidate: MilestoneCandidate,
        max_percentage: Optional[Decimal] = None,
        project: Optional[Project] = None,
    ) -> AllocationResult[NormalizedMilestone]:
        """Validate a new milestone for ``phase``.

        Args:
            phase: Owning phase; None when the user has not picked one.
            existing_milestones: Current milestones of the phase.
            candidate: Requested title, description, price and items.
            max_percentage: Cap ratio. Resolved from settings when None.
            project: Owning project, for the project-level edit lock.

        Returns:
            The normalized milestone, with a PartialAllocationWarning while
            the phase goal is not fully allocated.
        """
        if phase is None:
            return AllocationResult.failure(
                ErrorKind.MISSING_REQUIRED_FIELD, VALIDATION_PHASE_REQUIRED, field="phase_id"
            )
        if not (candidate.title or "").strip():
            return AllocationResult.failure(
                ErrorKind.MISSING_REQUIRED_FIELD, VALIDATION_TITLE_REQUIRED, field="title"
            )
        if candidate.price is None:
            return AllocationResult.failure(
                ErrorKind.MISSING_REQUIRED_FIELD, VALIDATION_PRICE_REQUIRED, field="price"
            )

        milestones = self._owned(phase, existing_milestones)
        self._check_price(candidate.price)

        auth = self.gatekeeper.authorize(
            MutationRequest(
                kind=MutationKind.ADD_MILESTONE, project=project, target_phase=phase
            )
        )
        if not auth.ok:
            return AllocationResult.from_issue(auth.error)

        price = round_money(candidate.price)
        result = self._check_allocation(phase, milestones, price, max_percentage)
        if not result.ok:
            return result

        normalized = NormalizedMilestone(
            phase_id=phase.id,
            title=candidate.title.strip(),
            description=candidate.description,
            price=price,
            items=list(candidate.items),
        )
        logger.debug("Accepted milestone for phase %s: price=%s", phase.id, price)
        return AllocationResult.success(normalized, result.warnings)

    def propose_update_milestone(
        self,
        phase: Phase,
        existing_milestones: List[Milestone],
        milestone_id: str,
        changes: MilestoneChanges,
        max_percentage: Optional[Decimal] = None,
        project: Optional[Project] = None,
    ) -> AllocationResult[NormalizedMilestone]:
        """Validate changes to an existing milestone.

        The old price is taken out of the phase total and the new one
        substituted before the cap and goal checks.
        """
        milestones = self._owned(phase, existing_milestones)

        current = next((m for m in milestones if m.id == milestone_id), None)
        if current is None:
            return AllocationResult.failure(
                ErrorKind.MILESTONE_NOT_FOUND,
                f"Milestone '{milestone_id}' not found in phase {phase.phase_number}. "
                f"Refresh and try again.",
                field="milestone_id",
            )

        auth = self.gatekeeper.authorize(
            MutationRequest(
                kind=MutationKind.UPDATE_MILESTONE,
                project=project,
                target_phase=phase,
                target_milestone=current,
            )
        )
        if not auth.ok:
            return AllocationResult.from_issue(auth.error)

        candidate = changes.merged_with(current)
        if not (candidate.title or "").strip():
            return AllocationResult.failure(
                ErrorKind.MISSING_REQUIRED_FIELD, VALIDATION_TITLE_REQUIRED, field="title"
            )
        self._check_price(candidate.price)

        others = [m for m in milestones if m.id != milestone_id]
        price = round_money(candidate.price)
        result = self._check_allocation(phase, others, price, max_percentage)
        if not result.ok:
            return result

        normalized = NormalizedMilestone(
            id=current.id,
            phase_id=phase.id,
            title=candidate.title.strip(),
            description=candidate.description,
            price=price,
            items=list(candidate.items),
        )
        logger.debug("Accepted update of milestone %s: price=%s", current.id, price)
        return AllocationResult.success(normalized, result.warnings)

    def propose_remove_milestone(
        self,
        phase: Phase,
        existing_milestones: List[Milestone],
        milestone_id: str,
        project: Optional[Project] = None,
    ) -> AllocationResult[RemovalPlan]:
        """Validate removing a milestone. Removal only shrinks the total, so no warning."""
        milestones = self._owned(phase, existing_milestones)

        current = next((m for m in milestones if m.id == milestone_id), None)
        if current is None:
            return AllocationResult.failure(
                ErrorKind.MILESTONE_NOT_FOUND,
                f"Milestone '{milestone_id}' not found in phase {phase.phase_number}. "
                f"Refresh and try again.",
                field="milestone_id",
            )

        auth = self.gatekeeper.authorize(
            MutationRequest(
                kind=MutationKind.REMOVE_MILESTONE,
                project=project,
                target_phase=phase,
                target_milestone=current,
            )
        )
        if not auth.ok:
            return AllocationResult.from_issue(auth.error)

        remaining = [m for m in milestones if m.id != milestone_id]
        plan = RemovalPlan(
            target_kind="milestone",
            target_id=milestone_id,
            remaining_total=sum_money(m.price for m in remaining),
            target_amount=round_money(phase.funding_goal),
            remaining_ids=[m.id for m in remaining],
        )
        return AllocationResult.success(plan)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _ratio(self, max_percentage: Optional[Decimal]) -> Decimal:
        if max_percentage is not None:
            ratio = SettingsResolver.normalize(max_percentage)
            if ratio is not None:
                return ratio
            logger.warning(
                "Ignoring unusable milestone cap %r; using fallback %s",
                max_percentage, self.settings.fallback,
            )
            return self.settings.fallback
        return self.settings.max_milestone_percentage()

    @staticmethod
    def _owned(phase: Phase, milestones: List[Milestone]) -> List[Milestone]:
        """Return a copy of ``milestones`` after checking they belong to ``phase``."""
        for milestone in milestones:
            if milestone.phase_id != phase.id:
                raise AllocationStateError(
                    f"Milestone {milestone.id} belongs to phase {milestone.phase_id}, not {phase.id}."
                )
        return list(milestones)

    @staticmethod
    def _check_price(price: Decimal) -> None:
        if price < 0:
            raise AllocationStateError(f"Milestone price cannot be negative: {price}")

    def _check_allocation(
        self,
        phase: Phase,
        others: List[Milestone],
        price: Decimal,
        max_percentage: Optional[Decimal],
    ) -> AllocationResult[None]:
        """Cap and phase-goal checks shared by add and update."""
        ratio = self._ratio(max_percentage)
        goal = round_money(phase.funding_goal)
        cap = goal * ratio
        if price > cap:
            max_allowed = floor_money(cap)
            return AllocationResult.failure(
                ErrorKind.EXCEEDS_PER_MILESTONE_CAP,
                f"Milestone price {format_currency(price)} exceeds "
                f"{percentage(ratio, 1, 0):g}% of the phase goal. "
                f"Maximum allowed is {format_currency(max_allowed)}.",
                field="price",
                bound=max_allowed,
            )

        allocated = sum_money(m.price for m in others)
        new_total = allocated + price
        if new_total > goal:
            remaining = max(goal - allocated, Decimal("0"))
            return AllocationResult.failure(
                ErrorKind.EXCEEDS_PHASE_GOAL,
                f"Milestones would total {format_currency(new_total)}, more than the "
                f"phase goal of {format_currency(goal)}. Only "
                f"{format_currency(remaining)} is left to allocate.",
                field="price",
                bound=remaining,
            )

        warnings = []
        if new_total < goal:
            warnings.append(
                AllocationWarning(
                    kind=WarningKind.PARTIAL_ALLOCATION,
                    message=(
                        f"Milestones cover {format_currency(new_total)} of the "
                        f"{format_currency(goal)} phase goal; "
                        f"{format_currency(goal - new_total)} is still unallocated."
                    ),
                    allocated=new_total,
                    target=goal,
                )
            )
        return AllocationResult.success(None, warnings)
