"""
Result types returned by the allocators.

Every allocator entry point returns an ``AllocationResult``: either a
value (with optional warnings the caller must confirm) or a single
``AllocationIssue``. Nothing here is raised for expected domain
violations.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ffund.exceptions import AllocationRejected
from ffund.models.base import Phase

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Reasons a proposal is rejected."""

    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    DURATION_TOO_SHORT = "DurationTooShort"
    START_DATE_TOO_EARLY = "StartDateTooEarly"
    SCHEDULE_CONFLICT = "ScheduleConflict"
    EXCEEDS_PROJECT_TARGET = "ExceedsProjectTarget"
    EXCEEDS_PHASE_GOAL = "ExceedsPhaseGoal"
    EXCEEDS_PER_MILESTONE_CAP = "ExceedsPerMilestoneCap"
    PHASE_NOT_FOUND = "PhaseNotFound"
    MILESTONE_NOT_FOUND = "MilestoneNotFound"
    PHASE_NOT_EDITABLE = "PhaseNotEditable"
    NOT_EDITABLE = "NotEditable"
    TARGET_AMOUNT_UNAVAILABLE = "TargetAmountUnavailable"
    TOO_FEW_PHASES = "TooFewPhases"
    UNBALANCED_PROJECT_ALLOCATION = "UnbalancedProjectAllocation"
    UNBALANCED_PHASE_ALLOCATION = "UnbalancedPhaseAllocation"

    @property
    def is_stale_snapshot(self) -> bool:
        """True for referential failures that call for a re-fetch."""
        return self in (ErrorKind.PHASE_NOT_FOUND, ErrorKind.MILESTONE_NOT_FOUND)


class WarningKind(str, Enum):
    """Non-fatal advisories the caller confirms or rejects."""

    PARTIAL_ALLOCATION = "PartialAllocationWarning"
    REMOVAL_UNDERFUNDS_PROJECT = "RemovalUnderfundsProject"


class AllocationIssue(BaseModel):
    """A rejected proposal, with the bound that was violated.

    ``bound`` holds the computed limit (max allowed amount, earliest
    allowed date, minimum duration) so the UI can render an actionable
    message.
    """

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    field: Optional[str] = None
    bound: Optional[str] = None


class AllocationWarning(BaseModel):
    """An accepted proposal that leaves its parent under-allocated."""

    model_config = ConfigDict(frozen=True)

    kind: WarningKind
    message: str
    allocated: Decimal
    target: Decimal

    @property
    def shortfall(self) -> Decimal:
        """Amount still unallocated."""
        return self.target - self.allocated


class RemovalPlan(BaseModel):
    """The state that would result from removing a phase or milestone."""

    model_config = ConfigDict(frozen=True)

    target_kind: str
    target_id: str
    remaining_total: Decimal
    target_amount: Optional[Decimal] = None
    remaining_ids: List[str] = Field(default_factory=list)
    renumbered_phases: List[Phase] = Field(default_factory=list)

    @property
    def unallocated(self) -> Optional[Decimal]:
        """Target left unallocated after the removal, when the target is known."""
        if self.target_amount is None:
            return None
        return self.target_amount - self.remaining_total


@dataclass(frozen=True)
class AllocationResult(Generic[T]):
    """Tagged success/failure value returned by every allocator call."""

    value: Optional[T] = None
    error: Optional[AllocationIssue] = None
    warnings: List[AllocationWarning] = field(default_factory=list)

    @classmethod
    def success(cls, value: T, warnings: Optional[List[AllocationWarning]] = None) -> "AllocationResult[T]":
        return cls(value=value, warnings=list(warnings or []))

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        field: Optional[str] = None,
        bound: Optional[object] = None,
    ) -> "AllocationResult[T]":
        issue = AllocationIssue(
            kind=kind,
            message=message,
            field=field,
            bound=None if bound is None else str(bound),
        )
        return cls(error=issue)

    @classmethod
    def from_issue(cls, issue: AllocationIssue) -> "AllocationResult[T]":
        return cls(error=issue)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def needs_confirmation(self) -> bool:
        """True when the proposal is valid but carries warnings."""
        return self.ok and bool(self.warnings)

    def unwrap(self) -> T:
        """Return the value or raise ``AllocationRejected``."""
        if self.error is not None:
            raise AllocationRejected(self.error)
        return self.value
