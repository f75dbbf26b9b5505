"""
Proposal models for the ffund allocation engine.

Candidates and change sets come from the caller (usually straight from
a form), so every field is optional and loosely typed. Normalized
models are what an allocator hands back once a proposal is accepted.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ffund.models.base import Milestone, MilestoneItem, Phase, PhaseStatus


class MutationKind(str, Enum):
    """Kinds of writes the gatekeeper is asked to authorize."""

    ADD_PHASE = "add_phase"
    UPDATE_PHASE = "update_phase"
    REMOVE_PHASE = "remove_phase"
    ADD_MILESTONE = "add_milestone"
    UPDATE_MILESTONE = "update_milestone"
    REMOVE_MILESTONE = "remove_milestone"


class PhaseCandidate(BaseModel):
    """A phase the user wants to add."""

    funding_goal: Optional[Decimal] = None
    start_date: Optional[date] = None
    duration_days: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None


class PhaseChanges(BaseModel):
    """Fields to change on an existing phase. None means unchanged."""

    funding_goal: Optional[Decimal] = None
    start_date: Optional[date] = None
    duration_days: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None

    def merged_with(self, phase: Phase) -> PhaseCandidate:
        """Return the candidate obtained by applying these changes to ``phase``."""
        return PhaseCandidate(
            funding_goal=self.funding_goal if self.funding_goal is not None else phase.funding_goal,
            start_date=self.start_date if self.start_date is not None else phase.start_date,
            duration_days=self.duration_days if self.duration_days is not None else phase.duration_days,
            name=self.name if self.name is not None else phase.name,
            description=self.description if self.description is not None else phase.description,
        )

    def is_empty(self) -> bool:
        """True when no field is set."""
        return not self.model_dump(exclude_none=True)


class MilestoneCandidate(BaseModel):
    """A milestone the user wants to add."""

    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    items: List[MilestoneItem] = Field(default_factory=list)


class MilestoneChanges(BaseModel):
    """Fields to change on an existing milestone. None means unchanged."""

    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None

    def merged_with(self, milestone: Milestone) -> MilestoneCandidate:
        """Return the candidate obtained by applying these changes to ``milestone``."""
        return MilestoneCandidate(
            title=self.title if self.title is not None else milestone.title,
            description=self.description if self.description is not None else milestone.description,
            price=self.price if self.price is not None else milestone.price,
            items=list(milestone.items),
        )


class NormalizedPhase(BaseModel):
    """An accepted phase, ready to be sent to the project store.

    ``id`` is None for phases that do not exist yet.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    project_id: str
    phase_number: int
    name: Optional[str] = None
    description: Optional[str] = None
    funding_goal: Decimal
    start_date: date
    duration_days: int
    end_date: date
    status: PhaseStatus = PhaseStatus.PLAN

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready body for ``create_phase`` / ``update_phase``."""
        return self.model_dump(mode="json", exclude={"id"}, exclude_none=True)

    def to_phase(self, phase_id: str) -> Phase:
        """Materialize as a snapshot Phase with the given id."""
        return Phase(id=phase_id, **self.model_dump(exclude={"id"}))


class NormalizedMilestone(BaseModel):
    """An accepted milestone, ready to be sent to the milestone store."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    phase_id: str
    title: str
    description: Optional[str] = None
    price: Decimal
    items: List[MilestoneItem] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready body for ``create_milestone`` / ``update_milestone``."""
        return self.model_dump(mode="json", exclude={"id"}, exclude_none=True)
