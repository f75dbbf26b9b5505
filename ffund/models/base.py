"""
Snapshot models for the ffund allocation engine.

Project -> Phase -> Milestone -> MilestoneItem, as fetched from the
remote store. Instances are frozen: the engine reads them and returns
new objects instead of editing them.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ffund.utils import add_days


class ProjectStatus(str, Enum):
    """Project lifecycle states owned by the platform back end."""

    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FUNDRAISING = "FUNDRAISING"
    FUNDRAISING_COMPLETED = "FUNDRAISING_COMPLETED"
    SUSPENDED = "SUSPENDED"
    CANCELLED = "CANCELLED"


class PhaseStatus(str, Enum):
    """Phase lifecycle: PLAN -> PROCESS -> COMPLETED, forward only."""

    PLAN = "PLAN"
    PROCESS = "PROCESS"
    COMPLETED = "COMPLETED"


PHASE_STATUS_ORDER = [PhaseStatus.PLAN, PhaseStatus.PROCESS, PhaseStatus.COMPLETED]


class SnapshotModel(BaseModel):
    """Common config for all snapshot entities."""

    model_config = ConfigDict(frozen=True)


class MilestoneItem(SnapshotModel):
    """A physical or digital item delivered with a milestone.

    Leaf entity; carries no allocation constraints.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    quantity: int = Field(default=1, ge=1)
    image_url: Optional[str] = None


class Milestone(SnapshotModel):
    """A budgeted sub-deliverable within a phase."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    phase_id: str
    title: str
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    items: List[MilestoneItem] = Field(default_factory=list)


class Phase(SnapshotModel):
    """A time-boxed funding window with its own funding goal.

    ``end_date`` is derived from ``start_date + duration_days`` when the
    store omits it, and must agree with it when present.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str
    phase_number: int = Field(ge=1)
    name: Optional[str] = None
    description: Optional[str] = None
    funding_goal: Decimal = Field(gt=0)
    start_date: date
    duration_days: int = Field(ge=1)
    end_date: Optional[date] = None
    status: PhaseStatus = PhaseStatus.PLAN

    @model_validator(mode="before")
    @classmethod
    def derive_end_date(cls, data):
        """Fill in end_date from start_date and duration_days."""
        if isinstance(data, dict) and data.get("end_date") is None:
            start = data.get("start_date")
            duration = data.get("duration_days")
            if isinstance(start, str):
                start = date.fromisoformat(start)
            if isinstance(start, date) and duration is not None:
                data = {**data, "end_date": add_days(start, int(duration))}
        return data

    @model_validator(mode="after")
    def check_end_date(self) -> "Phase":
        """Reject snapshots whose end date disagrees with the duration."""
        expected = add_days(self.start_date, self.duration_days)
        if self.end_date != expected:
            raise ValueError(
                f"end_date {self.end_date} does not match start_date + duration_days ({expected})"
            )
        return self

    @property
    def is_plan(self) -> bool:
        """True while the phase is still being planned."""
        return self.status == PhaseStatus.PLAN


class Project(SnapshotModel):
    """A crowdfunding project.

    ``total_target_amount`` may be unknown locally; allocators then ask
    the target lookup they were built with.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: Optional[str] = None
    total_target_amount: Optional[Decimal] = Field(default=None, gt=0)
    status: ProjectStatus = ProjectStatus.DRAFT
