"""
File models for the ffund allocation engine.

Models representing the structure of JSON files read by the CLI.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ffund.constants import (
    DEFAULT_CURRENCY_PLACES,
    DEFAULT_CURRENCY_TOLERANCE,
    DEFAULT_DATE_FORMATS,
    DEFAULT_LOCKED_PROJECT_STATUSES,
    DEFAULT_MILESTONE_PERCENTAGE,
    DEFAULT_MIN_PHASE_DURATION_DAYS,
    DEFAULT_PERCENTAGE_ROUND_PRECISION,
    DEFAULT_PHASE_COUNT_TIERS,
    DEFAULT_PHASE_GAP_DAYS,
)

from .base import Milestone, Phase, Project


class SnapshotFile(BaseModel):
    """Model for a project snapshot file.

    A frozen export of what the remote store returned: one project, its
    phases in sequence order, and the milestones of every phase. The
    ``settings`` map mirrors the global settings endpoint.
    """

    project: Project
    phases: List[Phase] = Field(default_factory=list)
    milestones: List[Milestone] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)

    def get_phase(self, phase_ref: str) -> Optional[Phase]:
        """Find a phase by id or by 1-based phase number."""
        for phase in self.phases:
            if phase.id == phase_ref or str(phase.phase_number) == phase_ref:
                return phase
        return None

    def milestones_for(self, phase_id: str) -> List[Milestone]:
        """Milestones belonging to ``phase_id``."""
        return [m for m in self.milestones if m.phase_id == phase_id]

    def milestones_by_phase(self) -> Dict[str, List[Milestone]]:
        """Group milestones by their phase id."""
        grouped: Dict[str, List[Milestone]] = defaultdict(list)
        for milestone in self.milestones:
            grouped[milestone.phase_id].append(milestone)
        return dict(grouped)


class ConfigFile(BaseModel):
    """Model for config.json file.

    Allocation rules and display settings.
    """

    schema_version: str = "0.1.0"

    # Scheduling
    min_phase_duration_days: int = DEFAULT_MIN_PHASE_DURATION_DAYS
    phase_gap_days: int = DEFAULT_PHASE_GAP_DAYS

    # Currency
    currency_places: int = DEFAULT_CURRENCY_PLACES
    currency_tolerance: Decimal = Decimal(DEFAULT_CURRENCY_TOLERANCE)
    default_milestone_percentage: Decimal = Decimal(DEFAULT_MILESTONE_PERCENTAGE)

    # Editing policy
    locked_project_statuses: List[str] = Field(
        default_factory=lambda: list(DEFAULT_LOCKED_PROJECT_STATUSES)
    )
    phase_count_tiers: List[List[int]] = Field(
        default_factory=lambda: [list(tier) for tier in DEFAULT_PHASE_COUNT_TIERS]
    )

    # Display
    date_formats: List[str] = Field(default_factory=lambda: list(DEFAULT_DATE_FORMATS))
    percentage_round_precision: int = DEFAULT_PERCENTAGE_ROUND_PRECISION
