"""
Data models for the ffund allocation engine.

Import models explicitly from their modules where possible:
    from ffund.models.base import Project, Phase, Milestone, MilestoneItem
    from ffund.models.proposals import PhaseCandidate, MilestoneCandidate, ...
    from ffund.models.results import AllocationResult, ErrorKind, WarningKind
    from ffund.models.files import SnapshotFile, ConfigFile
"""

from .base import (
    Milestone,
    MilestoneItem,
    Phase,
    PhaseStatus,
    Project,
    ProjectStatus,
)
from .proposals import (
    MilestoneCandidate,
    MilestoneChanges,
    MutationKind,
    NormalizedMilestone,
    NormalizedPhase,
    PhaseCandidate,
    PhaseChanges,
)
from .results import (
    AllocationIssue,
    AllocationResult,
    AllocationWarning,
    ErrorKind,
    RemovalPlan,
    WarningKind,
)
