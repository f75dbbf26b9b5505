"""
Managers for the ffund allocation engine.

This package contains focused manager classes:
- MutationGatekeeper: Status-based edit policy
- PhaseAllocator: Project target split across phases
- MilestoneAllocator: Phase goal split across milestones
- SettingsResolver: Milestone cap with fallback
- PlanReviewer: Plan totals and readiness checks
"""

from ffund.managers.gatekeeper import MutationGatekeeper, MutationRequest
from ffund.managers.settings import SettingsResolver
from ffund.managers.phase_allocator import PhaseAllocator
from ffund.managers.milestone_allocator import MilestoneAllocator
from ffund.managers.plan_review import PlanReviewer, PlanSummary, PhaseAllocationSummary

__all__ = [
    "MutationGatekeeper",
    "MutationRequest",
    "SettingsResolver",
    "PhaseAllocator",
    "MilestoneAllocator",
    "PlanReviewer",
    "PlanSummary",
    "PhaseAllocationSummary",
]
