"""
ffund - phase and milestone budget allocation for crowdfunding projects.

The allocators validate proposed changes against a snapshot and return
``AllocationResult`` values; ``FundingCore`` wires them to stores.
"""

from ffund.core import FundingCore, MutationOutcome, accept_warnings, decline_warnings
from ffund.managers import (
    MilestoneAllocator,
    MutationGatekeeper,
    PhaseAllocator,
    PlanReviewer,
    SettingsResolver,
)
from ffund.models.results import AllocationResult, ErrorKind, WarningKind

__version__ = "0.1.0"

__all__ = [
    "FundingCore",
    "MutationOutcome",
    "accept_warnings",
    "decline_warnings",
    "MilestoneAllocator",
    "MutationGatekeeper",
    "PhaseAllocator",
    "PlanReviewer",
    "SettingsResolver",
    "AllocationResult",
    "ErrorKind",
    "WarningKind",
]
