"""
Store contracts consumed by the ffund engine.

The platform back end implements these behind its REST API. The engine
itself never calls them; only ``FundingCore`` does, to fetch snapshots
and persist accepted proposals.
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ffund.models.base import Milestone, Phase, Project


class ProjectStore(ABC):
    """Projects and their funding phases."""

    @abstractmethod
    def get_project_by_id(self, project_id: str) -> Project:
        """Fetch a project.

        Raises:
            StoreError: If the project cannot be fetched.
        """
        pass

    @abstractmethod
    def get_phases_by_project(self, project_id: str) -> List[Phase]:
        """Fetch all phases of a project in sequence order."""
        pass

    @abstractmethod
    def create_phase(self, project_id: str, data: Dict[str, Any]) -> Phase:
        """Create a phase and return it as stored."""
        pass

    @abstractmethod
    def update_phase(self, phase_id: str, data: Dict[str, Any]) -> Phase:
        """Update a phase and return it as stored."""
        pass

    @abstractmethod
    def delete_phase(self, phase_id: str) -> None:
        """Delete a phase."""
        pass


class MilestoneStore(ABC):
    """Milestones of funding phases."""

    @abstractmethod
    def get_milestones_by_phase(self, phase_id: str) -> List[Milestone]:
        """Fetch all milestones of a phase."""
        pass

    @abstractmethod
    def create_milestone(self, phase_id: str, data: Dict[str, Any]) -> Milestone:
        """Create a milestone and return it as stored."""
        pass

    @abstractmethod
    def update_milestone(self, milestone_id: str, data: Dict[str, Any]) -> Milestone:
        """Update a milestone and return it as stored."""
        pass

    @abstractmethod
    def delete_milestone(self, milestone_id: str) -> None:
        """Delete a milestone."""
        pass


class SettingsStore(ABC):
    """Global platform settings."""

    @abstractmethod
    def get_setting(self, setting_type: str) -> Optional[Decimal]:
        """Return the value of a global setting, or None when unset."""
        pass


class StaticSettingsStore(SettingsStore):
    """Settings served from a plain mapping, e.g. a snapshot file."""

    def __init__(self, values: Optional[Dict[str, Any]] = None) -> None:
        self._values = dict(values or {})

    def get_setting(self, setting_type: str) -> Optional[Decimal]:
        value = self._values.get(setting_type)
        if value is None:
            return None
        return Decimal(str(value))
