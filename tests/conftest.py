"""
Test fixtures for the ffund test suite.

Provides:
- Temporary directory fixtures (isolated from the working .ffund/)
- Mock data builders for projects, phases and milestones
- In-memory stores for FundingCore tests
- Snapshot file helpers for CLI tests
"""

import json
import shutil
import tempfile
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import pytest

from ffund.constants import reset_config_manager
from ffund.exceptions import StoreError
from ffund.managers import MilestoneAllocator, MutationGatekeeper, PhaseAllocator, SettingsResolver
from ffund.models.base import Milestone, Phase, PhaseStatus, Project, ProjectStatus
from ffund.models.files import SnapshotFile
from ffund.stores import MilestoneStore, ProjectStore, SettingsStore

TODAY = date(2026, 1, 5)


def days(n: int) -> date:
    """TODAY plus ``n`` days."""
    return TODAY + timedelta(days=n)


# =============================================================================
# Temporary Directory Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test isolation."""
    temp_path = Path(tempfile.mkdtemp(prefix="ffund_test_"))
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_config(temp_dir: Path, monkeypatch) -> Generator[Path, None, None]:
    """Run every test from an empty directory so no .ffund/config.json is picked up."""
    monkeypatch.chdir(temp_dir)
    reset_config_manager()
    yield temp_dir
    reset_config_manager()


# =============================================================================
# Mock Data Builders
# =============================================================================


class MockDataBuilder:
    """Helper class for building mock ffund snapshots for testing."""

    @staticmethod
    def create_project(
        target: Optional[str] = "10000",
        status: ProjectStatus = ProjectStatus.DRAFT,
        id: str = "project-1",
        title: str = "Test Project",
    ) -> Project:
        """Create a mock Project for testing."""
        return Project(
            id=id,
            title=title,
            total_target_amount=Decimal(target) if target is not None else None,
            status=status,
        )

    @staticmethod
    def create_phase(
        phase_number: int = 1,
        goal: str = "5000",
        start: Optional[date] = None,
        duration: int = 14,
        status: PhaseStatus = PhaseStatus.PLAN,
        project_id: str = "project-1",
        id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Phase:
        """Create a mock Phase for testing."""
        return Phase(
            id=id or f"phase-{phase_number}",
            project_id=project_id,
            phase_number=phase_number,
            name=name or f"Phase {phase_number}",
            funding_goal=Decimal(goal),
            start_date=start or days(7),
            duration_days=duration,
            status=status,
        )

    @staticmethod
    def create_phases(goals: List[str], duration: int = 14, project_id: str = "project-1") -> List[Phase]:
        """Create back-to-back phases that respect the 7-day gap."""
        phases = []
        start = days(7)
        for number, goal in enumerate(goals, start=1):
            phase = MockDataBuilder.create_phase(
                phase_number=number, goal=goal, start=start, duration=duration,
                project_id=project_id,
            )
            phases.append(phase)
            start = phase.end_date + timedelta(days=7)
        return phases

    @staticmethod
    def create_milestone(
        phase_id: str = "phase-1",
        price: str = "200",
        title: Optional[str] = None,
        id: Optional[str] = None,
    ) -> Milestone:
        """Create a mock Milestone for testing."""
        return Milestone(
            id=id or f"{phase_id}-m-{price}",
            phase_id=phase_id,
            title=title or f"Milestone {price}",
            price=Decimal(price),
        )

    @staticmethod
    def create_milestones(phase_id: str, prices: List[str]) -> List[Milestone]:
        """Create milestones with distinct ids for one phase."""
        return [
            MockDataBuilder.create_milestone(
                phase_id=phase_id, price=price, id=f"{phase_id}-m{i}", title=f"Milestone {i}"
            )
            for i, price in enumerate(prices, start=1)
        ]


@pytest.fixture
def mock_data() -> MockDataBuilder:
    """Provide mock data builder for test item creation."""
    return MockDataBuilder()


# =============================================================================
# Allocator Fixtures
# =============================================================================


@pytest.fixture
def gatekeeper() -> MutationGatekeeper:
    return MutationGatekeeper(["SUSPENDED", "CANCELLED"])


@pytest.fixture
def phase_allocator(gatekeeper: MutationGatekeeper) -> PhaseAllocator:
    """PhaseAllocator with a fixed clock and default scheduling rules."""
    return PhaseAllocator(gatekeeper, today=lambda: TODAY, min_duration_days=14, gap_days=7)


@pytest.fixture
def milestone_allocator(gatekeeper: MutationGatekeeper) -> MilestoneAllocator:
    """MilestoneAllocator with a 20% cap and no settings store."""
    return MilestoneAllocator(gatekeeper, SettingsResolver(fallback=Decimal("0.20")))


# =============================================================================
# In-Memory Stores
# =============================================================================


class InMemoryProjectStore(ProjectStore):
    """ProjectStore backed by a dict, recording every write."""

    def __init__(self, project: Project, phases: Optional[List[Phase]] = None):
        self.project = project
        self.phases: Dict[str, Phase] = {p.id: p for p in phases or []}
        self.writes: List[tuple] = []
        self._next_id = len(self.phases) + 1

    def get_project_by_id(self, project_id: str) -> Project:
        if project_id != self.project.id:
            raise StoreError(f"Project {project_id} not found")
        return self.project

    def get_phases_by_project(self, project_id: str) -> List[Phase]:
        return sorted(
            (p for p in self.phases.values() if p.project_id == project_id),
            key=lambda p: p.phase_number,
        )

    def create_phase(self, project_id: str, data: Dict[str, Any]) -> Phase:
        phase_id = f"phase-new-{self._next_id}"
        self._next_id += 1
        phase = Phase.model_validate({**data, "id": phase_id, "project_id": project_id})
        self.phases[phase_id] = phase
        self.writes.append(("create", phase_id))
        return phase

    def update_phase(self, phase_id: str, data: Dict[str, Any]) -> Phase:
        phase = Phase.model_validate({**self.phases[phase_id].model_dump(), **data})
        self.phases[phase_id] = phase
        self.writes.append(("update", phase_id))
        return phase

    def delete_phase(self, phase_id: str) -> None:
        del self.phases[phase_id]
        self.writes.append(("delete", phase_id))


class InMemoryMilestoneStore(MilestoneStore):
    """MilestoneStore backed by a dict, recording every write."""

    def __init__(self, milestones: Optional[List[Milestone]] = None):
        self.milestones: Dict[str, Milestone] = {m.id: m for m in milestones or []}
        self.writes: List[tuple] = []
        self._next_id = 1

    def get_milestones_by_phase(self, phase_id: str) -> List[Milestone]:
        return [m for m in self.milestones.values() if m.phase_id == phase_id]

    def create_milestone(self, phase_id: str, data: Dict[str, Any]) -> Milestone:
        milestone_id = f"milestone-new-{self._next_id}"
        self._next_id += 1
        milestone = Milestone.model_validate({**data, "id": milestone_id, "phase_id": phase_id})
        self.milestones[milestone_id] = milestone
        self.writes.append(("create", milestone_id))
        return milestone

    def update_milestone(self, milestone_id: str, data: Dict[str, Any]) -> Milestone:
        milestone = Milestone.model_validate({**self.milestones[milestone_id].model_dump(), **data})
        self.milestones[milestone_id] = milestone
        self.writes.append(("update", milestone_id))
        return milestone

    def delete_milestone(self, milestone_id: str) -> None:
        del self.milestones[milestone_id]
        self.writes.append(("delete", milestone_id))


class FakeSettingsStore(SettingsStore):
    """SettingsStore returning a fixed value or raising a fixed error."""

    def __init__(self, value: Any = None, error: Optional[Exception] = None):
        self.value = value
        self.error = error
        self.calls = 0

    def get_setting(self, setting_type: str) -> Optional[Decimal]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.value


# =============================================================================
# Snapshot Files
# =============================================================================


def write_snapshot(
    directory: Path,
    project: Project,
    phases: Optional[List[Phase]] = None,
    milestones: Optional[List[Milestone]] = None,
    settings: Optional[Dict[str, Any]] = None,
    name: str = "snapshot.json",
) -> Path:
    """Write a snapshot JSON file and return its path."""
    snapshot = SnapshotFile(
        project=project,
        phases=phases or [],
        milestones=milestones or [],
        settings=settings or {},
    )
    path = directory / name
    with open(path, "w") as f:
        json.dump(snapshot.model_dump(mode="json"), f, indent=2)
    return path
