"""
Tests for MutationGatekeeper.
"""

import pytest

from ffund.managers import MutationGatekeeper, MutationRequest
from ffund.models.base import PhaseStatus, ProjectStatus
from ffund.models.proposals import MutationKind
from ffund.models.results import ErrorKind


class TestEditability:
    """Tests for the is_*_editable queries."""

    def test_plan_phase_is_editable(self, gatekeeper, mock_data):
        assert gatekeeper.is_phase_editable(mock_data.create_phase())

    @pytest.mark.parametrize("status", [PhaseStatus.PROCESS, PhaseStatus.COMPLETED])
    def test_started_phase_is_not_editable(self, gatekeeper, mock_data, status):
        assert not gatekeeper.is_phase_editable(mock_data.create_phase(status=status))

    def test_milestone_follows_phase(self, gatekeeper, mock_data):
        milestone = mock_data.create_milestone()
        assert gatekeeper.is_milestone_editable(milestone, mock_data.create_phase())
        assert not gatekeeper.is_milestone_editable(
            milestone, mock_data.create_phase(status=PhaseStatus.PROCESS)
        )

    @pytest.mark.parametrize("status", [ProjectStatus.SUSPENDED, ProjectStatus.CANCELLED])
    def test_locked_project_locks_plan_phase(self, gatekeeper, mock_data, status):
        project = mock_data.create_project(status=status)
        assert not gatekeeper.is_project_editable(project)
        assert not gatekeeper.is_phase_editable(mock_data.create_phase(), project)

    def test_fundraising_project_is_not_locked(self, gatekeeper, mock_data):
        project = mock_data.create_project(status=ProjectStatus.FUNDRAISING)
        assert gatekeeper.is_phase_editable(mock_data.create_phase(), project)

    def test_unknown_project_is_editable(self, gatekeeper):
        assert gatekeeper.is_project_editable(None)

    def test_custom_locked_statuses(self, mock_data):
        gatekeeper = MutationGatekeeper(["FUNDRAISING"])
        assert not gatekeeper.is_project_editable(
            mock_data.create_project(status=ProjectStatus.FUNDRAISING)
        )
        assert gatekeeper.is_project_editable(
            mock_data.create_project(status=ProjectStatus.SUSPENDED)
        )

    def test_defaults_come_from_config(self):
        gatekeeper = MutationGatekeeper()
        assert gatekeeper.locked_project_statuses == frozenset(
            {ProjectStatus.SUSPENDED, ProjectStatus.CANCELLED}
        )


class TestAuthorize:
    """Tests for authorize."""

    def test_add_phase_without_target(self, gatekeeper, mock_data):
        result = gatekeeper.authorize(
            MutationRequest(kind=MutationKind.ADD_PHASE, project=mock_data.create_project())
        )
        assert result.ok

    def test_phase_not_editable(self, gatekeeper, mock_data):
        phase = mock_data.create_phase(status=PhaseStatus.PROCESS)
        result = gatekeeper.authorize(
            MutationRequest(kind=MutationKind.UPDATE_PHASE, target_phase=phase)
        )
        assert result.error.kind == ErrorKind.PHASE_NOT_EDITABLE
        assert "'PROCESS'" in result.error.message

    def test_milestone_message(self, gatekeeper, mock_data):
        phase = mock_data.create_phase(status=PhaseStatus.COMPLETED)
        result = gatekeeper.authorize(
            MutationRequest(
                kind=MutationKind.UPDATE_MILESTONE,
                target_phase=phase,
                target_milestone=mock_data.create_milestone(),
            )
        )
        assert result.error.kind == ErrorKind.PHASE_NOT_EDITABLE
        assert "milestones of phase 1" in result.error.message

    def test_project_lock_reported_first(self, gatekeeper, mock_data):
        result = gatekeeper.authorize(
            MutationRequest(
                kind=MutationKind.REMOVE_PHASE,
                project=mock_data.create_project(status=ProjectStatus.CANCELLED),
                target_phase=mock_data.create_phase(status=PhaseStatus.PROCESS),
            )
        )
        assert result.error.kind == ErrorKind.NOT_EDITABLE

    def test_same_snapshot_same_answer(self, gatekeeper, mock_data):
        request = MutationRequest(
            kind=MutationKind.UPDATE_PHASE,
            project=mock_data.create_project(),
            target_phase=mock_data.create_phase(status=PhaseStatus.PROCESS),
        )
        answers = {gatekeeper.authorize(request).error.kind for _ in range(5)}
        assert answers == {ErrorKind.PHASE_NOT_EDITABLE}


class TestTransitions:
    """Tests for can_transition."""

    def test_forward_moves_allowed(self):
        assert MutationGatekeeper.can_transition(PhaseStatus.PLAN, PhaseStatus.PROCESS)
        assert MutationGatekeeper.can_transition(PhaseStatus.PROCESS, PhaseStatus.COMPLETED)
        assert MutationGatekeeper.can_transition(PhaseStatus.PLAN, PhaseStatus.PLAN)

    def test_backward_moves_rejected(self):
        assert not MutationGatekeeper.can_transition(PhaseStatus.PROCESS, PhaseStatus.PLAN)
        assert not MutationGatekeeper.can_transition(PhaseStatus.COMPLETED, PhaseStatus.PROCESS)
