"""
Tests for MilestoneAllocator.

Covers the per-milestone cap, the phase goal ceiling, remaining budget
and the edit lock on phases that have left PLAN.
"""

from decimal import Decimal

import pytest

from conftest import FakeSettingsStore, MockDataBuilder
from ffund.exceptions import AllocationStateError
from ffund.managers import MilestoneAllocator, SettingsResolver
from ffund.models.base import PhaseStatus, ProjectStatus
from ffund.models.proposals import MilestoneCandidate, MilestoneChanges
from ffund.models.results import ErrorKind, WarningKind


def candidate(price="200", title="Prototype") -> MilestoneCandidate:
    return MilestoneCandidate(
        title=title, price=Decimal(price) if price is not None else None
    )


@pytest.fixture
def phase(mock_data):
    return mock_data.create_phase(goal="1000")


class TestRemainingBudget:
    """Tests for compute_remaining_budget."""

    def test_empty_phase(self, milestone_allocator, phase):
        assert milestone_allocator.compute_remaining_budget(phase, []) == Decimal("1000.00")

    def test_subtracts_prices(self, milestone_allocator, phase):
        milestones = MockDataBuilder.create_milestones(phase.id, ["200", "150.50"])
        assert milestone_allocator.compute_remaining_budget(phase, milestones) == Decimal("649.50")

    def test_excluding_one_milestone(self, milestone_allocator, phase):
        milestones = MockDataBuilder.create_milestones(phase.id, ["200", "150"])
        remaining = milestone_allocator.compute_remaining_budget(phase, milestones, "phase-1-m1")
        assert remaining == Decimal("850.00")

    def test_negative_when_over_allocated(self, milestone_allocator, phase):
        milestones = MockDataBuilder.create_milestones(phase.id, ["600", "600"])
        assert milestone_allocator.compute_remaining_budget(phase, milestones) == Decimal("-200.00")

    def test_idempotent_and_pure(self, milestone_allocator, phase):
        milestones = MockDataBuilder.create_milestones(phase.id, ["200", "100"])
        before = [m.model_dump() for m in milestones]
        first = milestone_allocator.compute_remaining_budget(phase, milestones)
        second = milestone_allocator.compute_remaining_budget(phase, milestones)
        assert first == second
        assert [m.model_dump() for m in milestones] == before
        assert len(milestones) == 2


class TestCapScenario:
    """Phase goal 1000 with a 20% cap."""

    def test_one_over_cap_rejected(self, milestone_allocator, phase):
        result = milestone_allocator.propose_add_milestone(phase, [], candidate("201"))
        assert result.error.kind == ErrorKind.EXCEEDS_PER_MILESTONE_CAP
        assert result.error.bound == "200.00"
        assert "exceeds 20%" in result.error.message
        assert "$200.00" in result.error.message

    def test_exactly_at_cap_accepted(self, milestone_allocator, phase):
        result = milestone_allocator.propose_add_milestone(phase, [], candidate("200"))
        assert result.ok
        assert result.value.price == Decimal("200.00")
        assert result.value.phase_id == phase.id
        assert [w.kind for w in result.warnings] == [WarningKind.PARTIAL_ALLOCATION]
        assert result.warnings[0].shortfall == Decimal("800.00")

    def test_max_allowed_price(self, milestone_allocator, phase):
        assert milestone_allocator.max_allowed_price(phase) == Decimal("200.00")


class TestCapOnUnevenGoal:
    """Phase goal 999.99: 20% is 199.998, which is not a whole cent."""

    @pytest.fixture
    def uneven_phase(self, mock_data):
        return mock_data.create_phase(goal="999.99")

    def test_price_above_exact_cap_rejected(self, milestone_allocator, uneven_phase):
        result = milestone_allocator.propose_add_milestone(
            uneven_phase, [], candidate("200.00"), max_percentage=Decimal("0.2")
        )
        assert result.error.kind == ErrorKind.EXCEEDS_PER_MILESTONE_CAP
        assert result.error.bound == "199.99"
        assert "$199.99" in result.error.message

    def test_largest_whole_cent_accepted(self, milestone_allocator, uneven_phase):
        result = milestone_allocator.propose_add_milestone(
            uneven_phase, [], candidate("199.99"), max_percentage=Decimal("0.2")
        )
        assert result.ok
        assert result.value.price <= uneven_phase.funding_goal * Decimal("0.2")

    def test_update_above_exact_cap_rejected(self, milestone_allocator, uneven_phase):
        milestones = MockDataBuilder.create_milestones(uneven_phase.id, ["100"])
        result = milestone_allocator.propose_update_milestone(
            uneven_phase, milestones, "phase-1-m1", MilestoneChanges(price=Decimal("200"))
        )
        assert result.error.kind == ErrorKind.EXCEEDS_PER_MILESTONE_CAP

    def test_max_allowed_price_rounds_down(self, milestone_allocator, uneven_phase):
        assert milestone_allocator.max_allowed_price(uneven_phase) == Decimal("199.99")



class TestProposeAddMilestone:
    """Tests for adding a milestone."""

    def test_missing_phase(self, milestone_allocator):
        result = milestone_allocator.propose_add_milestone(None, [], candidate())
        assert result.error.kind == ErrorKind.MISSING_REQUIRED_FIELD
        assert result.error.field == "phase_id"

    def test_blank_title(self, milestone_allocator, phase):
        result = milestone_allocator.propose_add_milestone(phase, [], candidate(title="   "))
        assert result.error.kind == ErrorKind.MISSING_REQUIRED_FIELD
        assert result.error.field == "title"

    def test_missing_price(self, milestone_allocator, phase):
        result = milestone_allocator.propose_add_milestone(phase, [], candidate(price=None))
        assert result.error.kind == ErrorKind.MISSING_REQUIRED_FIELD
        assert result.error.field == "price"

    def test_price_rounding_to_zero_is_allowed(self, milestone_allocator, phase):
        result = milestone_allocator.propose_add_milestone(phase, [], candidate("0.004"))
        assert result.ok
        assert result.value.price == Decimal("0.00")

    def test_negative_price_raises(self, milestone_allocator, phase):
        with pytest.raises(AllocationStateError):
            milestone_allocator.propose_add_milestone(phase, [], candidate("-5"))

    def test_milestone_of_other_phase_raises(self, milestone_allocator, phase):
        stray = MockDataBuilder.create_milestones("phase-2", ["100"])
        with pytest.raises(AllocationStateError):
            milestone_allocator.propose_add_milestone(phase, stray, candidate())

    def test_exceeds_phase_goal(self, milestone_allocator, phase):
        existing = MockDataBuilder.create_milestones(phase.id, ["200", "200", "200", "200", "100"])
        result = milestone_allocator.propose_add_milestone(phase, existing, candidate("150"))
        assert result.error.kind == ErrorKind.EXCEEDS_PHASE_GOAL
        assert result.error.bound == "100.00"

    def test_filling_goal_has_no_warning(self, milestone_allocator, phase):
        existing = MockDataBuilder.create_milestones(phase.id, ["200", "200", "200", "200"])
        result = milestone_allocator.propose_add_milestone(phase, existing, candidate("200"))
        assert result.ok
        assert result.warnings == []

    def test_phase_in_process_not_editable(self, milestone_allocator, mock_data):
        phase = mock_data.create_phase(goal="1000", status=PhaseStatus.PROCESS)
        result = milestone_allocator.propose_add_milestone(phase, [], candidate("100"))
        assert result.error.kind == ErrorKind.PHASE_NOT_EDITABLE

    def test_cancelled_project_not_editable(self, milestone_allocator, phase, mock_data):
        project = mock_data.create_project(status=ProjectStatus.CANCELLED)
        result = milestone_allocator.propose_add_milestone(
            phase, [], candidate("100"), project=project
        )
        assert result.error.kind == ErrorKind.NOT_EDITABLE

    def test_title_is_trimmed(self, milestone_allocator, phase):
        result = milestone_allocator.propose_add_milestone(phase, [], candidate(title="  Tooling "))
        assert result.value.title == "Tooling"
        assert result.value.id is None


class TestCapSources:
    """Where the per-milestone cap comes from."""

    def test_explicit_ratio(self, milestone_allocator, phase):
        result = milestone_allocator.propose_add_milestone(
            phase, [], candidate("500"), max_percentage=Decimal("0.5")
        )
        assert result.ok

    def test_explicit_percentage(self, milestone_allocator, phase):
        result = milestone_allocator.propose_add_milestone(
            phase, [], candidate("251"), max_percentage=Decimal("25")
        )
        assert result.error.kind == ErrorKind.EXCEEDS_PER_MILESTONE_CAP
        assert result.error.bound == "250.00"

    def test_unusable_explicit_value_falls_back(self, milestone_allocator, phase):
        result = milestone_allocator.propose_add_milestone(
            phase, [], candidate("201"), max_percentage=Decimal("0")
        )
        assert result.error.bound == "200.00"

    def test_settings_store_value(self, gatekeeper, phase):
        allocator = MilestoneAllocator(
            gatekeeper, SettingsResolver(FakeSettingsStore(Decimal("0.3")))
        )
        assert allocator.max_allowed_price(phase) == Decimal("300.00")

    def test_failing_settings_store_uses_fallback(self, gatekeeper, phase):
        allocator = MilestoneAllocator(
            gatekeeper,
            SettingsResolver(FakeSettingsStore(error=ConnectionError("down")), Decimal("0.20")),
        )
        result = allocator.propose_add_milestone(phase, [], candidate("201"))
        assert result.error.kind == ErrorKind.EXCEEDS_PER_MILESTONE_CAP
        assert result.error.bound == "200.00"


class TestProposeUpdateMilestone:
    """Tests for changing a milestone."""

    def test_not_found(self, milestone_allocator, phase):
        result = milestone_allocator.propose_update_milestone(
            phase, [], "missing", MilestoneChanges(price=Decimal("10"))
        )
        assert result.error.kind == ErrorKind.MILESTONE_NOT_FOUND
        assert result.error.kind.is_stale_snapshot

    def test_process_phase_not_editable(self, milestone_allocator, mock_data):
        phase = mock_data.create_phase(goal="1000", status=PhaseStatus.PROCESS)
        milestones = MockDataBuilder.create_milestones(phase.id, ["200"])
        result = milestone_allocator.propose_update_milestone(
            phase, milestones, "phase-1-m1", MilestoneChanges(price=Decimal("5000"))
        )
        assert result.error.kind == ErrorKind.PHASE_NOT_EDITABLE

    def test_old_price_is_excluded(self, milestone_allocator, phase):
        milestones = MockDataBuilder.create_milestones(phase.id, ["200"] * 5)
        result = milestone_allocator.propose_update_milestone(
            phase, milestones, "phase-1-m1", MilestoneChanges(price=Decimal("150"))
        )
        assert result.ok
        assert result.value.id == "phase-1-m1"
        assert result.value.price == Decimal("150.00")
        assert result.warnings[0].allocated == Decimal("950.00")

    def test_update_over_cap(self, milestone_allocator, phase):
        milestones = MockDataBuilder.create_milestones(phase.id, ["100"])
        result = milestone_allocator.propose_update_milestone(
            phase, milestones, "phase-1-m1", MilestoneChanges(price=Decimal("201"))
        )
        assert result.error.kind == ErrorKind.EXCEEDS_PER_MILESTONE_CAP

    def test_blank_title_rejected(self, milestone_allocator, phase):
        milestones = MockDataBuilder.create_milestones(phase.id, ["100"])
        result = milestone_allocator.propose_update_milestone(
            phase, milestones, "phase-1-m1", MilestoneChanges(title=" ")
        )
        assert result.error.kind == ErrorKind.MISSING_REQUIRED_FIELD

    def test_keeps_unchanged_fields(self, milestone_allocator, phase):
        milestones = MockDataBuilder.create_milestones(phase.id, ["100"])
        result = milestone_allocator.propose_update_milestone(
            phase, milestones, "phase-1-m1", MilestoneChanges(description="Details")
        )
        assert result.value.title == "Milestone 1"
        assert result.value.price == Decimal("100.00")
        assert result.value.description == "Details"


class TestProposeRemoveMilestone:
    """Tests for removing a milestone."""

    def test_remove(self, milestone_allocator, phase):
        milestones = MockDataBuilder.create_milestones(phase.id, ["200", "300"])
        result = milestone_allocator.propose_remove_milestone(phase, milestones, "phase-1-m2")
        assert result.ok
        assert result.warnings == []
        assert result.value.remaining_ids == ["phase-1-m1"]
        assert result.value.remaining_total == Decimal("200.00")
        assert result.value.unallocated == Decimal("800.00")

    def test_not_found(self, milestone_allocator, phase):
        result = milestone_allocator.propose_remove_milestone(phase, [], "missing")
        assert result.error.kind == ErrorKind.MILESTONE_NOT_FOUND

    def test_completed_phase_not_editable(self, milestone_allocator, mock_data):
        phase = mock_data.create_phase(goal="1000", status=PhaseStatus.COMPLETED)
        milestones = MockDataBuilder.create_milestones(phase.id, ["200"])
        result = milestone_allocator.propose_remove_milestone(phase, milestones, "phase-1-m1")
        assert result.error.kind == ErrorKind.PHASE_NOT_EDITABLE


class TestMilestoneInvariants:
    """Cap and sum properties over accepted milestones."""

    def test_accepted_milestones_respect_cap_and_goal(self, milestone_allocator, phase):
        accepted = []
        for i, price in enumerate(["200", "199.99", "250", "200", "150", "200", "50"], start=1):
            result = milestone_allocator.propose_add_milestone(phase, accepted, candidate(price))
            if result.ok:
                accepted.append(
                    MockDataBuilder.create_milestone(
                        phase_id=phase.id, price=str(result.value.price), id=f"m{i}"
                    )
                )

        assert all(m.price <= Decimal("200.00") for m in accepted)
        assert sum(m.price for m in accepted) <= phase.funding_goal
        assert [str(m.price) for m in accepted] == ["200.00", "199.99", "200.00", "150.00", "200.00", "50.00"]
