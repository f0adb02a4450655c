"""Tests for use_cases/stage_controller.py"""

import pytest

from mams_core.domain.value_objects import ActionKind, ArmStatus
from mams_core.harness_config import ConfigurationError, DesignConfig
from mams_core.outcome_generator import generate_outcomes
from mams_core.use_cases.stage_controller import StageController

SMALL_DESIGN = DesignConfig(delta=0.1, cap=60, burn=6, batch=3, grid_size=64)


@pytest.fixture(scope="module")
def dataset():
    return generate_outcomes((0.2, 0.2, 0.35), cap=60, num_trials=10, seed=7)


@pytest.fixture(scope="module")
def controller():
    return StageController(SMALL_DESIGN, 3)


class TestRun:
    def test_deterministic(self, controller, dataset):
        assert controller.run(dataset, 3, 0.0015) == controller.run(dataset, 3, 0.0015)

    def test_trajectory_metadata(self, controller, dataset):
        trajectory = controller.run(dataset, 0, 0.0015)
        assert trajectory.trial_index == 0
        assert trajectory.dataset_fingerprint == dataset.fingerprint
        assert trajectory.design == SMALL_DESIGN
        assert trajectory.gamma == 0.0015
        assert trajectory.is_terminal

    @pytest.mark.parametrize("gamma", [1e-4, 0.0015])
    def test_stage_invariants(self, controller, dataset, gamma):
        for idx in range(dataset.num_trials):
            trajectory = controller.run(dataset, idx, gamma)
            records = trajectory.records
            assert records[0].patients == (6, 6, 6)
            assert [r.stage for r in records] == list(range(len(records)))
            for before, after in zip(records, records[1:]):
                assert after.active_arms == before.action.arms
                assert set(after.active_arms) <= set(before.active_arms)
                assert all(after.patients[a] == 3 for a in after.active_arms)
            for record in records:
                # Control is kept and at least one experimental arm remains
                assert 0 in record.active_arms
                assert set(record.active_arms) & {1, 2}
            assert trajectory.sample_size <= SMALL_DESIGN.cap
            assert trajectory.sample_size == sum(s.patients for s in trajectory.arm_states())

    def test_recorded_successes_match_dataset(self, controller, dataset):
        trajectory = controller.run(dataset, 5, 1e-4)
        consumed = [0, 0, 0]
        for record in trajectory.records:
            for arm, n in enumerate(record.patients):
                assert record.successes[arm] == dataset.successes(5, arm, consumed[arm], consumed[arm] + n)
                consumed[arm] += n

    def test_no_dropping_keeps_every_arm(self, dataset):
        controller = StageController(SMALL_DESIGN, 3, allow_dropping=False)
        for idx in range(dataset.num_trials):
            trajectory = controller.run(dataset, idx, 1e-4)
            for record in trajectory.records:
                assert record.active_arms == (0, 1, 2)
                assert record.action.kind is not ActionKind.DROP
                assert len(record.candidates) <= 1

    def test_cap_equal_to_first_stage_forces_stop(self, dataset):
        design = DesignConfig(delta=0.1, cap=18, burn=6, batch=3, grid_size=64)
        trajectory = StageController(design, 3).run(dataset, 0, 1e-6)
        assert trajectory.num_stages == 1
        assert trajectory.sample_size == 18
        assert trajectory.forced_stop is True
        assert trajectory.records[0].candidates == ()

    def test_large_gamma_stops_after_first_stage(self, controller, dataset):
        trajectory = controller.run(dataset, 0, 10.0)
        assert trajectory.num_stages == 1
        assert trajectory.forced_stop is False

    def test_selection_setting(self):
        design = DesignConfig(delta=0.0, cap=60, burn=6, batch=3, grid_size=64, has_control=False)
        data = generate_outcomes((0.3, 0.3, 0.5), cap=60, num_trials=3, seed=11)
        controller = StageController(design, 3)
        for idx in range(3):
            trajectory = controller.run(data, idx, 0.0015)
            assert trajectory.decision in (0, 1, 2)
            for record in trajectory.records:
                assert record.active_arms


class TestFinalArmStates:
    def test_selected_arms_marked(self, controller, dataset):
        trajectory = controller.run(dataset, 2, 1e-4)
        states = controller.final_arm_states(trajectory)
        members = set(controller.space.members(trajectory.decision))
        for state in states:
            if state.index in members:
                assert state.status is ArmStatus.SELECTED
            else:
                assert state.status is not ArmStatus.SELECTED


class TestValidation:
    def test_arm_count_mismatch(self, controller):
        data = generate_outcomes((0.2, 0.3), cap=60, num_trials=2, seed=1)
        with pytest.raises(ConfigurationError, match="arms"):
            controller.run(data, 0, 0.0015)

    def test_dataset_shorter_than_cap(self, controller):
        data = generate_outcomes((0.2, 0.2, 0.3), cap=30, num_trials=2, seed=1)
        with pytest.raises(ConfigurationError, match="cap"):
            controller.run(data, 0, 0.0015)

    def test_trial_index_out_of_range(self, controller, dataset):
        with pytest.raises(IndexError):
            controller.run(dataset, 10, 0.0015)

    def test_invalid_gamma(self, controller, dataset):
        with pytest.raises(ConfigurationError):
            controller.run(dataset, 0, 0.0)

    def test_invalid_design(self):
        with pytest.raises(ConfigurationError):
            StageController(DesignConfig(cap=10, burn=6), 3)

    def test_resume_of_stopped_trial_raises(self, controller, dataset):
        trajectory = controller.run(dataset, 0, 0.0015)
        with pytest.raises(ValueError, match="no pending continuation"):
            controller.resume(dataset, trajectory)
