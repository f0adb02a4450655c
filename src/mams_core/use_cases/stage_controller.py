"""
Stage Controller

Replays pre-generated outcomes batch by batch for one trial, deciding after
every stage whether to stop, continue with all active arms, or continue with
a subset (dropping the rest). Contains no randomness: identical inputs give
identical trajectories.
"""

import logging
from dataclasses import replace

from mams_core.domain.entities import StageRecord, TrialTrajectory
from mams_core.domain.value_objects import ArmState, ArmStatus
from mams_core.harness_config import ConfigurationError, DesignConfig, validate_gamma
from mams_core.loss.decisions import DecisionSpace
from mams_core.loss.evaluator import LossEvaluator, select_action
from mams_core.outcome_generator import OutcomeDataset
from mams_core.posterior import posteriors_for

logger = logging.getLogger(__name__)


class StageController:
    """
    Sequential decision procedure for one design.

    With `allow_dropping=False` the only continuation considered is keeping
    every active arm, which skips the subset search.
    """

    def __init__(self, design: DesignConfig, n_arms: int, allow_dropping: bool = True):
        design.validate(n_arms)
        self.design = design
        self.allow_dropping = allow_dropping
        self.space = DecisionSpace(n_arms, design.has_control)
        self.evaluator = LossEvaluator(design, self.space)

    @property
    def n_arms(self) -> int:
        return self.space.n_arms

    def check_dataset(self, dataset: OutcomeDataset, trial_index: int) -> None:
        if dataset.n_arms != self.n_arms:
            raise ConfigurationError(
                f"Dataset has {dataset.n_arms} arms, design expects {self.n_arms}"
            )
        if dataset.cap < self.design.cap:
            raise ConfigurationError(
                f"Dataset holds {dataset.cap} outcomes per arm, fewer than the cap ({self.design.cap})"
            )
        if not 0 <= trial_index < dataset.num_trials:
            raise IndexError(f"Trial index {trial_index} outside [0, {dataset.num_trials})")

    def run(self, dataset: OutcomeDataset, trial_index: int, gamma: float) -> TrialTrajectory:
        """
        Simulate one trial from its first stage until it stops.

        Args:
            dataset: Pre-generated outcomes
            trial_index: Replicate to replay
            gamma: Required loss reduction per additional patient (C/Q)

        Returns:
            Terminal TrialTrajectory
        """
        gamma = validate_gamma(gamma)
        self.check_dataset(dataset, trial_index)
        trajectory = TrialTrajectory(
            trial_index=trial_index,
            dataset_fingerprint=dataset.fingerprint,
            design=self.design,
            allow_dropping=self.allow_dropping,
            gamma=gamma,
            n_arms=self.n_arms,
        )
        states = [ArmState(index=i) for i in range(self.n_arms)]
        active = tuple(range(self.n_arms))
        return self._play(dataset, trajectory, states, active, self.design.burn, gamma)

    def resume(
        self,
        dataset: OutcomeDataset,
        trajectory: TrialTrajectory,
        gamma: float | None = None,
    ) -> TrialTrajectory:
        """Continue a trajectory whose last stage chose to keep sampling"""
        if not trajectory.records or trajectory.is_terminal:
            raise ValueError(f"Trial {trajectory.trial_index} has no pending continuation")
        gamma = validate_gamma(trajectory.gamma if gamma is None else gamma)
        self.check_dataset(dataset, trajectory.trial_index)
        trajectory = replace(trajectory, gamma=gamma)
        states = trajectory.arm_states()
        active = trajectory.records[-1].action.arms
        return self._play(dataset, trajectory, states, active, self.design.batch, gamma)

    def final_arm_states(self, trajectory: TrialTrajectory) -> list[ArmState]:
        """Per-arm counts of a stopped trial, with the arms of the final decision marked selected"""
        states = trajectory.arm_states()
        for arm in self.space.members(trajectory.decision):
            states[arm] = states[arm].with_status(ArmStatus.SELECTED)
        return states

    def _play(
        self,
        dataset: OutcomeDataset,
        trajectory: TrialTrajectory,
        states: list[ArmState],
        active: tuple[int, ...],
        per_arm: int,
        gamma: float,
    ) -> TrialTrajectory:
        trial = trajectory.trial_index
        stage = trajectory.num_stages
        while True:
            patients = [0] * self.n_arms
            successes = [0] * self.n_arms
            for arm in active:
                start = states[arm].patients
                responders = dataset.successes(trial, arm, start, start + per_arm)
                states[arm] = states[arm].observe(responders, per_arm)
                patients[arm] = per_arm
                successes[arm] = responders

            total = sum(s.patients for s in states)
            posteriors = posteriors_for(states, self.design.prior)
            stop, candidates = self.evaluator.evaluate_stage(
                posteriors, active, total, self.allow_dropping
            )
            action = select_action(stop, candidates, active, gamma)
            trajectory = trajectory.append(StageRecord(
                stage=stage,
                active_arms=tuple(active),
                patients=tuple(patients),
                successes=tuple(successes),
                stop_now=stop,
                candidates=candidates,
                action=action,
                gamma=gamma,
            ))

            if action.is_stop:
                logger.debug(
                    "Trial %d stopped at stage %d with n=%d: %s%s",
                    trial, stage, total, self.space.label(action.decision),
                    " (cap reached)" if action.forced else "",
                )
                return trajectory

            active = action.arms
            per_arm = self.design.batch
            stage += 1
