"""
Trajectory Reevaluation

Re-derives a trial under a different cost threshold without drawing new
data. Stored loss evaluations are re-tested against the new threshold;
once the new decision departs from the recorded continuation, the stage
controller takes over from that state using the same outcome rows.
"""

import logging
from dataclasses import replace

from mams_core.domain.entities import TrialTrajectory
from mams_core.harness_config import validate_gamma
from mams_core.loss.evaluator import select_action
from mams_core.outcome_generator import OutcomeDataset
from mams_core.use_cases.stage_controller import StageController

logger = logging.getLogger(__name__)


class ReevaluationError(ValueError):
    """Raised when a trajectory cannot be replayed against a dataset"""


def check_pairing(trajectory: TrialTrajectory, dataset: OutcomeDataset) -> None:
    """
    Verify that a trajectory was produced from this dataset.

    Raises:
        ReevaluationError: On a different dataset, a trial index outside the
            dataset, a trajectory that has not stopped, or recorded batches that
            disagree with the stored outcomes
    """
    idx = trajectory.trial_index
    if trajectory.dataset_fingerprint != dataset.fingerprint:
        raise ReevaluationError(f"Trial {idx} was simulated on a different dataset")
    if not 0 <= idx < dataset.num_trials:
        raise ReevaluationError(f"Trial index {idx} outside [0, {dataset.num_trials})")
    if trajectory.n_arms != dataset.n_arms:
        raise ReevaluationError(
            f"Trial {idx} has {trajectory.n_arms} arms, dataset has {dataset.n_arms}"
        )
    if not trajectory.is_terminal:
        raise ReevaluationError(f"Trial {idx} is truncated (no final stop)")

    consumed = [0] * trajectory.n_arms
    for position, record in enumerate(trajectory.records):
        if record.stage != position:
            raise ReevaluationError(f"Trial {idx} has non-consecutive stage numbers")
        for arm, n in enumerate(record.patients):
            if n == 0:
                continue
            if consumed[arm] + n > dataset.cap:
                raise ReevaluationError(f"Trial {idx} consumed more outcomes than the dataset holds")
            expected = dataset.successes(idx, arm, consumed[arm], consumed[arm] + n)
            if record.successes[arm] != expected:
                raise ReevaluationError(
                    f"Trial {idx}, stage {record.stage}, arm {arm}: recorded "
                    f"{record.successes[arm]} responders, dataset has {expected}"
                )
            consumed[arm] += n


def reevaluate(
    trajectory: TrialTrajectory,
    dataset: OutcomeDataset,
    gamma: float,
    controller: StageController | None = None,
) -> TrialTrajectory:
    """
    Replay a trial under a new threshold.

    Args:
        trajectory: Terminal trajectory produced by a StageController
        dataset: The dataset the trajectory was simulated on
        gamma: New cost-to-benefit threshold (C/Q)
        controller: Controller for the trajectory's design (built when None)

    Returns:
        Terminal TrialTrajectory consistent with `gamma`. With the original
        gamma the result equals the input.

    Raises:
        ReevaluationError: If the trajectory and dataset do not match
    """
    gamma = validate_gamma(gamma)
    check_pairing(trajectory, dataset)
    if controller is None:
        controller = StageController(
            trajectory.design, trajectory.n_arms, allow_dropping=trajectory.allow_dropping
        )
    elif (controller.design, controller.allow_dropping) != (trajectory.design, trajectory.allow_dropping):
        raise ReevaluationError(f"Controller design does not match trial {trajectory.trial_index}")

    records = []
    for record in trajectory.records:
        action = select_action(record.stop_now, record.candidates, record.active_arms, gamma)
        records.append(replace(record, action=action, gamma=gamma))
        if action.is_stop:
            return replace(trajectory, gamma=gamma, records=tuple(records))
        if action != record.action:
            break

    logger.debug(
        "Trial %d diverges at stage %d under gamma=%g; resuming simulation",
        trajectory.trial_index, len(records) - 1, gamma,
    )
    prefix = replace(trajectory, gamma=gamma, records=tuple(records))
    return controller.resume(dataset, prefix, gamma)
