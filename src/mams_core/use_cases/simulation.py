"""
Simulation Execution

Runs every replicate trial of a scenario, or reevaluates a finished run
under a new threshold, fanning trial indices out over a worker pool.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable

from mams_core.domain.entities import TrialFailure, TrialTrajectory
from mams_core.harness_config import ConfigurationError, DesignConfig, validate_gamma
from mams_core.loss.decisions import DecisionSpace
from mams_core.outcome_generator import OutcomeDataset
from mams_core.use_cases.reevaluation import ReevaluationError, check_pairing, reevaluate
from mams_core.use_cases.stage_controller import StageController

logger = logging.getLogger(__name__)


@dataclass
class SimulationRun:
    """Trajectories of one (dataset, design, threshold, drop policy) combination"""
    design: DesignConfig
    gamma: float
    allow_dropping: bool
    dataset_fingerprint: str
    n_arms: int
    trajectories: dict[int, TrialTrajectory] = field(default_factory=dict)
    failures: list[TrialFailure] = field(default_factory=list)

    @property
    def space(self) -> DecisionSpace:
        return DecisionSpace(self.n_arms, self.design.has_control)

    @property
    def is_complete(self) -> bool:
        return not self.failures

    def ordered(self) -> list[TrialTrajectory]:
        """Successful trajectories sorted by trial index"""
        return [self.trajectories[i] for i in sorted(self.trajectories)]


def _effective_workers(max_workers: int) -> int:
    if max_workers <= 0:
        raise ConfigurationError(f"max_workers must be a positive integer: {max_workers}")
    return max(1, min(max_workers, os.cpu_count() or 1))


def _run_parallel(
    work: Callable[[int], TrialTrajectory],
    trial_indices: list[int],
    max_workers: int,
) -> tuple[dict[int, TrialTrajectory], list[TrialFailure]]:
    """Scatter trial indices over a thread pool and gather results by index"""
    trajectories: dict[int, TrialTrajectory] = {}
    failures: list[TrialFailure] = []

    with ThreadPoolExecutor(max_workers=_effective_workers(max_workers)) as executor:
        futures = {executor.submit(work, idx): idx for idx in trial_indices}

        for future in as_completed(futures):
            idx = futures[future]
            try:
                trajectories[idx] = future.result()
            except Exception as e:
                logger.warning("Trial %d failed: %s", idx, e)
                failures.append(TrialFailure(trial_index=idx, error=f"{type(e).__name__}: {e}"))

    failures.sort(key=lambda f: f.trial_index)
    return trajectories, failures


def simulate_trials(
    dataset: OutcomeDataset,
    design: DesignConfig,
    gamma: float,
    allow_dropping: bool = True,
    max_workers: int = 8,
    trial_indices: list[int] | None = None,
) -> SimulationRun:
    """
    Simulate replicate trials in parallel.

    Args:
        dataset: Pre-generated outcomes shared by all workers (read only)
        design: Trial design
        gamma: Cost-to-benefit threshold (C/Q)
        allow_dropping: Consider continuing with subsets of the active arms
        max_workers: Upper bound on worker threads (further capped by CPU count)
        trial_indices: Replicates to simulate (default: all)

    Returns:
        SimulationRun keyed by trial index. Failed trials are listed in
        `failures` and do not prevent the others from completing.

    Raises:
        ConfigurationError: On an invalid design or threshold (before any trial runs)
    """
    gamma = validate_gamma(gamma)
    controller = StageController(design, dataset.n_arms, allow_dropping=allow_dropping)
    controller.check_dataset(dataset, 0)
    if trial_indices is None:
        trial_indices = list(range(dataset.num_trials))

    variant = "dropping" if allow_dropping else "no-dropping"
    logger.info(
        "Simulating %d trials (%s, gamma=%g, cap=%d)",
        len(trial_indices), variant, gamma, design.cap,
    )
    trajectories, failures = _run_parallel(
        lambda idx: controller.run(dataset, idx, gamma),
        trial_indices,
        max_workers,
    )
    if failures:
        logger.warning("%d of %d trials failed", len(failures), len(trial_indices))

    return SimulationRun(
        design=design,
        gamma=gamma,
        allow_dropping=allow_dropping,
        dataset_fingerprint=dataset.fingerprint,
        n_arms=dataset.n_arms,
        trajectories=trajectories,
        failures=failures,
    )


def reevaluate_trials(
    run: SimulationRun,
    dataset: OutcomeDataset,
    gamma: float,
    max_workers: int = 8,
) -> SimulationRun:
    """
    Reevaluate every trajectory of a run under a new threshold.

    Every trajectory is checked against the dataset before any work is
    submitted, so a mismatched dataset rejects the whole request.

    Raises:
        ReevaluationError: If a trajectory does not belong to `dataset`
    """
    gamma = validate_gamma(gamma)
    if run.dataset_fingerprint != dataset.fingerprint:
        raise ReevaluationError("Run was simulated on a different dataset")
    for trajectory in run.trajectories.values():
        check_pairing(trajectory, dataset)

    controller = StageController(run.design, dataset.n_arms, allow_dropping=run.allow_dropping)
    logger.info(
        "Reevaluating %d trials at gamma=%g (simulated at gamma=%g)",
        len(run.trajectories), gamma, run.gamma,
    )
    trajectories, failures = _run_parallel(
        lambda idx: reevaluate(run.trajectories[idx], dataset, gamma, controller=controller),
        sorted(run.trajectories),
        max_workers,
    )
    return SimulationRun(
        design=run.design,
        gamma=gamma,
        allow_dropping=run.allow_dropping,
        dataset_fingerprint=run.dataset_fingerprint,
        n_arms=run.n_arms,
        trajectories=trajectories,
        failures=sorted(run.failures + failures, key=lambda f: f.trial_index),
    )
