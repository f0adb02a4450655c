"""
Outcome Generator

Pre-generates the binary outcomes of every patient of every replicate trial.
The same dataset is replayed by every design variant and every threshold so
that comparisons between them are paired.
"""

import hashlib
import logging
from dataclasses import dataclass, field

import numpy as np

from mams_core.domain.entities import ArmConfig
from mams_core.harness_config import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class OutcomeDataset:
    """
    Read-only outcomes of shape (num_trials, n_arms, cap).

    The first entry of `response_rates` is the control arm when the design
    has one.
    """
    response_rates: tuple[float, ...]
    outcomes: np.ndarray
    seed: int | None = None
    fingerprint: str = field(init=False)
    _cumulative: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        outcomes = np.array(self.outcomes, dtype=np.int8)
        if outcomes.ndim != 3:
            raise ConfigurationError(f"outcomes must be 3-dimensional, got shape {outcomes.shape}")
        if outcomes.shape[1] != len(self.response_rates):
            raise ConfigurationError(
                f"outcomes cover {outcomes.shape[1]} arms but {len(self.response_rates)} rates were given"
            )
        if ((outcomes != 0) & (outcomes != 1)).any():
            raise ConfigurationError("outcomes must be binary (0 or 1)")
        outcomes.setflags(write=False)

        cumulative = np.zeros(outcomes.shape[:2] + (outcomes.shape[2] + 1,), dtype=np.int32)
        np.cumsum(outcomes, axis=2, dtype=np.int32, out=cumulative[:, :, 1:])
        cumulative.setflags(write=False)

        digest = hashlib.sha256()
        digest.update(np.asarray(self.response_rates, dtype=np.float64).tobytes())
        digest.update(str(outcomes.shape).encode("utf-8"))
        digest.update(outcomes.tobytes())

        object.__setattr__(self, "outcomes", outcomes)
        object.__setattr__(self, "_cumulative", cumulative)
        object.__setattr__(self, "fingerprint", digest.hexdigest())

    @property
    def num_trials(self) -> int:
        return self.outcomes.shape[0]

    @property
    def n_arms(self) -> int:
        return self.outcomes.shape[1]

    @property
    def cap(self) -> int:
        return self.outcomes.shape[2]

    def successes(self, trial: int, arm: int, start: int, stop: int) -> int:
        """Number of responders among patients start..stop-1 of an arm"""
        if not 0 <= start <= stop <= self.cap:
            raise IndexError(f"Patient range [{start}, {stop}) outside [0, {self.cap}]")
        row = self._cumulative[trial, arm]
        return int(row[stop] - row[start])

    def arm_configs(
        self, has_control: bool = True, prior: tuple[float, float] = (1.0, 1.0)
    ) -> list[ArmConfig]:
        return [
            ArmConfig(index=i, is_control=has_control and i == 0, response_rate=rate, prior=prior)
            for i, rate in enumerate(self.response_rates)
        ]


def _check_rates(response_rates) -> tuple[float, ...]:
    rates = tuple(float(p) for p in response_rates)
    if not rates:
        raise ConfigurationError("At least one response rate is required")
    for p in rates:
        if not 0.0 <= p <= 1.0:
            raise ConfigurationError(f"Response rate outside [0, 1]: {p}")
    return rates


def generate_outcomes(
    response_rates,
    cap: int,
    num_trials: int,
    seed: int | None = None,
) -> OutcomeDataset:
    """
    Draw Bernoulli outcomes for every replicate and arm.

    Args:
        response_rates: True response probability per arm
        cap: Maximum number of patients in one trial (outcomes per arm)
        num_trials: Number of replicate trials
        seed: Seed for numpy's default generator (None for fresh entropy)

    Returns:
        OutcomeDataset

    Raises:
        ConfigurationError: On rates outside [0, 1] or a non-positive cap / replicate count
    """
    rates = _check_rates(response_rates)
    if cap <= 0:
        raise ConfigurationError(f"cap must be a positive integer: {cap}")
    if num_trials <= 0:
        raise ConfigurationError(f"num_trials must be a positive integer: {num_trials}")

    rng = np.random.default_rng(seed)
    draws = rng.random((num_trials, len(rates), cap))
    outcomes = (draws < np.asarray(rates)[None, :, None]).astype(np.int8)

    logger.info(
        "Generated outcomes for %d trials x %d arms (cap=%d, seed=%s)",
        num_trials, len(rates), cap, seed,
    )
    return OutcomeDataset(response_rates=rates, outcomes=outcomes, seed=seed)
