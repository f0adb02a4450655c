"""
Beta Posterior Model

Conjugate Beta-Bernoulli updating of the response rate of each arm.
"""

from dataclasses import dataclass

import numpy as np
from scipy.stats import betabinom

from mams_core.domain.value_objects import ArmState


@dataclass(frozen=True)
class BetaPosterior:
    """Beta(a, b) belief about one arm's response rate"""
    a: float
    b: float

    def __post_init__(self):
        if self.a <= 0 or self.b <= 0:
            raise ValueError(f"Beta parameters must be positive: ({self.a}, {self.b})")

    @property
    def mean(self) -> float:
        return self.a / (self.a + self.b)

    @property
    def variance(self) -> float:
        total = self.a + self.b
        return self.a * self.b / (total * total * (total + 1))

    def update(self, successes: int, failures: int) -> "BetaPosterior":
        return BetaPosterior(self.a + successes, self.b + failures)

    def predictive_pmf(self, n: int) -> np.ndarray:
        """Beta-binomial probability of 0..n responders among the next n patients"""
        return betabinom.pmf(np.arange(n + 1), n, self.a, self.b)


def posterior(prior: tuple[float, float], successes: int, failures: int) -> BetaPosterior:
    """Beta(a0 + successes, b0 + failures)"""
    a0, b0 = prior
    return BetaPosterior(a0 + successes, b0 + failures)


def posteriors_for(states: list[ArmState], prior: tuple[float, float]) -> list[BetaPosterior]:
    return [posterior(prior, s.successes, s.failures) for s in states]
