"""
Operating Characteristics Calculation

Reduces terminal trial outcomes to the proportion of each final decision and
the distribution of total sample sizes, and derives error rates from them.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from mams_core.domain.constants import CONTROL_LABEL
from mams_core.domain.entities import TrialTrajectory
from mams_core.loss.decisions import DecisionSpace


@dataclass
class OperatingCharacteristics:
    """Summary of a set of simulated trials"""
    decision_probabilities: pd.Series  # indexed by decision label
    sample_sizes: np.ndarray           # one entry per trial, by trial index
    trial_indices: list[int]
    num_failed: int = 0
    gamma: Optional[float] = None

    @property
    def num_trials(self) -> int:
        return len(self.sample_sizes)

    @property
    def mean_sample_size(self) -> float:
        return float(self.sample_sizes.mean())

    def probability(self, label: str) -> float:
        if label not in self.decision_probabilities.index:
            raise KeyError(f"Unknown decision label: {label}")
        return float(self.decision_probabilities[label])

    def to_frame(self) -> pd.DataFrame:
        """One-row DataFrame for CSV export"""
        row = {
            "gamma": self.gamma,
            "num_trials": self.num_trials,
            "num_failed": self.num_failed,
            "mean_sample_size": self.mean_sample_size,
        }
        for label, p in self.decision_probabilities.items():
            row[f"p_{label}"] = float(p)
        return pd.DataFrame([row])


def summarize(
    trajectories: Iterable[TrialTrajectory],
    space: DecisionSpace,
    decimals: int = 4,
    gamma: Optional[float] = None,
    num_failed: int = 0,
) -> OperatingCharacteristics:
    """
    Calculate decision proportions and sample sizes

    Args:
        trajectories: Terminal trajectories
        space: Decision space of the design
        decimals: Number of decimal digits of the reported proportions
        gamma: Threshold the trajectories were produced under (reported only)
        num_failed: Number of replicates that failed to simulate (reported only)

    Returns:
        OperatingCharacteristics. Proportions sum to 1 up to rounding.
    """
    ordered = sorted(trajectories, key=lambda t: t.trial_index)
    if not ordered:
        raise ValueError("No trials to summarize")

    decisions = np.array([t.decision for t in ordered], dtype=int)
    counts = np.bincount(decisions, minlength=space.size)
    proportions = np.round(counts / len(ordered), decimals)

    return OperatingCharacteristics(
        decision_probabilities=pd.Series(proportions, index=space.labels, name="probability"),
        sample_sizes=np.array([t.sample_size for t in ordered], dtype=int),
        trial_indices=[t.trial_index for t in ordered],
        num_failed=num_failed,
        gamma=gamma,
    )


def summarize_run(run, decimals: int = 4) -> OperatingCharacteristics:
    """Summarize a SimulationRun (failed trials are counted, not included)"""
    return summarize(
        run.ordered(),
        run.space,
        decimals=decimals,
        gamma=run.gamma,
        num_failed=len(run.failures),
    )


def family_wise_error(oc: OperatingCharacteristics) -> float:
    """
    Probability of declaring at least one experimental arm superior

    Only meaningful under a null scenario of a design with a control arm.
    """
    if CONTROL_LABEL not in oc.decision_probabilities.index:
        raise ValueError("Family-wise error requires a design with a control arm")
    return 1.0 - oc.probability(CONTROL_LABEL)


def power(oc: OperatingCharacteristics, space: DecisionSpace, arm: int) -> float:
    """Probability of declaring `arm` superior (alone or together with others)"""
    return float(sum(
        oc.decision_probabilities[space.label(d)] for d in space.decisions_with_arm(arm)
    ))


def sample_size_summary(oc: OperatingCharacteristics) -> dict:
    """
    Distribution of total sample sizes

    Returns:
        {"mean": float, "std": float, "min": int, "median": float, "max": int}
    """
    n = oc.sample_sizes
    return {
        "mean": float(n.mean()),
        "std": float(n.std()),
        "min": int(n.min()),
        "median": float(np.median(n)),
        "max": int(n.max()),
    }
