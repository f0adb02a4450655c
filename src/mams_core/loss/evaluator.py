"""
Posterior Expected Loss

Computes the expected 0-1 loss of every final decision, and the one-step
lookahead value of every way of continuing the trial.

The probability that a decision is correct is a one-dimensional integral
over the response rate of the control arm (control setting) or of the
selected arm (selection setting). It is evaluated on a uniform grid of
cells on [0, 1]: exact Beta cell masses from the regularized incomplete
beta function times the integrand at the cell midpoints. Cell masses are
finite for any positive shape parameters, so arms without successes or
without failures need no special handling.
"""

from __future__ import annotations

import logging
from functools import reduce
from itertools import combinations

import numpy as np
from scipy.special import betainc

from mams_core.domain.value_objects import ActionEvaluation, DecisionEvaluation, StageAction
from mams_core.harness_config import DesignConfig
from mams_core.loss.decisions import DecisionSpace
from mams_core.posterior import BetaPosterior

logger = logging.getLogger(__name__)


class LossEvaluator:
    """Expected-loss computations for one design"""

    def __init__(self, design: DesignConfig, space: DecisionSpace):
        self.design = design
        self.space = space
        self.edges = np.linspace(0.0, 1.0, design.grid_size + 1)
        self.midpoints = 0.5 * (self.edges[:-1] + self.edges[1:])
        # An experimental arm is superior when its rate exceeds x + delta
        self._shifted = np.clip(self.midpoints + design.delta, 0.0, 1.0)

    def cell_masses(self, a, b) -> np.ndarray:
        """Posterior mass of each grid cell, one row per (a, b) pair"""
        a = np.atleast_1d(np.asarray(a, dtype=float))[:, None]
        b = np.atleast_1d(np.asarray(b, dtype=float))[:, None]
        return np.diff(betainc(a, b, self.edges[None, :]), axis=1)

    def _below_shifted(self, a, b) -> np.ndarray:
        """P(p <= x + delta) at every grid midpoint x, one row per (a, b) pair"""
        a = np.atleast_1d(np.asarray(a, dtype=float))[:, None]
        b = np.atleast_1d(np.asarray(b, dtype=float))[:, None]
        return betainc(a, b, self._shifted[None, :])

    def _expand(self, table: np.ndarray, arm: int) -> np.ndarray:
        # (n_states, G) -> state axis at position `arm`, grid axis last
        shape = [1] * self.space.n_arms + [table.shape[1]]
        shape[arm] = table.shape[0]
        return table.reshape(shape)

    def decision_probabilities(self, a_values, b_values) -> np.ndarray:
        """
        Posterior probability that each decision is correct.

        Args:
            a_values: Per arm, an array of candidate Beta `a` parameters
            b_values: Per arm, an array of candidate Beta `b` parameters (same lengths)

        Returns:
            Array of shape (n_states_0, ..., n_states_{K-1}, n_decisions), one
            entry for every combination of per-arm states.
        """
        space = self.space
        if len(a_values) != space.n_arms or len(b_values) != space.n_arms:
            raise ValueError(f"Expected parameters for {space.n_arms} arms")

        if space.has_control:
            control = space.control_arm
            probs = self._expand(self.cell_masses(a_values[control], b_values[control]), control)[..., None]
            for arm in space.experimental_arms:
                below = self._expand(self._below_shifted(a_values[arm], b_values[arm]), arm)[..., None]
                # Bit for this arm: 0 = not superior, 1 = superior
                probs = np.concatenate([probs * below, probs * (1.0 - below)], axis=-1)
            result = probs.sum(axis=-2)
        else:
            masses = [self._expand(self.cell_masses(a, b), arm)
                      for arm, (a, b) in enumerate(zip(a_values, b_values))]
            belows = [self._expand(self._below_shifted(a, b), arm)
                      for arm, (a, b) in enumerate(zip(a_values, b_values))]
            per_arm = []
            for arm in space.experimental_arms:
                others = [belows[i] for i in space.experimental_arms if i != arm]
                per_arm.append(reduce(np.multiply, others, masses[arm]).sum(axis=-1))
            result = np.stack(np.broadcast_arrays(*per_arm), axis=-1)
        return np.clip(result, 0.0, 1.0)

    def stop_now(self, posteriors: list[BetaPosterior], active) -> DecisionEvaluation:
        """Allowed decision with the smallest expected loss (ties -> lowest index)"""
        probs = self.decision_probabilities(
            [[p.a] for p in posteriors], [[p.b] for p in posteriors]
        ).reshape(-1)
        allowed = self.space.allowed(active)
        best = max(allowed, key=lambda d: probs[d])
        return DecisionEvaluation(decision=best, loss=max(0.0, 1.0 - float(probs[best])))

    def evaluate_continuation(
        self,
        posteriors: list[BetaPosterior],
        arms: tuple[int, ...],
        stop_loss: float,
    ) -> ActionEvaluation:
        """
        Expected loss after one more batch on `arms`.

        Every joint number of responders in the next batch is weighted by the
        product of the Beta-binomial predictive probabilities of the arms
        sampled; at each outcome the stop-now rule is applied with decisions
        restricted to `arms`.
        """
        batch = self.design.batch
        responders = np.arange(batch + 1)
        a_values, b_values, weights = [], [], []
        for i, post in enumerate(posteriors):
            if i in arms:
                a_values.append(post.a + responders)
                b_values.append(post.b + batch - responders)
                weights.append(post.predictive_pmf(batch))
            else:
                a_values.append(np.array([post.a]))
                b_values.append(np.array([post.b]))
                weights.append(np.ones(1))

        probs = self.decision_probabilities(a_values, b_values)
        allowed = list(self.space.allowed(arms))
        best = probs[..., allowed].max(axis=-1)
        joint = reduce(np.multiply.outer, weights)
        expected_loss = max(0.0, 1.0 - float((joint * best).sum()))
        return ActionEvaluation(
            arms=tuple(arms),
            patients=batch * len(arms),
            expected_loss=expected_loss,
            reduction=stop_loss - expected_loss,
        )

    def continuation_candidates(self, active, allow_dropping: bool) -> list[tuple[int, ...]]:
        """
        Arm sets the trial may continue with, full active set first.

        Subsets keep at least one experimental arm, and keep the control arm
        unless the design allows dropping it.
        """
        active = tuple(sorted(active))
        candidates = [active]
        if not allow_dropping:
            return candidates
        control = self.space.control_arm
        keep_control = control in active and not self.design.drop_control
        experimental = set(self.space.experimental_arms)
        for size in range(len(active) - 1, 0, -1):
            for subset in combinations(active, size):
                if not experimental.intersection(subset):
                    continue
                if keep_control and control not in subset:
                    continue
                candidates.append(subset)
        return candidates

    def evaluate_stage(
        self,
        posteriors: list[BetaPosterior],
        active,
        patients_so_far: int,
        allow_dropping: bool,
    ) -> tuple[DecisionEvaluation, tuple[ActionEvaluation, ...]]:
        """
        Stop-now decision plus the evaluation of every feasible continuation.

        Continuations whose batch would take the trial past the cap are left
        out, so an empty tuple means the cap has been reached.
        """
        stop = self.stop_now(posteriors, active)
        evaluations = []
        for arms in self.continuation_candidates(active, allow_dropping):
            if patients_so_far + self.design.batch * len(arms) > self.design.cap:
                continue
            evaluations.append(self.evaluate_continuation(posteriors, arms, stop.loss))
        return stop, tuple(evaluations)


def select_action(
    stop: DecisionEvaluation,
    candidates: tuple[ActionEvaluation, ...],
    active,
    gamma: float,
) -> StageAction:
    """
    Apply the cost threshold to evaluated continuations.

    A continuation is eligible when its loss reduction per additional patient
    exceeds gamma. The eligible one with the largest expected loss
    reduction wins (ties -> earliest candidate). Without candidates the
    cap has been reached and the stop is forced.
    """
    if not candidates:
        return StageAction.stop(stop.decision, forced=True)
    eligible = [c for c in candidates if c.per_patient > gamma]
    if not eligible:
        return StageAction.stop(stop.decision)
    best = max(eligible, key=lambda c: c.reduction)
    logger.debug(
        "Continuing with arms %s (reduction %.5f over %d patients)",
        best.arms, best.reduction, best.patients,
    )
    return StageAction.continue_with(best.arms, tuple(sorted(active)))
