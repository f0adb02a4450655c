"""
Loss sub-package

Provides the decision space and the posterior expected-loss computations
that drive stopping, continuation and dropping.
"""

from mams_core.loss.decisions import DecisionSpace
from mams_core.loss.evaluator import LossEvaluator, select_action

__all__ = [
    "DecisionSpace",
    "LossEvaluator",
    "select_action",
]
