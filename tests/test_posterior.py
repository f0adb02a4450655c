"""
Tests for posterior.py
"""

import numpy as np
import pytest

from mams_core.domain.value_objects import ArmState
from mams_core.posterior import BetaPosterior, posterior, posteriors_for


class TestBetaPosterior:
    def test_conjugate_update(self):
        post = posterior((1.0, 1.0), successes=3, failures=9)
        assert post == BetaPosterior(4.0, 10.0)

    def test_update_is_pure(self):
        prior = BetaPosterior(1.0, 1.0)
        updated = prior.update(2, 5)
        assert prior == BetaPosterior(1.0, 1.0)
        assert updated == BetaPosterior(3.0, 6.0)

    def test_moments(self):
        post = BetaPosterior(2.0, 6.0)
        assert post.mean == pytest.approx(0.25)
        assert post.variance == pytest.approx(2 * 6 / (64 * 9))

    def test_non_positive_parameters_raise(self):
        with pytest.raises(ValueError):
            BetaPosterior(0.0, 1.0)

    def test_predictive_pmf_sums_to_one(self):
        pmf = BetaPosterior(3.0, 7.0).predictive_pmf(12)
        assert pmf.shape == (13,)
        assert pmf.sum() == pytest.approx(1.0)
        assert np.all(pmf >= 0)

    def test_predictive_mean(self):
        post = BetaPosterior(3.0, 7.0)
        pmf = post.predictive_pmf(10)
        assert (np.arange(11) * pmf).sum() == pytest.approx(10 * post.mean)

    def test_uniform_prior_predictive_is_uniform(self):
        pmf = BetaPosterior(1.0, 1.0).predictive_pmf(4)
        assert pmf == pytest.approx(np.full(5, 0.2))


class TestPosteriorsFor:
    def test_one_posterior_per_arm(self):
        states = [ArmState(0, successes=2, failures=4), ArmState(1), ArmState(2, successes=5)]
        posts = posteriors_for(states, (1.0, 2.0))
        assert posts == [
            BetaPosterior(3.0, 6.0),
            BetaPosterior(1.0, 2.0),
            BetaPosterior(6.0, 2.0),
        ]
