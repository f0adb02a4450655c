"""Tests for domain constants"""

from mams_core.domain.constants import (
    ALTERNATIVE_SCENARIO,
    CONTROL_LABEL,
    DEFAULT_GAMMA,
    NULL_SCENARIO,
)


class TestScenarios:
    def test_null_scenario_has_equal_rates(self):
        assert len(set(NULL_SCENARIO)) == 1

    def test_alternative_raises_second_experimental_arm(self):
        assert ALTERNATIVE_SCENARIO[:2] == NULL_SCENARIO[:2]
        assert ALTERNATIVE_SCENARIO[2] > NULL_SCENARIO[2]

    def test_rates_are_probabilities(self):
        for rate in NULL_SCENARIO + ALTERNATIVE_SCENARIO:
            assert 0.0 <= rate <= 1.0


class TestDefaults:
    def test_default_gamma_positive(self):
        assert DEFAULT_GAMMA > 0

    def test_control_label(self):
        assert CONTROL_LABEL == "control"
