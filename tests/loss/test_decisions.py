"""Tests for loss/decisions.py"""

import pytest

from mams_core.loss.decisions import DecisionSpace


class TestControlSetting:
    def setup_method(self):
        self.space = DecisionSpace(3, has_control=True)

    def test_labels(self):
        assert self.space.labels == ["control", "E1", "E2", "E1+E2"]
        assert self.space.size == 4

    def test_members(self):
        assert self.space.members(0) == ()
        assert self.space.members(1) == (1,)
        assert self.space.members(2) == (2,)
        assert self.space.members(3) == (1, 2)

    def test_members_out_of_range(self):
        with pytest.raises(IndexError):
            self.space.members(4)

    def test_index(self):
        assert self.space.index("E1+E2") == 3
        with pytest.raises(KeyError, match="E3"):
            self.space.index("E3")

    def test_decisions_with_arm(self):
        assert self.space.decisions_with_arm(1) == [1, 3]
        assert self.space.decisions_with_arm(2) == [2, 3]
        assert self.space.decisions_with_arm(0) == []

    def test_allowed_after_drop(self):
        assert self.space.allowed((0, 1, 2)) == (0, 1, 2, 3)
        assert self.space.allowed((0, 2)) == (0, 2)
        assert self.space.allowed([2, 0]) == (0, 2)

    def test_arm_labels(self):
        assert [self.space.arm_label(a) for a in range(3)] == ["control", "E1", "E2"]


class TestSelectionSetting:
    def setup_method(self):
        self.space = DecisionSpace(3, has_control=False)

    def test_labels(self):
        assert self.space.labels == ["E1", "E2", "E3"]
        assert self.space.control_arm is None

    def test_members_single_arm(self):
        assert [self.space.members(d) for d in range(3)] == [(0,), (1,), (2,)]

    def test_allowed(self):
        assert self.space.allowed((1, 2)) == (1, 2)


class TestEquality:
    def test_equal_spaces_hash_alike(self):
        assert DecisionSpace(3) == DecisionSpace(3)
        assert hash(DecisionSpace(3)) == hash(DecisionSpace(3))
        assert DecisionSpace(3) != DecisionSpace(3, has_control=False)

    def test_single_arm_rejected(self):
        with pytest.raises(ValueError, match="two arms"):
            DecisionSpace(1)
