"""
Decision Space

Enumerates the final decisions a trial can reach:
- control setting: which subset of experimental arms is superior to control
  (2^k decisions, indexed by a bitmask where bit j-1 stands for arm Ej)
- selection setting: which single arm is best (k decisions)

Arm 0 is the control arm in the control setting.
"""

from functools import lru_cache

from mams_core.domain.constants import CONTROL_LABEL, EXPERIMENTAL_PREFIX, LABEL_SEPARATOR


class DecisionSpace:
    """Finite set of final decisions for a design with `n_arms` arms"""

    def __init__(self, n_arms: int, has_control: bool = True):
        if n_arms < 2:
            raise ValueError(f"At least two arms are required, got {n_arms}")
        self.n_arms = n_arms
        self.has_control = has_control
        if has_control:
            self.control_arm: int | None = 0
            self.experimental_arms = tuple(range(1, n_arms))
            self.size = 2 ** len(self.experimental_arms)
        else:
            self.control_arm = None
            self.experimental_arms = tuple(range(n_arms))
            self.size = n_arms
        self.labels = [self._make_label(d) for d in range(self.size)]

    def __repr__(self) -> str:
        return f"DecisionSpace(n_arms={self.n_arms}, has_control={self.has_control})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, DecisionSpace):
            return NotImplemented
        return (self.n_arms, self.has_control) == (other.n_arms, other.has_control)

    def __hash__(self) -> int:
        return hash((self.n_arms, self.has_control))

    def arm_label(self, arm: int) -> str:
        if arm == self.control_arm:
            return CONTROL_LABEL
        number = arm if self.has_control else arm + 1
        return f"{EXPERIMENTAL_PREFIX}{number}"

    def members(self, decision: int) -> tuple[int, ...]:
        """Arms declared superior (control setting) or selected (selection setting)"""
        if not 0 <= decision < self.size:
            raise IndexError(f"Decision {decision} outside [0, {self.size})")
        if not self.has_control:
            return (decision,)
        return tuple(
            arm for bit, arm in enumerate(self.experimental_arms)
            if decision >> bit & 1
        )

    def _make_label(self, decision: int) -> str:
        arms = self.members(decision)
        if not arms:
            return CONTROL_LABEL
        return LABEL_SEPARATOR.join(self.arm_label(a) for a in arms)

    def label(self, decision: int) -> str:
        return self.labels[decision]

    def index(self, label: str) -> int:
        try:
            return self.labels.index(label)
        except ValueError:
            raise KeyError(f"Unknown decision label: {label} (available: {self.labels})")

    def decisions_with_arm(self, arm: int) -> list[int]:
        """Decisions that declare `arm` superior / best"""
        return [d for d in range(self.size) if arm in self.members(d)]

    def allowed(self, active_arms) -> tuple[int, ...]:
        """Decisions that only involve arms still active"""
        return _allowed(self, frozenset(active_arms))


@lru_cache(maxsize=4096)
def _allowed(space: DecisionSpace, active: frozenset) -> tuple[int, ...]:
    return tuple(
        d for d in range(space.size)
        if all(arm in active for arm in space.members(d))
    )
