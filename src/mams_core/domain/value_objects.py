"""
Domain Value Objects

Defines immutable data structures for arm states, stage actions and the
expected-loss evaluations that justify them.
"""

from dataclasses import dataclass, replace
from enum import Enum


class ArmStatus(str, Enum):
    """Status of an arm within one trial."""
    ACTIVE = "active"
    DROPPED = "dropped"
    SELECTED = "selected"


class ActionKind(str, Enum):
    """Kind of action taken at the end of a stage."""
    CONTINUE = "continue"
    DROP = "drop"
    STOP = "stop"


@dataclass(frozen=True)
class ArmState:
    """Outcomes consumed so far by one arm"""
    index: int
    successes: int = 0
    failures: int = 0
    status: ArmStatus = ArmStatus.ACTIVE

    def __post_init__(self):
        if self.successes < 0:
            raise ValueError("successes must be non-negative")
        if self.failures < 0:
            raise ValueError("failures must be non-negative")

    @property
    def patients(self) -> int:
        return self.successes + self.failures

    def observe(self, successes: int, patients: int) -> "ArmState":
        """Return the state after a batch of `patients` with `successes` responders"""
        if successes > patients:
            raise ValueError(f"successes ({successes}) exceed patients ({patients})")
        return replace(
            self,
            successes=self.successes + successes,
            failures=self.failures + patients - successes,
        )

    def with_status(self, status: ArmStatus) -> "ArmState":
        return replace(self, status=status)


@dataclass(frozen=True)
class DecisionEvaluation:
    """Best final decision if the trial stopped now"""
    decision: int
    loss: float


@dataclass(frozen=True)
class ActionEvaluation:
    """One-step-lookahead value of continuing with a set of arms"""
    arms: tuple[int, ...]
    patients: int
    expected_loss: float
    reduction: float

    @property
    def per_patient(self) -> float:
        return self.reduction / self.patients


@dataclass(frozen=True)
class StageAction:
    """
    Action taken at the end of a stage.

    CONTINUE keeps every active arm, DROP continues with `arms` and removes
    `dropped`, STOP ends the trial with `decision`.
    """
    kind: ActionKind
    arms: tuple[int, ...] = ()
    dropped: tuple[int, ...] = ()
    decision: int | None = None
    forced: bool = False

    @classmethod
    def continue_with(cls, arms: tuple[int, ...], active: tuple[int, ...]) -> "StageAction":
        dropped = tuple(a for a in active if a not in arms)
        kind = ActionKind.DROP if dropped else ActionKind.CONTINUE
        return cls(kind=kind, arms=tuple(arms), dropped=dropped)

    @classmethod
    def stop(cls, decision: int, forced: bool = False) -> "StageAction":
        return cls(kind=ActionKind.STOP, decision=decision, forced=forced)

    @property
    def is_stop(self) -> bool:
        return self.kind is ActionKind.STOP
