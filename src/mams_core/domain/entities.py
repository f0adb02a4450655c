"""
Domain Entities

Defines the primary data structures produced while simulating trials.
"""

from dataclasses import dataclass, replace

from mams_core.domain.value_objects import (
    ActionEvaluation,
    ArmState,
    ArmStatus,
    DecisionEvaluation,
    StageAction,
)
from mams_core.harness_config import DesignConfig


@dataclass(frozen=True)
class ArmConfig:
    """Arm identity, its true response probability (simulation only) and the shared prior"""
    index: int
    is_control: bool
    response_rate: float
    prior: tuple[float, float] = (1.0, 1.0)


@dataclass(frozen=True)
class StageRecord:
    """
    One interim analysis of a trial.

    `patients` and `successes` hold the batch consumed at this stage, one
    entry per configured arm (zero for arms not sampled).
    """
    stage: int
    active_arms: tuple[int, ...]
    patients: tuple[int, ...]
    successes: tuple[int, ...]
    stop_now: DecisionEvaluation
    candidates: tuple[ActionEvaluation, ...]
    action: StageAction
    gamma: float

    @property
    def batch_size(self) -> int:
        return sum(self.patients)


@dataclass(frozen=True)
class TrialTrajectory:
    """Append-only log of the stages of one simulated trial"""
    trial_index: int
    dataset_fingerprint: str
    design: DesignConfig
    allow_dropping: bool
    gamma: float
    n_arms: int
    records: tuple[StageRecord, ...] = ()

    def append(self, record: StageRecord) -> "TrialTrajectory":
        if self.is_terminal:
            raise ValueError(f"Trial {self.trial_index} has already stopped")
        return replace(self, records=self.records + (record,))

    @property
    def is_terminal(self) -> bool:
        return bool(self.records) and self.records[-1].action.is_stop

    @property
    def final_record(self) -> StageRecord:
        if not self.is_terminal:
            raise ValueError(f"Trial {self.trial_index} has not stopped")
        return self.records[-1]

    @property
    def decision(self) -> int:
        return self.final_record.action.decision

    @property
    def sample_size(self) -> int:
        return sum(record.batch_size for record in self.records)

    @property
    def num_stages(self) -> int:
        return len(self.records)

    @property
    def forced_stop(self) -> bool:
        return self.final_record.action.forced

    def arm_states(self) -> list[ArmState]:
        """Rebuild per-arm counts and statuses from the recorded stages"""
        states = [ArmState(index=i) for i in range(self.n_arms)]
        for record in self.records:
            for i in range(self.n_arms):
                if record.patients[i]:
                    states[i] = states[i].observe(record.successes[i], record.patients[i])
            for arm in record.action.dropped:
                states[arm] = states[arm].with_status(ArmStatus.DROPPED)
        return states


@dataclass(frozen=True)
class TrialFailure:
    """A replicate whose simulation raised an exception"""
    trial_index: int
    error: str
