"""
Domain Layer

Defines constants, entities, and value objects that form the core of the trial model.
"""

from mams_core.domain.constants import (
    ALTERNATIVE_SCENARIO,
    CONTROL_LABEL,
    DEFAULT_GAMMA,
    EXPERIMENTAL_PREFIX,
    LABEL_SEPARATOR,
    NULL_SCENARIO,
)
from mams_core.domain.entities import (
    ArmConfig,
    StageRecord,
    TrialFailure,
    TrialTrajectory,
)
from mams_core.domain.value_objects import (
    ActionEvaluation,
    ActionKind,
    ArmState,
    ArmStatus,
    DecisionEvaluation,
    StageAction,
)

__all__ = [
    # constants
    "ALTERNATIVE_SCENARIO",
    "CONTROL_LABEL",
    "DEFAULT_GAMMA",
    "EXPERIMENTAL_PREFIX",
    "LABEL_SEPARATOR",
    "NULL_SCENARIO",
    # entities
    "ArmConfig",
    "StageRecord",
    "TrialFailure",
    "TrialTrajectory",
    # value objects
    "ActionEvaluation",
    "ActionKind",
    "ArmState",
    "ArmStatus",
    "DecisionEvaluation",
    "StageAction",
]
