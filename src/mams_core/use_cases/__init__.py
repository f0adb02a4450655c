"""
Use Cases Layer

Aggregates trial-level procedures and provides the use cases called from the runner.
"""

from mams_core.use_cases.reevaluation import (
    ReevaluationError,
    check_pairing,
    reevaluate,
)
from mams_core.use_cases.simulation import (
    SimulationRun,
    reevaluate_trials,
    simulate_trials,
)
from mams_core.use_cases.stage_controller import StageController

__all__ = [
    # reevaluation
    "ReevaluationError",
    "check_pairing",
    "reevaluate",
    # simulation
    "SimulationRun",
    "reevaluate_trials",
    "simulate_trials",
    # stage controller
    "StageController",
]
