"""
Domain Constants

Centrally manages constants shared across the trial simulator.
"""

# Label of the decision "no experimental arm is superior to control"
CONTROL_LABEL = "control"

# Prefix used for experimental arm labels (E1, E2, ...)
EXPERIMENTAL_PREFIX = "E"

# Separator between arms in a multi-arm decision label (e.g. "E1+E2")
LABEL_SEPARATOR = "+"

# Default cost-to-benefit threshold C/Q
DEFAULT_GAMMA = 0.0015

# Response-rate scenarios from the two-arms-versus-control example
NULL_SCENARIO = (0.20, 0.20, 0.20)
ALTERNATIVE_SCENARIO = (0.20, 0.20, 0.35)
