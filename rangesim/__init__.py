"""rangesim: spatially explicit, stage-structured population dynamics.

A population of discrete life-stage classes on a 2-D grid, advanced in
discrete time steps:
  - Stage transitions with density- and environment-dependent rates
    (stochastic sequential binomials or deterministic expectations)
  - Reproduction aggregated over classes by per-class fecundity
  - Dispersal of offspring by a fixed neighbourhood kernel, with
    reflecting or absorbing domain boundary
"""

from rangesim.demography import reproduce, transition, transition_probabilities
from rangesim.dispersal import disperse, dispersal_loss
from rangesim.environment import (
    EnvironmentSequence,
    StaticEnvironment,
    StepwiseEnvironment,
    as_environment,
    seasonal_environment,
)
from rangesim.errors import (
    InvalidParameter,
    NumericOverflow,
    RangeSimError,
    ShapeMismatch,
)
from rangesim.model import (
    SimulationResult,
    load_result,
    run_from_config,
    run_simulation,
    sim,
)

__all__ = [
    "transition",
    "transition_probabilities",
    "reproduce",
    "disperse",
    "dispersal_loss",
    "sim",
    "run_simulation",
    "run_from_config",
    "load_result",
    "SimulationResult",
    "EnvironmentSequence",
    "StaticEnvironment",
    "StepwiseEnvironment",
    "as_environment",
    "seasonal_environment",
    "RangeSimError",
    "ShapeMismatch",
    "InvalidParameter",
    "NumericOverflow",
]

__version__ = "0.1.0"
