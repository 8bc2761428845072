"""Core data types for rangesim.

This module is the single place that fixes:
  - Axis conventions for population, environment and parameter arrays
  - Kernel tags used for per-step seed derivation
  - TransitionParameters: the (alpha, beta, gamma) bundle

Axis conventions:
  - Population N:        (x, y, class)
  - Environment layer E: (x, y, variable)
  - alpha:               (target, source)
  - beta:                (target, source, modifier class)
  - gamma:               (target, source, variable)
  - Dispersal kernel:    (row offset, col offset), centre at ((k-1)/2, (k-1)/2)
"""

from dataclasses import dataclass

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

# Kernel tags for seed derivation (one stream per kernel per step)
KERNEL_TRANSITION = "transition"
KERNEL_DISPERSAL = "dispersal"
KERNEL_TAGS = (KERNEL_TRANSITION, KERNEL_DISPERSAL)

# Class receiving dispersed offspring unless configured otherwise
DEFAULT_RECRUIT_CLASS = 0

# Largest count a binomial draw accepts
MAX_COUNT = np.iinfo(np.int64).max


# ═══════════════════════════════════════════════════════════════════════
# TRANSITION PARAMETERS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransitionParameters:
    """Linear-effect parameters of the stage-transition model.

    p(t | s) at a cell = alpha[t, s]
                         + Σ_d beta[t, s, d] × N[·, ·, d]
                         + Σ_e gamma[t, s, e] × E[·, ·, e]

    clamped to [0, 1] and shrunk jointly per source class.
    """
    alpha: np.ndarray   # (target, source)
    beta: np.ndarray    # (target, source, modifier)
    gamma: np.ndarray   # (target, source, variable)

    @classmethod
    def from_arrays(cls, alpha, beta, gamma) -> 'TransitionParameters':
        return cls(
            alpha=np.asarray(alpha, dtype=np.float64),
            beta=np.asarray(beta, dtype=np.float64),
            gamma=np.asarray(gamma, dtype=np.float64),
        )

    @property
    def n_classes(self) -> int:
        return self.alpha.shape[0]

    @property
    def n_variables(self) -> int:
        return self.gamma.shape[2]

    def is_zero_pair(self, target: int, source: int) -> bool:
        """True if (target, source) has no intercept, density or environment effect."""
        return (self.alpha[target, source] == 0
                and not np.any(self.beta[target, source])
                and not np.any(self.gamma[target, source]))
