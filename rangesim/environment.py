"""Environmental forcing for the simulation loop.

An environment is a sequence of (x, y, variable) layers. Two shapes are
supported:
  - StaticEnvironment:   one layer reused at every step
  - StepwiseEnvironment: one layer per step, indexed by step

Both expose layer_for_step(i), which hides the branch from the loop.
as_environment() coerces raw inputs (a single array or a list of arrays)
into the right variant and checks the length against nsteps.

seasonal_environment() builds a stepwise sequence from a per-cell mean
field with a sinusoidal cycle and a linear trend:

    E(x, y, v, t) = mean(x, y, v) + trend × t + A × cos(2π × (t − t_peak) / period)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

from rangesim.errors import InvalidParameter, ShapeMismatch


# ═══════════════════════════════════════════════════════════════════════
# ENVIRONMENT SEQUENCES
# ═══════════════════════════════════════════════════════════════════════

class EnvironmentSequence(ABC):
    """Abstract source of environment layers indexed by step."""

    @abstractmethod
    def layer_for_step(self, step: int) -> np.ndarray:
        """(x, y, variable) layer used at the given step."""

    @property
    def grid_shape(self) -> Tuple[int, int]:
        return self.layer_for_step(0).shape[:2]

    @property
    def n_variables(self) -> int:
        return self.layer_for_step(0).shape[2]

    def check_steps(self, nsteps: int) -> None:
        """Raise ShapeMismatch if the sequence cannot cover nsteps."""


@dataclass(eq=False)
class StaticEnvironment(EnvironmentSequence):
    """Time-invariant environment: the same layer at every step."""
    layer: np.ndarray

    def __post_init__(self):
        self.layer = _as_layer(self.layer, "environment[0]")

    def layer_for_step(self, step: int) -> np.ndarray:
        return self.layer


@dataclass(eq=False)
class StepwiseEnvironment(EnvironmentSequence):
    """Time-varying environment: layer i is used at step i."""
    layers: Sequence[np.ndarray]

    def __post_init__(self):
        if len(self.layers) == 0:
            raise ShapeMismatch("environment", "at least one layer", 0)
        self.layers = [_as_layer(layer, f"environment[{i}]")
                       for i, layer in enumerate(self.layers)]
        first = self.layers[0].shape
        for i, layer in enumerate(self.layers[1:], start=1):
            if layer.shape != first:
                raise ShapeMismatch(f"environment[{i}]", first, layer.shape,
                                    "all layers must share one shape")

    def __len__(self) -> int:
        return len(self.layers)

    def layer_for_step(self, step: int) -> np.ndarray:
        return self.layers[step]

    def check_steps(self, nsteps: int) -> None:
        if len(self.layers) != nsteps:
            raise ShapeMismatch("environment", f"1 or {nsteps} layers",
                                f"{len(self.layers)} layers")


EnvironmentLike = Union[EnvironmentSequence, np.ndarray, Sequence[np.ndarray]]


def _as_layer(layer, name: str) -> np.ndarray:
    arr = np.asarray(layer, dtype=np.float64)
    if arr.ndim != 3:
        raise ShapeMismatch(name, "(x, y, variable)", arr.shape)
    return arr


def as_environment(env: EnvironmentLike, nsteps: int) -> EnvironmentSequence:
    """Coerce raw environment input into an EnvironmentSequence.

    Args:
        env: An EnvironmentSequence, a single (x, y, variable) array, or
            a list/tuple of such arrays of length 1 or nsteps.
        nsteps: Number of simulation steps the sequence must cover.

    Returns:
        StaticEnvironment for a single layer, StepwiseEnvironment otherwise.

    Raises:
        ShapeMismatch: Wrong layer dimensionality or sequence length.
    """
    if isinstance(env, EnvironmentSequence):
        seq = env
    elif isinstance(env, np.ndarray) and env.ndim == 3:
        seq = StaticEnvironment(env)
    elif isinstance(env, (list, tuple)) and len(env) == 1:
        seq = StaticEnvironment(env[0])
    elif isinstance(env, (list, tuple)):
        seq = StepwiseEnvironment(list(env))
    else:
        shape = getattr(env, "shape", type(env).__name__)
        raise ShapeMismatch("environment",
                            "(x, y, variable) array or list of arrays", shape)
    seq.check_steps(nsteps)
    return seq


# ═══════════════════════════════════════════════════════════════════════
# SEASONAL FORCING: sinusoidal cycle + linear trend
# ═══════════════════════════════════════════════════════════════════════

def seasonal_environment(mean: np.ndarray, amplitude, nsteps: int,
                         period: float = 12.0, trend=0.0,
                         peak_step: float = 0.0) -> StepwiseEnvironment:
    """Build a time-varying environment from a per-cell mean field.

    Args:
        mean: (x, y, variable) baseline field.
        amplitude: Half-range of the cycle; scalar or per-variable.
        nsteps: Number of layers to generate.
        period: Cycle length in steps.
        trend: Linear change per step; scalar or per-variable.
        peak_step: Step at which the cycle peaks.

    Returns:
        StepwiseEnvironment with nsteps layers.
    """
    mean = _as_layer(mean, "mean")
    if period <= 0:
        raise InvalidParameter("period", f"must be positive, got {period}")
    if nsteps < 1:
        raise InvalidParameter("nsteps", f"must be >= 1, got {nsteps}")
    amplitude = np.broadcast_to(np.asarray(amplitude, dtype=np.float64),
                                (mean.shape[2],))
    trend = np.broadcast_to(np.asarray(trend, dtype=np.float64),
                            (mean.shape[2],))
    steps = np.arange(nsteps, dtype=np.float64)
    phase = np.cos(2.0 * np.pi * (steps - peak_step) / period)
    layers = [mean + trend * t + amplitude * c for t, c in zip(steps, phase)]
    return StepwiseEnvironment(layers)
