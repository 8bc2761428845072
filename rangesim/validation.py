"""Kernel-entry validation.

Each public kernel calls these checks before computing anything, so a
malformed input aborts the call with a ShapeMismatch, InvalidParameter
or NumericOverflow naming the offending argument. Clamping of
transition probabilities is part of the algorithm, not an error path,
and is not checked here.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from rangesim.errors import InvalidParameter, NumericOverflow, ShapeMismatch
from rangesim.types import MAX_COUNT

# Tolerance on kernel mass (floating-point sums of normalised kernels)
KERNEL_MASS_TOL = 1e-9


def _as_float_array(value, name: str, ndim: int) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim != ndim:
        raise ShapeMismatch(name, f"{ndim}-D array", f"{arr.ndim}-D {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise InvalidParameter(name, "contains non-finite values")
    return arr


def check_counts(arr: np.ndarray, name: str, stochastic: bool) -> np.ndarray:
    """Non-negative counts; integer-truncated in stochastic mode.

    Returns float64 in deterministic mode and int64 in stochastic mode.
    """
    if np.any(arr < 0):
        raise InvalidParameter(name, f"negative counts (min {arr.min()})")
    if not stochastic:
        return arr
    if arr.size and arr.max() >= MAX_COUNT:
        raise NumericOverflow(
            name, f"count {arr.max():.6g} exceeds int64 range for sampling"
        )
    return np.floor(arr).astype(np.int64)


def check_population(N, stochastic: bool, name: str = "N") -> np.ndarray:
    """Validate a population array (x, y, class)."""
    arr = _as_float_array(N, name, 3)
    return check_counts(arr, name, stochastic)


def check_environment_layer(E, grid_shape: Tuple[int, int],
                            name: str = "E") -> np.ndarray:
    """Validate one environment layer (x, y, variable) against the grid."""
    arr = _as_float_array(E, name, 3)
    if arr.shape[:2] != tuple(grid_shape):
        raise ShapeMismatch(name, (*grid_shape, arr.shape[2]), arr.shape,
                            "grid dimensions must match the population")
    return arr


def check_transition_parameters(alpha, beta, gamma, n_classes: int,
                                n_variables: int):
    """Validate (alpha, beta, gamma) against class and variable counts."""
    alpha = _as_float_array(alpha, "alpha", 2)
    beta = _as_float_array(beta, "beta", 3)
    gamma = _as_float_array(gamma, "gamma", 3)
    expected = {
        "alpha": (alpha, (n_classes, n_classes)),
        "beta": (beta, (n_classes, n_classes, n_classes)),
        "gamma": (gamma, (n_classes, n_classes, n_variables)),
    }
    for name, (arr, shape) in expected.items():
        if arr.shape != shape:
            raise ShapeMismatch(name, shape, arr.shape)
    return alpha, beta, gamma


def check_fecundity(fecundity, n_classes: int,
                    name: str = "fecundity") -> np.ndarray:
    """Validate a per-class fecundity vector."""
    f = _as_float_array(fecundity, name, 1)
    if f.shape != (n_classes,):
        raise ShapeMismatch(name, (n_classes,), f.shape)
    if np.any(f < 0):
        raise InvalidParameter(name, "entries must be non-negative")
    return f


def check_kernel(kernel, name: str = "kernel") -> np.ndarray:
    """Validate a square, odd-sized, non-negative kernel with mass ≤ 1."""
    K = _as_float_array(kernel, name, 2)
    rows, cols = K.shape
    if rows != cols or rows % 2 == 0:
        raise ShapeMismatch(name, "square matrix of odd side 2r+1", K.shape)
    if np.any(K < 0):
        raise InvalidParameter(name, "weights must be non-negative")
    total = K.sum()
    if total > 1.0 + KERNEL_MASS_TOL:
        raise InvalidParameter(
            name, f"total dispersal mass {total:.6g} exceeds 1"
        )
    return K


def check_seed_field(S, stochastic: bool, name: str = "S") -> np.ndarray:
    """Validate a 2-D seed field."""
    arr = _as_float_array(S, name, 2)
    return check_counts(arr, name, stochastic)


def check_class_index(index: int, n_classes: int, name: str) -> int:
    if not 0 <= int(index) < n_classes:
        raise InvalidParameter(
            name, f"class index {index} outside [0, {n_classes - 1}]"
        )
    return int(index)
