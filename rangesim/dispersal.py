"""Dispersal of offspring across the grid by a fixed neighbourhood kernel.

The kernel K has odd side 2r+1; K[r + di, r + dj] is the probability
mass sent from a cell to the cell offset by (di, dj), centre = stay.

Algorithm:
  1. Spread every source cell into a grid padded by r on each side.
     - Deterministic: S(a, b) × K added to the window at (a, b), i.e.
       the full 2-D convolution of S with K.
     - Stochastic: offsets visited in descending kernel weight (ties in
       row-major order); each draws binomial(unallocated, w_k / Σ
       unvisited w) for all source cells at once.
  2. Reflecting boundary: each of the r outer layers is added to its
     mirror layer inside the domain, on all four sides.
     Absorbing boundary: the outer layers are dropped.
  3. Return the interior, same shape as S.
"""

from __future__ import annotations

import warnings
from typing import Optional

import numpy as np
from scipy.signal import convolve2d

from rangesim.errors import ShapeMismatch
from rangesim.rng import resolve_generator
from rangesim.validation import KERNEL_MASS_TOL, check_kernel, check_seed_field


def kernel_radius(kernel: np.ndarray) -> int:
    return (kernel.shape[0] - 1) // 2


def check_reflect_extent(grid_shape, kernel: np.ndarray) -> None:
    """A reflecting fold needs the grid to be at least r cells on each axis."""
    r = kernel_radius(kernel)
    if min(grid_shape) < r:
        raise ShapeMismatch(
            "kernel", f"radius <= {min(grid_shape)}", f"radius {r}",
            f"reflecting boundary needs every side of grid "
            f"{tuple(grid_shape)} >= the kernel radius",
        )


# ═══════════════════════════════════════════════════════════════════════
# SPREAD
# ═══════════════════════════════════════════════════════════════════════

def _spread_stochastic(S: np.ndarray, K: np.ndarray,
                       rng: np.random.Generator) -> np.ndarray:
    """Sequential binomial allocation of integer seeds onto a padded grid."""
    nx, ny = S.shape
    size = K.shape[0]
    T = np.zeros((nx + size - 1, ny + size - 1), dtype=np.float64)

    weights = K.ravel()
    order = np.argsort(-weights, kind='stable')
    # mass of offsets not yet visited, by position in the visiting order
    unvisited = np.cumsum(weights[order][::-1])[::-1]
    unallocated = S.copy()

    for k, idx in enumerate(order):
        w = weights[idx]
        if w <= 0.0 or not np.any(unallocated):
            break
        q = min(w / unvisited[k], 1.0)
        draw = rng.binomial(unallocated, q)
        di, dj = divmod(int(idx), size)
        T[di:di + nx, dj:dj + ny] += draw
        unallocated -= draw

    return T


def _spread_deterministic(S: np.ndarray, K: np.ndarray) -> np.ndarray:
    return convolve2d(S, K, mode='full')


def _reflect_fold(T: np.ndarray, r: int) -> None:
    """Fold the r outer layers back into the interior, in place."""
    if r == 0:
        return
    n = T.shape[0]
    T[r:2 * r, :] += T[:r, :][::-1, :]
    T[n - 2 * r:n - r, :] += T[n - r:, :][::-1, :]
    n = T.shape[1]
    T[:, r:2 * r] += T[:, :r][:, ::-1]
    T[:, n - 2 * r:n - r] += T[:, n - r:][:, ::-1]


# ═══════════════════════════════════════════════════════════════════════
# DISPERSAL
# ═══════════════════════════════════════════════════════════════════════

def disperse(S, kernel,
             reflect: bool = True,
             stochastic: bool = True,
             seed: int = 1,
             rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Simulate dispersal across a spatial grid.

    Args:
        S: (x, y) seed counts.
        kernel: (2r+1, 2r+1) neighbourhood matrix, non-negative, mass ≤ 1.
        reflect: Fold mass leaving the domain back in (True) or lose it.
        stochastic: Sample the allocation instead of spreading expectations.
        seed: Seed for the generator created for this call.
        rng: Optional caller-owned generator; overrides seed.

    Returns:
        (x, y) float64 post-dispersal counts.

    Raises:
        ShapeMismatch, InvalidParameter, NumericOverflow: On invalid input.
    """
    K = check_kernel(kernel)
    S = check_seed_field(S, stochastic)
    r = kernel_radius(K)
    if reflect:
        check_reflect_extent(S.shape, K)

    if stochastic:
        if K.sum() < 1.0 - KERNEL_MASS_TOL:
            warnings.warn(
                f"kernel mass {K.sum():.6g} < 1: stochastic dispersal "
                f"allocates every seed to an in-kernel offset",
                UserWarning,
                stacklevel=2,
            )
        T = _spread_stochastic(S, K, resolve_generator(seed, rng))
    else:
        T = _spread_deterministic(S, K)

    if reflect:
        _reflect_fold(T, r)

    nx, ny = S.shape
    return T[r:r + nx, r:r + ny].copy()


def dispersal_loss(S, kernel) -> float:
    """Expected mass an absorbing boundary loses off the domain.

    Σ over source cells of S(a, b) × (kernel mass mapping outside the
    grid). Kernel mass below 1 is not counted.
    """
    K = check_kernel(kernel)
    S = check_seed_field(S, stochastic=False)
    r = kernel_radius(K)
    T = _spread_deterministic(S, K)
    nx, ny = S.shape
    return float(T.sum() - T[r:r + nx, r:r + ny].sum())
