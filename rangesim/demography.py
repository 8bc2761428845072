"""Stage transitions and reproduction on a spatial grid.

Transition model, per source class s and target class t:

    p(t | s) = clamp( alpha[t, s]
                      + Σ_d beta[t, s, d] × N[·, ·, d]
                      + Σ_e gamma[t, s, e] × E[·, ·, e],  0, 1 )

After all targets of s are computed, any cell whose target probabilities
sum above 1 is shrunk proportionally so the sum is exactly 1. The
complement 1 − Σ_t p(t | s) is the mortality / non-transition share.

Allocation of N[·, ·, s] to targets:
  - Deterministic: expected value, N_s × p(t | s).
  - Stochastic: sequential conditional binomials. Target t draws from
    the still-unallocated individuals with probability
        p(t | s) / (Σ_{j ≥ t} p(j | s) + mortality)
    so the joint outcome is multinomial over targets + mortality and
    never exceeds the source count.

Reproduction collapses the class axis to one field of offspring per
cell, weighted by per-class fecundity.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from rangesim.rng import resolve_generator
from rangesim.types import TransitionParameters
from rangesim.validation import (
    check_class_index,
    check_environment_layer,
    check_fecundity,
    check_population,
    check_transition_parameters,
)


# ═══════════════════════════════════════════════════════════════════════
# PROBABILITY FIELD
# ═══════════════════════════════════════════════════════════════════════

def _probability_field(N: np.ndarray, E: np.ndarray,
                       params: TransitionParameters,
                       source: int) -> np.ndarray:
    """(x, y, target) transition probabilities out of one source class."""
    nx, ny, n_classes = N.shape
    p = np.zeros((nx, ny, n_classes), dtype=np.float64)

    for t in range(n_classes):
        if params.is_zero_pair(t, source):
            continue

        layer = p[:, :, t]
        layer.fill(params.alpha[t, source])

        # density dependence
        for d in range(n_classes):
            m = params.beta[t, source, d]
            if m != 0:
                layer += N[:, :, d] * m

        # environmental dependence
        for e in range(E.shape[2]):
            m = params.gamma[t, source, e]
            if m != 0:
                layer += E[:, :, e] * m

    # constrain individual and joint probabilities
    np.clip(p, 0.0, 1.0, out=p)
    psum = p.sum(axis=2)
    over = psum > 1.0
    if np.any(over):
        p[over] /= psum[over][:, np.newaxis]
    return p


def transition_probabilities(N, E, alpha, beta, gamma,
                             source: int) -> np.ndarray:
    """Transition probability field for one source class.

    Args:
        N: (x, y, class) population.
        E: (x, y, variable) environment layer.
        alpha, beta, gamma: Transition parameters (see TransitionParameters).
        source: Source class index.

    Returns:
        (x, y, target) array in [0, 1] with Σ_target ≤ 1 at every cell.
    """
    N = check_population(N, stochastic=False)
    E = check_environment_layer(E, N.shape[:2])
    params = TransitionParameters(
        *check_transition_parameters(alpha, beta, gamma, N.shape[2], E.shape[2])
    )
    source = check_class_index(source, N.shape[2], "source")
    return _probability_field(N, E, params, source)


# ═══════════════════════════════════════════════════════════════════════
# ALLOCATION
# ═══════════════════════════════════════════════════════════════════════

def _allocate_stochastic(pop: np.ndarray, p: np.ndarray,
                         rng: np.random.Generator) -> np.ndarray:
    """Split integer counts over targets by sequential conditional binomials.

    Args:
        pop: (x, y) int64 source counts.
        p: (x, y, target) probabilities, Σ_target ≤ 1.
        rng: Generator, consumed target by target in C order over cells.

    Returns:
        (x, y, target) int64 allocations; Σ_target ≤ pop at every cell.
    """
    y = np.zeros(p.shape, dtype=np.int64)
    psum = p.sum(axis=2)
    mortality = np.clip(1.0 - psum, 0.0, None)
    unallocated = pop.copy()
    remaining = psum  # probability mass of targets not yet processed

    for t in range(p.shape[2]):
        pt = p[:, :, t]
        if not np.any(pt):
            continue
        denom = remaining + mortality
        with np.errstate(divide='ignore', invalid='ignore'):
            q = np.where(denom > 0.0, pt / denom, 0.0)
        np.clip(q, 0.0, 1.0, out=q)
        draw = rng.binomial(unallocated, q)
        y[:, :, t] = draw
        unallocated -= draw
        remaining = remaining - pt

    return y


# ═══════════════════════════════════════════════════════════════════════
# TRANSITION
# ═══════════════════════════════════════════════════════════════════════

def transition(N, E, alpha, beta, gamma,
               stochastic: bool = True,
               seed: int = 1,
               rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Perform a stage-based demographic transition.

    Args:
        N: (x, y, class) population counts.
        E: (x, y, variable) environment layer.
        alpha: (target, source) transition intercepts.
        beta: (target, source, modifier) density-dependence effects.
        gamma: (target, source, variable) environmental effects.
        stochastic: Sample transitions instead of taking expectations.
        seed: Seed for the generator created for this call.
        rng: Optional caller-owned generator; overrides seed.

    Returns:
        (x, y, class) float64 post-transition population. Integral
        values in stochastic mode.

    Raises:
        ShapeMismatch, InvalidParameter, NumericOverflow: On invalid input.
    """
    counts = check_population(N, stochastic)
    Nf = counts.astype(np.float64)
    E = check_environment_layer(E, Nf.shape[:2])
    params = TransitionParameters(
        *check_transition_parameters(alpha, beta, gamma,
                                     Nf.shape[2], E.shape[2])
    )
    gen = resolve_generator(seed, rng) if stochastic else None

    NN = np.zeros_like(Nf)
    for s in range(params.n_classes):
        if not np.any(Nf[:, :, s]):
            continue
        p = _probability_field(Nf, E, params, s)
        if stochastic:
            NN += _allocate_stochastic(counts[:, :, s], p, gen)
        else:
            NN += Nf[:, :, s, np.newaxis] * p

    return NN


# ═══════════════════════════════════════════════════════════════════════
# REPRODUCTION
# ═══════════════════════════════════════════════════════════════════════

def reproduce(N, fecundity) -> np.ndarray:
    """Reproductive output across a spatial grid.

    Args:
        N: (x, y, class) population.
        fecundity: Per-class fecundity; zeros mark non-reproductive classes.

    Returns:
        (x, y) field of Σ_class N × fecundity.
    """
    N = check_population(N, stochastic=False)
    f = check_fecundity(fecundity, N.shape[2])

    out = np.zeros(N.shape[:2], dtype=np.float64)
    for i in np.flatnonzero(f):
        out += N[:, :, i] * f[i]
    return out
