"""Range simulation: transition → reproduction → dispersal, per step.

Step i (0-indexed):
  1. Environment layer: environment.layer_for_step(i)
  2. N ← transition(N, E_i, alpha, beta, gamma), seed strategy(seed, i, 'transition')
  3. offspring ← reproduce(N, fecundity)
  4. N[·, ·, recruit_class] += disperse(offspring, kernel), seed strategy(seed, i, 'dispersal')
  5. trajectory[·, ·, i + 1] ← N[·, ·, record]

All inputs are validated before the first step. An error raised inside
a step aborts the run and carries the step index; the population is
never left half-updated because each kernel returns a new array.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import numpy as np

from rangesim.config import SimulationConfig
from rangesim.demography import reproduce, transition
from rangesim.dispersal import check_reflect_extent, disperse
from rangesim.environment import EnvironmentLike, as_environment
from rangesim.errors import InvalidParameter, RangeSimError
from rangesim.perf import PerfMonitor
from rangesim.rng import SeedStrategy, derive_seed, step_seeds
from rangesim.types import DEFAULT_RECRUIT_CLASS, TransitionParameters
from rangesim.validation import (
    check_class_index,
    check_environment_layer,
    check_fecundity,
    check_kernel,
    check_population,
    check_transition_parameters,
)


# ═══════════════════════════════════════════════════════════════════════
# RESULT CONTAINER
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationResult:
    """Output of run_simulation()."""
    trajectory: np.ndarray          # (x, y, nsteps + 1), recorded class
    final_population: np.ndarray    # (x, y, class)
    class_totals: np.ndarray        # (nsteps + 1, class), grid sums
    nsteps: int = 0
    record: int = 0
    seed: int = 1
    timings: Dict[str, dict] = field(default_factory=dict)

    def save(self, path: Union[str, Path]) -> None:
        """Write arrays and run metadata to a compressed .npz."""
        np.savez_compressed(
            path,
            trajectory=self.trajectory,
            final_population=self.final_population,
            class_totals=self.class_totals,
            meta=np.array([self.nsteps, self.record, self.seed], dtype=np.int64),
        )


def load_result(path: Union[str, Path]) -> SimulationResult:
    """Read a SimulationResult written by SimulationResult.save()."""
    with np.load(path) as data:
        nsteps, record, seed = (int(v) for v in data['meta'])
        return SimulationResult(
            trajectory=data['trajectory'],
            final_population=data['final_population'],
            class_totals=data['class_totals'],
            nsteps=nsteps,
            record=record,
            seed=seed,
        )


# ═══════════════════════════════════════════════════════════════════════
# SIMULATION LOOP
# ═══════════════════════════════════════════════════════════════════════

def run_simulation(
    N0,
    environment: EnvironmentLike,
    alpha,
    beta,
    gamma,
    fecundity,
    kernel,
    reflect: bool = True,
    stochastic: bool = True,
    seed: int = 1,
    record: int = 0,
    nsteps: int = 100,
    recruit_class: int = DEFAULT_RECRUIT_CLASS,
    seed_strategy: SeedStrategy = derive_seed,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    perf: Optional[PerfMonitor] = None,
) -> SimulationResult:
    """Run a range simulation.

    Args:
        N0: (x, y, class) initial population.
        environment: One (x, y, variable) layer for a time-invariant
            environment, or nsteps layers (list or EnvironmentSequence).
        alpha, beta, gamma: Transition parameters; see demography.transition.
        fecundity: Per-class fecundity; see demography.reproduce.
        kernel: Neighbourhood matrix; see dispersal.disperse.
        reflect: Reflecting (True) or absorbing (False) boundary.
        stochastic: Sample transitions and dispersal.
        seed: Base seed; per-step seeds come from seed_strategy.
        record: Class index recorded in the trajectory.
        nsteps: Number of steps.
        recruit_class: Class receiving dispersed offspring.
        seed_strategy: Callable (base_seed, step, kernel) -> seed.
        progress_callback: Optional callable(step, nsteps) after each step.
        perf: Optional PerfMonitor for per-kernel timing.

    Returns:
        SimulationResult; trajectory[..., 0] is N0[..., record].

    Raises:
        ShapeMismatch, InvalidParameter, NumericOverflow: On invalid input,
            with .step set when raised during a step.
    """
    if nsteps < 0:
        raise InvalidParameter("nsteps", f"must be >= 0, got {nsteps}")
    if seed < 0:
        raise InvalidParameter("seed", f"must be non-negative, got {seed}")
    if perf is None:
        perf = PerfMonitor(enabled=False)

    N = check_population(N0, stochastic=False).copy()
    nx, ny, n_classes = N.shape
    env = as_environment(environment, nsteps)
    check_environment_layer(env.layer_for_step(0), (nx, ny), "environment[0]")
    params = TransitionParameters(
        *check_transition_parameters(alpha, beta, gamma, n_classes,
                                     env.n_variables)
    )
    fecundity = check_fecundity(fecundity, n_classes)
    kernel = check_kernel(kernel)
    if reflect:
        check_reflect_extent((nx, ny), kernel)
    record = check_class_index(record, n_classes, "record")
    recruit_class = check_class_index(recruit_class, n_classes, "recruit_class")

    trajectory = np.zeros((nx, ny, nsteps + 1), dtype=np.float64)
    trajectory[:, :, 0] = N[:, :, record]
    class_totals = np.zeros((nsteps + 1, n_classes), dtype=np.float64)
    class_totals[0] = N.sum(axis=(0, 1))

    for i in range(nsteps):
        t_seed, d_seed = step_seeds(seed, i, seed_strategy)
        try:
            with perf.track("transition"):
                N = transition(N, env.layer_for_step(i), params.alpha,
                               params.beta, params.gamma, stochastic, t_seed)
            with perf.track("reproduce"):
                offspring = reproduce(N, fecundity)
            with perf.track("disperse"):
                recruits = disperse(offspring, kernel, reflect, stochastic,
                                    d_seed)
        except RangeSimError as err:
            raise err.at_step(i)

        N[:, :, recruit_class] += recruits
        trajectory[:, :, i + 1] = N[:, :, record]
        class_totals[i + 1] = N.sum(axis=(0, 1))

        if progress_callback is not None:
            progress_callback(i, nsteps)

    return SimulationResult(
        trajectory=trajectory,
        final_population=N,
        class_totals=class_totals,
        nsteps=nsteps,
        record=record,
        seed=seed,
        timings=perf.summary(),
    )


def sim(N0, environment, alpha, beta, gamma, fecundity, kernel,
        reflect: bool = True, stochastic: bool = True, seed: int = 1,
        record: int = 0, nsteps: int = 100) -> np.ndarray:
    """Run a range simulation and return the recorded-class trajectory.

    Returns:
        (x, y, nsteps + 1) array; slice 0 is the initial recorded class,
        slice i + 1 the recorded class after step i.
    """
    return run_simulation(
        N0, environment, alpha, beta, gamma, fecundity, kernel,
        reflect=reflect, stochastic=stochastic, seed=seed,
        record=record, nsteps=nsteps,
    ).trajectory


def run_from_config(
    config: SimulationConfig,
    N0,
    environment: EnvironmentLike,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> SimulationResult:
    """Run a simulation with parameters taken from a SimulationConfig.

    Saves the result to config.output.save_path when set.
    """
    s = config.simulation
    params = config.transition_parameters()
    perf = PerfMonitor(enabled=config.output.track_performance)
    result = run_simulation(
        N0, environment,
        params.alpha, params.beta, params.gamma,
        config.fecundity_array(),
        config.kernel_array(),
        reflect=s.reflect,
        stochastic=s.stochastic,
        seed=s.seed,
        record=s.record_class,
        nsteps=s.nsteps,
        recruit_class=s.recruit_class,
        progress_callback=progress_callback,
        perf=perf,
    )
    if config.output.save_path is not None:
        result.save(config.output.save_path)
    return result
