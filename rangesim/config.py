"""Configuration system for rangesim.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → override dict

Arrays (transition parameters, fecundity, kernel) are written as nested
lists in YAML; the kernel may instead be read from a .npy file. Initial
population and environment arrays are passed to run_from_config()
directly and are not part of the configuration.
"""

from __future__ import annotations

import dataclasses
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import yaml

from rangesim.types import TransitionParameters
from rangesim.validation import check_fecundity, check_kernel


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run control."""
    nsteps: int = 100
    seed: int = 1
    stochastic: bool = True      # sample transitions and dispersal
    reflect: bool = True         # reflecting (True) or absorbing boundary
    record_class: int = 0        # class whose field is recorded each step
    recruit_class: int = 0       # class receiving dispersed offspring


@dataclass
class DemographySection:
    """Stage-transition and fecundity parameters.

    Default: three classes (seedling, juvenile, adult), one environment
    variable with no effect, adults reproductive.
    """
    alpha: List[List[float]] = field(default_factory=lambda: [
        [0.0, 0.0, 0.0],
        [0.3, 0.4, 0.0],
        [0.0, 0.2, 0.9],
    ])
    beta: List[List[List[float]]] = field(
        default_factory=lambda: np.zeros((3, 3, 3)).tolist()
    )
    gamma: List[List[List[float]]] = field(
        default_factory=lambda: np.zeros((3, 3, 1)).tolist()
    )
    fecundity: List[float] = field(default_factory=lambda: [0.0, 0.0, 2.0])


@dataclass
class DispersalSection:
    """Neighbourhood kernel, inline or from a .npy file."""
    kernel: List[List[float]] = field(default_factory=lambda: [
        [0.05, 0.05, 0.05],
        [0.05, 0.60, 0.05],
        [0.05, 0.05, 0.05],
    ])
    kernel_file: Optional[str] = None


@dataclass
class OutputSection:
    """Result persistence and diagnostics."""
    save_path: Optional[str] = None     # .npz path; None = don't save
    track_performance: bool = False


@dataclass
class SimulationConfig:
    """Top-level configuration container."""
    simulation: SimulationSection = field(default_factory=SimulationSection)
    demography: DemographySection = field(default_factory=DemographySection)
    dispersal: DispersalSection = field(default_factory=DispersalSection)
    output: OutputSection = field(default_factory=OutputSection)

    def transition_parameters(self) -> TransitionParameters:
        d = self.demography
        return TransitionParameters.from_arrays(d.alpha, d.beta, d.gamma)

    def fecundity_array(self) -> np.ndarray:
        return np.asarray(self.demography.fecundity, dtype=np.float64)

    def kernel_array(self) -> np.ndarray:
        if self.dispersal.kernel_file is not None:
            return np.load(self.dispersal.kernel_file).astype(np.float64)
        return np.asarray(self.dispersal.kernel, dtype=np.float64)


# ═══════════════════════════════════════════════════════════════════════
# LOADING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base (mutates and returns base).

    Nested dicts merge key by key; any other value replaces the base value.
    """
    for key, value in override.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a section dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    return section_cls(**{k: v for k, v in data.items() if k in valid_fields})


def _yaml_to_config(data: Dict) -> SimulationConfig:
    section_map = {
        'simulation': SimulationSection,
        'demography': DemographySection,
        'dispersal': DispersalSection,
        'output': OutputSection,
    }
    sections = {}
    for key, cls in section_map.items():
        if isinstance(data.get(key), dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return SimulationConfig(**sections)


def _read_yaml(path: Path) -> Dict:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure.

    Fecundity and kernel go through the same checks the kernels apply at
    entry (InvalidParameter / ShapeMismatch, both ValueError subclasses).

    Checks:
      - Run control ranges (nsteps, seed, class indices)
      - Transition parameter shapes agree on the class count
      - Fecundity length and sign
      - Kernel is square, odd-sized, non-negative, mass ≤ 1
    """
    sim = config.simulation
    if sim.nsteps < 0:
        raise ValueError(f"simulation.nsteps must be >= 0, got {sim.nsteps}")
    if sim.seed < 0:
        raise ValueError("simulation.seed must be non-negative")

    try:
        params = config.transition_parameters()
    except ValueError as e:
        raise ValueError(f"demography: ragged parameter lists ({e})") from e
    alpha, beta, gamma = params.alpha, params.beta, params.gamma
    if alpha.ndim != 2 or alpha.shape[0] != alpha.shape[1]:
        raise ValueError(
            f"demography.alpha must be square (target × source), got {alpha.shape}"
        )
    n = alpha.shape[0]
    if beta.shape != (n, n, n):
        raise ValueError(
            f"demography.beta must have shape {(n, n, n)}, got {beta.shape}"
        )
    if gamma.ndim != 3 or gamma.shape[:2] != (n, n):
        raise ValueError(
            f"demography.gamma must have shape ({n}, {n}, n_variables), "
            f"got {gamma.shape}"
        )

    check_fecundity(config.fecundity_array(), n, "demography.fecundity")

    for name in ('record_class', 'recruit_class'):
        idx = getattr(sim, name)
        if not 0 <= idx < n:
            raise ValueError(
                f"simulation.{name} must be in [0, {n - 1}], got {idx}"
            )

    if config.dispersal.kernel_file is not None:
        if not os.path.isfile(config.dispersal.kernel_file):
            warnings.warn(
                f"dispersal.kernel_file '{config.dispersal.kernel_file}' "
                f"does not exist. Kernel loading will fail at runtime.",
                UserWarning,
                stacklevel=2,
            )
        return

    check_kernel(config.dispersal.kernel, "dispersal.kernel")


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → overrides. Each layer overrides only
    the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML.
        overrides: Optional dict of overrides (e.g. from a parameter sweep).

    Returns:
        Validated SimulationConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    config_dict = _read_yaml(base_path)

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            deep_merge(config_dict, _read_yaml(scenario_path))

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    validate_config(config)
    return config
