"""Tests for rangesim.environment — environment sequences and forcing."""

import numpy as np
import pytest

from rangesim.environment import (
    EnvironmentSequence,
    StaticEnvironment,
    StepwiseEnvironment,
    as_environment,
    seasonal_environment,
)
from rangesim.errors import InvalidParameter, ShapeMismatch


def _layer(value=0.0, shape=(3, 4, 2)):
    return np.full(shape, value)


# ── sequence types ────────────────────────────────────────────────────

class TestStaticEnvironment:
    def test_same_layer_every_step(self):
        env = StaticEnvironment(_layer(1.5))
        for step in (0, 1, 99):
            np.testing.assert_array_equal(env.layer_for_step(step), 1.5)

    def test_shape_properties(self):
        env = StaticEnvironment(_layer())
        assert env.grid_shape == (3, 4)
        assert env.n_variables == 2

    def test_any_step_count(self):
        StaticEnvironment(_layer()).check_steps(1000)

    def test_rejects_2d_layer(self):
        with pytest.raises(ShapeMismatch):
            StaticEnvironment(np.zeros((3, 4)))


class TestStepwiseEnvironment:
    def test_indexed_by_step(self):
        env = StepwiseEnvironment([_layer(float(i)) for i in range(4)])
        assert len(env) == 4
        for step in range(4):
            assert env.layer_for_step(step)[0, 0, 0] == float(step)

    def test_layers_must_share_shape(self):
        with pytest.raises(ShapeMismatch) as exc:
            StepwiseEnvironment([_layer(), _layer(shape=(3, 4, 1))])
        assert exc.value.parameter == "environment[1]"

    def test_empty(self):
        with pytest.raises(ShapeMismatch):
            StepwiseEnvironment([])

    def test_length_must_match_steps(self):
        env = StepwiseEnvironment([_layer(), _layer()])
        env.check_steps(2)
        with pytest.raises(ShapeMismatch):
            env.check_steps(3)


class TestEnvironmentSequenceBase:
    def test_base_not_instantiable(self):
        with pytest.raises(TypeError):
            EnvironmentSequence()

    def test_subclass_gets_shape_properties(self):
        class Ramp(EnvironmentSequence):
            def layer_for_step(self, step):
                return np.full((2, 3, 1), float(step))

        env = Ramp()
        assert env.grid_shape == (2, 3)
        assert env.n_variables == 1
        assert as_environment(env, nsteps=4) is env


# ── coercion ──────────────────────────────────────────────────────────

class TestAsEnvironment:
    def test_single_array_is_static(self):
        env = as_environment(_layer(), nsteps=10)
        assert isinstance(env, StaticEnvironment)

    def test_length_one_list_is_static(self):
        env = as_environment([_layer(2.0)], nsteps=10)
        assert isinstance(env, StaticEnvironment)
        assert env.layer_for_step(9)[0, 0, 0] == 2.0

    def test_list_of_nsteps_is_stepwise(self):
        env = as_environment([_layer(float(i)) for i in range(5)], nsteps=5)
        assert isinstance(env, StepwiseEnvironment)
        assert env.layer_for_step(3)[0, 0, 0] == 3.0

    def test_wrong_length(self):
        with pytest.raises(ShapeMismatch):
            as_environment([_layer(), _layer(), _layer()], nsteps=5)

    def test_passthrough(self):
        env = StepwiseEnvironment([_layer(), _layer()])
        assert as_environment(env, nsteps=2) is env

    def test_4d_array_rejected(self):
        with pytest.raises(ShapeMismatch):
            as_environment(np.zeros((3, 4, 2, 5)), nsteps=5)


# ── seasonal forcing ──────────────────────────────────────────────────

class TestSeasonalEnvironment:
    def test_peak_and_trough(self):
        mean = np.full((2, 2, 1), 10.0)
        env = seasonal_environment(mean, amplitude=3.0, nsteps=12, period=12.0)
        assert env.layer_for_step(0)[0, 0, 0] == pytest.approx(13.0)
        assert env.layer_for_step(6)[0, 0, 0] == pytest.approx(7.0)

    def test_linear_trend(self):
        mean = np.zeros((1, 1, 1))
        env = seasonal_environment(mean, amplitude=0.0, nsteps=5, trend=0.5)
        values = [env.layer_for_step(i)[0, 0, 0] for i in range(5)]
        np.testing.assert_allclose(values, [0.0, 0.5, 1.0, 1.5, 2.0])

    def test_per_variable_amplitude(self):
        mean = np.zeros((1, 1, 2))
        env = seasonal_environment(mean, amplitude=[1.0, 2.0], nsteps=1)
        np.testing.assert_allclose(env.layer_for_step(0)[0, 0], [1.0, 2.0])

    def test_spatial_pattern_preserved(self):
        mean = np.arange(6, dtype=np.float64).reshape(2, 3, 1)
        env = seasonal_environment(mean, amplitude=1.0, nsteps=3, period=4.0)
        diff = env.layer_for_step(1) - mean
        assert np.allclose(diff, diff[0, 0, 0])

    def test_invalid_period(self):
        with pytest.raises(InvalidParameter):
            seasonal_environment(np.zeros((1, 1, 1)), 1.0, nsteps=3, period=0)
