"""Tests for the adaptive integrators and the step-size controller.

Tests cover:
- Accept/reject decisions against ``min_error``
- Step-size proposals: growth and shrink limits, min/max step
- Rejected steps leave state and time unchanged
- The Dormand-Prince FSAL scratch
- JIT, vmap and lax.scan compatibility
"""

import math

import jax
import jax.numpy as jnp
import pytest

from odejax.integrators import (
    AdaptiveConfig,
    AdaptiveIntegrator,
    AdaptiveStep,
    DormandPrince54,
    DP54Scratch,
    EmbeddedRungeKutta,
    Integrator,
    dp54_step,
    tableaus,
)
from odejax.integrators._adaptive import clamp_step, compute_error_norm, compute_next_step_size

# ──────────────────────────────────────────────
# Helper dynamics functions
# ──────────────────────────────────────────────


def _exponential_decay(t, x):
    return -x


def _stiff(t, x):
    """dx/dt = -1000x."""
    return -1000.0 * x


def _harmonic_oscillator(t, x):
    return jnp.array([x[1], -x[0]])


def _linear_dynamics(t, x):
    return jnp.ones_like(x)


def _attempt(integrator, dynamics, x0, dt, min_error, t=0.0):
    return integrator.adaptive_step(
        x0, t, dt, min_error, dynamics, integrator.adaptive_init(x0, t)
    )


# ──────────────────────────────────────────────
# Controller
# ──────────────────────────────────────────────


class TestStepSizeController:
    def test_config_defaults(self):
        config = AdaptiveConfig()
        assert config.safety_factor == 0.9
        assert config.min_scale_factor == 0.2
        assert config.max_scale_factor == 2.0
        assert config.shrink_factor == 0.5
        assert config.min_step == 1e-12
        assert config.max_step == float("inf")

    def test_error_norm_is_max_abs(self):
        err = compute_error_norm({"a": jnp.array([0.1, -0.4]), "b": jnp.array(0.3)})
        assert float(err) == pytest.approx(0.4)

    def test_error_norm_of_empty_tree(self):
        assert float(compute_error_norm(())) == 0.0

    def test_zero_error_doubles(self):
        dt = compute_next_step_size(0.0, 1e-6, 0.1, True, 5, AdaptiveConfig())
        assert float(dt) == pytest.approx(0.2)

    def test_accept_never_shrinks(self):
        """An accepted step just under tolerance keeps at least its size."""
        dt = compute_next_step_size(0.99e-6, 1e-6, 0.1, True, 5, AdaptiveConfig())
        assert float(dt) == pytest.approx(0.1)

    def test_accept_growth_follows_error_ratio(self):
        # 0.9 * (1/0.1)^(1/5) = 1.4265
        dt = compute_next_step_size(1e-7, 1e-6, 0.1, True, 5, AdaptiveConfig())
        assert float(dt) == pytest.approx(0.1 * 0.9 * 10.0**0.2, rel=1e-12)

    def test_reject_shrinks_at_least_half(self):
        dt = compute_next_step_size(1.1e-6, 1e-6, 0.1, False, 5, AdaptiveConfig())
        assert float(dt) == pytest.approx(0.05)

    def test_reject_shrink_floor(self):
        dt = compute_next_step_size(1.0, 1e-6, 0.1, False, 5, AdaptiveConfig())
        assert float(dt) == pytest.approx(0.02)

    def test_max_step(self):
        dt = compute_next_step_size(0.0, 1e-6, 0.1, True, 5, AdaptiveConfig(max_step=0.15))
        assert float(dt) == pytest.approx(0.15)

    def test_sign_preserved(self):
        dt = compute_next_step_size(0.0, 1e-6, -0.1, True, 5, AdaptiveConfig())
        assert float(dt) == pytest.approx(-0.2)
        dt = compute_next_step_size(1.0, 1e-6, -0.1, False, 5, AdaptiveConfig())
        assert float(dt) == pytest.approx(-0.02)

    def test_nan_error_shrinks(self):
        dt = compute_next_step_size(jnp.nan, 1e-6, 0.1, False, 5, AdaptiveConfig())
        assert float(dt) == pytest.approx(0.05)

    def test_accept_at_tolerance_keeps_step(self):
        """An error equal to min_error proposes the same step, not a smaller one."""
        dt = compute_next_step_size(1e-6, 1e-6, 0.5, True, 5, AdaptiveConfig())
        assert float(dt) == 0.5

    def test_clamp_step_shortens_to_max_step(self):
        config = AdaptiveConfig(max_step=0.05)
        assert float(clamp_step(0.1, config)) == 0.05
        assert float(clamp_step(-0.1, config)) == -0.05

    def test_clamp_step_leaves_short_steps_alone(self):
        config = AdaptiveConfig(max_step=0.05)
        assert float(clamp_step(0.03, config)) == 0.03
        assert float(clamp_step(0.1, AdaptiveConfig())) == 0.1


# ──────────────────────────────────────────────
# Dormand-Prince 5(4)
# ──────────────────────────────────────────────


class TestDormandPrince54:
    def test_capabilities(self):
        dp = DormandPrince54()
        assert isinstance(dp, AdaptiveIntegrator)
        assert not isinstance(dp, Integrator)
        assert dp.error_norm == "max_abs"
        assert dp.order == 5

    def test_stiff_large_step_rejected(self):
        """dx/dt = -1000x with dt = 0.1 is rejected and nothing moves."""
        x0 = jnp.array([1.0])
        result = _attempt(DormandPrince54(), _stiff, x0, 0.1, 1e-6, t=2.0)
        assert isinstance(result, AdaptiveStep)
        assert float(result.error) > 1e-6
        assert jnp.array_equal(result.state, x0)
        assert float(result.time) == 2.0
        assert float(result.dt_next) <= 0.05

    def test_small_step_accepted(self):
        x0 = jnp.array([1.0])
        result = _attempt(DormandPrince54(), _exponential_decay, x0, 1e-4, 1e-8)
        assert float(result.error) <= 1e-8
        assert float(result.time) == pytest.approx(1e-4)
        assert float(result.state[0]) == pytest.approx(math.exp(-1e-4), rel=1e-14)
        assert float(result.dt_next) >= 1e-4

    def test_exact_dynamics_double_step(self):
        """Linear dynamics are integrated exactly, so the next step doubles."""
        result = _attempt(DormandPrince54(), _linear_dynamics, jnp.array([0.0]), 0.1, 1e-6)
        assert float(result.time) == pytest.approx(0.1)
        assert float(result.dt_next) == pytest.approx(0.2)

    def test_accuracy(self):
        x0 = jnp.array([1.0, 0.0])
        result = _attempt(DormandPrince54(), _harmonic_oscillator, x0, 0.1, 1e-6)
        expected = jnp.array([jnp.cos(0.1), -jnp.sin(0.1)])
        assert jnp.allclose(result.state, expected, atol=1e-8)

    def test_min_step_floor_on_reject(self):
        dp = DormandPrince54(AdaptiveConfig(min_step=0.05))
        result = _attempt(dp, _stiff, jnp.array([1.0]), 0.1, 1e-6)
        assert float(result.time) == 0.0
        assert float(result.dt_next) == pytest.approx(0.05)

    def test_reject_never_grows(self):
        """A min_step above the hint does not make a rejected proposal larger."""
        dp = DormandPrince54(AdaptiveConfig(min_step=1.0))
        result = _attempt(dp, _stiff, jnp.array([1.0]), 0.1, 1e-6)
        assert float(result.time) == 0.0
        assert float(result.dt_next) == pytest.approx(0.1)

    def test_hint_above_max_step_is_shortened(self):
        """The step taken is at most max_step, and dt_next never falls below it."""
        dp = DormandPrince54(AdaptiveConfig(max_step=0.05))
        result = _attempt(dp, _linear_dynamics, jnp.array([0.0]), 0.1, 1e-6)
        assert float(result.error) <= 1e-6
        assert float(result.time) == pytest.approx(0.05)
        assert float(result.state[0]) == pytest.approx(0.05)
        assert float(result.dt_next) >= float(result.time)
        assert float(result.dt_next) == pytest.approx(0.05)

    def test_backward_hint_above_max_step_is_shortened(self):
        dp = DormandPrince54(AdaptiveConfig(max_step=0.05))
        result = _attempt(dp, _linear_dynamics, jnp.array([0.0]), -0.1, 1e-6)
        assert float(result.time) == pytest.approx(-0.05)
        assert float(result.state[0]) == pytest.approx(-0.05)
        assert float(result.dt_next) == pytest.approx(-0.05)

    def test_nan_dynamics_rejected(self):
        def bad(t, x):
            return jnp.full_like(x, jnp.nan)

        x0 = jnp.array([1.0, 2.0])
        result = _attempt(DormandPrince54(), bad, x0, 0.1, 1e-6)
        assert jnp.array_equal(result.state, x0)
        assert float(result.time) == 0.0
        assert float(result.dt_next) == pytest.approx(0.05)

    def test_backward_step(self):
        x0 = jnp.array([1.0])
        result = _attempt(DormandPrince54(), _exponential_decay, x0, -0.1, 1e-6)
        assert float(result.time) == pytest.approx(-0.1)
        assert float(result.state[0]) == pytest.approx(math.exp(0.1), rel=1e-7)
        assert float(result.dt_next) < 0.0

    def test_purity(self):
        dp = DormandPrince54()
        x0 = jnp.array([1.0, 0.0])
        a = _attempt(dp, _harmonic_oscillator, x0, 0.2, 1e-6)
        b = _attempt(dp, _harmonic_oscillator, x0, 0.2, 1e-6)
        assert jnp.array_equal(a.state, b.state)
        assert float(a.dt_next) == float(b.dt_next)

    def test_pytree_state(self):
        def dynamics(t, s):
            return (s[1], -s[0])

        result = _attempt(DormandPrince54(), dynamics, (1.0, 0.0), 0.1, 1e-6)
        q, p = result.state
        assert float(q) == pytest.approx(math.cos(0.1), abs=1e-8)
        assert float(p) == pytest.approx(-math.sin(0.1), abs=1e-8)

    def test_step_function_default_scratch(self):
        """dp54_step without scratch behaves like a freshly initialised call."""
        x0 = jnp.array([1.0, 0.0])
        direct = dp54_step(_harmonic_oscillator, 0.0, x0, 0.1, 1e-6)
        via_class = _attempt(DormandPrince54(), _harmonic_oscillator, x0, 0.1, 1e-6)
        assert jnp.array_equal(direct.state, via_class.state)


# ──────────────────────────────────────────────
# FSAL scratch
# ──────────────────────────────────────────────


class TestFSALScratch:
    def test_init_is_invalid_cache(self):
        scratch = DormandPrince54().adaptive_init(jnp.array([1.0, 2.0]), 0.0)
        assert isinstance(scratch, DP54Scratch)
        assert not bool(scratch.valid)
        assert scratch.derivative.shape == (2,)

    def test_accepted_step_caches_last_stage(self):
        x0 = jnp.array([1.0, 0.0])
        result = _attempt(DormandPrince54(), _harmonic_oscillator, x0, 0.1, 1e-6)
        assert bool(result.scratch.valid)
        assert jnp.allclose(
            result.scratch.derivative, _harmonic_oscillator(result.time, result.state), atol=1e-15
        )

    def test_rejected_step_keeps_first_stage(self):
        x0 = jnp.array([1.0])
        result = _attempt(DormandPrince54(), _stiff, x0, 0.1, 1e-6)
        assert bool(result.scratch.valid)
        assert jnp.allclose(result.scratch.derivative, _stiff(0.0, x0))

    def test_reset_scratch_gives_same_result(self):
        """Reusing the cache only saves an evaluation."""
        dp = DormandPrince54()
        x0 = jnp.array([1.0, 0.0])
        first = _attempt(dp, _harmonic_oscillator, x0, 0.1, 1e-6)
        cached = dp.adaptive_step(
            first.state, first.time, first.dt_next, 1e-6, _harmonic_oscillator, first.scratch
        )
        fresh = dp.adaptive_step(
            first.state,
            first.time,
            first.dt_next,
            1e-6,
            _harmonic_oscillator,
            dp.adaptive_init(first.state, first.time),
        )
        assert jnp.allclose(cached.state, fresh.state, rtol=1e-14, atol=1e-15)
        assert float(cached.time) == float(fresh.time)

    def test_corrupted_scratch_changes_result(self):
        dp = DormandPrince54()
        x0 = jnp.array([1.0, 0.0])
        good = _attempt(dp, _harmonic_oscillator, x0, 0.1, 1.0)
        bad_scratch = DP54Scratch(derivative=jnp.array([5.0, 5.0]), valid=jnp.asarray(True))
        bad = dp.adaptive_step(x0, 0.0, 0.1, 1.0, _harmonic_oscillator, bad_scratch)
        assert not jnp.allclose(good.state, bad.state, atol=1e-3)


# ──────────────────────────────────────────────
# Embedded tableaus
# ──────────────────────────────────────────────


class TestEmbeddedRungeKutta:
    def test_capabilities(self):
        erk = EmbeddedRungeKutta(tableaus.BOGACKI_SHAMPINE)
        assert isinstance(erk, AdaptiveIntegrator)
        assert erk.error_norm == "max_abs"
        assert erk.order == 3
        assert erk.adaptive_init(jnp.array([1.0]), 0.0) == ()

    def test_matches_dp54(self):
        """The Dormand-Prince tableau reproduces the dedicated implementation."""
        x0 = jnp.array([1.0, 0.0])
        a = _attempt(DormandPrince54(), _harmonic_oscillator, x0, 0.3, 1e-6)
        b = _attempt(EmbeddedRungeKutta(tableaus.DORMAND_PRINCE), _harmonic_oscillator, x0, 0.3, 1e-6)
        assert jnp.allclose(a.state, b.state, rtol=1e-13, atol=1e-15)
        assert float(a.error) == pytest.approx(float(b.error), rel=1e-6, abs=1e-15)
        assert float(a.dt_next) == pytest.approx(float(b.dt_next), rel=1e-6)
        assert float(a.time) == float(b.time)

    @pytest.mark.parametrize(
        "tableau",
        [tableaus.EULER_HEUN, tableaus.BOGACKI_SHAMPINE, tableaus.FEHLBERG, tableaus.DORMAND_PRINCE],
    )
    def test_stiff_rejected(self, tableau):
        x0 = jnp.array([1.0])
        result = _attempt(EmbeddedRungeKutta(tableau), _stiff, x0, 0.1, 1e-6)
        assert jnp.array_equal(result.state, x0)
        assert float(result.time) == 0.0
        assert float(result.dt_next) <= 0.05

    @pytest.mark.parametrize(
        "tableau",
        [tableaus.EULER_HEUN, tableaus.BOGACKI_SHAMPINE, tableaus.FEHLBERG, tableaus.DORMAND_PRINCE],
    )
    def test_small_step_accepted(self, tableau):
        x0 = jnp.array([1.0])
        result = _attempt(EmbeddedRungeKutta(tableau), _exponential_decay, x0, 1e-3, 1e-6)
        assert float(result.time) == pytest.approx(1e-3)
        assert float(result.state[0]) == pytest.approx(math.exp(-1e-3), rel=1e-6)

    @pytest.mark.parametrize("tableau", [tableaus.BOGACKI_SHAMPINE, tableaus.DORMAND_PRINCE])
    def test_hint_above_max_step_is_shortened(self, tableau):
        erk = EmbeddedRungeKutta(tableau, AdaptiveConfig(max_step=0.05))
        result = _attempt(erk, _linear_dynamics, jnp.array([0.0]), 0.1, 1e-6)
        assert float(result.time) == pytest.approx(0.05)
        assert float(result.state[0]) == pytest.approx(0.05)
        assert float(result.dt_next) == pytest.approx(0.05)


# ──────────────────────────────────────────────
# JAX compatibility
# ──────────────────────────────────────────────


class TestJAXCompatibility:
    def test_jit_dp54(self):
        dp = DormandPrince54()
        step = jax.jit(
            lambda x, t, dt, scratch: dp.adaptive_step(x, t, dt, 1e-8, _harmonic_oscillator, scratch)
        )
        x0 = jnp.array([1.0, 0.0])
        result = step(x0, 0.0, 0.05, dp.adaptive_init(x0, 0.0))
        expected = jnp.array([jnp.cos(0.05), -jnp.sin(0.05)])
        assert jnp.allclose(result.state, expected, atol=1e-9)

    def test_vmap_dp54(self):
        x0_batch = jnp.array([[1.0], [2.0], [3.0]])
        results = jax.vmap(lambda x: dp54_step(_exponential_decay, 0.0, x, 0.1, 1e-6))(x0_batch)
        assert results.state.shape == (3, 1)
        assert jnp.allclose(results.state, x0_batch * jnp.exp(-0.1), rtol=1e-6)

    def test_scan_dp54(self):
        """A fixed number of attempts under lax.scan, rejections included."""
        dp = DormandPrince54()

        def body(carry, _):
            x, t, dt, scratch = carry
            result = dp.adaptive_step(x, t, dt, 1e-10, _exponential_decay, scratch)
            return (result.state, result.time, result.dt_next, result.scratch), result.time

        x0 = jnp.array([1.0])
        t0 = jnp.array(0.0)
        init = (x0, t0, jnp.array(0.5), dp.adaptive_init(x0, t0))
        (x, t, _, _), times = jax.lax.scan(body, init, None, length=40)
        assert float(t) > 0.0
        assert bool(jnp.all(jnp.diff(times) >= 0.0))
        assert float(x[0]) == pytest.approx(math.exp(-float(t)), abs=1e-8)
