"""Dormand-Prince 5(4) adaptive integrator (DP54).

Implements the Dormand-Prince embedded Runge-Kutta method with a 5th-order
solution for propagation and a 4th-order solution for error estimation. The
method uses 7 stages per step.

Every call makes a single accept/reject decision: the local error estimate
is the max absolute difference between the two embedded solutions, and the
step is accepted when it is <= ``min_error``. A rejected step leaves state
and time unchanged and proposes a smaller step size; retrying is up to the
caller.

The Dormand-Prince method has the First-Same-As-Last (FSAL) property: the
7th stage of an accepted step is the 1st stage of the next one. The
derivative is carried in the :class:`DP54Scratch` the caller threads
through each call, so steady stepping costs 6 evaluations instead of 7.

The Butcher tableau coefficients are the standard Dormand-Prince values:

- Nodes (c): [0, 1/5, 3/10, 4/5, 8/9, 1, 1]
- 5th-order weights (b_high): [35/384, 0, 500/1113, 125/192, -2187/6784, 11/84, 0]
- 4th-order weights (b_low): [5179/57600, 0, 7571/16695, 393/640, -92097/339200,
  187/2100, 1/40]
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar, NamedTuple

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odejax.config import get_dtype
from odejax.integrators._adaptive import clamp_step, compute_error_norm, compute_next_step_size
from odejax.integrators._tree import (
    PyTree,
    tree_axpy,
    tree_cast,
    tree_lincomb,
    tree_where,
    tree_zeros_like,
)
from odejax.integrators._types import AdaptiveConfig, AdaptiveStep

# Butcher tableau coefficients as Python tuples (cast at call time).
# Nodes
_C = (0.0, 1.0 / 5.0, 3.0 / 10.0, 4.0 / 5.0, 8.0 / 9.0, 1.0, 1.0)

# Coupling coefficients (lower-triangular rows)
_A1 = (1.0 / 5.0,)
_A2 = (3.0 / 40.0, 9.0 / 40.0)
_A3 = (44.0 / 45.0, -56.0 / 15.0, 32.0 / 9.0)
_A4 = (19372.0 / 6561.0, -25360.0 / 2187.0, 64448.0 / 6561.0, -212.0 / 729.0)
_A5 = (9017.0 / 3168.0, -355.0 / 33.0, 46732.0 / 5247.0, 49.0 / 176.0, -5103.0 / 18656.0)

# 5th-order weights (primary solution), also the coupling row of stage 7
_B_HIGH = (35.0 / 384.0, 0.0, 500.0 / 1113.0, 125.0 / 192.0, -2187.0 / 6784.0, 11.0 / 84.0, 0.0)

# 4th-order weights (error estimation)
_B_LOW = (
    5179.0 / 57600.0,
    0.0,
    7571.0 / 16695.0,
    393.0 / 640.0,
    -92097.0 / 339200.0,
    187.0 / 2100.0,
    1.0 / 40.0,
)

_ORDER = 5


class DP54Scratch(NamedTuple):
    """FSAL cache carried between :func:`dp54_step` calls.

    Attributes:
        derivative: ``dynamics(t, state)`` at the current time and state.
        valid: Whether ``derivative`` holds a real evaluation. When False
            (as returned by :meth:`DormandPrince54.adaptive_init`) the first
            stage is evaluated instead of read from the cache.
    """

    derivative: Any
    valid: Array


def dp54_init(state: PyTree) -> DP54Scratch:
    """Return an empty FSAL cache shaped like *state*."""
    state = tree_cast(state)
    return DP54Scratch(derivative=tree_zeros_like(state), valid=jnp.asarray(False))


def dp54_step(
    dynamics: Callable[[Array, Any], Any],
    t: ArrayLike,
    state: PyTree,
    dt: ArrayLike,
    min_error: ArrayLike,
    scratch: DP54Scratch | None = None,
    config: AdaptiveConfig | None = None,
) -> AdaptiveStep:
    """Attempt a single adaptive DP54 integration step.

    Computes the 5th- and 4th-order solutions at ``t + dt`` and accepts
    the 5th-order one if the max absolute difference between them is
    <= ``min_error``. Compatible with ``jax.jit``, ``jax.vmap`` and
    ``jax.lax.scan``.

    Args:
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t: Current time.
        state: Current state pytree.
        dt: Step size to attempt, shortened to ``config.max_step`` if
            larger. May be negative for backward integration.
        min_error: Largest acceptable local error estimate.
        scratch: FSAL cache from :func:`dp54_init` or the previous call.
            ``None`` evaluates the first stage.
        config: Step-size controller. Uses default :class:`AdaptiveConfig`
            if ``None``.

    Returns:
        AdaptiveStep: Named tuple with fields:
            - ``state``: 5th-order state at ``t + dt`` if accepted,
              otherwise the input state.
            - ``time``: ``t + dt`` (after the ``max_step`` clamp) if
              accepted, otherwise ``t``.
            - ``dt_next``: Proposed next step size.
            - ``error``: Local error estimate of this attempt.
            - ``scratch``: Updated FSAL cache.

    Examples:
        ```python
        import jax.numpy as jnp
        from odejax.integrators import dp54_step
        def harmonic(t, x):
            return jnp.array([x[1], -x[0]])
        result = dp54_step(harmonic, 0.0, jnp.array([1.0, 0.0]), 0.1, 1e-8)
        result.state  # ~[cos(0.1), -sin(0.1)]
        ```
    """
    if config is None:
        config = AdaptiveConfig()
    if scratch is None:
        scratch = dp54_init(state)

    dtype = get_dtype()
    t = jnp.asarray(t, dtype=dtype)
    state = tree_cast(state, dtype)
    h = clamp_step(dt, config)

    def f(ti, xi):
        return tree_cast(dynamics(ti, xi), dtype)

    k1 = jax.lax.cond(
        scratch.valid,
        lambda: tree_cast(scratch.derivative, dtype),
        lambda: f(t, state),
    )
    k2 = f(t + _C[1] * h, tree_lincomb(state, h, _A1, (k1,)))
    k3 = f(t + _C[2] * h, tree_lincomb(state, h, _A2, (k1, k2)))
    k4 = f(t + _C[3] * h, tree_lincomb(state, h, _A3, (k1, k2, k3)))
    k5 = f(t + _C[4] * h, tree_lincomb(state, h, _A4, (k1, k2, k3, k4)))
    k6 = f(t + _C[5] * h, tree_lincomb(state, h, _A5, (k1, k2, k3, k4, k5)))

    # 5th-order solution (primary); the last stage is evaluated on it
    state_high = tree_lincomb(state, h, _B_HIGH, (k1, k2, k3, k4, k5, k6))
    k7 = f(t + _C[6] * h, state_high)

    # 4th-order solution (for error estimation)
    state_low = tree_lincomb(state, h, _B_LOW, (k1, k2, k3, k4, k5, k6, k7))

    error = compute_error_norm(tree_axpy(-1.0, state_low, state_high))
    accepted = error <= min_error

    dt_next = compute_next_step_size(error, min_error, h, accepted, _ORDER, config)

    return AdaptiveStep(
        state=tree_where(accepted, state_high, state),
        time=jnp.where(accepted, t + h, t),
        dt_next=dt_next,
        error=error,
        scratch=DP54Scratch(
            derivative=tree_where(accepted, k7, k1),
            valid=jnp.asarray(True),
        ),
    )


@dataclass(frozen=True)
class DormandPrince54:
    """Dormand-Prince 5(4) as an :class:`~odejax.integrators.AdaptiveIntegrator`.

    The error norm is the maximum absolute component of the difference
    between the 5th- and 4th-order solutions, over every leaf of the state.

    Args:
        config: Step-size controller settings for this instance.

    Examples:
        ```python
        from odejax.integrators import DormandPrince54
        dp = DormandPrince54()
        x, t, dt = 1.0, 0.0, 0.1
        scratch = dp.adaptive_init(x, t)
        while t < 1.0:
            x, t, dt, err, scratch = dp.adaptive_step(x, t, dt, 1e-8, lambda t, x: -x, scratch)
        ```
    """

    config: AdaptiveConfig = field(default_factory=AdaptiveConfig)

    order: ClassVar[int] = _ORDER
    error_norm: ClassVar[str] = "max_abs"

    def adaptive_init(self, state: PyTree, t: ArrayLike) -> DP54Scratch:
        return dp54_init(state)

    def adaptive_step(
        self,
        state: PyTree,
        t: ArrayLike,
        dt_hint: ArrayLike,
        min_error: ArrayLike,
        dynamics: Callable[[Array, Any], Any],
        scratch: DP54Scratch,
    ) -> AdaptiveStep:
        return dp54_step(dynamics, t, state, dt_hint, min_error, scratch=scratch, config=self.config)
