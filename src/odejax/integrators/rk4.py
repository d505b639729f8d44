"""Classic 4th-order Runge-Kutta integrator (RK4).

Implements the standard four-stage, 4th-order explicit Runge-Kutta method
for numerical integration of ordinary differential equations. This is a
fixed-step method with no adaptive step-size control.

The Butcher tableau for RK4 is:

.. math::

    \\begin{array}{c|cccc}
    0   &     &     &     &   \\\\
    1/2 & 1/2 &     &     &   \\\\
    1/2 &  0  & 1/2 &     &   \\\\
    1   &  0  &  0  &  1  &   \\\\
    \\hline
        & 1/6 & 1/3 & 1/3 & 1/6
    \\end{array}

The method achieves 4th-order accuracy, meaning the local truncation error
is :math:`O(h^5)` and the global error is :math:`O(h^4)`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odejax.config import get_dtype
from odejax.integrators._reduction import FirstOrderReduction
from odejax.integrators._tree import PyTree, tree_cast, tree_lincomb
from odejax.integrators._types import IntegratorStep


def rk4_step(
    dynamics: Callable[[Array, Any], Any],
    t: ArrayLike,
    state: PyTree,
    dt: ArrayLike,
) -> PyTree:
    """Perform a single RK4 integration step.

    Advances the state from time ``t`` to ``t + dt`` using the classic
    4th-order Runge-Kutta method. The dynamics are evaluated exactly four
    times, at ``t``, ``t + dt/2``, ``t + dt/2`` and ``t + dt``, each on the
    intermediate state built from the previous stage. Compatible with
    ``jax.jit`` and ``jax.vmap``.

    Args:
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t: Current time.
        state: Current state pytree.
        dt: Timestep to take. May be negative for backward integration.

    Returns:
        State pytree at ``t + dt``.

    Examples:
        ```python
        import jax.numpy as jnp
        from odejax.integrators import rk4_step
        def harmonic(t, x):
            return jnp.array([x[1], -x[0]])
        rk4_step(harmonic, 0.0, jnp.array([1.0, 0.0]), 0.01)
        # ~[cos(0.01), -sin(0.01)]
        ```
    """
    dtype = get_dtype()
    t = jnp.asarray(t, dtype=dtype)
    state = tree_cast(state, dtype)
    dt = jnp.asarray(dt, dtype=dtype)

    def f(ti, xi):
        return tree_cast(dynamics(ti, xi), dtype)

    k1 = f(t, state)
    k2 = f(t + 0.5 * dt, tree_lincomb(state, dt, (0.5,), (k1,)))
    k3 = f(t + 0.5 * dt, tree_lincomb(state, dt, (0.5,), (k2,)))
    k4 = f(t + dt, tree_lincomb(state, dt, (1.0,), (k3,)))

    return tree_lincomb(
        state, dt, (1.0 / 6.0, 1.0 / 3.0, 1.0 / 3.0, 1.0 / 6.0), (k1, k2, k3, k4)
    )


@dataclass(frozen=True)
class RK4(FirstOrderReduction):
    """Classic Runge-Kutta 4 as an :class:`~odejax.integrators.Integrator`.

    Carries no scratch between steps. Also usable as a
    :class:`~odejax.integrators.VelIntegrator` by integrating the
    ``(position, velocity)`` pair.

    Examples:
        ```python
        from odejax.integrators import RK4
        rk4 = RK4()
        x, t, dt = 1.0, 0.0, 0.1
        scratch = rk4.init(x, t)
        for _ in range(10):
            x, scratch = rk4.step(x, t, dt, lambda t, x: -x, scratch)
            t += dt
        ```
    """

    order: ClassVar[int] = 4

    def init(self, state: PyTree, t: ArrayLike) -> tuple:
        return ()

    def step(
        self,
        state: PyTree,
        t: ArrayLike,
        dt: ArrayLike,
        dynamics: Callable[[Array, Any], Any],
        scratch: tuple,
    ) -> IntegratorStep:
        return IntegratorStep(state=rk4_step(dynamics, t, state, dt), scratch=scratch)
