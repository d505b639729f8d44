"""Explicit (forward) Euler integrator.

The simplest one-stage explicit method:

.. math::

    x_{n+1} = x_n + h \\, f(t_n, x_n)

Local truncation error is :math:`O(h^2)` and global error :math:`O(h)`.
For the linear test equation ``dx/dt = k x`` the result after ``n`` steps
is exactly ``x0 * (1 + k h)^n`` up to rounding.
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
from odejax.integrators._tree import PyTree, tree_axpy, tree_cast
from odejax.integrators._types import IntegratorStep


def euler_step(
    dynamics: Callable[[Array, Any], Any],
    t: ArrayLike,
    state: PyTree,
    dt: ArrayLike,
) -> PyTree:
    """Perform a single explicit Euler step.

    Evaluates the dynamics once, at ``(t, state)``.

    Args:
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t: Current time.
        state: Current state pytree.
        dt: Timestep to take. May be negative for backward integration.

    Returns:
        State pytree at ``t + dt``.
    """
    dtype = get_dtype()
    t = jnp.asarray(t, dtype=dtype)
    state = tree_cast(state, dtype)
    dt = jnp.asarray(dt, dtype=dtype)
    return tree_axpy(dt, tree_cast(dynamics(t, state), dtype), state)


@dataclass(frozen=True)
class Euler(FirstOrderReduction):
    """Explicit Euler as an :class:`~odejax.integrators.Integrator`.

    Carries no scratch between steps.
    """

    order: ClassVar[int] = 1

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
        return IntegratorStep(state=euler_step(dynamics, t, state, dt), scratch=scratch)
