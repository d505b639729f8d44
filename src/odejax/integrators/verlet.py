"""Velocity Verlet integrator for second-order systems.

Integrates ``d^2x/dt^2 = a(t, x, v)`` with position and velocity kept as
separate pytrees, using the kick-drift-kick form:

.. math::

    v_{1/2} &= v_n + \\tfrac{h}{2} a_n \\\\
    x_{n+1} &= x_n + h \\, u(t_n + \\tfrac{h}{2}, x_n, v_{1/2}) \\\\
    a_{n+1} &= a(t_n + h, x_{n+1}, v_{1/2}) \\\\
    v_{n+1} &= v_{1/2} + \\tfrac{h}{2} a_{n+1}

where ``u = vel_fn`` gives the position rate (``u(t, x, v) = v`` for an
ordinary mechanical system). The method is second order and symplectic:
for conservative forces the energy error stays bounded over long runs
instead of drifting.

The acceleration at the end of one step is the acceleration at the start
of the next, so it is carried in the scratch and each step costs a single
``accel_fn`` evaluation. Velocity-dependent accelerations are evaluated at
the half-step velocity.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odejax.config import get_dtype
from odejax.integrators._tree import PyTree, tree_axpy, tree_cast, tree_zeros_like
from odejax.integrators._types import VelIntegratorStep


def velocity_verlet_step(
    accel_fn: Callable[[Array, Any, Any], Any],
    vel_fn: Callable[[Array, Any, Any], Any],
    t: ArrayLike,
    state: PyTree,
    velocity: PyTree,
    dt: ArrayLike,
    acceleration: PyTree,
) -> tuple[PyTree, PyTree, PyTree]:
    """Perform a single Velocity Verlet step.

    Args:
        accel_fn: Acceleration ``a(t, x, v)``.
        vel_fn: Position rate ``u(t, x, v)``, normally returning ``v``.
        t: Current time.
        state: Current position pytree.
        velocity: Current velocity pytree.
        dt: Timestep to take.
        acceleration: Acceleration at ``(t, state, velocity)``, i.e. the
            last acceleration returned by this function.

    Returns:
        Tuple ``(state, velocity, acceleration)`` at ``t + dt``.
    """
    dtype = get_dtype()
    t = jnp.asarray(t, dtype=dtype)
    dt = jnp.asarray(dt, dtype=dtype)
    state = tree_cast(state, dtype)
    velocity = tree_cast(velocity, dtype)
    acceleration = tree_cast(acceleration, dtype)

    half_dt = 0.5 * dt
    velocity_half = tree_axpy(half_dt, acceleration, velocity)
    rate = tree_cast(vel_fn(t + half_dt, state, velocity_half), dtype)
    state_new = tree_axpy(dt, rate, state)
    acceleration_new = tree_cast(accel_fn(t + dt, state_new, velocity_half), dtype)
    velocity_new = tree_axpy(half_dt, acceleration_new, velocity_half)

    return state_new, velocity_new, acceleration_new


@dataclass(frozen=True)
class VelocityVerlet:
    """Velocity Verlet as a :class:`~odejax.integrators.VelIntegrator`.

    Scratch is the acceleration at the start of the next step. Without an
    ``accel_fn``, :meth:`init_with_vel` returns zeros, so the first half
    kick is skipped; pass ``accel_fn`` to start from the true initial
    acceleration.

    Examples:
        ```python
        from odejax.integrators import VelocityVerlet
        vv = VelocityVerlet()
        accel = lambda t, x, v: -x
        vel = lambda t, x, v: v
        x, v, t, dt = 1.0, 0.0, 0.0, 0.1
        scratch = vv.init_with_vel(x, v, t, accel_fn=accel)
        for _ in range(100):
            x, v, scratch = vv.step_with_vel(x, v, t, dt, accel, vel, scratch)
            t += dt
        ```
    """

    order: ClassVar[int] = 2

    def init_with_vel(
        self,
        state: PyTree,
        velocity: PyTree,
        t: ArrayLike,
        accel_fn: Callable[[Array, Any, Any], Any] | None = None,
    ) -> PyTree:
        dtype = get_dtype()
        velocity = tree_cast(velocity, dtype)
        if accel_fn is None:
            return tree_zeros_like(velocity)
        return tree_cast(
            accel_fn(jnp.asarray(t, dtype=dtype), tree_cast(state, dtype), velocity), dtype
        )

    def step_with_vel(
        self,
        state: PyTree,
        velocity: PyTree,
        t: ArrayLike,
        dt: ArrayLike,
        accel_fn: Callable[[Array, Any, Any], Any],
        vel_fn: Callable[[Array, Any, Any], Any],
        scratch: PyTree,
    ) -> VelIntegratorStep:
        state_new, velocity_new, acceleration = velocity_verlet_step(
            accel_fn, vel_fn, t, state, velocity, dt, scratch
        )
        return VelIntegratorStep(state=state_new, velocity=velocity_new, scratch=acceleration)
