"""Caller-side integration loops.

The integrators only ever take one step. This module provides the loops a
caller would otherwise write around them:

- :func:`propagate` -- ``n_steps`` fixed steps of an ``Integrator`` via
  ``jax.lax.scan``.
- :func:`propagate_with_vel` -- the same for a ``VelIntegrator``.
- :func:`propagate_adaptive` -- drives an ``AdaptiveIntegrator`` from
  ``t0`` to exactly ``t_end``, and turns repeated step rejections into a
  ``RuntimeError``.

Only the final state is returned; trajectories are not stored.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, NamedTuple

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odejax.config import get_dtype, get_error_floor
from odejax.integrators._protocols import AdaptiveIntegrator, Integrator, VelIntegrator
from odejax.integrators._tree import PyTree, tree_cast

logger = logging.getLogger(__name__)


class Propagation(NamedTuple):
    """Final values of a fixed-step run.

    Attributes:
        state: State at ``time``.
        time: ``t0 + n_steps * dt``.
        scratch: Scratch after the last step, usable to continue the run.
    """

    state: Any
    time: Array
    scratch: Any


class VelPropagation(NamedTuple):
    """Final values of a fixed-step second-order run.

    Attributes:
        state: Position at ``time``.
        velocity: Velocity at ``time``.
        time: ``t0 + n_steps * dt``.
        scratch: Scratch after the last step.
    """

    state: Any
    velocity: Any
    time: Array
    scratch: Any


class AdaptivePropagation(NamedTuple):
    """Final values of an adaptive run.

    Attributes:
        state: State at ``time``.
        time: Equal to the requested ``t_end``.
        dt_next: Last step-size proposal, usable as the next hint.
        scratch: Scratch after the last call.
        n_accepted: Number of accepted steps.
        n_rejected: Number of rejected attempts.
    """

    state: Any
    time: Array
    dt_next: Array
    scratch: Any
    n_accepted: int
    n_rejected: int


def propagate(
    integrator: Integrator,
    dynamics: Callable[[Array, Any], Any],
    t0: ArrayLike,
    state: PyTree,
    dt: ArrayLike,
    n_steps: int,
) -> Propagation:
    """Take *n_steps* fixed steps of size *dt* from ``(t0, state)``.

    Args:
        integrator: Any fixed-step ``Integrator``.
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t0: Initial time.
        state: Initial state pytree.
        dt: Timestep.
        n_steps: Number of steps (static).

    Returns:
        Propagation: Final state, time and scratch.
    """
    dtype = get_dtype()
    t0 = jnp.asarray(t0, dtype=dtype)
    dt = jnp.asarray(dt, dtype=dtype)
    state = tree_cast(state, dtype)

    def body(carry, _):
        x, t, scratch = carry
        result = integrator.step(x, t, dt, dynamics, scratch)
        return (result.state, t + dt, result.scratch), None

    carry = (state, t0, integrator.init(state, t0))
    (state, t, scratch), _ = jax.lax.scan(body, carry, None, length=n_steps)
    return Propagation(state=state, time=t, scratch=scratch)


def propagate_with_vel(
    integrator: VelIntegrator,
    accel_fn: Callable[[Array, Any, Any], Any],
    vel_fn: Callable[[Array, Any, Any], Any],
    t0: ArrayLike,
    state: PyTree,
    velocity: PyTree,
    dt: ArrayLike,
    n_steps: int,
) -> VelPropagation:
    """Take *n_steps* fixed second-order steps of size *dt*.

    The scratch is initialised with ``init_with_vel(..., accel_fn=accel_fn)``
    so that integrators carrying the previous acceleration start from the
    true initial acceleration.

    Args:
        integrator: Any ``VelIntegrator``.
        accel_fn: Acceleration ``a(t, x, v)``.
        vel_fn: Position rate ``u(t, x, v)``.
        t0: Initial time.
        state: Initial position pytree.
        velocity: Initial velocity pytree.
        dt: Timestep.
        n_steps: Number of steps (static).

    Returns:
        VelPropagation: Final position, velocity, time and scratch.
    """
    dtype = get_dtype()
    t0 = jnp.asarray(t0, dtype=dtype)
    dt = jnp.asarray(dt, dtype=dtype)
    state = tree_cast(state, dtype)
    velocity = tree_cast(velocity, dtype)

    def body(carry, _):
        x, v, t, scratch = carry
        result = integrator.step_with_vel(x, v, t, dt, accel_fn, vel_fn, scratch)
        return (result.state, result.velocity, t + dt, result.scratch), None

    scratch = integrator.init_with_vel(state, velocity, t0, accel_fn=accel_fn)
    (state, velocity, t, scratch), _ = jax.lax.scan(
        body, (state, velocity, t0, scratch), None, length=n_steps
    )
    return VelPropagation(state=state, velocity=velocity, time=t, scratch=scratch)


def propagate_adaptive(
    integrator: AdaptiveIntegrator,
    dynamics: Callable[[Array, Any], Any],
    t0: float,
    state: PyTree,
    t_end: float,
    dt0: float,
    min_error: float,
    max_rejections: int = 25,
    max_steps: int = 100_000,
) -> AdaptivePropagation:
    """Integrate from *t0* to *t_end* with error control.

    Runs a Python loop around a jitted ``adaptive_step``: the step size is
    the integrator's own proposal, clamped so the final step lands on
    *t_end*. Rejected attempts are retried with the proposed smaller step.

    Args:
        integrator: Any ``AdaptiveIntegrator``.
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t0: Initial time.
        state: Initial state pytree.
        t_end: Final time. May be smaller than *t0* for backward
            integration.
        dt0: Initial step-size hint. Must point from *t0* towards *t_end*.
        min_error: Largest acceptable local error per step.
        max_rejections: Consecutive rejections tolerated before giving up.
        max_steps: Accepted steps tolerated before giving up.

    Returns:
        AdaptivePropagation: Final state and run statistics.

    Raises:
        ValueError: If *dt0* is zero or points away from *t_end*.
        RuntimeError: If the step is rejected more than *max_rejections*
            times in a row, if an accepted step does not change the time
            (step size underflow), or if *t_end* is not reached within
            *max_steps* accepted steps.
    """
    dtype = get_dtype()
    direction = 1.0 if t_end >= t0 else -1.0
    if dt0 == 0.0 or (t_end != t0 and dt0 * direction < 0.0):
        raise ValueError(f"dt0={dt0} must be nonzero and point from t0={t0} towards t_end={t_end}")
    if min_error < get_error_floor():
        logger.warning(
            "min_error=%g is below the %s error floor %g; steps may never be accepted",
            min_error,
            jnp.dtype(dtype).name,
            get_error_floor(),
        )

    attempt = jax.jit(
        lambda x, ti, hi, scratch: integrator.adaptive_step(x, ti, hi, min_error, dynamics, scratch)
    )

    state = tree_cast(state, dtype)
    t = jnp.asarray(t0, dtype=dtype)
    t_end_arr = jnp.asarray(t_end, dtype=dtype)
    h = jnp.asarray(dt0, dtype=dtype)
    scratch = integrator.adaptive_init(state, t)

    n_accepted = 0
    n_rejected = 0
    consecutive = 0

    while float((t_end_arr - t) * direction) > 0.0:
        if n_accepted >= max_steps:
            logger.warning("Adaptive propagation stopped at t=%g after %d steps", float(t), n_accepted)
            raise RuntimeError(
                f"Adaptive propagation did not reach t_end={t_end} within {max_steps} steps"
            )

        remaining = t_end_arr - t
        last = bool(jnp.abs(h) >= jnp.abs(remaining))
        h_try = remaining if last else h

        result = attempt(state, t, h_try, scratch)
        scratch = result.scratch

        if not bool(result.error <= min_error):
            n_rejected += 1
            consecutive += 1
            logger.debug(
                "Rejected step at t=%g with dt=%g (error %g > %g)",
                float(t),
                float(h_try),
                float(result.error),
                min_error,
            )
            if consecutive > max_rejections:
                logger.warning(
                    "Giving up at t=%g after %d consecutive rejections (dt=%g)",
                    float(t),
                    consecutive,
                    float(result.dt_next),
                )
                raise RuntimeError(
                    f"Adaptive step rejected {consecutive} times in a row at t={float(t)}; "
                    f"last error {float(result.error)} with dt={float(h_try)}"
                )
            h = result.dt_next
            continue

        # The integrator may have shortened the attempt to its max_step
        reached_end = last and bool(result.time == t + h_try)
        if not reached_end and bool(result.time == t):
            logger.warning(
                "Step size underflow at t=%g: dt=%g does not change the time", float(t), float(h_try)
            )
            raise RuntimeError(
                f"Adaptive step size underflow at t={float(t)}: accepted dt={float(h_try)} "
                f"does not advance the time"
            )

        consecutive = 0
        n_accepted += 1
        state = result.state
        t = t_end_arr if reached_end else result.time
        # A short final step should not shrink the hint handed back to the caller
        h = jnp.maximum(jnp.abs(result.dt_next), jnp.abs(h)) * direction if reached_end else result.dt_next

    logger.debug(
        "Adaptive propagation reached t=%g: %d accepted, %d rejected",
        float(t),
        n_accepted,
        n_rejected,
    )
    return AdaptivePropagation(
        state=state,
        time=t,
        dt_next=h,
        scratch=scratch,
        n_accepted=n_accepted,
        n_rejected=n_rejected,
    )
