"""Capability protocols for single-step integrators.

Three capabilities are defined, each as a pair of methods:

- :class:`Integrator` -- ``init`` / ``step``: fixed-step integration of
  ``dx/dt = dynamics(t, x)``.
- :class:`VelIntegrator` -- ``init_with_vel`` / ``step_with_vel``:
  fixed-step integration of second-order systems with position and velocity
  kept as separate values.
- :class:`AdaptiveIntegrator` -- ``adaptive_init`` / ``adaptive_step``:
  error-controlled stepping that decides whether to accept a step and
  proposes the next step size.

Method names differ per capability so that one algorithm object may
implement several of them. None of them retains state between calls: every
piece of data an algorithm carries from one step to the next (its *scratch*)
is returned by ``init`` and must be passed back into each ``step`` by the
caller, alongside the state and time.

These protocols are generic over the state pytree ``S`` and the scratch
type ``C``. The array-only counterparts for dynamic dispatch live in
:mod:`odejax.integrators.erased`.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, TypeVar, runtime_checkable

from jax import Array
from jax.typing import ArrayLike

from odejax.integrators._types import AdaptiveStep, IntegratorStep, VelIntegratorStep

S = TypeVar("S")
C = TypeVar("C")


@runtime_checkable
class Integrator(Protocol[S, C]):
    """Fixed-step integration of ``dx/dt = dynamics(t, x)``."""

    def init(self, state: S, t: ArrayLike) -> C:
        """Return the scratch to pass into the first :meth:`step`."""
        ...

    def step(
        self,
        state: S,
        t: ArrayLike,
        dt: ArrayLike,
        dynamics: Callable[[Array, S], S],
        scratch: C,
    ) -> IntegratorStep:
        """Advance *state* from *t* to ``t + dt``.

        Args:
            state: Current state pytree.
            t: Current time.
            dt: Timestep.
            dynamics: ODE right-hand side ``f(t, x) -> dx/dt``.
            scratch: Scratch from :meth:`init` or the previous step.

        Returns:
            IntegratorStep: New state and scratch.
        """
        ...


@runtime_checkable
class VelIntegrator(Protocol[S, C]):
    """Fixed-step integration of ``d^2x/dt^2 = accel_fn(t, x, v)``.

    ``vel_fn(t, x, v)`` gives the rate of change of the position. For the
    usual mechanical system this is simply ``v``; it is a separate function
    so that callers who define the position rate in terms of state can
    reconcile it with the integrated velocity. The two functions must
    describe the same physical velocity, otherwise results are undefined.
    """

    def init_with_vel(
        self,
        state: S,
        velocity: S,
        t: ArrayLike,
        accel_fn: Callable[[Array, S, S], S] | None = None,
    ) -> C:
        """Return the scratch to pass into the first :meth:`step_with_vel`.

        Algorithms that carry the previous acceleration may use *accel_fn*,
        when given, to evaluate it at the initial point.
        """
        ...

    def step_with_vel(
        self,
        state: S,
        velocity: S,
        t: ArrayLike,
        dt: ArrayLike,
        accel_fn: Callable[[Array, S, S], S],
        vel_fn: Callable[[Array, S, S], S],
        scratch: C,
    ) -> VelIntegratorStep:
        """Advance position and velocity from *t* to ``t + dt``."""
        ...


@runtime_checkable
class AdaptiveIntegrator(Protocol[S, C]):
    """Error-controlled integration of ``dx/dt = dynamics(t, x)``.

    Each call makes one accept/reject decision. A rejected step returns the
    input state and time unchanged together with a smaller step proposal;
    detecting repeated rejections is up to the caller.
    """

    error_norm: str

    def adaptive_init(self, state: S, t: ArrayLike) -> C:
        """Return the scratch to pass into the first :meth:`adaptive_step`."""
        ...

    def adaptive_step(
        self,
        state: S,
        t: ArrayLike,
        dt_hint: ArrayLike,
        min_error: ArrayLike,
        dynamics: Callable[[Array, S], S],
        scratch: C,
    ) -> AdaptiveStep:
        """Attempt one step of size *dt_hint* with local error <= *min_error*.

        Args:
            state: Current state pytree.
            t: Current time.
            dt_hint: Step size to attempt, usually the previous ``dt_next``.
            min_error: Largest acceptable local error estimate.
            dynamics: ODE right-hand side ``f(t, x) -> dx/dt``.
            scratch: Scratch from :meth:`adaptive_init` or the previous call.

        Returns:
            AdaptiveStep: Decision, new values and next step proposal.
        """
        ...
