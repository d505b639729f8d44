"""Array-only counterparts of the integrator capabilities.

The protocols in :mod:`odejax.integrators._protocols` are generic: state
may be any pytree, each algorithm has its own scratch type, and the callers'
functions are typed against that state. That is what a caller wants when
the algorithm is chosen statically, but it prevents keeping different
algorithms side by side behind one handle.

This module fixes a single concrete signature per capability:

- state and velocity are 1-D ``jax.Array``\\ s of the configured dtype,
- dynamics are ``Callable[[Array, Array], Array]`` and second-order fields
  ``Callable[[Array, Array, Array], Array]``,
- scratch is a flat ``tuple[Array, ...]``.

:class:`ArrayIntegrator`, :class:`ArrayVelIntegrator` and
:class:`ArrayAdaptiveIntegrator` are the abstract handles; the ``Erased*``
adapters wrap any generic algorithm into them. The wrapped algorithm's
scratch structure is recovered with ``jax.eval_shape`` on its ``init``, so
the adapters stay as stateless as the algorithms they wrap.

Examples:
    ```python
    from odejax.integrators import RK4, Euler, RungeKutta, tableaus
    from odejax.integrators.erased import erase_integrator
    methods = [erase_integrator(m) for m in (Euler(), RK4(), RungeKutta(tableaus.RALSTON))]
    for method in methods:
        scratch = method.init(x0, 0.0)
        x1, scratch = method.step(x0, 0.0, 0.1, dynamics, scratch)
    ```
"""

from __future__ import annotations

import abc
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odejax.config import get_dtype
from odejax.integrators._protocols import AdaptiveIntegrator, Integrator, VelIntegrator
from odejax.integrators._types import AdaptiveStep, IntegratorStep, VelIntegratorStep

ArrayDynamics = Callable[[Array, Array], Array]
ArrayField = Callable[[Array, Array, Array], Array]
ArrayScratch = tuple[Array, ...]


def _as_vector(x: ArrayLike) -> Array:
    return jnp.ravel(jnp.asarray(x, dtype=get_dtype()))


def _erase_dynamics(dynamics: ArrayDynamics) -> ArrayDynamics:
    def erased(t, x):
        return _as_vector(dynamics(t, x))

    return erased


def _erase_field(fn: ArrayField) -> ArrayField:
    def erased(t, x, v):
        return _as_vector(fn(t, x, v))

    return erased


def _flatten_scratch(scratch: Any) -> ArrayScratch:
    return tuple(jax.tree_util.tree_leaves(scratch))


def _unflatten_scratch(init: Callable[..., Any], args: tuple, scratch: ArrayScratch) -> Any:
    treedef = jax.tree_util.tree_structure(jax.eval_shape(init, *args))
    if treedef.num_leaves != len(scratch):
        raise ValueError(
            f"Scratch has {len(scratch)} arrays but this integrator expects {treedef.num_leaves}"
        )
    return jax.tree_util.tree_unflatten(treedef, scratch)


# ──────────────────────────────────────────────
# Abstract handles
# ──────────────────────────────────────────────


class ArrayIntegrator(abc.ABC):
    """Fixed-step integrator over 1-D arrays."""

    @abc.abstractmethod
    def init(self, state: ArrayLike, t: ArrayLike) -> ArrayScratch: ...

    @abc.abstractmethod
    def step(
        self,
        state: ArrayLike,
        t: ArrayLike,
        dt: ArrayLike,
        dynamics: ArrayDynamics,
        scratch: ArrayScratch,
    ) -> IntegratorStep: ...


class ArrayVelIntegrator(abc.ABC):
    """Second-order fixed-step integrator over 1-D arrays."""

    @abc.abstractmethod
    def init_with_vel(
        self,
        state: ArrayLike,
        velocity: ArrayLike,
        t: ArrayLike,
        accel_fn: ArrayField | None = None,
    ) -> ArrayScratch: ...

    @abc.abstractmethod
    def step_with_vel(
        self,
        state: ArrayLike,
        velocity: ArrayLike,
        t: ArrayLike,
        dt: ArrayLike,
        accel_fn: ArrayField,
        vel_fn: ArrayField,
        scratch: ArrayScratch,
    ) -> VelIntegratorStep: ...


class ArrayAdaptiveIntegrator(abc.ABC):
    """Error-controlled integrator over 1-D arrays."""

    error_norm: str

    @abc.abstractmethod
    def adaptive_init(self, state: ArrayLike, t: ArrayLike) -> ArrayScratch: ...

    @abc.abstractmethod
    def adaptive_step(
        self,
        state: ArrayLike,
        t: ArrayLike,
        dt_hint: ArrayLike,
        min_error: ArrayLike,
        dynamics: ArrayDynamics,
        scratch: ArrayScratch,
    ) -> AdaptiveStep: ...


# ──────────────────────────────────────────────
# Adapters
# ──────────────────────────────────────────────


@dataclass(frozen=True)
class ErasedIntegrator(ArrayIntegrator):
    """Wraps a generic :class:`~odejax.integrators.Integrator`."""

    integrator: Integrator

    def init(self, state: ArrayLike, t: ArrayLike) -> ArrayScratch:
        return _flatten_scratch(self.integrator.init(_as_vector(state), t))

    def step(
        self,
        state: ArrayLike,
        t: ArrayLike,
        dt: ArrayLike,
        dynamics: ArrayDynamics,
        scratch: ArrayScratch,
    ) -> IntegratorStep:
        state = _as_vector(state)
        inner = _unflatten_scratch(self.integrator.init, (state, t), scratch)
        result = self.integrator.step(state, t, dt, _erase_dynamics(dynamics), inner)
        return IntegratorStep(state=_as_vector(result.state), scratch=_flatten_scratch(result.scratch))


@dataclass(frozen=True)
class ErasedVelIntegrator(ArrayVelIntegrator):
    """Wraps a generic :class:`~odejax.integrators.VelIntegrator`."""

    integrator: VelIntegrator

    def init_with_vel(
        self,
        state: ArrayLike,
        velocity: ArrayLike,
        t: ArrayLike,
        accel_fn: ArrayField | None = None,
    ) -> ArrayScratch:
        if accel_fn is not None:
            accel_fn = _erase_field(accel_fn)
        scratch = self.integrator.init_with_vel(
            _as_vector(state), _as_vector(velocity), t, accel_fn=accel_fn
        )
        return _flatten_scratch(scratch)

    def step_with_vel(
        self,
        state: ArrayLike,
        velocity: ArrayLike,
        t: ArrayLike,
        dt: ArrayLike,
        accel_fn: ArrayField,
        vel_fn: ArrayField,
        scratch: ArrayScratch,
    ) -> VelIntegratorStep:
        state = _as_vector(state)
        velocity = _as_vector(velocity)
        inner = _unflatten_scratch(self.integrator.init_with_vel, (state, velocity, t), scratch)
        result = self.integrator.step_with_vel(
            state, velocity, t, dt, _erase_field(accel_fn), _erase_field(vel_fn), inner
        )
        return VelIntegratorStep(
            state=_as_vector(result.state),
            velocity=_as_vector(result.velocity),
            scratch=_flatten_scratch(result.scratch),
        )


@dataclass(frozen=True)
class ErasedAdaptiveIntegrator(ArrayAdaptiveIntegrator):
    """Wraps a generic :class:`~odejax.integrators.AdaptiveIntegrator`."""

    integrator: AdaptiveIntegrator

    @property
    def error_norm(self) -> str:
        return self.integrator.error_norm

    def adaptive_init(self, state: ArrayLike, t: ArrayLike) -> ArrayScratch:
        return _flatten_scratch(self.integrator.adaptive_init(_as_vector(state), t))

    def adaptive_step(
        self,
        state: ArrayLike,
        t: ArrayLike,
        dt_hint: ArrayLike,
        min_error: ArrayLike,
        dynamics: ArrayDynamics,
        scratch: ArrayScratch,
    ) -> AdaptiveStep:
        state = _as_vector(state)
        inner = _unflatten_scratch(self.integrator.adaptive_init, (state, t), scratch)
        result = self.integrator.adaptive_step(
            state, t, dt_hint, min_error, _erase_dynamics(dynamics), inner
        )
        return result._replace(
            state=_as_vector(result.state), scratch=_flatten_scratch(result.scratch)
        )


# ──────────────────────────────────────────────
# Constructors
# ──────────────────────────────────────────────


def erase_integrator(integrator: Integrator) -> ArrayIntegrator:
    """Wrap *integrator* behind the array-only :class:`ArrayIntegrator` handle.

    Raises:
        TypeError: If *integrator* does not implement ``init`` / ``step``.
    """
    if not isinstance(integrator, Integrator):
        raise TypeError(f"{type(integrator).__name__} does not implement Integrator")
    return ErasedIntegrator(integrator)


def erase_vel_integrator(integrator: VelIntegrator) -> ArrayVelIntegrator:
    """Wrap *integrator* behind the array-only :class:`ArrayVelIntegrator` handle.

    Raises:
        TypeError: If *integrator* does not implement ``init_with_vel`` /
            ``step_with_vel``.
    """
    if not isinstance(integrator, VelIntegrator):
        raise TypeError(f"{type(integrator).__name__} does not implement VelIntegrator")
    return ErasedVelIntegrator(integrator)


def erase_adaptive_integrator(integrator: AdaptiveIntegrator) -> ArrayAdaptiveIntegrator:
    """Wrap *integrator* behind the array-only :class:`ArrayAdaptiveIntegrator` handle.

    Raises:
        TypeError: If *integrator* does not implement ``adaptive_init`` /
            ``adaptive_step``.
    """
    if not isinstance(integrator, AdaptiveIntegrator):
        raise TypeError(f"{type(integrator).__name__} does not implement AdaptiveIntegrator")
    return ErasedAdaptiveIntegrator(integrator)
