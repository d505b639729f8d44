"""Type definitions for numerical integrators.

Provides the core data types shared by all integrator implementations:

- :class:`IntegratorStep`: Output of a fixed-step ``step`` call.
- :class:`VelIntegratorStep`: Output of a ``step_with_vel`` call.
- :class:`AdaptiveStep`: Output of an ``adaptive_step`` call, carrying the
  accept/reject decision as the returned time and the next step-size
  proposal.
- :class:`AdaptiveConfig`: Step-size controller settings held by adaptive
  integrator instances.

All types are :class:`~typing.NamedTuple` instances, which JAX treats as
pytrees automatically. This means they work seamlessly with ``jax.jit``,
``jax.vmap``, and ``jax.lax`` control flow primitives.
"""

from __future__ import annotations

from typing import Any, NamedTuple

from jax import Array


class IntegratorStep(NamedTuple):
    """Result of a single fixed-step integrator call.

    Attributes:
        state: State at ``t + dt``, same pytree structure as the input state.
        scratch: Algorithm scratch to pass into the next ``step`` call.
    """

    state: Any
    scratch: Any


class VelIntegratorStep(NamedTuple):
    """Result of a single ``step_with_vel`` call.

    Attributes:
        state: Position at ``t + dt``.
        velocity: Velocity at ``t + dt``.
        scratch: Algorithm scratch to pass into the next ``step_with_vel``
            call.
    """

    state: Any
    velocity: Any
    scratch: Any


class AdaptiveStep(NamedTuple):
    """Result of a single adaptive step attempt.

    An accepted step advances ``time`` by the requested step size, shortened
    to the controller's ``max_step`` if it was larger; a rejected step
    returns ``state`` and ``time`` unchanged. Either way the caller stores
    ``dt_next`` and passes it back as the next hint.

    Attributes:
        state: New state if accepted, otherwise the input state.
        time: ``t + dt`` if accepted, otherwise ``t``, where ``dt`` is
            ``dt_hint`` clamped to ``max_step``.
        dt_next: Proposed step size for the next call. Non-decreasing
            after an acceptance (never smaller than the step taken, equal
            to it when the error is close to ``min_error``); strictly
            smaller after a rejection unless held at ``min_step``.
        error: Estimated local error of the attempt (max absolute
            difference between the embedded solutions).
        scratch: Algorithm scratch to pass into the next call.
    """

    state: Any
    time: Array
    dt_next: Array
    error: Array
    scratch: Any


class AdaptiveConfig(NamedTuple):
    """Configuration for adaptive step-size control.

    Held by adaptive integrator instances, so the controller is a fixed
    property of the instance rather than a per-call argument. The error
    tolerance itself is passed with every call as ``min_error``.

    Attributes:
        safety_factor: Multiplicative safety factor applied to step-size
            predictions. Values < 1.0 produce conservative step sizes.
        min_scale_factor: Smallest allowed ratio ``dt_next / dt`` after a
            rejection.
        max_scale_factor: Largest allowed ratio ``dt_next / dt`` after an
            acceptance.
        shrink_factor: Largest allowed ratio ``dt_next / dt`` after a
            rejection. A rejected step always shrinks at least this much.
        min_step: Absolute minimum proposed step size. Rejections never
            propose below this floor.
        max_step: Absolute maximum step size, both attempted and proposed.
    """

    safety_factor: float = 0.9
    min_scale_factor: float = 0.2
    max_scale_factor: float = 2.0
    shrink_factor: float = 0.5
    min_step: float = 1e-12
    max_step: float = float("inf")
