"""Second-order systems through a first-order integrator.

Any fixed-step :class:`~odejax.integrators._protocols.Integrator` can also
serve as a :class:`~odejax.integrators._protocols.VelIntegrator` by
integrating the pair ``(x, v)`` as a single pytree with derivative
``(vel_fn(t, x, v), accel_fn(t, x, v))``. The scratch is whatever the
underlying ``init`` returns for that pair.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from jax import Array
from jax.typing import ArrayLike

from odejax.integrators._types import VelIntegratorStep


class FirstOrderReduction:
    """Mixin adding ``init_with_vel`` / ``step_with_vel`` on top of ``init`` / ``step``."""

    def init_with_vel(
        self,
        state: Any,
        velocity: Any,
        t: ArrayLike,
        accel_fn: Callable[[Array, Any, Any], Any] | None = None,
    ) -> Any:
        # Stages are re-evaluated every step, so there is nothing to prime.
        return self.init((state, velocity), t)

    def step_with_vel(
        self,
        state: Any,
        velocity: Any,
        t: ArrayLike,
        dt: ArrayLike,
        accel_fn: Callable[[Array, Any, Any], Any],
        vel_fn: Callable[[Array, Any, Any], Any],
        scratch: Any,
    ) -> VelIntegratorStep:
        def phase_space(ti, y):
            x, v = y
            return (vel_fn(ti, x, v), accel_fn(ti, x, v))

        result = self.step((state, velocity), t, dt, phase_space, scratch)
        state_new, velocity_new = result.state
        return VelIntegratorStep(state=state_new, velocity=velocity_new, scratch=result.scratch)
