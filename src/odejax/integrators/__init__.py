"""Single-step numerical ODE integrators.

Provides three capability contracts and the algorithms that implement them,
all written in JAX for compatibility with ``jax.jit``, ``jax.vmap`` and
``jax.lax.scan``. State may be any pytree of floating arrays.

Capabilities:

- :class:`Integrator` -- ``init(state, t)`` / ``step(state, t, dt, dynamics, scratch)``
- :class:`VelIntegrator` -- ``init_with_vel`` / ``step_with_vel`` for
  second-order systems with separate position and velocity
- :class:`AdaptiveIntegrator` -- ``adaptive_init`` / ``adaptive_step``
  with one accept/reject decision per call

Available integrators:

- :class:`Euler` / :func:`euler_step` -- explicit Euler (fixed step)
- :class:`RK4` / :func:`rk4_step` -- Classic 4th-order Runge-Kutta (fixed step)
- :class:`VelocityVerlet` / :func:`velocity_verlet_step` -- symplectic
  second-order stepping
- :class:`DormandPrince54` / :func:`dp54_step` -- Dormand-Prince 5(4)
  (adaptive step, FSAL scratch)
- :class:`RungeKutta` / :class:`EmbeddedRungeKutta` -- any explicit
  tableau from :mod:`odejax.integrators.tableaus`

No integrator keeps state between calls. Whatever an algorithm needs from
one step to the next is returned as *scratch* and passed back in by the
caller::

    scratch = integrator.init(state, t)
    for _ in range(n):
        state, scratch = integrator.step(state, t, dt, dynamics, scratch)
        t = t + dt

Array-only handles for dynamic dispatch are in
:mod:`odejax.integrators.erased`.
"""

from odejax.integrators._protocols import AdaptiveIntegrator, Integrator, VelIntegrator
from odejax.integrators._types import (
    AdaptiveConfig,
    AdaptiveStep,
    IntegratorStep,
    VelIntegratorStep,
)
from odejax.integrators.dp54 import DormandPrince54, DP54Scratch, dp54_step
from odejax.integrators.euler import Euler, euler_step
from odejax.integrators.rk4 import RK4, rk4_step
from odejax.integrators.runge_kutta import (
    ButcherTableau,
    EmbeddedRungeKutta,
    RungeKutta,
    runge_kutta_step,
)
from odejax.integrators.verlet import VelocityVerlet, velocity_verlet_step
from odejax.integrators import tableaus

__all__ = [
    "Integrator",
    "VelIntegrator",
    "AdaptiveIntegrator",
    "AdaptiveConfig",
    "AdaptiveStep",
    "IntegratorStep",
    "VelIntegratorStep",
    "Euler",
    "euler_step",
    "RK4",
    "rk4_step",
    "VelocityVerlet",
    "velocity_verlet_step",
    "DormandPrince54",
    "DP54Scratch",
    "dp54_step",
    "ButcherTableau",
    "RungeKutta",
    "EmbeddedRungeKutta",
    "runge_kutta_step",
    "tableaus",
]
