"""
odejax is a small library of single-step ODE integrators implemented in JAX.
"""

from .config import set_dtype, get_dtype

from .integrators import (
    Integrator,
    VelIntegrator,
    AdaptiveIntegrator,
    AdaptiveConfig,
    AdaptiveStep,
    IntegratorStep,
    VelIntegratorStep,
    Euler,
    euler_step,
    RK4,
    rk4_step,
    VelocityVerlet,
    velocity_verlet_step,
    DormandPrince54,
    dp54_step,
    ButcherTableau,
    RungeKutta,
    EmbeddedRungeKutta,
    tableaus,
)

from .integrators.erased import (
    ArrayIntegrator,
    ArrayVelIntegrator,
    ArrayAdaptiveIntegrator,
    erase_integrator,
    erase_vel_integrator,
    erase_adaptive_integrator,
)

from .propagation import (
    propagate,
    propagate_with_vel,
    propagate_adaptive,
)

__all__ = [
    # Config
    "set_dtype",
    "get_dtype",
    # Capabilities
    "Integrator",
    "VelIntegrator",
    "AdaptiveIntegrator",
    # Types
    "AdaptiveConfig",
    "AdaptiveStep",
    "IntegratorStep",
    "VelIntegratorStep",
    # Integrators
    "Euler",
    "euler_step",
    "RK4",
    "rk4_step",
    "VelocityVerlet",
    "velocity_verlet_step",
    "DormandPrince54",
    "dp54_step",
    "ButcherTableau",
    "RungeKutta",
    "EmbeddedRungeKutta",
    "tableaus",
    # Erased handles
    "ArrayIntegrator",
    "ArrayVelIntegrator",
    "ArrayAdaptiveIntegrator",
    "erase_integrator",
    "erase_vel_integrator",
    "erase_adaptive_integrator",
    # Propagation
    "propagate",
    "propagate_with_vel",
    "propagate_adaptive",
]
