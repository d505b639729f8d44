# /// script
# requires-python = ">=3.11"
# dependencies = ["typer>=0.9.0", "odejax"]
#
# [tool.uv.sources]
# odejax = { path = ".." }
# ///
"""Integrate the harmonic oscillator x'' = -x with Velocity Verlet.

Runs the whole trajectory under ``jax.lax.scan`` and reports the energy
error, which stays bounded for the symplectic Verlet step. Pass
``--compare`` to run RK4 through the same second-order interface.

Usage:
    uv run examples/harmonic_oscillator.py [OPTIONS]

Examples:
    uv run examples/harmonic_oscillator.py --dt 0.125 --steps 10000 --compare
"""

import time
from typing import Annotated

import jax.numpy as jnp
import typer

from odejax import RK4, VelocityVerlet, propagate_with_vel, set_dtype

set_dtype(jnp.float64)  # Must be before any JIT compilation


def spring(t, x, v):
    return -x


def velocity(t, x, v):
    return v


def energy(x, v):
    return 0.5 * (jnp.sum(v**2) + jnp.sum(x**2))


def main(
    dt: Annotated[float, typer.Option(help="Timestep")] = 0.125,
    steps: Annotated[int, typer.Option(help="Number of steps")] = 10_000,
    compare: Annotated[bool, typer.Option(help="Also run RK4")] = False,
) -> None:
    """Report the final state and energy error."""
    x0, v0 = jnp.array([1.0, 0.0]), jnp.array([0.0, 1.0])
    e0 = float(energy(x0, v0))

    methods = [("velocity verlet", VelocityVerlet())]
    if compare:
        methods.append(("rk4", RK4()))

    for name, integrator in methods:
        t0 = time.perf_counter()
        result = propagate_with_vel(integrator, spring, velocity, 0.0, x0, v0, dt, steps)
        result.state.block_until_ready()
        elapsed = time.perf_counter() - t0

        drift = float(energy(result.state, result.velocity)) - e0
        print(f"{name}:")
        print(f"  t = {float(result.time):.3f}")
        print(f"  x = {result.state}, v = {result.velocity}")
        print(f"  energy error = {drift:+.3e}")
        print(f"  elapsed {elapsed:.2f}s")


if __name__ == "__main__":
    typer.run(main)
