# /// script
# requires-python = ">=3.11"
# dependencies = ["typer>=0.9.0", "odejax"]
#
# [tool.uv.sources]
# odejax = { path = ".." }
# ///
"""Approximate pi from the Gaussian integral.

Integrates dy/dt = exp(-t^2) over [-L/2, L/2] with Euler and RK4; the
result approaches sqrt(pi), so its square approaches pi.

Usage:
    uv run examples/integral.py [OPTIONS]

Examples:
    uv run examples/integral.py --steps 1000 --length 100
"""

import math
from typing import Annotated

import jax.numpy as jnp
import typer

from odejax import RK4, Euler, propagate, set_dtype

set_dtype(jnp.float64)


def gaussian(t, y):
    return jnp.exp(-t * t)


def main(
    steps: Annotated[int, typer.Option(help="Number of steps")] = 1000,
    length: Annotated[float, typer.Option(help="Length of the integration interval")] = 100.0,
) -> None:
    """Print the Euler and RK4 estimates of pi."""
    dt = length / steps
    t0 = -length / 2.0
    for name, integrator in (("euler", Euler()), ("rk4", RK4())):
        result = propagate(integrator, gaussian, t0, 0.0, dt, steps)
        y = float(result.state)
        print(f"{name:>6}: y = {y:.15f}  y^2 = {y * y:.15f}")
    print(f"{'exact':>6}: sqrt(pi) = {math.sqrt(math.pi):.15f}  pi = {math.pi:.15f}")


if __name__ == "__main__":
    typer.run(main)
