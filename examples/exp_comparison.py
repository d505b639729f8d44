# /// script
# requires-python = ">=3.11"
# dependencies = ["typer>=0.9.0", "odejax"]
#
# [tool.uv.sources]
# odejax = { path = ".." }
# ///
"""Compare explicit Euler and RK4 on dx/dt = x.

Steps both integrators side by side from x(0) = 1 and prints each value
next to the exact solution exp(t).

Usage:
    uv run examples/exp_comparison.py [OPTIONS]

Examples:
    uv run examples/exp_comparison.py --dt 0.125 --steps 100
"""

import math
from typing import Annotated

import jax.numpy as jnp
import typer

from odejax import RK4, Euler, set_dtype

set_dtype(jnp.float64)


def growth(t, x):
    return x


def main(
    dt: Annotated[float, typer.Option(help="Timestep")] = 0.125,
    steps: Annotated[int, typer.Option(help="Number of steps")] = 100,
) -> None:
    """Print Euler, RK4 and exp(t) at every step."""
    euler, rk4 = Euler(), RK4()
    t = 0.0
    x_euler, x_rk4 = 1.0, 1.0
    s_euler, s_rk4 = euler.init(x_euler, t), rk4.init(x_rk4, t)

    print(f"{'t':>8} {'euler':>14} {'rk4':>14} {'exp(t)':>14}")
    for _ in range(steps):
        x_euler, s_euler = euler.step(x_euler, t, dt, growth, s_euler)
        x_rk4, s_rk4 = rk4.step(x_rk4, t, dt, growth, s_rk4)
        t += dt
        print(f"{t:8.3f} {float(x_euler):14.6e} {float(x_rk4):14.6e} {math.exp(t):14.6e}")


if __name__ == "__main__":
    typer.run(main)
