# /// script
# requires-python = ">=3.11"
# dependencies = ["typer>=0.9.0", "odejax"]
#
# [tool.uv.sources]
# odejax = { path = ".." }
# ///
"""Adaptive stepping of dx/dt = x with the embedded Runge-Kutta methods.

Drives each adaptive integrator by hand: the caller keeps the time, the
state, the step proposal and the scratch, retries rejected steps with the
smaller proposal, and shortens the last step to land on t_end.

Usage:
    uv run examples/adaptive.py [OPTIONS]

Examples:
    uv run examples/adaptive.py --method dormand-prince --min-error 1e-10
    uv run examples/adaptive.py --method bogacki-shampine --t-end 2.0
"""

import enum
import logging
import math
from typing import Annotated

import jax.numpy as jnp
import typer

from odejax import DormandPrince54, EmbeddedRungeKutta, set_dtype, tableaus

set_dtype(jnp.float64)


class Method(enum.StrEnum):
    """Adaptive integrator."""

    euler_heun = "euler-heun"
    bogacki_shampine = "bogacki-shampine"
    fehlberg = "fehlberg"
    dormand_prince = "dormand-prince"


_METHODS = {
    Method.euler_heun: lambda: EmbeddedRungeKutta(tableaus.EULER_HEUN),
    Method.bogacki_shampine: lambda: EmbeddedRungeKutta(tableaus.BOGACKI_SHAMPINE),
    Method.fehlberg: lambda: EmbeddedRungeKutta(tableaus.FEHLBERG),
    Method.dormand_prince: DormandPrince54,
}


def growth(t, x):
    return x


def main(
    method: Annotated[Method, typer.Option(help="Adaptive integrator")] = Method.dormand_prince,
    dt: Annotated[float, typer.Option(help="Initial step-size hint")] = 0.5,
    min_error: Annotated[float, typer.Option(help="Largest acceptable local error")] = 1e-8,
    t_end: Annotated[float, typer.Option(help="Final time")] = 5.0,
    verbose: Annotated[bool, typer.Option(help="Log every rejected attempt")] = False,
) -> None:
    """Print every accepted step next to exp(t)."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)
    integrator = _METHODS[method]()

    t, x = 0.0, 1.0
    scratch = integrator.adaptive_init(x, t)
    rejected = 0
    while t < t_end:
        # Shorten the last step so it lands on t_end
        last = dt >= t_end - t
        h = t_end - t if last else dt
        result = integrator.adaptive_step(x, t, h, min_error, growth, scratch)
        scratch, dt = result.scratch, float(result.dt_next)
        if float(result.error) > min_error:
            rejected += 1
            logging.debug("rejected t=%g error=%g, retrying with dt=%g", t, float(result.error), dt)
            continue
        x, t = result.state, t_end if last else float(result.time)
        print(f"t={t:.6f} x={float(x):.12e} exp(t)={math.exp(t):.12e} dt_next={dt:.3e}")

    print(f"{rejected} rejected attempts")


if __name__ == "__main__":
    typer.run(main)
