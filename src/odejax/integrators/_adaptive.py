"""Adaptive step-size control utilities for embedded Runge-Kutta methods.

Provides the shared error-norm computation and step-size proposal logic
used by :class:`~odejax.integrators.dp54.DormandPrince54` and
:class:`~odejax.integrators.runge_kutta.EmbeddedRungeKutta`. Each call
makes exactly one accept/reject decision:

1. Shorten the attempted step to ``max_step``.
2. Compute the max absolute difference between the two embedded solutions.
3. Accept the step if that error is <= ``min_error``.
4. Propose the next step size from the error ratio and the method order,
   never shrinking after an acceptance and always shrinking after a
   rejection.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odejax.config import get_dtype
from odejax.integrators._tree import PyTree, tree_max_abs
from odejax.integrators._types import AdaptiveConfig


def compute_error_norm(error_tree: PyTree) -> Array:
    """Compute the local error estimate of an embedded step.

    The norm is the maximum absolute component over every leaf of the
    difference between the high- and low-order solutions. It is a fixed
    property of the integrators in this package and is not configurable.

    Args:
        error_tree: Difference between high-order and low-order solutions.

    Returns:
        jax.Array: Scalar error estimate.
    """
    return jnp.asarray(tree_max_abs(error_tree), dtype=get_dtype())


def clamp_step(h: ArrayLike, config: AdaptiveConfig) -> Array:
    """Shorten a step-size hint to at most ``config.max_step``, keeping its sign.

    Applied before any stage is evaluated, so an accepted step never proposes
    a ``dt_next`` smaller than the step actually taken.
    """
    h = jnp.asarray(h, dtype=get_dtype())
    return jnp.where(jnp.abs(h) > config.max_step, jnp.sign(h) * config.max_step, h)


def compute_next_step_size(
    error: ArrayLike,
    min_error: ArrayLike,
    h: ArrayLike,
    accepted: ArrayLike,
    order: float,
    config: AdaptiveConfig,
) -> Array:
    """Propose the next step size after one accept/reject decision.

    Uses the standard optimal step-size formula:

    .. math::

        h_{\\text{next}} = |h| \\cdot S \\cdot
            \\left(\\frac{\\text{min\\_error}}{\\text{error}}\\right)^{1/q}

    where *S* is the safety factor and *q* is the order of the propagated
    solution. After an acceptance the scale is clamped to
    ``[1, max_scale_factor]`` and the result to ``[min_step, max_step]``.
    The proposal is therefore non-decreasing: an error just under
    ``min_error`` gives back ``|h|`` unchanged.
    After a rejection the scale is clamped to
    ``[min_scale_factor, shrink_factor]`` and the result is floored at
    ``min_step`` without ever exceeding ``|h|``. The sign of ``h`` is
    preserved for backward integration.

    Args:
        error: Error estimate from :func:`compute_error_norm`.
        min_error: Caller tolerance the error was compared against.
        h: Step size of the attempt (may be negative).
        accepted: Whether the attempt was accepted.
        order: Order of the propagated solution (5 for DP54).
        config: Controller settings.

    Returns:
        jax.Array: Proposed next step size with the same sign as ``h``.
    """
    dtype = get_dtype()
    error = jnp.asarray(error, dtype=dtype)
    min_error = jnp.asarray(min_error, dtype=dtype)
    h = jnp.asarray(h, dtype=dtype)

    abs_h = jnp.abs(h)
    sign_h = jnp.where(h < 0.0, -1.0, 1.0).astype(dtype)

    ratio = error / min_error
    # A zero (or 0/0) ratio grows as far as allowed; a NaN error rejects and
    # takes the same branch, where it is clamped to shrink_factor.
    raw_scale = jnp.where(ratio > 0.0, jnp.power(ratio, -1.0 / order), jnp.inf)
    scale = config.safety_factor * raw_scale

    grow = jnp.clip(scale, 1.0, config.max_scale_factor)
    shrink = jnp.clip(scale, config.min_scale_factor, config.shrink_factor)

    abs_h_grown = jnp.clip(abs_h * grow, config.min_step, config.max_step)
    abs_h_shrunk = jnp.minimum(jnp.maximum(abs_h * shrink, config.min_step), abs_h)

    return sign_h * jnp.where(accepted, abs_h_grown, abs_h_shrunk)
