"""Vector-space arithmetic on JAX pytrees.

Integrator state may be any pytree of floating arrays: a scalar, a single
array, or a nested tuple / NamedTuple / dict of arrays (e.g. a
``(position, velocity)`` pair). The helpers below apply the vector-space
operations the integrators need leaf by leaf with ``jax.tree_util``, so
every algorithm is written once and works for all of these layouts.
"""

from __future__ import annotations

import functools
from collections.abc import Sequence
from typing import Any

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from odejax.config import get_dtype

PyTree = Any


def tree_cast(tree: PyTree, dtype=None) -> PyTree:
    """Convert every leaf to a JAX array of *dtype* (default: configured dtype)."""
    if dtype is None:
        dtype = get_dtype()
    return jax.tree_util.tree_map(lambda leaf: jnp.asarray(leaf, dtype=dtype), tree)


def tree_zeros_like(tree: PyTree) -> PyTree:
    return jax.tree_util.tree_map(jnp.zeros_like, tree)


def tree_axpy(alpha: ArrayLike, x: PyTree, y: PyTree) -> PyTree:
    """Return ``y + alpha * x`` leaf-wise."""
    return jax.tree_util.tree_map(lambda a, b: b + alpha * a, x, y)


def tree_lincomb(
    base: PyTree,
    h: ArrayLike,
    coeffs: Sequence[float],
    terms: Sequence[PyTree],
) -> PyTree:
    """Return ``base + h * sum(c_j * k_j)``, skipping zero coefficients.

    This is the stage update of an explicit Runge-Kutta method. Zero
    coefficients are skipped at trace time, so sparse tableau rows cost
    nothing.
    """
    out = base
    for c, k in zip(coeffs, terms):
        if c != 0.0:
            out = tree_axpy(h * c, k, out)
    return out


def tree_where(pred: ArrayLike, x: PyTree, y: PyTree) -> PyTree:
    """Select ``x`` where *pred* holds and ``y`` otherwise, leaf-wise."""
    return jax.tree_util.tree_map(lambda a, b: jnp.where(pred, a, b), x, y)


def tree_max_abs(tree: PyTree) -> Array:
    """Infinity norm over all leaves: ``max_i |x_i|``.

    An empty pytree has norm zero.
    """
    leaves = jax.tree_util.tree_leaves(tree)
    if not leaves:
        return jnp.asarray(0.0, dtype=get_dtype())
    return functools.reduce(jnp.maximum, [jnp.max(jnp.abs(leaf)) for leaf in leaves])
