"""Explicit Runge-Kutta methods driven by a Butcher tableau.

A :class:`ButcherTableau` describes an explicit ``s``-stage method by its
nodes ``c``, lower-triangular coupling rows ``a`` and weights ``b``, plus a
second set of weights ``b_low`` for embedded (error-estimating) methods.
Two integrators consume tableaus:

- :class:`RungeKutta` -- fixed-step, implements ``Integrator`` (and
  ``VelIntegrator`` by reduction to first order).
- :class:`EmbeddedRungeKutta` -- implements ``AdaptiveIntegrator``,
  propagating the ``b`` solution and estimating the error against the
  ``b_low`` solution.

Named tableaus are collected in :mod:`odejax.integrators.tableaus`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, NamedTuple

import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from odejax.config import get_dtype
from odejax.integrators._adaptive import clamp_step, compute_error_norm, compute_next_step_size
from odejax.integrators._reduction import FirstOrderReduction
from odejax.integrators._tree import PyTree, tree_axpy, tree_cast, tree_lincomb, tree_where
from odejax.integrators._types import AdaptiveConfig, AdaptiveStep, IntegratorStep

logger = logging.getLogger(__name__)


class ButcherTableau(NamedTuple):
    """Coefficients of an explicit Runge-Kutta method.

    Attributes:
        c: Nodes, one per stage.
        a: Coupling coefficients; ``a[i]`` has ``i`` entries for stages
            ``0..i-1``.
        b: Weights of the propagated solution.
        b_low: Weights of the embedded error-estimating solution, or
            ``None`` for a fixed-step method.
        order: Order of the propagated solution.
    """

    c: tuple[float, ...]
    a: tuple[tuple[float, ...], ...]
    b: tuple[float, ...]
    b_low: tuple[float, ...] | None
    order: int

    @property
    def stages(self) -> int:
        return len(self.c)

    @property
    def is_embedded(self) -> bool:
        return self.b_low is not None

    @classmethod
    def from_matrix(cls, matrix: Sequence[Sequence[float]], order: int | None = None) -> ButcherTableau:
        """Build a tableau from its extended matrix form.

        The matrix has ``s + 1`` columns. The first ``s`` rows are
        ``[c_i, a_i1, ..., a_is]``; they are followed by one weight row
        ``[0, b_1, ..., b_s]`` for a fixed-step method, or two (propagated
        solution first, error estimator second) for an embedded method.

        Args:
            matrix: Rows of the extended tableau.
            order: Order of the propagated solution. Defaults to the number
                of stages for fixed-step tableaus (exact up to order 4);
                required for embedded tableaus.

        Returns:
            ButcherTableau: Validated tableau.

        Raises:
            ValueError: If the matrix is empty, jagged, has more columns
                than rows or more than one extra weight row, has no stages,
                describes an implicit method, or *order* is missing for an
                embedded tableau.
        """
        rows = [tuple(float(v) for v in row) for row in matrix]
        if not rows:
            raise ValueError("Zero-length Runge-Kutta matrix")

        n_rows = len(rows)
        n_cols = len(rows[0])
        if any(len(row) != n_cols for row in rows):
            raise ValueError("Tableau is non-rectangular")
        if n_cols > n_rows:
            raise ValueError(f"Tableau has {n_rows} rows but {n_cols} columns")
        if n_rows > n_cols + 1:
            raise ValueError(
                f"Tableau has {n_rows} rows; expected {n_cols} (fixed) or "
                f"{n_cols + 1} (embedded) for {n_cols} columns"
            )

        stages = n_cols - 1
        if stages < 1:
            raise ValueError("Tableau must have at least one stage")

        table = np.asarray(rows, dtype=np.float64)
        coupling = table[:stages, 1:]
        if np.any(np.triu(coupling) != 0.0):
            raise ValueError("Implicit Runge-Kutta not supported")

        embedded = n_rows == n_cols + 1
        if order is None:
            if embedded:
                raise ValueError("order must be given for an embedded tableau")
            order = stages

        tableau = cls(
            c=tuple(float(v) for v in table[:stages, 0]),
            a=tuple(tuple(float(v) for v in coupling[i, :i]) for i in range(stages)),
            b=tuple(float(v) for v in table[stages, 1:]),
            b_low=tuple(float(v) for v in table[stages + 1, 1:]) if embedded else None,
            order=int(order),
        )
        logger.debug(
            "Built %s Runge-Kutta tableau: %d stages, order %d",
            "embedded" if embedded else "fixed",
            stages,
            tableau.order,
        )
        return tableau


def _compute_stages(
    tableau: ButcherTableau,
    f: Callable[[Array, Any], Any],
    t: Array,
    state: PyTree,
    h: Array,
) -> list:
    k: list = []
    for i in range(tableau.stages):
        y_i = tree_lincomb(state, h, tableau.a[i], k)
        k.append(f(t + tableau.c[i] * h, y_i))
    return k


def runge_kutta_step(
    tableau: ButcherTableau,
    dynamics: Callable[[Array, Any], Any],
    t: ArrayLike,
    state: PyTree,
    dt: ArrayLike,
) -> PyTree:
    """Perform a single fixed step of the method described by *tableau*.

    Embedded tableaus may be passed; only the propagated ``b`` solution is
    used.

    Args:
        tableau: Method coefficients.
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t: Current time.
        state: Current state pytree.
        dt: Timestep to take. May be negative for backward integration.

    Returns:
        State pytree at ``t + dt``.
    """
    dtype = get_dtype()
    t = jnp.asarray(t, dtype=dtype)
    state = tree_cast(state, dtype)
    h = jnp.asarray(dt, dtype=dtype)

    def f(ti, xi):
        return tree_cast(dynamics(ti, xi), dtype)

    k = _compute_stages(tableau, f, t, state, h)
    return tree_lincomb(state, h, tableau.b, k)


@dataclass(frozen=True)
class RungeKutta(FirstOrderReduction):
    """Fixed-step explicit Runge-Kutta method from a tableau.

    Carries no scratch between steps.

    Args:
        tableau: A fixed-step tableau, e.g. ``tableaus.RALSTON``.

    Raises:
        ValueError: If *tableau* is embedded.
    """

    tableau: ButcherTableau

    def __post_init__(self) -> None:
        if self.tableau.is_embedded:
            raise ValueError(
                "RungeKutta requires a fixed-step tableau; use EmbeddedRungeKutta "
                "for embedded tableaus"
            )

    @property
    def order(self) -> int:
        return self.tableau.order

    def init(self, state: PyTree, t: ArrayLike) -> tuple:
        return ()

    def step(
        self,
        state: PyTree,
        t: ArrayLike,
        dt: ArrayLike,
        dynamics: Callable[[Array, Any], Any],
        scratch: tuple,
    ) -> IntegratorStep:
        return IntegratorStep(
            state=runge_kutta_step(self.tableau, dynamics, t, state, dt), scratch=scratch
        )


@dataclass(frozen=True)
class EmbeddedRungeKutta:
    """Adaptive embedded Runge-Kutta method from a tableau.

    Each call makes one accept/reject decision using the max absolute
    difference between the ``b`` and ``b_low`` solutions. Carries no
    scratch between steps.

    Args:
        tableau: An embedded tableau, e.g. ``tableaus.BOGACKI_SHAMPINE``.
        config: Step-size controller settings for this instance.

    Raises:
        ValueError: If *tableau* is not embedded.
    """

    tableau: ButcherTableau
    config: AdaptiveConfig = field(default_factory=AdaptiveConfig)

    error_norm: ClassVar[str] = "max_abs"

    def __post_init__(self) -> None:
        if not self.tableau.is_embedded:
            raise ValueError(
                "EmbeddedRungeKutta requires an embedded tableau with two weight rows"
            )

    @property
    def order(self) -> int:
        return self.tableau.order

    def adaptive_init(self, state: PyTree, t: ArrayLike) -> tuple:
        return ()

    def adaptive_step(
        self,
        state: PyTree,
        t: ArrayLike,
        dt_hint: ArrayLike,
        min_error: ArrayLike,
        dynamics: Callable[[Array, Any], Any],
        scratch: tuple,
    ) -> AdaptiveStep:
        dtype = get_dtype()
        t = jnp.asarray(t, dtype=dtype)
        state = tree_cast(state, dtype)
        h = clamp_step(dt_hint, self.config)

        def f(ti, xi):
            return tree_cast(dynamics(ti, xi), dtype)

        k = _compute_stages(self.tableau, f, t, state, h)
        state_high = tree_lincomb(state, h, self.tableau.b, k)
        state_low = tree_lincomb(state, h, self.tableau.b_low, k)

        error = compute_error_norm(tree_axpy(-1.0, state_low, state_high))
        accepted = error <= min_error
        dt_next = compute_next_step_size(
            error, min_error, h, accepted, self.tableau.order, self.config
        )

        return AdaptiveStep(
            state=tree_where(accepted, state_high, state),
            time=jnp.where(accepted, t + h, t),
            dt_next=dt_next,
            error=error,
            scratch=scratch,
        )
