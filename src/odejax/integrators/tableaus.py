"""Named Butcher tableaus for :mod:`odejax.integrators.runge_kutta`.

Fixed-step tableaus (use with :class:`~odejax.integrators.RungeKutta`):

- :data:`EULER` -- forward Euler, order 1
- :data:`MIDPOINT` -- explicit midpoint, order 2
- :data:`HEUN2` -- Heun's method, order 2
- :data:`RALSTON` -- Ralston's method, order 2
- :data:`RK3` -- Kutta's third-order method
- :data:`HEUN3` -- Heun's third-order method
- :data:`RK4` -- classic Runge-Kutta, order 4
- :data:`RK_3_8` -- Kutta's 3/8-rule, order 4

Embedded tableaus (use with :class:`~odejax.integrators.EmbeddedRungeKutta`):

- :data:`EULER_HEUN` -- Heun 2 with Euler 1 error estimate
- :data:`BOGACKI_SHAMPINE` -- Bogacki-Shampine 3(2)
- :data:`FEHLBERG` -- Runge-Kutta-Fehlberg 4(5), propagating the 5th-order
  solution
- :data:`DORMAND_PRINCE` -- Dormand-Prince 5(4)

Matrices are written in the extended layout accepted by
:meth:`~odejax.integrators.ButcherTableau.from_matrix`.
"""

from __future__ import annotations

from odejax.integrators.runge_kutta import ButcherTableau

# ──────────────────────────────────────────────
# Fixed-step methods
# ──────────────────────────────────────────────

EULER = ButcherTableau.from_matrix(
    (
        (0.0, 0.0),
        (0.0, 1.0),
    )
)

MIDPOINT = ButcherTableau.from_matrix(
    (
        (0.0, 0.0, 0.0),
        (0.5, 0.5, 0.0),
        (0.0, 0.0, 1.0),
    )
)

HEUN2 = ButcherTableau.from_matrix(
    (
        (0.0, 0.0, 0.0),
        (1.0, 1.0, 0.0),
        (0.0, 0.5, 0.5),
    )
)

RALSTON = ButcherTableau.from_matrix(
    (
        (0.0, 0.0, 0.0),
        (2.0 / 3.0, 2.0 / 3.0, 0.0),
        (0.0, 0.25, 0.75),
    )
)

RK3 = ButcherTableau.from_matrix(
    (
        (0.0, 0.0, 0.0, 0.0),
        (0.5, 0.5, 0.0, 0.0),
        (1.0, -1.0, 2.0, 0.0),
        (0.0, 1.0 / 6.0, 2.0 / 3.0, 1.0 / 6.0),
    )
)

HEUN3 = ButcherTableau.from_matrix(
    (
        (0.0, 0.0, 0.0, 0.0),
        (1.0 / 3.0, 1.0 / 3.0, 0.0, 0.0),
        (2.0 / 3.0, 0.0, 2.0 / 3.0, 0.0),
        (0.0, 0.25, 0.0, 0.75),
    )
)

RK4 = ButcherTableau.from_matrix(
    (
        (0.0, 0.0, 0.0, 0.0, 0.0),
        (0.5, 0.5, 0.0, 0.0, 0.0),
        (0.5, 0.0, 0.5, 0.0, 0.0),
        (1.0, 0.0, 0.0, 1.0, 0.0),
        (0.0, 1.0 / 6.0, 1.0 / 3.0, 1.0 / 3.0, 1.0 / 6.0),
    )
)

RK_3_8 = ButcherTableau.from_matrix(
    (
        (0.0, 0.0, 0.0, 0.0, 0.0),
        (1.0 / 3.0, 1.0 / 3.0, 0.0, 0.0, 0.0),
        (2.0 / 3.0, -1.0 / 3.0, 1.0, 0.0, 0.0),
        (1.0, 1.0, -1.0, 1.0, 0.0),
        (0.0, 0.125, 0.375, 0.375, 0.125),
    )
)

# ──────────────────────────────────────────────
# Embedded methods (propagated weights first)
# ──────────────────────────────────────────────

EULER_HEUN = ButcherTableau.from_matrix(
    (
        (0.0, 0.0, 0.0),
        (1.0, 1.0, 0.0),
        (0.0, 0.5, 0.5),
        (0.0, 1.0, 0.0),
    ),
    order=2,
)

BOGACKI_SHAMPINE = ButcherTableau.from_matrix(
    (
        (0.0, 0.0, 0.0, 0.0, 0.0),
        (0.5, 0.5, 0.0, 0.0, 0.0),
        (0.75, 0.0, 0.75, 0.0, 0.0),
        (1.0, 2.0 / 9.0, 1.0 / 3.0, 4.0 / 9.0, 0.0),
        (0.0, 2.0 / 9.0, 1.0 / 3.0, 4.0 / 9.0, 0.0),
        (0.0, 7.0 / 24.0, 0.25, 1.0 / 3.0, 0.125),
    ),
    order=3,
)

FEHLBERG = ButcherTableau.from_matrix(
    (
        (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0),
        (0.25, 0.25, 0.0, 0.0, 0.0, 0.0, 0.0),
        (0.375, 3.0 / 32.0, 9.0 / 32.0, 0.0, 0.0, 0.0, 0.0),
        (12.0 / 13.0, 1932.0 / 2197.0, -7200.0 / 2197.0, 7296.0 / 2197.0, 0.0, 0.0, 0.0),
        (1.0, 439.0 / 216.0, -8.0, 3680.0 / 513.0, -845.0 / 4104.0, 0.0, 0.0),
        (0.5, -8.0 / 27.0, 2.0, -3544.0 / 2565.0, 1859.0 / 4104.0, -11.0 / 40.0, 0.0),
        (0.0, 16.0 / 135.0, 0.0, 6656.0 / 12825.0, 28561.0 / 56430.0, -9.0 / 50.0, 2.0 / 55.0),
        (0.0, 25.0 / 216.0, 0.0, 1408.0 / 2565.0, 2197.0 / 4104.0, -1.0 / 5.0, 0.0),
    ),
    order=5,
)

DORMAND_PRINCE = ButcherTableau.from_matrix(
    (
        (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0),
        (0.2, 0.2, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0),
        (0.3, 3.0 / 40.0, 9.0 / 40.0, 0.0, 0.0, 0.0, 0.0, 0.0),
        (0.8, 44.0 / 45.0, -56.0 / 15.0, 32.0 / 9.0, 0.0, 0.0, 0.0, 0.0),
        (8.0 / 9.0, 19372.0 / 6561.0, -25360.0 / 2187.0, 64448.0 / 6561.0, -212.0 / 729.0,
         0.0, 0.0, 0.0),
        (1.0, 9017.0 / 3168.0, -355.0 / 33.0, 46732.0 / 5247.0, 49.0 / 176.0,
         -5103.0 / 18656.0, 0.0, 0.0),
        (1.0, 35.0 / 384.0, 0.0, 500.0 / 1113.0, 125.0 / 192.0, -2187.0 / 6784.0,
         11.0 / 84.0, 0.0),
        (0.0, 35.0 / 384.0, 0.0, 500.0 / 1113.0, 125.0 / 192.0, -2187.0 / 6784.0,
         11.0 / 84.0, 0.0),
        (0.0, 5179.0 / 57600.0, 0.0, 7571.0 / 16695.0, 393.0 / 640.0, -92097.0 / 339200.0,
         187.0 / 2100.0, 1.0 / 40.0),
    ),
    order=5,
)
