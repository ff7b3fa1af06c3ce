"""Time-integration factors linking a scalar quantity across two instants.

The step size is either a fixed constant or a phase-duration variable; the
residuals take ``dt`` as their last argument, so the variable-step factors
only differ by listing the phase key last.
"""

from functools import partial

from .base import Factor


def euler_residual(x0, x1, dx0, dt):
    """``x0 + dt * dx0 - x1``"""
    return x0 + dt * dx0 - x1


def trapezoidal_residual(x0, x1, dx0, dx1, dt):
    """``x0 + dt / 2 * (dx0 + dx1) - x1``"""
    return x0 + 0.5 * dt * (dx0 + dx1) - x1


def euler_factor(x0_key: int, x1_key: int, dx0_key: int, dt: float, sigma: float) -> Factor:
    return Factor("collocation", (x0_key, x1_key, dx0_key),
                  partial(euler_residual, dt=float(dt)), sigma)


def trapezoidal_factor(x0_key: int, x1_key: int, dx0_key: int, dx1_key: int,
                       dt: float, sigma: float) -> Factor:
    return Factor("collocation", (x0_key, x1_key, dx0_key, dx1_key),
                  partial(trapezoidal_residual, dt=float(dt)), sigma)


def euler_phase_factor(x0_key: int, x1_key: int, dx0_key: int, dt_key: int,
                       sigma: float) -> Factor:
    """Euler step with the step size as an optimization variable."""
    return Factor("collocation", (x0_key, x1_key, dx0_key, dt_key), euler_residual, sigma)


def trapezoidal_phase_factor(x0_key: int, x1_key: int, dx0_key: int, dx1_key: int,
                             dt_key: int, sigma: float) -> Factor:
    """Trapezoidal step with the step size as an optimization variable."""
    return Factor("collocation", (x0_key, x1_key, dx0_key, dx1_key, dt_key),
                  trapezoidal_residual, sigma)
