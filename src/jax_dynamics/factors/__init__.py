"""
Factors and factor graphs handed to a nonlinear optimizer.

Every factor holds variable keys, a pure JAX residual and a noise sigma.
Factor graphs are immutable tuples of factors that compose with ``+``.
"""

from .base import Factor, FactorGraph, Values, pose_prior_factor, prior_factor
from .collocation import (
    euler_factor,
    euler_phase_factor,
    euler_residual,
    trapezoidal_factor,
    trapezoidal_phase_factor,
    trapezoidal_residual,
)
from .dynamics import (
    MAX_WRENCH_ARITY,
    planar_selection,
    torque_factor,
    wrench_equivalence_factor,
    wrench_factor,
    wrench_planar_factor,
)
from .kinematics import (
    pose_factor,
    twist_accel_factor,
    twist_factor,
    zero_twist_accel_prior,
    zero_twist_prior,
)
from .objectives import contact_height_factor, joint_limit_factor, min_torque_factor

__all__ = [
    "Factor",
    "FactorGraph",
    "Values",
    "MAX_WRENCH_ARITY",
    "contact_height_factor",
    "euler_factor",
    "euler_phase_factor",
    "euler_residual",
    "joint_limit_factor",
    "min_torque_factor",
    "planar_selection",
    "pose_factor",
    "pose_prior_factor",
    "prior_factor",
    "torque_factor",
    "trapezoidal_factor",
    "trapezoidal_phase_factor",
    "trapezoidal_residual",
    "twist_accel_factor",
    "twist_factor",
    "wrench_equivalence_factor",
    "wrench_factor",
    "wrench_planar_factor",
    "zero_twist_accel_prior",
    "zero_twist_prior",
]
