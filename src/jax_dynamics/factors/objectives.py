"""Soft objectives for trajectory optimization: effort, joint limits and
contact height."""

from functools import partial

import jax.numpy as jnp
import numpy as np
from jax import Array

from ..transforms import se3
from .base import Factor


def _min_torque_residual(torque):
    return torque


def _joint_limit_residual(q, lower, upper):
    return jnp.maximum(lower - q, 0.0) + jnp.maximum(q - upper, 0.0)


def _contact_height_residual(pose, contact_point, up, ground_height):
    return jnp.dot(se3.apply(pose, contact_point), up) - ground_height


def min_torque_factor(torque_key: int, sigma: float) -> Factor:
    """Penalize joint effort."""
    return Factor("min_torque", (torque_key,), _min_torque_residual, sigma)


def joint_limit_factor(angle_key: int, lower: float, upper: float,
                       threshold: float, sigma: float) -> Factor:
    """Hinge penalty outside ``[lower + threshold, upper - threshold]``.

    Infinite limits never activate.
    """
    residual = partial(_joint_limit_residual,
                       lower=float(lower) + float(threshold),
                       upper=float(upper) - float(threshold))
    return Factor("joint_limit", (angle_key,), residual, sigma)


def contact_height_factor(
    pose_key: int,
    contact_point: Array,
    sigma: float,
    ground_height: float = 0.0,
    gravity=(0.0, 0.0, -9.8),
) -> Factor:
    """Height of a point on a link above the ground plane.

    Args:
        pose_key: Key of the link's COM pose.
        contact_point: (3,) point in the link's COM frame.
        sigma: Noise sigma.
        ground_height: Height of the ground along the up direction.
        gravity: Gravity vector; up is its opposite direction.
    """
    gravity = np.asarray(gravity, dtype=float)
    norm = np.linalg.norm(gravity)
    if norm == 0.0:
        raise ValueError("Gravity must be nonzero to define the up direction")
    residual = partial(_contact_height_residual,
                       contact_point=jnp.asarray(contact_point, dtype=float),
                       up=jnp.asarray(-gravity / norm),
                       ground_height=float(ground_height))
    return Factor("contact_height", (pose_key,), residual, sigma)
