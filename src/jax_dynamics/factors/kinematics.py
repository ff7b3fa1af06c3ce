"""Joint-local kinematic factors: pose, twist and twist acceleration.

Each factory reads the joint's rest transform and screw axis once and binds
them into a pure residual over the variable values.
"""

from functools import partial

import jax.numpy as jnp
from jax import Array

from ..core.joint import Joint
from ..keys import (
    joint_accel_key,
    joint_angle_key,
    joint_vel_key,
    pose_key,
    twist_accel_key,
    twist_key,
)
from ..transforms import se3
from .base import Factor


def _child_T_parent(q: Array, cMp: Array, screw_axis: Array) -> Array:
    return se3.screw_exp(-screw_axis, q) @ cMp


def _pose_residual(pose_parent, pose_child, q, cMp, screw_axis):
    pose_child_hat = pose_parent @ se3.inverse(_child_T_parent(q, cMp, screw_axis))
    return se3.log(se3.between(pose_child, pose_child_hat))


def _twist_residual(twist_parent, twist_child, q, q_vel, cMp, screw_axis):
    cTp = _child_T_parent(q, cMp, screw_axis)
    return se3.transform_twist(cTp, twist_parent) + screw_axis * q_vel - twist_child


def _twist_accel_residual(twist_child, accel_parent, accel_child, q, q_vel, q_accel,
                          cMp, screw_axis):
    cTp = _child_T_parent(q, cMp, screw_axis)
    return (se3.transform_twist(cTp, accel_parent)
            + se3.ad(twist_child) @ screw_axis * q_vel
            + screw_axis * q_accel
            - accel_child)


def _bind(joint: Joint, fn):
    child = joint.child_link
    return partial(fn, cMp=joint.transform_to(child), screw_axis=joint.screw_axis(child))


def pose_factor(joint: Joint, t: int, sigma: float) -> Factor:
    """Child COM pose agrees with parent pose moved through the joint.

    Keys: (parent pose, child pose, joint angle).
    """
    keys = (pose_key(joint.parent_link.id, t), pose_key(joint.child_link.id, t),
            joint_angle_key(joint.id, t))
    return Factor("pose", keys, _bind(joint, _pose_residual), sigma)


def twist_factor(joint: Joint, t: int, sigma: float) -> Factor:
    """``V_c = Ad(cTp) V_p + S q_dot``.

    Keys: (parent twist, child twist, joint angle, joint velocity).
    """
    keys = (twist_key(joint.parent_link.id, t), twist_key(joint.child_link.id, t),
            joint_angle_key(joint.id, t), joint_vel_key(joint.id, t))
    return Factor("twist", keys, _bind(joint, _twist_residual), sigma)


def twist_accel_factor(joint: Joint, t: int, sigma: float) -> Factor:
    """``A_c = Ad(cTp) A_p + ad(V_c) S q_dot + S q_ddot``.

    Keys: (child twist, parent accel, child accel, angle, velocity,
    acceleration).
    """
    parent_id, child_id = joint.parent_link.id, joint.child_link.id
    keys = (twist_key(child_id, t), twist_accel_key(parent_id, t),
            twist_accel_key(child_id, t), joint_angle_key(joint.id, t),
            joint_vel_key(joint.id, t), joint_accel_key(joint.id, t))
    return Factor("twist_accel", keys, _bind(joint, _twist_accel_residual), sigma)


def zero_twist_prior(link_id: int, t: int, sigma: float) -> Factor:
    return Factor("twist_prior", (twist_key(link_id, t),), _identity, sigma)


def zero_twist_accel_prior(link_id: int, t: int, sigma: float) -> Factor:
    return Factor("twist_accel_prior", (twist_accel_key(link_id, t),), _identity, sigma)


def _identity(value: Array) -> Array:
    return jnp.asarray(value)
