"""Wrench-level factors: Newton-Euler balance, action/reaction, torque
projection and planar restriction.

Wrenches are [torque; force] 6-vectors expressed in the COM frame of the link
they act on.
"""

from functools import partial
from typing import Optional, Sequence

import jax.numpy as jnp
import numpy as np
from jax import Array

from ..core.joint import Joint
from ..core.link import Link
from ..errors import UnsupportedLinkDegreeError
from ..keys import (
    joint_angle_key,
    pose_key,
    torque_key,
    twist_accel_key,
    twist_key,
    wrench_key,
)
from ..transforms import se3
from .base import Factor

# Largest number of joint wrenches a single wrench-balance factor accepts
MAX_WRENCH_ARITY = 4


def _wrench_balance_residual(twist, twist_accel, *wrenches_and_pose, inertia_matrix,
                             mass, gravity):
    *wrenches, pose = wrenches_and_pose
    residual = (inertia_matrix @ twist_accel
                - se3.ad(twist).T @ inertia_matrix @ twist)
    if gravity is not None:
        gravity_force = se3.get_rotation(pose).T @ gravity * mass
        residual = residual - jnp.concatenate([jnp.zeros(3), gravity_force])
    for wrench in wrenches:
        residual = residual - wrench
    return residual


def _wrench_equivalence_residual(wrench_parent, wrench_child, q, cMp, screw_axis):
    cTp = se3.screw_exp(-screw_axis, q) @ cMp
    return wrench_parent + se3.transform_wrench(cTp, wrench_child)


def _torque_residual(wrench, torque, screw_axis):
    return jnp.dot(screw_axis, wrench) - torque


def _planar_residual(wrench, selection):
    return selection @ wrench


def wrench_factor(
    link: Link,
    wrench_keys: Sequence[int],
    t: int,
    sigma: float,
    gravity: Optional[Array] = None,
) -> Factor:
    """Newton-Euler balance of one link:
    ``G A - ad(V)^T G V - F_gravity - sum(F_i) = 0``.

    Keys: (twist, twist accel, *wrenches, pose). The pose only enters through
    the gravity term but is always a key so the factor shape does not depend
    on the gravity option.

    Raises:
        UnsupportedLinkDegreeError: more than four wrenches.
    """
    if len(wrench_keys) > MAX_WRENCH_ARITY:
        raise UnsupportedLinkDegreeError(
            f"Link '{link.name}' has {len(wrench_keys)} joint wrenches; "
            f"at most {MAX_WRENCH_ARITY} are supported")
    keys = (twist_key(link.id, t), twist_accel_key(link.id, t),
            *wrench_keys, pose_key(link.id, t))
    residual = partial(
        _wrench_balance_residual,
        inertia_matrix=link.inertia_matrix(),
        mass=link.mass,
        gravity=None if gravity is None else jnp.asarray(gravity, dtype=float),
    )
    return Factor("wrench", keys, residual, sigma)


def wrench_equivalence_factor(joint: Joint, t: int, sigma: float) -> Factor:
    """Action equals reaction across the joint: ``F_p + Ad(cTp)^T F_c = 0``.

    Keys: (wrench on parent, wrench on child, joint angle).
    """
    parent, child = joint.parent_link, joint.child_link
    keys = (wrench_key(parent.id, joint.id, t), wrench_key(child.id, joint.id, t),
            joint_angle_key(joint.id, t))
    residual = partial(_wrench_equivalence_residual,
                       cMp=joint.transform_to(child), screw_axis=joint.screw_axis(child))
    return Factor("wrench_equivalence", keys, residual, sigma)


def torque_factor(joint: Joint, t: int, sigma: float) -> Factor:
    """Joint torque is the child wrench projected on the screw axis.

    Keys: (wrench on child, torque).
    """
    child = joint.child_link
    keys = (wrench_key(child.id, joint.id, t), torque_key(joint.id, t))
    return Factor("torque", keys,
                  partial(_torque_residual, screw_axis=joint.screw_axis(child)), sigma)


def planar_selection(planar_axis) -> np.ndarray:
    """(3, 6) rows picking the wrench components a planar joint cannot carry.

    For motion in the plane normal to ``n`` those are the two torque
    components about in-plane axes and the force along ``n``. Canonical axes
    give canonical rows, e.g. z selects (wx, wy, fz).
    """
    n = np.asarray(planar_axis, dtype=float)
    norm = np.linalg.norm(n)
    if n.shape != (3,) or norm == 0.0:
        raise ValueError(f"Planar axis must be a nonzero 3-vector, got {planar_axis!r}")
    n = n / norm
    helper = np.zeros(3)
    helper[np.argmin(np.abs(n))] = 1.0
    u1 = helper - np.dot(helper, n) * n
    u1 = u1 / np.linalg.norm(u1)
    u2 = np.cross(n, u1)
    selection = np.zeros((3, 6))
    selection[0, :3] = u1
    selection[1, :3] = u2
    selection[2, 3:] = n
    return selection


def wrench_planar_factor(joint: Joint, t: int, sigma: float, planar_axis) -> Factor:
    """Out-of-plane components of the child-side joint wrench vanish.

    Keys: (wrench on child,).
    """
    child = joint.child_link
    selection = jnp.asarray(planar_selection(planar_axis))
    return Factor("planar", (wrench_key(child.id, joint.id, t),),
                  partial(_planar_residual, selection=selection), sigma)
