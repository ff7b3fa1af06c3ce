"""Structural description of a robot, as produced by a model parser.

These records are the input of structure extraction. They carry geometry and
inertial data only; adjacency is resolved later by ``extract_structure``.
Names and scalar parameters are static fields, arrays are PyTree leaves.
"""

from typing import Optional, Tuple

import jax.numpy as jnp
from flax import struct
from jax import Array


@struct.dataclass
class LinkSpec:
    """Inertial and geometric data of one rigid body.

    Attributes:
        name: Link name, unique within a robot.
        mass: Link mass [kg].
        inertia: (3, 3) inertia tensor about the center of mass, expressed in
            the COM frame.
        com_pose: (4, 4) rest pose of the COM frame in the world frame.
        link_pose: (4, 4) rest pose of the link frame in the world frame.
        is_fixed: Whether the link is pinned to its rest pose.
    """
    name: str = struct.field(pytree_node=False)
    mass: float = struct.field(pytree_node=False)
    inertia: Array
    com_pose: Array
    link_pose: Array
    is_fixed: bool = struct.field(pytree_node=False, default=False)


@struct.dataclass
class JointSpec:
    """Connector between a parent and a child link.

    Attributes:
        name: Joint name, unique within a robot.
        joint_type: "revolute" or "prismatic".
        parent: Name of the parent link.
        child: Name of the child link.
        axis: (3,) motion axis expressed in the joint frame.
        joint_pose: (4, 4) rest pose of the joint frame in the world frame.
        lower_limit: Lower motion limit [rad or m].
        upper_limit: Upper motion limit [rad or m].
        velocity_limit: Maximum joint speed.
        torque_limit: Maximum joint effort.
    """
    name: str = struct.field(pytree_node=False)
    joint_type: str = struct.field(pytree_node=False)
    parent: str = struct.field(pytree_node=False)
    child: str = struct.field(pytree_node=False)
    axis: Array
    joint_pose: Array
    lower_limit: float = struct.field(pytree_node=False, default=-jnp.inf)
    upper_limit: float = struct.field(pytree_node=False, default=jnp.inf)
    velocity_limit: float = struct.field(pytree_node=False, default=jnp.inf)
    torque_limit: float = struct.field(pytree_node=False, default=jnp.inf)


@struct.dataclass
class JointParams:
    """Optional per-joint overrides applied during structure extraction."""
    name: str = struct.field(pytree_node=False)
    effort_type: str = struct.field(pytree_node=False, default="actuated")
    spring_coefficient: float = struct.field(pytree_node=False, default=0.0)
    limit_threshold: float = struct.field(pytree_node=False, default=0.0)
    velocity_limit_threshold: float = struct.field(pytree_node=False, default=0.0)
    acceleration_limit: float = struct.field(pytree_node=False, default=10000.0)
    acceleration_limit_threshold: float = struct.field(pytree_node=False, default=0.0)
    torque_limit_threshold: float = struct.field(pytree_node=False, default=0.0)


@struct.dataclass
class RobotDescription:
    """Complete structural description of a robot.

    Attributes:
        name: Robot name.
        links: Link specifications, in id order.
        joints: Joint specifications, in id order.
        base_name: Link the whole structure must be connected to. Defaults to
            the first fixed link, or the first link if none is fixed.
    """
    name: str = struct.field(pytree_node=False)
    links: Tuple[LinkSpec, ...]
    joints: Tuple[JointSpec, ...]
    base_name: Optional[str] = struct.field(pytree_node=False, default=None)

    def resolved_base_name(self) -> str:
        if self.base_name is not None:
            return self.base_name
        for link in self.links:
            if link.is_fixed:
                return link.name
        return self.links[0].name


def pose(position=(0.0, 0.0, 0.0), rotation: Optional[Array] = None) -> Array:
    """Convenience (4, 4) pose builder for hand-written descriptions."""
    T = jnp.eye(4)
    T = T.at[:3, 3].set(jnp.asarray(position, dtype=float))
    if rotation is not None:
        T = T.at[:3, :3].set(rotation)
    return T

