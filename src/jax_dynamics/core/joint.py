"""Joints connecting two links, with screw-theory kinematics.

A joint's kind is a closed enum rather than a class hierarchy: the only
kind-specific piece is how the joint-frame axis becomes a screw, everything
else (relative transforms, twists, torque projection) is shared screw algebra.

Conventions, for parent link p and child link c (COM frames):

    pMc          rest pose of c in p
    S_c          screw axis of c's motion relative to p, in c's frame
    pTc(q)     = pMc @ exp(S_c q)
    cTp(q)     = exp(-S_c q) @ cMp
"""

import enum
import weakref
from typing import Callable, Dict, Optional

import jax.numpy as jnp
from jax import Array

from ..errors import InvalidEndpointError
from ..transforms import se3
from .link import Link


class JointType(enum.Enum):
    REVOLUTE = "revolute"
    PRISMATIC = "prismatic"


class JointEffortType(enum.Enum):
    ACTUATED = "actuated"
    UNACTUATED = "unactuated"
    IMPEDANCE = "impedance"


def _revolute_screw(axis: Array) -> Array:
    return jnp.concatenate([axis, jnp.zeros(3)])


def _prismatic_screw(axis: Array) -> Array:
    return jnp.concatenate([jnp.zeros(3), axis])


# Screw axis in the joint frame, per joint kind
_JOINT_FRAME_SCREW: Dict[JointType, Callable[[Array], Array]] = {
    JointType.REVOLUTE: _revolute_screw,
    JointType.PRISMATIC: _prismatic_screw,
}


class Joint:
    """A revolute or prismatic connector between a parent and a child link.

    The joint keeps only weak references to its links; the owning Robot keeps
    them alive. All derived quantities are computed once at construction.
    """

    def __init__(
        self,
        joint_id: int,
        name: str,
        joint_type: JointType,
        parent_link: Link,
        child_link: Link,
        axis: Array,
        joint_pose: Array,
        lower_limit: float = -jnp.inf,
        upper_limit: float = jnp.inf,
        limit_threshold: float = 0.0,
        velocity_limit: float = jnp.inf,
        velocity_limit_threshold: float = 0.0,
        acceleration_limit: float = 10000.0,
        acceleration_limit_threshold: float = 0.0,
        torque_limit: float = jnp.inf,
        torque_limit_threshold: float = 0.0,
        spring_coefficient: float = 0.0,
        effort_type: JointEffortType = JointEffortType.ACTUATED,
    ):
        self._id = joint_id
        self._name = name
        self._joint_type = JointType(joint_type)
        self._effort_type = JointEffortType(effort_type)
        self._parent = weakref.ref(parent_link)
        self._child = weakref.ref(child_link)

        axis = jnp.asarray(axis, dtype=float)
        self._axis = axis / jnp.linalg.norm(axis)
        self._joint_pose = jnp.asarray(joint_pose, dtype=float)

        self._lower_limit = float(lower_limit)
        self._upper_limit = float(upper_limit)
        self._limit_threshold = float(limit_threshold)
        self._velocity_limit = float(velocity_limit)
        self._velocity_limit_threshold = float(velocity_limit_threshold)
        self._acceleration_limit = float(acceleration_limit)
        self._acceleration_limit_threshold = float(acceleration_limit_threshold)
        self._torque_limit = float(torque_limit)
        self._torque_limit_threshold = float(torque_limit_threshold)
        self._spring_coefficient = float(spring_coefficient)

        joint_screw = _JOINT_FRAME_SCREW[self._joint_type](self._axis)

        # Rest transforms between the two COM frames and the two link frames
        self._pMc = se3.between(parent_link.com_pose, child_link.com_pose)
        self._cMp = se3.inverse(self._pMc)
        self._pMc_link = se3.between(parent_link.link_pose, child_link.link_pose)

        # Screw axes: child COM frame, parent COM frame, child link frame
        ccom_T_j = se3.between(child_link.com_pose, self._joint_pose)
        clink_T_j = se3.between(child_link.link_pose, self._joint_pose)
        self._child_screw = se3.adjoint(ccom_T_j) @ joint_screw
        self._parent_screw = -(se3.adjoint(self._pMc) @ self._child_screw)
        self._link_screw = se3.adjoint(clink_T_j) @ joint_screw

    def __repr__(self) -> str:
        return (f"Joint(id={self._id}, name={self._name!r}, "
                f"type={self._joint_type.value}, "
                f"{self.parent_link.name!r} -> {self.child_link.name!r})")

    # Attributes
    @property
    def id(self) -> int:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def joint_type(self) -> JointType:
        return self._joint_type

    @property
    def effort_type(self) -> JointEffortType:
        return self._effort_type

    @property
    def axis(self) -> Array:
        """Unit motion axis in the joint frame."""
        return self._axis

    @property
    def joint_pose(self) -> Array:
        """Rest pose of the joint frame in the world frame."""
        return self._joint_pose

    @property
    def lower_limit(self) -> float:
        return self._lower_limit

    @property
    def upper_limit(self) -> float:
        return self._upper_limit

    @property
    def limit_threshold(self) -> float:
        return self._limit_threshold

    @property
    def velocity_limit(self) -> float:
        return self._velocity_limit

    @property
    def velocity_limit_threshold(self) -> float:
        return self._velocity_limit_threshold

    @property
    def acceleration_limit(self) -> float:
        return self._acceleration_limit

    @property
    def acceleration_limit_threshold(self) -> float:
        return self._acceleration_limit_threshold

    @property
    def torque_limit(self) -> float:
        return self._torque_limit

    @property
    def torque_limit_threshold(self) -> float:
        return self._torque_limit_threshold

    @property
    def spring_coefficient(self) -> float:
        return self._spring_coefficient

    @property
    def parent_link(self) -> Link:
        return self._resolve(self._parent)

    @property
    def child_link(self) -> Link:
        return self._resolve(self._child)

    def _resolve(self, handle: "weakref.ref[Link]") -> Link:
        link = handle()
        if link is None:
            raise ReferenceError(
                f"Joint '{self._name}' outlived the robot that owns its links")
        return link

    # Endpoint helpers
    def is_child_link(self, link: Link) -> bool:
        self._check_endpoint(link)
        return link is self.child_link

    def other_link(self, link: Link) -> Link:
        return self.parent_link if self.is_child_link(link) else self.child_link

    def _check_endpoint(self, link: Link) -> None:
        if link is not self.parent_link and link is not self.child_link:
            raise InvalidEndpointError(
                f"Link '{link.name}' is not connected to joint '{self._name}'")

    # Capability interface
    def screw_axis(self, link: Link) -> Array:
        """Screw axis of ``link``'s motion relative to the other endpoint,
        expressed in ``link``'s COM frame."""
        return self._child_screw if self.is_child_link(link) else self._parent_screw

    def transform_to(self, link: Link, q: Optional[float] = None) -> Array:
        """Pose of the other endpoint's COM frame in ``link``'s COM frame.

        Args:
            link: One of the joint's endpoints.
            q: Joint coordinate; ``None`` returns the rest transform.
        """
        rest = self._cMp if self.is_child_link(link) else self._pMc
        if q is None:
            return rest
        return se3.screw_exp(-self.screw_axis(link), q) @ rest

    def transform_from(self, link: Link, q: Optional[float] = None) -> Array:
        """Pose of ``link``'s COM frame in the other endpoint's COM frame."""
        if q is None:
            return self._pMc if self.is_child_link(link) else self._cMp
        return se3.inverse(self.transform_to(link, q))

    def link_transform(self, q: Optional[float] = None) -> Array:
        """Pose of the child link frame in the parent link frame."""
        if q is None:
            return self._pMc_link
        return self._pMc_link @ se3.screw_exp(self._link_screw, q)

    def twist(self, q_vel) -> Array:
        """Twist contributed to the child link by the joint velocity."""
        return self._child_screw * q_vel

    def torque_from_wrench(self, wrench: Array) -> Array:
        """Project a child-side wrench onto the joint's screw axis."""
        return jnp.dot(self._child_screw, wrench)
