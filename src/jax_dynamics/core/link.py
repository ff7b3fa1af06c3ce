"""Rigid body of a robot."""

from typing import TYPE_CHECKING, List, Tuple

import jax.numpy as jnp
from jax import Array

if TYPE_CHECKING:
    from .joint import Joint


class Link:
    """A rigid body with inertial properties and a rest pose.

    Geometry is fixed at construction. Adjacency is filled in once by
    ``extract_structure`` and is read-only afterwards. A link holds its
    incident joints; the joints only hold weak handles back to the link, so
    parent and child links are derived through them.
    """

    def __init__(
        self,
        link_id: int,
        name: str,
        mass: float,
        inertia: Array,
        com_pose: Array,
        link_pose: Array,
        is_fixed: bool = False,
    ):
        self._id = link_id
        self._name = name
        self._mass = float(mass)
        self._inertia = jnp.asarray(inertia, dtype=float)
        self._com_pose = jnp.asarray(com_pose, dtype=float)
        self._link_pose = jnp.asarray(link_pose, dtype=float)
        self._is_fixed = bool(is_fixed)
        self._parent_joints: List["Joint"] = []
        self._child_joints: List["Joint"] = []

    def __repr__(self) -> str:
        return f"Link(id={self._id}, name={self._name!r}, fixed={self._is_fixed})"

    @property
    def id(self) -> int:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def mass(self) -> float:
        return self._mass

    @property
    def inertia(self) -> Array:
        """(3, 3) inertia tensor about the COM, in the COM frame."""
        return self._inertia

    @property
    def com_pose(self) -> Array:
        """(4, 4) rest pose of the COM frame in the world frame."""
        return self._com_pose

    @property
    def link_pose(self) -> Array:
        """(4, 4) rest pose of the link frame in the world frame."""
        return self._link_pose

    @property
    def is_fixed(self) -> bool:
        return self._is_fixed

    @property
    def fixed_pose(self) -> Array:
        """Pinned COM pose of a fixed link."""
        if not self._is_fixed:
            raise ValueError(f"Link '{self._name}' is not fixed")
        return self._com_pose

    @property
    def com_in_link(self) -> Array:
        """(4, 4) pose of the COM frame in the link frame."""
        return jnp.linalg.solve(self._link_pose, self._com_pose)

    def inertia_matrix(self) -> Array:
        """(6, 6) spatial inertia diag(I, m * I3) for [w, v] twists."""
        G = jnp.zeros((6, 6))
        G = G.at[:3, :3].set(self._inertia)
        G = G.at[3:, 3:].set(self._mass * jnp.eye(3))
        return G

    # Adjacency
    @property
    def parent_joints(self) -> Tuple["Joint", ...]:
        """Joints for which this link is the child."""
        return tuple(self._parent_joints)

    @property
    def child_joints(self) -> Tuple["Joint", ...]:
        """Joints for which this link is the parent."""
        return tuple(self._child_joints)

    @property
    def joints(self) -> Tuple["Joint", ...]:
        """All incident joints, parent joints first."""
        return tuple(self._parent_joints) + tuple(self._child_joints)

    @property
    def parent_links(self) -> Tuple["Link", ...]:
        return tuple(joint.parent_link for joint in self._parent_joints)

    @property
    def child_links(self) -> Tuple["Link", ...]:
        return tuple(joint.child_link for joint in self._child_joints)

    @property
    def degree(self) -> int:
        """Number of incident joints."""
        return len(self._parent_joints) + len(self._child_joints)

    def _attach(self, joint: "Joint") -> None:
        if joint.child_link is self:
            self._parent_joints.append(joint)
        else:
            self._child_joints.append(joint)
