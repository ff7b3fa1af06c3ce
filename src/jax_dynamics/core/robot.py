"""Robot: the kinematic graph of links and joints.

The structure is a general graph, not a strict tree: in a closed-loop
mechanism a link can have several parent joints. Adjacency is stored per
link, and every per-joint computation is local to that joint.
"""

import logging
from collections import deque
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from jax import Array

from ..errors import AmbiguousJointError, MalformedStructureError, NoSuchJointError
from .description import JointParams, RobotDescription
from .joint import Joint, JointEffortType, JointType
from .link import Link

logger = logging.getLogger(__name__)


def extract_structure(
    description: RobotDescription,
    joint_params: Optional[Sequence[JointParams]] = None,
) -> Tuple[List[Link], List[Joint]]:
    """Build Link and Joint objects from a structural description.

    Resolves every joint's endpoints to Link instances and populates parent
    and child adjacency on each link. Cycles are allowed.

    Args:
        description: Parsed structural description.
        joint_params: Optional per-joint overrides, matched by joint name.

    Returns:
        Tuple of (links, joints) in description order; ids are list indices.

    Raises:
        MalformedStructureError: duplicate names, unknown link references,
            overrides for unknown joints, or links disconnected from the base.
    """
    if not description.links:
        raise MalformedStructureError(f"Robot '{description.name}' has no links")

    links: List[Link] = []
    name_to_link: Dict[str, Link] = {}
    for link_id, spec in enumerate(description.links):
        if spec.name in name_to_link:
            raise MalformedStructureError(f"Duplicate link name '{spec.name}'")
        link = Link(link_id, spec.name, spec.mass, spec.inertia,
                    spec.com_pose, spec.link_pose, spec.is_fixed)
        links.append(link)
        name_to_link[spec.name] = link

    params_by_name: Dict[str, JointParams] = {}
    for params in joint_params or ():
        params_by_name[params.name] = params
    joint_names = {spec.name for spec in description.joints}
    unknown = sorted(set(params_by_name) - joint_names)
    if unknown:
        raise MalformedStructureError(f"Joint parameters given for unknown joints: {unknown}")

    joints: List[Joint] = []
    seen_joints = set()
    for joint_id, spec in enumerate(description.joints):
        if spec.name in seen_joints:
            raise MalformedStructureError(f"Duplicate joint name '{spec.name}'")
        seen_joints.add(spec.name)

        for end in (spec.parent, spec.child):
            if end not in name_to_link:
                raise MalformedStructureError(
                    f"Joint '{spec.name}' references unknown link '{end}'")
        if spec.parent == spec.child:
            raise MalformedStructureError(
                f"Joint '{spec.name}' connects link '{spec.parent}' to itself")

        try:
            joint_type = JointType(spec.joint_type)
        except ValueError:
            raise MalformedStructureError(
                f"Joint '{spec.name}' has unsupported type '{spec.joint_type}'")

        axis = np.asarray(spec.axis, dtype=float)
        if axis.shape != (3,) or not np.all(np.isfinite(axis)) or not np.any(axis):
            raise MalformedStructureError(
                f"Joint '{spec.name}' needs a non-zero 3-vector axis, got {axis.tolist()}")

        params = params_by_name.get(spec.name, JointParams(name=spec.name))
        joint = Joint(
            joint_id,
            spec.name,
            joint_type,
            name_to_link[spec.parent],
            name_to_link[spec.child],
            spec.axis,
            spec.joint_pose,
            lower_limit=spec.lower_limit,
            upper_limit=spec.upper_limit,
            limit_threshold=params.limit_threshold,
            velocity_limit=spec.velocity_limit,
            velocity_limit_threshold=params.velocity_limit_threshold,
            acceleration_limit=params.acceleration_limit,
            acceleration_limit_threshold=params.acceleration_limit_threshold,
            torque_limit=spec.torque_limit,
            torque_limit_threshold=params.torque_limit_threshold,
            spring_coefficient=params.spring_coefficient,
            effort_type=JointEffortType(params.effort_type),
        )
        joints.append(joint)

    for joint in joints:
        joint.parent_link._attach(joint)
        joint.child_link._attach(joint)

    base_name = description.resolved_base_name()
    if base_name not in name_to_link:
        raise MalformedStructureError(f"Base link '{base_name}' is not in the link set")
    unreachable = _unreachable_links(name_to_link[base_name], links)
    if unreachable:
        raise MalformedStructureError(
            f"Links {unreachable} are disconnected from base link '{base_name}'")

    logger.debug("Extracted %d links and %d joints from '%s'",
                 len(links), len(joints), description.name)
    return links, joints


def _unreachable_links(base: Link, links: Iterable[Link]) -> List[str]:
    """Names of links with no joint path to ``base``, ignoring joint direction."""
    visited = {base.name}
    queue = deque([base])
    while queue:
        link = queue.popleft()
        for joint in link.joints:
            other = joint.other_link(link)
            if other.name not in visited:
                visited.add(other.name)
                queue.append(other)
    return [link.name for link in links if link.name not in visited]


class Robot:
    """Read-only kinematic graph built from a structural description.

    Joint configurations are never stored on the robot; every query that
    depends on them takes the joint coordinates as an argument.
    """

    def __init__(
        self,
        description: RobotDescription,
        joint_params: Optional[Sequence[JointParams]] = None,
    ):
        self._description = description
        self._joint_params = tuple(joint_params or ())
        self._links, self._joints = extract_structure(description, self._joint_params)
        self._name_to_link = {link.name: link for link in self._links}
        self._name_to_joint = {joint.name: joint for joint in self._joints}
        self._base_name = description.resolved_base_name()

    @classmethod
    def from_description(
        cls,
        description: RobotDescription,
        joint_params: Optional[Sequence[JointParams]] = None,
    ) -> "Robot":
        return cls(description, joint_params)

    def with_fixed_links(self, link_names: Iterable[str]) -> "Robot":
        """A new robot with exactly ``link_names`` fixed, e.g. for a contact phase."""
        fixed = set(link_names)
        for name in fixed:
            self.get_link_by_name(name)
        links = tuple(spec.replace(is_fixed=spec.name in fixed)
                      for spec in self._description.links)
        description = self._description.replace(links=links)
        return Robot(description, self._joint_params)

    def __repr__(self) -> str:
        return (f"Robot(name={self.name!r}, links={self.num_links}, "
                f"joints={self.num_joints})")

    # Structure
    @property
    def name(self) -> str:
        return self._description.name

    @property
    def description(self) -> RobotDescription:
        return self._description

    @property
    def base_name(self) -> str:
        return self._base_name

    @property
    def links(self) -> Tuple[Link, ...]:
        return tuple(self._links)

    @property
    def joints(self) -> Tuple[Joint, ...]:
        return tuple(self._joints)

    @property
    def link_names(self) -> Tuple[str, ...]:
        return tuple(link.name for link in self._links)

    @property
    def joint_names(self) -> Tuple[str, ...]:
        return tuple(joint.name for joint in self._joints)

    @property
    def num_links(self) -> int:
        return len(self._links)

    @property
    def num_joints(self) -> int:
        return len(self._joints)

    def get_link_by_name(self, name: str) -> Link:
        try:
            return self._name_to_link[name]
        except KeyError:
            raise ValueError(f"Link '{name}' not found in robot model")

    def get_joint_by_name(self, name: str) -> Joint:
        try:
            return self._name_to_joint[name]
        except KeyError:
            raise ValueError(f"Joint '{name}' not found in robot model")

    def get_joint_between_links(self, link_1: str, link_2: str) -> Joint:
        """The joint directly connecting two links, in either direction.

        Raises:
            NoSuchJointError: the links are not directly connected.
            AmbiguousJointError: several joints connect the same pair.
        """
        first = self.get_link_by_name(link_1)
        second = self.get_link_by_name(link_2)
        matches = [joint for joint in first.joints
                   if joint.other_link(first) is second]
        if not matches:
            raise NoSuchJointError(f"No joint connects '{link_1}' and '{link_2}'")
        if len(matches) > 1:
            raise AmbiguousJointError(
                f"Joints {[joint.name for joint in matches]} all connect "
                f"'{link_1}' and '{link_2}'")
        return matches[0]

    # Per-joint projections
    def screw_axes(self) -> Dict[str, Array]:
        """Each joint's screw axis in its child link's COM frame."""
        return {joint.name: joint.screw_axis(joint.child_link) for joint in self._joints}

    def joint_lower_limits(self) -> Dict[str, float]:
        return {joint.name: joint.lower_limit for joint in self._joints}

    def joint_upper_limits(self) -> Dict[str, float]:
        return {joint.name: joint.upper_limit for joint in self._joints}

    def joint_limit_thresholds(self) -> Dict[str, float]:
        return {joint.name: joint.limit_threshold for joint in self._joints}

    # Transforms
    def link_transforms(
        self, joint_name_to_angle: Optional[Mapping[str, float]] = None
    ) -> Dict[str, Dict[str, Array]]:
        """Transforms from each link's parent link frame(s) to the link frame.

        Returns a nested map ``{link: {parent_link: pTc}}``; a link with two
        parents (closed loop) has two entries. Joints missing from the map
        are at their rest coordinate.
        """
        angles = joint_name_to_angle or {}
        transforms: Dict[str, Dict[str, Array]] = {link.name: {} for link in self._links}
        for joint in self._joints:
            transforms[joint.child_link.name][joint.parent_link.name] = \
                joint.link_transform(angles.get(joint.name))
        return transforms

    def com_transform(self, joint_name: str, q: Optional[float] = None) -> Array:
        """Pose of the parent link's COM frame in the child link's COM frame."""
        joint = self.get_joint_by_name(joint_name)
        return joint.transform_to(joint.child_link, q)

    def com_transforms(
        self, joint_name_to_angle: Optional[Mapping[str, float]] = None
    ) -> Dict[str, Dict[str, Array]]:
        """``com_transform`` for every joint, as ``{child: {parent: cTp}}``.

        Only links with at least one parent joint appear.
        """
        angles = joint_name_to_angle or {}
        transforms: Dict[str, Dict[str, Array]] = {}
        for joint in self._joints:
            child = joint.child_link
            transforms.setdefault(child.name, {})[joint.parent_link.name] = \
                joint.transform_to(child, angles.get(joint.name))
        return transforms
