"""URDF loader producing a structural description.

This is thin glue: it reads links, inertials and joints with lxml, computes
rest poses by breadth-first traversal from the root link, and hands the
result to ``Robot`` for structure extraction.
"""

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Sequence

import jax.numpy as jnp
import numpy as np
from lxml import etree

from jax_dynamics.core.description import JointParams, JointSpec, LinkSpec, RobotDescription
from jax_dynamics.core.robot import Robot
from jax_dynamics.errors import MalformedStructureError
from jax_dynamics.transforms import se3, so3

logger = logging.getLogger(__name__)

# URDF joint type -> description joint type
_JOINT_TYPES = {
    "revolute": "revolute",
    "continuous": "revolute",
    "prismatic": "prismatic",
}


def load_urdf(urdf_path: str, fixed_links: Optional[Iterable[str]] = None) -> RobotDescription:
    """Load a URDF file into a RobotDescription.

    Args:
        urdf_path: Path to the URDF file to load.
        fixed_links: Names of links pinned to their rest pose. Defaults to the
            root link (the one link that is no joint's child).

    Returns:
        RobotDescription with rest poses expressed in the root link frame.
    """
    tree = etree.parse(urdf_path)
    root = tree.getroot()

    link_elems = root.findall('link')
    link_names = [link.get('name') for link in link_elems]

    joints_info = []
    child_links = set()
    for joint in root.findall('joint'):
        parent_elem = joint.find('parent')
        child_elem = joint.find('child')
        if parent_elem is None or child_elem is None:
            raise MalformedStructureError(
                f"Joint '{joint.get('name')}' is missing its parent or child")
        info = {
            'name': joint.get('name'),
            'type': joint.get('type'),
            'parent': parent_elem.get('link'),
            'child': child_elem.get('link'),
            'joint_elem': joint,
        }
        child_links.add(info['child'])
        joints_info.append(info)

    # Find root link (not a child of any joint)
    root_links = [name for name in link_names if name not in child_links]
    if len(root_links) != 1:
        raise MalformedStructureError(f"Expected exactly one root link, found: {root_links}")
    root_link = root_links[0]

    link_poses = _link_poses(root_link, joints_info)
    missing = [name for name in link_names if name not in link_poses]
    if missing:
        raise MalformedStructureError(f"Links {missing} are not reachable from root '{root_link}'")

    fixed = set(fixed_links) if fixed_links is not None else {root_link}

    links = []
    for link_elem in link_elems:
        name = link_elem.get('name')
        mass, inertia, com_offset = _parse_inertial(link_elem.find('inertial'))
        link_pose = link_poses[name]
        links.append(LinkSpec(
            name=name,
            mass=mass,
            inertia=inertia,
            com_pose=link_pose @ com_offset,
            link_pose=link_pose,
            is_fixed=name in fixed,
        ))

    joints = []
    for info in joints_info:
        joint_type = _JOINT_TYPES.get(info['type'])
        if joint_type is None:
            raise MalformedStructureError(
                f"Joint '{info['name']}' has unsupported URDF type '{info['type']}'")
        joint_elem = info['joint_elem']

        axis_elem = joint_elem.find('axis')
        axis = _parse_vector(axis_elem.get('xyz') if axis_elem is not None else None, '1 0 0')

        lower, upper, effort, velocity = -jnp.inf, jnp.inf, jnp.inf, jnp.inf
        limit_elem = joint_elem.find('limit')
        if limit_elem is not None and info['type'] != 'continuous':
            lower = float(limit_elem.get('lower', '0'))
            upper = float(limit_elem.get('upper', '0'))
        if limit_elem is not None:
            effort = float(limit_elem.get('effort', 'inf'))
            velocity = float(limit_elem.get('velocity', 'inf'))

        joints.append(JointSpec(
            name=info['name'],
            joint_type=joint_type,
            parent=info['parent'],
            child=info['child'],
            axis=jnp.asarray(axis),
            joint_pose=link_poses[info['parent']] @ _parse_origin(joint_elem.find('origin')),
            lower_limit=lower,
            upper_limit=upper,
            velocity_limit=velocity,
            torque_limit=effort,
        ))

    return RobotDescription(
        name=root.get('name', ''),
        links=tuple(links),
        joints=tuple(joints),
        base_name=root_link,
    )


def create_robot_from_urdf(
    urdf_path: str,
    fixed_links: Optional[Iterable[str]] = None,
    joint_params: Optional[Sequence[JointParams]] = None,
) -> Robot:
    """Load a URDF file and build a Robot from it."""
    return Robot.from_description(load_urdf(urdf_path, fixed_links), joint_params)


def _link_poses(root_link: str, joints_info: List[dict]) -> Dict[str, jnp.ndarray]:
    """Rest link-frame poses by breadth-first traversal from the root.

    At rest a child link frame coincides with its joint frame. A joint whose
    child was already placed closes a loop and does not move that child.
    """
    poses = {root_link: jnp.eye(4)}
    queue = deque([root_link])
    while queue:
        current = queue.popleft()
        for info in joints_info:
            if info['parent'] != current:
                continue
            child = info['child']
            if child in poses:
                logger.warning("Joint '%s' closes a loop; keeping the pose of '%s' "
                               "found through another path", info['name'], child)
                continue
            poses[child] = poses[current] @ _parse_origin(info['joint_elem'].find('origin'))
            queue.append(child)
    return poses


def _parse_inertial(inertial_elem):
    """(mass, inertia, COM pose in link frame) of a link's <inertial> element."""
    if inertial_elem is None:
        return 0.0, jnp.zeros((3, 3)), jnp.eye(4)

    mass_elem = inertial_elem.find('mass')
    mass = float(mass_elem.get('value', '0')) if mass_elem is not None else 0.0

    inertia = np.zeros((3, 3))
    inertia_elem = inertial_elem.find('inertia')
    if inertia_elem is not None:
        ixx, ixy, ixz, iyy, iyz, izz = (
            float(inertia_elem.get(k, '0')) for k in ('ixx', 'ixy', 'ixz', 'iyy', 'iyz', 'izz'))
        inertia = np.array([
            [ixx, ixy, ixz],
            [ixy, iyy, iyz],
            [ixz, iyz, izz],
        ])

    return mass, jnp.asarray(inertia), _parse_origin(inertial_elem.find('origin'))


def _parse_origin(origin_elem) -> jnp.ndarray:
    if origin_elem is None:
        return jnp.eye(4)
    xyz = _parse_vector(origin_elem.get('xyz'), '0 0 0')
    rpy = _parse_vector(origin_elem.get('rpy'), '0 0 0')
    return se3.from_position_and_rotation(jnp.asarray(xyz), so3.from_rpy(rpy))


def _parse_vector(text: Optional[str], default: str) -> np.ndarray:
    return np.array([float(x) for x in (text or default).split()])
