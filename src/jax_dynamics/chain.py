"""Graph kinematics: forward kinematics and body Jacobians.

The robot graph may contain loops, so forward kinematics walks a breadth-first
spanning tree rooted at the fixed links; joints that close a loop are not
used for placing links. All loops are over Python structure, and only the
joint coordinates are traced, so both functions can be wrapped in ``jax.jit``
with the robot closed over.
"""

from collections import deque
from typing import Dict, List, Tuple

import jax.numpy as jnp
from jax import Array

from .core.joint import Joint
from .core.link import Link
from .core.robot import Robot
from .transforms import se3


def _spanning_tree(robot: Robot) -> Tuple[List[Link], Dict[str, Tuple[Joint, Link]]]:
    """Breadth-first order of links and, for each non-root link, the tree
    edge (joint, predecessor) it was reached through."""
    roots = [link for link in robot.links if link.is_fixed]
    if not roots:
        roots = [robot.get_link_by_name(robot.base_name)]

    order = list(roots)
    edges: Dict[str, Tuple[Joint, Link]] = {}
    visited = {link.name for link in roots}
    queue = deque(roots)
    while queue:
        link = queue.popleft()
        for joint in link.joints:
            other = joint.other_link(link)
            if other.name in visited:
                continue
            visited.add(other.name)
            edges[other.name] = (joint, link)
            order.append(other)
            queue.append(other)
    return order, edges


def forward_kinematics(robot: Robot, q: Array) -> Dict[str, Array]:
    """COM poses of all links in the world frame.

    Fixed links (or the base link, if none is fixed) stay at their rest
    pose.

    Args:
        robot: Robot whose links to place.
        q: Joint coordinates of shape (num_joints,), in ``robot.joints`` order.

    Returns:
        Dictionary mapping link names to their 4x4 SE(3) COM poses.
    """
    q = jnp.asarray(q)
    if q.shape != (robot.num_joints,):
        raise ValueError(f"Expected {robot.num_joints} joint coordinates, got shape {q.shape}")

    order, edges = _spanning_tree(robot)
    poses: Dict[str, Array] = {}
    for link in order:
        if link.name not in edges:
            poses[link.name] = link.com_pose
            continue
        joint, previous = edges[link.name]
        poses[link.name] = poses[previous.name] @ joint.transform_to(previous, q[joint.id])
    return {name: poses[name] for name in robot.link_names}


def jacobian(robot: Robot, q: Array, link_name: str) -> Array:
    """Body Jacobian of a link's COM frame w.r.t. the joint coordinates.

    Column ``j`` is the twist of the link, in its own COM frame, produced by
    a unit velocity of joint ``j``; joints off the spanning-tree path from the
    fixed links have zero columns.

    Args:
        robot: Robot containing the link.
        q: Joint coordinates of shape (num_joints,).
        link_name: Name of the target link.

    Returns:
        (6, num_joints) Jacobian in [angular; linear] order.
    """
    target = robot.get_link_by_name(link_name)
    poses = forward_kinematics(robot, q)
    _, edges = _spanning_tree(robot)

    pose_target_inv = se3.inverse(poses[target.name])
    J = jnp.zeros((6, robot.num_joints))
    current = target
    while current.name in edges:
        joint, previous = edges[current.name]
        # The joint moves `current` relative to `previous`
        target_T_current = pose_target_inv @ poses[current.name]
        column = se3.adjoint(target_T_current) @ joint.screw_axis(current)
        J = J.at[:, joint.id].set(column)
        current = previous
    return J
