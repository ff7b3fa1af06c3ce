"""Shared robot fixtures."""

from pathlib import Path

import jax.numpy as jnp
import pytest

from jax_dynamics.core import JointSpec, LinkSpec, Robot, RobotDescription, pose
from jax_dynamics.io import create_robot_from_urdf

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def simple_robot():
    """Two links, one revolute joint about x; l1 fixed."""
    return create_robot_from_urdf(str(FIXTURES / "simple_urdf.urdf"))


@pytest.fixture
def four_bar_robot():
    """Ring l1-l2-l3-l4 closed by j4, mounted on the fixed link l0."""
    return create_robot_from_urdf(str(FIXTURES / "four_bar_linkage.urdf"))


def link_spec(name, position=(0.0, 0.0, 0.0), mass=1.0, is_fixed=False):
    return LinkSpec(
        name=name,
        mass=mass,
        inertia=jnp.eye(3) * 0.1,
        com_pose=pose(position),
        link_pose=pose(position),
        is_fixed=is_fixed,
    )


def joint_spec(name, parent, child, position=(0.0, 0.0, 0.0), axis=(0.0, 0.0, 1.0),
               joint_type="revolute"):
    return JointSpec(
        name=name,
        joint_type=joint_type,
        parent=parent,
        child=child,
        axis=jnp.asarray(axis),
        joint_pose=pose(position),
    )


def star_description(num_arms):
    """A hub link with ``num_arms`` child links hanging off it."""
    links = [link_spec("base", is_fixed=True), link_spec("hub", (0.0, 0.0, 1.0))]
    joints = [joint_spec("base_hub", "base", "hub", (0.0, 0.0, 0.5))]
    for i in range(num_arms):
        links.append(link_spec(f"arm{i}", (float(i + 1), 0.0, 1.0)))
        joints.append(joint_spec(f"hub_arm{i}", "hub", f"arm{i}", (float(i) + 0.5, 0.0, 1.0)))
    return RobotDescription(name=f"star{num_arms}", links=tuple(links), joints=tuple(joints))


@pytest.fixture
def star_robot_factory():
    def make(num_arms):
        return Robot(star_description(num_arms))
    return make
