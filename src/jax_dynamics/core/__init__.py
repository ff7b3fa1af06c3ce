"""Core robot data structures for JAX Dynamics.

This module provides the structural description records, the Link and Joint
bodies, and the Robot graph that owns them.
"""

from .description import JointParams, JointSpec, LinkSpec, RobotDescription, pose
from .joint import Joint, JointEffortType, JointType
from .link import Link
from .robot import Robot, extract_structure

__all__ = [
    "Joint",
    "JointEffortType",
    "JointParams",
    "JointSpec",
    "JointType",
    "Link",
    "LinkSpec",
    "Robot",
    "RobotDescription",
    "extract_structure",
    "pose",
]
