"""
JAX Dynamics: articulated rigid-body models and factor graphs for robot
kinematics and dynamics.

This library builds a robot's link/joint graph (closed loops allowed) and
assembles the constraints of discretized kinematics, dynamics and
trajectory problems as factor graphs with pure, differentiable JAX
residuals, ready to be handed to a nonlinear least-squares optimizer.
"""

import jax
jax.config.update("jax_enable_x64", True)

# Import core modules
from . import transforms
from . import core
from . import io
from . import factors
from . import keys
from . import chain
from . import dynamics_graph
from .core import Joint, JointParams, JointSpec, JointType, Link, LinkSpec, Robot, RobotDescription
from .errors import (
    AmbiguousJointError,
    DynamicsError,
    InvalidEndpointError,
    MalformedStructureError,
    NoSuchJointError,
    UnsupportedCollocationError,
    UnsupportedLinkDegreeError,
)
from .factors import Factor, FactorGraph
from .io import create_robot_from_urdf, load_urdf
from .settings import OptimizerSetting

__version__ = "0.1.0"
__all__ = [
    "transforms",
    "core",
    "io",
    "factors",
    "keys",
    "chain",
    "dynamics_graph",
    "AmbiguousJointError",
    "DynamicsError",
    "Factor",
    "FactorGraph",
    "InvalidEndpointError",
    "Joint",
    "JointParams",
    "JointSpec",
    "JointType",
    "Link",
    "LinkSpec",
    "MalformedStructureError",
    "NoSuchJointError",
    "OptimizerSetting",
    "Robot",
    "RobotDescription",
    "UnsupportedCollocationError",
    "UnsupportedLinkDegreeError",
    "create_robot_from_urdf",
    "load_urdf",
]
