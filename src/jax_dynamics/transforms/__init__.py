"""
JAX-based spatial algebra for rigid-body kinematics and dynamics.

This module provides pure, JIT-compilable implementations of:
- SO(3) rotations (so3 module)
- SE(3) rigid body transforms, twists, screws and wrenches (se3 module)
"""

from . import so3
from . import se3

__all__ = [
    "so3",
    "se3",
]
