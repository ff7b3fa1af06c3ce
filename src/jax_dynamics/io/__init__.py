"""I/O glue for turning robot model files into structural descriptions."""

from .urdf_parser import create_robot_from_urdf, load_urdf

__all__ = ["create_robot_from_urdf", "load_urdf"]
