"""
Utility functions for ogremax.

Includes quaternion operations, rotation decoding, lxml element helpers
and configuration management.
"""

from .quaternion import (
    identity_quaternion,
    normalize_quaternion,
    quaternion_conjugate,
    quaternion_multiply,
    quaternion_from_axis_angle,
    quaternion_to_matrix,
    matrix_to_quaternion,
    quaternion_slerp,
    rotate_vector,
    compose_matrix,
    decompose_matrix,
)
from .elements import parse_xml
from .rotation import LocalTransform, decode_rotation, parse_transform
from .config import LoaderConfig, load_config, save_config

__all__ = [
    # Quaternion operations
    "identity_quaternion",
    "normalize_quaternion",
    "quaternion_conjugate",
    "quaternion_multiply",
    "quaternion_from_axis_angle",
    "quaternion_to_matrix",
    "matrix_to_quaternion",
    "quaternion_slerp",
    "rotate_vector",
    "compose_matrix",
    "decompose_matrix",
    # XML
    "parse_xml",
    # Rotation / transforms
    "LocalTransform",
    "decode_rotation",
    "parse_transform",
    # Config
    "LoaderConfig",
    "load_config",
    "save_config",
]
