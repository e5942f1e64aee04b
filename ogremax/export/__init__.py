"""
Export of loaded assets to host libraries (trimesh, torch).
"""

from .sink import CoordinateSystem, to_trimesh, to_trimesh_scene
from .tensors import to_tensors

__all__ = [
    "CoordinateSystem",
    "to_trimesh",
    "to_trimesh_scene",
    "to_tensors",
]
