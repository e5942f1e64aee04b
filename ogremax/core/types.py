"""
Type aliases and array conventions for ogremax.

Array Conventions:
==================

Quaternions are stored as numpy arrays of shape (4,) in [w, x, y, z]
order, w being the scalar part. Vectors are (3,) arrays, 4x4 matrices use
the column-vector convention (translation in the last column).

Vertex channels are stored as (N, C) arrays:
    positions:    (N, 3) float32
    normals:      (N, 3) float32
    uv set:       (N, D) float32 with D in {1, 2, 3}
    bone indices: (N, 4) uint16
    bone weights: (N, 4) float32

Index buffers are flat 1-D arrays of uint16 or uint32 depending on the
vertex count they address.
"""

from typing import Any, Callable, Tuple

import numpy as np


# =============================================================================
# Basic Type Aliases
# =============================================================================

# Plain 3-tuple used for colors and authored vectors
Vector3 = Tuple[float, float, float]

# RGB color, each component in [0, 1]
Color = Tuple[float, float, float]

# Quaternion [w, x, y, z] as a (4,) float64 array
Quaternion = np.ndarray

# 4x4 homogeneous transform
Matrix4 = np.ndarray

# Opaque handle returned by a texture resolver
TextureHandle = Any

# (texture name, texture base path) -> texture handle
TextureResolver = Callable[[str, str], TextureHandle]

# Called with every payload a dependency resolves to
PayloadHandler = Callable[[Any], None]

# (loaded, total) progress notification
ProgressCallback = Callable[[int, int], None]
