"""
trimesh export of loaded assets.

Converts MeshAsset and SceneAsset records into trimesh objects. Scenes
authored with a Z-up (or X-up) convention are rotated into Y-up.
"""

import logging
from typing import Optional

import numpy as np

from ..formats.records import MeshAsset, SceneAsset

logger = logging.getLogger(__name__)


# =============================================================================
# Coordinate System Handling
# =============================================================================

class CoordinateSystem:
    """Up-axis conversion utilities."""

    Y_UP = 'y'      # target
    Z_UP = 'z'
    X_UP = 'x'

    # Conversion matrices to Y-up, right-handed
    _CONVERSIONS = {
        ('z', 'y'): np.array([
            [1, 0, 0, 0],
            [0, 0, 1, 0],
            [0, -1, 0, 0],
            [0, 0, 0, 1]
        ], dtype=np.float64),
        ('x', 'y'): np.array([
            [0, -1, 0, 0],
            [1, 0, 0, 0],
            [0, 0, 1, 0],
            [0, 0, 0, 1]
        ], dtype=np.float64),
    }

    @staticmethod
    def get_conversion_matrix(from_axis: str, to_axis: str = 'y') -> np.ndarray:
        """Get 4x4 transformation matrix for up-axis conversion."""
        if from_axis == to_axis:
            return np.eye(4, dtype=np.float64)

        key = (from_axis, to_axis)
        if key in CoordinateSystem._CONVERSIONS:
            return CoordinateSystem._CONVERSIONS[key]

        # Try inverse
        inverse_key = (to_axis, from_axis)
        if inverse_key in CoordinateSystem._CONVERSIONS:
            return np.linalg.inv(CoordinateSystem._CONVERSIONS[inverse_key])

        logger.warning(f"Unknown up-axis conversion: {from_axis} -> {to_axis}, using identity")
        return np.eye(4, dtype=np.float64)


# =============================================================================
# Export
# =============================================================================

def to_trimesh(mesh: MeshAsset, matrix: Optional[np.ndarray] = None):
    """
    Convert the triangle submeshes of a mesh into one trimesh.Trimesh.

    Args:
        mesh: Loaded MeshAsset
        matrix: Optional 4x4 transform applied to the geometry

    Returns:
        trimesh.Trimesh (unprocessed, vertex order preserved)
    """
    import trimesh

    buffers = mesh.merged(matrix)
    faces = buffers.indices.astype(np.int64).reshape(-1, 3)

    visual = None
    if buffers.uvs is not None and buffers.uvs.shape[1] >= 2:
        visual = trimesh.visual.TextureVisuals(uv=buffers.uvs[:, :2])

    result = trimesh.Trimesh(
        vertices=buffers.positions,
        faces=faces,
        vertex_normals=buffers.normals,
        visual=visual,
        process=False,
    )
    result.metadata['name'] = mesh.name
    return result


def to_trimesh_scene(scene: SceneAsset):
    """
    Convert a loaded scene into a trimesh.Scene.

    Every visible node carrying an entity with a resolved mesh becomes one
    geometry instance, placed with the node's world transform.

    Args:
        scene: Loaded SceneAsset

    Returns:
        trimesh.Scene in Y-up coordinates
    """
    import trimesh

    result = trimesh.Scene()
    conversion = CoordinateSystem.get_conversion_matrix(scene.up_axis)

    for index, (node, world) in enumerate(scene.root.walk_with_matrix()):
        entity = node.entity
        if entity is None or entity.mesh is None:
            continue
        if not node.visible:
            logger.debug(f"Skipping hidden node {node.name!r}")
            continue

        geometry = to_trimesh(entity.mesh)
        if len(geometry.faces) == 0:
            logger.debug(f"Entity {entity.name!r} has no triangles, skipping")
            continue

        result.add_geometry(
            geometry,
            node_name=f"{node.name or 'node'}_{index}",
            geom_name=entity.name or entity.mesh_file,
            transform=conversion @ world,
        )

    result.metadata['up_axis'] = scene.up_axis
    result.metadata['units_per_meter'] = scene.metadata.units_per_meter
    return result
