"""
Flat vertex / index buffers and the pure buffer merge.

A BufferSet is the flattened form of a submesh: one positions array plus
optional normals, a single UV set and skin channels, and a flat index
list. ``merge_buffers`` concatenates two of them into a new BufferSet
without touching either input, which is how whole meshes are folded into
a single buffer for export.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..core.constants import DEFAULT_EPS_NORM, MAX_BONE_INFLUENCES, WIDE_INDEX_THRESHOLD


@dataclass(eq=False)
class BufferSet:
    """Flat buffers of one piece of geometry."""
    positions: np.ndarray                       # (N, 3) float32
    indices: np.ndarray                         # (I,) uint16 or uint32
    normals: Optional[np.ndarray] = None        # (N, 3) float32
    uvs: Optional[np.ndarray] = None            # (N, D) float32
    bone_indices: Optional[np.ndarray] = None   # (N, 4) uint16
    bone_weights: Optional[np.ndarray] = None   # (N, 4) float32

    @property
    def vertex_count(self) -> int:
        return int(self.positions.shape[0])

    @classmethod
    def empty(cls) -> 'BufferSet':
        return cls(
            positions=np.zeros((0, 3), dtype=np.float32),
            indices=np.zeros(0, dtype=np.uint16),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, BufferSet):
            return NotImplemented
        for name in ('positions', 'indices', 'normals', 'uvs', 'bone_indices', 'bone_weights'):
            a, b = getattr(self, name), getattr(other, name)
            if (a is None) != (b is None):
                return False
            if a is not None and (a.dtype != b.dtype or not np.array_equal(a, b)):
                return False
        return True


def index_dtype(vertex_count: int, wide: bool = False, threshold: int = WIDE_INDEX_THRESHOLD):
    """uint32 when requested or when ``vertex_count`` exceeds ``threshold``, else uint16."""
    return np.uint32 if wide or vertex_count > threshold else np.uint16


def _transform_points(points: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    return (points.astype(np.float64) @ matrix[:3, :3].T + matrix[:3, 3]).astype(np.float32)


def _transform_normals(normals: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    # Inverse transpose keeps normals perpendicular under non-uniform scale
    normal_matrix = np.linalg.inv(matrix[:3, :3]).T
    transformed = normals.astype(np.float64) @ normal_matrix.T
    lengths = np.linalg.norm(transformed, axis=-1, keepdims=True)
    return (transformed / np.maximum(lengths, DEFAULT_EPS_NORM)).astype(np.float32)


def _concat_channel(
    a: Optional[np.ndarray],
    b: Optional[np.ndarray],
    count_a: int,
    count_b: int,
    width: int,
    dtype,
) -> Optional[np.ndarray]:
    """Concatenate a per-vertex channel, zero filling the side that lacks it."""
    if a is None and b is None:
        return None
    if a is not None:
        width = max(width, a.shape[1])
    if b is not None:
        width = max(width, b.shape[1])

    def _pad(channel, count):
        out = np.zeros((count, width), dtype=dtype)
        if channel is not None:
            out[:, :channel.shape[1]] = channel
        return out

    return np.concatenate([_pad(a, count_a), _pad(b, count_b)], axis=0)


def merge_buffers(
    target: BufferSet,
    source: BufferSet,
    matrix: Optional[np.ndarray] = None,
    threshold: int = WIDE_INDEX_THRESHOLD,
) -> BufferSet:
    """
    Append ``source`` to ``target``, returning a new BufferSet.

    Args:
        target: Buffers placed first
        source: Buffers appended after ``target``
        matrix: Optional 4x4 transform applied to ``source`` positions
            (normals go through its inverse transpose)
        threshold: Vertex count above which the merged indices are uint32

    Returns:
        Merged BufferSet; neither input is modified
    """
    source_positions = source.positions
    source_normals = source.normals
    if matrix is not None:
        matrix = np.asarray(matrix, dtype=np.float64)
        source_positions = _transform_points(source_positions, matrix)
        if source_normals is not None:
            source_normals = _transform_normals(source_normals, matrix)

    n_target = target.vertex_count
    n_source = source.vertex_count
    total = n_target + n_source

    wide = target.indices.dtype == np.uint32 or source.indices.dtype == np.uint32
    dtype = index_dtype(total, wide=wide, threshold=threshold)
    indices = np.concatenate([
        target.indices.astype(np.int64),
        source.indices.astype(np.int64) + n_target,
    ]).astype(dtype)

    positions = np.concatenate([
        target.positions.astype(np.float32),
        np.asarray(source_positions, dtype=np.float32),
    ], axis=0)

    return BufferSet(
        positions=positions,
        indices=indices,
        normals=_concat_channel(target.normals, source_normals, n_target, n_source, 3, np.float32),
        uvs=_concat_channel(target.uvs, source.uvs, n_target, n_source, 1, np.float32),
        bone_indices=_concat_channel(
            target.bone_indices, source.bone_indices, n_target, n_source,
            MAX_BONE_INFLUENCES, np.uint16,
        ),
        bone_weights=_concat_channel(
            target.bone_weights, source.bone_weights, n_target, n_source,
            MAX_BONE_INFLUENCES, np.float32,
        ),
    )
