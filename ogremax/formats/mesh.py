"""
Mesh document assembler.

Builds a MeshAsset from a ``<mesh>`` root:

- an optional ``<sharedgeometry>`` pool, parsed once and reused by every
  submesh flagged ``usesharedvertices``
- per submesh: private ``<geometry>``, ``<faces>`` and
  ``<boneassignments>``
- ``<submeshnames>`` and an optional ``<skeletonlink>``, which is handed to
  the dependency requester

Skin weights are slot packed (4 per vertex) and kept exactly as authored.
"""

import logging
from typing import Dict, List, Optional

import numpy as np
from lxml import etree

from ..core.constants import (
    DEFAULT_OPERATION_TYPE,
    DEFAULT_TEXCOORD_DIMENSION,
    MAX_BONE_INFLUENCES,
    WIDE_INDEX_THRESHOLD,
)
from ..core.errors import FormatError, IndexRangeError, StructuralError
from ..utils.elements import (
    attr_bool,
    attr_float,
    attr_int,
    attr_str,
    attr_vector,
    child,
    children,
    describe,
    has_attr,
)
from .buffers import BufferSet, index_dtype, merge_buffers
from .dependencies import DependencyKind
from .records import (
    GeometryBuffers,
    MeshAsset,
    OperationType,
    SkinBinding,
    Submesh,
)

logger = logging.getLogger(__name__)

_FACE_ATTRS = ('v1', 'v2', 'v3')
_ASSIGNMENT_TAGS = ('vertexboneassignment', 'boneassignment')
_UV_ATTRS = ('u', 'v', 'w')

__all__ = [
    'parse_mesh',
    'parse_geometry',
    'parse_faces',
    'pack_skin',
    'merge_buffers',
    'BufferSet',
]


# =============================================================================
# Geometry
# =============================================================================

def _texcoord_dimension(vertex_buffer: etree._Element, slot: int) -> int:
    """Dimension of texture coordinate set ``slot``: "1".."3" or "float1".."float3"."""
    name = f'texture_coord_dimensions_{slot}'
    raw = attr_str(vertex_buffer, name)
    if raw is None:
        return DEFAULT_TEXCOORD_DIMENSION

    text = raw.strip().lower()
    if text.startswith('float'):
        text = text[len('float'):]
    try:
        dimension = int(text)
    except ValueError:
        dimension = -1

    if dimension not in (1, 2, 3):
        raise FormatError(
            f"{name} = {raw!r} (expected 1, 2 or 3)",
            node=describe(vertex_buffer),
        )
    return dimension


def _parse_vertex_buffer(vertex_buffer: etree._Element) -> Dict[str, object]:
    has_positions = attr_bool(vertex_buffer, 'positions')
    has_normals = attr_bool(vertex_buffer, 'normals')
    texcoord_count = attr_int(vertex_buffer, 'texture_coords', 0)
    dimensions = [_texcoord_dimension(vertex_buffer, i) for i in range(texcoord_count)]

    positions, normals = [], []
    uv_sets: List[List[List[float]]] = [[] for _ in dimensions]

    for vertex in children(vertex_buffer, 'vertex'):
        if has_positions:
            positions.append(attr_vector(child(vertex, 'position')))
        if has_normals:
            normals.append(attr_vector(child(vertex, 'normal')))
        if dimensions:
            texcoords = list(children(vertex, 'texcoord'))
            for i, dimension in enumerate(dimensions):
                texcoord = texcoords[i] if i < len(texcoords) else None
                uv_sets[i].append([attr_float(texcoord, name, 0.0) for name in _UV_ATTRS[:dimension]])

    return {
        'positions': np.array(positions, dtype=np.float32).reshape(-1, 3) if has_positions else None,
        'normals': np.array(normals, dtype=np.float32).reshape(-1, 3) if has_normals else None,
        'uv_sets': [
            np.array(uvs, dtype=np.float32).reshape(-1, dimension)
            for uvs, dimension in zip(uv_sets, dimensions)
        ],
    }


def parse_geometry(geometry: etree._Element) -> GeometryBuffers:
    """
    Parse a ``<geometry>`` or ``<sharedgeometry>`` block.

    Vertex buffers are parallel channel streams over the same vertices:
    one of them carries positions, others may add normals and texture
    coordinate sets. Sets are numbered in buffer order.

    Args:
        geometry: ``<geometry>`` / ``<sharedgeometry>`` element

    Returns:
        GeometryBuffers

    Raises:
        FormatError: If the declared ``vertexcount`` differs from the parsed
            count, a channel length disagrees, a texture coordinate
            dimension is invalid or a value is not finite
    """
    positions: Optional[np.ndarray] = None
    normals: Optional[np.ndarray] = None
    uv_sets: List[np.ndarray] = []

    for vertex_buffer in children(geometry, 'vertexbuffer'):
        channels = _parse_vertex_buffer(vertex_buffer)
        if channels['positions'] is not None:
            if positions is not None:
                raise FormatError("Duplicate positions channel", node=describe(vertex_buffer))
            positions = channels['positions']
        if channels['normals'] is not None:
            if normals is not None:
                raise FormatError("Duplicate normals channel", node=describe(vertex_buffer))
            normals = channels['normals']
        uv_sets.extend(channels['uv_sets'])

    if positions is None:
        positions = np.zeros((0, 3), dtype=np.float32)

    parsed = positions.shape[0]
    declared = attr_int(geometry, 'vertexcount', parsed)
    if declared != parsed:
        raise FormatError(
            f"vertexcount {declared} differs from parsed {parsed}",
            declared=declared,
            parsed=parsed,
        )

    if normals is not None and normals.shape[0] != parsed:
        raise FormatError(f"Normal count {normals.shape[0]} differs from vertex count {parsed}")
    for i, uvs in enumerate(uv_sets):
        if uvs.shape[0] != parsed:
            raise FormatError(f"Texture coordinate set {i} has {uvs.shape[0]} entries, expected {parsed}")

    for name, values in (('position', positions), ('normal', normals)):
        if values is not None and not np.all(np.isfinite(values)):
            raise FormatError(f"Non-finite {name} value in geometry")

    return GeometryBuffers(positions=positions, normals=normals, uv_sets=uv_sets)


# =============================================================================
# Faces
# =============================================================================

def parse_faces(
    faces: Optional[etree._Element],
    operation: OperationType,
    vertex_count: int,
) -> np.ndarray:
    """
    Flatten ``<face>`` records into an index list.

    Args:
        faces: ``<faces>`` element or None
        operation: Primitive layout; decides how many of v1/v2/v3 are read
        vertex_count: Number of addressable vertices

    Returns:
        (I,) int64 indices; the caller narrows the dtype

    Raises:
        StructuralError: If a face lacks a required vertex attribute
        FormatError: If a vertex attribute is not an integer
        IndexRangeError: If an index is negative or >= vertex_count
    """
    per_face = operation.indices_per_face
    names = _FACE_ATTRS[:per_face]
    indices: List[int] = []

    for face in children(faces, 'face'):
        face_indices = []
        for name in names:
            if not has_attr(face, name):
                raise StructuralError(f"Face is missing '{name}'", node=describe(face))
            raw = attr_str(face, name)
            try:
                face_indices.append(int(raw))
            except ValueError:
                raise FormatError(f"Face index {name}={raw!r} is not an integer", node=describe(face)) from None

        if any(i < 0 or i >= vertex_count for i in face_indices):
            listed = ' '.join(f"{n}:{i}" for n, i in zip(names, face_indices))
            raise IndexRangeError(
                f"Face index out of range ({listed} >= {vertex_count})",
                indices=face_indices,
                vertex_count=vertex_count,
                node=describe(face),
            )
        indices.extend(face_indices)

    return np.array(indices, dtype=np.int64)


# =============================================================================
# Skin Packing
# =============================================================================

def pack_skin(assignments: Optional[etree._Element], vertex_count: int) -> Optional[SkinBinding]:
    """
    Pack bone assignments into four (bone, weight) slots per vertex.

    Each assignment goes into the first slot of its vertex whose weight is
    exactly zero. Weights are stored as authored, never renormalized.

    Args:
        assignments: ``<boneassignments>`` element or None
        vertex_count: Number of vertices the assignments address

    Returns:
        SkinBinding, or None when there are no assignments

    Raises:
        IndexRangeError: On a vertex index outside [0, vertex_count) or a
            negative bone index
        FormatError: On a fifth assignment to one vertex or a non-finite weight
    """
    records = list(children(assignments, *_ASSIGNMENT_TAGS))
    if not records:
        return None

    bone_indices = np.zeros((vertex_count, MAX_BONE_INFLUENCES), dtype=np.uint16)
    bone_weights = np.zeros((vertex_count, MAX_BONE_INFLUENCES), dtype=np.float32)

    for record in records:
        vertex = attr_int(record, 'vertexindex', -1)
        bone = attr_int(record, 'boneindex', -1)
        weight = attr_float(record, 'weight', 0.0)

        if vertex < 0 or vertex >= vertex_count:
            raise IndexRangeError(
                f"Bone assignment vertex {vertex} out of range (vertex count {vertex_count})",
                vertex=vertex,
                node=describe(record),
            )
        if bone < 0 or bone > np.iinfo(np.uint16).max:
            raise IndexRangeError(f"Invalid bone index {bone}", vertex=vertex, node=describe(record))
        if not np.isfinite(weight):
            raise FormatError(f"Non-finite weight for vertex {vertex}", vertex=vertex)

        free = np.flatnonzero(bone_weights[vertex] == 0)
        if free.size == 0:
            raise FormatError(
                f"Vertex {vertex} has more than {MAX_BONE_INFLUENCES} bone assignments",
                vertex=vertex,
            )
        slot = free[0]
        bone_indices[vertex, slot] = bone
        bone_weights[vertex, slot] = weight

    return SkinBinding(bone_indices=bone_indices, bone_weights=bone_weights)


# =============================================================================
# Mesh
# =============================================================================

def _operation_type(submesh: etree._Element) -> OperationType:
    raw = attr_str(submesh, 'operationtype', DEFAULT_OPERATION_TYPE)
    try:
        return OperationType(raw.strip().lower())
    except ValueError:
        raise FormatError(f"Unsupported operationtype {raw!r}", node=describe(submesh)) from None


def _submesh_names(mesh: etree._Element) -> Dict[int, str]:
    names = {}
    for entry in children(child(mesh, 'submeshnames'), 'submeshname'):
        names[attr_int(entry, 'index', len(names))] = attr_str(entry, 'name', '')
    return names


def parse_mesh(
    root: etree._Element,
    dependencies,
    name: str = '',
    wide_index_threshold: int = WIDE_INDEX_THRESHOLD,
) -> MeshAsset:
    """
    Assemble a ``<mesh>`` document.

    Args:
        root: ``<mesh>`` element
        dependencies: Object with ``request(kind, name, handler)``; receives
            the skeleton link, if any
        name: Mesh name, usually the document file name
        wide_index_threshold: Combined vertex count above which all
            submeshes use uint32 indices

    Returns:
        MeshAsset

    Raises:
        StructuralError: If the mesh has no geometry at all
        FormatError: On count mismatches, a missing shared pool or too many
            skin influences
        IndexRangeError: On out-of-range face or assignment indices
    """
    shared_node = child(root, 'sharedgeometry')
    submesh_nodes = list(children(child(root, 'submeshes'), 'submesh'))
    if shared_node is None and not submesh_nodes:
        raise StructuralError("Mesh contains no geometry", mesh=name)

    mesh = MeshAsset(name=name)
    if shared_node is not None:
        mesh.shared_geometry = parse_geometry(shared_node)

    # Mesh level assignments address the shared pool
    shared_skin = None
    mesh_assignments = child(root, 'boneassignments')
    if mesh.shared_geometry is not None:
        shared_skin = pack_skin(mesh_assignments, mesh.shared_geometry.vertex_count)
    elif mesh_assignments is not None and len(mesh_assignments):
        logger.warning(f"Mesh {name!r}: ignoring mesh level <boneassignments> without <sharedgeometry>")

    names = _submesh_names(root)
    wide_flags = []
    for index, node in enumerate(submesh_nodes):
        operation = _operation_type(node)
        uses_shared = attr_bool(node, 'usesharedvertices')

        if uses_shared:
            if mesh.shared_geometry is None:
                raise FormatError(
                    f"Submesh {index} uses shared vertices but the mesh has no shared geometry",
                    submesh=index,
                )
            geometry = mesh.shared_geometry
        else:
            geometry_node = child(node, 'geometry')
            if geometry_node is None:
                raise StructuralError(f"Submesh {index} has no geometry", submesh=index)
            geometry = parse_geometry(geometry_node)

        indices = parse_faces(child(node, 'faces'), operation, geometry.vertex_count)

        skin = pack_skin(child(node, 'boneassignments'), geometry.vertex_count)
        if skin is None and uses_shared:
            skin = shared_skin

        mesh.submeshes.append(Submesh(
            name=names.get(index, f'submesh{index}'),
            material=attr_str(node, 'material', ''),
            material_index=index,
            operation=operation,
            uses_shared_vertices=uses_shared,
            geometry=geometry,
            indices=indices,
            skin=skin,
        ))
        wide_flags.append(attr_bool(node, 'use32bitindexes'))

    total = mesh.vertex_count
    if total == 0:
        raise FormatError("Mesh has zero vertices", mesh=name)

    for submesh, wide in zip(mesh.submeshes, wide_flags):
        submesh.indices = submesh.indices.astype(
            index_dtype(total, wide=wide, threshold=wide_index_threshold)
        )

    link = child(root, 'skeletonlink')
    if link is not None:
        skeleton_name = attr_str(link, 'name')
        if not skeleton_name:
            raise StructuralError("skeletonlink without a name", mesh=name)
        mesh.skeleton_link = skeleton_name
        dependencies.request(DependencyKind.SKELETON, skeleton_name, mesh.bind_skeleton)

    logger.debug(
        f"Mesh {name!r}: {len(mesh.submeshes)} submeshes, {total} vertices, "
        f"skeleton={mesh.skeleton_link}"
    )
    return mesh
