"""
Asset records produced by the document assemblers.

Every record is a plain dataclass backed by numpy arrays. Records compare
by value (arrays compared element-wise, dtype included) so two independent
parses of the same document are equal.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from functools import reduce
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from ..core.constants import (
    DEFAULT_BASE_COLOR,
    DEFAULT_CLIP_FAR,
    DEFAULT_CLIP_NEAR,
    DEFAULT_EMISSIVE_COLOR,
    DEFAULT_SHININESS,
    DEFAULT_SPECULAR_COLOR,
    DEFAULT_UP_AXIS,
)
from ..core.types import Color, TextureHandle
from ..utils.quaternion import quaternion_slerp
from ..utils.rotation import LocalTransform
from .buffers import BufferSet, merge_buffers


# =============================================================================
# Enumerations
# =============================================================================

class DocumentKind(str, Enum):
    """Root element of an Ogre XML document."""
    SCENE = 'scene'
    MESH = 'mesh'
    SKELETON = 'skeleton'


class OperationType(str, Enum):
    """Primitive layout of a submesh index list."""
    TRIANGLE_LIST = 'triangle_list'
    LINE_LIST = 'line_list'
    LINE_STRIP = 'line_strip'

    @property
    def indices_per_face(self) -> int:
        return {
            OperationType.TRIANGLE_LIST: 3,
            OperationType.LINE_LIST: 2,
            OperationType.LINE_STRIP: 1,
        }[self]


class TrackChannel(str, Enum):
    POSITION = 'position'
    ROTATION = 'rotation'
    SCALE = 'scale'


class BlendMode(str, Enum):
    NORMAL = 'normal'
    ADDITIVE = 'additive'
    MULTIPLY = 'multiply'


# =============================================================================
# Value Equality
# =============================================================================

def _values_equal(a: Any, b: Any) -> bool:
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        if not (isinstance(a, np.ndarray) and isinstance(b, np.ndarray)):
            return False
        return a.dtype == b.dtype and np.array_equal(a, b)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(_values_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(_values_equal(a[k], b[k]) for k in a)
    return a == b


class _RecordEquality:
    """Field-by-field equality for dataclasses holding numpy arrays."""

    def __eq__(self, other) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return all(
            _values_equal(getattr(self, f.name), getattr(other, f.name))
            for f in fields(self)
        )

    __hash__ = None


# =============================================================================
# Geometry Records
# =============================================================================

@dataclass(eq=False)
class GeometryBuffers(_RecordEquality):
    """Vertex channels of a shared pool or of one submesh."""
    positions: np.ndarray                       # (N, 3) float32
    normals: Optional[np.ndarray] = None        # (N, 3) float32
    uv_sets: List[np.ndarray] = field(default_factory=list)  # each (N, D), D in {1, 2, 3}

    @property
    def vertex_count(self) -> int:
        return int(self.positions.shape[0])


@dataclass(eq=False)
class SkinBinding(_RecordEquality):
    """Up to four (bone index, weight) slots per vertex, weights as authored."""
    bone_indices: np.ndarray    # (N, 4) uint16
    bone_weights: np.ndarray    # (N, 4) float32

    def influence_counts(self) -> np.ndarray:
        """Number of occupied slots per vertex."""
        return np.count_nonzero(self.bone_weights != 0, axis=1)


@dataclass(eq=False)
class Submesh(_RecordEquality):
    """
    One independently indexed piece of a mesh.

    When ``uses_shared_vertices`` is set, ``geometry`` is the mesh's shared
    pool object itself, not a copy.
    """
    name: str
    material: str
    material_index: int
    operation: OperationType
    uses_shared_vertices: bool
    geometry: GeometryBuffers
    indices: np.ndarray                         # (I,) uint16 or uint32
    skin: Optional[SkinBinding] = None
    skeleton: Optional['SkeletonAsset'] = None
    animations: List['AnimationClip'] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        return self.geometry.vertex_count

    @property
    def is_skinned(self) -> bool:
        return self.skin is not None

    def buffers(self) -> BufferSet:
        """Flatten into a BufferSet (first UV set only)."""
        geometry = self.geometry
        return BufferSet(
            positions=geometry.positions,
            indices=self.indices,
            normals=geometry.normals,
            uvs=geometry.uv_sets[0] if geometry.uv_sets else None,
            bone_indices=self.skin.bone_indices if self.skin is not None else None,
            bone_weights=self.skin.bone_weights if self.skin is not None else None,
        )


# =============================================================================
# Skeleton Records
# =============================================================================

@dataclass(eq=False)
class Bone(_RecordEquality):
    """A bone; ``index`` is its declared id and its position in the bone array."""
    index: int
    name: str
    transform: LocalTransform
    parent: int = -1
    children: List[int] = field(default_factory=list)


@dataclass(eq=False)
class KeyframeTrack(_RecordEquality):
    """
    Time-value sequence of one channel of one bone.

    Values are absolute (already composed onto the rest pose): (K, 3) for
    position and scale, (K, 4) quaternions [w, x, y, z] for rotation.
    """
    bone: str
    bone_index: int
    channel: TrackChannel
    times: np.ndarray       # (K,) float32, ascending
    values: np.ndarray      # (K, 3) or (K, 4)

    def __len__(self) -> int:
        return int(self.times.shape[0])

    def sample(self, t: float) -> np.ndarray:
        """
        Interpolate the track at time ``t``.

        Position and scale are interpolated linearly, rotations with slerp.
        Times outside the keyed range clamp to the first / last key.
        """
        times = self.times
        if t <= times[0]:
            return self.values[0].astype(np.float64)
        if t >= times[-1]:
            return self.values[-1].astype(np.float64)

        i = int(np.searchsorted(times, t, side='right')) - 1
        t0, t1 = float(times[i]), float(times[i + 1])
        alpha = 0.0 if t1 <= t0 else (t - t0) / (t1 - t0)

        v0 = self.values[i].astype(np.float64)
        v1 = self.values[i + 1].astype(np.float64)
        if self.channel == TrackChannel.ROTATION:
            return quaternion_slerp(v0, v1, alpha)
        return v0 + alpha * (v1 - v0)


@dataclass(eq=False)
class AnimationClip(_RecordEquality):
    name: str
    duration: float
    loop: bool = True
    tracks: List[KeyframeTrack] = field(default_factory=list)

    def tracks_for(self, bone: str) -> List[KeyframeTrack]:
        return [track for track in self.tracks if track.bone == bone]


@dataclass(eq=False)
class SkeletonAsset(_RecordEquality):
    """Bones ordered by declared id, plus their animation clips."""
    bones: List[Bone] = field(default_factory=list)
    animations: List[AnimationClip] = field(default_factory=list)

    @property
    def bone_names(self) -> List[str]:
        return [bone.name for bone in self.bones]

    def bone_by_name(self, name: str) -> Optional[Bone]:
        for bone in self.bones:
            if bone.name == name:
                return bone
        return None

    def parent_of(self, name: str) -> Optional[Bone]:
        bone = self.bone_by_name(name)
        if bone is None or bone.parent < 0:
            return None
        return self.bones[bone.parent]

    def roots(self) -> List[Bone]:
        return [bone for bone in self.bones if bone.parent < 0]

    def animation(self, name: str) -> Optional[AnimationClip]:
        for clip in self.animations:
            if clip.name == name:
                return clip
        return None


# =============================================================================
# Mesh Records
# =============================================================================

@dataclass(eq=False)
class MeshAsset(_RecordEquality):
    """
    All submeshes of a mesh document.

    ``skeleton_link`` is the referenced skeleton name as authored;
    ``skeleton`` and ``animations`` are filled once it has been loaded.
    """
    name: str = ''
    shared_geometry: Optional[GeometryBuffers] = None
    submeshes: List[Submesh] = field(default_factory=list)
    skeleton_link: Optional[str] = None
    skeleton: Optional[SkeletonAsset] = None
    animations: List[AnimationClip] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        """Combined vertex count of the shared pool and every private geometry."""
        count = self.shared_geometry.vertex_count if self.shared_geometry is not None else 0
        for submesh in self.submeshes:
            if not submesh.uses_shared_vertices:
                count += submesh.vertex_count
        return count

    def submesh_by_name(self, name: str) -> Optional[Submesh]:
        for submesh in self.submeshes:
            if submesh.name == name:
                return submesh
        return None

    def bind_skeleton(self, skeleton: SkeletonAsset) -> None:
        """Attach a loaded skeleton to the mesh and to every skinned submesh."""
        self.skeleton = skeleton
        self.animations = list(skeleton.animations)
        for submesh in self.submeshes:
            if submesh.is_skinned:
                submesh.skeleton = skeleton
                submesh.animations = list(skeleton.animations)

    def merged(self, matrix: Optional[np.ndarray] = None) -> BufferSet:
        """Fold every triangle submesh into one BufferSet."""
        triangles = [
            submesh.buffers() for submesh in self.submeshes
            if submesh.operation == OperationType.TRIANGLE_LIST
        ]
        return reduce(
            lambda acc, buffers: merge_buffers(acc, buffers, matrix),
            triangles,
            BufferSet.empty(),
        )


# =============================================================================
# Material Records
# =============================================================================

@dataclass(eq=False)
class MaterialDescriptor(_RecordEquality):
    name: str
    base_color: Color = DEFAULT_BASE_COLOR
    specular_color: Color = DEFAULT_SPECULAR_COLOR
    shininess: float = DEFAULT_SHININESS
    emissive_color: Color = DEFAULT_EMISSIVE_COLOR
    emissive_intensity: Optional[float] = None
    blend_mode: BlendMode = BlendMode.NORMAL
    transparent: bool = False
    opacity: float = 1.0
    diffuse_map: Optional[TextureHandle] = None
    emissive_map: Optional[TextureHandle] = None


@dataclass(eq=False)
class MaterialLibrary(_RecordEquality):
    """Materials of one script, in declaration order."""
    materials: Dict[str, MaterialDescriptor] = field(default_factory=dict)

    def add(self, material: MaterialDescriptor) -> None:
        self.materials[material.name] = material

    def get(self, name: str) -> Optional[MaterialDescriptor]:
        return self.materials.get(name)

    @property
    def names(self) -> List[str]:
        return list(self.materials)

    def __getitem__(self, name: str) -> MaterialDescriptor:
        return self.materials[name]

    def __contains__(self, name: str) -> bool:
        return name in self.materials

    def __iter__(self) -> Iterator[MaterialDescriptor]:
        return iter(self.materials.values())

    def __len__(self) -> int:
        return len(self.materials)


# =============================================================================
# Scene Records
# =============================================================================

@dataclass(eq=False)
class SubEntityBinding(_RecordEquality):
    index: int
    material_name: str


@dataclass(eq=False)
class BoneAttachment(_RecordEquality):
    """Named offset transform attached to a bone of the entity's skeleton."""
    name: str
    bone: str
    transform: LocalTransform = field(default_factory=LocalTransform)


@dataclass(eq=False)
class Entity(_RecordEquality):
    """
    Mesh instance placed on a scene node.

    ``mesh`` and ``materials`` are resolved by the loader; a standalone
    parse leaves them empty.
    """
    name: str
    mesh_file: str
    cast_shadows: bool = True
    receive_shadows: bool = True
    subentities: List[SubEntityBinding] = field(default_factory=list)
    attachments: List[BoneAttachment] = field(default_factory=list)
    mesh: Optional[MeshAsset] = None
    materials: Dict[int, MaterialDescriptor] = field(default_factory=dict)


@dataclass(eq=False)
class SceneGraphNode(_RecordEquality):
    name: str = ''
    transform: LocalTransform = field(default_factory=LocalTransform)
    visible: bool = True
    children: List['SceneGraphNode'] = field(default_factory=list)
    entity: Optional[Entity] = None

    def walk(self) -> Iterator['SceneGraphNode']:
        """Depth-first pre-order traversal of the subtree, self included."""
        yield self
        for node in self.children:
            yield from node.walk()

    def walk_with_matrix(self, parent: Optional[np.ndarray] = None) -> Iterator[Tuple['SceneGraphNode', np.ndarray]]:
        """Like ``walk`` but also yields each node's world matrix."""
        world = self.transform.matrix() if parent is None else parent @ self.transform.matrix()
        yield self, world
        for node in self.children:
            yield from node.walk_with_matrix(world)


@dataclass(eq=False)
class Environment(_RecordEquality):
    ambient_color: Optional[Color] = None
    background_color: Optional[Color] = None
    clip_near: float = DEFAULT_CLIP_NEAR
    clip_far: float = DEFAULT_CLIP_FAR


@dataclass(eq=False)
class SceneMetadata(_RecordEquality):
    format_version: float = 0.0
    min_ogre_version: float = 0.0
    ogre_max_version: float = 0.0
    units_per_meter: float = 1.0
    unit_type: str = 'meters'
    author: Optional[str] = None
    application: Optional[str] = None


@dataclass(eq=False)
class SceneAsset(_RecordEquality):
    up_axis: str = DEFAULT_UP_AXIS
    metadata: SceneMetadata = field(default_factory=SceneMetadata)
    root: SceneGraphNode = field(default_factory=lambda: SceneGraphNode(name='nodes'))
    environment: Optional[Environment] = None
    materials: MaterialLibrary = field(default_factory=MaterialLibrary)

    @property
    def up_vector(self) -> np.ndarray:
        return np.array([
            float(self.up_axis == 'x'),
            float(self.up_axis == 'y'),
            float(self.up_axis == 'z'),
        ])

    def entities(self) -> Iterator[Entity]:
        for node in self.root.walk():
            if node.entity is not None:
                yield node.entity


# =============================================================================
# Document
# =============================================================================

@dataclass(eq=False)
class ParsedDocument(_RecordEquality):
    """Result of dispatching one document; exactly one payload is set."""
    kind: DocumentKind
    url: str = ''
    scene: Optional[SceneAsset] = None
    mesh: Optional[MeshAsset] = None
    skeleton: Optional[SkeletonAsset] = None

    @property
    def payload(self):
        return {
            DocumentKind.SCENE: self.scene,
            DocumentKind.MESH: self.mesh,
            DocumentKind.SKELETON: self.skeleton,
        }[self.kind]
