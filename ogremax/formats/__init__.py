"""
Ogre document formats.

Assemblers for the scene, mesh and skeleton XML documents, the material
script parser, and the asset records they produce.
"""

from .records import (
    DocumentKind,
    OperationType,
    TrackChannel,
    BlendMode,
    GeometryBuffers,
    SkinBinding,
    Submesh,
    Bone,
    KeyframeTrack,
    AnimationClip,
    SkeletonAsset,
    MeshAsset,
    MaterialDescriptor,
    MaterialLibrary,
    SubEntityBinding,
    BoneAttachment,
    Entity,
    SceneGraphNode,
    Environment,
    SceneMetadata,
    SceneAsset,
    ParsedDocument,
)
from .buffers import BufferSet, merge_buffers
from .dependencies import DependencyKind, NullDependencies
from .mesh import parse_mesh, parse_geometry, parse_faces, pack_skin
from .skeleton import parse_skeleton, parse_animation
from .scene import parse_scene, bind_materials
from .material import parse_material_script, tokenize, default_texture_resolver
from .dispatch import dispatch, parse_document, document_kind, document_name

__all__ = [
    # Records
    "DocumentKind",
    "OperationType",
    "TrackChannel",
    "BlendMode",
    "GeometryBuffers",
    "SkinBinding",
    "Submesh",
    "Bone",
    "KeyframeTrack",
    "AnimationClip",
    "SkeletonAsset",
    "MeshAsset",
    "MaterialDescriptor",
    "MaterialLibrary",
    "SubEntityBinding",
    "BoneAttachment",
    "Entity",
    "SceneGraphNode",
    "Environment",
    "SceneMetadata",
    "SceneAsset",
    "ParsedDocument",
    # Buffers
    "BufferSet",
    "merge_buffers",
    # Dependencies
    "DependencyKind",
    "NullDependencies",
    # Assemblers
    "parse_mesh",
    "parse_geometry",
    "parse_faces",
    "pack_skin",
    "parse_skeleton",
    "parse_animation",
    "parse_scene",
    "bind_materials",
    "parse_material_script",
    "tokenize",
    "default_texture_resolver",
    # Dispatch
    "dispatch",
    "parse_document",
    "document_kind",
    "document_name",
]
