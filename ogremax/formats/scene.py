"""
Scene document assembler.

Builds a SceneAsset from a ``<scene>`` root: metadata and up axis,
the ``<nodes>`` transform hierarchy with its entities, and the optional
``<environment>`` block. Entities request their mesh file; a scene whose
entities declare sub-entity materials requests the material script that
sits next to it.
"""

import logging
from typing import Optional

from lxml import etree

from ..core.constants import DEFAULT_CLIP_FAR, DEFAULT_CLIP_NEAR, DEFAULT_UP_AXIS
from ..core.errors import IndexRangeError, StructuralError
from ..utils.elements import attr_bool, attr_color, attr_float, attr_int, attr_str, child, children, has_attr
from ..utils.rotation import parse_transform
from .dependencies import DependencyKind
from .records import (
    BoneAttachment,
    Entity,
    Environment,
    MaterialLibrary,
    SceneAsset,
    SceneGraphNode,
    SceneMetadata,
    SubEntityBinding,
)

logger = logging.getLogger(__name__)

_HIDDEN_VALUES = ('hidden', 'tree hidden', 'false', '0', 'no')


def _parse_metadata(root: etree._Element) -> SceneMetadata:
    return SceneMetadata(
        format_version=attr_float(root, 'formatVersion', 0.0),
        min_ogre_version=attr_float(root, 'minOgreVersion', 0.0),
        ogre_max_version=attr_float(root, 'ogreMaxVersion', 0.0),
        units_per_meter=attr_float(root, 'unitsPerMeter', 1.0),
        unit_type=attr_str(root, 'unitType', 'meters'),
        author=attr_str(root, 'author'),
        application=attr_str(root, 'application'),
    )


def _parse_environment(node: etree._Element) -> Environment:
    ambient = child(node, 'colourAmbient')
    background = child(node, 'colourBackground')
    clipping = child(node, 'clipping')
    return Environment(
        ambient_color=attr_color(ambient) if ambient is not None else None,
        background_color=attr_color(background) if background is not None else None,
        clip_near=attr_float(clipping, 'near', DEFAULT_CLIP_NEAR),
        clip_far=attr_float(clipping, 'far', DEFAULT_CLIP_FAR),
    )


def _parse_entity(node: etree._Element, dependencies) -> Optional[Entity]:
    mesh_file = attr_str(node, 'meshFile')
    if not mesh_file:
        logger.warning(f"Entity {attr_str(node, 'name', '')!r} has no meshFile, skipping")
        return None

    entity = Entity(
        name=attr_str(node, 'name', ''),
        mesh_file=mesh_file,
        cast_shadows=attr_bool(node, 'castShadows', True),
        receive_shadows=attr_bool(node, 'receiveShadows', True),
    )

    for sub in children(child(node, 'subentities'), 'subentity'):
        if not has_attr(sub, 'materialName'):
            raise StructuralError("subentity without materialName", entity=entity.name)
        entity.subentities.append(SubEntityBinding(
            index=attr_int(sub, 'index', len(entity.subentities)),
            material_name=attr_str(sub, 'materialName'),
        ))

    for attachment in children(child(node, 'boneAttachments'), 'boneAttachment'):
        entity.attachments.append(BoneAttachment(
            name=attr_str(attachment, 'name', ''),
            bone=attr_str(attachment, 'bone', ''),
            transform=parse_transform(attachment),
        ))

    def _attach_mesh(mesh):
        entity.mesh = mesh

    dependencies.request(DependencyKind.MESH, mesh_file, _attach_mesh)
    return entity


def _parse_node(node: etree._Element, dependencies) -> SceneGraphNode:
    visibility = attr_str(node, 'visibility', 'visible').strip().lower()
    scene_node = SceneGraphNode(
        name=attr_str(node, 'name', ''),
        transform=parse_transform(node),
        visible=visibility not in _HIDDEN_VALUES,
    )

    entity_node = child(node, 'entity')
    if entity_node is not None:
        scene_node.entity = _parse_entity(entity_node, dependencies)

    for sub in children(node, 'node'):
        scene_node.children.append(_parse_node(sub, dependencies))
    return scene_node


def parse_scene(root: etree._Element, dependencies) -> SceneAsset:
    """
    Assemble a ``<scene>`` document.

    Mesh references are requested while the node tree is walked; the
    material script is requested once, after the walk, when at least one
    entity binds sub-entity materials.

    Args:
        root: ``<scene>`` element
        dependencies: Object with ``request(kind, name, handler)``

    Returns:
        SceneAsset; entity meshes and materials stay unresolved until the
        loader binds them
    """
    up_axis = attr_str(root, 'upAxis', DEFAULT_UP_AXIS).strip().lower()
    if up_axis not in ('x', 'y', 'z'):
        logger.warning(f"Unknown upAxis {up_axis!r}, using {DEFAULT_UP_AXIS!r}")
        up_axis = DEFAULT_UP_AXIS

    scene = SceneAsset(up_axis=up_axis, metadata=_parse_metadata(root))

    nodes = child(root, 'nodes')
    if nodes is not None:
        scene.root = SceneGraphNode(name='nodes', transform=parse_transform(nodes))
        for node in children(nodes, 'node'):
            scene.root.children.append(_parse_node(node, dependencies))

    environment = child(root, 'environment')
    if environment is not None:
        scene.environment = _parse_environment(environment)

    if any(entity.subentities for entity in scene.entities()):
        def _attach_materials(library: MaterialLibrary):
            scene.materials = library

        dependencies.request(DependencyKind.MATERIAL, None, _attach_materials)

    logger.debug(f"Scene: {sum(1 for _ in scene.root.walk()) - 1} nodes, up axis {up_axis}")
    return scene


def bind_materials(scene: SceneAsset) -> None:
    """
    Resolve every sub-entity material name against the scene's library.

    Raises:
        IndexRangeError: If a sub-entity names a material the library lacks
    """
    for entity in scene.entities():
        for binding in entity.subentities:
            material = scene.materials.get(binding.material_name)
            if material is None:
                raise IndexRangeError(
                    f"Unknown material {binding.material_name!r} for sub-entity {binding.index} "
                    f"of entity {entity.name!r}",
                    entity=entity.name,
                    index=binding.index,
                    material=binding.material_name,
                )
            entity.materials[binding.index] = material
