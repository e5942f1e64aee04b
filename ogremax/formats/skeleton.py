"""
Skeleton document assembler.

Builds a SkeletonAsset from a ``<skeleton>`` root. Bones are collected into
a name map, linked through ``<bonehierarchy>`` and finally ordered by
their declared id, which consumers use as the positional bone index.

Animation keyframes are authored relative to the bone's rest pose; they
are composed onto it here so every track holds absolute values.
"""

import logging
import math
from typing import Dict, List

import numpy as np
from lxml import etree

from ..core.errors import FormatError, IndexRangeError, StructuralError
from ..utils.elements import attr_bool, attr_float, attr_int, attr_str, child, children, describe, has_attr
from ..utils.quaternion import decompose_matrix, normalize_quaternion, quaternion_multiply
from ..utils.rotation import parse_transform
from .records import AnimationClip, Bone, KeyframeTrack, SkeletonAsset, TrackChannel

logger = logging.getLogger(__name__)

_UNSUPPORTED_ANIMATION_ATTRS = ('interpolationMode', 'rotationInterpolationMode')


# =============================================================================
# Bones
# =============================================================================

def _parse_bones(bones_node: etree._Element) -> Dict[str, Bone]:
    bones: Dict[str, Bone] = {}
    seen_ids = set()

    for node in children(bones_node, 'bone'):
        name = attr_str(node, 'name')
        if not name:
            raise FormatError("Bone without a name", node=describe(node))
        if not has_attr(node, 'id'):
            raise FormatError(f"Bone {name!r} has no id", bone=name)

        bone_id = attr_int(node, 'id', -1)
        if bone_id < 0:
            raise FormatError(f"Bone {name!r} has invalid id {attr_str(node, 'id')!r}", bone=name)
        if bone_id in seen_ids:
            raise FormatError(f"Duplicate bone id {bone_id}", bone=name, index=bone_id)
        if name in bones:
            raise FormatError(f"Duplicate bone name {name!r}", bone=name)

        seen_ids.add(bone_id)
        bones[name] = Bone(index=bone_id, name=name, transform=parse_transform(node))

    if seen_ids and seen_ids != set(range(len(seen_ids))):
        missing = sorted(set(range(max(seen_ids) + 1)) - seen_ids)
        raise FormatError(f"Bone ids are not dense, missing {missing}", missing=missing)

    return bones


def _creates_cycle(bones: List[Bone], child_index: int, parent_index: int) -> bool:
    current = parent_index
    while current >= 0:
        if current == child_index:
            return True
        current = bones[current].parent
    return False


def _link_hierarchy(hierarchy: etree._Element, bones: Dict[str, Bone]) -> List[Bone]:
    """Apply ``<boneparent>`` links and return the bones ordered by id."""
    ordered = sorted(bones.values(), key=lambda bone: bone.index)

    for link in children(hierarchy, 'boneparent'):
        bone = bones.get(attr_str(link, 'bone', ''))
        parent = bones.get(attr_str(link, 'parent', ''))
        if bone is None or parent is None:
            continue

        if _creates_cycle(ordered, bone.index, parent.index):
            logger.warning(f"Ignoring cyclic bone link {bone.name} -> {parent.name}")
            continue

        if bone.parent >= 0:
            ordered[bone.parent].children.remove(bone.index)
        bone.parent = parent.index
        parent.children.append(bone.index)

    return ordered


# =============================================================================
# Animations
# =============================================================================

def _parse_track(track: etree._Element, bones: Dict[str, Bone], clip_name: str) -> List[KeyframeTrack]:
    bone_name = attr_str(track, 'bone', '')
    bone = bones.get(bone_name)
    if bone is None:
        raise IndexRangeError(
            f"Animation {clip_name!r} references unknown bone {bone_name!r}",
            animation=clip_name,
            bone=bone_name,
        )

    keyframes_node = child(track, 'keyframes')
    if keyframes_node is None:
        raise StructuralError(
            f"Track for bone {bone_name!r} in animation {clip_name!r} has no <keyframes>",
            animation=clip_name,
            bone=bone_name,
        )

    keyframes = list(children(keyframes_node, 'keyframe'))
    if not keyframes:
        raise FormatError(
            f"Track for bone {bone_name!r} in animation {clip_name!r} has no keyframes",
            animation=clip_name,
            bone=bone_name,
        )

    rest = bone.transform
    times, positions, rotations, scales = [], [], [], []
    for keyframe in keyframes:
        time = attr_float(keyframe, 'time', 0.0)
        if not math.isfinite(time):
            raise FormatError(f"Non-finite keyframe time in animation {clip_name!r}", node=describe(keyframe))

        translation, rotation, scale = decompose_matrix(parse_transform(keyframe).matrix())

        times.append(time)
        positions.append(rest.translation + translation)
        rotations.append(normalize_quaternion(quaternion_multiply(rest.rotation, rotation)))
        scales.append(rest.scale * scale)

    order = np.argsort(np.array(times), kind='stable')
    times = np.array(times, dtype=np.float32)[order]

    def _track(channel, values):
        return KeyframeTrack(
            bone=bone.name,
            bone_index=bone.index,
            channel=channel,
            times=times.copy(),
            values=np.array(values, dtype=np.float32)[order],
        )

    return [
        _track(TrackChannel.POSITION, positions),
        _track(TrackChannel.ROTATION, rotations),
        _track(TrackChannel.SCALE, scales),
    ]


def parse_animation(node: etree._Element, bones: Dict[str, Bone]) -> AnimationClip:
    """
    Parse one ``<animation>`` into an AnimationClip.

    Args:
        node: ``<animation>`` element
        bones: Bones by name

    Returns:
        AnimationClip with three tracks (position, rotation, scale) per
        animated bone

    Raises:
        FormatError: If the length is not a finite positive number or a
            track has no keyframes
        StructuralError: If ``<tracks>`` or a track's ``<keyframes>`` is missing
        IndexRangeError: If a track names an unknown bone
    """
    name = attr_str(node, 'name', 'default')
    length = attr_float(node, 'length', 0.0)
    if not math.isfinite(length) or length <= 0:
        raise FormatError(f"Animation {name!r} has invalid length ({attr_str(node, 'length')})", animation=name)

    for attr in _UNSUPPORTED_ANIMATION_ATTRS:
        if has_attr(node, attr):
            logger.warning(f"Animation {name!r}: {attr}={attr_str(node, attr)!r} is not supported, ignoring")

    tracks_node = child(node, 'tracks')
    if tracks_node is None:
        raise StructuralError(f"Animation {name!r} missing <tracks>", animation=name)

    tracks = []
    for track in children(tracks_node, 'track'):
        tracks.extend(_parse_track(track, bones, name))

    if not tracks:
        logger.warning(f"Animation {name!r} has no tracks")

    return AnimationClip(name=name, duration=length, loop=attr_bool(node, 'loop', True), tracks=tracks)


# =============================================================================
# Skeleton
# =============================================================================

def parse_skeleton(root: etree._Element) -> SkeletonAsset:
    """
    Assemble a ``<skeleton>`` document.

    Args:
        root: ``<skeleton>`` element

    Returns:
        SkeletonAsset with bones ordered by declared id

    Raises:
        StructuralError: If ``<bones>`` or ``<bonehierarchy>`` is missing
        FormatError: On invalid, duplicate or sparse bone ids
    """
    bones_node = child(root, 'bones')
    hierarchy = child(root, 'bonehierarchy')
    if bones_node is None or hierarchy is None:
        raise StructuralError("<skeleton> is missing <bones> or <bonehierarchy>")

    bones = _parse_bones(bones_node)
    ordered = _link_hierarchy(hierarchy, bones)

    animations = [
        parse_animation(node, bones)
        for node in children(child(root, 'animations'), 'animation')
    ]

    logger.debug(f"Skeleton: {len(ordered)} bones, {len(animations)} animations")
    return SkeletonAsset(bones=ordered, animations=animations)
