"""
Rotation and local transform decoding for Ogre XML elements.

Ogre XML authors rotations in three mutually exclusive encodings. They
are tried in this order:

1. Explicit quaternion::

       <rotation qx="0" qy="0.707" qz="0" qw="0.707"/>

2. Axis + angle (radians), as attributes or as child elements::

       <rotation axisX="1" axisY="0" axisZ="0" angle="1.5708"/>
       <rotate angle="1.5708"><axis x="1" y="0" z="0"/></rotate>
       <rotation><axis x="1" y="0" z="0"/><angle value="1.5708"/></rotation>

3. Separate Euler angles in degrees, composed X then Y then Z::

       <rotation angleX="90" angleY="0" angleZ="0"/>

A missing rotation is the identity.
"""

from dataclasses import dataclass, field
import logging
import math
from typing import Optional

import numpy as np
from lxml import etree
from scipy.spatial.transform import Rotation

from ..core.errors import FormatError
from .elements import attr_float, attr_str, child, describe, has_attr
from .quaternion import (
    compose_matrix,
    identity_quaternion,
    normalize_quaternion,
    quaternion_from_axis_angle,
)

logger = logging.getLogger(__name__)

_QUATERNION_ATTRS = ('qw', 'qx', 'qy', 'qz')
_EULER_ATTRS = ('angleX', 'angleY', 'angleZ')


def _zeros() -> np.ndarray:
    return np.zeros(3, dtype=np.float64)


def _ones() -> np.ndarray:
    return np.ones(3, dtype=np.float64)


@dataclass
class LocalTransform:
    """Translation, rotation [w, x, y, z] and scale relative to a parent."""
    translation: np.ndarray = field(default_factory=_zeros)
    rotation: np.ndarray = field(default_factory=identity_quaternion)
    scale: np.ndarray = field(default_factory=_ones)

    def matrix(self) -> np.ndarray:
        """4x4 matrix applying scale, rotation, then translation."""
        return compose_matrix(self.translation, self.rotation, self.scale)

    def __eq__(self, other) -> bool:
        if not isinstance(other, LocalTransform):
            return NotImplemented
        return (
            np.array_equal(self.translation, other.translation)
            and np.array_equal(self.rotation, other.rotation)
            and np.array_equal(self.scale, other.scale)
        )


def decode_rotation(node: Optional[etree._Element]) -> np.ndarray:
    """
    Resolve a unit quaternion from a rotation element.

    Args:
        node: ``<rotation>`` / ``<rotate>`` element or None

    Returns:
        Unit quaternion (4,) as [w, x, y, z]

    Raises:
        FormatError: On a non-finite quaternion component, a zero-length
            axis or a non-finite angle
    """
    if node is None:
        return identity_quaternion()

    if any(has_attr(node, name) for name in _QUATERNION_ATTRS):
        return _decode_quaternion(node)

    if has_attr(node, 'angle') or child(node, 'angle') is not None:
        return _decode_axis_angle(node)

    if any(has_attr(node, name) for name in _EULER_ATTRS):
        return _decode_euler(node)

    logger.warning(f"Unknown rotation format, using identity: {describe(node)}")
    return identity_quaternion()


def _decode_quaternion(node: etree._Element) -> np.ndarray:
    q = np.array([attr_float(node, name, float('nan')) for name in _QUATERNION_ATTRS])

    if not np.all(np.isfinite(q)):
        raise FormatError("Invalid quaternion component", node=describe(node))
    if not np.any(q):
        raise FormatError("Zero-length quaternion", node=describe(node))

    return normalize_quaternion(q)


def _decode_axis_angle(node: etree._Element) -> np.ndarray:
    angle_text = attr_str(node, 'angle')
    if angle_text is not None:
        angle = attr_float(node, 'angle', float('nan'))
    else:
        angle = attr_float(child(node, 'angle'), 'value', 0.0)

    if has_attr(node, 'axisX'):
        axis = np.array([
            attr_float(node, 'axisX', 0.0),
            attr_float(node, 'axisY', 0.0),
            attr_float(node, 'axisZ', 1.0),
        ])
    else:
        axis_node = child(node, 'axis')
        axis = np.array([
            attr_float(axis_node, 'x', 0.0),
            attr_float(axis_node, 'y', 0.0),
            attr_float(axis_node, 'z', 1.0),
        ])

    if not math.isfinite(angle) or not np.all(np.isfinite(axis)) or not np.any(axis):
        raise FormatError("Invalid axis-angle rotation", node=describe(node))

    return quaternion_from_axis_angle(axis, angle)


def _decode_euler(node: etree._Element) -> np.ndarray:
    angles = [attr_float(node, name, 0.0) for name in _EULER_ATTRS]

    if not all(math.isfinite(a) for a in angles):
        raise FormatError("Invalid Euler rotation", node=describe(node))

    # Intrinsic X, then Y, then Z
    x, y, z, w = Rotation.from_euler('XYZ', angles, degrees=True).as_quat()
    return normalize_quaternion(np.array([w, x, y, z]))


def _decode_scale(node: Optional[etree._Element]) -> np.ndarray:
    if node is None:
        return _ones()
    if has_attr(node, 'factor'):
        return np.full(3, attr_float(node, 'factor', 1.0), dtype=np.float64)
    return np.array([
        attr_float(node, 'x', 1.0),
        attr_float(node, 'y', 1.0),
        attr_float(node, 'z', 1.0),
    ], dtype=np.float64)


def _decode_translation(node: Optional[etree._Element]) -> np.ndarray:
    return np.array([
        attr_float(node, 'x', 0.0),
        attr_float(node, 'y', 0.0),
        attr_float(node, 'z', 0.0),
    ], dtype=np.float64)


def parse_transform(node: Optional[etree._Element]) -> LocalTransform:
    """
    Read the local transform stored in the direct children of ``node``.

    Recognized children are ``position`` / ``translate``,
    ``rotation`` / ``rotate`` and ``scale``. Missing parts default to zero
    translation, identity rotation and unit scale.

    Args:
        node: Element owning the transform (node, bone, keyframe...)

    Returns:
        LocalTransform
    """
    translation = _decode_translation(child(node, 'position', 'translate'))
    rotation = decode_rotation(child(node, 'rotation', 'rotate'))
    scale = _decode_scale(child(node, 'scale'))

    for name, values in (('translation', translation), ('scale', scale)):
        if not np.all(np.isfinite(values)):
            raise FormatError(f"Non-finite {name}", node=describe(node))

    return LocalTransform(translation=translation, rotation=rotation, scale=scale)
