"""
Quaternion operations for rotation handling in ogremax.

Quaternions are represented as (w, x, y, z) where w is the scalar part
and (x, y, z) is the vector part. This follows the convention:
    q = w + xi + yj + zk

All functions operate on numpy arrays; the multiplication, normalization
and matrix conversions also accept batched inputs with shape (..., 4).
"""

from typing import Tuple

import numpy as np

from ..core.constants import DEFAULT_EPS, DEFAULT_EPS_NORM


def identity_quaternion() -> np.ndarray:
    """Identity quaternion [1, 0, 0, 0]."""
    return np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)


def normalize_quaternion(q: np.ndarray, eps: float = DEFAULT_EPS_NORM) -> np.ndarray:
    """
    Normalize quaternion to unit length.

    Args:
        q: Quaternion array of shape (..., 4) as [w, x, y, z]
        eps: Small constant for numerical stability

    Returns:
        Normalized quaternion of shape (..., 4)
    """
    q = np.asarray(q, dtype=np.float64)
    norm = np.linalg.norm(q, axis=-1, keepdims=True)
    return q / np.maximum(norm, eps)


def quaternion_conjugate(q: np.ndarray) -> np.ndarray:
    """
    Compute quaternion conjugate: q* = w - xi - yj - zk

    Args:
        q: Quaternion array of shape (..., 4) as [w, x, y, z]

    Returns:
        Conjugate quaternion of shape (..., 4)
    """
    conj = np.array(q, dtype=np.float64, copy=True)
    conj[..., 1:] = -conj[..., 1:]
    return conj


def quaternion_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """
    Compute quaternion product: q1 * q2

    Uses the Hamilton product formula. Applying the product to a vector
    rotates by q2 first, then by q1.

    Args:
        q1: First quaternion of shape (..., 4) as [w, x, y, z]
        q2: Second quaternion of shape (..., 4) as [w, x, y, z]

    Returns:
        Product quaternion of shape (..., 4)
    """
    q1 = np.asarray(q1, dtype=np.float64)
    q2 = np.asarray(q2, dtype=np.float64)
    w1, x1, y1, z1 = np.moveaxis(q1, -1, 0)
    w2, x2, y2, z2 = np.moveaxis(q2, -1, 0)

    w = w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2
    x = w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2
    y = w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2
    z = w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2

    return np.stack([w, x, y, z], axis=-1)


def quaternion_from_axis_angle(axis: np.ndarray, angle: float) -> np.ndarray:
    """
    Create a quaternion from a rotation axis and an angle.

    Args:
        axis: Rotation axis (3,), normalized here
        angle: Rotation angle in radians

    Returns:
        Unit quaternion (4,) as [w, x, y, z]
    """
    axis = np.asarray(axis, dtype=np.float64)
    axis = axis / max(np.linalg.norm(axis), DEFAULT_EPS_NORM)
    half_angle = 0.5 * angle
    return np.concatenate([[np.cos(half_angle)], axis * np.sin(half_angle)])


def quaternion_to_matrix(q: np.ndarray) -> np.ndarray:
    """
    Convert unit quaternion to 3x3 rotation matrix.

    Args:
        q: Unit quaternion of shape (..., 4) as [w, x, y, z]

    Returns:
        Rotation matrix of shape (..., 3, 3)
    """
    q = normalize_quaternion(q)
    w, x, y, z = np.moveaxis(q, -1, 0)

    # Row 1
    r00 = 1 - 2 * (y * y + z * z)
    r01 = 2 * (x * y - z * w)
    r02 = 2 * (x * z + y * w)

    # Row 2
    r10 = 2 * (x * y + z * w)
    r11 = 1 - 2 * (x * x + z * z)
    r12 = 2 * (y * z - x * w)

    # Row 3
    r20 = 2 * (x * z - y * w)
    r21 = 2 * (y * z + x * w)
    r22 = 1 - 2 * (x * x + y * y)

    matrix = np.stack([r00, r01, r02, r10, r11, r12, r20, r21, r22], axis=-1)
    return matrix.reshape(q.shape[:-1] + (3, 3))


def matrix_to_quaternion(rotation_matrix: np.ndarray) -> np.ndarray:
    """
    Convert a 3x3 rotation matrix to a unit quaternion.

    Uses Shepperd's method, branching on the largest diagonal term.

    Args:
        rotation_matrix: (3, 3) rotation matrix without scale

    Returns:
        Unit quaternion (4,) as [w, x, y, z]
    """
    m = np.asarray(rotation_matrix, dtype=np.float64)
    trace = m[0, 0] + m[1, 1] + m[2, 2]

    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        w = 0.25 / s
        x = (m[2, 1] - m[1, 2]) * s
        y = (m[0, 2] - m[2, 0]) * s
        z = (m[1, 0] - m[0, 1]) * s
    elif m[0, 0] > m[1, 1] and m[0, 0] > m[2, 2]:
        s = 2.0 * np.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2])
        w = (m[2, 1] - m[1, 2]) / s
        x = 0.25 * s
        y = (m[0, 1] + m[1, 0]) / s
        z = (m[0, 2] + m[2, 0]) / s
    elif m[1, 1] > m[2, 2]:
        s = 2.0 * np.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2])
        w = (m[0, 2] - m[2, 0]) / s
        x = (m[0, 1] + m[1, 0]) / s
        y = 0.25 * s
        z = (m[1, 2] + m[2, 1]) / s
    else:
        s = 2.0 * np.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1])
        w = (m[1, 0] - m[0, 1]) / s
        x = (m[0, 2] + m[2, 0]) / s
        y = (m[1, 2] + m[2, 1]) / s
        z = 0.25 * s

    return normalize_quaternion(np.array([w, x, y, z]))


def quaternion_slerp(q0: np.ndarray, q1: np.ndarray, t: float) -> np.ndarray:
    """
    Spherical linear interpolation between two quaternions.

    Args:
        q0: Start quaternion [w, x, y, z]
        q1: End quaternion [w, x, y, z]
        t: Interpolation parameter [0, 1]

    Returns:
        Interpolated unit quaternion [w, x, y, z]
    """
    q0 = normalize_quaternion(q0)
    q1 = normalize_quaternion(q1)
    dot = float(np.dot(q0, q1))

    # q and -q are the same rotation, take the short arc
    if dot < 0:
        q1 = -q1
        dot = -dot

    dot = min(dot, 1.0)

    # Near-linear case
    if dot > 0.9995:
        return normalize_quaternion(q0 + t * (q1 - q0))

    theta = np.arccos(dot)
    sin_theta = np.sin(theta)

    s0 = np.sin((1 - t) * theta) / sin_theta
    s1 = np.sin(t * theta) / sin_theta

    return normalize_quaternion(s0 * q0 + s1 * q1)


def rotate_vector(v: np.ndarray, q: np.ndarray) -> np.ndarray:
    """
    Rotate 3D vector(s) by a quaternion.

    Args:
        v: Vector(s) of shape (..., 3)
        q: Unit quaternion (4,)

    Returns:
        Rotated vector(s) of shape (..., 3)
    """
    return np.asarray(v, dtype=np.float64) @ quaternion_to_matrix(q).T


def compose_matrix(
    translation: np.ndarray,
    rotation: np.ndarray,
    scale: np.ndarray
) -> np.ndarray:
    """
    Compose a 4x4 transform from translation, rotation and scale.

    The result applies scale, then rotation, then translation.

    Args:
        translation: (3,) translation
        rotation: (4,) quaternion [w, x, y, z]
        scale: (3,) per-axis scale

    Returns:
        4x4 transformation matrix
    """
    matrix = np.eye(4, dtype=np.float64)
    matrix[:3, :3] = quaternion_to_matrix(rotation) * np.asarray(scale, dtype=np.float64)
    matrix[:3, 3] = translation
    return matrix


def decompose_matrix(matrix: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Decompose a 4x4 transformation matrix.

    Args:
        matrix: 4x4 transformation matrix

    Returns:
        translation: (3,) translation vector
        quaternion: (4,) quaternion [w, x, y, z]
        scale: (3,) per-axis scale
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    translation = matrix[:3, 3].copy()
    rotation_matrix = matrix[:3, :3].copy()

    # Remove scale from rotation matrix
    scale = np.linalg.norm(rotation_matrix, axis=0)
    if np.linalg.det(rotation_matrix) < 0:
        scale[0] = -scale[0]
    rotation_matrix = rotation_matrix / np.where(np.abs(scale) < DEFAULT_EPS, 1.0, scale)

    return translation, matrix_to_quaternion(rotation_matrix), scale
