"""
Rigid-body transform module for the frame tree.

A transform maps coordinates expressed in a child frame into its parent frame:

    p_parent = R @ p_child + t

where R is the rotation of the unit quaternion and t the translation.

Conventions:
    - Quaternions are stored in (x, y, z, w) order, as on the ROS wire
    - Composition follows homogeneous matrices: (A @ B) applies B first, then A
    - All arithmetic is float64

Rotations are converted with scipy's Rotation class, which normalizes
non-unit quaternions on input.
"""

import numpy as np
from dataclasses import dataclass
from typing import Sequence, Union
import logging

from scipy.spatial.transform import Rotation

logger = logging.getLogger(__name__)

ArrayLike = Union[Sequence[float], np.ndarray]

IDENTITY_QUATERNION = np.array([0.0, 0.0, 0.0, 1.0])


class MalformedTransformError(ValueError):
    """Raised when a translation or rotation cannot describe a rigid transform."""


def as_translation(values: ArrayLike) -> np.ndarray:
    """
    Validate and convert a translation vector.

    Args:
        values: Three numbers (x, y, z) in meters

    Returns:
        float64 array of shape (3,)

    Raises:
        MalformedTransformError: If the vector is not 3 finite numbers
    """
    try:
        t = np.asarray(values, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError, OverflowError) as e:
        raise MalformedTransformError(f"Invalid translation {values!r}: {e}") from e

    if t.shape != (3,):
        raise MalformedTransformError(f"Translation must have 3 components, got {t.shape[0]}")
    if not np.all(np.isfinite(t)):
        raise MalformedTransformError(f"Translation is not finite: {t}")
    return t


def as_quaternion(values: ArrayLike) -> np.ndarray:
    """
    Validate, convert and normalize a quaternion.

    Args:
        values: Four numbers in (x, y, z, w) order

    Returns:
        Unit quaternion as float64 array of shape (4,)

    Raises:
        MalformedTransformError: If the quaternion is not 4 finite numbers
            or has zero norm
    """
    try:
        q = np.asarray(values, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError, OverflowError) as e:
        raise MalformedTransformError(f"Invalid rotation {values!r}: {e}") from e

    if q.shape != (4,):
        raise MalformedTransformError(f"Rotation must have 4 components, got {q.shape[0]}")
    if not np.all(np.isfinite(q)):
        raise MalformedTransformError(f"Rotation is not finite: {q}")

    norm = np.linalg.norm(q)
    if norm < 1e-12:
        raise MalformedTransformError("Rotation quaternion has zero norm")

    if abs(norm - 1.0) > 1e-6:
        logger.debug(f"Normalizing quaternion with norm {norm:.6f}")
    return q / norm


@dataclass(frozen=True)
class Transform:
    """
    Rigid-body transform: translation plus unit quaternion rotation.

    Attributes:
        translation: (x, y, z) in meters
        rotation: Unit quaternion (x, y, z, w)
    """
    translation: np.ndarray
    rotation: np.ndarray

    @classmethod
    def identity(cls) -> "Transform":
        """Zero translation and identity rotation."""
        return cls(translation=np.zeros(3), rotation=IDENTITY_QUATERNION.copy())

    @classmethod
    def from_values(cls, translation: ArrayLike, rotation: ArrayLike) -> "Transform":
        """Build a transform, validating and normalizing the inputs."""
        return cls(translation=as_translation(translation), rotation=as_quaternion(rotation))

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> "Transform":
        """
        Decompose a 4x4 homogeneous matrix into translation and quaternion.

        Args:
            matrix: 4x4 rigid transform (no scale or shear)

        Returns:
            Transform with a unit quaternion whose w component is non-negative
        """
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 matrix, got {matrix.shape}")
        if not validate_rotation_matrix(matrix[:3, :3]):
            raise ValueError("Upper-left 3x3 block is not a proper rotation")

        q = Rotation.from_matrix(matrix[:3, :3]).as_quat()
        # q and -q are the same rotation; keep w >= 0
        if q[3] < 0:
            q = -q
        return cls(translation=matrix[:3, 3].copy(), rotation=q)

    def as_matrix(self) -> np.ndarray:
        """Return the 4x4 homogeneous matrix of this transform."""
        return homogeneous_matrix(self.translation, self.rotation)

    def rotation_matrix(self) -> np.ndarray:
        """Return the 3x3 rotation matrix."""
        return Rotation.from_quat(self.rotation).as_matrix()

    def inverse(self) -> "Transform":
        """Return the transform mapping parent coordinates back into the child frame."""
        return Transform.from_matrix(invert_matrix(self.as_matrix()))

    def apply(self, points: np.ndarray) -> np.ndarray:
        """
        Transform points: P_parent = R * P_child + t

        Args:
            points: Single point (3,) or Nx3 array

        Returns:
            Transformed point(s) with the same shape
        """
        return Rotation.from_quat(self.rotation).apply(points) + self.translation

    def __matmul__(self, other: "Transform") -> "Transform":
        return Transform.from_matrix(self.as_matrix() @ other.as_matrix())

    def is_close(self, other: "Transform", atol: float = 1e-9) -> bool:
        """
        Compare two transforms within tolerance.

        Quaternions q and -q describe the same rotation and compare equal.
        """
        if not np.allclose(self.translation, other.translation, atol=atol):
            return False
        dot = abs(float(np.dot(self.rotation, other.rotation)))
        return dot >= 1.0 - atol


def homogeneous_matrix(translation: np.ndarray, rotation: np.ndarray) -> np.ndarray:
    """
    Build a 4x4 homogeneous matrix.

    Args:
        translation: (x, y, z)
        rotation: Unit quaternion (x, y, z, w)

    Returns:
        4x4 float64 matrix [[R, t], [0, 1]]
    """
    T = np.eye(4, dtype=np.float64)
    T[:3, :3] = Rotation.from_quat(rotation).as_matrix()
    T[:3, 3] = translation
    return T


def invert_matrix(T: np.ndarray) -> np.ndarray:
    """
    Invert a rigid 4x4 transform without a general matrix inverse.

    The inverse of [[R, t], [0, 1]] is [[R^T, -R^T t], [0, 1]].
    """
    R_t = T[:3, :3].T
    T_inv = np.eye(4, dtype=np.float64)
    T_inv[:3, :3] = R_t
    T_inv[:3, 3] = -(R_t @ T[:3, 3])
    return T_inv


def validate_rotation_matrix(R: np.ndarray, tol: float = 1e-6) -> bool:
    """
    Validate that a matrix is a proper rotation matrix.

    A proper rotation matrix must:
        1. Be orthogonal: R @ R.T = I
        2. Have determinant = +1 (not a reflection)

    Args:
        R: 3x3 matrix to validate
        tol: Numerical tolerance

    Returns:
        True if R is a valid rotation matrix
    """
    if R.shape != (3, 3):
        return False

    # Check orthogonality
    should_be_identity = R @ R.T
    if not np.allclose(should_be_identity, np.eye(3), atol=tol):
        return False

    # Check determinant
    det = np.linalg.det(R)
    if not np.isclose(det, 1.0, atol=tol):
        return False

    return True
