"""
Tests for rigid transform module.

These tests verify the correctness of:
    - Input validation and quaternion normalization
    - Homogeneous matrix conversion and decomposition
    - Rigid inversion and composition
"""

import pytest
import numpy as np
from numpy.testing import assert_allclose

from tf_tree.transforms import (
    Transform,
    MalformedTransformError,
    as_quaternion,
    as_translation,
    homogeneous_matrix,
    invert_matrix,
    validate_rotation_matrix,
)


def yaw(angle: float) -> np.ndarray:
    """Quaternion (x, y, z, w) of a rotation about Z."""
    return np.array([0.0, 0.0, np.sin(angle / 2), np.cos(angle / 2)])


class TestInputValidation:
    """Tests for translation and quaternion validation."""

    def test_translation_from_list(self):
        assert_allclose(as_translation([1, 2, 3]), [1.0, 2.0, 3.0])

    def test_translation_wrong_length(self):
        with pytest.raises(MalformedTransformError):
            as_translation([1.0, 2.0])

    def test_translation_not_finite(self):
        with pytest.raises(MalformedTransformError):
            as_translation([1.0, np.nan, 0.0])

    def test_translation_not_numeric(self):
        with pytest.raises(MalformedTransformError):
            as_translation(["a", "b", "c"])

    def test_quaternion_is_normalized(self):
        q = as_quaternion([0.0, 0.0, 0.0, 2.0])
        assert_allclose(q, [0.0, 0.0, 0.0, 1.0])

    def test_zero_quaternion_rejected(self):
        with pytest.raises(MalformedTransformError):
            as_quaternion([0.0, 0.0, 0.0, 0.0])

    def test_quaternion_wrong_length(self):
        with pytest.raises(MalformedTransformError):
            as_quaternion([0.0, 0.0, 1.0])

    def test_quaternion_infinite(self):
        with pytest.raises(MalformedTransformError):
            as_quaternion([np.inf, 0.0, 0.0, 1.0])

    def test_translation_integer_too_large(self):
        with pytest.raises(MalformedTransformError):
            as_translation([10**400, 0, 0])

    def test_quaternion_integer_too_large(self):
        with pytest.raises(MalformedTransformError):
            as_quaternion([0, 0, 0, 10**400])

    def test_malformed_is_value_error(self):
        """Callers catching ValueError also catch malformed input."""
        assert issubclass(MalformedTransformError, ValueError)


class TestMatrixConversion:
    """Tests for homogeneous matrix conversion."""

    def test_identity(self):
        T = Transform.identity()
        assert_allclose(T.as_matrix(), np.eye(4), atol=1e-12)

    def test_yaw_matrix(self):
        """90 degrees about Z maps X onto Y."""
        T = homogeneous_matrix(np.array([1.0, 2.0, 3.0]), yaw(np.pi / 2))

        assert validate_rotation_matrix(T[:3, :3])
        assert_allclose(T[:3, :3] @ [1, 0, 0], [0, 1, 0], atol=1e-12)
        assert_allclose(T[:3, 3], [1, 2, 3])
        assert_allclose(T[3], [0, 0, 0, 1])

    def test_round_trip_through_matrix(self):
        original = Transform.from_values([0.5, -1.0, 2.0], [0.1, 0.2, 0.3, 0.9])
        decomposed = Transform.from_matrix(original.as_matrix())
        assert decomposed.is_close(original)

    def test_from_matrix_keeps_w_non_negative(self):
        """q and -q are the same rotation; decomposition picks w >= 0."""
        T = Transform.from_values([0, 0, 0], [0.0, 0.0, -0.6, -0.8])
        q = Transform.from_matrix(T.as_matrix()).rotation
        assert q[3] >= 0
        assert_allclose(q, [0.0, 0.0, 0.6, 0.8], atol=1e-12)

    def test_from_matrix_rejects_scaled_matrix(self):
        M = np.eye(4)
        M[:3, :3] *= 2.0
        with pytest.raises(ValueError):
            Transform.from_matrix(M)

    def test_from_matrix_rejects_wrong_shape(self):
        with pytest.raises(ValueError):
            Transform.from_matrix(np.eye(3))


class TestInversion:
    """Tests for rigid inversion."""

    def test_invert_matrix_matches_general_inverse(self):
        T = homogeneous_matrix(np.array([3.0, -2.0, 0.5]), as_quaternion([0.2, -0.4, 0.1, 0.8]))
        assert_allclose(invert_matrix(T), np.linalg.inv(T), atol=1e-12)

    def test_transform_times_inverse_is_identity(self):
        T = Transform.from_values([10.0, 20.0, -5.0], [0.3, 0.1, -0.2, 0.9])
        assert (T @ T.inverse()).is_close(Transform.identity())
        assert (T.inverse() @ T).is_close(Transform.identity())

    def test_inverse_of_pure_translation(self):
        T = Transform.from_values([1.0, 2.0, 3.0], [0, 0, 0, 1])
        assert_allclose(T.inverse().translation, [-1.0, -2.0, -3.0], atol=1e-12)

    def test_inverse_of_yaw(self):
        """Inverse of (t=(1,0,0), yaw 90) is (t=(0,1,0), yaw -90)."""
        T = Transform.from_values([1.0, 0.0, 0.0], yaw(np.pi / 2))
        expected = Transform.from_values([0.0, 1.0, 0.0], yaw(-np.pi / 2))
        assert T.inverse().is_close(expected)


class TestComposition:
    """Tests for composition and point application."""

    def test_compose_rotation_then_offset(self):
        """Child offset is rotated into the parent frame."""
        A = Transform.from_values([1.0, 0.0, 0.0], yaw(np.pi / 2))
        B = Transform.from_values([1.0, 0.0, 0.0], [0, 0, 0, 1])

        C = A @ B

        assert_allclose(C.translation, [1.0, 1.0, 0.0], atol=1e-12)
        assert C.is_close(Transform.from_values([1.0, 1.0, 0.0], yaw(np.pi / 2)))

    def test_compose_is_associative(self):
        A = Transform.from_values([1, 2, 3], [0.1, 0.2, 0.3, 0.9])
        B = Transform.from_values([-4, 0, 1], [0.5, -0.5, 0.5, 0.5])
        C = Transform.from_values([0, 0, 7], yaw(1.0))
        assert ((A @ B) @ C).is_close(A @ (B @ C))

    def test_apply_single_point(self):
        T = Transform.from_values([1.0, 0.0, 0.0], yaw(np.pi / 2))
        assert_allclose(T.apply(np.array([1.0, 0.0, 0.0])), [1.0, 1.0, 0.0], atol=1e-12)

    def test_apply_batch_matches_matrix(self):
        T = Transform.from_values([0.5, -0.5, 2.0], [0.2, 0.1, 0.4, 0.9])
        points = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [3, 4, 5]], dtype=np.float64)

        homogeneous = np.hstack([points, np.ones((4, 1))])
        expected = (T.as_matrix() @ homogeneous.T).T[:, :3]

        assert_allclose(T.apply(points), expected, atol=1e-12)

    def test_is_close_accepts_negated_quaternion(self):
        A = Transform(translation=np.zeros(3), rotation=np.array([0.0, 0.0, 0.6, 0.8]))
        B = Transform(translation=np.zeros(3), rotation=np.array([0.0, 0.0, -0.6, -0.8]))
        assert A.is_close(B)

    def test_is_close_detects_translation_difference(self):
        A = Transform.from_values([0, 0, 0], [0, 0, 0, 1])
        B = Transform.from_values([0, 0, 1e-3], [0, 0, 0, 1])
        assert not A.is_close(B)


class TestValidateRotationMatrix:
    """Tests for rotation matrix validation."""

    def test_identity_valid(self):
        assert validate_rotation_matrix(np.eye(3))

    def test_reflection_invalid(self):
        R = np.diag([1.0, 1.0, -1.0])
        assert not validate_rotation_matrix(R)

    def test_non_orthogonal_invalid(self):
        R = np.array([[1.0, 0.1, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
        assert not validate_rotation_matrix(R)

    def test_wrong_shape_invalid(self):
        assert not validate_rotation_matrix(np.eye(4))
