"""Tests for shading-time reconstruction."""

import numpy as np
import pytest

from radiance_transfer.errors import InvalidIndexError, ResourceMismatchError
from radiance_transfer.geometry import MeshScene, Ray
from radiance_transfer.light_transport import (
    LightCoefficients,
    TransferEvaluator,
    TransportCoefficients,
    VertexTransportProjector,
    faces_from_images,
    project_cubemap,
)


@pytest.fixture
def white_light():
    """SH projection of a uniform white environment."""
    return project_cubemap(faces_from_images([np.ones((8, 8, 3))] * 6))


class TestTransferEvaluator:
    """Tests for radiance evaluation."""

    @pytest.fixture
    def scene(self, unit_triangle):
        return MeshScene(unit_triangle)

    @pytest.fixture
    def transport(self, scene, unit_triangle):
        return VertexTransportProjector(
            scene, "shadowed", sample_count=1000, seed=0
        ).project(unit_triangle)

    def test_white_environment_end_to_end(self, white_light, transport, scene):
        """A lit triangle under a uniform environment reflects albedo * L."""
        albedo = 0.6
        evaluator = TransferEvaluator(white_light, transport, scene, albedo=albedo)
        rgb = evaluator(Ray(origin=np.array([0.25, 0.25, 1.0]), direction=np.array([0.0, 0.0, -1.0])))
        assert rgb.shape == (3,)
        np.testing.assert_allclose(rgb, albedo, rtol=0.05)

    def test_unshadowed_white_environment_end_to_end(self, white_light, scene, unit_triangle):
        """Unshadowed transport under a uniform environment reflects albedo * L at the centroid."""
        transport = VertexTransportProjector(
            scene, "unshadowed", sample_count=1000, seed=0
        ).project(unit_triangle)
        albedo = 0.6
        evaluator = TransferEvaluator(white_light, transport, scene, albedo=albedo)
        centroid = unit_triangle.vertices.mean(axis=0)
        rgb = evaluator(Ray(origin=centroid + [0.0, 0.0, 1.0], direction=np.array([0.0, 0.0, -1.0])))
        np.testing.assert_allclose(rgb, albedo, rtol=0.05)

    def test_raw_dot_product(self, white_light, transport, scene):
        """Without albedo the result is transferred irradiance (pi for unit radiance)."""
        evaluator = TransferEvaluator(white_light, transport, scene)
        radiance = evaluator.vertex_radiance()
        assert radiance.shape == (3, 3)
        np.testing.assert_allclose(radiance, np.pi, rtol=0.05)

    def test_miss_is_black(self, white_light, transport, scene):
        evaluator = TransferEvaluator(white_light, transport, scene)
        rgb = evaluator(Ray(origin=np.array([5.0, 5.0, 1.0]), direction=np.array([0.0, 0.0, -1.0])))
        np.testing.assert_array_equal(rgb, 0.0)

    def test_batch_evaluate(self, white_light, transport, scene):
        evaluator = TransferEvaluator(white_light, transport, scene, albedo=1.0)
        origins = np.array([[0.1, 0.1, 1.0], [3.0, 3.0, 1.0], [0.2, 0.5, 1.0]])
        directions = np.tile([0.0, 0.0, -1.0], (3, 1))
        radiance = evaluator.evaluate(origins, directions)
        assert radiance.shape == (3, 3)
        np.testing.assert_array_equal(radiance[1], 0.0)
        assert np.all(radiance[[0, 2]] > 0.9)

    def test_matches_manual_dot_product(self, scene):
        rng = np.random.default_rng(0)
        light = LightCoefficients(rng.random((9, 3)))
        transport = TransportCoefficients(rng.random((3, 9)))
        evaluator = TransferEvaluator(light, transport, scene)

        rgb = evaluator(Ray(origin=np.array([0.25, 0.25, 1.0]), direction=np.array([0.0, 0.0, -1.0])))
        interpolated = 0.5 * transport.coeffs[0] + 0.25 * transport.coeffs[1] + 0.25 * transport.coeffs[2]
        np.testing.assert_allclose(rgb, interpolated @ light.coeffs, rtol=1e-7)

    def test_vertex_count_mismatch(self, white_light, scene):
        with pytest.raises(ResourceMismatchError):
            TransferEvaluator(white_light, TransportCoefficients.zeros(4), scene)


class TestInterpolation:
    """Tests for barycentric interpolation of transport rows."""

    def test_identical_corners_idempotent(self):
        row = np.array([0.3, -0.1, 0.7, 0.05, 0.0, 0.2, -0.4, 0.11, 0.9])
        transport = TransportCoefficients(np.tile(row, (3, 1)))
        for bary in [(1.0, 0.0, 0.0), (0.2, 0.3, 0.5), (1 / 3, 1 / 3, 1 / 3)]:
            result = transport.interpolate(np.array([0, 1, 2]), np.array(bary))
            np.testing.assert_array_equal(result, row)

    def test_corner_weights(self):
        transport = TransportCoefficients(np.arange(27, dtype=float).reshape(3, 9))
        np.testing.assert_allclose(
            transport.interpolate(np.array([0, 1, 2]), np.array([0.0, 1.0, 0.0])),
            transport.coeffs[1]
        )

    def test_batched(self):
        transport = TransportCoefficients(np.eye(9)[:4])
        indices = np.array([[0, 1, 2], [1, 2, 3]])
        bary = np.array([[0.5, 0.5, 0.0], [0.0, 0.0, 1.0]])
        result = transport.interpolate(indices, bary)
        assert result.shape == (2, 9)
        np.testing.assert_allclose(result[0, :2], 0.5)
        np.testing.assert_allclose(result[1, 3], 1.0)

    def test_out_of_range_index(self):
        transport = TransportCoefficients.zeros(3)
        with pytest.raises(InvalidIndexError):
            transport.interpolate(np.array([0, 1, 3]), np.array([0.2, 0.3, 0.5]))
