"""Tests for per-vertex transport projection."""

import numpy as np
import pytest

from radiance_transfer.errors import ConfigurationError, UnsupportedModeError
from radiance_transfer.geometry import MeshScene, create_mesh_from_arrays
from radiance_transfer.light_transport import (
    TransportMode,
    VertexTransportProjector,
)
from radiance_transfer.light_transport.monte_carlo import VertexStreams
from radiance_transfer.light_transport.spherical_harmonics import SH_C0, SH_C1, SH_C2_1


class TestTransportMode:
    """Tests for mode parsing."""

    def test_parse(self):
        assert TransportMode.parse("unshadowed") is TransportMode.UNSHADOWED
        assert TransportMode.parse("shadowed") is TransportMode.SHADOWED
        assert TransportMode.parse("interreflection") is TransportMode.INTERREFLECTION
        assert TransportMode.parse(TransportMode.SHADOWED) is TransportMode.SHADOWED

    def test_unsupported(self):
        with pytest.raises(UnsupportedModeError) as excinfo:
            TransportMode.parse("glossy")
        assert "glossy" in str(excinfo.value)
        assert isinstance(excinfo.value, ConfigurationError)
        assert isinstance(excinfo.value, ValueError)

    def test_projector_rejects_unknown_mode(self, flat_floor):
        with pytest.raises(UnsupportedModeError):
            VertexTransportProjector(MeshScene(flat_floor), mode="specular")

    def test_projector_rejects_bad_sampling(self, flat_floor):
        scene = MeshScene(flat_floor)
        with pytest.raises(ConfigurationError):
            VertexTransportProjector(scene, sample_count=0)
        with pytest.raises(ConfigurationError):
            VertexTransportProjector(scene, batch_size=0)


class TestVertexStreams:
    """Tests for per-vertex random streams."""

    def test_same_key_same_stream(self):
        streams = VertexStreams(11)
        a = streams.stream(0, 5).random(4)
        b = streams.stream(0, 5).random(4)
        np.testing.assert_array_equal(a, b)

    def test_distinct_keys(self):
        streams = VertexStreams(11)
        a = streams.stream(0, 5).random(4)
        assert not np.array_equal(a, streams.stream(0, 6).random(4))
        assert not np.array_equal(a, streams.stream(1, 5).random(4))

    def test_unseeded_streams_consistent(self):
        """Without a seed, one instance still hands out repeatable streams."""
        streams = VertexStreams(None)
        np.testing.assert_array_equal(
            streams.stream(2, 0).random(3), streams.stream(2, 0).random(3)
        )


class TestUnshadowedProjection:
    """Tests for the unshadowed transport function."""

    def test_flat_surface_coefficients(self, flat_floor):
        """An upward-facing vertex projects the clamped cosine around +z."""
        transport = VertexTransportProjector(
            MeshScene(flat_floor), "unshadowed", sample_count=1024, seed=0
        ).project(flat_floor)

        assert transport.coeffs.shape == (4, 9)
        expected = np.zeros(9)
        expected[0] = np.pi * SH_C0
        expected[2] = 2.0 * np.pi / 3.0 * SH_C1
        expected[6] = np.pi / 2.0 * SH_C2_1
        for row in transport.coeffs:
            np.testing.assert_allclose(row, expected, atol=0.03)

    @pytest.mark.slow
    def test_error_shrinks_with_sample_count(self, flat_floor):
        """The DC error against pi * C0 drops as more samples are drawn."""
        scene = MeshScene(flat_floor)
        errors = []
        for sample_count in [16, 256, 4096]:
            per_seed = []
            for seed in range(5):
                transport = VertexTransportProjector(
                    scene, "unshadowed", sample_count=sample_count, seed=seed
                ).project(flat_floor)
                per_seed.append(np.abs(transport.coeffs[:, 0] - np.pi * SH_C0).mean())
            errors.append(np.mean(per_seed))

        assert errors[0] > errors[1] > errors[2]
        assert errors[2] < 0.01

    def test_ignores_occluders(self, floor_and_ceiling):
        mesh = floor_and_ceiling
        transport = VertexTransportProjector(
            MeshScene(mesh), "unshadowed", sample_count=400, seed=0
        ).project(mesh)
        assert np.all(transport.coeffs[:4, 0] > 0.8)

    def test_zero_normal_vertex(self, quad):
        """A vertex without a usable normal has zero transport."""
        vertices, faces, normals = quad(1.0, 0.0, facing_up=True)
        normals[2] = 0.0
        with pytest.warns(UserWarning):
            mesh = create_mesh_from_arrays(vertices, faces, normals)
        transport = VertexTransportProjector(
            MeshScene(mesh), "shadowed", sample_count=64, seed=0
        ).project(mesh)
        np.testing.assert_array_equal(transport.coeffs[2], 0.0)


class TestShadowedProjection:
    """Tests for visibility-gated transport."""

    def test_ceiling_blocks_light(self, floor_and_ceiling):
        mesh = floor_and_ceiling
        scene = MeshScene(mesh)
        unshadowed = VertexTransportProjector(
            scene, "unshadowed", sample_count=400, seed=1
        ).project(mesh)
        shadowed = VertexTransportProjector(
            scene, "shadowed", sample_count=400, seed=1
        ).project(mesh)

        floor = slice(0, 4)
        assert np.all(shadowed.coeffs[floor, 0] < 0.5 * unshadowed.coeffs[floor, 0])
        assert np.all(shadowed.coeffs[floor, 0] >= 0.0)

    def test_unoccluded_matches_unshadowed(self, flat_floor):
        """Without occluders above, shadowed equals unshadowed for the same seed."""
        scene = MeshScene(flat_floor)
        a = VertexTransportProjector(scene, "unshadowed", sample_count=256, seed=4).project(flat_floor)
        b = VertexTransportProjector(scene, "shadowed", sample_count=256, seed=4).project(flat_floor)
        np.testing.assert_allclose(a.coeffs, b.coeffs)

    def test_interreflection_mode_is_shadowed(self, floor_and_ceiling):
        mesh = floor_and_ceiling
        scene = MeshScene(mesh)
        a = VertexTransportProjector(scene, "shadowed", sample_count=100, seed=2).project(mesh)
        b = VertexTransportProjector(scene, "interreflection", sample_count=100, seed=2).project(mesh)
        np.testing.assert_array_equal(a.coeffs, b.coeffs)


class TestReproducibility:
    """Tests for seeding and batching."""

    def test_same_seed_identical(self, floor_and_ceiling):
        mesh = floor_and_ceiling
        scene = MeshScene(mesh)
        a = VertexTransportProjector(scene, "shadowed", sample_count=100, seed=9).project(mesh)
        b = VertexTransportProjector(scene, "shadowed", sample_count=100, seed=9).project(mesh)
        np.testing.assert_array_equal(a.coeffs, b.coeffs)

    def test_batch_size_independent(self, floor_and_ceiling):
        mesh = floor_and_ceiling
        scene = MeshScene(mesh)
        a = VertexTransportProjector(
            scene, "shadowed", sample_count=100, seed=9, batch_size=1
        ).project(mesh)
        b = VertexTransportProjector(
            scene, "shadowed", sample_count=100, seed=9, batch_size=256
        ).project(mesh)
        np.testing.assert_allclose(a.coeffs, b.coeffs, atol=1e-12)

    def test_different_seeds_bounded(self, floor_and_ceiling):
        """Different seeds agree within Monte Carlo noise."""
        mesh = floor_and_ceiling
        scene = MeshScene(mesh)
        a = VertexTransportProjector(scene, "shadowed", sample_count=900, seed=1).project(mesh)
        b = VertexTransportProjector(scene, "shadowed", sample_count=900, seed=2).project(mesh)
        assert not np.array_equal(a.coeffs, b.coeffs)
        np.testing.assert_allclose(a.coeffs, b.coeffs, atol=0.05)
