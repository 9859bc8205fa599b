"""Tests for mesh loading and the visibility oracle."""

import numpy as np
import pytest
import trimesh

from radiance_transfer.errors import InvalidIndexError, ResourceLoadError, ResourceMismatchError
from radiance_transfer.geometry import (
    Mesh,
    MeshScene,
    Ray,
    create_mesh_from_arrays,
    load_mesh,
)


class TestMesh:
    """Tests for the Mesh container."""

    def test_computed_normals(self, unit_triangle):
        mesh = unit_triangle
        np.testing.assert_allclose(mesh.normals, [[0, 0, 1]] * 3, atol=1e-12)
        assert mesh.vertex_count == 3
        assert mesh.triangle_count == 1

    def test_normals_normalized(self):
        with pytest.warns(UserWarning, match="zero-length normals"):
            mesh = Mesh(
                vertices=np.eye(3),
                faces=np.array([[0, 1, 2]]),
                normals=np.array([[0, 0, 2.0], [0, 3.0, 0], [0, 0, 0]])
            )
        np.testing.assert_allclose(mesh.normals[0], [0, 0, 1])
        np.testing.assert_allclose(mesh.normals[1], [0, 1, 0])
        np.testing.assert_allclose(mesh.normals[2], [0, 0, 0])

    def test_create_from_arrays_keeps_order(self):
        vertices = np.array([[0.0, 0.0, 1.0], [1.0, 0.0, 1.0], [0.0, 1.0, 1.0]])
        mesh = create_mesh_from_arrays(vertices, [[0, 1, 2]], normals=[[0, 0, -1]] * 3)
        np.testing.assert_array_equal(mesh.vertices, vertices)
        np.testing.assert_allclose(mesh.normals, [[0, 0, -1]] * 3)

    def test_face_index_out_of_range(self):
        with pytest.raises(InvalidIndexError):
            Mesh(vertices=np.eye(3), faces=np.array([[0, 1, 3]]))

    def test_bad_shapes(self):
        with pytest.raises(ResourceMismatchError):
            Mesh(vertices=np.zeros((3, 2)), faces=np.array([[0, 1, 2]]))
        with pytest.raises(ResourceMismatchError):
            Mesh(vertices=np.eye(3), faces=np.array([[0, 1, 2]]), normals=np.zeros((2, 3)))

    def test_load_mesh(self, tmp_path):
        box = trimesh.creation.box(extents=(1.0, 1.0, 1.0))
        path = tmp_path / "box.ply"
        box.export(path)

        mesh = load_mesh(path)
        assert mesh.triangle_count == 12
        np.testing.assert_allclose(np.linalg.norm(mesh.normals, axis=1), 1.0)

    def test_load_missing(self, tmp_path):
        with pytest.raises(ResourceLoadError):
            load_mesh(tmp_path / "missing.obj")


class TestMeshScene:
    """Tests for ray queries."""

    @pytest.fixture
    def scene(self, unit_triangle):
        return MeshScene(unit_triangle)

    def test_closest_hit(self, scene):
        hit = scene.intersect_ray(Ray(origin=np.array([0.25, 0.25, 1.0]),
                                      direction=np.array([0.0, 0.0, -1.0])))
        assert hit is not None
        np.testing.assert_array_equal(hit.vertex_indices, [0, 1, 2])
        np.testing.assert_allclose(hit.barycentric, [0.5, 0.25, 0.25], atol=1e-9)
        assert np.isclose(hit.barycentric.sum(), 1.0)
        assert np.isclose(hit.distance, 1.0)
        assert hit.triangle == 0

    def test_miss(self, scene):
        ray = Ray(origin=np.array([0.25, 0.25, 1.0]), direction=np.array([0.0, 0.0, 1.0]))
        assert scene.intersect_ray(ray) is None
        assert not scene.occluded(ray)

    def test_unnormalized_direction(self, scene):
        hit = scene.intersect_ray(Ray(origin=np.array([0.25, 0.25, 2.0]),
                                      direction=np.array([0.0, 0.0, -5.0])))
        assert np.isclose(hit.distance, 2.0)

    def test_batch_queries(self, scene):
        origins = np.array([[0.25, 0.25, 1.0], [2.0, 2.0, 1.0], [0.1, 0.1, -1.0]])
        directions = np.array([[0.0, 0.0, -1.0], [0.0, 0.0, -1.0], [0.0, 0.0, 1.0]])

        np.testing.assert_array_equal(
            scene.intersects_any(origins, directions), [True, False, True]
        )

        record = scene.intersect(origins, directions)
        np.testing.assert_array_equal(record.hit, [True, False, True])
        assert record.triangle[1] == -1
        assert np.isinf(record.distance[1])
        np.testing.assert_allclose(record.barycentric[record.hit].sum(axis=1), 1.0)
        assert len(record) == 3
        assert record[1] is None

    def test_zero_direction_never_hits(self, scene):
        origins = np.array([[0.25, 0.25, 0.0]])
        directions = np.zeros((1, 3))
        assert not scene.intersects_any(origins, directions)[0]
        assert not scene.intersect(origins, directions).hit[0]

    def test_barycentrics_in_range(self, scene):
        rng = np.random.default_rng(0)
        points = rng.random((200, 2)) * 0.5
        origins = np.column_stack([points, np.ones(200)])
        directions = np.tile([0.0, 0.0, -1.0], (200, 1))

        record = scene.intersect(origins, directions)
        assert record.hit.all()
        assert np.all(record.barycentric >= 0.0)
        assert np.all(record.barycentric <= 1.0)
        np.testing.assert_allclose(record.barycentric.sum(axis=1), 1.0)
        # Reconstructs the hit point
        corners = scene.mesh.vertices[record.vertex_indices]
        hit_points = np.einsum('rk,rkj->rj', record.barycentric, corners)
        np.testing.assert_allclose(hit_points[:, :2], points, atol=1e-9)
