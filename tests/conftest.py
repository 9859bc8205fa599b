"""Shared synthetic meshes for the test suite."""

import numpy as np
import pytest

from radiance_transfer.geometry import create_mesh_from_arrays


def make_quad(half_size: float, height: float, facing_up: bool):
    """Two triangles spanning [-half_size, half_size]^2 at z=height."""
    s = half_size
    vertices = np.array([[-s, -s, height], [s, -s, height], [s, s, height], [-s, s, height]])
    faces = np.array([[0, 1, 2], [0, 2, 3]]) if facing_up else np.array([[0, 2, 1], [0, 3, 2]])
    normal = [0.0, 0.0, 1.0] if facing_up else [0.0, 0.0, -1.0]
    return vertices, faces, np.tile(normal, (4, 1))


@pytest.fixture
def quad():
    return make_quad


@pytest.fixture
def flat_floor():
    """Upward-facing 2x2 quad at z=0."""
    vertices, faces, normals = make_quad(1.0, 0.0, facing_up=True)
    return create_mesh_from_arrays(vertices, faces, normals)


@pytest.fixture
def floor_and_ceiling():
    """Floor quad at z=0 (vertices 0-3) under a 20x20 ceiling at z=1 (vertices 4-7)."""
    fv, ff, fn = make_quad(1.0, 0.0, facing_up=True)
    cv, cf, cn = make_quad(10.0, 1.0, facing_up=False)
    return create_mesh_from_arrays(
        np.vstack([fv, cv]), np.vstack([ff, cf + 4]), np.vstack([fn, cn])
    )


@pytest.fixture
def unit_triangle():
    """Right triangle in the z=0 plane facing +z."""
    vertices = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    return create_mesh_from_arrays(vertices, np.array([[0, 1, 2]]))
