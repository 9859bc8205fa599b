"""Visibility oracle backed by trimesh ray queries.

Provides any-hit and closest-hit queries against a single mesh. Queries
are batched: origins and directions are (R, 3) arrays. Closest hits report
the hit triangle's vertex indices and barycentric weights, which is what
transport interpolation needs.
"""

import numpy as np
import trimesh
from dataclasses import dataclass
from typing import Optional

from .mesh import Mesh
from ..light_transport.spherical_harmonics import normalize_directions


@dataclass(frozen=True)
class Ray:
    """A single ray. Direction need not be normalized."""
    origin: np.ndarray
    direction: np.ndarray


@dataclass(frozen=True)
class Intersection:
    """Closest hit of a single ray.

    Attributes:
        triangle: Index of the hit triangle
        vertex_indices: The triangle's three vertex indices, shape (3,)
        barycentric: Weights of the hit point w.r.t. those vertices, shape (3,)
        distance: Ray parameter of the hit (for a unit direction)
    """
    triangle: int
    vertex_indices: np.ndarray
    barycentric: np.ndarray
    distance: float


@dataclass
class HitRecord:
    """Closest hits of a batch of R rays. Entries where ``hit`` is False are zero."""
    hit: np.ndarray             # (R,) bool
    triangle: np.ndarray        # (R,) int64, -1 on miss
    vertex_indices: np.ndarray  # (R, 3) int64
    barycentric: np.ndarray     # (R, 3) float64
    distance: np.ndarray        # (R,) float64, inf on miss

    def __len__(self) -> int:
        return len(self.hit)

    def __getitem__(self, i: int) -> Optional[Intersection]:
        if not self.hit[i]:
            return None
        return Intersection(
            triangle=int(self.triangle[i]),
            vertex_indices=self.vertex_indices[i].copy(),
            barycentric=self.barycentric[i].copy(),
            distance=float(self.distance[i]),
        )


class MeshScene:
    """Ray-cast visibility queries against a mesh.

    Uses ``trimesh``'s ray intersector (embree if installed, otherwise the
    rtree-accelerated numpy implementation).

    Example:
        >>> scene = MeshScene(mesh)
        >>> blocked = scene.intersects_any(origins, directions)
        >>> hits = scene.intersect(origins, directions)
        >>> hits.vertex_indices[hits.hit]
    """

    def __init__(self, mesh: Mesh):
        self.mesh = mesh
        self._tm = mesh.as_trimesh()

    def intersects_any(self, origins: np.ndarray, directions: np.ndarray) -> np.ndarray:
        """Any-hit query.

        Args:
            origins: Ray origins, shape (R, 3)
            directions: Ray directions, shape (R, 3)

        Returns:
            Boolean mask, shape (R,). Zero-length directions never hit.
        """
        origins, directions, valid = self._prepare(origins, directions)
        result = np.zeros(len(origins), dtype=bool)
        if not valid.any() or self.mesh.triangle_count == 0:
            return result

        result[valid] = np.asarray(
            self._tm.ray.intersects_any(
                ray_origins=origins[valid], ray_directions=directions[valid]
            ),
            dtype=bool
        )
        return result

    def intersect(self, origins: np.ndarray, directions: np.ndarray) -> HitRecord:
        """Closest-hit query.

        Args:
            origins: Ray origins, shape (R, 3)
            directions: Ray directions, shape (R, 3)

        Returns:
            HitRecord with barycentric weights clamped to [0, 1] and
            renormalized to sum to 1. Zero-length directions never hit.
        """
        origins, directions, valid = self._prepare(origins, directions)
        n_rays = len(origins)

        record = HitRecord(
            hit=np.zeros(n_rays, dtype=bool),
            triangle=np.full(n_rays, -1, dtype=np.int64),
            vertex_indices=np.zeros((n_rays, 3), dtype=np.int64),
            barycentric=np.zeros((n_rays, 3), dtype=np.float64),
            distance=np.full(n_rays, np.inf, dtype=np.float64),
        )
        if not valid.any() or self.mesh.triangle_count == 0:
            return record

        ray_ids = np.flatnonzero(valid)
        index_tri, index_ray, locations = self._tm.ray.intersects_id(
            ray_origins=origins[ray_ids],
            ray_directions=directions[ray_ids],
            multiple_hits=False,
            return_locations=True
        )
        if len(index_tri) == 0:
            return record

        index_tri = np.asarray(index_tri, dtype=np.int64)
        index_ray = ray_ids[np.asarray(index_ray, dtype=np.int64)]
        locations = np.asarray(locations, dtype=np.float64)

        bary = trimesh.triangles.points_to_barycentric(
            self._tm.triangles[index_tri], locations
        )
        bary = np.clip(np.nan_to_num(bary, nan=1.0 / 3.0), 0.0, 1.0)
        totals = bary.sum(axis=1, keepdims=True)
        degenerate = totals[:, 0] <= 0.0
        totals[degenerate] = 1.0
        bary = bary / totals
        bary[degenerate] = 1.0 / 3.0

        record.hit[index_ray] = True
        record.triangle[index_ray] = index_tri
        record.vertex_indices[index_ray] = self.mesh.faces[index_tri]
        record.barycentric[index_ray] = bary
        record.distance[index_ray] = np.einsum(
            'ij,ij->i', locations - origins[index_ray], directions[index_ray]
        )
        return record

    def occluded(self, ray: Ray) -> bool:
        """Single-ray any-hit query."""
        return bool(self.intersects_any(
            np.asarray(ray.origin)[None], np.asarray(ray.direction)[None]
        )[0])

    def intersect_ray(self, ray: Ray) -> Optional[Intersection]:
        """Single-ray closest-hit query; None when the ray misses."""
        return self.intersect(
            np.asarray(ray.origin)[None], np.asarray(ray.direction)[None]
        )[0]

    @staticmethod
    def _prepare(origins: np.ndarray, directions: np.ndarray):
        """Reshape to (R, 3), normalize directions and flag degenerate ones."""
        origins = np.ascontiguousarray(origins, dtype=np.float64).reshape(-1, 3)
        directions = np.ascontiguousarray(directions, dtype=np.float64).reshape(-1, 3)
        if origins.shape != directions.shape:
            raise ValueError(
                f"origins {origins.shape} and directions {directions.shape} must match"
            )
        directions, valid = normalize_directions(directions)
        return origins, directions, valid
