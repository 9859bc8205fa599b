"""Triangle mesh container and loaders."""

import warnings

import numpy as np
import trimesh
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..errors import InvalidIndexError, ResourceLoadError, ResourceMismatchError


@dataclass(eq=False)
class Mesh:
    """Indexed triangle mesh with per-vertex normals.

    Vertex order is significant: transport coefficients are stored one row
    per vertex in this order.

    Attributes:
        vertices: Vertex positions, shape (N, 3)
        faces: Triangle vertex indices, shape (F, 3)
        normals: Unit vertex normals, shape (N, 3). Computed from the
            faces (area-weighted, via trimesh) if not given.
    """
    vertices: np.ndarray
    faces: np.ndarray
    normals: Optional[np.ndarray] = None
    _trimesh: Optional[trimesh.Trimesh] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        """Validate shapes and index ranges."""
        self.vertices = np.ascontiguousarray(self.vertices, dtype=np.float64)
        self.faces = np.ascontiguousarray(self.faces, dtype=np.int64)

        if self.vertices.ndim != 2 or self.vertices.shape[1] != 3:
            raise ResourceMismatchError(
                f"vertices must have shape (N, 3), got {self.vertices.shape}"
            )
        if self.faces.ndim != 2 or self.faces.shape[1] != 3:
            raise ResourceMismatchError(
                f"faces must have shape (F, 3), got {self.faces.shape}"
            )
        if self.faces.size and (self.faces.min() < 0 or self.faces.max() >= len(self.vertices)):
            raise InvalidIndexError(
                f"Face indices must be in [0, {len(self.vertices)}), "
                f"got range [{self.faces.min()}, {self.faces.max()}]"
            )

        if self.normals is None:
            self.normals = np.asarray(self.as_trimesh().vertex_normals, dtype=np.float64)
        else:
            self.normals = np.asarray(self.normals, dtype=np.float64)
            if self.normals.shape != self.vertices.shape:
                raise ResourceMismatchError(
                    f"normals shape {self.normals.shape} does not match "
                    f"vertices shape {self.vertices.shape}"
                )

        lengths = np.linalg.norm(self.normals, axis=1, keepdims=True)
        degenerate = lengths[:, 0] < 1e-12
        if degenerate.any():
            warnings.warn(
                f"{int(degenerate.sum())} vertices have zero-length normals; "
                f"their transport will be zero"
            )
        lengths[degenerate] = 1.0
        self.normals = self.normals / lengths

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.faces)

    def as_trimesh(self) -> trimesh.Trimesh:
        """Trimesh view of this mesh (vertex order preserved)."""
        if self._trimesh is None:
            self._trimesh = trimesh.Trimesh(
                vertices=self.vertices, faces=self.faces, process=False
            )
        return self._trimesh


def load_mesh(file_path: Path | str) -> Mesh:
    """Load a mesh from any format trimesh understands (OBJ, PLY, STL, ...).

    Args:
        file_path: Path to mesh file

    Returns:
        Loaded mesh; vertex normals from the file are kept if present

    Raises:
        ResourceLoadError: If file doesn't exist or cannot be loaded as a mesh
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise ResourceLoadError(f"Mesh file not found: {file_path}")

    try:
        loaded = trimesh.load(file_path, process=False)
        # Handle case where trimesh.load returns a Scene instead of Trimesh
        if isinstance(loaded, trimesh.Scene):
            # Combine all geometries in the scene
            loaded = trimesh.util.concatenate(
                [geom for geom in loaded.geometry.values()]
            )
    except Exception as e:
        raise ResourceLoadError(f"Failed to load mesh from {file_path}: {e}") from e

    if not isinstance(loaded, trimesh.Trimesh) or len(loaded.faces) == 0:
        raise ResourceLoadError(f"No triangles found in {file_path}")

    return create_mesh_from_arrays(loaded.vertices, loaded.faces, loaded.vertex_normals)


def create_mesh_from_arrays(
    vertices: np.ndarray,
    faces: np.ndarray,
    normals: Optional[np.ndarray] = None
) -> Mesh:
    """Create a mesh from vertex, face and (optionally) normal arrays.

    Args:
        vertices: Nx3 array of vertex coordinates
        faces: Mx3 array of face indices
        normals: Optional Nx3 array of vertex normals

    Returns:
        Mesh object
    """
    return Mesh(vertices=np.asarray(vertices), faces=np.asarray(faces), normals=normals)
