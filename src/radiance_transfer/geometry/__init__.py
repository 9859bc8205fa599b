"""Mesh loading and ray-cast visibility queries."""

from .mesh import Mesh, load_mesh, create_mesh_from_arrays
from .scene import MeshScene, Ray, Intersection, HitRecord

__all__ = [
    "Mesh",
    "load_mesh",
    "create_mesh_from_arrays",
    "MeshScene",
    "Ray",
    "Intersection",
    "HitRecord",
]
