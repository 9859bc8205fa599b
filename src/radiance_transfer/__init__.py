"""Spherical-harmonics precomputed radiance transfer for triangle meshes."""

from .errors import PRTError
from .geometry.mesh import Mesh, load_mesh
from .geometry.scene import MeshScene
from .light_transport.transport import TransportMode, VertexTransportProjector
from .light_transport.interreflection import InterreflectionSolver
from .light_transport.evaluator import TransferEvaluator
from .pipeline import PRTPrecomputer
from .utils.config import PRTConfig

__version__ = "0.1.0"
__all__ = [
    "PRTError",
    "Mesh",
    "load_mesh",
    "MeshScene",
    "TransportMode",
    "VertexTransportProjector",
    "InterreflectionSolver",
    "TransferEvaluator",
    "PRTPrecomputer",
    "PRTConfig",
]
