"""Spherical-harmonics precomputed radiance transfer.

Projects a cubemap environment onto order-2 SH lighting coefficients,
projects per-vertex transport (unshadowed, shadowed, interreflected) onto
the same basis, and reconstructs radiance as a dot product of the two.

Main Components:
    VertexTransportProjector: Direct / shadowed per-vertex transport
    InterreflectionSolver: Adds bounce transport pass by pass
    TransferEvaluator: Shading-time reconstruction
    LightCoefficients, TransportCoefficients: Coefficient containers

Example:
    >>> from radiance_transfer.geometry import load_mesh, MeshScene
    >>> from radiance_transfer.light_transport import (
    ...     project_cubemap_directory, VertexTransportProjector, TransferEvaluator
    ... )
    >>>
    >>> light = project_cubemap_directory("cubemaps/park", extension=".jpg")
    >>> mesh = load_mesh("bunny.obj")
    >>> scene = MeshScene(mesh)
    >>> transport = VertexTransportProjector(scene, "shadowed", seed=42).project(mesh)
    >>> colors = TransferEvaluator(light, transport, scene).vertex_radiance()
    >>> print(colors.shape)
    (mesh.vertex_count, 3)
"""

from .spherical_harmonics import (
    SH_ORDER,
    N_SH_COEFFS,
    eval_sh,
    eval_sh_basis,
    sh_index,
    sh_lm,
    direction_from_angles,
    angles_from_direction,
    stratified_sphere_samples,
    verify_sh_orthonormality,
)
from .transfer_matrix import (
    LightCoefficients,
    TransportCoefficients,
    save_light_coefficients,
    load_light_coefficients,
    save_transport_file,
    load_transport_file,
    save_prt_npz,
    load_prt_npz,
    analyze_transport,
)
from .cubemap import (
    CubemapFace,
    CUBEMAP_FACES,
    load_cubemap,
    faces_from_images,
    cubemap_directions,
    cubemap_solid_angles,
    project_cubemap,
    project_cubemap_directory,
)
from .transport import TransportMode, VertexTransportProjector
from .interreflection import InterreflectionSolver, TransportBuffers
from .evaluator import TransferEvaluator

__all__ = [
    # Core classes
    "VertexTransportProjector",
    "InterreflectionSolver",
    "TransferEvaluator",
    "TransportMode",
    "TransportBuffers",
    "LightCoefficients",
    "TransportCoefficients",
    "CubemapFace",

    # Spherical harmonics
    "SH_ORDER",
    "N_SH_COEFFS",
    "eval_sh",
    "eval_sh_basis",
    "sh_index",
    "sh_lm",
    "direction_from_angles",
    "angles_from_direction",
    "stratified_sphere_samples",
    "verify_sh_orthonormality",

    # Cubemaps
    "CUBEMAP_FACES",
    "load_cubemap",
    "faces_from_images",
    "cubemap_directions",
    "cubemap_solid_angles",
    "project_cubemap",
    "project_cubemap_directory",

    # Coefficient I/O
    "save_light_coefficients",
    "load_light_coefficients",
    "save_transport_file",
    "load_transport_file",
    "save_prt_npz",
    "load_prt_npz",
    "analyze_transport",
]
