"""Basic usage example for radiance transfer precomputation."""

from pathlib import Path

import numpy as np
import trimesh

from radiance_transfer import PRTConfig, PRTPrecomputer
from radiance_transfer.geometry import MeshScene, create_mesh_from_arrays
from radiance_transfer.light_transport import (
    TransferEvaluator,
    VertexTransportProjector,
    InterreflectionSolver,
    analyze_transport,
    faces_from_images,
    cubemap_directions,
    project_cubemap,
)


def sky_cubemap(size: int = 32):
    """Procedural environment: bright blue sky above, dark ground below."""
    blank = faces_from_images([np.zeros((size, size, 3))] * 6)
    images = []
    for face in blank:
        z = cubemap_directions(face)[..., 2]
        sky = np.clip(z, 0.0, 1.0)[..., None] * np.array([0.6, 0.8, 1.0])
        ground = np.clip(-z, 0.0, 1.0)[..., None] * np.array([0.1, 0.08, 0.05])
        images.append(sky + ground)
    return faces_from_images(images)


def box_on_plane():
    """A unit box resting on a 6x6 ground plane."""
    box = trimesh.creation.box(extents=(1.0, 1.0, 1.0))
    box.apply_translation((0.0, 0.0, 0.5))
    plane = trimesh.creation.box(extents=(6.0, 6.0, 0.01))
    plane.apply_translation((0.0, 0.0, -0.005))
    combined = trimesh.util.concatenate([box, plane])
    return create_mesh_from_arrays(combined.vertices, combined.faces)


def example_in_memory():
    """Project an in-memory environment and compare transport modes."""
    light = project_cubemap(sky_cubemap())
    print(f"Light DC (RGB): {light.coeffs[0]}")

    mesh = box_on_plane()
    scene = MeshScene(mesh)

    for mode in ["unshadowed", "shadowed"]:
        transport = VertexTransportProjector(
            scene, mode, sample_count=256, seed=42, show_progress=True
        ).project(mesh)
        stats = analyze_transport(transport)
        print(f"{mode}: mean DC {stats['dc_mean']:.4f}")

    direct = VertexTransportProjector(scene, "shadowed", sample_count=256, seed=42).project(mesh)
    transport = InterreflectionSolver(
        scene, sample_count=256, bounces=2, seed=42, show_progress=True
    ).solve(mesh, direct)

    evaluator = TransferEvaluator(light, transport, scene, albedo=0.5)
    top = evaluator.evaluate(np.array([[0.0, 0.0, 3.0]]), np.array([[0.0, 0.0, -1.0]]))
    print(f"Radiance seen looking down on the box: {top[0]}")


def example_pipeline():
    """Run the full pipeline on a mesh file and a cubemap directory."""
    cubemap_dir = Path("path/to/cubemap")   # negx.jpg, posx.jpg, ...
    mesh_path = Path("path/to/your/mesh.obj")

    if cubemap_dir.exists() and mesh_path.exists():
        config = PRTConfig(
            cubemap_dir=cubemap_dir,
            mode="interreflection",
            bounces=1,
            sample_count=400,
            output_dir=Path("output/prt_test"),
            export_preview=True
        )
        result = PRTPrecomputer(config).run(mesh_path)
        print(f"Timings: {result.timings}")
    else:
        print(f"Inputs not found: {cubemap_dir}, {mesh_path}")


if __name__ == "__main__":
    print("=== In-memory example ===")
    example_in_memory()

    print("\n=== Pipeline example ===")
    example_pipeline()
