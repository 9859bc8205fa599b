"""Main pipeline for precomputing radiance transfer coefficients."""

import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np
import trimesh

from .errors import PRTError
from .geometry.mesh import Mesh, load_mesh
from .geometry.scene import MeshScene
from .light_transport.cubemap import project_cubemap_directory
from .light_transport.evaluator import TransferEvaluator
from .light_transport.interreflection import InterreflectionSolver
from .light_transport.transfer_matrix import (
    LightCoefficients,
    TransportCoefficients,
    analyze_transport,
    save_light_coefficients,
    save_prt_npz,
    save_transport_file,
)
from .light_transport.transport import TransportMode, VertexTransportProjector
from .utils.config import PRTConfig
from .utils.metadata import MetadataWriter

# Display gamma for the vertex color preview
PREVIEW_GAMMA = 2.2


@dataclass
class PRTResult:
    """Everything produced by one run."""
    light: LightCoefficients
    transport: TransportCoefficients
    mesh: Mesh
    timings: Dict[str, float] = field(default_factory=dict)


class PRTPrecomputer:
    """Main pipeline for precomputed radiance transfer.

    This class orchestrates the entire process:
    1. Projection of the cubemap environment onto SH light coefficients
    2. Per-vertex transport projection (unshadowed or shadowed)
    3. Interreflection passes (interreflection mode only)
    4. Writing coefficient files and run metadata
    """

    def __init__(self, config: PRTConfig):
        """Initialize the precomputer.

        Args:
            config: Configuration object
        """
        self.config = config

    def project_environment(self) -> LightCoefficients:
        """Load the configured cubemap and project it onto the SH basis."""
        light = project_cubemap_directory(
            self.config.cubemap_dir, extension=self.config.image_extension
        )
        if self.config.show_progress:
            print(f"Projected cubemap {self.config.cubemap_dir} "
                  f"(DC RGB: {', '.join(f'{c:.4f}' for c in light.coeffs[0])})")
        return light

    def project_transport(
        self,
        mesh: Mesh,
        scene: Optional[MeshScene] = None,
        timings: Optional[Dict[str, float]] = None
    ) -> TransportCoefficients:
        """Direct transport plus any configured interreflection passes.

        Args:
            mesh: Mesh to project
            scene: Visibility oracle (built from ``mesh`` if not given)
            timings: If given, stage durations are recorded here

        Returns:
            Transport coefficients, shape (N, 9)
        """
        cfg = self.config
        scene = scene or MeshScene(mesh)
        timings = timings if timings is not None else {}

        start = time.time()
        projector = VertexTransportProjector(
            scene,
            mode=cfg.mode,
            sample_count=cfg.sample_count,
            seed=cfg.seed,
            batch_size=cfg.batch_size,
            ray_epsilon=cfg.ray_epsilon,
            show_progress=cfg.show_progress
        )
        transport = projector.project(mesh)
        timings["transport"] = time.time() - start

        if cfg.mode is TransportMode.INTERREFLECTION:
            start = time.time()
            solver = InterreflectionSolver(
                scene,
                sample_count=cfg.sample_count,
                bounces=cfg.bounces,
                seed=cfg.seed,
                batch_size=cfg.batch_size,
                ray_epsilon=cfg.ray_epsilon,
                show_progress=cfg.show_progress
            )
            transport = solver.solve(mesh, transport)
            timings["interreflection"] = time.time() - start

        return transport

    def run(self, mesh: Union[Mesh, Path, str], save: bool = True) -> PRTResult:
        """Run the full pipeline on a mesh or mesh file.

        Args:
            mesh: Mesh object or path to a mesh file
            save: Whether to write outputs to ``config.output_dir``

        Returns:
            PRTResult with light and transport coefficients
        """
        mesh_file = None
        if not isinstance(mesh, Mesh):
            mesh_file = Path(mesh)
            mesh = load_mesh(mesh_file)

        timings = {}
        start = time.time()
        light = self.project_environment()
        timings["environment"] = time.time() - start

        scene = MeshScene(mesh)
        transport = self.project_transport(mesh, scene, timings)

        result = PRTResult(light=light, transport=transport, mesh=mesh, timings=timings)

        if save:
            self.save(result, scene=scene, mesh_file=mesh_file)

        return result

    def save(
        self,
        result: PRTResult,
        scene: Optional[MeshScene] = None,
        mesh_file: Optional[Path] = None
    ) -> None:
        """Write light/transport files, npz archive, metadata and optional preview."""
        cfg = self.config
        mesh = result.mesh

        save_light_coefficients(cfg.get_light_path(), result.light)
        save_transport_file(cfg.get_transport_path(), result.transport, mesh.faces)

        transport_stats = analyze_transport(result.transport)
        mesh_stats = {
            "vertex_count": mesh.vertex_count,
            "triangle_count": mesh.triangle_count,
            "bbox_min": mesh.vertices.min(axis=0) if mesh.vertex_count else None,
            "bbox_max": mesh.vertices.max(axis=0) if mesh.vertex_count else None,
        }

        save_prt_npz(
            cfg.get_npz_path(),
            result.light,
            result.transport,
            {
                "config": cfg.to_dict(),
                "vertex_count": mesh.vertex_count,
                "faces": mesh.faces,
            }
        )
        MetadataWriter.write_run_metadata(
            cfg.get_metadata_path(),
            config=cfg.to_dict(),
            mesh_stats=mesh_stats,
            light_coeffs=result.light.coeffs,
            transport_stats=transport_stats,
            timings=result.timings,
            mesh_file=str(mesh_file) if mesh_file is not None else None
        )

        if cfg.export_preview:
            self.export_preview(result, scene or MeshScene(mesh), cfg.get_preview_path())

        if cfg.show_progress:
            print(f"Saved light coefficients to {cfg.get_light_path()}")
            print(f"Saved transport coefficients to {cfg.get_transport_path()}")

    def export_preview(self, result: PRTResult, scene: MeshScene, path: Path) -> Path:
        """Write the mesh with reconstructed per-vertex colors (PLY)."""
        evaluator = TransferEvaluator(
            result.light, result.transport, scene, albedo=self.config.albedo
        )
        radiance = np.clip(evaluator.vertex_radiance(), 0.0, 1.0)
        rgb = np.round(255.0 * radiance ** (1.0 / PREVIEW_GAMMA)).astype(np.uint8)
        colors = np.concatenate([rgb, np.full((len(rgb), 1), 255, dtype=np.uint8)], axis=1)

        preview = trimesh.Trimesh(
            vertices=result.mesh.vertices,
            faces=result.mesh.faces,
            vertex_colors=colors,
            process=False
        )
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        preview.export(path)

        if self.config.show_progress:
            print(f"Saved vertex color preview to {path}")
        return path


def main(argv=None) -> int:
    """Command line entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Precompute SH radiance transfer for a mesh lit by a cubemap"
    )
    parser.add_argument(
        "mesh",
        type=Path,
        help="Mesh file (OBJ, PLY, STL, ...)"
    )
    parser.add_argument(
        "cubemap_dir",
        type=Path,
        help="Directory with negx/posx/posy/negy/posz/negz face images"
    )
    parser.add_argument(
        "--mode",
        type=str,
        default="unshadowed",
        help="Transport mode: unshadowed, shadowed or interreflection"
    )
    parser.add_argument(
        "--sample-count",
        type=int,
        default=100,
        help="Samples per vertex (rounded down to a square)"
    )
    parser.add_argument(
        "--bounces",
        type=int,
        default=1,
        help="Interreflection passes (interreflection mode only)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=256,
        help="Vertices per batched ray query"
    )
    parser.add_argument(
        "--extension",
        type=str,
        default=".jpg",
        help="Cubemap face image extension"
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Output directory (default: the cubemap directory)"
    )
    parser.add_argument(
        "--albedo",
        type=float,
        default=0.5,
        help="Surface albedo for the preview"
    )
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Also write preview.ply with per-vertex colors"
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Disable progress bars and summaries"
    )

    args = parser.parse_args(argv)

    try:
        config = PRTConfig(
            cubemap_dir=args.cubemap_dir,
            sample_count=args.sample_count,
            mode=args.mode,
            bounces=args.bounces,
            seed=args.seed,
            batch_size=args.batch_size,
            image_extension=args.extension,
            albedo=args.albedo,
            output_dir=args.output_dir,
            export_preview=args.preview,
            show_progress=not args.quiet
        )
        PRTPrecomputer(config).run(args.mesh)
    except PRTError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
