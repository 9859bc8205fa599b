"""Run metadata generation."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np


def _to_builtin(value: Any) -> Any:
    """Convert numpy scalars, arrays and tuples to JSON-serializable types."""
    if isinstance(value, dict):
        return {k: _to_builtin(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_builtin(v) for v in value]
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, Path):
        return str(value)
    return value


class MetadataWriter:
    """Handles creation and writing of metadata files."""

    @staticmethod
    def write_run_metadata(
        output_path: Path,
        config: Dict,
        mesh_stats: Dict,
        light_coeffs: np.ndarray,
        transport_stats: Dict,
        timings: Dict[str, float],
        mesh_file: Optional[str] = None
    ):
        """Write metadata for one precomputation run.

        Args:
            output_path: Path to metadata.json
            config: Configuration dictionary
            mesh_stats: Vertex/triangle counts and bounds
            light_coeffs: Light coefficients, shape (9, 3)
            transport_stats: Output of ``analyze_transport``
            timings: Seconds spent per stage
            mesh_file: Source mesh file (optional)
        """
        metadata = {
            "version": "1.0",
            "created_at": datetime.now().isoformat(),
            "sh_order": 2,
            "config": config,
            "mesh": mesh_stats,
            "light_coefficients": np.asarray(light_coeffs),
            "transport_stats": transport_stats,
            "timings": timings,
        }

        if mesh_file is not None:
            metadata["mesh"] = dict(mesh_stats, source_file=str(mesh_file))

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            json.dump(_to_builtin(metadata), f, indent=2)

    @staticmethod
    def read_metadata(input_path: Path) -> Dict:
        """Read run metadata from JSON."""
        with open(input_path, "r") as f:
            return json.load(f)
