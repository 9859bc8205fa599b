"""Configuration management for radiance transfer precomputation."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..errors import ConfigurationError
from ..light_transport.transport import TransportMode


@dataclass
class PRTConfig:
    """Configuration for one precomputation run.

    Attributes:
        cubemap_dir: Directory holding the six cubemap face images
        sample_count: Requested samples per vertex (k * k are drawn,
            k = floor(sqrt(sample_count)))
        mode: Transport mode: "unshadowed", "shadowed" or "interreflection"
        bounces: Interreflection passes (ignored unless mode is interreflection)
        seed: Root random seed (None draws fresh entropy)
        batch_size: Vertices per batched ray query
        ray_epsilon: Ray origin offset along the sample direction
        image_extension: Cubemap face file extension (default: ".jpg")
        albedo: Surface albedo used for the vertex color preview
        output_dir: Where outputs are written (default: cubemap_dir)
        export_preview: If True, also write a PLY with per-vertex colors
        show_progress: Show progress bars and timing summaries
    """

    cubemap_dir: Path
    sample_count: int = 100
    mode: Union[str, TransportMode] = TransportMode.UNSHADOWED
    bounces: int = 1
    seed: Optional[int] = 42
    batch_size: int = 256
    ray_epsilon: float = 1e-4
    image_extension: str = ".jpg"
    albedo: float = 0.5
    output_dir: Optional[Path] = None
    export_preview: bool = False
    show_progress: bool = True

    def __post_init__(self):
        """Validate configuration and fill derived values."""
        self.mode = TransportMode.parse(self.mode)

        if self.sample_count < 1:
            raise ConfigurationError(f"sample_count must be >= 1, got {self.sample_count}")

        if self.bounces < 0:
            raise ConfigurationError(f"bounces must be >= 0, got {self.bounces}")

        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")

        if self.ray_epsilon < 0:
            raise ConfigurationError(f"ray_epsilon must be >= 0, got {self.ray_epsilon}")

        if self.albedo < 0:
            raise ConfigurationError(f"albedo must be >= 0, got {self.albedo}")

        if not self.image_extension.startswith("."):
            self.image_extension = "." + self.image_extension

        self.cubemap_dir = Path(self.cubemap_dir)
        self.output_dir = Path(self.output_dir) if self.output_dir is not None else self.cubemap_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)

    @property
    def effective_bounces(self) -> int:
        """Bounce passes actually run for the configured mode."""
        return self.bounces if self.mode is TransportMode.INTERREFLECTION else 0

    def get_light_path(self) -> Path:
        return self.output_dir / "light.txt"

    def get_transport_path(self) -> Path:
        return self.output_dir / "transport.txt"

    def get_npz_path(self) -> Path:
        return self.output_dir / "prt.npz"

    def get_metadata_path(self) -> Path:
        """Get path to run metadata file."""
        return self.output_dir / "metadata.json"

    def get_preview_path(self) -> Path:
        return self.output_dir / "preview.ply"

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view of the configuration."""
        return {
            "cubemap_dir": str(self.cubemap_dir),
            "sample_count": self.sample_count,
            "mode": self.mode.value,
            "bounces": self.effective_bounces,
            "seed": self.seed,
            "batch_size": self.batch_size,
            "ray_epsilon": self.ray_epsilon,
            "image_extension": self.image_extension,
            "albedo": self.albedo,
            "output_dir": str(self.output_dir),
        }
