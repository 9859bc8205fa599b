"""Per-vertex transport projection onto the SH basis.

For each vertex the transport function ``f(d) = max(0, d . n)`` (optionally
gated by visibility) is integrated against the SH basis with jittered
stratified sampling over the sphere. Rays are cast in batches through the
scene's visibility oracle; the per-sample arithmetic runs in numba kernels.
"""

import time
from enum import Enum
from typing import Optional, Union

import numpy as np
from tqdm import tqdm

from ..errors import ConfigurationError, UnsupportedModeError
from .monte_carlo import VertexStreams, project_vertex_samples
from .spherical_harmonics import stratified_side, stratified_sphere_samples
from .transfer_matrix import TransportCoefficients

# Random stream stage used by the direct projection
DIRECT_STAGE = 0


class TransportMode(str, Enum):
    """How the per-vertex transport function treats occluders."""
    UNSHADOWED = "unshadowed"
    SHADOWED = "shadowed"
    INTERREFLECTION = "interreflection"

    @classmethod
    def parse(cls, value: Union[str, "TransportMode"]) -> "TransportMode":
        """Map a mode string onto the enum.

        Raises:
            UnsupportedModeError: If ``value`` is not a recognized mode
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedModeError(value, tuple(m.value for m in cls)) from None

    @property
    def uses_visibility(self) -> bool:
        return self is not TransportMode.UNSHADOWED


def check_sampling_parameters(sample_count: int, batch_size: int, ray_epsilon: float) -> None:
    """Raise ConfigurationError for unusable sampling parameters."""
    if sample_count < 1:
        raise ConfigurationError(f"sample_count must be >= 1, got {sample_count}")
    if batch_size < 1:
        raise ConfigurationError(f"batch_size must be >= 1, got {batch_size}")
    if ray_epsilon < 0:
        raise ConfigurationError(f"ray_epsilon must be >= 0, got {ray_epsilon}")


def draw_vertex_directions(
    streams: VertexStreams,
    stage: int,
    vertex_ids: np.ndarray,
    sample_count: int
) -> np.ndarray:
    """Stratified sample directions for a batch of vertices, shape (V, S, 3).

    Each vertex draws from its own stream, so the directions for a vertex do
    not depend on which batch it lands in.
    """
    return np.stack([
        stratified_sphere_samples(sample_count, streams.stream(stage, int(v)))
        for v in vertex_ids
    ])


def vertex_batches(n_vertices: int, batch_size: int, desc: str, show_progress: bool):
    """Iterate over (start, stop) vertex ranges, optionally with a progress bar."""
    starts = range(0, n_vertices, batch_size)
    if show_progress:
        starts = tqdm(starts, total=len(starts), desc=desc, unit="batch")
    for start in starts:
        yield start, min(start + batch_size, n_vertices)


class VertexTransportProjector:
    """Projects per-vertex transport functions onto the order-2 SH basis.

    Example:
        >>> scene = MeshScene(mesh)
        >>> projector = VertexTransportProjector(scene, "shadowed", sample_count=400, seed=7)
        >>> transport = projector.project(mesh)
        >>> transport.coeffs.shape
        (mesh.vertex_count, 9)
    """

    def __init__(
        self,
        scene,  # MeshScene
        mode: Union[str, TransportMode] = TransportMode.UNSHADOWED,
        sample_count: int = 100,
        seed: Optional[int] = None,
        batch_size: int = 256,
        ray_epsilon: float = 1e-4,
        show_progress: bool = False
    ):
        """Initialize the projector.

        Args:
            scene: Visibility oracle providing ``intersects_any``
            mode: Transport mode; interreflection projects like shadowed
                (bounces are added by :class:`InterreflectionSolver`)
            sample_count: Requested samples per vertex; k * k are drawn,
                k = floor(sqrt(sample_count))
            seed: Root seed for the per-vertex random streams
            batch_size: Vertices per batched oracle call
            ray_epsilon: Offset of shadow ray origins along the sample direction
            show_progress: Show a tqdm bar and print a timing summary
        """
        check_sampling_parameters(sample_count, batch_size, ray_epsilon)

        self.scene = scene
        self.mode = TransportMode.parse(mode)
        self.sample_count = sample_count
        self.seed = seed
        self.batch_size = batch_size
        self.ray_epsilon = ray_epsilon
        self.show_progress = show_progress

        self.samples_per_vertex = stratified_side(sample_count) ** 2
        self.streams = VertexStreams(seed)

    def project(self, mesh) -> TransportCoefficients:
        """Project the transport function of every vertex of ``mesh``.

        Args:
            mesh: Mesh with ``vertices`` and unit ``normals``, both (N, 3)

        Returns:
            Transport coefficients, shape (N, 9)
        """
        n_vertices = len(mesh.vertices)
        transport = TransportCoefficients.zeros(n_vertices)
        start_time = time.time()

        batches = vertex_batches(
            n_vertices, self.batch_size, f"Transport ({self.mode.value})", self.show_progress
        )
        for start, stop in batches:
            transport.coeffs[start:stop] = self._project_batch(mesh, np.arange(start, stop))

        if self.show_progress:
            elapsed = time.time() - start_time
            print(f"{self.mode.value.capitalize()} transport for {n_vertices} vertices "
                  f"({self.samples_per_vertex} samples each) computed in {elapsed:.1f}s")

        return transport

    def _project_batch(self, mesh, vertex_ids: np.ndarray) -> np.ndarray:
        """SH coefficients for one batch of vertices, shape (V, 9)."""
        directions = draw_vertex_directions(
            self.streams, DIRECT_STAGE, vertex_ids, self.sample_count
        )  # (V, S, 3)
        positions = mesh.vertices[vertex_ids]
        normals = mesh.normals[vertex_ids]

        values = np.maximum(np.einsum('vsk,vk->vs', directions, normals), 0.0)

        if self.mode.uses_visibility:
            facing = values > 0.0
            if facing.any():
                origins = positions[:, None, :] + self.ray_epsilon * directions
                blocked = np.zeros_like(facing)
                blocked[facing] = self.scene.intersects_any(
                    origins[facing], directions[facing]
                )
                values[blocked] = 0.0

        return project_vertex_samples(directions, values)
