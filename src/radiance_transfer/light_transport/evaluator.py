"""Shading-time reconstruction of radiance from SH coefficients."""

from typing import Optional

import numpy as np

from ..errors import ConfigurationError, ResourceMismatchError
from .transfer_matrix import LightCoefficients, TransportCoefficients


class TransferEvaluator:
    """Outgoing radiance as ``interpolated transport . light`` per channel.

    With ``albedo`` unset the raw dot product (transferred irradiance) is
    returned. With ``albedo`` set it is scaled by ``albedo / pi``, giving
    Lambertian exitant radiance.

    Example:
        >>> evaluator = TransferEvaluator(light, transport, scene)
        >>> rgb = evaluator(Ray(origin=camera, direction=view_dir))
    """

    def __init__(
        self,
        light: LightCoefficients,
        transport: TransportCoefficients,
        scene,  # MeshScene
        albedo: Optional[float] = None
    ):
        if transport.vertex_count != scene.mesh.vertex_count:
            raise ResourceMismatchError(
                f"Transport has {transport.vertex_count} rows but mesh has "
                f"{scene.mesh.vertex_count} vertices"
            )
        if albedo is not None and albedo < 0:
            raise ConfigurationError(f"albedo must be >= 0, got {albedo}")

        self.light = light
        self.transport = transport
        self.scene = scene
        self.albedo = albedo

    @property
    def scale(self) -> float:
        return 1.0 if self.albedo is None else self.albedo / np.pi

    def evaluate(self, origins: np.ndarray, directions: np.ndarray) -> np.ndarray:
        """Radiance along a batch of rays.

        Args:
            origins: Ray origins, shape (R, 3)
            directions: Ray directions, shape (R, 3)

        Returns:
            RGB radiance, shape (R, 3); zero where the ray misses
        """
        record = self.scene.intersect(origins, directions)
        radiance = np.zeros((len(record), 3), dtype=np.float64)
        if record.hit.any():
            interpolated = self.transport.interpolate(
                record.vertex_indices[record.hit], record.barycentric[record.hit]
            )  # (H, 9)
            radiance[record.hit] = interpolated @ self.light.coeffs
        return radiance * self.scale

    def __call__(self, ray) -> np.ndarray:
        """Radiance along a single ray, shape (3,)."""
        return self.evaluate(
            np.asarray(ray.origin, dtype=np.float64)[None],
            np.asarray(ray.direction, dtype=np.float64)[None]
        )[0]

    def vertex_radiance(self) -> np.ndarray:
        """Reconstructed radiance at every mesh vertex, shape (N, 3)."""
        return (self.transport.coeffs @ self.light.coeffs) * self.scale
