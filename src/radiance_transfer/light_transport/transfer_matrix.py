"""Light and transport coefficient containers and their persistence.

Light coefficients L have shape (9, 3): one RGB triple per SH basis
function. Transport coefficients T have shape (N, 9): one SH vector per
mesh vertex. Shading a point reduces to ``T_interp @ L``.
"""

import numpy as np
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Tuple

from ..errors import InvalidIndexError, ResourceLoadError, ResourceMismatchError
from .spherical_harmonics import N_SH_COEFFS


@dataclass(eq=False)
class LightCoefficients:
    """SH projection of incident radiance, one row per basis function.

    The coefficient array is read-only once constructed.

    Attributes:
        coeffs: Shape (9, 3), RGB columns
    """
    coeffs: np.ndarray

    def __post_init__(self):
        coeffs = np.array(self.coeffs, dtype=np.float64)
        if coeffs.shape != (N_SH_COEFFS, 3):
            raise ResourceMismatchError(
                f"Light coefficients must have shape ({N_SH_COEFFS}, 3), got {coeffs.shape}"
            )
        coeffs.setflags(write=False)
        self.coeffs = coeffs

    @property
    def channels(self) -> np.ndarray:
        """The logical 3 x 9 matrix (one SH vector per color channel)."""
        return self.coeffs.T


@dataclass(eq=False)
class TransportCoefficients:
    """Per-vertex SH transport vectors.

    Attributes:
        coeffs: Shape (N, 9); row i belongs to mesh vertex i
    """
    coeffs: np.ndarray

    def __post_init__(self):
        self.coeffs = np.asarray(self.coeffs, dtype=np.float64)
        if self.coeffs.ndim != 2 or self.coeffs.shape[1] != N_SH_COEFFS:
            raise ResourceMismatchError(
                f"Transport coefficients must have shape (N, {N_SH_COEFFS}), "
                f"got {self.coeffs.shape}"
            )

    @classmethod
    def zeros(cls, n_vertices: int) -> "TransportCoefficients":
        return cls(np.zeros((n_vertices, N_SH_COEFFS), dtype=np.float64))

    @property
    def vertex_count(self) -> int:
        return self.coeffs.shape[0]

    def copy(self) -> "TransportCoefficients":
        return TransportCoefficients(self.coeffs.copy())

    def interpolate(self, vertex_indices: np.ndarray, barycentric: np.ndarray) -> np.ndarray:
        """Barycentric interpolation of vertex transport vectors.

        Written as ``c0 + w1 * (c1 - c0) + w2 * (c2 - c0)`` so that identical
        vectors at the three corners interpolate to exactly that vector.

        Args:
            vertex_indices: Triangle vertex indices, shape (3,) or (R, 3)
            barycentric: Weights summing to 1, same shape

        Returns:
            Interpolated SH vectors, shape (9,) or (R, 9)

        Raises:
            InvalidIndexError: If any index is outside [0, N)
        """
        vertex_indices = np.asarray(vertex_indices, dtype=np.int64)
        barycentric = np.asarray(barycentric, dtype=np.float64)
        check_vertex_indices(vertex_indices, self.vertex_count)

        c0 = self.coeffs[vertex_indices[..., 0]]
        c1 = self.coeffs[vertex_indices[..., 1]]
        c2 = self.coeffs[vertex_indices[..., 2]]
        w1 = barycentric[..., 1:2]
        w2 = barycentric[..., 2:3]
        return c0 + w1 * (c1 - c0) + w2 * (c2 - c0)


def check_vertex_indices(vertex_indices: np.ndarray, n_vertices: int) -> None:
    """Raise InvalidIndexError if any index falls outside [0, n_vertices)."""
    if vertex_indices.size and (vertex_indices.min() < 0 or vertex_indices.max() >= n_vertices):
        raise InvalidIndexError(
            f"Vertex index out of range [0, {n_vertices}): "
            f"got [{vertex_indices.min()}, {vertex_indices.max()}]"
        )


def save_light_coefficients(path: Path, light: LightCoefficients) -> None:
    """Write light coefficients as 9 lines of ``R G B``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        for r, g, b in light.coeffs:
            f.write(f"{r:.8g} {g:.8g} {b:.8g}\n")


def load_light_coefficients(path: Path) -> LightCoefficients:
    """Read a light coefficients file written by :func:`save_light_coefficients`."""
    path = Path(path)
    try:
        data = np.loadtxt(path, dtype=np.float64, ndmin=2)
    except (OSError, ValueError) as e:
        raise ResourceLoadError(f"Failed to read light coefficients from {path}: {e}") from e
    return LightCoefficients(data)


def save_transport_file(path: Path, transport: TransportCoefficients, faces: np.ndarray) -> None:
    """Write transport coefficients in per-face-corner layout.

    First line is the vertex count. Then for each triangle, three lines
    (one per corner) of 9 coefficients. Shared vertices repeat.

    Args:
        path: Output file path
        transport: Per-vertex transport coefficients
        faces: Triangle vertex indices, shape (F, 3)
    """
    path = Path(path)
    faces = np.asarray(faces, dtype=np.int64)
    check_vertex_indices(faces, transport.vertex_count)

    corners = transport.coeffs[faces.reshape(-1)]  # (3F, 9)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(f"{transport.vertex_count}\n")
        np.savetxt(f, corners, fmt="%.8g", delimiter=" ")


def load_transport_file(path: Path) -> Tuple[int, np.ndarray]:
    """Read a file written by :func:`save_transport_file`.

    Returns:
        Tuple of (vertex_count, corner coefficients of shape (3F, 9))
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            vertex_count = int(f.readline().strip())
            corners = np.loadtxt(f, dtype=np.float64, ndmin=2)
    except (OSError, ValueError) as e:
        raise ResourceLoadError(f"Failed to read transport coefficients from {path}: {e}") from e

    if corners.size == 0:
        corners = corners.reshape(0, N_SH_COEFFS)
    if corners.shape[1] != N_SH_COEFFS or corners.shape[0] % 3 != 0:
        raise ResourceMismatchError(
            f"Transport file {path} has malformed coefficient block {corners.shape}"
        )
    return vertex_count, corners


def save_prt_npz(
    path: Path,
    light: LightCoefficients,
    transport: TransportCoefficients,
    metadata: Dict[str, Any]
) -> None:
    """Save light and transport coefficients to a compressed npz file.

    Args:
        path: Output file path (.npz)
        light: Light coefficients
        transport: Transport coefficients
        metadata: Metadata dictionary
    """
    path = Path(path)

    save_dict = {
        'light_coeffs': np.asarray(light.coeffs),
        'transport_coeffs': transport.coeffs,
    }

    # Add metadata (flatten nested dicts)
    for k, v in metadata.items():
        if isinstance(v, dict):
            for kk, vv in v.items():
                if vv is not None:
                    save_dict[f"{k}__{kk}"] = vv
        elif isinstance(v, (list, tuple)):
            save_dict[k] = np.array(v)
        elif v is None:
            continue
        else:
            save_dict[k] = v

    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(path, **save_dict)


def load_prt_npz(path: Path) -> Tuple[LightCoefficients, TransportCoefficients, Dict[str, Any]]:
    """Load coefficients saved by :func:`save_prt_npz`.

    Returns:
        Tuple of (light, transport, metadata_dict)
    """
    with np.load(path) as data:
        light = LightCoefficients(data['light_coeffs'])
        transport = TransportCoefficients(data['transport_coeffs'])

        metadata = {}
        for key in data.files:
            if key in ('light_coeffs', 'transport_coeffs'):
                continue
            value = data[key]
            # Convert single-element arrays back to scalars
            if isinstance(value, np.ndarray) and value.ndim == 0:
                value = value.item()

            # Rebuild nested keys like "config__sample_count"
            if '__' in key:
                parent, child = key.split('__', 1)
                metadata.setdefault(parent, {})[child] = value
            else:
                metadata[key] = value

    return light, transport, metadata


def analyze_transport(transport: TransportCoefficients) -> Dict[str, Any]:
    """Summary statistics of transport coefficients.

    Args:
        transport: Transport coefficients to analyze

    Returns:
        Dictionary with analysis results
    """
    coeffs = transport.coeffs
    stats = {
        'shape': coeffs.shape,
        'min': float(coeffs.min()) if coeffs.size else 0.0,
        'max': float(coeffs.max()) if coeffs.size else 0.0,
        'mean': float(coeffs.mean()) if coeffs.size else 0.0,
        'std': float(coeffs.std()) if coeffs.size else 0.0,
    }

    if coeffs.size:
        # DC term is proportional to the visible cosine-weighted solid angle
        dc = coeffs[:, 0]
        stats['dc_min'] = float(dc.min())
        stats['dc_max'] = float(dc.max())
        stats['dc_mean'] = float(dc.mean())
        # Fraction of energy outside the DC term
        energy = np.sum(coeffs ** 2, axis=1)
        with np.errstate(divide='ignore', invalid='ignore'):
            directional = np.where(energy > 0, 1.0 - dc ** 2 / energy, 0.0)
        stats['directional_energy_mean'] = float(directional.mean())

    return stats
