"""Numba kernels for SH projection and interreflection gathering.

Ray casting happens outside these kernels (batched trimesh queries); the
kernels only do the per-sample arithmetic. Every parallel loop writes into
its own output slot and the caller reduces the slots afterwards.
"""

import numpy as np
from typing import Optional
from numba import njit, prange

# SH constants (matching spherical_harmonics.py)
SH_C0 = 0.282094791773878      # 1 / (2 * sqrt(pi))
SH_C1 = 0.488602511902920      # sqrt(3 / (4 * pi))
SH_C2_0 = 1.092548430592079    # sqrt(15 / (4 * pi))
SH_C2_1 = 0.315391565252520    # sqrt(5 / (16 * pi))
SH_C2_2 = 0.546274215296040    # sqrt(15 / (16 * pi))

N_SH = 9


@njit(cache=True)
def _eval_sh_basis_numba(x: float, y: float, z: float) -> np.ndarray:
    """Evaluate the order-2 SH basis for a single unit direction."""
    coeffs = np.zeros(N_SH, dtype=np.float64)

    # Precompute powers
    x2 = x * x
    y2 = y * y
    z2 = z * z

    # l=0
    coeffs[0] = SH_C0

    # l=1
    coeffs[1] = -SH_C1 * y
    coeffs[2] = SH_C1 * z
    coeffs[3] = -SH_C1 * x

    # l=2
    coeffs[4] = SH_C2_0 * x * y             # Y_2^-2
    coeffs[5] = -SH_C2_0 * y * z            # Y_2^-1
    coeffs[6] = SH_C2_1 * (3.0 * z2 - 1.0)  # Y_2^0
    coeffs[7] = -SH_C2_0 * x * z            # Y_2^1
    coeffs[8] = SH_C2_2 * (x2 - y2)         # Y_2^2

    return coeffs


@njit(cache=True)
def _area_element(x: float, y: float) -> float:
    """Projected-area integral of a cube face from the face center to (x, y)."""
    return np.arctan2(x * y, np.sqrt(x * x + y * y + 1.0))


@njit(cache=True)
def _texel_solid_angle(px: int, py: int, width: int, height: int) -> float:
    """Solid angle subtended by texel (px, py) of a cube face."""
    # Texel center in [-1, 1]
    u = 2.0 * (px + 0.5) / width - 1.0
    v = 2.0 * (py + 0.5) / height - 1.0

    # Half a texel in [-1, 1] units
    inv_w = 1.0 / width
    inv_h = 1.0 / height

    x0 = u - inv_w
    y0 = v - inv_h
    x1 = u + inv_w
    y1 = v + inv_h

    return (_area_element(x0, y0) - _area_element(x0, y1)
            - _area_element(x1, y0) + _area_element(x1, y1))


@njit(cache=True)
def _texel_solid_angles(width: int, height: int) -> np.ndarray:
    """Solid angle of every texel of a face, shape (height, width)."""
    out = np.empty((height, width), dtype=np.float64)
    for py in range(height):
        for px in range(width):
            out[py, px] = _texel_solid_angle(px, py, width, height)
    return out


@njit(parallel=True, cache=True)
def _project_cubemap_rows(images: np.ndarray, bases: np.ndarray) -> np.ndarray:
    """Integrate six cube faces against the SH basis.

    Args:
        images: Linear radiance, shape (6, H, W, 3)
        bases: Per-face (right, up, forward) rows, shape (6, 3, 3)

    Returns:
        Per-row partial sums, shape (6 * H, 9, 3). Summing over axis 0
        gives the light coefficients.
    """
    n_faces, height, width, n_channels = images.shape
    partial = np.zeros((n_faces * height, N_SH, n_channels), dtype=np.float64)

    for row in prange(n_faces * height):
        face = row // height
        py = row % height

        rx, ry, rz = bases[face, 0, 0], bases[face, 0, 1], bases[face, 0, 2]
        ux, uy, uz = bases[face, 1, 0], bases[face, 1, 1], bases[face, 1, 2]
        fx, fy, fz = bases[face, 2, 0], bases[face, 2, 1], bases[face, 2, 2]

        v = 2.0 * ((py + 0.5) / height) - 1.0

        for px in range(width):
            u = 2.0 * ((px + 0.5) / width) - 1.0

            dx = rx * u + ux * v + fx
            dy = ry * u + uy * v + fy
            dz = rz * u + uz * v + fz
            d_len = np.sqrt(dx * dx + dy * dy + dz * dz)
            dx, dy, dz = dx / d_len, dy / d_len, dz / d_len

            delta_w = _texel_solid_angle(px, py, width, height)
            sh = _eval_sh_basis_numba(dx, dy, dz)

            for i in range(N_SH):
                w = sh[i] * delta_w
                for c in range(n_channels):
                    partial[row, i, c] += w * images[face, py, px, c]

    return partial


@njit(parallel=True, cache=True)
def _project_vertex_samples(
    directions: np.ndarray,
    values: np.ndarray,
    weight: float
) -> np.ndarray:
    """Monte Carlo SH projection of per-vertex sample values.

    Args:
        directions: Unit sample directions, shape (V, S, 3)
        values: Transport function values, shape (V, S)
        weight: Monte Carlo weight (4 * pi / S)

    Returns:
        SH coefficients per vertex, shape (V, 9)
    """
    n_vertices, n_samples = values.shape
    output = np.zeros((n_vertices, N_SH), dtype=np.float64)

    for v in prange(n_vertices):
        for s in range(n_samples):
            f = values[v, s]
            if f == 0.0:
                continue
            sh = _eval_sh_basis_numba(
                directions[v, s, 0], directions[v, s, 1], directions[v, s, 2]
            )
            for i in range(N_SH):
                output[v, i] += f * sh[i]

        for i in range(N_SH):
            output[v, i] *= weight

    return output


@njit(parallel=True, cache=True)
def _gather_bounce(
    hit: np.ndarray,
    tri_vertices: np.ndarray,
    barycentrics: np.ndarray,
    cos_theta: np.ndarray,
    transport: np.ndarray,
    weight: float
) -> np.ndarray:
    """Gather one bounce of transport for a batch of vertices.

    Args:
        hit: Whether sample s of vertex v hit geometry, shape (V, S)
        tri_vertices: Vertex indices of the hit triangle, shape (V, S, 3)
        barycentrics: Barycentric weights of the hit point, shape (V, S, 3)
        cos_theta: Cosine between sample direction and vertex normal, (V, S)
        transport: Transport snapshot from the previous pass, shape (N, 9)
        weight: Monte Carlo weight (4 * pi / S)

    Returns:
        Extra coefficients per vertex, shape (V, 9)
    """
    n_vertices, n_samples = hit.shape
    output = np.zeros((n_vertices, N_SH), dtype=np.float64)

    for v in prange(n_vertices):
        for s in range(n_samples):
            if not hit[v, s]:
                continue
            c = cos_theta[v, s]
            if c <= 0.0:
                continue

            i0 = tri_vertices[v, s, 0]
            i1 = tri_vertices[v, s, 1]
            i2 = tri_vertices[v, s, 2]
            b0 = barycentrics[v, s, 0]
            b1 = barycentrics[v, s, 1]
            b2 = barycentrics[v, s, 2]

            for i in range(N_SH):
                incoming = (transport[i0, i] * b0
                            + transport[i1, i] * b1
                            + transport[i2, i] * b2)
                output[v, i] += incoming * c

        for i in range(N_SH):
            output[v, i] *= weight

    return output


def texel_solid_angles(width: int, height: int) -> np.ndarray:
    """Solid angle of every texel of a ``width`` x ``height`` cube face."""
    return _texel_solid_angles(int(width), int(height))


def project_cubemap_arrays(images: np.ndarray, bases: np.ndarray) -> np.ndarray:
    """Light SH coefficients from stacked face images, shape (9, C)."""
    images = np.ascontiguousarray(images, dtype=np.float64)
    bases = np.ascontiguousarray(bases, dtype=np.float64)
    partial = _project_cubemap_rows(images, bases)
    return partial.sum(axis=0)


def project_vertex_samples(directions: np.ndarray, values: np.ndarray) -> np.ndarray:
    """SH coefficients of sampled transport functions, shape (V, 9)."""
    directions = np.ascontiguousarray(directions, dtype=np.float64)
    values = np.ascontiguousarray(values, dtype=np.float64)
    weight = 4.0 * np.pi / values.shape[1]
    return _project_vertex_samples(directions, values, weight)


def gather_bounce(
    hit: np.ndarray,
    tri_vertices: np.ndarray,
    barycentrics: np.ndarray,
    cos_theta: np.ndarray,
    transport: np.ndarray
) -> np.ndarray:
    """Secondary-bounce SH contribution for a batch of vertices, shape (V, 9)."""
    weight = 4.0 * np.pi / hit.shape[1]
    return _gather_bounce(
        np.ascontiguousarray(hit, dtype=np.bool_),
        np.ascontiguousarray(tri_vertices, dtype=np.int64),
        np.ascontiguousarray(barycentrics, dtype=np.float64),
        np.ascontiguousarray(cos_theta, dtype=np.float64),
        np.ascontiguousarray(transport, dtype=np.float64),
        weight
    )


class VertexStreams:
    """Independent random streams keyed by (stage, vertex).

    Every (stage, vertex) pair gets its own generator derived from one root
    seed, so results do not depend on batching or processing order. Stage 0
    is the direct projection; stage p >= 1 is interreflection pass p.
    """

    def __init__(self, seed: Optional[int] = None):
        self.entropy = np.random.SeedSequence(seed).entropy

    def stream(self, stage: int, vertex: int) -> np.random.Generator:
        return np.random.default_rng(
            np.random.SeedSequence(self.entropy, spawn_key=(stage, vertex))
        )
