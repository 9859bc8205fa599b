"""Spherical harmonics utilities for light transport.

Real SH basis up to order 2 (9 coefficients) with the Condon-Shortley
phase, the same convention used by real-time PRT shaders that consume the
coefficient files. Coefficient index for (l, m) is ``l * (l + 1) + m``.
"""

import numpy as np
from typing import Tuple, Union

from ..errors import InvalidIndexError

# SH normalization constants (matching monte_carlo.py kernels)
SH_C0 = 0.282094791773878   # 1 / (2 * sqrt(pi))
SH_C1 = 0.488602511902920   # sqrt(3 / (4 * pi))
SH_C2_0 = 1.092548430592079  # sqrt(15 / (4 * pi))
SH_C2_1 = 0.315391565252520  # sqrt(5 / (16 * pi))
SH_C2_2 = 0.546274215296040  # sqrt(15 / (16 * pi))

SH_ORDER = 2
N_SH_COEFFS = 9


def sh_index(l: int, m: int) -> int:
    """Position of basis function (l, m) in a coefficient vector.

    Args:
        l: Band, 0 <= l <= SH_ORDER
        m: Index within the band, -l <= m <= l

    Returns:
        Index in [0, 9)

    Raises:
        InvalidIndexError: If (l, m) is not a valid order-2 pair
    """
    if l < 0 or l > SH_ORDER:
        raise InvalidIndexError(f"SH band l={l} outside [0, {SH_ORDER}]")
    if abs(m) > l:
        raise InvalidIndexError(f"SH index m={m} outside [-{l}, {l}]")
    return l * (l + 1) + m


def sh_lm(index: int) -> Tuple[int, int]:
    """Inverse of :func:`sh_index`."""
    if index < 0 or index >= N_SH_COEFFS:
        raise InvalidIndexError(f"SH coefficient index {index} outside [0, {N_SH_COEFFS})")
    l = int(np.sqrt(index))
    return l, index - l * (l + 1)


def direction_from_angles(
    phi: Union[float, np.ndarray],
    theta: Union[float, np.ndarray]
) -> np.ndarray:
    """Convert spherical coordinates to unit vectors.

    Args:
        phi: Azimuth around +Z, radians
        theta: Polar angle from +Z, radians

    Returns:
        Directions, shape (..., 3)
    """
    phi = np.asarray(phi, dtype=np.float64)
    theta = np.asarray(theta, dtype=np.float64)
    sin_theta = np.sin(theta)
    return np.stack([
        sin_theta * np.cos(phi),
        sin_theta * np.sin(phi),
        np.cos(theta)
    ], axis=-1)


def angles_from_direction(directions: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Convert directions to (phi, theta).

    Directions are normalized first. phi is wrapped into [0, 2*pi) so that
    angles -> direction -> angles is lossless for phi sampled in that range.

    Returns:
        Tuple of (phi, theta), each shape (...)
    """
    dirs, _ = normalize_directions(directions)
    x, y, z = dirs[..., 0], dirs[..., 1], dirs[..., 2]
    theta = np.arccos(np.clip(z, -1.0, 1.0))
    phi = np.mod(np.arctan2(y, x), 2.0 * np.pi)
    return phi, theta


def normalize_directions(directions: np.ndarray, eps: float = 1e-12) -> Tuple[np.ndarray, np.ndarray]:
    """Normalize directions, flagging degenerate (zero-length) entries.

    Returns:
        Tuple of (unit directions with zeros where degenerate, valid mask)
    """
    directions = np.asarray(directions, dtype=np.float64)
    norms = np.linalg.norm(directions, axis=-1, keepdims=True)
    valid = norms[..., 0] > eps
    safe = np.where(norms > eps, norms, 1.0)
    return np.where(norms > eps, directions / safe, 0.0), valid


def eval_sh_basis(directions: np.ndarray) -> np.ndarray:
    """Evaluate order-2 spherical harmonics basis functions.

    Args:
        directions: Vectors, shape (..., 3). Normalized internally; zero
            vectors evaluate to zero for every basis function.

    Returns:
        SH basis values, shape (..., 9)
        Order: Y_0^0, Y_1^-1, Y_1^0, Y_1^1, Y_2^-2, Y_2^-1, Y_2^0, Y_2^1, Y_2^2
    """
    dirs, valid = normalize_directions(directions)
    orig_shape = dirs.shape[:-1]

    # Flatten for processing
    dirs = dirs.reshape(-1, 3)
    x, y, z = dirs[:, 0], dirs[:, 1], dirs[:, 2]

    coeffs = np.zeros((dirs.shape[0], N_SH_COEFFS), dtype=np.float64)

    # l=0
    coeffs[:, 0] = SH_C0

    # l=1
    coeffs[:, 1] = -SH_C1 * y
    coeffs[:, 2] = SH_C1 * z
    coeffs[:, 3] = -SH_C1 * x

    # l=2
    coeffs[:, 4] = SH_C2_0 * x * y           # Y_2^-2
    coeffs[:, 5] = -SH_C2_0 * y * z          # Y_2^-1
    coeffs[:, 6] = SH_C2_1 * (3.0 * z * z - 1.0)  # Y_2^0
    coeffs[:, 7] = -SH_C2_0 * x * z          # Y_2^1
    coeffs[:, 8] = SH_C2_2 * (x * x - y * y)  # Y_2^2

    coeffs[~valid.reshape(-1)] = 0.0

    return coeffs.reshape(*orig_shape, N_SH_COEFFS)


def eval_sh(l: int, m: int, direction: np.ndarray) -> Union[float, np.ndarray]:
    """Evaluate a single basis function Y_l^m.

    Args:
        l, m: SH index pair
        direction: Vector(s), shape (3,) or (..., 3)

    Returns:
        Scalar for a single direction, otherwise shape (...)

    Raises:
        InvalidIndexError: If (l, m) is out of range
    """
    idx = sh_index(l, m)
    values = eval_sh_basis(direction)[..., idx]
    if values.ndim == 0:
        return float(values)
    return values


def stratified_sphere_angles(
    sample_count: int,
    rng: np.random.Generator
) -> Tuple[np.ndarray, np.ndarray]:
    """Jittered stratified (phi, theta) samples over the sphere.

    Draws a k x k grid with k = floor(sqrt(sample_count)); each sample is
    jittered within its stratum. theta = acos(2 * alpha - 1) keeps the
    distribution uniform in solid angle (no clustering at the poles).

    Args:
        sample_count: Requested sample count; k * k samples are drawn
        rng: Random stream owned by the caller

    Returns:
        Tuple of (phi, theta), each shape (k * k,)
    """
    side = stratified_side(sample_count)
    t, p = np.meshgrid(np.arange(side), np.arange(side), indexing='ij')
    jitter = rng.random((2, side, side))
    alpha = (t + jitter[0]) / side
    beta = (p + jitter[1]) / side
    phi = 2.0 * np.pi * beta
    theta = np.arccos(np.clip(2.0 * alpha - 1.0, -1.0, 1.0))
    return phi.reshape(-1), theta.reshape(-1)


def stratified_sphere_samples(sample_count: int, rng: np.random.Generator) -> np.ndarray:
    """Jittered stratified directions, shape (k * k, 3). See :func:`stratified_sphere_angles`."""
    phi, theta = stratified_sphere_angles(sample_count, rng)
    return direction_from_angles(phi, theta)


def stratified_side(sample_count: int) -> int:
    """Side length k of the stratified grid used for ``sample_count`` samples."""
    side = int(np.floor(np.sqrt(sample_count)))
    if side < 1:
        raise ValueError(f"sample_count must be >= 1, got {sample_count}")
    return side


def verify_sh_orthonormality(n_samples: int = 100000, seed: int = 42) -> np.ndarray:
    """Verify SH basis orthonormality via Monte Carlo integration.

    Args:
        n_samples: Number of samples for integration
        seed: Random seed

    Returns:
        Inner product matrix, shape (9, 9). Should be close to identity.
    """
    directions = stratified_sphere_samples(n_samples, np.random.default_rng(seed))
    sh_values = eval_sh_basis(directions)  # (N, 9)

    # Compute inner products: int Y_i * Y_j dw = (4pi/N) sum Y_i * Y_j
    weight = 4 * np.pi / directions.shape[0]
    inner_products = weight * (sh_values.T @ sh_values)

    return inner_products
