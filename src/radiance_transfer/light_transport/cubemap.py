"""Cubemap environment loading and SH projection.

Each of the six faces maps texel coordinates to world directions through a
fixed basis: ``direction = normalize(right * u + up * v + forward)`` with
``u, v`` the texel center in [-1, 1]. Every texel is weighted by its exact
solid angle, so the integration is deterministic and sums to 4*pi.
"""

import numpy as np
import imageio.v3 as iio
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from ..errors import ResourceLoadError, ResourceMismatchError
from .monte_carlo import project_cubemap_arrays, texel_solid_angles
from .transfer_matrix import LightCoefficients

# Face table: (file stem, right, up, forward).
# File stems pair with direction bases in the order the face images were
# authored for (y and z faces are flipped relative to their names).
CUBEMAP_FACES = [
    ("negx", (0, 0, 1), (0, -1, 0), (-1, 0, 0)),
    ("posx", (0, 0, 1), (0, -1, 0), (1, 0, 0)),
    ("posy", (1, 0, 0), (0, 0, -1), (0, -1, 0)),
    ("negy", (1, 0, 0), (0, 0, 1), (0, 1, 0)),
    ("posz", (-1, 0, 0), (0, -1, 0), (0, 0, -1)),
    ("negz", (1, 0, 0), (0, -1, 0), (0, 0, 1)),
]

# Per-face (right, up, forward) rows, shape (6, 3, 3)
FACE_BASES = np.array(
    [[right, up, forward] for _, right, up, forward in CUBEMAP_FACES],
    dtype=np.float64
)

# Gamma applied by the float loader to 8/16-bit images
LDR_GAMMA = 2.2


@dataclass(eq=False)
class CubemapFace:
    """One face of a cubemap.

    Attributes:
        image: Linear RGB radiance, shape (H, W, 3)
        right: Face-local +u axis in world space
        up: Face-local +v axis in world space
        forward: Direction through the face center
        name: Face name (e.g. "posx")
    """
    image: np.ndarray
    right: np.ndarray
    up: np.ndarray
    forward: np.ndarray
    name: str = ""

    def __post_init__(self):
        self.image = np.asarray(self.image, dtype=np.float32)
        if self.image.ndim != 3 or self.image.shape[2] != 3:
            raise ResourceMismatchError(
                f"Cubemap face {self.name!r} must have shape (H, W, 3), got {self.image.shape}"
            )
        self.right = np.asarray(self.right, dtype=np.float64)
        self.up = np.asarray(self.up, dtype=np.float64)
        self.forward = np.asarray(self.forward, dtype=np.float64)

    @property
    def height(self) -> int:
        return self.image.shape[0]

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def basis(self) -> np.ndarray:
        """(right, up, forward) rows, shape (3, 3)."""
        return np.stack([self.right, self.up, self.forward])


def faces_from_images(images: Sequence[np.ndarray]) -> List[CubemapFace]:
    """Attach the standard face bases to six in-memory images (table order)."""
    if len(images) != len(CUBEMAP_FACES):
        raise ResourceMismatchError(f"Expected 6 cubemap faces, got {len(images)}")
    return [
        CubemapFace(image=image, right=right, up=up, forward=forward, name=name)
        for image, (name, right, up, forward) in zip(images, CUBEMAP_FACES)
    ]


def decode_face_image(path: Path) -> tuple:
    """Decode one face image to linear float RGB.

    Integer images are normalized and linearized with ``x ** 2.2``; float
    images (HDR, EXR) are taken as linear radiance.

    Returns:
        Tuple of (image of shape (H, W, 3) float32, native channel count)

    Raises:
        ResourceLoadError: If the file is missing or cannot be decoded
    """
    path = Path(path)
    if not path.exists():
        raise ResourceLoadError(f"Failed to load image: {path} (file not found)")

    try:
        raw = iio.imread(path)
    except Exception as e:
        raise ResourceLoadError(f"Failed to load image: {path}: {e}") from e

    raw = np.asarray(raw)
    if raw.ndim == 2:
        raw = raw[:, :, None]
    if raw.ndim != 3 or raw.size == 0:
        raise ResourceLoadError(f"Failed to load image: {path}: unexpected shape {raw.shape}")

    channels = raw.shape[2]
    if np.issubdtype(raw.dtype, np.integer):
        scale = float(np.iinfo(raw.dtype).max)
        image = (raw.astype(np.float64) / scale) ** LDR_GAMMA
    else:
        image = raw.astype(np.float64)

    # Force RGB: broadcast gray, drop alpha
    if channels < 3:
        image = np.repeat(image[:, :, :1], 3, axis=2)
    else:
        image = image[:, :, :3]

    return image.astype(np.float32), channels


def load_cubemap(directory: Path | str, extension: str = ".jpg") -> List[CubemapFace]:
    """Load the six faces of a cubemap from a directory.

    Files are named ``negx, posx, posy, negy, posz, negz`` plus ``extension``.

    Args:
        directory: Cubemap directory
        extension: Image file extension, including the dot

    Returns:
        Six faces in table order

    Raises:
        ResourceLoadError: If any face cannot be decoded
        ResourceMismatchError: If faces differ in width, height or channel count
    """
    directory = Path(directory)
    faces = []
    reference = None

    for name, right, up, forward in CUBEMAP_FACES:
        path = directory / f"{name}{extension}"
        image, channels = decode_face_image(path)

        signature = (image.shape[1], image.shape[0], channels)
        if reference is None:
            reference = signature
        elif signature != reference:
            raise ResourceMismatchError(
                f"Mismatched resolution for cubemap faces: {path.name} is "
                f"{signature[0]}x{signature[1]}x{signature[2]}, expected "
                f"{reference[0]}x{reference[1]}x{reference[2]}"
            )

        faces.append(CubemapFace(image=image, right=right, up=up, forward=forward, name=name))

    return faces


def cubemap_directions(face: CubemapFace) -> np.ndarray:
    """World direction through every texel center of a face, shape (H, W, 3)."""
    u = 2.0 * (np.arange(face.width) + 0.5) / face.width - 1.0
    v = 2.0 * (np.arange(face.height) + 0.5) / face.height - 1.0
    uu, vv = np.meshgrid(u, v)  # (H, W)
    dirs = (uu[..., None] * face.right
            + vv[..., None] * face.up
            + face.forward)
    return dirs / np.linalg.norm(dirs, axis=-1, keepdims=True)


def project_cubemap(faces: Sequence[CubemapFace]) -> LightCoefficients:
    """Project a cubemap onto the order-2 SH basis.

    Computes ``sum over texels of Y_lm(direction) * radiance * solid_angle``
    for every (l, m).

    Args:
        faces: Six faces with identical dimensions

    Returns:
        Light coefficients, shape (9, 3)

    Raises:
        ResourceMismatchError: If face count or dimensions differ
    """
    if len(faces) != len(CUBEMAP_FACES):
        raise ResourceMismatchError(f"Expected 6 cubemap faces, got {len(faces)}")

    shapes = {face.image.shape for face in faces}
    if len(shapes) != 1:
        raise ResourceMismatchError(
            f"Mismatched resolution for cubemap faces: {sorted(shapes)}"
        )

    images = np.stack([face.image for face in faces])       # (6, H, W, 3)
    bases = np.stack([face.basis for face in faces])        # (6, 3, 3)
    return LightCoefficients(project_cubemap_arrays(images, bases))


def project_cubemap_directory(directory: Path | str, extension: str = ".jpg") -> LightCoefficients:
    """Load a cubemap directory and project it. See :func:`load_cubemap`."""
    return project_cubemap(load_cubemap(directory, extension=extension))


def cubemap_solid_angles(width: int, height: int) -> np.ndarray:
    """Solid angle of each texel of one face, shape (height, width)."""
    return texel_solid_angles(width, height)
