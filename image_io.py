"""Image I/O utilities for sticky trap analysis."""

import io
import os
from pathlib import Path
from typing import BinaryIO, Iterable, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from config import MAX_IMAGE_PIXELS, SUPPORTED_EXTS, TARGET_SIZE
from errors import DecodeError

ImageSource = Union[str, Path, bytes, BinaryIO]


def iter_images(images_dir: Path, recursive: bool = False) -> Iterable[Path]:
    """Yield supported image files in ``images_dir`` in sorted order.

    Args:
        images_dir: Directory to search for images
        recursive: If True, search subdirectories recursively (uses rglob)
    """
    if recursive:
        paths = [
            p for p in images_dir.rglob("*")
            if p.is_file() and p.suffix.lower() in SUPPORTED_EXTS
        ]
        yield from sorted(paths)
        return

    paths = []
    with os.scandir(images_dir) as entries:
        for entry in entries:
            if entry.is_file():
                path = Path(entry.path)
                if path.suffix.lower() in SUPPORTED_EXTS:
                    paths.append(path)
    # Sort for consistent ordering
    yield from sorted(paths)


def ensure_output(output_dir: Path) -> None:
    """Ensure output directory exists."""
    output_dir.mkdir(parents=True, exist_ok=True)


def fit_inside(width: int, height: int, target_size: int = TARGET_SIZE) -> tuple:
    """Size that fits inside a ``target_size`` square, never enlarging."""
    longest = max(width, height)
    if longest <= target_size:
        return width, height
    scale = target_size / longest
    return max(1, round(width * scale)), max(1, round(height * scale))


def open_image(source: ImageSource, max_pixels: int = MAX_IMAGE_PIXELS) -> Image.Image:
    """Open and fully decode an image from a path, raw bytes or a file object.

    The header is checked against ``max_pixels`` before any pixel data is
    decoded.

    Raises:
        DecodeError: If the data is missing, truncated, oversized or not an image
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    name = source if isinstance(source, (str, Path)) else "<buffer>"
    try:
        img = Image.open(source)
        if img.width * img.height > max_pixels:
            raise DecodeError(
                f"Failed to load image: {name}: {img.width}x{img.height} exceeds {max_pixels} pixels"
            )
        # PIL decodes lazily; force it so corrupt data fails here.
        img.load()
    except (Image.DecompressionBombError, UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Failed to load image: {name}: {e}") from e
    return img


def load_trap_image(source: ImageSource, target_size: int = TARGET_SIZE) -> np.ndarray:
    """Load a trap photo as a resized grayscale grid.

    The longer side is scaled down to ``target_size`` keeping the aspect
    ratio; smaller images keep their resolution.

    Returns:
        Grayscale image as a (height, width) uint8 numpy array
    """
    gray = open_image(source).convert("L")
    size = fit_inside(gray.width, gray.height, target_size)
    if size != gray.size:
        gray = gray.resize(size, Image.Resampling.LANCZOS)
    return np.array(gray, dtype=np.uint8)
