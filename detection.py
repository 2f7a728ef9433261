"""Dark blob detection on sticky trap images."""

import numpy as np

from clustering import extract_blobs
from config import DARK_THRESHOLD, MAX_BLOB_SIZES, MIN_BLOB_SIZE, TARGET_SIZE
from image_io import ImageSource, load_trap_image
from models import AnalysisResult


def compute_dark_mask(gray: np.ndarray, threshold: int = DARK_THRESHOLD) -> np.ndarray:
    """Binary mask (uint8, 0 or 1) of pixels strictly darker than ``threshold``."""
    if not (0 <= threshold <= 256):
        raise ValueError(f"threshold must be in range [0, 256], got {threshold}")
    return (gray.astype(np.int16) < threshold).astype(np.uint8)


def dark_pixel_ratio(mask: np.ndarray) -> float:
    """Fraction of mask pixels that are set."""
    if mask.size == 0:
        return 0.0
    return float(np.count_nonzero(mask)) / mask.size


def segment_gray(
    gray: np.ndarray,
    threshold: int = DARK_THRESHOLD,
    min_blob_size: int = MIN_BLOB_SIZE,
    max_blob_sizes: int = MAX_BLOB_SIZES,
) -> AnalysisResult:
    """Segment an already-loaded grayscale grid.

    Args:
        gray: (height, width) uint8 grayscale image
        threshold: Pixels with intensity below this are dark
        min_blob_size: Components smaller than this are treated as noise
        max_blob_sizes: How many blob sizes to keep in the payload

    Returns:
        AnalysisResult; ``blob_count`` counts every accepted blob, only the
        ``blob_sizes`` list is truncated.
    """
    height, width = gray.shape
    mask = compute_dark_mask(gray, threshold)
    blobs = extract_blobs(mask, min_size=min_blob_size, connectivity=4)

    return AnalysisResult(
        width=int(width),
        height=int(height),
        threshold=threshold,
        min_blob_size=min_blob_size,
        dark_pixel_ratio=dark_pixel_ratio(mask),
        blob_count=len(blobs),
        blob_sizes=[b.size for b in blobs[:max_blob_sizes]],
        blobs=blobs,
    )


def segment_image(
    source: ImageSource,
    target_size: int = TARGET_SIZE,
    threshold: int = DARK_THRESHOLD,
    min_blob_size: int = MIN_BLOB_SIZE,
) -> AnalysisResult:
    """Decode a trap photo and count its dark blobs.

    Raises:
        DecodeError: If the image cannot be read; no partial result is built
    """
    gray = load_trap_image(source, target_size=target_size)
    return segment_gray(gray, threshold=threshold, min_blob_size=min_blob_size)
