"""Connected-component labeling for binary trap masks."""

from typing import Iterator, List, Optional, Tuple

import numpy as np

from config import MIN_BLOB_SIZE
from models import Blob

# (dx, dy) offsets
FOUR_NEIGHBOURS = ((0, -1), (0, 1), (-1, 0), (1, 0))
EIGHT_NEIGHBOURS = FOUR_NEIGHBOURS + ((-1, -1), (1, -1), (-1, 1), (1, 1))


def _neighbours_for(connectivity: int) -> Tuple[Tuple[int, int], ...]:
    if connectivity == 4:
        return FOUR_NEIGHBOURS
    if connectivity == 8:
        return EIGHT_NEIGHBOURS
    raise ValueError(f"connectivity must be 4 or 8, got {connectivity}")


def _flood_fill(
    flat_mask: np.ndarray,
    visited: np.ndarray,
    start: int,
    width: int,
    height: int,
    neighbours: Tuple[Tuple[int, int], ...],
    labels: Optional[np.ndarray] = None,
    label: int = 0,
) -> Tuple[int, float, float, int, int, int, int]:
    """Fill one component starting at flat index ``start``.

    Uses an explicit work-list so component size is bounded by memory, not
    by the interpreter's recursion limit.

    Returns:
        (size, sum_x, sum_y, min_x, min_y, max_x, max_y)
    """
    stack = [start]
    visited[start] = True
    size = 0
    sum_x = sum_y = 0
    min_x, min_y = width, height
    max_x = max_y = -1

    while stack:
        cur = stack.pop()
        cy, cx = divmod(cur, width)
        size += 1
        sum_x += cx
        sum_y += cy
        if cx < min_x:
            min_x = cx
        if cx > max_x:
            max_x = cx
        if cy < min_y:
            min_y = cy
        if cy > max_y:
            max_y = cy
        if labels is not None:
            labels[cur] = label

        for dx, dy in neighbours:
            nx, ny = cx + dx, cy + dy
            if 0 <= nx < width and 0 <= ny < height:
                n = ny * width + nx
                if flat_mask[n] and not visited[n]:
                    visited[n] = True
                    stack.append(n)

    return size, sum_x, sum_y, min_x, min_y, max_x, max_y


def _scan(
    mask: np.ndarray,
    connectivity: int,
    labels: Optional[np.ndarray] = None,
) -> Iterator[Tuple[int, float, float, int, int, int, int]]:
    """Yield the stats of every component in raster order of its first pixel.

    When ``labels`` (flat, same size as the mask) is given, the n-th
    component is written into it as ``n``.
    """
    neighbours = _neighbours_for(connectivity)
    height, width = mask.shape
    flat_mask = np.ascontiguousarray(mask).reshape(-1) != 0
    visited = np.zeros(flat_mask.size, dtype=bool)
    label = 0

    # flatnonzero is already in row-major order
    for start in np.flatnonzero(flat_mask):
        start = int(start)
        if visited[start]:
            continue
        label += 1
        yield _flood_fill(flat_mask, visited, start, width, height, neighbours, labels, label)


def label_components(mask: np.ndarray, connectivity: int = 4) -> Tuple[np.ndarray, List[int]]:
    """Label every connected component of a binary mask.

    Components are numbered from 1 in raster order of their first pixel
    (top-to-bottom, left-to-right); background is 0.

    Args:
        mask: 2-D array, non-zero = foreground
        connectivity: 4 (edge neighbours) or 8 (edge and corner neighbours)

    Returns:
        Tuple of (labels, sizes) where ``labels`` has the mask's shape and
        ``sizes[i]`` is the pixel count of component ``i + 1``
    """
    labels = np.zeros(mask.size, dtype=np.int32)
    sizes = [stats[0] for stats in _scan(mask, connectivity, labels)]
    return labels.reshape(mask.shape), sizes


def extract_blobs(
    mask: np.ndarray,
    min_size: int = MIN_BLOB_SIZE,
    connectivity: int = 4,
) -> List[Blob]:
    """Extract blobs of at least ``min_size`` pixels from a binary mask.

    Smaller components are dropped. Blobs come back in raster order of their
    first pixel.
    """
    blobs: List[Blob] = []
    for size, sum_x, sum_y, min_x, min_y, max_x, max_y in _scan(mask, connectivity):
        if size < min_size:
            continue
        blobs.append(Blob(
            size=size,
            centroid=(sum_x / size, sum_y / size),
            bounding_box=(min_x, min_y, max_x - min_x + 1, max_y - min_y + 1),
        ))
    return blobs
