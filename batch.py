"""Batch processing of trap image directories."""

import multiprocessing
import sys
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Dict, List, Optional

from annotation import annotate_image
from config import DARK_THRESHOLD, MIN_BLOB_SIZE, TARGET_SIZE
from errors import DecodeError
from image_io import ensure_output, iter_images, open_image
from output import write_csv
from processing import process_image
from progress import CategoryProgress


def analyse_one(
    path: Path,
    target_size: int = TARGET_SIZE,
    threshold: int = DARK_THRESHOLD,
    min_blob_size: int = MIN_BLOB_SIZE,
    annotated_dir: Optional[Path] = None,
    max_blobs: int = 500,
) -> Dict[str, object]:
    """Analyse a single file; decode failures become an ``error`` entry.

    Module-level so it can be shipped to worker processes.
    """
    try:
        analysis, category = process_image(
            path,
            target_size=target_size,
            threshold=threshold,
            min_blob_size=min_blob_size,
        )
    except DecodeError as e:
        return {"filename": path.name, "error": str(e)}

    item: Dict[str, object] = {"filename": path.name, "pest_amount": category}
    item.update(analysis.to_dict())

    if annotated_dir is not None:
        caption = f"{analysis.blob_count} blobs - {category}"
        annotated = annotate_image(open_image(path), analysis, max_blobs, label=caption)
        annotated.save(annotated_dir / f"{path.stem}_annotated.png")

    return item


def process_batch(
    images_dir: Path,
    output_dir: Path,
    target_size: int = TARGET_SIZE,
    threshold: int = DARK_THRESHOLD,
    min_blob_size: int = MIN_BLOB_SIZE,
    annotate: bool = False,
    max_blobs: int = 500,
    max_workers: Optional[int] = None,
    recursive: bool = False,
    progress: Optional[CategoryProgress] = None,
    progress_cb: Optional[Callable[[int, int, float, Optional[float]], None]] = None,
    image_paths_override: Optional[List[Path]] = None,
) -> Dict[str, object]:
    """Analyse every trap image in a directory and write a CSV summary.

    Images are independent, so they are spread over worker processes;
    results are written back in file order regardless of completion order.

    Args:
        images_dir: Directory containing trap photos
        output_dir: Directory for the CSV summary and annotated images
        annotate: Whether to write annotated copies under ``Annotated/``
        max_blobs: Maximum blobs outlined per annotated image
        max_workers: Number of parallel workers (None = CPU count, 1 = sequential)
        progress: Optional per-category tally fed with each finished item
        progress_cb: Optional callback
            Signature: (current: int, total: int, elapsed: float, estimated_remaining: Optional[float])

    Returns:
        Dictionary with processing summary
    """
    ensure_output(output_dir)
    annotated_dir = None
    if annotate:
        annotated_dir = output_dir / "Annotated"
        ensure_output(annotated_dir)

    if image_paths_override is not None:
        image_paths = list(image_paths_override)
    else:
        image_paths = list(iter_images(images_dir, recursive=recursive))
    if not image_paths:
        raise FileNotFoundError(f"No images found in {images_dir}")

    if max_workers is None:
        max_workers = multiprocessing.cpu_count()
    max_workers = max(1, max_workers)

    if progress is not None:
        progress.start(len(image_paths))

    kwargs = dict(
        target_size=target_size,
        threshold=threshold,
        min_blob_size=min_blob_size,
        annotated_dir=annotated_dir,
        max_blobs=max_blobs,
    )
    results: Dict[int, Dict[str, object]] = {}
    start_time = time.time()

    def record(idx: int, item: Dict[str, object]) -> None:
        results[idx] = item
        done = len(results)
        if "error" in item:
            print(f"\n[WARN] {item['error']}", file=sys.stderr)
        if progress is not None:
            progress.record(item)
        if progress_cb is not None:
            elapsed = time.time() - start_time
            rate = done / elapsed if elapsed > 0 else 0
            remaining = (len(image_paths) - done) / rate if rate > 0 else None
            progress_cb(done, len(image_paths), elapsed, remaining)

    if max_workers > 1 and len(image_paths) > 1:
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(analyse_one, path, **kwargs): idx
                for idx, path in enumerate(image_paths)
            }
            for future in as_completed(futures):
                record(futures[future], future.result())
    else:
        for idx, path in enumerate(image_paths):
            record(idx, analyse_one(path, **kwargs))

    per_image = [results[idx] for idx in range(len(image_paths))]
    output_csv = output_dir / "trap_summary.csv"
    category_counts = write_csv(output_csv, per_image)

    failed = sum(1 for item in per_image if "error" in item)
    return {
        "total": len(per_image),
        "analysed": len(per_image) - failed,
        "failed": failed,
        "category_counts": category_counts,
        "csv": str(output_csv),
        "annotated_dir": str(annotated_dir) if annotated_dir is not None else None,
        "per_image": per_image,
        "elapsed_seconds": time.time() - start_time,
    }
