"""Command-line interface for sticky trap analysis."""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from batch import process_batch
from config import load_analysis_config
from errors import DecodeError, ValidationError
from heat_stress import advice_for_heat_stress, score_heat_stress
from processing import process_image
from progress import CategoryProgress


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Estimate pest counts on sticky trap photos and score heat stress."
    )
    parser.add_argument(
        "--images-dir",
        type=Path,
        default=Path("images"),
        help="Directory containing trap photos to analyse.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Directory to write the CSV summary and annotated images.",
    )
    parser.add_argument(
        "--image",
        type=Path,
        help="Analyse a single image and print its result as JSON.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Optional JSON file with target_size, dark_threshold and min_blob_size.",
    )
    parser.add_argument(
        "--threshold",
        type=int,
        help="Grayscale threshold (0-255); pixels below it are dark. Overrides --config.",
    )
    parser.add_argument(
        "--min-blob-size",
        type=int,
        help="Minimum blob size in pixels. Overrides --config.",
    )
    parser.add_argument(
        "--target-size",
        type=int,
        help="Longer image side after resizing. Overrides --config.",
    )
    parser.add_argument(
        "--annotate",
        action="store_true",
        help="Write annotated copies with accepted blobs outlined.",
    )
    parser.add_argument(
        "--max-blobs",
        type=int,
        default=500,
        help="Maximum number of blobs to outline per annotated image.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of worker processes (default: CPU count, 1 = sequential).",
    )
    parser.add_argument(
        "--recursive",
        action="store_true",
        help="Search --images-dir recursively.",
    )
    parser.add_argument(
        "--heat-stress",
        nargs=4,
        metavar=("AIR_TEMP", "SOIL_TEMP", "SOIL_MOISTURE", "HUMIDITY"),
        help="Score one microclimate reading and print the heat stress level.",
    )

    args = parser.parse_args(argv)

    params = load_analysis_config(args.config)
    if args.threshold is None:
        args.threshold = params["dark_threshold"]
    if args.min_blob_size is None:
        args.min_blob_size = params["min_blob_size"]
    if args.target_size is None:
        args.target_size = params["target_size"]

    if not (0 <= args.threshold <= 255):
        parser.error("--threshold must be in range [0, 255]")
    if args.min_blob_size < 1:
        parser.error("--min-blob-size must be >= 1")
    if args.target_size < 1:
        parser.error("--target-size must be >= 1")
    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be >= 1")

    return args


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = parse_args(argv)

    if args.heat_stress is not None:
        try:
            level = score_heat_stress(*args.heat_stress)
        except ValidationError as exc:
            print(f"Invalid microclimate reading: {exc}", file=sys.stderr)
            return 1
        print(f"Heat stress: {level}")
        print(advice_for_heat_stress(level))
        return 0

    if args.image is not None:
        try:
            analysis, category = process_image(
                args.image,
                target_size=args.target_size,
                threshold=args.threshold,
                min_blob_size=args.min_blob_size,
            )
        except DecodeError as exc:
            print(str(exc), file=sys.stderr)
            return 1
        payload = analysis.to_dict()
        payload["pest_amount"] = category
        print(json.dumps(payload, indent=2))
        return 0

    try:
        progress = CategoryProgress(enable=sys.stdout.isatty())
        summary = process_batch(
            images_dir=args.images_dir,
            output_dir=args.output_dir,
            target_size=args.target_size,
            threshold=args.threshold,
            min_blob_size=args.min_blob_size,
            annotate=args.annotate,
            max_blobs=args.max_blobs,
            max_workers=args.workers,
            recursive=args.recursive,
            progress=progress,
        )
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    counts = summary["category_counts"]
    print(
        f"Analysed {summary['analysed']}/{summary['total']} image(s), "
        f"{summary['failed']} failed. Summary written to {summary['csv']}."
    )
    print("Pest amounts: " + ", ".join(f"{k}={v}" for k, v in counts.items()))
    if summary["annotated_dir"]:
        print(f"Annotated copies in {summary['annotated_dir']}.")
    return 0 if summary["failed"] == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())
