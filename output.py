"""Output generation functions for trap batch analysis."""

import csv
from pathlib import Path
from typing import Dict, Iterable, List

from classification import category_key
from config import PEST_CATEGORIES

CSV_HEADER = [
    "Filename",
    "Width",
    "Height",
    "Dark_Pixel_Ratio",
    "Blob_Count",
    "Pest_Amount",
    "Largest_Blob",
    "Status",
    "Error",
]


def write_csv(output_csv: Path, per_image: Iterable[Dict[str, object]]) -> Dict[str, int]:
    """Write per-image rows followed by a summary section.

    Returns:
        Submissions per pest amount category (failed images excluded)
    """
    per_image_list = list(per_image)
    category_counts = {category_key(c): 0 for c in PEST_CATEGORIES}
    failed = 0
    total_blobs = 0

    rows: List[List[object]] = []
    for item in per_image_list:
        error = item.get("error")
        if error:
            failed += 1
            rows.append([item.get("filename", ""), "", "", "", "", "", "", "Failed", error])
            continue

        category = str(item.get("pest_amount", ""))
        key = category_key(category)
        if key in category_counts:
            category_counts[key] += 1
        blob_count = int(item.get("blob_count", 0) or 0)
        total_blobs += blob_count
        blob_sizes = item.get("blob_sizes") or []
        rows.append([
            item.get("filename", ""),
            item.get("width", ""),
            item.get("height", ""),
            f"{float(item.get('dark_pixel_ratio', 0.0) or 0.0):.4f}",
            blob_count,
            category,
            max(blob_sizes) if blob_sizes else 0,
            "OK",
            "",
        ])

    analysed = len(per_image_list) - failed
    with output_csv.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        writer.writerows(rows)

        writer.writerow([])
        writer.writerow(["Statistic", "Value"])
        writer.writerow(["Total_Images", len(per_image_list)])
        writer.writerow(["Analysed_Images", analysed])
        writer.writerow(["Failed_Images", failed])
        writer.writerow(["Total_Blobs", total_blobs])
        avg_blobs = total_blobs / analysed if analysed > 0 else 0.0
        writer.writerow(["Average_Blobs_Per_Image", f"{avg_blobs:.2f}"])
        for key, count in category_counts.items():
            writer.writerow([f"Count_{key}", count])

    return category_counts
