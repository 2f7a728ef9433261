"""Image annotation functions for trap blob detections."""

from PIL import Image, ImageDraw

from models import AnalysisResult


def annotate_image(
    img: Image.Image,
    analysis: AnalysisResult,
    max_blobs: int,
    label: str = "",
) -> Image.Image:
    """Outline accepted blobs on the original image.

    Blob geometry lives in the resized analysis space, so boxes are scaled
    back to ``img``'s size.

    Args:
        img: PIL Image to annotate
        analysis: Result of segmenting ``img``
        max_blobs: Maximum number of blobs to outline
        label: Optional caption drawn in the top-left corner

    Returns:
        Annotated RGB copy of ``img``
    """
    annotated = img.copy().convert("RGB")
    draw = ImageDraw.Draw(annotated)
    scale_x = annotated.width / analysis.width if analysis.width else 1.0
    scale_y = annotated.height / analysis.height if analysis.height else 1.0

    for blob in analysis.blobs[:max_blobs]:
        x, y, w, h = blob.bounding_box
        draw.rectangle(
            [x * scale_x, y * scale_y, (x + w) * scale_x, (y + h) * scale_y],
            outline="red",
            width=2,
        )

    if label:
        draw.text((5, 5), label, fill="yellow")

    return annotated
