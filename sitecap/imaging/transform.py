"""Apply a resize plan to encoded image bytes with Pillow.

The decoded format of the input is preserved on output and re-encoded with
fixed per-format quality settings.
"""

import io
import logging
from typing import Any, Dict, Tuple

from PIL import Image, UnidentifiedImageError

from ..errors import ResizeError
from .resize import ResizeSpec, TransformPlan, plan_transform

logger = logging.getLogger(__name__)


CONTENT_TYPES: Dict[str, str] = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "TIFF": "image/tiff",
}

SAVE_OPTIONS: Dict[str, Dict[str, Any]] = {
    "JPEG": {"quality": 95},
    "PNG": {"compress_level": 6},
    "WEBP": {"quality": 90},
    "GIF": {},
    "TIFF": {},
}


def content_type_for(image_format: str) -> str:
    """Map a Pillow format name to a MIME type."""
    return CONTENT_TYPES.get((image_format or "").upper(), "application/octet-stream")


def apply_plan(image: Image.Image, plan: TransformPlan) -> Image.Image:
    """Run the scale and crop steps of ``plan`` on a decoded image."""
    if plan.scale is not None and plan.scaled_size != image.size:
        image = image.resize(plan.scaled_size, Image.LANCZOS)
    if plan.crop_box is not None:
        image = image.crop(plan.crop_box)
    return image


def encode_image(image: Image.Image, image_format: str) -> bytes:
    """Encode ``image`` in ``image_format`` with the fixed quality defaults."""
    options = SAVE_OPTIONS.get(image_format)
    if options is None:
        raise ResizeError(f"unsupported image format: {image_format}")

    if image_format == "JPEG" and image.mode not in ("RGB", "L", "CMYK"):
        image = image.convert("RGB")

    buf = io.BytesIO()
    image.save(buf, format=image_format, **options)
    return buf.getvalue()


def resize_image(data: bytes, spec: ResizeSpec) -> Tuple[bytes, str]:
    """Resize encoded image bytes according to ``spec``.

    Args:
        data: Encoded source image (PNG, JPEG, WEBP, GIF or TIFF)
        spec: Parsed resize specification

    Returns:
        Tuple of (encoded bytes, content type)

    Raises:
        ResizeError: If decoding, geometry planning or encoding fails
    """
    try:
        with Image.open(io.BytesIO(data)) as source:
            image_format = source.format
            source.load()
            plan = plan_transform(spec, source.width, source.height)
            result = apply_plan(source, plan)
            encoded = encode_image(result, image_format)
    except UnidentifiedImageError as e:
        raise ResizeError(f"cannot decode image: {e}")
    except OSError as e:
        raise ResizeError(f"image processing failed: {e}")

    logger.debug(
        f"Resized {plan.source_size[0]}x{plan.source_size[1]} -> "
        f"{plan.output_size[0]}x{plan.output_size[1]} ({image_format})"
    )
    return encoded, content_type_for(image_format)
