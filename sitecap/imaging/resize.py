"""Resize specification DSL and transform geometry.

A resize specification is a compact string in the ImageMagick tradition:

    200x100      fit inside 200x100, keeping aspect ratio
    200x         scale to width 200
    x100         scale to height 100
    200x100!     scale to exactly 200x100, ignoring aspect ratio
    200x100#     fill 200x100 (``^`` is an alias), then center-crop to it
    50%x50%      dimensions relative to the source image
    100x50+10+20 crop a 100x50 region at offset (10, 20), no scaling
    100x50_10_20 same as above, URL-friendly separator

Parsing and geometry are pure; pixels are handled in ``transform``.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from ..errors import ConfigurationError, ResizeError

_DIGITS = re.compile(r"[0-9]+")
_SIGNED_DIGITS = re.compile(r"-?[0-9]+")


class AspectPolicy(str, Enum):
    """How the source aspect ratio is treated when scaling."""
    FIT = "fit"
    FILL = "fill"
    EXACT = "exact"


class CropPolicy(str, Enum):
    """Cropping applied around (or instead of) scaling."""
    NONE = "none"
    CENTER = "center"
    MANUAL = "manual"


@dataclass(frozen=True)
class ResizeSpec:
    """Parsed resize specification."""
    width: Optional[int] = None
    height: Optional[int] = None
    percentage: bool = False
    aspect: AspectPolicy = AspectPolicy.FIT
    crop: CropPolicy = CropPolicy.NONE
    offset_x: int = 0
    offset_y: int = 0


@dataclass(frozen=True)
class TransformPlan:
    """Concrete pixel operations for one source image.

    ``scale`` is ``(horizontal, vertical)`` or None when no scaling happens;
    ``scaled_size`` is the image size after scaling; ``crop_box`` is a
    ``(left, top, right, bottom)`` box applied after scaling.
    """
    source_size: Tuple[int, int]
    scale: Optional[Tuple[float, float]]
    scaled_size: Tuple[int, int]
    crop_box: Optional[Tuple[int, int, int, int]]

    @property
    def output_size(self) -> Tuple[int, int]:
        if self.crop_box is None:
            return self.scaled_size
        left, top, right, bottom = self.crop_box
        return right - left, bottom - top


def _parse_dimension(value: str, name: str) -> Optional[int]:
    if value == "":
        return None
    if not _DIGITS.fullmatch(value):
        raise ConfigurationError(f"invalid {name}: {value!r}")
    number = int(value)
    if number <= 0:
        raise ConfigurationError(f"{name} must be positive")
    return number


def _parse_offset(value: str, axis: str) -> int:
    if not _SIGNED_DIGITS.fullmatch(value):
        raise ConfigurationError(f"invalid crop offset {axis}: {value!r}")
    return int(value)


def parse_resize_spec(spec: str) -> ResizeSpec:
    """Parse a resize specification string.

    Raises:
        ConfigurationError: If the string is not a valid specification
    """
    if not spec:
        raise ConfigurationError("empty resize specification")

    remainder = spec
    percentage = False
    aspect = AspectPolicy.FIT
    crop = CropPolicy.NONE
    offset_x = offset_y = 0

    if "%" in remainder:
        percentage = True
        remainder = remainder.replace("%", "")

    has_plus = "+" in remainder
    has_underscore = "_" in remainder
    if has_plus and has_underscore:
        raise ConfigurationError("crop offsets must use a single separator ('+' or '_')")

    if has_plus or has_underscore:
        separator = "+" if has_plus else "_"
        parts = remainder.split(separator)
        if len(parts) != 3:
            raise ConfigurationError("invalid crop offset format, expected WxH+X+Y")
        if percentage:
            raise ConfigurationError("percentage dimensions cannot be combined with crop offsets")
        remainder = parts[0]
        offset_x = _parse_offset(parts[1], "X")
        offset_y = _parse_offset(parts[2], "Y")
        crop = CropPolicy.MANUAL

    if remainder.endswith("!"):
        aspect = AspectPolicy.EXACT
        remainder = remainder[:-1]
    elif remainder.endswith("#") or remainder.endswith("^"):
        aspect = AspectPolicy.FILL
        if crop is not CropPolicy.MANUAL:
            crop = CropPolicy.CENTER
        remainder = remainder[:-1]

    dimensions = remainder.split("x")
    if len(dimensions) != 2:
        raise ConfigurationError(f"invalid resize format: {spec!r}, expected WxH")

    width = _parse_dimension(dimensions[0], "width")
    height = _parse_dimension(dimensions[1], "height")
    if width is None and height is None:
        raise ConfigurationError("resize needs at least one of width or height")

    return ResizeSpec(
        width=width,
        height=height,
        percentage=percentage,
        aspect=aspect,
        crop=crop,
        offset_x=offset_x,
        offset_y=offset_y,
    )


def _target_size(spec: ResizeSpec, source_w: int, source_h: int) -> Tuple[int, int]:
    target_w = spec.width or 0
    target_h = spec.height or 0
    if spec.percentage:
        target_w = source_w * target_w // 100
        target_h = source_h * target_h // 100
    return target_w, target_h


def _manual_crop_plan(spec: ResizeSpec, source_w: int, source_h: int) -> TransformPlan:
    # Offsets and size are absolute pixels; aspect flags have no effect here.
    width = spec.width or 0
    height = spec.height or 0
    left, top = spec.offset_x, spec.offset_y
    if width <= 0 or height <= 0:
        raise ResizeError("manual crop needs both width and height")
    if left < 0 or top < 0 or left + width > source_w or top + height > source_h:
        raise ResizeError(
            f"crop region {width}x{height}+{left}+{top} outside "
            f"{source_w}x{source_h} image"
        )
    return TransformPlan(
        source_size=(source_w, source_h),
        scale=None,
        scaled_size=(source_w, source_h),
        crop_box=(left, top, left + width, top + height),
    )


def plan_transform(spec: ResizeSpec, source_w: int, source_h: int) -> TransformPlan:
    """Compute scale factors and crop box for a source image.

    Raises:
        ResizeError: If the geometry is degenerate (non-positive ratio,
            crop window outside the image)
    """
    if source_w <= 0 or source_h <= 0:
        raise ResizeError(f"invalid source size {source_w}x{source_h}")

    if spec.crop is CropPolicy.MANUAL:
        return _manual_crop_plan(spec, source_w, source_h)

    target_w, target_h = _target_size(spec, source_w, source_h)

    if spec.aspect is AspectPolicy.EXACT:
        scale_x = target_w / source_w
        scale_y = target_h / source_h
        if scale_x <= 0 or scale_y <= 0:
            raise ResizeError("invalid scale ratio")
    else:
        if target_w == 0:
            ratio = target_h / source_h
        elif target_h == 0:
            ratio = target_w / source_w
        else:
            width_ratio = target_w / source_w
            height_ratio = target_h / source_h
            if spec.crop is CropPolicy.CENTER:
                ratio = max(width_ratio, height_ratio)
            else:
                ratio = min(width_ratio, height_ratio)
        if ratio <= 0:
            raise ResizeError("invalid scale ratio")
        scale_x = scale_y = ratio

    scaled_w = max(1, int(round(source_w * scale_x)))
    scaled_h = max(1, int(round(source_h * scale_y)))

    crop_box = None
    if spec.crop is CropPolicy.CENTER:
        # An unset target dimension keeps the full scaled extent on that axis.
        window_w = target_w or scaled_w
        window_h = target_h or scaled_h
        if window_w > scaled_w or window_h > scaled_h:
            raise ResizeError(
                f"crop window {window_w}x{window_h} exceeds scaled image {scaled_w}x{scaled_h}"
            )
        left = (scaled_w - window_w) // 2
        top = (scaled_h - window_h) // 2
        crop_box = (left, top, left + window_w, top + window_h)

    return TransformPlan(
        source_size=(source_w, source_h),
        scale=(scale_x, scale_y),
        scaled_size=(scaled_w, scaled_h),
        crop_box=crop_box,
    )
