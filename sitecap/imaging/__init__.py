"""Screenshot post-processing: resize DSL, geometry planning and Pillow transforms."""

from .resize import (
    AspectPolicy,
    CropPolicy,
    ResizeSpec,
    TransformPlan,
    parse_resize_spec,
    plan_transform,
)
from .transform import content_type_for, resize_image

__all__ = [
    "AspectPolicy",
    "CropPolicy",
    "ResizeSpec",
    "TransformPlan",
    "parse_resize_spec",
    "plan_transform",
    "content_type_for",
    "resize_image",
]
