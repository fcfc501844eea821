"""Unit tests for Pillow-backed screenshot transforms."""

import io

import pytest
from PIL import Image

from sitecap.errors import ResizeError
from sitecap.imaging.resize import parse_resize_spec
from sitecap.imaging.transform import content_type_for, resize_image


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


class TestContentTypes:
    """Tests for format to MIME type mapping."""

    @pytest.mark.parametrize("image_format,expected", [
        ("JPEG", "image/jpeg"),
        ("PNG", "image/png"),
        ("WEBP", "image/webp"),
        ("GIF", "image/gif"),
        ("TIFF", "image/tiff"),
        ("png", "image/png"),
        ("BMP", "application/octet-stream"),
        ("", "application/octet-stream"),
    ])
    def test_content_type_for(self, image_format, expected):
        assert content_type_for(image_format) == expected


class TestResizeImage:
    """Tests for resize_image."""

    def test_fit_png(self, png_1000x500):
        data, content_type = resize_image(png_1000x500, parse_resize_spec("200x200"))

        image = _open(data)
        assert content_type == "image/png"
        assert image.format == "PNG"
        assert image.size == (200, 100)

    def test_fill_and_center_crop(self, png_1000x500):
        data, _ = resize_image(png_1000x500, parse_resize_spec("200x200#"))
        assert _open(data).size == (200, 200)

    def test_exact(self, image_factory):
        source = image_factory(1000, 400)
        data, _ = resize_image(source, parse_resize_spec("200x100!"))
        assert _open(data).size == (200, 100)

    def test_manual_crop(self, png_1000x500):
        data, _ = resize_image(png_1000x500, parse_resize_spec("100x50_10_20"))
        assert _open(data).size == (100, 50)

    def test_preserves_jpeg_format(self, image_factory):
        source = image_factory(400, 300, image_format="JPEG")
        data, content_type = resize_image(source, parse_resize_spec("50%x50%"))

        image = _open(data)
        assert content_type == "image/jpeg"
        assert image.format == "JPEG"
        assert image.size == (200, 150)

    def test_preserves_webp_format(self, image_factory):
        source = image_factory(100, 100, image_format="WEBP")
        data, content_type = resize_image(source, parse_resize_spec("50x"))

        assert content_type == "image/webp"
        assert _open(data).size == (50, 50)

    def test_undecodable_bytes(self):
        with pytest.raises(ResizeError):
            resize_image(b"not an image", parse_resize_spec("10x10"))

    def test_crop_outside_image(self, png_1000x500):
        with pytest.raises(ResizeError):
            resize_image(png_1000x500, parse_resize_spec("100x100+0+450"))
