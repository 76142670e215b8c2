# tests/test_converter.py
"""Test sheet image conversion"""

import io

from PIL import Image

from worshipnote.core.result import ErrorKind
from worshipnote.sheets.converter import MAX_HEIGHT, MAX_WIDTH, convert_to_jpeg


def _image_bytes(image: Image.Image, format: str) -> bytes:
    output = io.BytesIO()
    image.save(output, format=format)
    return output.getvalue()


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


class TestConvertToJpeg:
    """Test PNG/JPEG/PDF -> sheet JPEG"""

    def test_png_becomes_jpeg(self):
        data = _image_bytes(Image.new("RGB", (40, 30), (10, 20, 30)), "PNG")

        result = convert_to_jpeg(data, "scan.png")

        image = _open(result.unwrap())
        assert image.format == "JPEG"
        assert image.size == (40, 30)

    def test_transparency_flattened_onto_white(self):
        data = _image_bytes(Image.new("RGBA", (20, 20), (0, 0, 0, 0)), "PNG")

        image = _open(convert_to_jpeg(data, "clear.png").unwrap())

        assert image.mode == "RGB"
        red, green, blue = image.getpixel((10, 10))
        assert min(red, green, blue) > 240

    def test_large_image_scaled_down(self):
        data = _image_bytes(Image.new("RGB", (MAX_WIDTH + 1000, 1000)), "PNG")

        image = _open(convert_to_jpeg(data, "wide.png").unwrap())

        assert image.size == (MAX_WIDTH, 750)
        assert image.height <= MAX_HEIGHT

    def test_small_image_not_enlarged(self):
        data = _image_bytes(Image.new("L", (100, 200)), "JPEG")
        assert _open(convert_to_jpeg(data, "small.jpg").unwrap()).size == (100, 200)

    def test_pdf_first_page_rendered(self):
        """The first PDF page is rendered at twice its page size"""
        first = Image.new("RGB", (100, 200), (255, 0, 0))
        second = Image.new("RGB", (300, 300), (0, 0, 255))
        output = io.BytesIO()
        first.save(output, format="PDF", save_all=True, append_images=[second])

        image = _open(convert_to_jpeg(output.getvalue(), "sheet.pdf").unwrap())

        assert image.format == "JPEG"
        assert image.size == (200, 400)
        red, green, blue = image.getpixel((100, 200))
        assert red > 200 and blue < 60

    def test_pdf_detected_without_extension(self):
        data = _image_bytes(Image.new("RGB", (50, 50), (255, 255, 255)), "PDF")
        assert _open(convert_to_jpeg(data, "download").unwrap()).size == (100, 100)

    def test_png_with_pdf_extension(self):
        """Content decides the format, not the name"""
        data = _image_bytes(Image.new("RGB", (40, 30)), "PNG")
        assert _open(convert_to_jpeg(data, "renamed.PDF").unwrap()).size == (40, 30)

    def test_broken_pdf_rejected(self):
        result = convert_to_jpeg(b"%PDF-1.7 truncated", "sheet.pdf")
        assert result.is_err
        assert result.kind is ErrorKind.INVALID_INPUT

    def test_empty_rejected(self):
        assert convert_to_jpeg(b"", "empty.png").kind is ErrorKind.INVALID_INPUT

    def test_garbage_rejected(self):
        result = convert_to_jpeg(b"definitely not an image", "notes.png")
        assert result.is_err
        assert result.kind is ErrorKind.INVALID_INPUT
