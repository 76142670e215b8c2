"""
Sheet image conversion.

All sheets are stored as JPEG. PNG (and any other raster format Pillow
reads) and PDF are converted on import:

    - The first page of a PDF is rendered at 2x its page size
    - Transparent areas are flattened onto white
    - Images larger than 3000x4000 are scaled down, keeping aspect ratio
    - Saved as JPEG at quality 95

Usage:
    from worshipnote.sheets.converter import convert_to_jpeg

    result = convert_to_jpeg(png_bytes, "scan.png")
    if result.is_ok:
        files.write_file(target, result.value)
"""

import io

import pypdfium2 as pdfium
from PIL import Image, UnidentifiedImageError

from worshipnote.core.logger import get_logger
from worshipnote.core.result import Err, ErrorKind, Ok, Result


logger = get_logger(__name__)


MAX_WIDTH = 3000
MAX_HEIGHT = 4000
JPEG_QUALITY = 95

# Render scale for PDF pages (1.0 = 72 dpi)
PDF_RENDER_SCALE = 2.0

_PDF_MAGIC = b"%PDF"


def _flatten(image: Image.Image) -> Image.Image:
    """Return an RGB image, compositing any transparency onto white."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def _is_pdf(data: bytes) -> bool:
    # The header may follow a few bytes of junk
    return _PDF_MAGIC in data[:1024]


def _render_first_page(data: bytes) -> Image.Image:
    """
    Render page 1 of a PDF.

    Raises:
        pdfium.PdfiumError: If the document can't be opened or rendered.
        ValueError: If the document has no pages.
    """
    pdf = pdfium.PdfDocument(data)
    try:
        if len(pdf) == 0:
            raise ValueError("PDF has no pages")
        page = pdf[0]
        try:
            bitmap = page.render(scale=PDF_RENDER_SCALE)
            # convert() copies, so the image outlives the PDFium bitmap
            return bitmap.to_pil().convert("RGB")
        finally:
            page.close()
    finally:
        pdf.close()


def _open_image(data: bytes, source_name: str) -> Image.Image:
    if _is_pdf(data):
        logger.debug(f"Rendering first PDF page of {source_name}")
        return _render_first_page(data)

    with Image.open(io.BytesIO(data)) as image:
        image.load()
        # Detached from the source, which closes with the block
        return _flatten(image).copy()


def convert_to_jpeg(data: bytes, source_name: str = "") -> Result[bytes]:
    """
    Convert raster image or PDF bytes into sheet JPEG bytes.

    Args:
        data: Raw file contents.
        source_name: Original file name, used for messages.

    Returns:
        Ok(jpeg bytes), or Err(INVALID_INPUT) for empty or unreadable data.
    """
    if not data:
        return Err(ErrorKind.INVALID_INPUT, f"Empty image file: {source_name}", {"source": source_name})

    try:
        rgb = _open_image(data, source_name)
        original_size = rgb.size
        if rgb.width > MAX_WIDTH or rgb.height > MAX_HEIGHT:
            rgb.thumbnail((MAX_WIDTH, MAX_HEIGHT), Image.Resampling.LANCZOS)
            logger.debug(f"Resized {source_name} from {original_size} to {rgb.size}")

        output = io.BytesIO()
        rgb.save(output, format="JPEG", quality=JPEG_QUALITY)
    except (UnidentifiedImageError, pdfium.PdfiumError, OSError, ValueError) as e:
        return Err(
            ErrorKind.INVALID_INPUT,
            f"Cannot read image {source_name}: {e}",
            {"source": source_name, "original_error": str(e)}
        )

    return Ok(output.getvalue())
