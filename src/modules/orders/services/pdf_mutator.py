import io
import logging

from PIL import Image, UnidentifiedImageError
from PyPDF2 import PdfReader, PdfWriter
from PyPDF2.errors import PyPdfError
from PyPDF2.generic import ContentStream, DictionaryObject, NameObject
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as pdfcanvas

from modules.orders.errors import MalformedDocument, UnsupportedImage
from modules.orders.services.canvas_capture import RasterImage

logger = logging.getLogger(__name__)

STAMP_WIDTH = 100
STAMP_HEIGHT = 50
CAPTION_OFFSET = 20
CAPTION_FONT = "Helvetica"
CAPTION_FONT_SIZE = 10

# Categorías que merge_page fusiona por nombre
MERGED_RESOURCES = (
    "/ExtGState", "/Font", "/XObject", "/ColorSpace", "/Pattern", "/Shading", "/Properties",
)

PDF_ERRORS = (PyPdfError, ValueError, KeyError, TypeError, AttributeError, IndexError)


def _read_pdf(pdf_bytes: bytes) -> PdfReader:
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        page_count = len(reader.pages)
    except PDF_ERRORS:
        raise MalformedDocument("PDF inválido o dañado")
    if page_count == 0:
        raise MalformedDocument("The PDF has no pages")
    return reader


def _decode_image(image: RasterImage) -> Image.Image:
    try:
        decoded = Image.open(io.BytesIO(image.data))
        decoded.load()
    except (UnidentifiedImageError, OSError):
        raise UnsupportedImage()
    # reportlab necesita RGB/RGBA para el canal alfa
    if decoded.mode not in ("RGB", "RGBA"):
        decoded = decoded.convert("RGBA")
    return decoded


def build_overlay(page_width: float, page_height: float, image: Image.Image,
                  x: float, y: float, caption: str) -> bytes:
    """One-page PDF holding the stamp and its caption, sized like the target page."""
    buffer = io.BytesIO()
    # invariant=1 fija fechas e IDs: misma entrada, misma salida
    c = pdfcanvas.Canvas(buffer, pagesize=(page_width, page_height), invariant=1)
    c.drawImage(ImageReader(image), x, y, width=STAMP_WIDTH, height=STAMP_HEIGHT, mask="auto")
    c.setFillColorRGB(0, 0, 0)
    c.setFont(CAPTION_FONT, CAPTION_FONT_SIZE)
    c.drawString(x, y - CAPTION_OFFSET, caption)
    c.showPage()
    c.save()
    return buffer.getvalue()


def _resource_names(page) -> set:
    names = set()
    resources = page.get("/Resources")
    if resources is None:
        return names
    resources = resources.get_object()
    for category in MERGED_RESOURCES:
        if category in resources:
            names.update(resources[category].get_object().keys())
    return names


def _rename_overlay_resources(overlay_page, overlay_reader: PdfReader, taken: set) -> None:
    """
    Gives every overlay resource a `/Sig<n>` prefixed name missing from `taken`,
    so merge_page has no clash to resolve with a random suffix.
    """
    resources = overlay_page["/Resources"].get_object()
    own = [
        (category, resources[category].get_object())
        for category in MERGED_RESOURCES if category in resources
    ]
    old_names = [name for _, entries in own for name in entries]

    n = 0
    while any(f"/Sig{n}{name[1:]}" in taken for name in old_names):
        n += 1

    renames = {}
    for category, entries in own:
        renamed = DictionaryObject()
        for name in entries:
            new_name = NameObject(f"/Sig{n}{name[1:]}")
            renamed[new_name] = entries.raw_get(name)
            renames[name] = new_name
        resources[NameObject(category)] = renamed

    content = ContentStream(overlay_page.get_contents(), overlay_reader)
    for operands, _operator in content.operations:
        if not isinstance(operands, list):
            # imagen en línea
            continue
        for i, operand in enumerate(operands):
            if isinstance(operand, NameObject) and operand in renames:
                operands[i] = renames[operand]
    overlay_page[NameObject("/Contents")] = content


def embed_signature(pdf_bytes: bytes, image: RasterImage, x: float, y: float, caption: str) -> bytes:
    """
    Stamps `image` (100x50) at (x, y) on the first page and writes `caption`
    20 units below it. Every other page is copied unchanged.

    Any failure to parse, merge or serialize the document raises
    MalformedDocument.
    """
    reader = _read_pdf(pdf_bytes)
    decoded = _decode_image(image)

    try:
        first_page = reader.pages[0]
        box = first_page.mediabox
        overlay_bytes = build_overlay(float(box.width), float(box.height), decoded, x, y, caption)
        overlay_reader = PdfReader(io.BytesIO(overlay_bytes))
        overlay_page = overlay_reader.pages[0]
        _rename_overlay_resources(overlay_page, overlay_reader, _resource_names(first_page))

        writer = PdfWriter()
        for index, page in enumerate(reader.pages):
            if index == 0:
                page.merge_page(overlay_page)
            writer.add_page(page)
        if reader.metadata:
            writer.add_metadata({k: v for k, v in reader.metadata.items() if isinstance(v, str)})

        output = io.BytesIO()
        writer.write(output)
    except PDF_ERRORS as e:
        logger.warning("Could not stamp the document: %s", e)
        raise MalformedDocument("PDF inválido o dañado")

    logger.debug("Embedded signature at (%s, %s) on a %d-page document", x, y, len(reader.pages))
    return output.getvalue()


def count_pages(pdf_bytes: bytes) -> int:
    return len(_read_pdf(pdf_bytes).pages)
