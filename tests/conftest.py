from __future__ import annotations

import io
from pathlib import Path
from typing import Callable
import sys

import pytest
from PIL import Image
from pypdf import PdfReader, PdfWriter
from pypdf.generic import (
    ArrayObject,
    DecodedStreamObject,
    DictionaryObject,
    FloatObject,
    NameObject,
    NumberObject,
    RectangleObject,
)

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pdfimagex.types import PageImage  # noqa: E402

# (width, height) in pixels; at 72 dpi also the page size in points.
MIXED_PAGES = [((60, 90), "red"), ((120, 80), "green"), ((50, 100), "blue")]


def image_pdf_bytes(pages: list[tuple[tuple[int, int], str]]) -> bytes:
    """One image per page, each page exactly the size of its image."""

    images = [Image.new("RGB", size, color) for size, color in pages]
    buffer = io.BytesIO()
    images[0].save(buffer, "PDF", save_all=True, append_images=images[1:], resolution=72.0)
    return buffer.getvalue()


def _write(writer: PdfWriter) -> bytes:
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def _set_content(writer: PdfWriter, page, content: bytes, resources: DictionaryObject) -> None:
    stream = DecodedStreamObject()
    stream.set_data(content)
    page[NameObject("/Contents")] = writer._add_object(stream)
    page[NameObject("/Resources")] = resources


def _jpeg_xobject(writer: PdfWriter, size: tuple[int, int], color: str):
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, "JPEG", quality=90)
    image = DecodedStreamObject()
    image.update(
        {
            NameObject("/Type"): NameObject("/XObject"),
            NameObject("/Subtype"): NameObject("/Image"),
            NameObject("/Width"): NumberObject(size[0]),
            NameObject("/Height"): NumberObject(size[1]),
            NameObject("/ColorSpace"): NameObject("/DeviceRGB"),
            NameObject("/BitsPerComponent"): NumberObject(8),
            NameObject("/Filter"): NameObject("/DCTDecode"),
        }
    )
    image.set_data(buffer.getvalue())
    return writer._add_object(image)


@pytest.fixture()
def mixed_pdf_bytes() -> bytes:
    """Three pages: portrait, landscape, portrait, each a single embedded JPEG."""

    return image_pdf_bytes(MIXED_PAGES)


@pytest.fixture()
def mixed_pdf(tmp_path: Path, mixed_pdf_bytes: bytes) -> Path:
    path = tmp_path / "mixed.pdf"
    path.write_bytes(mixed_pdf_bytes)
    return path


@pytest.fixture()
def corrupt_resource_pdf_bytes(mixed_pdf_bytes: bytes) -> bytes:
    """Like ``mixed_pdf_bytes`` but page index 2 has a broken XObject table."""

    writer = PdfWriter(clone_from=PdfReader(io.BytesIO(mixed_pdf_bytes)))
    resources = writer.pages[2]["/Resources"]
    resources[NameObject("/XObject")] = NumberObject(7)
    return _write(writer)


@pytest.fixture()
def missing_image_pdf_bytes() -> bytes:
    """One page painting an XObject name that its resources do not define."""

    writer = PdfWriter()
    page = writer.add_blank_page(width=100, height=100)
    resources = DictionaryObject({NameObject("/XObject"): DictionaryObject()})
    _set_content(writer, page, b"q 10 0 0 10 0 0 cm /Ghost Do Q", resources)
    return _write(writer)


@pytest.fixture()
def vector_pdf_bytes() -> bytes:
    """Two pages of filled rectangles and no images."""

    writer = PdfWriter()
    for width, height in ((200, 100), (100, 150)):
        page = writer.add_blank_page(width=width, height=height)
        _set_content(writer, page, b"0 0 1 rg 10 10 50 50 re f", DictionaryObject())
    return _write(writer)


@pytest.fixture()
def form_image_pdf_bytes() -> bytes:
    """One page whose only image sits inside a form XObject."""

    writer = PdfWriter()
    page = writer.add_blank_page(width=100, height=100)
    image_ref = _jpeg_xobject(writer, (30, 20), "purple")

    form = DecodedStreamObject()
    form.update(
        {
            NameObject("/Type"): NameObject("/XObject"),
            NameObject("/Subtype"): NameObject("/Form"),
            NameObject("/BBox"): ArrayObject([FloatObject(0), FloatObject(0), FloatObject(1), FloatObject(1)]),
            NameObject("/Resources"): DictionaryObject(
                {NameObject("/XObject"): DictionaryObject({NameObject("/Im1"): image_ref})}
            ),
        }
    )
    form.set_data(b"/Im1 Do")
    form_ref = writer._add_object(form)

    resources = DictionaryObject({NameObject("/XObject"): DictionaryObject({NameObject("/Fm0"): form_ref})})
    _set_content(writer, page, b"q 50 0 0 50 10 10 cm /Fm0 Do Q", resources)
    return _write(writer)


@pytest.fixture()
def zero_area_pdf_bytes() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=100, height=100)
    writer.add_blank_page(width=100, height=100)
    writer.pages[1].mediabox = RectangleObject([0, 0, 0, 0])
    return _write(writer)


@pytest.fixture()
def page_image_factory() -> Callable[..., PageImage]:
    def _create(
        size: tuple[int, int] = (40, 30),
        color: str | tuple[int, ...] = "red",
        mode: str = "RGB",
        source_page_index: int | None = None,
        dpi: float = 72.0,
    ) -> PageImage:
        return PageImage.from_pil(
            Image.new(mode, size, color),
            source_page_index=source_page_index,
            dpi=dpi,
        )

    return _create


@pytest.fixture()
def image_files(tmp_path: Path) -> list[Path]:
    paths = []
    for name, size, color in (("a.png", (80, 40), "orange"), ("b.jpg", (30, 60), "navy")):
        path = tmp_path / name
        Image.new("RGB", size, color).save(path)
        paths.append(path)
    return paths
