"""pypdf backend: document decoding, content stream access and PDF building."""

from __future__ import annotations

import io
import threading
from typing import Any, Mapping

from PIL import Image
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from pypdf.generic import (
    ContentStream,
    DecodedStreamObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    NumberObject,
    StreamObject,
)

from ..exceptions import CodecError, DecodeError, RenderError
from ..types import EmbeddablePage
from .base import Operation, Placement

PRODUCER = "pdfimagex"


def _resolve(obj: object | None) -> object | None:
    if isinstance(obj, IndirectObject):
        return obj.get_object()
    return obj


def _clean_name(name: object) -> str:
    raw = str(name)
    return raw[1:] if raw.startswith("/") else raw


class PypdfDocument:
    """
    Decoded document backed by :class:`pypdf.PdfReader`.

    pypdf resolves objects lazily and caches them on the reader, so every
    worker thread gets its own reader over the same immutable bytes.
    """

    def __init__(self, data: bytes, reader: PdfReader, page_count: int, password: str | None = None) -> None:
        self.page_count = page_count
        self.byte_size = len(data)
        self._data = data
        self._password = password
        self._local = threading.local()
        self._local.reader = reader

    @property
    def reader(self) -> PdfReader:
        reader = getattr(self._local, "reader", None)
        if reader is None:
            reader = PdfReader(io.BytesIO(self._data))
            if reader.is_encrypted and self._password:
                reader.decrypt(self._password)
            self._local.reader = reader
        return reader

    def _page(self, index: int):
        if not 0 <= index < self.page_count:
            raise RenderError(
                f"Page index {index} is out of range for a {self.page_count}-page document",
                page_index=index,
            )
        try:
            return self.reader.pages[index]
        except Exception as exc:
            raise RenderError(f"Unable to load page {index}: {exc}", page_index=index) from exc

    def page_size(self, index: int) -> tuple[float, float]:
        page = self._page(index)
        box = page.cropbox
        width, height = abs(float(box.width)), abs(float(box.height))
        if (page.rotation or 0) % 180:
            width, height = height, width
        return width, height

    def page_operations(self, index: int) -> list[Operation]:
        page = self._page(index)
        try:
            contents = page.get_contents()
            if contents is None:
                return []
            return list(contents.operations)
        except Exception as exc:
            raise RenderError(f"Content stream of page {index} cannot be decoded: {exc}", page_index=index) from exc

    def page_xobjects(self, index: int) -> Mapping[str, Any] | None:
        return self._xobject_table(self._page(index), f"page {index}", index)

    def form_operations(self, form: Any) -> list[Operation]:
        try:
            return list(ContentStream(form, self.reader).operations)
        except Exception as exc:
            raise RenderError(f"Form content stream cannot be decoded: {exc}") from exc

    def form_xobjects(self, form: Any) -> Mapping[str, Any] | None:
        return self._xobject_table(form, "form XObject", None)

    def xobject_kind(self, xobject: Any) -> str | None:
        if not isinstance(xobject, StreamObject):
            return None
        subtype = xobject.get(NameObject("/Subtype"))
        if subtype == NameObject("/Image"):
            return "image"
        if subtype == NameObject("/Form"):
            return "form"
        return None

    def decode_image(self, xobject: Any) -> Image.Image:
        try:
            image = xobject.decode_as_image()
            if image is not None:
                image.load()
        except Exception as exc:
            raise CodecError(f"Image resource cannot be decoded: {exc}") from exc
        if image is None:
            raise CodecError("Image resource uses an unsupported encoding")
        return image

    def close(self) -> None:
        self._local = threading.local()

    def _xobject_table(self, owner: Any, label: str, page_index: int | None) -> dict[str, Any] | None:
        try:
            resources = _resolve(owner.get(NameObject("/Resources")))
            if resources is None:
                return None
            if not isinstance(resources, DictionaryObject):
                raise RenderError(f"Resource table of {label} is not a dictionary", page_index=page_index)
            xobjects = _resolve(resources.get(NameObject("/XObject")))
            if xobjects is None:
                return None
            if not isinstance(xobjects, DictionaryObject):
                raise RenderError(f"XObject table of {label} is not a dictionary", page_index=page_index)
            return {_clean_name(name): _resolve(raw) for name, raw in xobjects.items()}
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(f"Resource table of {label} cannot be read: {exc}", page_index=page_index) from exc


class PypdfDecoder:
    """Opens source bytes with pypdf."""

    def __init__(self, password: str | None = None) -> None:
        self.password = password

    def open(self, data: bytes) -> PypdfDocument:
        if not data:
            raise DecodeError("Source document is empty")
        try:
            reader = PdfReader(io.BytesIO(data))
        except PdfReadError as exc:
            raise DecodeError(f"Corrupted or invalid PDF: {exc}") from exc
        except Exception as exc:
            raise DecodeError(f"Unexpected error reading PDF: {exc}") from exc

        if reader.is_encrypted:
            if not self.password:
                raise DecodeError("PDF is encrypted. Supply a password to process this file.")
            if reader.decrypt(self.password) == 0:
                raise DecodeError("Failed to decrypt PDF with supplied password.")

        try:
            page_count = len(reader.pages)
        except Exception as exc:
            raise DecodeError(f"Page tree cannot be read: {exc}") from exc
        if page_count == 0:
            raise DecodeError("PDF has no pages")

        return PypdfDocument(data, reader, page_count, self.password)


class PypdfDocumentBuilder:
    """Builds a multi-page PDF where each page shows one encoded image."""

    def __init__(self) -> None:
        self._writer = PdfWriter()
        self._metadata: dict[str, str] = {"/Producer": PRODUCER}
        self.page_count = 0

    def add_page(
        self,
        page: EmbeddablePage,
        page_width: float,
        page_height: float,
        placement: Placement,
    ) -> None:
        writer = self._writer
        pdf_page = writer.add_blank_page(width=page_width, height=page_height)

        image = DecodedStreamObject()
        image.update(
            {
                NameObject("/Type"): NameObject("/XObject"),
                NameObject("/Subtype"): NameObject("/Image"),
                NameObject("/Width"): NumberObject(page.width),
                NameObject("/Height"): NumberObject(page.height),
                NameObject("/ColorSpace"): NameObject(page.color_space),
                NameObject("/BitsPerComponent"): NumberObject(page.bits_per_component),
                NameObject("/Filter"): NameObject(page.filter_name),
            }
        )
        image.set_data(page.data)
        image_ref = writer._add_object(image)

        x, y, width, height = placement
        content = DecodedStreamObject()
        content.set_data(f"q {width:.4f} 0 0 {height:.4f} {x:.4f} {y:.4f} cm /Im0 Do Q".encode("ascii"))

        pdf_page[NameObject("/Resources")] = DictionaryObject(
            {NameObject("/XObject"): DictionaryObject({NameObject("/Im0"): image_ref})}
        )
        pdf_page[NameObject("/Contents")] = writer._add_object(content)
        self.page_count += 1

    def set_metadata(self, metadata: Mapping[str, str]) -> None:
        self._metadata.update({k: v for k, v in metadata.items() if v is not None})

    def build(self) -> bytes:
        self._writer.add_metadata(self._metadata)
        buffer = io.BytesIO()
        self._writer.write(buffer)
        return buffer.getvalue()


__all__ = ["PypdfDocument", "PypdfDecoder", "PypdfDocumentBuilder", "PRODUCER"]
