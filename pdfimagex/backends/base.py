"""Backend protocols for the capabilities pdfimagex consumes."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol, Sequence

from PIL import Image

from ..types import EmbeddablePage

Operation = tuple[Sequence[Any], bytes]
Placement = tuple[float, float, float, float]


class DecodedDocument(Protocol):
    """A parsed source document exposing per-page drawing instructions."""

    page_count: int
    byte_size: int

    def page_size(self, index: int) -> tuple[float, float]:
        """Return the visible page size in points."""

    def page_operations(self, index: int) -> list[Operation]:
        """Return the page's content stream as ``(operands, operator)`` pairs."""

    def page_xobjects(self, index: int) -> Mapping[str, Any] | None:
        """Return the page's XObject table keyed by name, ``None`` if absent."""

    def form_operations(self, form: Any) -> list[Operation]:
        """Return the content stream of a form XObject."""

    def form_xobjects(self, form: Any) -> Mapping[str, Any] | None:
        """Return the XObject table of a form XObject, ``None`` if absent."""

    def xobject_kind(self, xobject: Any) -> str | None:
        """Return ``"image"``, ``"form"`` or ``None`` for other objects."""

    def decode_image(self, xobject: Any) -> Image.Image:
        """Decode an image XObject into a Pillow image."""

    def close(self) -> None:
        """Release parser state held for this document."""


class DocumentDecoder(Protocol):
    def open(self, data: bytes) -> DecodedDocument:
        """Parse *data*, raising :class:`~pdfimagex.exceptions.DecodeError`."""


class RenderSession(Protocol):
    def render(self, page_index: int, scale: float) -> Image.Image:
        """Rasterize one page at *scale* onto an opaque background."""

    def close(self) -> None:
        """Release renderer resources for this document."""


class PageRenderer(Protocol):
    def open(self, data: bytes) -> RenderSession:
        """Prepare *data* for rendering."""


class DocumentBuilder(Protocol):
    page_count: int

    def add_page(
        self,
        page: EmbeddablePage,
        page_width: float,
        page_height: float,
        placement: Placement,
    ) -> None:
        """Append a page showing *page* at ``(x, y, width, height)``."""

    def set_metadata(self, metadata: Mapping[str, str]) -> None:
        """Set document information entries such as ``/Title``."""

    def build(self) -> bytes:
        """Serialise every page added so far into a document byte stream."""


BuilderFactory = Callable[[], DocumentBuilder]

__all__ = [
    "Operation",
    "Placement",
    "DecodedDocument",
    "DocumentDecoder",
    "RenderSession",
    "PageRenderer",
    "DocumentBuilder",
    "BuilderFactory",
]
