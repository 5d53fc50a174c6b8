"""Backend implementations of the capabilities pdfimagex consumes."""

from .base import (
    BuilderFactory,
    DecodedDocument,
    DocumentBuilder,
    DocumentDecoder,
    PageRenderer,
    RenderSession,
)
from .pymupdf_backend import PymupdfRenderer
from .pypdf_backend import PypdfDecoder, PypdfDocumentBuilder

__all__ = [
    "BuilderFactory",
    "DecodedDocument",
    "DocumentBuilder",
    "DocumentDecoder",
    "PageRenderer",
    "RenderSession",
    "PymupdfRenderer",
    "PypdfDecoder",
    "PypdfDocumentBuilder",
]
