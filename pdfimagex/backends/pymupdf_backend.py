"""PyMuPDF page renderer."""

from __future__ import annotations

import threading

import pymupdf
from PIL import Image

from ..exceptions import RenderError


class PymupdfRenderSession:
    """Renders pages of one document. MuPDF documents are not thread-safe, so calls are serialised."""

    def __init__(self, document: pymupdf.Document) -> None:
        self._document = document
        self._lock = threading.Lock()
        self.page_count = document.page_count

    def render(self, page_index: int, scale: float) -> Image.Image:
        if not 0 <= page_index < self.page_count:
            raise RenderError(
                f"Page index {page_index} is out of range for a {self.page_count}-page document",
                page_index=page_index,
            )
        with self._lock:
            try:
                page = self._document.load_page(page_index)
                if page.rect.is_empty:
                    raise RenderError(f"Page {page_index} has a zero-area viewport", page_index=page_index)
                # alpha=False composites the page onto an opaque white canvas.
                pixmap = page.get_pixmap(matrix=pymupdf.Matrix(scale, scale), alpha=False)
            except RenderError:
                raise
            except Exception as exc:
                raise RenderError(f"Failed to render page {page_index}: {exc}", page_index=page_index) from exc

        if pixmap.width <= 0 or pixmap.height <= 0:
            raise RenderError(f"Page {page_index} has a zero-area viewport", page_index=page_index)
        mode = {1: "L", 3: "RGB", 4: "RGBA"}.get(pixmap.n)
        if mode is None:
            raise RenderError(f"Unsupported pixmap layout with {pixmap.n} components", page_index=page_index)
        return Image.frombytes(mode, (pixmap.width, pixmap.height), pixmap.samples)

    def close(self) -> None:
        with self._lock:
            self._document.close()


class PymupdfRenderer:
    def open(self, data: bytes) -> PymupdfRenderSession:
        try:
            document = pymupdf.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise RenderError(f"Renderer cannot open document: {exc}") from exc
        return PymupdfRenderSession(document)


__all__ = ["PymupdfRenderer", "PymupdfRenderSession"]
