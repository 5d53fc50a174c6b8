"""Embedded image extraction from a page's content stream."""

from __future__ import annotations

from typing import Any, Iterator, Mapping, Sequence

from .backends.base import DecodedDocument, Operation
from .document import SourceDocument
from .exceptions import CodecError, RenderError
from .types import PageImage, PageWarning
from .utils import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_FORM_DEPTH = 8

_PAINT_XOBJECT = b"Do"
_INLINE_IMAGE = b"INLINE IMAGE"


def _clean_name(name: object) -> str:
    raw = str(name)
    return raw[1:] if raw.startswith("/") else raw


class EmbeddedImages:
    """
    Lazy, finite and restartable iterable over the images painted on a page.

    Every iteration re-scans the page's content stream from the start and
    yields one :class:`PageImage` per image XObject painted by a ``Do``
    operator, in paint order. Painted form XObjects are entered recursively.
    Resources that cannot be resolved or decoded are skipped and recorded in
    :attr:`warnings`, which is reset at the start of each iteration.

    Iteration raises :class:`RenderError` when the page itself cannot be
    scanned: an unreadable content stream or a malformed resource table.
    """

    def __init__(
        self,
        document: SourceDocument,
        page_index: int,
        *,
        max_form_depth: int = DEFAULT_MAX_FORM_DEPTH,
    ) -> None:
        if not 0 <= page_index < document.page_count:
            raise RenderError(
                f"Page index {page_index} is out of range for a {document.page_count}-page document",
                page_index=page_index,
            )
        self.document = document
        self.page_index = page_index
        self.max_form_depth = max_form_depth
        self.warnings: list[PageWarning] = []

    def __iter__(self) -> Iterator[PageImage]:
        self.warnings = []
        decoded = self.document.decoded
        operations = decoded.page_operations(self.page_index)
        xobjects = decoded.page_xobjects(self.page_index)
        yield from self._scan(decoded, operations, xobjects, depth=0, visiting=frozenset())

    def _scan(
        self,
        decoded: DecodedDocument,
        operations: Sequence[Operation],
        xobjects: Mapping[str, Any] | None,
        *,
        depth: int,
        visiting: frozenset[int],
    ) -> Iterator[PageImage]:
        for operands, operator in operations:
            if operator == _INLINE_IMAGE:
                self._warn("inline image skipped: inline images are not supported")
                continue
            if operator != _PAINT_XOBJECT or not operands:
                continue

            name = _clean_name(operands[0])
            if xobjects is None:
                self._warn(f"resource /{name} skipped: no XObject table")
                continue
            xobject = xobjects.get(name)
            if xobject is None:
                self._warn(f"resource /{name} skipped: not found in XObject table")
                continue

            kind = decoded.xobject_kind(xobject)
            if kind == "image":
                try:
                    image = decoded.decode_image(xobject)
                    page_image = PageImage.from_pil(image, source_page_index=self.page_index)
                except (CodecError, ValueError) as exc:
                    self._warn(f"image /{name} skipped: {exc}")
                    continue
                yield page_image
            elif kind == "form":
                key = id(xobject)
                if key in visiting:
                    self._warn(f"form /{name} skipped: recursive reference")
                    continue
                if depth >= self.max_form_depth:
                    self._warn(f"form /{name} skipped: nesting deeper than {self.max_form_depth}")
                    continue
                try:
                    inner_operations = decoded.form_operations(xobject)
                    inner_xobjects = decoded.form_xobjects(xobject)
                except RenderError as exc:
                    self._warn(f"form /{name} skipped: {exc}")
                    continue
                # Forms without their own resources use the enclosing table.
                yield from self._scan(
                    decoded,
                    inner_operations,
                    inner_xobjects if inner_xobjects is not None else xobjects,
                    depth=depth + 1,
                    visiting=visiting | {key},
                )
            else:
                self._warn(f"resource /{name} skipped: not an image")

    def _warn(self, message: str) -> None:
        logger.warning("Page %d: %s", self.page_index, message)
        self.warnings.append(PageWarning(self.page_index, message))

    def __repr__(self) -> str:
        return f"EmbeddedImages(page_index={self.page_index}, warnings={len(self.warnings)})"


def extract_embedded_images(
    document: SourceDocument,
    page_index: int,
    *,
    max_form_depth: int = DEFAULT_MAX_FORM_DEPTH,
) -> EmbeddedImages:
    """Return the lazy image sequence of one page of *document*."""

    return EmbeddedImages(document, page_index, max_form_depth=max_form_depth)


class ImageObjectExtractor:
    def __init__(self, max_form_depth: int = DEFAULT_MAX_FORM_DEPTH) -> None:
        self.max_form_depth = max_form_depth

    def extract_embedded_images(self, document: SourceDocument, page_index: int) -> EmbeddedImages:
        return extract_embedded_images(document, page_index, max_form_depth=self.max_form_depth)


__all__ = ["EmbeddedImages", "ImageObjectExtractor", "extract_embedded_images", "DEFAULT_MAX_FORM_DEPTH"]
