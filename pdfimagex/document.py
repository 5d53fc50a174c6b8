"""Adapter around the source document handed to a pipeline job."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

from .backends import PymupdfRenderer, PypdfDecoder
from .backends.base import DecodedDocument, DocumentDecoder, PageRenderer, RenderSession
from .exceptions import DecodeError
from .utils import get_logger

logger = get_logger(__name__)


class SourceDocument:
    """
    Immutable handle on the bytes of one input document.

    The bytes are decoded eagerly so malformed input fails with
    :class:`~pdfimagex.exceptions.DecodeError` before any page work starts.
    The renderer is opened lazily the first time a page is rasterized.
    """

    def __init__(
        self,
        data: bytes,
        *,
        name: Optional[str] = None,
        decoder: Optional[DocumentDecoder] = None,
        renderer: Optional[PageRenderer] = None,
    ) -> None:
        self._data = bytes(data)
        self.name = name
        self.decoder: DocumentDecoder = decoder or PypdfDecoder()
        self.renderer: PageRenderer = renderer or PymupdfRenderer()
        self._decoded: DecodedDocument = self.decoder.open(self._data)
        self._session: Optional[RenderSession] = None
        self._session_lock = threading.Lock()
        self._closed = False
        logger.debug("Loaded %s: %d page(s), %d bytes", self.name or "<bytes>", self.page_count, self.byte_size)

    @classmethod
    def from_bytes(cls, data: bytes, **kwargs) -> "SourceDocument":
        return cls(data, **kwargs)

    @classmethod
    def from_path(cls, path: str | Path, **kwargs) -> "SourceDocument":
        source = Path(path)
        try:
            data = source.read_bytes()
        except OSError as exc:
            raise DecodeError(f"Cannot read {source}: {exc}") from exc
        kwargs.setdefault("name", source.name)
        return cls(data, **kwargs)

    # ------------------------------------------------------------------
    # Basic document information helpers
    # ------------------------------------------------------------------
    @property
    def data(self) -> bytes:
        return self._data

    @property
    def page_count(self) -> int:
        return self._decoded.page_count

    @property
    def byte_size(self) -> int:
        return len(self._data)

    @property
    def decoded(self) -> DecodedDocument:
        if self._closed:
            raise ValueError("Source document has been closed")
        return self._decoded

    @property
    def closed(self) -> bool:
        return self._closed

    def page_size(self, index: int) -> tuple[float, float]:
        return self.decoded.page_size(index)

    def render_session(self) -> RenderSession:
        if self._closed:
            raise ValueError("Source document has been closed")
        with self._session_lock:
            if self._session is None:
                self._session = self.renderer.open(self._data)
            return self._session

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        with self._session_lock:
            if self._session is not None:
                self._session.close()
                self._session = None
        self._decoded.close()

    def __enter__(self) -> "SourceDocument":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"SourceDocument(name={self.name!r}, page_count={self.page_count}, byte_size={self.byte_size})"


__all__ = ["SourceDocument"]
