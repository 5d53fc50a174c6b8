"""
Custom exceptions for pdfimagex.

Per-page errors (:class:`RenderError`, :class:`CodecError`) are collected into
job results, while :class:`DecodeError` and :class:`AssemblyError` end a job.
"""

from __future__ import annotations


class PDFImageXError(Exception):
    """Base exception for all pdfimagex errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    @property
    def default_message(self) -> str:
        return "An unknown pdfimagex error occurred."


class DecodeError(PDFImageXError):
    """Raised when the source document cannot be read at all."""

    @property
    def default_message(self) -> str:
        return "Unreadable or corrupted source document."


class RenderError(PDFImageXError):
    """Raised when a single page cannot be rendered or scanned."""

    def __init__(self, message: str = "", *, page_index: int | None = None) -> None:
        super().__init__(message)
        self.page_index = page_index

    @property
    def default_message(self) -> str:
        return "Page could not be rendered."


class CodecError(PDFImageXError):
    """Raised when pixel data cannot be decoded or encoded."""

    @property
    def default_message(self) -> str:
        return "Image could not be decoded or encoded."


class EncodeError(CodecError):
    """Raised when a page image cannot be encoded for embedding."""

    @property
    def default_message(self) -> str:
        return "Page image could not be encoded for the output document."


class IndexOutOfRangeError(PDFImageXError, IndexError):
    """Raised when a sequence edit addresses a slot that does not exist."""

    def __init__(self, index: int, length: int, *, allow_end: bool = False) -> None:
        upper = length if allow_end else length - 1
        self.index = index
        self.length = length
        super().__init__(f"Index {index} is outside the valid range [0, {upper}] for {length} page(s).")


class SequenceFrozenError(PDFImageXError):
    """Raised when editing a page sequence that is being assembled."""

    @property
    def default_message(self) -> str:
        return "Page sequence is frozen for assembly and cannot be edited."


class AssemblyError(PDFImageXError):
    """Raised when no valid output document can be produced."""

    def __init__(self, message: str = "", *, failures: list | None = None) -> None:
        super().__init__(message)
        self.failures = list(failures or [])

    @property
    def default_message(self) -> str:
        return "Output document could not be assembled."


class JobNotFoundError(PDFImageXError, KeyError):
    """Raised when a job id is unknown to the orchestrator."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")

    def __str__(self) -> str:
        return self.message


class InvalidJobStateError(PDFImageXError):
    """Raised when an operation is not allowed in the job's current state."""

    @property
    def default_message(self) -> str:
        return "Operation is not allowed in the current job state."


class JobCancelledError(PDFImageXError):
    """Raised inside a job when cancellation stopped it before completion."""

    @property
    def default_message(self) -> str:
        return "Job was cancelled."


class ManifestError(PDFImageXError):
    """Raised when a saved page manifest or page file is invalid."""

    @property
    def default_message(self) -> str:
        return "Invalid page manifest."


__all__ = [
    "PDFImageXError",
    "DecodeError",
    "RenderError",
    "CodecError",
    "EncodeError",
    "IndexOutOfRangeError",
    "SequenceFrozenError",
    "AssemblyError",
    "JobNotFoundError",
    "InvalidJobStateError",
    "JobCancelledError",
    "ManifestError",
]
