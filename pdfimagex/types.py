"""
Type definitions and dataclasses for pdfimagex.

This module defines the data model shared by the codec, the extractor, the
page sequence, the assembler and the orchestrator.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from PIL import Image

DEFAULT_DPI = 72.0


class PixelFormat(str, enum.Enum):
    """Pixel layouts a :class:`PageImage` buffer may use."""

    GRAY = "L"
    RGB = "RGB"
    RGBA = "RGBA"

    @property
    def bytes_per_pixel(self) -> int:
        return _BYTES_PER_PIXEL[self]

    @property
    def has_alpha(self) -> bool:
        return self is PixelFormat.RGBA

    @classmethod
    def from_mode(cls, mode: str) -> "PixelFormat":
        try:
            return cls(mode)
        except ValueError as exc:
            raise ValueError(f"Unsupported pixel format: {mode!r}") from exc


_BYTES_PER_PIXEL = {PixelFormat.GRAY: 1, PixelFormat.RGB: 3, PixelFormat.RGBA: 4}


def normalise_mode(image: Image.Image) -> Image.Image:
    """Convert *image* to one of the modes backed by :class:`PixelFormat`."""

    mode = image.mode
    if mode in ("L", "RGB", "RGBA"):
        return image
    if mode in ("LA", "PA", "La", "RGBa"):
        return image.convert("RGBA")
    if mode == "P":
        return image.convert("RGBA" if "transparency" in image.info else "RGB")
    if mode in ("1", "I", "I;16", "I;16B", "I;16L", "F"):
        return image.convert("L")
    return image.convert("RGB")


class Orientation(str, enum.Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"
    AUTO = "auto"


class ExtractionMode(str, enum.Enum):
    """How pages of a source document become page images."""

    RASTERIZE = "rasterize"
    EXTRACT_EMBEDDED = "extract_embedded"
    COMBINED = "combined"


class CombinedPolicy(str, enum.Enum):
    """Behaviour of :attr:`ExtractionMode.COMBINED` for each source page.

    ``fallback`` keeps the embedded images of a page and only rasterizes pages
    that yield none. ``both`` emits the full page raster followed by the
    embedded images of that page.
    """

    FALLBACK = "fallback"
    BOTH = "both"


class JobState(str, enum.Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    READY = "ready"
    ASSEMBLING = "assembling"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_busy(self) -> bool:
        return self in (JobState.EXTRACTING, JobState.ASSEMBLING)


class JobOutcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_WARNINGS = "succeeded_with_warnings"
    PARTIAL_FAILURE = "partial_failure"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(eq=False, slots=True)
class PageImage:
    """
    One page's visual content as a decoded raster buffer.

    Attributes:
        width: Width in pixels
        height: Height in pixels
        pixel_format: Layout of ``pixels``
        pixels: Raw pixel bytes, row major, no padding
        source_page_index: Zero based index of the page this image came from,
            ``None`` for images inserted by the caller
        dpi: Pixel density used to derive the native physical page size
        encoded_size: Size of the encoded form when known
        image_id: Stable identifier used by manifests and logs
    """

    width: int
    height: int
    pixel_format: PixelFormat
    pixels: bytes
    source_page_index: int | None = None
    dpi: float = DEFAULT_DPI
    encoded_size: int | None = None
    image_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    released: bool = False

    def __post_init__(self) -> None:
        self.pixel_format = PixelFormat(self.pixel_format)
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Page image dimensions must be positive, got {self.width}x{self.height}")
        expected = self.width * self.height * self.pixel_format.bytes_per_pixel
        if len(self.pixels) != expected:
            raise ValueError(
                f"Pixel buffer holds {len(self.pixels)} bytes, expected {expected} "
                f"for {self.width}x{self.height} {self.pixel_format.value}"
            )
        if self.dpi <= 0:
            raise ValueError("dpi must be positive")

    @classmethod
    def from_pil(
        cls,
        image: Image.Image,
        *,
        source_page_index: int | None = None,
        dpi: float | None = None,
        encoded_size: int | None = None,
    ) -> "PageImage":
        normalised = normalise_mode(image)
        if dpi is None:
            info_dpi = image.info.get("dpi")
            dpi = float(info_dpi[0]) if info_dpi and info_dpi[0] else DEFAULT_DPI
        return cls(
            width=normalised.width,
            height=normalised.height,
            pixel_format=PixelFormat.from_mode(normalised.mode),
            pixels=normalised.tobytes(),
            source_page_index=source_page_index,
            dpi=dpi,
            encoded_size=encoded_size,
        )

    def to_pil(self) -> Image.Image:
        if self.released:
            raise ValueError(f"Page image {self.image_id} has been released")
        return Image.frombytes(self.pixel_format.value, (self.width, self.height), self.pixels)

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def bytes_per_pixel(self) -> int:
        return self.pixel_format.bytes_per_pixel

    @property
    def native_size_points(self) -> tuple[float, float]:
        """Physical size of the image in PDF points at its ``dpi``."""

        factor = 72.0 / self.dpi
        return self.width * factor, self.height * factor

    @property
    def encoded_size_estimate(self) -> int:
        if self.encoded_size is not None:
            return self.encoded_size
        # Lossy page encodings land around a tenth of the raw buffer.
        return max(1, (self.width * self.height * self.bytes_per_pixel) // 10)

    def release(self) -> None:
        """Drop the pixel buffer; the image cannot be used afterwards."""

        self.pixels = b""
        self.released = True

    def __repr__(self) -> str:
        return (
            f"PageImage(id={self.image_id[:8]}, {self.width}x{self.height} {self.pixel_format.value}, "
            f"source_page_index={self.source_page_index})"
        )


@dataclass(eq=False, slots=True)
class PendingSlot:
    """Placeholder for a source page whose extraction is still running."""

    source_page_index: int

    def __repr__(self) -> str:
        return f"PendingSlot(source_page_index={self.source_page_index})"


@dataclass(frozen=True, slots=True)
class EmbeddablePage:
    """Encoded page image ready to be placed on an output page."""

    data: bytes
    width: int
    height: int
    color_space: str
    filter_name: str = "/DCTDecode"
    bits_per_component: int = 8


@dataclass(frozen=True, slots=True)
class PageWarning:
    page_index: int
    message: str


@dataclass(frozen=True, slots=True)
class PageFailure:
    page_index: int
    reason: str
    error_type: str
    source_page_index: int | None = None


@dataclass(frozen=True, slots=True)
class PageStatus:
    """Outcome of one page within an extraction or assembly run."""

    page_index: int
    ok: bool
    images: int = 0
    warnings: tuple[str, ...] = ()
    error: str | None = None


@dataclass(frozen=True, slots=True)
class OutputDocument:
    """Assembled PDF bytes plus per-page status."""

    data: bytes
    page_count: int
    pages: tuple[PageStatus, ...] = ()

    @property
    def size(self) -> int:
        return len(self.data)

    def write(self, path: str | Path) -> Path:
        destination = Path(path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(self.data)
        return destination


@dataclass(frozen=True, slots=True)
class JobResult:
    """
    Result of one extraction or assembly run.

    A partial failure still carries the pages that succeeded together with a
    structured list of the page indices that failed and why.
    """

    job_id: str
    phase: str
    outcome: JobOutcome
    output: OutputDocument | None = None
    pages: tuple[PageStatus, ...] = ()
    failures: tuple[PageFailure, ...] = ()
    warnings: tuple[PageWarning, ...] = ()
    error: str | None = None
    error_type: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (JobOutcome.SUCCEEDED, JobOutcome.SUCCEEDED_WITH_WARNINGS)

    @property
    def is_partial_failure(self) -> bool:
        return self.outcome is JobOutcome.PARTIAL_FAILURE

    @property
    def failed_pages(self) -> list[int]:
        return [failure.page_index for failure in self.failures]

    @property
    def succeeded_pages(self) -> list[int]:
        return [status.page_index for status in self.pages if status.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "phase": self.phase,
            "outcome": self.outcome.value,
            "page_count": self.output.page_count if self.output else 0,
            "failures": [
                {"page_index": f.page_index, "reason": f.reason, "error_type": f.error_type}
                for f in self.failures
            ],
            "warnings": [{"page_index": w.page_index, "message": w.message} for w in self.warnings],
            "error": self.error,
            "error_type": self.error_type,
        }


class Pending:
    """Sentinel returned while a job phase is still running."""

    _instance: "Pending | None" = None

    def __new__(cls) -> "Pending":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "PENDING"

    def __bool__(self) -> bool:
        return False


PENDING = Pending()


def summarise_outcome(
    *,
    succeeded: int,
    failures: int,
    warnings: int,
    cancelled: bool = False,
) -> JobOutcome:
    """Decide the overall outcome from per-page counts."""

    if cancelled:
        return JobOutcome.CANCELLED
    if failures and not succeeded:
        return JobOutcome.FAILED
    if failures:
        return JobOutcome.PARTIAL_FAILURE
    if warnings:
        return JobOutcome.SUCCEEDED_WITH_WARNINGS
    return JobOutcome.SUCCEEDED


__all__ = [
    "DEFAULT_DPI",
    "PixelFormat",
    "normalise_mode",
    "Orientation",
    "ExtractionMode",
    "CombinedPolicy",
    "JobState",
    "JobOutcome",
    "PageImage",
    "PendingSlot",
    "EmbeddablePage",
    "PageWarning",
    "PageFailure",
    "PageStatus",
    "OutputDocument",
    "JobResult",
    "Pending",
    "PENDING",
    "summarise_outcome",
]
