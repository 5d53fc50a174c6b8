"""Export page images as standalone image files."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Union

from .codec import IMAGE_FORMATS, encode_image
from .config import DEFAULT_QUALITY
from .exceptions import PDFImageXError
from .sequence import PageSequence, Slot
from .types import PageImage
from .utils import get_logger, zip_outputs

logger = get_logger(__name__)

_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "WEBP": "webp"}


def output_name(prefix: str, position: int, total: int, extension: str) -> str:
    """Return ``prefix_001.ext`` style names padded to the width of *total*."""

    width = max(3, len(str(total)))
    return f"{prefix}_{position:0{width}d}.{extension}"


def export_images(
    pages: Union[PageSequence, Iterable[Slot]],
    directory: str | Path,
    *,
    fmt: str = "jpeg",
    quality: int | str | None = DEFAULT_QUALITY,
    prefix: str = "page",
    zip_path: Optional[str | Path] = None,
) -> List[Path]:
    """
    Write each page image to *directory* in sequence order.

    Args:
        pages: Page sequence or iterable of page images
        directory: Output directory, created if missing
        fmt: ``jpeg``, ``png`` or ``webp``
        quality: 0-100 or a preset name (``high``, ``medium``, ``low``)
        prefix: File name prefix; files are numbered from 1
        zip_path: When given, also bundle the written files into this archive

    Returns:
        Paths of the written image files, or a one-element list holding the
        archive path when ``zip_path`` is given.
    """

    if fmt.lower() not in IMAGE_FORMATS:
        raise ValueError(f"Unsupported image format: {fmt}")
    slots = pages.to_ordered_list() if isinstance(pages, PageSequence) else list(pages)
    images = [slot for slot in slots if isinstance(slot, PageImage)]
    if len(images) != len(slots):
        raise PDFImageXError("Cannot export a sequence that still has pending pages")

    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    extension = _EXTENSIONS[IMAGE_FORMATS[fmt.lower()]]

    written: List[Path] = []
    for position, image in enumerate(images, start=1):
        path = target / output_name(prefix, position, len(images), extension)
        path.write_bytes(encode_image(image, fmt, quality))
        written.append(path)
        logger.debug("Wrote %s", path)

    if zip_path is not None:
        archive = zip_outputs(written, zip_path)
        logger.info("Bundled %d image(s) into %s", len(written), archive)
        return [archive]
    return written


__all__ = ["export_images", "output_name"]
