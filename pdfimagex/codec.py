"""Raster codec: pages to bitmaps and bitmaps to embeddable page bytes."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from .config import DEFAULT_QUALITY, DEFAULT_SCALE, AssemblyOptions, resolve_quality
from .document import SourceDocument
from .exceptions import CodecError, EncodeError, RenderError
from .types import DEFAULT_DPI, EmbeddablePage, PageImage, normalise_mode
from .utils import get_logger

logger = get_logger(__name__)

IMAGE_FORMATS = {"jpeg": "JPEG", "jpg": "JPEG", "png": "PNG", "webp": "WEBP"}

_WHITE = (255, 255, 255)


def flatten_onto_white(image: Image.Image) -> Image.Image:
    """Composite *image* onto an opaque white canvas, returning ``RGB`` or ``L``."""

    image = normalise_mode(image)
    if image.mode != "RGBA":
        return image
    background = Image.new("RGB", image.size, _WHITE)
    background.paste(image, mask=image.getchannel("A"))
    return background


def render_page_to_image(
    document: SourceDocument,
    page_index: int,
    scale: float = DEFAULT_SCALE,
) -> PageImage:
    """
    Rasterize one page of *document*.

    Args:
        document: Loaded source document
        page_index: Zero based page index
        scale: Pixels per PDF point; ``2.0`` renders at 144 dpi

    Returns:
        A new :class:`PageImage` owned by the caller. Its ``dpi`` is
        ``72 * scale`` so the native page size survives reassembly.

    Raises:
        ValueError: If ``scale`` is not positive
        RenderError: If the index is out of range, the page cannot be
            rendered, or the scaled viewport has zero area
    """

    if scale <= 0:
        raise ValueError(f"scale must be greater than zero, got {scale}")
    if not 0 <= page_index < document.page_count:
        raise RenderError(
            f"Page index {page_index} is out of range for a {document.page_count}-page document",
            page_index=page_index,
        )

    width, height = document.page_size(page_index)
    if round(width * scale) < 1 or round(height * scale) < 1:
        raise RenderError(f"Page {page_index} has a zero-area viewport", page_index=page_index)

    rendered = document.render_session().render(page_index, scale)
    page = PageImage.from_pil(
        flatten_onto_white(rendered),
        source_page_index=page_index,
        dpi=DEFAULT_DPI * scale,
    )
    logger.debug("Rendered page %d at scale %.2f to %dx%d", page_index, scale, page.width, page.height)
    return page


def encode_image_to_document_page(
    page_image: PageImage,
    options: Optional[AssemblyOptions] = None,
) -> EmbeddablePage:
    """Encode *page_image* as a JPEG ready to be drawn on an output page."""

    options = options or AssemblyOptions()
    try:
        image = flatten_onto_white(page_image.to_pil())
        limit = options.max_dimension
        if limit and max(image.size) > limit:
            image = image.copy()
            image.thumbnail((limit, limit), Image.LANCZOS)
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=options.quality)
    except Exception as exc:
        raise EncodeError(f"Failed to encode {page_image!r}: {exc}") from exc

    return EmbeddablePage(
        data=buffer.getvalue(),
        width=image.width,
        height=image.height,
        color_space="/DeviceGray" if image.mode == "L" else "/DeviceRGB",
    )


def decode_image_bytes(data: bytes, *, dpi: Optional[float] = None) -> PageImage:
    """
    Decode an image file's bytes into a :class:`PageImage` with no source page.

    Without an explicit *dpi* the file's own resolution is used, falling back
    to 72 dpi so one pixel becomes one point.
    """

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            upright = ImageOps.exif_transpose(img)
            page = PageImage.from_pil(upright, dpi=dpi, encoded_size=len(data))
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise CodecError(f"Cannot decode image data: {exc}") from exc
    return page


def load_image_file(path: str | Path, *, dpi: Optional[float] = None) -> PageImage:
    source = Path(path)
    try:
        data = source.read_bytes()
    except OSError as exc:
        raise CodecError(f"Cannot read image {source}: {exc}") from exc
    return decode_image_bytes(data, dpi=dpi)


def encode_image(
    page_image: PageImage,
    fmt: str = "jpeg",
    quality: int | str | None = DEFAULT_QUALITY,
) -> bytes:
    """Encode *page_image* as a standalone JPEG, PNG or WEBP file."""

    try:
        pil_format = IMAGE_FORMATS[fmt.lower()]
    except KeyError as exc:
        raise ValueError(f"Unsupported image format: {fmt}") from exc

    save_kwargs = {}
    if pil_format in ("JPEG", "WEBP"):
        save_kwargs["quality"] = resolve_quality(quality)
    try:
        image = page_image.to_pil()
        if pil_format == "JPEG":
            image = flatten_onto_white(image)
        buffer = io.BytesIO()
        image.save(buffer, format=pil_format, **save_kwargs)
    except Exception as exc:
        raise CodecError(f"Failed to encode {page_image!r} as {pil_format}: {exc}") from exc
    return buffer.getvalue()


class RasterCodec:
    """Page rendering and image encoding with a default render scale."""

    def __init__(self, scale: float = DEFAULT_SCALE) -> None:
        if scale <= 0:
            raise ValueError(f"scale must be greater than zero, got {scale}")
        self.scale = scale

    def render_page_to_image(
        self,
        document: SourceDocument,
        page_index: int,
        scale: Optional[float] = None,
    ) -> PageImage:
        return render_page_to_image(document, page_index, self.scale if scale is None else scale)

    def encode_image_to_document_page(
        self,
        page_image: PageImage,
        options: Optional[AssemblyOptions] = None,
    ) -> EmbeddablePage:
        return encode_image_to_document_page(page_image, options)

    decode_image_bytes = staticmethod(decode_image_bytes)
    load_image_file = staticmethod(load_image_file)
    encode_image = staticmethod(encode_image)


__all__ = [
    "IMAGE_FORMATS",
    "RasterCodec",
    "flatten_onto_white",
    "render_page_to_image",
    "encode_image_to_document_page",
    "decode_image_bytes",
    "load_image_file",
    "encode_image",
]
