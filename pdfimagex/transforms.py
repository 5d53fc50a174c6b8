"""Pixel edits applied to a single page image before reassembly."""

from __future__ import annotations

from PIL import Image, ImageEnhance

from .types import PageImage
from .utils import get_logger

logger = get_logger(__name__)

# Clockwise quarter turns map onto lossless transposes.
_QUARTER_TURNS = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


def _fill_for(mode: str) -> int | tuple[int, ...]:
    if mode == "L":
        return 255
    if mode == "RGBA":
        return (255, 255, 255, 0)
    return (255, 255, 255)


def transform_page_image(
    image: PageImage,
    *,
    rotate: float = 0,
    flip_horizontal: bool = False,
    flip_vertical: bool = False,
    brightness: float = 1.0,
    contrast: float = 1.0,
    saturation: float = 1.0,
) -> PageImage:
    """
    Return a new page image with the requested edits applied.

    Args:
        image: Page image to edit; it is left untouched
        rotate: Clockwise rotation in degrees. Multiples of 90 are lossless;
            other angles enlarge the canvas and fill the corners with white
        flip_horizontal: Mirror left to right
        flip_vertical: Mirror top to bottom
        brightness: Enhancement factor, ``1.0`` keeps the original
        contrast: Enhancement factor, ``1.0`` keeps the original
        saturation: Enhancement factor, ``1.0`` keeps the original

    Returns:
        A new :class:`PageImage` with the same ``source_page_index`` and ``dpi``.

    Raises:
        ValueError: If a factor is negative or *image* has been released
    """

    for name, factor in (("brightness", brightness), ("contrast", contrast), ("saturation", saturation)):
        if factor < 0:
            raise ValueError(f"{name} must not be negative, got {factor}")

    pil = image.to_pil()
    if brightness != 1.0:
        pil = ImageEnhance.Brightness(pil).enhance(brightness)
    if contrast != 1.0:
        pil = ImageEnhance.Contrast(pil).enhance(contrast)
    if saturation != 1.0:
        pil = ImageEnhance.Color(pil).enhance(saturation)

    if flip_horizontal:
        pil = pil.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
    if flip_vertical:
        pil = pil.transpose(Image.Transpose.FLIP_TOP_BOTTOM)

    angle = rotate % 360
    if angle in _QUARTER_TURNS:
        pil = pil.transpose(_QUARTER_TURNS[angle])
    elif angle:
        pil = pil.rotate(-angle, resample=Image.BICUBIC, expand=True, fillcolor=_fill_for(pil.mode))

    edited = PageImage.from_pil(pil, source_page_index=image.source_page_index, dpi=image.dpi)
    logger.debug("Edited %r into %r", image, edited)
    return edited


__all__ = ["transform_page_image"]
