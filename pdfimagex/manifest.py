"""On-disk page units and the manifest that orders them."""

from __future__ import annotations

import json
import struct
import tempfile
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import ManifestError
from .sequence import PageSequence
from .types import PageImage, PixelFormat
from .utils import get_logger

logger = get_logger(__name__)

MAGIC = b"PIMG"
PAGE_VERSION = 1
PAGE_SUFFIX = ".pimg"
MANIFEST_NAME = "manifest.json"

# magic, version, width, height, pixel format tag, has source index, source index, dpi
_HEADER = struct.Struct(">4sHIIBBId")

_FORMAT_TAGS: Dict[PixelFormat, int] = {PixelFormat.GRAY: 1, PixelFormat.RGB: 2, PixelFormat.RGBA: 3}
_TAG_FORMATS = {tag: fmt for fmt, tag in _FORMAT_TAGS.items()}


def _utc_now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def _atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("wb", delete=False, dir=path.parent, suffix=".tmp") as handle:
        handle.write(data)
        temp_path = Path(handle.name)
    temp_path.replace(path)


def dump_page_image(image: PageImage) -> bytes:
    """Serialise *image* as header plus raw pixel bytes."""

    if image.released:
        raise ManifestError(f"{image!r} has been released and cannot be saved")
    has_source = image.source_page_index is not None
    header = _HEADER.pack(
        MAGIC,
        PAGE_VERSION,
        image.width,
        image.height,
        _FORMAT_TAGS[image.pixel_format],
        int(has_source),
        image.source_page_index if has_source else 0,
        float(image.dpi),
    )
    return header + image.pixels


def load_page_image(data: bytes, *, image_id: Optional[str] = None) -> PageImage:
    if len(data) < _HEADER.size:
        raise ManifestError("Page file is truncated")
    magic, version, width, height, tag, has_source, source_index, dpi = _HEADER.unpack_from(data)
    if magic != MAGIC:
        raise ManifestError("Not a pdfimagex page file")
    if version != PAGE_VERSION:
        raise ManifestError(f"Unsupported page file version: {version}")
    try:
        pixel_format = _TAG_FORMATS[tag]
    except KeyError as exc:
        raise ManifestError(f"Unknown pixel format tag: {tag}") from exc

    kwargs = {"image_id": image_id} if image_id else {}
    try:
        return PageImage(
            width=width,
            height=height,
            pixel_format=pixel_format,
            pixels=data[_HEADER.size :],
            source_page_index=source_index if has_source else None,
            dpi=dpi,
            **kwargs,
        )
    except ValueError as exc:
        raise ManifestError(f"Corrupt page file: {exc}") from exc


def write_page_image(image: PageImage, path: Path) -> Path:
    _atomic_write_bytes(path, dump_page_image(image))
    return path


def read_page_image(path: Path, *, image_id: Optional[str] = None) -> PageImage:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ManifestError(f"Cannot read page file {path}: {exc}") from exc
    return load_page_image(data, image_id=image_id)


@dataclass
class ManifestEntry:
    """One ordered page reference in a manifest."""

    file: str
    image_id: str
    width: int
    height: int
    pixel_format: str
    source_page_index: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass
class PageManifest:
    """Ordered list of saved page images, persisted as ``manifest.json``."""

    VERSION = 1

    path: Path
    entries: List[ManifestEntry] = field(default_factory=list)
    created: str = field(default_factory=_utc_now)

    @classmethod
    def load(cls, path: Path) -> "PageManifest":
        try:
            data = json.loads(path.read_text())
        except FileNotFoundError as exc:
            raise ManifestError(f"Manifest not found: {path}") from exc
        except (OSError, ValueError) as exc:
            raise ManifestError(f"Manifest {path} cannot be read: {exc}") from exc

        version = data.get("version", 0)
        if version != cls.VERSION:
            raise ManifestError(f"Unsupported manifest version: {version}")
        try:
            entries = [ManifestEntry(**value) for value in data.get("pages", [])]
        except TypeError as exc:
            raise ManifestError(f"Malformed manifest entry in {path}: {exc}") from exc
        return cls(path=path, entries=entries, created=data.get("created", _utc_now()))

    def save(self) -> None:
        payload = {
            "version": self.VERSION,
            "created": self.created,
            "pages": [entry.to_dict() for entry in self.entries],
        }
        _atomic_write_bytes(self.path, json.dumps(payload, indent=2, sort_keys=True).encode("utf-8"))

    def __len__(self) -> int:
        return len(self.entries)


def save_sequence(sequence: PageSequence, directory: str | Path) -> PageManifest:
    """
    Write every page of *sequence* to *directory* and return the manifest.

    Each page becomes one ``.pimg`` file; ``manifest.json`` lists them in
    sequence order and is written last so a crash never leaves a manifest
    that points at missing pages.
    """

    target = Path(directory)
    slots = sequence.to_ordered_list()
    manifest = PageManifest(path=target / MANIFEST_NAME)
    for position, slot in enumerate(slots):
        if not isinstance(slot, PageImage):
            raise ManifestError(f"Slot {position} is still pending and cannot be saved")
        file_name = f"page-{position + 1:04d}-{slot.image_id[:8]}{PAGE_SUFFIX}"
        write_page_image(slot, target / file_name)
        manifest.entries.append(
            ManifestEntry(
                file=file_name,
                image_id=slot.image_id,
                width=slot.width,
                height=slot.height,
                pixel_format=slot.pixel_format.value,
                source_page_index=slot.source_page_index,
            )
        )
    manifest.save()
    logger.info("Saved %d page(s) to %s", len(manifest), target)
    return manifest


def load_sequence(location: str | Path) -> PageSequence:
    """Load a sequence from a manifest file or the directory containing one."""

    path = Path(location)
    if path.is_dir():
        path = path / MANIFEST_NAME
    manifest = PageManifest.load(path)
    images: List[PageImage] = []
    for entry in manifest.entries:
        image = read_page_image(path.parent / entry.file, image_id=entry.image_id)
        if (image.width, image.height) != (entry.width, entry.height):
            raise ManifestError(f"{entry.file} does not match its manifest entry")
        images.append(image)
    logger.info("Loaded %d page(s) from %s", len(images), path)
    return PageSequence(images)


__all__ = [
    "MAGIC",
    "PAGE_SUFFIX",
    "MANIFEST_NAME",
    "dump_page_image",
    "load_page_image",
    "write_page_image",
    "read_page_image",
    "ManifestEntry",
    "PageManifest",
    "save_sequence",
    "load_sequence",
]
