"""Reassembly of a page sequence into a new multi-page PDF."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from .backends import PypdfDocumentBuilder
from .backends.base import BuilderFactory, Placement
from .codec import RasterCodec
from .config import AssemblyOptions, default_workers
from .exceptions import AssemblyError, EncodeError, JobCancelledError
from .scheduling import run_per_page
from .sequence import PageSequence, Slot
from .types import EmbeddablePage, Orientation, OutputDocument, PageFailure, PageImage, PageStatus
from .utils import get_logger

logger = get_logger(__name__)


def target_page_box(image: PageImage, options: AssemblyOptions) -> tuple[float, float]:
    """
    Return the ``(width, height)`` in points of the page that will hold *image*.

    Without a page size the image's native size is used. ``portrait`` and
    ``landscape`` swap the sides as needed; ``auto`` keeps the native box, or
    turns a fixed page size to match the image's aspect.
    """

    native = image.native_size_points
    box = options.page_box
    width, height = box if box is not None else native
    short, long = min(width, height), max(width, height)

    if options.orientation is Orientation.PORTRAIT:
        return short, long
    if options.orientation is Orientation.LANDSCAPE:
        return long, short
    if box is None:
        return width, height
    return (long, short) if native[0] > native[1] else (short, long)


def fit_into_box(
    content_width: float,
    content_height: float,
    box_width: float,
    box_height: float,
    margin: float = 0.0,
) -> Placement:
    """Scale content uniformly to fit inside the box minus *margin* and center it."""

    available_width = box_width - 2 * margin
    available_height = box_height - 2 * margin
    if available_width <= 0 or available_height <= 0:
        raise ValueError(f"Margin {margin} leaves no room on a {box_width:.1f}x{box_height:.1f} page")
    if content_width <= 0 or content_height <= 0:
        raise ValueError("Content must have a positive size")

    scale = min(available_width / content_width, available_height / content_height)
    width = content_width * scale
    height = content_height * scale
    return (box_width - width) / 2, (box_height - height) / 2, width, height


@dataclass(frozen=True, slots=True)
class PreparedPage:
    page: EmbeddablePage
    page_width: float
    page_height: float
    placement: Placement


@dataclass(frozen=True, slots=True)
class AssemblyOutcome:
    """The assembled document plus the pages skipped in best-effort mode."""

    output: OutputDocument
    failures: tuple[PageFailure, ...] = ()

    @property
    def partial(self) -> bool:
        return bool(self.failures)


class DocumentAssembler:
    """
    Turns an ordered set of page images into a new PDF.

    Pages are encoded in parallel and handed to the builder strictly in
    sequence order. In strict mode one failing page fails the whole assembly
    and no bytes are produced; with ``best_effort`` failing pages are skipped
    and reported on the outcome.
    """

    def __init__(
        self,
        codec: Optional[RasterCodec] = None,
        builder_factory: BuilderFactory = PypdfDocumentBuilder,
    ) -> None:
        self.codec = codec or RasterCodec()
        self.builder_factory = builder_factory

    def prepare_page(self, slot: Slot, options: AssemblyOptions) -> PreparedPage:
        if not isinstance(slot, PageImage):
            raise EncodeError(f"{slot!r} has not been extracted yet")
        page_width, page_height = target_page_box(slot, options)
        try:
            placement = fit_into_box(slot.width, slot.height, page_width, page_height, options.margin)
        except ValueError as exc:
            raise EncodeError(str(exc)) from exc
        embeddable = self.codec.encode_image_to_document_page(slot, options)
        return PreparedPage(embeddable, page_width, page_height, placement)

    def assemble(
        self,
        pages: Union[PageSequence, Sequence[Slot]],
        options: Optional[AssemblyOptions] = None,
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> AssemblyOutcome:
        options = options or AssemblyOptions()
        slots = pages.to_ordered_list() if isinstance(pages, PageSequence) else list(pages)
        if not slots:
            raise AssemblyError("Cannot assemble an empty page sequence: zero pages is not a valid document")

        logger.info(
            "Assembling %d page(s) with orientation=%s quality=%d",
            len(slots),
            options.orientation.value,
            options.quality,
        )
        run = run_per_page(
            range(len(slots)),
            lambda index: self.prepare_page(slots[index], options),
            workers=options.workers or default_workers(),
            cancel_event=cancel_event,
        )
        if run.cancelled:
            raise JobCancelledError("Assembly was cancelled")

        failures = tuple(
            PageFailure(
                page_index=result.index,
                reason=str(result.error),
                error_type=type(result.error).__name__,
                source_page_index=getattr(slots[result.index], "source_page_index", None),
            )
            for result in run.failed
        )
        for failure in failures:
            logger.warning("Page %d failed to encode: %s", failure.page_index, failure.reason)

        if failures and not options.best_effort:
            raise AssemblyError(
                f"{len(failures)} of {len(slots)} page(s) failed to encode; first failure on page "
                f"{failures[0].page_index}: {failures[0].reason}",
                failures=list(failures),
            )
        if not run.succeeded:
            raise AssemblyError("Every page failed to encode", failures=list(failures))

        builder = self.builder_factory()
        statuses: list[PageStatus] = []
        try:
            for result in run.ordered():
                if not result.ok:
                    statuses.append(PageStatus(result.index, ok=False, error=str(result.error)))
                    continue
                prepared = result.value
                builder.add_page(prepared.page, prepared.page_width, prepared.page_height, prepared.placement)
                statuses.append(PageStatus(result.index, ok=True, images=1))
            if options.title:
                builder.set_metadata({"/Title": options.title})
            data = builder.build()
        except Exception as exc:
            raise AssemblyError(f"Failed to build output document: {exc}", failures=list(failures)) from exc

        output = OutputDocument(data=data, page_count=builder.page_count, pages=tuple(statuses))
        logger.info("Assembled %d page(s), %d byte(s), %d skipped", output.page_count, output.size, len(failures))
        return AssemblyOutcome(output=output, failures=failures)


def assemble(
    pages: Union[PageSequence, Sequence[Slot]],
    options: Optional[AssemblyOptions] = None,
) -> AssemblyOutcome:
    """Assemble *pages* with the default codec and builder."""

    return DocumentAssembler().assemble(pages, options)


__all__ = [
    "target_page_box",
    "fit_into_box",
    "PreparedPage",
    "AssemblyOutcome",
    "DocumentAssembler",
    "assemble",
]
