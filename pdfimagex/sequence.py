"""Ordered, editable page sequence shared between extraction and assembly."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Sequence, Union

from .exceptions import IndexOutOfRangeError, SequenceFrozenError
from .transforms import transform_page_image
from .types import PageImage, PendingSlot
from .utils import get_logger

logger = get_logger(__name__)

Slot = Union[PageImage, PendingSlot]


class PageSequence:
    """
    A document as an ordered list of independent page images.

    The order of the slots is exactly the order of the output pages. Each
    :class:`PageImage` can occupy at most one slot; moving a page changes its
    position, it never copies the pixel buffer. All mutations run under one
    lock so an edit always completes before the next one starts, and reads
    return snapshots.

    Ownership: the sequence owns the buffers it holds. :meth:`replace_at`
    releases the image it replaces and :meth:`discard` releases all of them,
    while :meth:`remove_at` hands the removed image back to the caller.
    """

    def __init__(self, slots: Iterable[Slot] = ()) -> None:
        self._lock = threading.RLock()
        self._slots: list[Slot] = []
        self._frozen = False
        for slot in slots:
            self.append(slot)

    @classmethod
    def pending(cls, page_count: int) -> "PageSequence":
        """Create a sequence holding one pending slot per source page."""

        return cls(PendingSlot(index) for index in range(page_count))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def __iter__(self) -> Iterator[Slot]:
        return iter(self.to_ordered_list())

    def __getitem__(self, index: int) -> Slot:
        with self._lock:
            self._check_index(index)
            return self._slots[index]

    def __contains__(self, item: object) -> bool:
        with self._lock:
            return any(slot is item for slot in self._slots)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def to_ordered_list(self) -> list[Slot]:
        """Return a snapshot of the slots in output order."""

        with self._lock:
            return list(self._slots)

    def images(self) -> list[PageImage]:
        with self._lock:
            return [slot for slot in self._slots if isinstance(slot, PageImage)]

    def pending_count(self) -> int:
        with self._lock:
            return sum(1 for slot in self._slots if isinstance(slot, PendingSlot))

    def index_of(self, item: Slot) -> int:
        with self._lock:
            for position, slot in enumerate(self._slots):
                if slot is item:
                    return position
        raise ValueError(f"{item!r} is not in the sequence")

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------
    def append(self, image: Slot) -> int:
        """Add *image* at the end and return its index."""

        with self._lock:
            self._check_writable()
            self._check_new(image)
            self._slots.append(image)
            return len(self._slots) - 1

    def insert_at(self, index: int, image: Slot) -> None:
        """Insert *image* before *index*; ``index == len(self)`` appends."""

        with self._lock:
            self._check_writable()
            self._check_index(index, allow_end=True)
            self._check_new(image)
            self._slots.insert(index, image)

    def remove_at(self, index: int) -> Slot:
        """Remove and return the slot at *index*; the caller owns the result."""

        with self._lock:
            self._check_writable()
            self._check_index(index)
            return self._slots.pop(index)

    def move_to(self, from_index: int, to_index: int) -> None:
        """Move the slot at *from_index* so it ends up at *to_index*."""

        with self._lock:
            self._check_writable()
            self._check_index(from_index)
            self._check_index(to_index)
            slot = self._slots.pop(from_index)
            self._slots.insert(to_index, slot)

    def replace_at(self, index: int, image: Slot) -> None:
        """Put *image* at *index*, releasing the page image it replaces."""

        with self._lock:
            self._check_writable()
            self._check_index(index)
            previous = self._slots[index]
            if previous is image:
                return
            self._check_new(image)
            self._slots[index] = image
        if isinstance(previous, PageImage):
            previous.release()

    def edit_at(self, index: int, edit: Callable[[PageImage], PageImage]) -> PageImage:
        """Replace the image at *index* with ``edit(image)`` and return the new image."""

        with self._lock:
            self._check_writable()
            self._check_index(index)
            current = self._slots[index]
            if not isinstance(current, PageImage):
                raise ValueError(f"{current!r} has not been extracted yet")
            edited = edit(current)
            self.replace_at(index, edited)
            return edited

    def reorder(self, order: Sequence[int]) -> None:
        """Rearrange the slots so that position ``i`` holds old slot ``order[i]``."""

        with self._lock:
            self._check_writable()
            if sorted(order) != list(range(len(self._slots))):
                raise ValueError(f"Order {list(order)} is not a permutation of {len(self._slots)} page(s)")
            self._slots = [self._slots[index] for index in order]

    def apply(self, operation: "EditOperation") -> object:
        return operation.apply(self)

    # ------------------------------------------------------------------
    # Extraction support
    # ------------------------------------------------------------------
    def resolve_pending(self, source_page_index: int, images: Sequence[PageImage]) -> int:
        """
        Replace the pending slot of *source_page_index* with *images*.

        Zero images removes the slot. Returns the position the first image
        now occupies.
        """

        with self._lock:
            self._check_writable()
            for position, slot in enumerate(self._slots):
                if isinstance(slot, PendingSlot) and slot.source_page_index == source_page_index:
                    break
            else:
                raise ValueError(f"No pending slot for source page {source_page_index}")
            for image in images:
                self._check_new(image)
            if len({id(image) for image in images}) != len(images):
                raise ValueError("The same page image cannot fill two slots")
            self._slots[position : position + 1] = list(images)
            return position

    def drop_pending(self) -> int:
        """Remove every pending slot and return how many were removed."""

        with self._lock:
            self._check_writable()
            before = len(self._slots)
            self._slots = [slot for slot in self._slots if not isinstance(slot, PendingSlot)]
            return before - len(self._slots)

    # ------------------------------------------------------------------
    # Assembly support and lifecycle
    # ------------------------------------------------------------------
    def freeze(self) -> tuple[Slot, ...]:
        """Reject further edits and return an immutable snapshot."""

        with self._lock:
            self._frozen = True
            return tuple(self._slots)

    def thaw(self) -> None:
        with self._lock:
            self._frozen = False

    def discard(self) -> None:
        """Release every page image and empty the sequence."""

        with self._lock:
            slots, self._slots = self._slots, []
            self._frozen = False
        for slot in slots:
            if isinstance(slot, PageImage):
                slot.release()
        logger.debug("Discarded page sequence with %d slot(s)", len(slots))

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------
    def _check_writable(self) -> None:
        if self._frozen:
            raise SequenceFrozenError()

    def _check_index(self, index: int, *, allow_end: bool = False) -> None:
        if isinstance(index, bool) or not isinstance(index, int):
            raise TypeError(f"Sequence indices must be integers, not {type(index).__name__}")
        length = len(self._slots)
        upper = length if allow_end else length - 1
        if index < 0 or index > upper:
            raise IndexOutOfRangeError(index, length, allow_end=allow_end)

    def _check_new(self, item: Slot) -> None:
        if not isinstance(item, (PageImage, PendingSlot)):
            raise TypeError(f"Expected a PageImage, got {type(item).__name__}")
        if isinstance(item, PageImage) and item.released:
            raise ValueError(f"{item!r} has been released")
        if any(slot is item for slot in self._slots):
            raise ValueError(f"{item!r} already occupies a slot")

    def __repr__(self) -> str:
        with self._lock:
            return f"PageSequence(len={len(self._slots)}, pending={self.pending_count()}, frozen={self._frozen})"


# ----------------------------------------------------------------------
# Edit operations applied by job id through the orchestrator
# ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Append:
    image: PageImage

    def apply(self, sequence: PageSequence) -> int:
        return sequence.append(self.image)


@dataclass(frozen=True, slots=True)
class InsertAt:
    index: int
    image: PageImage

    def apply(self, sequence: PageSequence) -> None:
        sequence.insert_at(self.index, self.image)


@dataclass(frozen=True, slots=True)
class RemoveAt:
    index: int

    def apply(self, sequence: PageSequence) -> Slot:
        return sequence.remove_at(self.index)


@dataclass(frozen=True, slots=True)
class MoveTo:
    from_index: int
    to_index: int

    def apply(self, sequence: PageSequence) -> None:
        sequence.move_to(self.from_index, self.to_index)


@dataclass(frozen=True, slots=True)
class ReplaceAt:
    index: int
    image: PageImage

    def apply(self, sequence: PageSequence) -> None:
        sequence.replace_at(self.index, self.image)


@dataclass(frozen=True, slots=True)
class Reorder:
    order: tuple[int, ...]

    def apply(self, sequence: PageSequence) -> None:
        sequence.reorder(self.order)


@dataclass(frozen=True, slots=True)
class Transform:
    """Rotate, flip or adjust the page image at ``index`` in place."""

    index: int
    rotate: float = 0
    flip_horizontal: bool = False
    flip_vertical: bool = False
    brightness: float = 1.0
    contrast: float = 1.0
    saturation: float = 1.0

    def apply(self, sequence: PageSequence) -> PageImage:
        return sequence.edit_at(
            self.index,
            lambda image: transform_page_image(
                image,
                rotate=self.rotate,
                flip_horizontal=self.flip_horizontal,
                flip_vertical=self.flip_vertical,
                brightness=self.brightness,
                contrast=self.contrast,
                saturation=self.saturation,
            ),
        )


EditOperation = Union[Append, InsertAt, RemoveAt, MoveTo, ReplaceAt, Reorder, Transform]

__all__ = [
    "Slot",
    "PageSequence",
    "Append",
    "InsertAt",
    "RemoveAt",
    "MoveTo",
    "ReplaceAt",
    "Reorder",
    "Transform",
    "EditOperation",
]
