"""Bounded per-page scheduling on a thread pool."""

from __future__ import annotations

import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, Optional, TypeVar

from .exceptions import PDFImageXError
from .utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class PageTaskResult(Generic[T]):
    index: int
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class PageRun(Generic[T]):
    """Results of one per-page run keyed by page index."""

    results: dict[int, PageTaskResult[T]] = field(default_factory=dict)
    cancelled: bool = False

    def ordered(self) -> list[PageTaskResult[T]]:
        return [self.results[index] for index in sorted(self.results)]

    @property
    def succeeded(self) -> list[PageTaskResult[T]]:
        return [result for result in self.ordered() if result.ok]

    @property
    def failed(self) -> list[PageTaskResult[T]]:
        return [result for result in self.ordered() if not result.ok]


def run_per_page(
    indices: Iterable[int],
    task: Callable[[int], T],
    *,
    workers: int = 1,
    cancel_event: Optional[threading.Event] = None,
    on_result: Optional[Callable[[PageTaskResult[T]], None]] = None,
) -> PageRun[T]:
    """
    Run *task* once per index with at most *workers* calls in flight.

    A failing page never stops its siblings: the exception is stored on that
    page's result. When *cancel_event* is set no further pages are
    submitted, pages already running are allowed to finish, and the run is
    marked as cancelled. *on_result* is called on the calling thread in
    completion order.
    """

    if workers < 1:
        raise ValueError("workers must be at least 1")

    remaining = iter(indices)
    run: PageRun[T] = PageRun()
    in_flight: dict[Future, int] = {}

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pdfimagex-page") as executor:

        def fill() -> None:
            while len(in_flight) < workers:
                if cancel_event is not None and cancel_event.is_set():
                    run.cancelled = True
                    return
                index = next(remaining, None)
                if index is None:
                    return
                in_flight[executor.submit(task, index)] = index

        fill()
        while in_flight:
            done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
            for future in done:
                index = in_flight.pop(future)
                error = future.exception()
                if error is None:
                    result = PageTaskResult(index, value=future.result())
                else:
                    if not isinstance(error, PDFImageXError):
                        logger.error("Unexpected %s on page %d: %s", type(error).__name__, index, error)
                    result = PageTaskResult(index, error=error)
                run.results[index] = result
                if on_result is not None:
                    on_result(result)
            fill()

    return run


__all__ = ["PageTaskResult", "PageRun", "run_per_page"]
