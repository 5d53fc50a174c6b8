"""Job orchestration: extraction, editing and reassembly by job id."""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union

from .assembler import DocumentAssembler
from .backends import PypdfDocumentBuilder
from .backends.base import BuilderFactory, DocumentDecoder, PageRenderer
from .codec import RasterCodec
from .config import AssemblyOptions, PipelineSettings
from .document import SourceDocument
from .exceptions import (
    AssemblyError,
    DecodeError,
    InvalidJobStateError,
    JobCancelledError,
    JobNotFoundError,
    RenderError,
)
from .extractor import ImageObjectExtractor
from .scheduling import PageTaskResult, run_per_page
from .sequence import EditOperation, PageSequence
from .types import (
    PENDING,
    CombinedPolicy,
    ExtractionMode,
    JobOutcome,
    JobResult,
    JobState,
    PageFailure,
    PageImage,
    PageStatus,
    PageWarning,
    Pending,
    summarise_outcome,
)
from .utils import get_logger

logger = get_logger(__name__)

EXTRACTION = "extraction"
ASSEMBLY = "assembly"

_TERMINAL = (JobState.FAILED, JobState.CANCELLED)


@dataclass(eq=False)
class Job:
    """State owned by one job: its source, its page sequence and its last result."""

    job_id: str
    state: JobState = JobState.IDLE
    source: Optional[SourceDocument] = None
    sequence: PageSequence = field(default_factory=PageSequence)
    result: Optional[JobResult] = None
    future: Optional[Future] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    lock: threading.RLock = field(default_factory=threading.RLock)

    def release(self) -> None:
        self.sequence.discard()
        if self.source is not None:
            self.source.close()


class JobHandle:
    """Handle on one running phase of a job."""

    def __init__(self, orchestrator: "PipelineOrchestrator", job_id: str, phase: str, future: Future) -> None:
        self._orchestrator = orchestrator
        self._future = future
        self.job_id = job_id
        self.phase = phase

    def wait(self, timeout: Optional[float] = None) -> JobResult:
        """Block until the phase finishes and return its result."""

        return self._future.result(timeout=timeout)

    def done(self) -> bool:
        return self._future.done()

    def cancel(self) -> bool:
        return self._orchestrator.cancel(self.job_id)

    def __repr__(self) -> str:
        return f"JobHandle(job_id={self.job_id!r}, phase={self.phase!r}, done={self.done()})"


class PipelineOrchestrator:
    """
    Coordinates extraction, editing and reassembly of page images.

    Each job moves through ``IDLE -> EXTRACTING -> READY -> ASSEMBLING ->
    DONE``. Extraction or assembly errors that end the job move it to
    ``FAILED``. Cancelling an extraction moves the job to ``CANCELLED``;
    cancelling an assembly returns it to ``READY`` with its sequence intact.
    Edits are accepted in ``READY``; an edit after ``DONE`` returns the job
    to ``READY`` so it can be assembled again.

    Jobs run on a small job-level thread pool and per-page work of each job
    runs on its own bounded pool. The only shared state is the job map.
    """

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        *,
        decoder: Optional[DocumentDecoder] = None,
        renderer: Optional[PageRenderer] = None,
        builder_factory: BuilderFactory = PypdfDocumentBuilder,
        max_jobs: int = 2,
    ) -> None:
        self.settings = settings or PipelineSettings()
        self.decoder = decoder
        self.renderer = renderer
        self.codec = RasterCodec(self.settings.scale)
        self.extractor = ImageObjectExtractor(self.settings.max_form_depth)
        self.assembler = DocumentAssembler(self.codec, builder_factory)
        self._executor = ThreadPoolExecutor(max_workers=max_jobs, thread_name_prefix="pdfimagex-job")
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    def run_extraction(
        self,
        source_bytes: bytes,
        mode: Union[ExtractionMode, str] = ExtractionMode.RASTERIZE,
        *,
        scale: Optional[float] = None,
        combined_policy: Union[CombinedPolicy, str, None] = None,
        name: Optional[str] = None,
    ) -> JobHandle:
        """Start a new job that turns *source_bytes* into a page sequence."""

        mode = ExtractionMode(mode)
        policy = CombinedPolicy(combined_policy or self.settings.combined_policy)
        scale = self.settings.scale if scale is None else scale
        if scale <= 0:
            raise ValueError(f"scale must be greater than zero, got {scale}")

        job = Job(job_id=uuid.uuid4().hex)
        with self._lock:
            self._jobs[job.job_id] = job

        with job.lock:
            job.state = JobState.EXTRACTING
            data = bytes(source_bytes)
            job.future = self._executor.submit(
                self._run_phase, job, EXTRACTION, lambda: self._extract(job, data, name, mode, scale, policy)
            )
        logger.info("Job %s: extraction started (mode=%s)", job.job_id, mode.value)
        return JobHandle(self, job.job_id, EXTRACTION, job.future)

    def edit_sequence(self, job_id: str, operation: EditOperation) -> object:
        """Apply one edit to the job's page sequence."""

        job = self._get(job_id)
        with job.lock:
            if job.state not in (JobState.READY, JobState.DONE):
                raise InvalidJobStateError(f"Job {job_id} cannot be edited while {job.state.value}")
            outcome = job.sequence.apply(operation)
            job.state = JobState.READY
        logger.debug("Job %s: applied %r", job_id, operation)
        return outcome

    def run_assembly(self, job_id: str, options: Optional[AssemblyOptions] = None) -> JobHandle:
        """Assemble a frozen snapshot of the job's sequence into a new document."""

        job = self._get(job_id)
        options = options or AssemblyOptions()
        with job.lock:
            if job.state not in (JobState.READY, JobState.DONE):
                raise InvalidJobStateError(f"Job {job_id} cannot be assembled while {job.state.value}")
            snapshot = job.sequence.freeze()
            job.cancel_event = threading.Event()
            job.state = JobState.ASSEMBLING
            job.future = self._executor.submit(
                self._run_phase, job, ASSEMBLY, lambda: self._assemble(job, snapshot, options)
            )
        logger.info("Job %s: assembly of %d page(s) started", job_id, len(snapshot))
        return JobHandle(self, job_id, ASSEMBLY, job.future)

    def get_result(self, job_id: str) -> Union[JobResult, Pending]:
        """Return the result of the job's latest phase, or ``PENDING`` while it runs."""

        job = self._get(job_id)
        with job.lock:
            if job.state is JobState.IDLE or job.state.is_busy or job.result is None:
                return PENDING
            return job.result

    def get_state(self, job_id: str) -> JobState:
        return self._get(job_id).state

    def get_sequence(self, job_id: str) -> PageSequence:
        return self._get(job_id).sequence

    def cancel(self, job_id: str) -> bool:
        """
        Stop scheduling new page work for the job's running phase.

        Pages already being processed finish on their own. Returns ``True``
        when a running phase was signalled.
        """

        job = self._get(job_id)
        with job.lock:
            if not job.state.is_busy:
                return False
            job.cancel_event.set()
        logger.info("Job %s: cancellation requested", job_id)
        return True

    def close_job(self, job_id: str) -> None:
        """Forget the job and release its source and page images."""

        with self._lock:
            job = self._jobs.pop(job_id, None)
        if job is None:
            raise JobNotFoundError(job_id)
        with job.lock:
            job.cancel_event.set()
            future = job.future
        if future is not None and not future.done():
            future.add_done_callback(lambda _: job.release())
        else:
            job.release()
        logger.debug("Job %s: closed", job_id)

    def job_ids(self) -> list[str]:
        with self._lock:
            return list(self._jobs)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            jobs = list(self._jobs.values())
            self._jobs.clear()
        for job in jobs:
            job.cancel_event.set()
        self._executor.shutdown(wait=wait)
        for job in jobs:
            job.release()

    def __enter__(self) -> "PipelineOrchestrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------
    def _run_phase(self, job: Job, phase: str, body: Callable[[], tuple[JobState, JobResult]]) -> JobResult:
        try:
            state, result = body()
        except Exception as exc:
            logger.exception("Job %s: %s crashed", job.job_id, phase)
            state = JobState.FAILED
            result = JobResult(
                job.job_id, phase, JobOutcome.FAILED, error=str(exc), error_type=type(exc).__name__
            )
        with job.lock:
            job.state = state
            job.result = result
        if state in _TERMINAL:
            job.release()
        logger.info("Job %s: %s finished as %s (%s)", job.job_id, phase, state.value, result.outcome.value)
        return result

    def _extract(
        self,
        job: Job,
        data: bytes,
        name: Optional[str],
        mode: ExtractionMode,
        scale: float,
        policy: CombinedPolicy,
    ) -> tuple[JobState, JobResult]:
        try:
            source = SourceDocument(data, name=name, decoder=self.decoder, renderer=self.renderer)
        except DecodeError as exc:
            logger.error("Job %s: %s", job.job_id, exc)
            return JobState.FAILED, JobResult(
                job.job_id, EXTRACTION, JobOutcome.FAILED, error=str(exc), error_type=type(exc).__name__
            )

        job.source = source
        sequence = PageSequence.pending(source.page_count)
        job.sequence = sequence

        def on_result(result: PageTaskResult) -> None:
            if result.ok:
                images, _ = result.value
                sequence.resolve_pending(result.index, images)

        run = run_per_page(
            range(source.page_count),
            lambda index: self._extract_page(source, index, mode, scale, policy),
            workers=self.settings.workers,
            cancel_event=job.cancel_event,
            on_result=on_result,
        )
        sequence.drop_pending()

        statuses: list[PageStatus] = []
        failures: list[PageFailure] = []
        warnings: list[PageWarning] = []
        for result in run.ordered():
            if result.ok:
                images, page_warnings = result.value
                warnings.extend(page_warnings)
                statuses.append(
                    PageStatus(
                        result.index,
                        ok=True,
                        images=len(images),
                        warnings=tuple(w.message for w in page_warnings),
                    )
                )
            else:
                logger.warning("Job %s: page %d failed: %s", job.job_id, result.index, result.error)
                failures.append(
                    PageFailure(result.index, str(result.error), type(result.error).__name__, result.index)
                )
                statuses.append(PageStatus(result.index, ok=False, error=str(result.error)))

        outcome = summarise_outcome(
            succeeded=len(run.succeeded),
            failures=len(failures),
            warnings=len(warnings),
            cancelled=run.cancelled,
        )
        result = JobResult(
            job.job_id,
            EXTRACTION,
            outcome,
            pages=tuple(statuses),
            failures=tuple(failures),
            warnings=tuple(warnings),
            error="Extraction was cancelled" if run.cancelled else None,
        )
        if outcome is JobOutcome.CANCELLED:
            return JobState.CANCELLED, result
        if outcome is JobOutcome.FAILED:
            return JobState.FAILED, result
        return JobState.READY, result

    def _extract_page(
        self,
        source: SourceDocument,
        page_index: int,
        mode: ExtractionMode,
        scale: float,
        policy: CombinedPolicy,
    ) -> tuple[list[PageImage], list[PageWarning]]:
        if mode is ExtractionMode.RASTERIZE:
            return [self.codec.render_page_to_image(source, page_index, scale)], []

        if mode is ExtractionMode.EXTRACT_EMBEDDED:
            extraction = self.extractor.extract_embedded_images(source, page_index)
            images = list(extraction)
            return images, list(extraction.warnings)

        try:
            extraction = self.extractor.extract_embedded_images(source, page_index)
            images = list(extraction)
            warnings = list(extraction.warnings)
        except RenderError as exc:
            images = []
            warnings = [PageWarning(page_index, f"embedded images skipped: {exc}")]

        if policy is CombinedPolicy.FALLBACK and images:
            return images, warnings
        raster = self.codec.render_page_to_image(source, page_index, scale)
        if policy is CombinedPolicy.BOTH:
            return [raster, *images], warnings
        return [raster], warnings

    def _assemble(self, job: Job, snapshot: tuple, options: AssemblyOptions) -> tuple[JobState, JobResult]:
        try:
            outcome = self.assembler.assemble(snapshot, options, cancel_event=job.cancel_event)
        except JobCancelledError as exc:
            # The edited sequence survives so the job can be assembled again.
            return JobState.READY, JobResult(
                job.job_id, ASSEMBLY, JobOutcome.CANCELLED, error=str(exc), error_type=type(exc).__name__
            )
        except AssemblyError as exc:
            logger.error("Job %s: %s", job.job_id, exc)
            return JobState.FAILED, JobResult(
                job.job_id,
                ASSEMBLY,
                JobOutcome.FAILED,
                failures=tuple(exc.failures),
                error=str(exc),
                error_type=type(exc).__name__,
            )
        finally:
            job.sequence.thaw()

        output = outcome.output
        result = JobResult(
            job.job_id,
            ASSEMBLY,
            summarise_outcome(succeeded=output.page_count, failures=len(outcome.failures), warnings=0),
            output=output,
            pages=output.pages,
            failures=outcome.failures,
        )
        return JobState.DONE, result

    def _get(self, job_id: str) -> Job:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job


__all__ = ["PipelineOrchestrator", "JobHandle", "Job", "EXTRACTION", "ASSEMBLY"]
