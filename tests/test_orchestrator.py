from __future__ import annotations

import io
import threading

import pytest
from PIL import Image
from pypdf import PdfReader

from pdfimagex.config import AssemblyOptions, PipelineSettings
from pdfimagex.exceptions import InvalidJobStateError, JobNotFoundError
from pdfimagex.orchestrator import PipelineOrchestrator
from pdfimagex.sequence import Append, MoveTo, RemoveAt
from pdfimagex.types import PENDING, CombinedPolicy, ExtractionMode, JobOutcome, JobState

TIMEOUT = 30


class GatedRenderer:
    """Renderer whose first page blocks until the test releases it."""

    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()

    def open(self, data: bytes) -> "GatedRenderer":
        return self

    def render(self, page_index: int, scale: float) -> Image.Image:
        self.started.set()
        self.release.wait(TIMEOUT)
        return Image.new("RGB", (10, 10), "white")

    def close(self) -> None:
        pass


@pytest.fixture()
def orchestrator():
    with PipelineOrchestrator(PipelineSettings(workers=2)) as pipeline:
        yield pipeline


def _sizes(sequence) -> list[tuple[int, int]]:
    return [page.size for page in sequence]


def test_extract_reorder_and_reassemble(orchestrator, mixed_pdf_bytes) -> None:
    handle = orchestrator.run_extraction(mixed_pdf_bytes, ExtractionMode.RASTERIZE, scale=2.0)
    extracted = handle.wait(TIMEOUT)

    assert extracted.outcome is JobOutcome.SUCCEEDED
    assert extracted.warnings == ()
    assert orchestrator.get_state(handle.job_id) is JobState.READY
    assert _sizes(orchestrator.get_sequence(handle.job_id)) == [(120, 180), (240, 160), (100, 200)]

    orchestrator.edit_sequence(handle.job_id, MoveTo(0, 2))
    sequence = orchestrator.get_sequence(handle.job_id)
    assert [page.source_page_index for page in sequence] == [1, 2, 0]

    assembled = orchestrator.run_assembly(handle.job_id, AssemblyOptions()).wait(TIMEOUT)

    assert assembled.outcome is JobOutcome.SUCCEEDED
    assert orchestrator.get_state(handle.job_id) is JobState.DONE
    assert orchestrator.get_result(handle.job_id) is assembled
    reader = PdfReader(io.BytesIO(assembled.output.data))
    sizes = [(float(page.mediabox.width), float(page.mediabox.height)) for page in reader.pages]
    assert sizes == pytest.approx([(120.0, 80.0), (50.0, 100.0), (60.0, 90.0)])

    again = orchestrator.run_extraction(assembled.output.data, ExtractionMode.EXTRACT_EMBEDDED)
    assert again.wait(TIMEOUT).outcome is JobOutcome.SUCCEEDED
    assert _sizes(orchestrator.get_sequence(again.job_id)) == [(240, 160), (100, 200), (120, 180)]


def test_malformed_page_is_a_partial_failure(orchestrator, corrupt_resource_pdf_bytes) -> None:
    handle = orchestrator.run_extraction(corrupt_resource_pdf_bytes, "extract_embedded")
    result = handle.wait(TIMEOUT)

    assert result.outcome is JobOutcome.PARTIAL_FAILURE
    assert result.is_partial_failure
    assert result.failed_pages == [2]
    assert result.failures[0].error_type == "RenderError"
    assert result.succeeded_pages == [0, 1]
    assert orchestrator.get_state(handle.job_id) is JobState.READY
    assert len(orchestrator.get_sequence(handle.job_id)) == 2

    assembled = orchestrator.run_assembly(handle.job_id).wait(TIMEOUT)
    assert assembled.output.page_count == 2


def test_empty_sequence_fails_assembly(orchestrator, missing_image_pdf_bytes) -> None:
    handle = orchestrator.run_extraction(missing_image_pdf_bytes, ExtractionMode.EXTRACT_EMBEDDED)
    extracted = handle.wait(TIMEOUT)

    assert extracted.outcome is JobOutcome.SUCCEEDED_WITH_WARNINGS
    assert extracted.warnings[0].page_index == 0
    assert orchestrator.get_state(handle.job_id) is JobState.READY
    assert len(orchestrator.get_sequence(handle.job_id)) == 0

    assembled = orchestrator.run_assembly(handle.job_id).wait(TIMEOUT)

    assert assembled.outcome is JobOutcome.FAILED
    assert assembled.error_type == "AssemblyError"
    assert assembled.output is None
    assert orchestrator.get_state(handle.job_id) is JobState.FAILED
    assert orchestrator.get_result(handle.job_id).to_dict()["error_type"] == "AssemblyError"


def test_undecodable_source_fails_the_job(orchestrator) -> None:
    handle = orchestrator.run_extraction(b"%PDF-1.7 nothing useful here", ExtractionMode.RASTERIZE)
    result = handle.wait(TIMEOUT)

    assert result.outcome is JobOutcome.FAILED
    assert result.error_type == "DecodeError"
    assert orchestrator.get_state(handle.job_id) is JobState.FAILED
    with pytest.raises(InvalidJobStateError):
        orchestrator.edit_sequence(handle.job_id, RemoveAt(0))


def test_unknown_job_id(orchestrator) -> None:
    with pytest.raises(JobNotFoundError) as excinfo:
        orchestrator.get_state("missing")
    assert isinstance(excinfo.value, KeyError)
    with pytest.raises(JobNotFoundError):
        orchestrator.get_result("missing")
    with pytest.raises(JobNotFoundError):
        orchestrator.close_job("missing")


def test_invalid_scale_is_rejected(orchestrator, mixed_pdf_bytes) -> None:
    with pytest.raises(ValueError):
        orchestrator.run_extraction(mixed_pdf_bytes, scale=0)


def test_busy_job_rejects_edits_and_reports_pending(mixed_pdf_bytes) -> None:
    renderer = GatedRenderer()
    with PipelineOrchestrator(PipelineSettings(workers=1), renderer=renderer) as pipeline:
        handle = pipeline.run_extraction(mixed_pdf_bytes, ExtractionMode.RASTERIZE)
        assert renderer.started.wait(TIMEOUT)

        assert pipeline.get_state(handle.job_id) is JobState.EXTRACTING
        assert pipeline.get_result(handle.job_id) is PENDING
        with pytest.raises(InvalidJobStateError):
            pipeline.edit_sequence(handle.job_id, RemoveAt(0))
        with pytest.raises(InvalidJobStateError):
            pipeline.run_assembly(handle.job_id)

        renderer.release.set()
        assert handle.wait(TIMEOUT).outcome is JobOutcome.SUCCEEDED
        assert len(pipeline.get_sequence(handle.job_id)) == 3


def test_cancel_stops_extraction(mixed_pdf_bytes) -> None:
    renderer = GatedRenderer()
    with PipelineOrchestrator(PipelineSettings(workers=1), renderer=renderer) as pipeline:
        handle = pipeline.run_extraction(mixed_pdf_bytes, ExtractionMode.RASTERIZE)
        assert renderer.started.wait(TIMEOUT)

        assert handle.cancel() is True
        renderer.release.set()
        result = handle.wait(TIMEOUT)

        assert result.outcome is JobOutcome.CANCELLED
        assert pipeline.get_state(handle.job_id) is JobState.CANCELLED
        assert pipeline.get_result(handle.job_id) is result
        assert pipeline.cancel(handle.job_id) is False


def test_combined_fallback_prefers_embedded_images(orchestrator, mixed_pdf_bytes, vector_pdf_bytes) -> None:
    embedded = orchestrator.run_extraction(mixed_pdf_bytes, ExtractionMode.COMBINED)
    embedded.wait(TIMEOUT)
    assert _sizes(orchestrator.get_sequence(embedded.job_id)) == [(60, 90), (120, 80), (50, 100)]

    vector = orchestrator.run_extraction(vector_pdf_bytes, ExtractionMode.COMBINED)
    assert vector.wait(TIMEOUT).outcome is JobOutcome.SUCCEEDED
    assert _sizes(orchestrator.get_sequence(vector.job_id)) == [(400, 200), (200, 300)]


def test_combined_both_emits_raster_then_embedded(orchestrator, mixed_pdf_bytes) -> None:
    handle = orchestrator.run_extraction(
        mixed_pdf_bytes, ExtractionMode.COMBINED, scale=1.0, combined_policy=CombinedPolicy.BOTH
    )
    handle.wait(TIMEOUT)

    sequence = orchestrator.get_sequence(handle.job_id)
    assert len(sequence) == 6
    assert [page.source_page_index for page in sequence] == [0, 0, 1, 1, 2, 2]
    assert sequence[0].dpi == 72.0


def test_combined_falls_back_when_resources_are_broken(orchestrator, corrupt_resource_pdf_bytes) -> None:
    handle = orchestrator.run_extraction(corrupt_resource_pdf_bytes, ExtractionMode.COMBINED)
    result = handle.wait(TIMEOUT)

    assert result.outcome is JobOutcome.SUCCEEDED_WITH_WARNINGS
    assert [warning.page_index for warning in result.warnings] == [2]
    assert _sizes(orchestrator.get_sequence(handle.job_id))[2] == (100, 200)


def test_edit_after_done_returns_to_ready(orchestrator, mixed_pdf_bytes, page_image_factory) -> None:
    handle = orchestrator.run_extraction(mixed_pdf_bytes, ExtractionMode.EXTRACT_EMBEDDED)
    handle.wait(TIMEOUT)
    first = orchestrator.run_assembly(handle.job_id).wait(TIMEOUT)
    assert first.output.page_count == 3

    index = orchestrator.edit_sequence(handle.job_id, Append(page_image_factory(size=(30, 30))))
    assert index == 3
    assert orchestrator.get_state(handle.job_id) is JobState.READY

    second = orchestrator.run_assembly(handle.job_id).wait(TIMEOUT)
    assert second.output.page_count == 4


def test_close_job_releases_images(orchestrator, mixed_pdf_bytes) -> None:
    handle = orchestrator.run_extraction(mixed_pdf_bytes, ExtractionMode.EXTRACT_EMBEDDED)
    handle.wait(TIMEOUT)
    pages = list(orchestrator.get_sequence(handle.job_id))

    orchestrator.close_job(handle.job_id)

    assert handle.job_id not in orchestrator.job_ids()
    assert all(page.released for page in pages)
    with pytest.raises(JobNotFoundError):
        orchestrator.get_state(handle.job_id)


def test_cancelled_assembly_keeps_the_edited_sequence(orchestrator, mixed_pdf_bytes, monkeypatch) -> None:
    handle = orchestrator.run_extraction(mixed_pdf_bytes, ExtractionMode.EXTRACT_EMBEDDED)
    handle.wait(TIMEOUT)
    orchestrator.edit_sequence(handle.job_id, MoveTo(0, 2))
    pages = list(orchestrator.get_sequence(handle.job_id))

    started = threading.Event()
    release = threading.Event()
    encode = orchestrator.codec.encode_image_to_document_page

    def gated_encode(page_image, options=None):
        started.set()
        release.wait(TIMEOUT)
        return encode(page_image, options)

    monkeypatch.setattr(orchestrator.codec, "encode_image_to_document_page", gated_encode)
    assembly = orchestrator.run_assembly(handle.job_id, AssemblyOptions(workers=1))
    assert started.wait(TIMEOUT)
    assert orchestrator.get_state(handle.job_id) is JobState.ASSEMBLING

    assert orchestrator.cancel(handle.job_id) is True
    release.set()
    result = assembly.wait(TIMEOUT)

    assert result.outcome is JobOutcome.CANCELLED
    assert result.output is None
    assert orchestrator.get_state(handle.job_id) is JobState.READY
    assert orchestrator.get_result(handle.job_id) is result
    sequence = orchestrator.get_sequence(handle.job_id)
    assert not sequence.frozen
    assert list(sequence) == pages
    assert [page.source_page_index for page in sequence] == [1, 2, 0]
    assert not any(page.released for page in pages)

    orchestrator.edit_sequence(handle.job_id, RemoveAt(0))
    again = orchestrator.run_assembly(handle.job_id).wait(TIMEOUT)
    assert again.outcome is JobOutcome.SUCCEEDED
    assert again.output.page_count == 2
