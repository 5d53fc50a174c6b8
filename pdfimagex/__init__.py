"""
pdfimagex - PDF page images: extract, edit, reassemble.

This library turns the pages of a PDF into an ordered sequence of page
images, either by rasterizing each page or by pulling out the images
embedded in it, lets callers reorder, replace, insert and remove pages, and
assembles a new PDF from the result.

Quick Start:
    >>> from pdfimagex import PipelineOrchestrator, ExtractionMode, MoveTo
    >>> with PipelineOrchestrator() as pipeline:
    ...     job = pipeline.run_extraction(data, ExtractionMode.RASTERIZE)
    ...     job.wait()
    ...     pipeline.edit_sequence(job.job_id, MoveTo(0, 2))
    ...     result = pipeline.run_assembly(job.job_id).wait()

Main Classes:
    - PipelineOrchestrator: Job based extraction, editing and assembly
    - PageSequence: Ordered, editable page images
    - DocumentAssembler: Builds a PDF from page images
    - RasterCodec: Page rendering and image encoding
    - ImageObjectExtractor: Embedded image extraction

Data Classes:
    - PageImage: One decoded page raster
    - AssemblyOptions: Output orientation, quality and geometry
    - JobResult: Outcome of an extraction or assembly

Exceptions:
    - PDFImageXError: Base exception
    - DecodeError, RenderError, CodecError, EncodeError
    - IndexOutOfRangeError, AssemblyError, JobNotFoundError

For CLI usage, use the 'pdfimagex' command after installation.
"""

__version__ = "1.0.0"
__author__ = "pdfimagex Contributors"
__license__ = "MIT"

# Core classes
from pdfimagex.assembler import AssemblyOutcome, DocumentAssembler, assemble
from pdfimagex.codec import (
    RasterCodec,
    decode_image_bytes,
    encode_image,
    encode_image_to_document_page,
    load_image_file,
    render_page_to_image,
)
from pdfimagex.document import SourceDocument
from pdfimagex.extractor import EmbeddedImages, ImageObjectExtractor, extract_embedded_images
from pdfimagex.orchestrator import JobHandle, PipelineOrchestrator
from pdfimagex.sequence import Append, InsertAt, MoveTo, PageSequence, RemoveAt, Reorder, ReplaceAt, Transform
from pdfimagex.transforms import transform_page_image

# Configuration and data types
from pdfimagex.config import AssemblyOptions, PipelineSettings
from pdfimagex.types import (
    PENDING,
    CombinedPolicy,
    ExtractionMode,
    JobOutcome,
    JobResult,
    JobState,
    Orientation,
    OutputDocument,
    PageFailure,
    PageImage,
    PageStatus,
    PageWarning,
    PendingSlot,
    PixelFormat,
)

# Exceptions
from pdfimagex.exceptions import (
    AssemblyError,
    CodecError,
    DecodeError,
    EncodeError,
    IndexOutOfRangeError,
    InvalidJobStateError,
    JobCancelledError,
    JobNotFoundError,
    ManifestError,
    PDFImageXError,
    RenderError,
    SequenceFrozenError,
)

# Persistence and export
from pdfimagex.export import export_images
from pdfimagex.manifest import load_sequence, save_sequence

__all__ = [
    # Main classes
    "PipelineOrchestrator",
    "JobHandle",
    "PageSequence",
    "DocumentAssembler",
    "AssemblyOutcome",
    "RasterCodec",
    "ImageObjectExtractor",
    "EmbeddedImages",
    "SourceDocument",
    # Edit operations
    "Append",
    "InsertAt",
    "RemoveAt",
    "MoveTo",
    "ReplaceAt",
    "Reorder",
    "Transform",
    # Functions
    "assemble",
    "render_page_to_image",
    "encode_image_to_document_page",
    "decode_image_bytes",
    "load_image_file",
    "encode_image",
    "extract_embedded_images",
    "transform_page_image",
    "export_images",
    "save_sequence",
    "load_sequence",
    # Configuration and data types
    "AssemblyOptions",
    "PipelineSettings",
    "PENDING",
    "CombinedPolicy",
    "ExtractionMode",
    "JobOutcome",
    "JobResult",
    "JobState",
    "Orientation",
    "OutputDocument",
    "PageFailure",
    "PageImage",
    "PageStatus",
    "PageWarning",
    "PendingSlot",
    "PixelFormat",
    # Exceptions
    "PDFImageXError",
    "DecodeError",
    "RenderError",
    "CodecError",
    "EncodeError",
    "IndexOutOfRangeError",
    "SequenceFrozenError",
    "AssemblyError",
    "JobNotFoundError",
    "InvalidJobStateError",
    "JobCancelledError",
    "ManifestError",
    # Version info
    "__version__",
]
