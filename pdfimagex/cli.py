"""
Command-line interface for pdfimagex.
"""

import logging
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from pdfimagex import __version__
from pdfimagex.assembler import DocumentAssembler
from pdfimagex.codec import load_image_file
from pdfimagex.config import PAGE_SIZES, AssemblyOptions, PipelineSettings
from pdfimagex.document import SourceDocument
from pdfimagex.exceptions import AssemblyError, PDFImageXError
from pdfimagex.export import export_images
from pdfimagex.manifest import load_sequence, save_sequence
from pdfimagex.orchestrator import PipelineOrchestrator
from pdfimagex.sequence import PageSequence, RemoveAt, Reorder, Transform
from pdfimagex.types import CombinedPolicy, ExtractionMode, JobOutcome, JobResult, Orientation
from pdfimagex.utils import ensure_output_parent, format_file_size, set_log_level

console = Console()

MODES = [mode.value for mode in ExtractionMode]
POLICIES = [policy.value for policy in CombinedPolicy]
ORIENTATIONS = [orientation.value for orientation in Orientation]


def _fail(message):
    console.print(f"\n[bold red]✗ Error:[/bold red] {message}")
    sys.exit(1)


def _parse_positions(value, name):
    """Parse ``"3,1,2"`` into zero based indices."""
    if not value:
        return []
    try:
        positions = [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise click.BadParameter(f"expected comma separated page numbers, got {value!r}", param_hint=name)
    if any(position < 1 for position in positions):
        raise click.BadParameter("page numbers start at 1", param_hint=name)
    return [position - 1 for position in positions]


def _parse_rotations(values):
    """Parse ``("2:90", "3:180")`` into ``{1: 90.0, 2: 180.0}``."""
    rotations = {}
    for value in values:
        page, sep, degrees = value.partition(":")
        try:
            if not sep:
                raise ValueError
            position, angle = int(page), float(degrees)
        except ValueError:
            raise click.BadParameter(f"expected PAGE:DEGREES, got {value!r}", param_hint="--rotate")
        if position < 1:
            raise click.BadParameter("page numbers start at 1", param_hint="--rotate")
        rotations[position - 1] = angle
    return rotations


def _assembly_options(orientation, quality, page_size, margin, max_dimension, best_effort=False, title=None):
    try:
        return AssemblyOptions(
            orientation=Orientation(orientation),
            quality=quality,
            max_dimension=max_dimension,
            best_effort=best_effort,
            page_size=page_size,
            margin=margin,
            title=title,
        )
    except ValueError as e:
        raise click.BadParameter(str(e))


def _print_result(result: JobResult):
    table = Table(title=f"{result.phase.capitalize()} result", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Outcome", result.outcome.value)
    table.add_row("Pages", str(len(result.succeeded_pages)))
    if result.output is not None:
        table.add_row("Output size", format_file_size(result.output.size))
    console.print(table)

    for failure in result.failures:
        console.print(f"  [red]• page {failure.page_index + 1}:[/red] {failure.reason}")
    for warning in result.warnings[:10]:
        console.print(f"  [yellow]• page {warning.page_index + 1}:[/yellow] {warning.message}")
    if len(result.warnings) > 10:
        console.print(f"  ... and {len(result.warnings) - 10} more warnings")


def _wait(handle, description):
    with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"), console=console, transient=True) as progress:
        progress.add_task(description, total=None)
        return handle.wait()


def _extract(orchestrator, input_pdf, mode, scale, policy):
    data = Path(input_pdf).read_bytes()
    handle = orchestrator.run_extraction(
        data,
        ExtractionMode(mode),
        scale=scale,
        combined_policy=policy,
        name=os.path.basename(input_pdf),
    )
    result = _wait(handle, f"Extracting pages ({mode})")
    if result.outcome in (JobOutcome.FAILED, JobOutcome.CANCELLED):
        _print_result(result)
        _fail(result.error or "every page failed")
    return handle.job_id, result


def _assemble_sequence(sequence, options, output):
    try:
        outcome = DocumentAssembler().assemble(sequence, options)
    except AssemblyError as e:
        for failure in e.failures:
            console.print(f"  [red]• page {failure.page_index + 1}:[/red] {failure.reason}")
        _fail(e)
    path = outcome.output.write(ensure_output_parent(output))
    console.print(f"\n[bold green]✓ Wrote {outcome.output.page_count} page(s) to {path}[/bold green]")
    console.print(f"[dim]Size: {format_file_size(outcome.output.size)}[/dim]")
    for failure in outcome.failures:
        console.print(f"  [yellow]• skipped page {failure.page_index + 1}:[/yellow] {failure.reason}")


extraction_options = [
    click.option("--mode", "-m", type=click.Choice(MODES), default=ExtractionMode.RASTERIZE.value, show_default=True, help="How pages become images"),
    click.option("--scale", "-s", type=float, default=None, help="Render scale for rasterized pages (default 2.0)"),
    click.option("--policy", type=click.Choice(POLICIES), default=None, help="Combined mode policy"),
    click.option("--workers", "-w", type=click.IntRange(min=1), default=None, help="Parallel page workers"),
]

assembly_options = [
    click.option("--orientation", type=click.Choice(ORIENTATIONS), default=Orientation.AUTO.value, show_default=True),
    click.option("--quality", "-q", default="92", show_default=True, help="JPEG quality 0-100 or high/medium/low"),
    click.option("--page-size", type=click.Choice(sorted(PAGE_SIZES), case_sensitive=False), default=None, help="Fixed output page size; default keeps each image's native size"),
    click.option("--margin", type=float, default=0.0, show_default=True, help="Page margin in points"),
    click.option("--max-dimension", type=click.IntRange(min=1), default=None, help="Downscale images so neither side exceeds this many pixels"),
]


def _apply(options):
    def decorator(func):
        for option in reversed(options):
            func = option(func)
        return func
    return decorator


def _settings(scale, workers):
    updates = {"scale": scale, "workers": workers}
    try:
        return PipelineSettings().with_updates(**updates)
    except ValueError as e:
        raise click.BadParameter(str(e))


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose):
    """
    pdfimagex - Turn PDF pages into images, edit them, and rebuild PDFs.
    """
    set_log_level(logging.DEBUG if verbose else logging.WARNING)


@cli.command(name="info")
@click.argument("input_pdf", type=click.Path(exists=True, dir_okay=False))
def show_info(input_pdf):
    """
    Display page count and page sizes of a PDF file.

    Example:

        pdfimagex info input.pdf
    """
    try:
        with SourceDocument.from_path(input_pdf) as document:
            info_table = Table(title="PDF Information", show_header=False)
            info_table.add_column("Property", style="cyan")
            info_table.add_column("Value", style="green")
            info_table.add_row("File", os.path.basename(input_pdf))
            info_table.add_row("Pages", str(document.page_count))
            info_table.add_row("Size", format_file_size(document.byte_size))
            console.print(info_table)

            pages_table = Table(title="Pages")
            pages_table.add_column("Page", justify="right")
            pages_table.add_column("Width (pt)", justify="right")
            pages_table.add_column("Height (pt)", justify="right")
            pages_table.add_column("Orientation")
            for index in range(document.page_count):
                width, height = document.page_size(index)
                orientation = "landscape" if width > height else "portrait"
                pages_table.add_row(str(index + 1), f"{width:.1f}", f"{height:.1f}", orientation)
            console.print(pages_table)
    except PDFImageXError as e:
        _fail(e)


@cli.command(name="to-images")
@click.argument("input_pdf", type=click.Path(exists=True, dir_okay=False))
@click.option("--output-dir", "-o", default="./output", type=click.Path(file_okay=False), help="Output directory for images")
@_apply(extraction_options)
@click.option("--format", "-f", "fmt", type=click.Choice(["jpeg", "png", "webp"]), default="jpeg", show_default=True)
@click.option("--quality", "-q", default="high", show_default=True, help="Image quality 0-100 or high/medium/low")
@click.option("--prefix", "-p", default="page", show_default=True, help="Prefix for output filenames")
@click.option("--zip", "zip_path", type=click.Path(dir_okay=False), default=None, help="Bundle the images into this zip archive")
def to_images(input_pdf, output_dir, mode, scale, policy, workers, fmt, quality, prefix, zip_path):
    """
    Convert PDF pages (or their embedded images) to image files.

    Examples:

        pdfimagex to-images input.pdf -o pages

        pdfimagex to-images input.pdf --mode extract_embedded -f png --zip images.zip
    """
    try:
        with PipelineOrchestrator(_settings(scale, workers)) as orchestrator:
            job_id, result = _extract(orchestrator, input_pdf, mode, scale, policy)
            _print_result(result)
            sequence = orchestrator.get_sequence(job_id)
            if not len(sequence):
                _fail("no page images were produced")
            files = export_images(sequence, output_dir, fmt=fmt, quality=quality, prefix=prefix, zip_path=zip_path)
        console.print(f"\n[bold green]✓ Wrote {len(files)} file(s)[/bold green]")
        for path in files[:5]:
            console.print(f"  • {path}")
        if len(files) > 5:
            console.print(f"  ... and {len(files) - 5} more")
    except (PDFImageXError, ValueError, OSError) as e:
        _fail(e)


@cli.command(name="images-to-pdf")
@click.argument("images", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", default="images.pdf", show_default=True, type=click.Path(dir_okay=False), help="Output PDF path")
@_apply(assembly_options)
@click.option("--title", default=None, help="Title metadata of the output PDF")
def images_to_pdf(images, output, orientation, quality, page_size, margin, max_dimension, title):
    """
    Combine JPG/PNG images into one PDF, one image per page.

    Examples:

        pdfimagex images-to-pdf a.jpg b.png -o out.pdf

        pdfimagex images-to-pdf scans/*.jpg --page-size a4 --margin 36
    """
    options = _assembly_options(orientation, quality, page_size, margin, max_dimension, title=title)
    try:
        sequence = PageSequence(load_image_file(path) for path in images)
        _assemble_sequence(sequence, options, output)
        sequence.discard()
    except PDFImageXError as e:
        _fail(e)


@cli.command(name="rebuild")
@click.argument("input_pdf", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", default="rebuilt.pdf", show_default=True, type=click.Path(dir_okay=False), help="Output PDF path")
@_apply(extraction_options)
@click.option("--rotate", "rotate", multiple=True, help="Rotate a page clockwise before other edits, e.g. 2:90 (repeatable)")
@click.option("--remove", "remove", default=None, help="Comma separated page numbers to drop, e.g. 2,5")
@click.option("--order", "order", default=None, help="New order of the remaining pages, e.g. 3,1,2")
@_apply(assembly_options)
@click.option("--best-effort", is_flag=True, help="Skip pages that fail to encode")
def rebuild(input_pdf, output, mode, scale, policy, workers, rotate, remove, order, orientation, quality, page_size, margin, max_dimension, best_effort):
    """
    Extract page images, rotate, drop or reorder them, and assemble a new PDF.

    Examples:

        pdfimagex rebuild input.pdf --order 3,1,2 -o reordered.pdf

        pdfimagex rebuild scan.pdf --remove 1 --page-size a4 -q medium

        pdfimagex rebuild scan.pdf --rotate 1:90 --rotate 3:180
    """
    rotations = _parse_rotations(rotate)
    removals = _parse_positions(remove, "--remove")
    new_order = _parse_positions(order, "--order")
    options = _assembly_options(orientation, quality, page_size, margin, max_dimension, best_effort=best_effort)
    try:
        with PipelineOrchestrator(_settings(scale, workers)) as orchestrator:
            job_id, result = _extract(orchestrator, input_pdf, mode, scale, policy)
            _print_result(result)
            for index, angle in sorted(rotations.items()):
                orchestrator.edit_sequence(job_id, Transform(index, rotate=angle))
            for index in sorted(set(removals), reverse=True):
                orchestrator.edit_sequence(job_id, RemoveAt(index))
            if new_order:
                orchestrator.edit_sequence(job_id, Reorder(tuple(new_order)))

            assembled = _wait(orchestrator.run_assembly(job_id, options), "Assembling PDF")
            _print_result(assembled)
            if assembled.output is None:
                _fail(assembled.error)
            path = assembled.output.write(ensure_output_parent(output))
        console.print(f"\n[bold green]✓ Wrote {assembled.output.page_count} page(s) to {path}[/bold green]")
    except (PDFImageXError, ValueError) as e:
        _fail(e)


@cli.command(name="save-pages")
@click.argument("input_pdf", type=click.Path(exists=True, dir_okay=False))
@click.argument("directory", type=click.Path(file_okay=False))
@_apply(extraction_options)
def save_pages(input_pdf, directory, mode, scale, policy, workers):
    """
    Extract page images and save them with an ordered manifest.

    Example:

        pdfimagex save-pages input.pdf work/
    """
    try:
        with PipelineOrchestrator(_settings(scale, workers)) as orchestrator:
            job_id, result = _extract(orchestrator, input_pdf, mode, scale, policy)
            _print_result(result)
            manifest = save_sequence(orchestrator.get_sequence(job_id), directory)
        console.print(f"\n[bold green]✓ Saved {len(manifest)} page(s)[/bold green]")
        console.print(f"[dim]Manifest: {manifest.path}[/dim]")
    except PDFImageXError as e:
        _fail(e)


@cli.command(name="load-pages")
@click.argument("directory", type=click.Path(exists=True))
@click.option("--output", "-o", default="pages.pdf", show_default=True, type=click.Path(dir_okay=False), help="Output PDF path")
@_apply(assembly_options)
def load_pages(directory, output, orientation, quality, page_size, margin, max_dimension):
    """
    Assemble a PDF from pages saved with save-pages.

    Example:

        pdfimagex load-pages work/ -o rebuilt.pdf
    """
    options = _assembly_options(orientation, quality, page_size, margin, max_dimension)
    try:
        sequence = load_sequence(directory)
        _assemble_sequence(sequence, options, output)
        sequence.discard()
    except PDFImageXError as e:
        _fail(e)


def main():
    cli()


if __name__ == "__main__":
    main()
