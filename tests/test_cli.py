from __future__ import annotations

import io
import zipfile

import pytest
from click.testing import CliRunner
from pypdf import PdfReader

from pdfimagex.cli import cli


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def _page_sizes(path) -> list[tuple[float, float]]:
    reader = PdfReader(io.BytesIO(path.read_bytes()))
    return [(float(page.mediabox.width), float(page.mediabox.height)) for page in reader.pages]


def test_info(runner, mixed_pdf) -> None:
    result = runner.invoke(cli, ["info", str(mixed_pdf)])

    assert result.exit_code == 0, result.output
    assert "mixed.pdf" in result.output
    assert "landscape" in result.output


def test_info_rejects_non_pdf(runner, tmp_path) -> None:
    bogus = tmp_path / "bogus.pdf"
    bogus.write_text("not a pdf")

    result = runner.invoke(cli, ["info", str(bogus)])

    assert result.exit_code == 1
    assert "Error" in result.output


def test_to_images(runner, mixed_pdf, tmp_path) -> None:
    out_dir = tmp_path / "pages"

    result = runner.invoke(cli, ["to-images", str(mixed_pdf), "-o", str(out_dir), "-f", "png", "-s", "1"])

    assert result.exit_code == 0, result.output
    assert sorted(path.name for path in out_dir.iterdir()) == ["page_001.png", "page_002.png", "page_003.png"]


def test_to_images_zip_of_embedded_images(runner, mixed_pdf, tmp_path) -> None:
    archive = tmp_path / "images.zip"

    result = runner.invoke(
        cli,
        ["to-images", str(mixed_pdf), "-o", str(tmp_path / "pages"), "--mode", "extract_embedded", "--zip", str(archive)],
    )

    assert result.exit_code == 0, result.output
    with zipfile.ZipFile(archive) as bundle:
        assert len(bundle.namelist()) == 3


def test_images_to_pdf(runner, image_files, tmp_path) -> None:
    output = tmp_path / "out.pdf"

    result = runner.invoke(
        cli, ["images-to-pdf", *map(str, image_files), "-o", str(output), "--title", "Scans"]
    )

    assert result.exit_code == 0, result.output
    assert _page_sizes(output) == pytest.approx([(80.0, 40.0), (30.0, 60.0)])
    assert PdfReader(str(output)).metadata.title == "Scans"


def test_images_to_pdf_on_fixed_pages(runner, image_files, tmp_path) -> None:
    output = tmp_path / "a4.pdf"

    result = runner.invoke(
        cli, ["images-to-pdf", *map(str, image_files), "-o", str(output), "--page-size", "a4", "--orientation", "portrait"]
    )

    assert result.exit_code == 0, result.output
    assert _page_sizes(output) == pytest.approx([(595.28, 841.89)] * 2)


def test_rebuild_removes_and_reorders(runner, mixed_pdf, tmp_path) -> None:
    output = tmp_path / "rebuilt.pdf"

    result = runner.invoke(
        cli, ["rebuild", str(mixed_pdf), "-o", str(output), "--remove", "2", "--order", "2,1", "-w", "2"]
    )

    assert result.exit_code == 0, result.output
    assert _page_sizes(output) == pytest.approx([(50.0, 100.0), (60.0, 90.0)])


def test_rebuild_rejects_invalid_order(runner, mixed_pdf, tmp_path) -> None:
    result = runner.invoke(cli, ["rebuild", str(mixed_pdf), "-o", str(tmp_path / "x.pdf"), "--order", "1,1,2"])

    assert result.exit_code == 1
    assert not (tmp_path / "x.pdf").exists()


def test_rebuild_rejects_zero_page_number(runner, mixed_pdf) -> None:
    result = runner.invoke(cli, ["rebuild", str(mixed_pdf), "--remove", "0"])

    assert result.exit_code == 2


def test_rebuild_rotates_pages(runner, mixed_pdf, tmp_path) -> None:
    output = tmp_path / "rotated.pdf"

    result = runner.invoke(
        cli, ["rebuild", str(mixed_pdf), "-o", str(output), "--rotate", "1:90", "--rotate", "3:180"]
    )

    assert result.exit_code == 0, result.output
    assert _page_sizes(output) == pytest.approx([(90.0, 60.0), (120.0, 80.0), (50.0, 100.0)])


@pytest.mark.parametrize("value", ["1", "0:90", "two:90", "1:right"])
def test_rebuild_rejects_bad_rotation(runner, mixed_pdf, value: str) -> None:
    result = runner.invoke(cli, ["rebuild", str(mixed_pdf), "--rotate", value])

    assert result.exit_code == 2


def test_save_and_load_pages(runner, mixed_pdf, tmp_path) -> None:
    work = tmp_path / "work"
    output = tmp_path / "restored.pdf"

    saved = runner.invoke(cli, ["save-pages", str(mixed_pdf), str(work), "--mode", "extract_embedded"])
    assert saved.exit_code == 0, saved.output
    assert (work / "manifest.json").exists()

    loaded = runner.invoke(cli, ["load-pages", str(work), "-o", str(output)])
    assert loaded.exit_code == 0, loaded.output
    assert _page_sizes(output) == pytest.approx([(60.0, 90.0), (120.0, 80.0), (50.0, 100.0)])
