from __future__ import annotations

import zipfile

import pytest
from PIL import Image

from pdfimagex.exceptions import PDFImageXError
from pdfimagex.export import export_images, output_name
from pdfimagex.sequence import PageSequence
from pdfimagex.types import PendingSlot


def test_output_name_padding() -> None:
    assert output_name("page", 1, 9, "jpg") == "page_001.jpg"
    assert output_name("scan", 42, 1200, "png") == "scan_0042.png"


def test_export_writes_files_in_sequence_order(tmp_path, page_image_factory) -> None:
    pages = [page_image_factory(size=(10, 20)), page_image_factory(size=(30, 10))]
    sequence = PageSequence(pages)
    sequence.move_to(0, 1)

    written = export_images(sequence, tmp_path / "out", fmt="png")

    assert [path.name for path in written] == ["page_001.png", "page_002.png"]
    with Image.open(written[0]) as first:
        assert first.size == (30, 10)


def test_export_to_zip(tmp_path, page_image_factory) -> None:
    pages = [page_image_factory(), page_image_factory()]

    (archive,) = export_images(pages, tmp_path / "out", fmt="jpeg", quality="low", zip_path=tmp_path / "pages.zip")

    with zipfile.ZipFile(archive) as bundle:
        assert sorted(bundle.namelist()) == ["page_001.jpg", "page_002.jpg"]


def test_export_rejects_pending_and_unknown_formats(tmp_path, page_image_factory) -> None:
    with pytest.raises(PDFImageXError):
        export_images([page_image_factory(), PendingSlot(1)], tmp_path)
    with pytest.raises(ValueError):
        export_images([page_image_factory()], tmp_path, fmt="bmp")
