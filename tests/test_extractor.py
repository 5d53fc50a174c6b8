from __future__ import annotations

import pytest

from conftest import MIXED_PAGES
from pdfimagex.document import SourceDocument
from pdfimagex.exceptions import RenderError
from pdfimagex.extractor import ImageObjectExtractor, extract_embedded_images


def test_each_page_yields_its_image_at_native_size(mixed_pdf_bytes) -> None:
    with SourceDocument(mixed_pdf_bytes) as document:
        for index, ((width, height), _) in enumerate(MIXED_PAGES):
            extraction = extract_embedded_images(document, index)
            images = list(extraction)

            assert [image.size for image in images] == [(width, height)]
            assert images[0].source_page_index == index
            assert extraction.warnings == []


def test_extraction_is_restartable(mixed_pdf_bytes) -> None:
    with SourceDocument(mixed_pdf_bytes) as document:
        extraction = extract_embedded_images(document, 1)

        first = list(extraction)
        second = list(extraction)

    assert [image.size for image in first] == [image.size for image in second]
    assert first[0] is not second[0]


def test_images_keep_their_colour(mixed_pdf_bytes) -> None:
    with SourceDocument(mixed_pdf_bytes) as document:
        (image,) = list(extract_embedded_images(document, 2))

    red, green, blue = image.to_pil().getpixel((25, 50))
    assert blue > 200 and red < 50 and green < 50


def test_missing_resource_becomes_a_warning(missing_image_pdf_bytes) -> None:
    with SourceDocument(missing_image_pdf_bytes) as document:
        extraction = extract_embedded_images(document, 0)

        assert list(extraction) == []
        assert len(extraction.warnings) == 1
        assert "Ghost" in extraction.warnings[0].message
        assert extraction.warnings[0].page_index == 0

        list(extraction)
        assert len(extraction.warnings) == 1


def test_malformed_resource_table_raises(corrupt_resource_pdf_bytes) -> None:
    with SourceDocument(corrupt_resource_pdf_bytes) as document:
        assert len(list(extract_embedded_images(document, 0))) == 1

        extraction = extract_embedded_images(document, 2)
        with pytest.raises(RenderError):
            list(extraction)


def test_images_inside_forms_are_found(form_image_pdf_bytes) -> None:
    with SourceDocument(form_image_pdf_bytes) as document:
        extraction = ImageObjectExtractor().extract_embedded_images(document, 0)
        images = list(extraction)

    assert [image.size for image in images] == [(30, 20)]
    assert extraction.warnings == []


def test_form_depth_limit(form_image_pdf_bytes) -> None:
    with SourceDocument(form_image_pdf_bytes) as document:
        extraction = extract_embedded_images(document, 0, max_form_depth=0)
        images = list(extraction)

    assert images == []
    assert "nesting" in extraction.warnings[0].message


def test_vector_pages_have_no_images(vector_pdf_bytes) -> None:
    with SourceDocument(vector_pdf_bytes) as document:
        extraction = extract_embedded_images(document, 0)

        assert list(extraction) == []
        assert extraction.warnings == []


def test_out_of_range_page_is_rejected(mixed_pdf_bytes) -> None:
    with SourceDocument(mixed_pdf_bytes) as document:
        with pytest.raises(RenderError):
            extract_embedded_images(document, 3)
