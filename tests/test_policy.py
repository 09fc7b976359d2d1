import pytest

from paraingest.models import PageSource
from paraingest.policy import (
    OCR_AUGMENT_SEPARATOR,
    PagePath,
    choose_path,
    classify_ocr_text,
    merge_layer_and_ocr,
)


@pytest.mark.parametrize(
    "has_layer, skip_image_only, augment, expected",
    [
        (True, True, False, PagePath.LAYER),
        (True, False, False, PagePath.LAYER),
        (False, True, False, PagePath.SKIP_IMAGE_ONLY),
        (False, True, True, PagePath.SKIP_IMAGE_ONLY),
        (False, False, False, PagePath.OCR),
        (False, False, True, PagePath.OCR),
        (True, True, True, PagePath.LAYER_AND_OCR),
        (True, False, True, PagePath.LAYER_AND_OCR),
    ],
)
def test_choose_path(has_layer, skip_image_only, augment, expected):
    assert choose_path(has_layer, skip_image_only, augment) is expected


def test_identical_texts_are_not_duplicated():
    assert merge_layer_and_ocr("Hello World", "Hello World") == "Hello World"


def test_contained_texts_keep_the_layer():
    assert merge_layer_and_ocr("Hello World, again", "Hello World") == "Hello World, again"
    assert merge_layer_and_ocr("Hello", "Hello World") == "Hello"
    assert merge_layer_and_ocr("Hello World", "") == "Hello World"


def test_different_texts_are_joined_with_marker():
    merged = merge_layer_and_ocr("Hello World", "Goodbye")
    assert merged == "Hello World" + OCR_AUGMENT_SEPARATOR + "Goodbye"
    assert "[OCR-AUGMENT]" in merged


def test_classify_ocr_text():
    assert classify_ocr_text("text") is PageSource.OCR
    assert classify_ocr_text("") is PageSource.EMPTY
