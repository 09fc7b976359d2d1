# src/paraingest/policy.py
from __future__ import annotations

from enum import Enum

from .models import PageSource

# Placed between layer text and OCR text when both are kept.
OCR_AUGMENT_SEPARATOR = "\n\n[OCR-AUGMENT]\n"


class PagePath(str, Enum):
    """The work a page needs, decided before anything is rendered."""
    LAYER = "layer"
    SKIP_IMAGE_ONLY = "skip-image-only"
    OCR = "ocr"
    LAYER_AND_OCR = "layer-and-ocr"


def choose_path(has_layer: bool, skip_image_only_pages: bool, augment_if_has_layer: bool) -> PagePath:
    if has_layer and not augment_if_has_layer:
        return PagePath.LAYER
    if not has_layer and skip_image_only_pages:
        return PagePath.SKIP_IMAGE_ONLY
    if has_layer:
        return PagePath.LAYER_AND_OCR
    return PagePath.OCR


def merge_layer_and_ocr(layer_text: str, ocr_text: str) -> str:
    """
    Keep the layer text alone when either text contains the other,
    otherwise append the OCR text after the separator.
    """
    if ocr_text in layer_text or layer_text in ocr_text:
        return layer_text
    return layer_text + OCR_AUGMENT_SEPARATOR + ocr_text


def classify_ocr_text(ocr_text: str) -> PageSource:
    return PageSource.OCR if ocr_text else PageSource.EMPTY
