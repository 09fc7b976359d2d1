from paraingest.assembler import assemble_document
from paraingest.models import PageResult, PageSource


def test_assemble_sorts_and_summarizes():
    results = [
        PageResult(page=3, source=PageSource.OCR, text="c", confidence=71.5),
        PageResult(page=1, source=PageSource.LAYER, text="a"),
        PageResult(page=2, source=PageSource.SKIPPED_IMAGE_ONLY),
    ]
    opts = {"augment_if_has_layer": False, "skip_image_only_pages": True, "concurrency": 2, "raster_density": 200}

    doc = assemble_document(results, 3, opts)

    assert [p.page for p in doc.pages] == [1, 2, 3]
    assert doc.meta == {"pages_processed": 3, "num_pages": 3, "opts": opts}
    opts["concurrency"] = 99
    assert doc.options["concurrency"] == 2


def test_merged_text_follows_page_order():
    doc = assemble_document(
        [PageResult(page=2, source=PageSource.OCR, text="second"),
         PageResult(page=1, source=PageSource.LAYER, text="first"),
         PageResult(page=3, source=PageSource.EMPTY)],
        3, {},
    )
    assert doc.merged_text() == "first\nsecond\n"


def test_page_dict_shapes():
    layer = PageResult(page=1, source=PageSource.LAYER, text="abc")
    assert layer.to_dict() == {"page": 1, "source": "layer", "text": "abc", "confidence": None}

    failed = PageResult.failed(2, ValueError("bad page"))
    assert failed.text == ""
    assert failed.to_dict()["error"] == "ValueError: bad page"
    assert failed.to_dict()["source"] == "error"

    both = PageResult(page=3, source=PageSource.LAYER_OCR, text="L", confidence=50.0, layer_text="L", ocr_text="O")
    assert both.to_dict()["layer_text"] == "L"
    assert both.to_dict()["ocr_text"] == "O"
    assert "error" not in both.to_dict()


def test_text_is_never_none():
    assert PageResult(page=1, source=PageSource.EMPTY, text=None).text == ""


def test_record_keeps_confidence_as_text():
    assert PageResult(page=1, source=PageSource.OCR, text="x", confidence=87.5).to_record()["confidence"] == "87.5"
    assert PageResult(page=1, source=PageSource.LAYER, text="x").to_record()["confidence"] is None
