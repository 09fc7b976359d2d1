from paraingest.ocr_backends.tesseract_backend import _norm_langs_to_tesseract, words_from_data


def test_words_grouped_into_lines_with_confidences():
    data = {
        "text": ["", "Hello", "world", "", "second", "line", "  "],
        "conf": ["-1", "96", "88.5", "-1", "70", "60", "-1"],
        "block_num": [1, 1, 1, 1, 1, 1, 1],
        "par_num": [1, 1, 1, 1, 1, 1, 1],
        "line_num": [1, 1, 1, 2, 2, 2, 2],
    }
    text, confs = words_from_data(data)
    assert text == "Hello world\nsecond line"
    assert confs == [96.0, 88.5, 70.0, 60.0]


def test_no_words():
    text, confs = words_from_data({"text": [], "conf": [], "block_num": [], "par_num": [], "line_num": []})
    assert text == ""
    assert confs == []


def test_language_mapping():
    assert _norm_langs_to_tesseract({"languages": ["en", "vi"]}) == "eng+vie"
    assert _norm_langs_to_tesseract({"lang": "fr"}) == "fra"
    assert _norm_langs_to_tesseract({}) == "eng"
