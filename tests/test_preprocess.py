from PIL import Image

from paraingest.preprocess import ImagePreprocessor


def _image(path, size, color=(120, 130, 140)):
    Image.new("RGB", size, color).save(path)
    return path


def test_grayscale_and_width_cap(tmp_path):
    src = _image(tmp_path / "page_1.png", (3000, 600))
    out = ImagePreprocessor(max_width=2000).preprocess(src)
    assert out != src
    assert out.name == "page_1.png.pre.png"
    with Image.open(out) as im:
        assert im.mode == "L"
        assert im.size == (2000, 400)


def test_small_images_are_not_upscaled(tmp_path):
    src = _image(tmp_path / "small.png", (500, 300))
    out = ImagePreprocessor(max_width=2000)(src)
    with Image.open(out) as im:
        assert im.size == (500, 300)


def test_contrast_is_stretched(tmp_path):
    src = tmp_path / "flat.png"
    im = Image.new("L", (10, 10), 100)
    im.putpixel((0, 0), 120)
    im.save(src)
    out = ImagePreprocessor().preprocess(src)
    with Image.open(out) as res:
        lo, hi = res.getextrema()
    assert (lo, hi) == (0, 255)


def test_failure_returns_original_path(tmp_path):
    bogus = tmp_path / "not_an_image.png"
    bogus.write_text("definitely not a png")
    assert ImagePreprocessor().preprocess(bogus) == bogus
    assert not (tmp_path / "not_an_image.png.pre.png").exists()
