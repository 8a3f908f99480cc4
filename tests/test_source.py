import pytest
from PIL import Image

from hassel.errors import DecodeFailure, InvalidInput
from hassel.source import is_image_type, load_source, load_source_file

from conftest import image_bytes, make_photo


def test_load_captures_dimensions():
    source = load_source(image_bytes(make_photo((300, 200)), "PNG"), "image/png", "a.png")

    assert source.dimensions == (300, 200)
    assert source.media_type == "image/png"
    assert source.size == len(source.data)


@pytest.mark.parametrize("media_type", ["text/plain", "application/pdf", "", None])
def test_non_image_is_rejected_before_decoding(media_type):
    # Valid pixels, wrong declared type: still rejected.
    with pytest.raises(InvalidInput):
        load_source(image_bytes(make_photo((10, 10)), "PNG"), media_type, "a.png")


def test_unreadable_bytes():
    with pytest.raises(DecodeFailure):
        load_source(b"\x89PNG but not really", "image/png", "broken.png")


def test_exif_rotation_swaps_dimensions():
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90 CW on display
    data = image_bytes(make_photo((300, 200)), "JPEG", exif=exif)

    assert load_source(data, "image/jpeg", "phone.jpg").dimensions == (200, 300)


def test_is_image_type():
    assert is_image_type("image/jpeg")
    assert is_image_type("IMAGE/PNG")
    assert not is_image_type("video/mp4")
    assert not is_image_type(None)


def test_load_source_file(tmp_path):
    path = tmp_path / "pic.webp"
    path.write_bytes(image_bytes(make_photo((40, 30)), "WEBP"))

    source = load_source_file(path)
    assert source.name == "pic.webp"
    assert source.media_type == "image/webp"
    assert source.dimensions == (40, 30)


def test_load_source_file_rejects_other_files(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("hello")

    with pytest.raises(InvalidInput):
        load_source_file(path)


def test_plugin_syntax_error_is_a_decode_failure(monkeypatch):
    def bad_header(*args, **kwargs):
        raise SyntaxError("not a valid header")

    monkeypatch.setattr(Image, "open", bad_header)

    with pytest.raises(DecodeFailure):
        load_source(b"\x00\x01\x02", "image/x-icon", "broken.ico")
