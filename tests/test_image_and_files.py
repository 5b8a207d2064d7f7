"""Tests for image normalization and the local file emitter."""
import io

import pytest
from PIL import Image

from question_bank.file_saver import save_as
from question_bank.image_utils import compress_image, from_data_url, to_data_url


def _png_bytes(size, mode="RGBA"):
    buffer = io.BytesIO()
    Image.new(mode, size, (255, 0, 0, 128) if mode == "RGBA" else (255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


def _open(data):
    return Image.open(io.BytesIO(data))


def test_large_image_is_downscaled_to_max_size():
    result = _open(compress_image(_png_bytes((3000, 1500)), max_size=1000))
    assert result.format == "JPEG"
    assert result.size == (1000, 500)


def test_small_image_is_not_upscaled():
    result = _open(compress_image(_png_bytes((120, 80), mode="RGB")))
    assert result.size == (120, 80)
    assert result.format == "JPEG"


def test_portrait_image_is_capped_on_height():
    result = _open(compress_image(_png_bytes((400, 2000)), max_size=500))
    assert result.size == (100, 500)


def test_invalid_image_raises_value_error():
    with pytest.raises(ValueError):
        compress_image(b"not an image")


def test_data_url_round_trip():
    data = _png_bytes((4, 4))
    url = to_data_url(data, "image/png")
    assert url.startswith("data:image/png;base64,")
    assert from_data_url(url) == data


def test_from_data_url_rejects_other_strings():
    with pytest.raises(ValueError):
        from_data_url("https://example.com/a.png")


def test_save_as_writes_bytes_and_text(tmp_path):
    save_as(b"\x00\x01", "blob.bin", tmp_path / "out")
    save_as("题库", "notes.txt", tmp_path / "out")
    assert (tmp_path / "out" / "blob.bin").read_bytes() == b"\x00\x01"
    assert (tmp_path / "out" / "notes.txt").read_text(encoding="utf-8") == "题库"


def test_save_as_rejects_unsupported_types(tmp_path):
    with pytest.raises(TypeError):
        save_as({"a": 1}, "data.json", tmp_path)
