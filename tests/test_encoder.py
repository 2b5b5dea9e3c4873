"""Tests for the receipt image encoder."""

import base64
import io

import pytest

from receipt_invoicer.errors import EncodeError
from receipt_invoicer.graph.nodes.encode import encode, guess_mime_type

from conftest import PNG_BYTES


def test_encode_bytes_returns_standard_base64():
    assert encode(PNG_BYTES) == base64.b64encode(PNG_BYTES).decode("ascii")


def test_encode_strips_data_uri_prefix():
    payload = base64.b64encode(PNG_BYTES).decode("ascii")
    assert encode(f"data:image/png;base64,{payload}") == payload


def test_encode_reads_path(tmp_path):
    path = tmp_path / "receipt.png"
    path.write_bytes(PNG_BYTES)
    assert encode(path) == encode(PNG_BYTES)
    assert encode(str(path)) == encode(PNG_BYTES)


def test_encode_reads_binary_file_object():
    assert encode(io.BytesIO(PNG_BYTES)) == encode(PNG_BYTES)


def test_missing_file_raises_encode_error(tmp_path):
    with pytest.raises(EncodeError):
        encode(tmp_path / "nope.png")


def test_closed_file_raises_encode_error():
    stream = io.BytesIO(PNG_BYTES)
    stream.close()
    with pytest.raises(EncodeError):
        encode(stream)


def test_text_mode_file_raises_encode_error():
    with pytest.raises(EncodeError):
        encode(io.StringIO("not an image"))


def test_no_validation_of_content():
    # Anything readable is encoded; the upload form's accept filter is advisory only
    assert encode(b"plain text") == base64.b64encode(b"plain text").decode("ascii")


@pytest.mark.parametrize(
    "filename, content_type, expected",
    [
        ("receipt.jpg", None, "image/jpeg"),
        ("receipt.JPEG", "", "image/jpeg"),
        ("receipt.webp", "application/octet-stream", "image/webp"),
        ("scan.png", "image/gif", "image/gif"),
        ("scan", None, "image/png"),
        (None, None, "image/png"),
    ],
)
def test_guess_mime_type(filename, content_type, expected):
    assert guess_mime_type(filename, content_type) == expected
