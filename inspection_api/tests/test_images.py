import base64

import pytest

from conftest import blank_image, data_url, signed_image
from src.core.errors import ImageDecodeError
from src.services.images import (
    BytePatternBlankClassifier,
    decode_image,
    extension_for,
    is_blank,
    is_embedded_image,
)


def test_decode_image_returns_media_type_and_bytes():
    image = decode_image(data_url(b"\x89PNG\r\n\x1a\n", "image/png"))

    assert image is not None
    assert image.media_type == "image/png"
    assert image.data == b"\x89PNG\r\n\x1a\n"


@pytest.mark.parametrize("value", [None, "", "Nenhuma", "https://example.com/a.png", "data:text/plain;base64,aGk=", 42])
def test_values_without_data_url_shape_are_absent(value):
    assert decode_image(value) is None
    assert is_embedded_image(value) is False


def test_malformed_payload_raises_decode_error():
    with pytest.raises(ImageDecodeError):
        decode_image("data:image/png;base64,@@not-base64@@")


def test_payload_with_line_breaks_is_decoded():
    encoded = base64.b64encode(b"x" * 120).decode("ascii")
    wrapped = "\n".join(encoded[i:i + 40] for i in range(0, len(encoded), 40))

    image = decode_image(f"data:image/png;base64,{wrapped}")

    assert image.data == b"x" * 120


def test_extension_follows_media_type():
    assert extension_for(data_url(b"1", "image/jpeg")) == "jpg"
    assert extension_for(data_url(b"1", "image/png")) == "png"
    assert extension_for(None) == "png"


def test_absent_signature_is_blank():
    assert is_blank(None) is True
    assert is_blank("") is True
    assert is_blank("Nenhuma") is True


def test_signature_under_minimum_size_is_blank():
    assert is_blank(data_url(bytes(range(256)) + bytes(range(200)))) is True


def test_signature_under_small_threshold_is_blank_even_without_white():
    assert is_blank(data_url(bytes(range(256)) * 3)) is True


def test_white_canvas_is_blank():
    assert is_blank(blank_image()) is True


def test_varied_image_is_not_blank():
    assert is_blank(signed_image()) is False


def test_classification_is_deterministic():
    image = signed_image()

    assert [is_blank(image) for _ in range(3)] == [False, False, False]


def test_malformed_signature_fails_open():
    classifier = BytePatternBlankClassifier()

    assert classifier.is_blank("data:image/png;base64,%%%") is False


def test_white_ratio_threshold_is_configurable():
    # Half white, half varied: 2048 white bytes then 2048 varied bytes.
    image = data_url(b"\xff" * 2048 + bytes(range(256)) * 8)

    assert BytePatternBlankClassifier().is_blank(image) is False
    assert BytePatternBlankClassifier(white_ratio=0.4).is_blank(image) is True
