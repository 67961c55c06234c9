from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol

from src.core.errors import ImageDecodeError

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(image/[A-Za-z0-9.+-]+);base64,(.*)$", re.DOTALL)

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}

# Thresholds for the byte-pattern blank heuristic.
MIN_SIGNATURE_BYTES = 500
SMALL_SIGNATURE_BYTES = 1000
WHITE_RATIO_THRESHOLD = 0.95
WHITE_HEX_PATTERN = "ffffff"


@dataclass(frozen=True)
class DecodedImage:
    """Raw bytes of an embedded image with its media type."""
    media_type: str
    data: bytes


# PUBLIC_INTERFACE
def is_embedded_image(value: object) -> bool:
    """Return True when value carries the data-URL image prefix (payload not checked)."""
    return isinstance(value, str) and _DATA_URL_RE.match(value) is not None


# PUBLIC_INTERFACE
def extension_for(value: object) -> str:
    """File extension matching the data-URL media type; "png" when unknown or absent."""
    match = _DATA_URL_RE.match(value) if isinstance(value, str) else None
    if match is None:
        return "png"
    return _EXTENSIONS.get(match.group(1).lower(), "png")


# PUBLIC_INTERFACE
def decode_image(value: object) -> Optional[DecodedImage]:
    """
    Decode a `data:image/<type>;base64,<payload>` string.

    Returns:
        DecodedImage, or None when value does not have the data-URL image shape
        (empty strings, fallback markers such as "Nenhuma", non-strings).
    Raises:
        ImageDecodeError: the prefix matches but the base64 payload is malformed.
    """
    if not isinstance(value, str):
        return None
    match = _DATA_URL_RE.match(value)
    if match is None:
        return None
    media_type, payload = match.group(1), match.group(2)
    payload = "".join(payload.split())
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageDecodeError(f"invalid base64 image payload: {exc}") from exc
    return DecodedImage(media_type=media_type, data=data)


class BlankClassifier(Protocol):
    """Strategy deciding whether a captured signature contains any ink."""

    def is_blank(self, value: Optional[str]) -> bool:  # pragma: no cover - protocol
        ...


class BytePatternBlankClassifier:
    """
    Heuristic blank detector working on the encoded bytes, not on pixels.

    The signature pad pre-fills its canvas with white, so an untouched pad encodes
    to a small image and/or one dominated by the `ffffff` byte pattern. This is a
    cheap proxy: very light or sparse signatures can still be reported as blank
    (false negatives for "signed"), and a compressed blank canvas may not always
    show the white pattern. Decode failures are reported as not blank so a real
    signature is never dropped because of a parsing problem.
    """

    def __init__(
        self,
        min_bytes: int = MIN_SIGNATURE_BYTES,
        small_bytes: int = SMALL_SIGNATURE_BYTES,
        white_ratio: float = WHITE_RATIO_THRESHOLD,
    ) -> None:
        self.min_bytes = min_bytes
        self.small_bytes = small_bytes
        self.white_ratio = white_ratio

    # PUBLIC_INTERFACE
    def is_blank(self, value: Optional[str]) -> bool:
        try:
            image = decode_image(value)
        except ImageDecodeError:
            logger.warning("Signature payload could not be decoded; treating it as signed")
            return False
        if image is None:
            return True

        size = len(image.data)
        if size < self.min_bytes:
            return True

        hex_data = image.data.hex()
        white_chars = hex_data.count(WHITE_HEX_PATTERN) * len(WHITE_HEX_PATTERN)
        ratio = white_chars / len(hex_data)
        return ratio > self.white_ratio or size < self.small_bytes


_default_classifier = BytePatternBlankClassifier()


# PUBLIC_INTERFACE
def is_blank(value: Optional[str]) -> bool:
    """Classify a signature with the default byte-pattern heuristic."""
    return _default_classifier.is_blank(value)
