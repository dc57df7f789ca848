"""Encoding of file content to and from the host's blob transport format."""

from __future__ import annotations

import base64
from dataclasses import dataclass

from buildstore.core import BlobPayload

BASE64 = "base64"
UTF8 = "utf-8"
SUPPORTED_ENCODINGS = (BASE64, UTF8)


def payload_to_bytes(content: str, encoding: str) -> bytes:
    """Turn a transport payload into raw blob bytes.

    Raises:
        ValueError: If the encoding is not supported.
    """
    if encoding == BASE64:
        # GitHub wraps base64 at 60 columns; b64decode skips the newlines.
        return base64.b64decode(content)
    if encoding in (UTF8, "utf8"):
        return content.encode("utf-8")
    raise ValueError(f"Unsupported blob encoding: {encoding}")


def bytes_to_payload(data: bytes, encoding: str = BASE64) -> BlobPayload:
    """Turn raw blob bytes into a transport payload."""
    if encoding == BASE64:
        return BlobPayload(content=base64.b64encode(data).decode("ascii"), encoding=BASE64)
    if encoding == UTF8:
        return BlobPayload(content=data.decode("utf-8", errors="replace"), encoding=UTF8)
    raise ValueError(f"Unsupported blob encoding: {encoding}")


@dataclass(frozen=True)
class ContentCodec:
    """Converts file text to blob payloads and back.

    The reader and writer both take one of these so that every caller shares
    the same encode/decode rules.
    """

    encoding: str = BASE64

    def __post_init__(self) -> None:
        if self.encoding not in SUPPORTED_ENCODINGS:
            raise ValueError(f"Unsupported blob encoding: {self.encoding}")

    def encode(self, text: str) -> BlobPayload:
        return bytes_to_payload(text.encode("utf-8"), self.encoding)

    def decode(self, payload: BlobPayload) -> str:
        data = payload_to_bytes(payload.content, payload.encoding)
        return data.decode("utf-8", errors="replace")


DEFAULT_CODEC = ContentCodec()
