"""Compression and container-format sniffing.

Everything here peeks at buffered bytes and never consumes them, so the same
buffered source can be handed to whichever decoder is chosen afterwards.
"""

from __future__ import annotations

import io
import logging
import zlib
from typing import BinaryIO, Optional, Tuple

from .errors import FormatDetectionError, UnsupportedCompressionError
from .models import CompressionKind, ContainerFormat

logger = logging.getLogger(__name__)

SNIFF_BUFFER_SIZE = 64 * 1024

GZIP_MAGIC = b"\x1f\x8b"
BCF_MAGIC = b"BCF"
VCF_HEADER_LITERAL = b"##fileformat=VCF"

_FOREIGN_COMPRESSION_MAGIC = (
    (b"BZh", "bzip2"),
    (b"\xfd7zXZ\x00", "xz"),
    (b"\x28\xb5\x2f\xfd", "zstd"),
)


class _FillingReader(io.RawIOBase):
    """Raw adapter whose reads come back full unless the source is exhausted.

    ``BufferedReader.peek`` fills its buffer with a single raw read, which on a
    pipe may return only a byte or two.
    """

    def __init__(self, source: BinaryIO) -> None:
        self._source = source

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        view = memoryview(b).cast("B")
        n = 0
        while n < len(view):
            chunk = self._source.read(len(view) - n)
            if not chunk:
                break
            view[n : n + len(chunk)] = chunk
            n += len(chunk)
        return n

    def close(self) -> None:
        if not self.closed:
            self._source.close()
        super().close()


def ensure_peekable(source: BinaryIO) -> BinaryIO:
    """Return a source whose ``peek`` exposes enough leading bytes to sniff.

    Seekable sources (regular files, in-memory buffers) are returned as is when
    they already support ``peek``, else wrapped in a BufferedReader.
    Non-seekable sources are read through ``_FillingReader`` so that short
    reads cannot hide the magic bytes.
    """
    if source.seekable():
        if hasattr(source, "peek"):
            return source
        return io.BufferedReader(source, buffer_size=SNIFF_BUFFER_SIZE)  # type: ignore[arg-type]
    return io.BufferedReader(_FillingReader(source), buffer_size=SNIFF_BUFFER_SIZE)


def _peek(source: BinaryIO, size: int) -> bytes:
    # peek() may return more or fewer bytes than asked for; it never advances.
    return bytes(source.peek(size))  # type: ignore[attr-defined]


def detect_compression(source: BinaryIO) -> Optional[CompressionKind]:
    """Return ``CompressionKind.BGZF`` if the source starts with the gzip magic."""
    head = _peek(source, 8)
    if head[: len(GZIP_MAGIC)] == GZIP_MAGIC:
        return CompressionKind.BGZF

    for magic, codec in _FOREIGN_COMPRESSION_MAGIC:
        if head[: len(magic)] == magic:
            raise UnsupportedCompressionError(
                f"Input is {codec}-compressed; only BGZF (bgzip) compression is supported",
                codec=codec,
            )
    return None


def _inflate_prefix(buf: bytes, want: int) -> bytes:
    """Inflate the leading gzip member(s) of ``buf`` until ``want`` bytes are out."""
    out = bytearray()
    data = buf
    while data and len(out) < want:
        dobj = zlib.decompressobj(16 + zlib.MAX_WBITS)
        try:
            out += dobj.decompress(data, want - len(out))
        except zlib.error as e:
            raise FormatDetectionError(f"Corrupt gzip/BGZF stream: {e}") from e
        if not dobj.eof:
            # Ran out of peeked input or reached the output limit.
            break
        data = dobj.unused_data
    return bytes(out)


def detect_format(source: BinaryIO, compression: Optional[CompressionKind]) -> ContainerFormat:
    """Classify the container encoding from the leading bytes.

    Strict: raises ``FormatDetectionError`` when neither the BCF magic nor the
    VCF header literal is present.
    """
    buf = _peek(source, SNIFF_BUFFER_SIZE)
    if compression is CompressionKind.BGZF:
        buf = _inflate_prefix(buf, len(VCF_HEADER_LITERAL))

    if buf[: len(BCF_MAGIC)] == BCF_MAGIC:
        return ContainerFormat.BINARY
    if buf[: len(VCF_HEADER_LITERAL)] == VCF_HEADER_LITERAL:
        return ContainerFormat.TEXT

    raise FormatDetectionError(
        "Unrecognized variant file: expected BCF magic or a '##fileformat=VCF' header line"
    )


def sniff(source: BinaryIO) -> Tuple[ContainerFormat, Optional[CompressionKind]]:
    """Return ``(format, compression)`` for a peekable source."""
    compression = detect_compression(source)
    fmt = detect_format(source, compression)
    logger.debug(
        "Detected format=%s compression=%s",
        fmt.value,
        compression.value if compression is not None else "none",
    )
    return fmt, compression
