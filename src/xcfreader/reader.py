"""Pipeline assembly and the unified record reader.

A reader runs exactly one of two backends for its whole lifetime:

- ``StreamingBackend``: sequential decoding, optionally through a gzip
  (BGZF) decompressor. Forward-only.
- ``IndexedBackend``: BGZF random access plus a side-car index. The only
  backend that can reposition the stream.

Each backend carries its container format, which gives the four
(encoding x access-mode) pipelines.
"""

from __future__ import annotations

import gzip
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from Bio import bgzf

from .codecs import BinaryCodec, Codec, TextCodec
from .detect import ensure_peekable, sniff
from .header import Header
from .index import VariantIndex, find_index
from .models import CompressionKind, ContainerFormat, GenomicRegion, VariantRecord

logger = logging.getLogger(__name__)


@dataclass
class StreamingBackend:
    format: ContainerFormat
    codec: Codec
    compression: Optional[CompressionKind] = None


@dataclass
class IndexedBackend:
    format: ContainerFormat
    codec: Codec
    stream: bgzf.BgzfReader
    raw: BinaryIO
    index: VariantIndex

    @property
    def compression(self) -> CompressionKind:
        return CompressionKind.BGZF

    def seek(self, virtual_offset: int) -> None:
        self.stream.seek(virtual_offset)

    def seek_to_end(self) -> None:
        """Position the stream at end-of-file so the next read reports end-of-stream."""
        size = self.raw.seek(0, io.SEEK_END)
        self.stream.seek(bgzf.make_virtual_offset(size, 0))


Backend = Union[StreamingBackend, IndexedBackend]


def _make_codec(fmt: ContainerFormat, stream: BinaryIO) -> Codec:
    if fmt is ContainerFormat.BINARY:
        return BinaryCodec(stream)
    return TextCodec(stream)


class Reader:
    """Record source over whichever backend ``open_reader`` selected.

    Not thread-safe: one reader must not be used from two threads at once.
    """

    def __init__(self, backend: Backend, header: Header, *, source: Optional[BinaryIO] = None) -> None:
        self._backend = backend
        self._header = header
        self._source = source
        self._pending: Optional[VariantRecord] = None

    @property
    def header(self) -> Header:
        return self._header

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def format(self) -> ContainerFormat:
        return self._backend.format

    @property
    def compression(self) -> Optional[CompressionKind]:
        return self._backend.compression

    @property
    def is_indexed(self) -> bool:
        return isinstance(self._backend, IndexedBackend)

    def next_record(self) -> Optional[VariantRecord]:
        """Return the next record, or ``None`` at end of stream."""
        if self._pending is not None:
            rec, self._pending = self._pending, None
            return rec
        return self._backend.codec.read_record()

    def skip_to(self, region: GenomicRegion | str) -> bool:
        """Position the reader at the first record overlapping ``region``.

        See ``xcfreader.seek.skip_to``.
        """
        from .seek import skip_to

        if isinstance(region, str):
            region = GenomicRegion.parse(region)
        return skip_to(self, region)

    def push_back(self, record: VariantRecord) -> None:
        if self._pending is not None:
            raise RuntimeError("Look-ahead slot is already occupied")
        self._pending = record

    def discard_pending(self) -> None:
        self._pending = None

    def __iter__(self) -> Iterator[VariantRecord]:
        while True:
            rec = self.next_record()
            if rec is None:
                return
            yield rec

    def close(self) -> None:
        stream = self._backend.codec.stream
        if stream is not self._source:
            stream.close()
        if self._source is not None:
            self._source.close()

    def __enter__(self) -> "Reader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        comp = self.compression.value if self.compression is not None else "none"
        mode = "indexed" if self.is_indexed else "streaming"
        return f"Reader(format={self.format.value}, compression={comp}, {mode})"


def open_reader(
    source: BinaryIO,
    path: Optional[str | Path] = None,
    *,
    use_index: bool = True,
    index: Optional[VariantIndex] = None,
) -> Reader:
    """Sniff ``source``, assemble the decoding pipeline and read the header.

    Parameters
    ----------
    source:
        Binary stream positioned at the start of a VCF or BCF file.
    path:
        Optional file path; only used to look for ``<path>.csi`` / ``<path>.tbi``.
    use_index:
        Set to False to always stream sequentially.
    index:
        A pre-loaded index to use instead of looking for a side-car file.
    """
    source = ensure_peekable(source)
    fmt, compression = sniff(source)

    if use_index and index is None and path is not None:
        index = find_index(path)
    if not use_index:
        index = None

    if index is not None and compression is CompressionKind.BGZF and not source.seekable():
        logger.warning("Index available but the input is not seekable; reading sequentially")
        index = None

    backend: Backend
    if compression is CompressionKind.BGZF and index is not None:
        stream = bgzf.BgzfReader(fileobj=source, mode="rb")
        backend = IndexedBackend(fmt, _make_codec(fmt, stream), stream, source, index)
    elif compression is CompressionKind.BGZF:
        stream = gzip.GzipFile(fileobj=source, mode="rb")
        backend = StreamingBackend(fmt, _make_codec(fmt, stream), compression)
    else:
        backend = StreamingBackend(fmt, _make_codec(fmt, source))

    logger.info(
        "Opened %s as %s (%s, %s)",
        path if path is not None else "<stream>",
        fmt.value,
        compression.value if compression is not None else "uncompressed",
        "indexed" if isinstance(backend, IndexedBackend) else "streaming",
    )

    header = backend.codec.read_header()
    return Reader(backend, header, source=source)


def open_path(path: str | Path, **kwargs) -> Reader:
    """Open a local VCF/BCF file, looking for a side-car index next to it."""
    fh = open(path, "rb")
    try:
        return open_reader(fh, str(path), **kwargs)
    except BaseException:
        fh.close()
        raise
