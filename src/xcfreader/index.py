"""Side-car CSI / tabix index reading and region queries.

Both layouts are BGZF-compressed binary files. Offsets stored in them are BGZF
virtual offsets (``compressed block start << 16 | offset within block``).
"""

from __future__ import annotations

import gzip
import logging
import struct
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import IndexUnavailableError

logger = logging.getLogger(__name__)

INDEX_SUFFIXES = (".csi", ".tbi")

CSI_MAGIC = b"CSI\x01"
TBI_MAGIC = b"TBI\x01"

TBI_MIN_SHIFT = 14
TBI_DEPTH = 5
_TABIX_CONF = struct.Struct("<7i")  # format, col_seq, col_beg, col_end, meta, skip, l_nm


@dataclass(frozen=True)
class Chunk:
    """A half-open range of virtual file offsets."""

    begin: int
    end: int


@dataclass
class ReferenceBins:
    """Binning index of one reference sequence."""

    bins: Dict[int, List[Chunk]] = field(default_factory=dict)
    loffsets: Dict[int, int] = field(default_factory=dict)  # CSI only
    intervals: List[int] = field(default_factory=list)  # TBI linear index only


def bin_first(level: int) -> int:
    """Id of the first bin on ``level`` (0 is the root)."""
    return ((1 << (3 * level)) - 1) // 7


def reg2bins(start: int, end: int, min_shift: int, depth: int) -> List[int]:
    """All bins that may hold features overlapping ``[start, end)`` (0-based)."""
    if start >= end:
        return []
    shift = min_shift + depth * 3
    max_end = 1 << shift
    if end > max_end:
        end = max_end
    end -= 1
    bins: List[int] = []
    offset = 0
    for level in range(depth + 1):
        bins.extend(range(offset + (start >> shift), offset + (end >> shift) + 1))
        shift -= 3
        offset += 1 << (3 * level)
    return bins


@dataclass
class VariantIndex:
    """A parsed CSI or TBI index."""

    kind: str  # "csi" or "tbi"
    min_shift: int
    depth: int
    references: List[ReferenceBins]
    names: List[str] = field(default_factory=list)
    n_no_coor: Optional[int] = None

    @property
    def max_position(self) -> int:
        return 1 << (self.min_shift + self.depth * 3)

    def reference_id(self, name: str) -> Optional[int]:
        """Resolve a contig name through the tabix name table, if the index has one."""
        try:
            return self.names.index(name)
        except ValueError:
            return None

    def _min_offset(self, ref: ReferenceBins, start: int) -> int:
        if self.kind == "tbi":
            if not ref.intervals:
                return 0
            i = min(start >> self.min_shift, len(ref.intervals) - 1)
            return ref.intervals[i]

        # CSI: loffset of the closest bin at or left of/above the leaf bin of start
        b = bin_first(self.depth) + (start >> self.min_shift)
        while True:
            if b in ref.loffsets:
                return ref.loffsets[b]
            if b == 0:
                return 0
            first_sibling = (((b - 1) >> 3) << 3) + 1
            b = b - 1 if b > first_sibling else (b - 1) >> 3

    def query(self, ref_id: int, start: int, end: Optional[int] = None) -> List[Chunk]:
        """Chunks that may hold records overlapping ``[start, end)`` (0-based).

        Returned chunks are sorted by begin offset and merged where they
        overlap or touch. ``end=None`` means the end of the reference.
        """
        if ref_id < 0 or ref_id >= len(self.references):
            return []
        ref = self.references[ref_id]
        stop = self.max_position if end is None else min(end, self.max_position)
        start = max(0, start)
        if start >= stop:
            return []

        min_off = self._min_offset(ref, start)
        candidates = [
            c
            for b in reg2bins(start, stop, self.min_shift, self.depth)
            for c in ref.bins.get(b, ())
            if c.end > min_off
        ]
        candidates.sort(key=lambda c: (c.begin, c.end))

        merged: List[Chunk] = []
        for c in candidates:
            if merged and c.begin <= merged[-1].end:
                if c.end > merged[-1].end:
                    merged[-1] = Chunk(merged[-1].begin, c.end)
            else:
                merged.append(c)
        return merged


class _Cursor:
    """Little-endian struct reader over an in-memory buffer."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.off = 0

    def take(self, fmt: str) -> Tuple:
        st = struct.Struct("<" + fmt)
        if self.off + st.size > len(self.data):
            raise IndexUnavailableError(f"Index truncated at byte {self.off}")
        values = st.unpack_from(self.data, self.off)
        self.off += st.size
        return values

    def take_bytes(self, n: int) -> bytes:
        if n < 0 or self.off + n > len(self.data):
            raise IndexUnavailableError(f"Index truncated at byte {self.off}")
        out = self.data[self.off : self.off + n]
        self.off += n
        return out

    @property
    def remaining(self) -> int:
        return len(self.data) - self.off


def _load(path: str | Path, magic: bytes) -> _Cursor:
    try:
        with gzip.open(path, "rb") as fh:
            data = fh.read()
    except (EOFError, zlib.error) as e:
        raise IndexUnavailableError(f"Cannot decompress index {path}: {e}") from e
    cur = _Cursor(data)
    if cur.take_bytes(len(magic)) != magic:
        raise IndexUnavailableError(f"{path} is not a {magic[:3].decode()} index")
    return cur


def _parse_names(blob: bytes) -> List[str]:
    return [n.decode("utf-8", errors="replace") for n in blob.split(b"\x00") if n]


def _read_chunks(cur: _Cursor) -> List[Chunk]:
    (n_chunk,) = cur.take("i")
    if n_chunk < 0:
        raise IndexUnavailableError("Negative chunk count in index")
    chunks = []
    for _ in range(n_chunk):
        beg, end = cur.take("QQ")
        chunks.append(Chunk(beg, end))
    return chunks


def _read_trailer(cur: _Cursor) -> Optional[int]:
    if cur.remaining >= 8:
        return cur.take("Q")[0]
    return None


def read_csi(path: str | Path) -> VariantIndex:
    """Parse a CSI index (as written by ``bcftools index`` or ``tabix --csi``)."""
    cur = _load(path, CSI_MAGIC)
    min_shift, depth, l_aux = cur.take("iii")
    if l_aux < 0 or not (0 < min_shift < 32) or not (0 <= depth < 16):
        raise IndexUnavailableError(f"Invalid CSI parameters in {path}")
    aux = cur.take_bytes(l_aux)

    names: List[str] = []
    if l_aux >= _TABIX_CONF.size:
        l_nm = _TABIX_CONF.unpack_from(aux, 0)[6]
        names = _parse_names(aux[_TABIX_CONF.size : _TABIX_CONF.size + l_nm])

    pseudo_bin = bin_first(depth + 1) + 1
    (n_ref,) = cur.take("i")
    references: List[ReferenceBins] = []
    for _ in range(max(n_ref, 0)):
        ref = ReferenceBins()
        (n_bin,) = cur.take("i")
        for _ in range(max(n_bin, 0)):
            bin_id, loffset = cur.take("IQ")
            chunks = _read_chunks(cur)
            if bin_id == pseudo_bin:
                continue
            ref.bins[bin_id] = chunks
            ref.loffsets[bin_id] = loffset
        references.append(ref)

    return VariantIndex(
        kind="csi",
        min_shift=min_shift,
        depth=depth,
        references=references,
        names=names,
        n_no_coor=_read_trailer(cur),
    )


def read_tabix(path: str | Path) -> VariantIndex:
    """Parse a tabix (``.tbi``) index."""
    cur = _load(path, TBI_MAGIC)
    (n_ref,) = cur.take("i")
    l_nm = cur.take("7i")[6]
    names = _parse_names(cur.take_bytes(l_nm))

    pseudo_bin = bin_first(TBI_DEPTH + 1) + 1
    references: List[ReferenceBins] = []
    for _ in range(max(n_ref, 0)):
        ref = ReferenceBins()
        (n_bin,) = cur.take("i")
        for _ in range(max(n_bin, 0)):
            (bin_id,) = cur.take("I")
            chunks = _read_chunks(cur)
            if bin_id != pseudo_bin:
                ref.bins[bin_id] = chunks
        (n_intv,) = cur.take("i")
        ref.intervals = list(cur.take(f"{n_intv}Q")) if n_intv > 0 else []
        references.append(ref)

    return VariantIndex(
        kind="tbi",
        min_shift=TBI_MIN_SHIFT,
        depth=TBI_DEPTH,
        references=references,
        names=names,
        n_no_coor=_read_trailer(cur),
    )


_READERS = {".csi": read_csi, ".tbi": read_tabix}


def find_index(path: Optional[str | Path]) -> Optional[VariantIndex]:
    """Return the first side-car index next to ``path`` that exists and parses.

    ``<path>.csi`` is tried before ``<path>.tbi``. Failures are logged and
    treated as "no index".
    """
    if path is None:
        return None
    for suffix in INDEX_SUFFIXES:
        index_path = Path(str(path) + suffix)
        if not index_path.is_file():
            continue
        try:
            index = _READERS[suffix](index_path)
        except (IndexUnavailableError, OSError) as e:
            logger.debug("Ignoring unusable index %s: %s", index_path, e)
            continue
        logger.debug("Using %s index %s (%d references)", index.kind, index_path, len(index.references))
        return index
    return None
