"""Single-record decoders for VCF lines and BCF records.

Both codecs read from a binary stream with ``readline``/``read`` and keep no
read-ahead of their own: after the stream is repositioned, the next
``read_record`` call decodes from the new position.
"""

from __future__ import annotations

import logging
import struct
from typing import BinaryIO, List, Optional, Tuple, Union

from .errors import HeaderParseError, RecordParseError
from .header import Header, parse_header_lines
from .models import VariantRecord

logger = logging.getLogger(__name__)

_MISSING = "."


def _read_exact(stream: BinaryIO, n: int, what: str) -> bytes:
    data = stream.read(n)
    if len(data) != n:
        raise RecordParseError(f"Truncated {what}: expected {n} bytes, got {len(data)}")
    return data


# ---------------------------------------------------------------------------
# VCF
# ---------------------------------------------------------------------------


def _info_end(info: str) -> Optional[int]:
    for entry in info.split(";"):
        if entry.startswith("END="):
            try:
                return int(entry[4:])
            except ValueError:
                raise RecordParseError(f"Invalid INFO/END value: {entry!r}") from None
    return None


def parse_vcf_line(line: str) -> VariantRecord:
    """Decode the fixed columns of one VCF data line."""
    cols = line.rstrip("\r\n").split("\t")
    if len(cols) < 8:
        raise RecordParseError(f"VCF line has {len(cols)} columns; expected at least 8: {line[:60]!r}")
    chrom, pos_s, vid, ref, alt, qual_s, filt, info = cols[:8]
    try:
        pos = int(pos_s)
    except ValueError:
        raise RecordParseError(f"Invalid POS {pos_s!r} on {chrom}") from None

    try:
        qual = None if qual_s == _MISSING else float(qual_s)
    except ValueError:
        raise RecordParseError(f"Invalid QUAL {qual_s!r} at {chrom}:{pos}") from None

    end = _info_end(info) if info != _MISSING else None
    if end is None and ref and ref != _MISSING:
        end = pos + len(ref) - 1

    return VariantRecord(
        chrom=chrom,
        pos=pos,
        end=end,
        id=None if vid == _MISSING else vid,
        ref=ref,
        alts=() if alt == _MISSING else tuple(alt.split(",")),
        qual=qual,
        filters=() if filt == _MISSING else tuple(filt.split(";")),
        info=info,
    )


class TextCodec:
    """VCF decoder over a binary line stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def read_header(self) -> Header:
        lines: List[str] = []
        while True:
            raw = self.stream.readline()
            if not raw:
                raise HeaderParseError("Unexpected end of file inside the VCF header")
            try:
                line = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise HeaderParseError(f"VCF header is not valid UTF-8: {e}") from e
            if not lines and not line.startswith("##fileformat=VCF"):
                raise HeaderParseError("VCF header must start with a ##fileformat line")
            if not line.startswith("#"):
                raise HeaderParseError("VCF header ended without a #CHROM line")
            lines.append(line)
            if line.startswith("#CHROM"):
                return parse_header_lines(lines)

    def read_record(self) -> Optional[VariantRecord]:
        """Decode the next data line; ``None`` at end of stream."""
        while True:
            raw = self.stream.readline()
            if not raw:
                return None
            if raw.startswith(b"#") or not raw.strip():
                continue
            try:
                line = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise RecordParseError(f"VCF line is not valid UTF-8: {e}") from e
            return parse_vcf_line(line)


# ---------------------------------------------------------------------------
# BCF
# ---------------------------------------------------------------------------

# Typed-value type codes of the BCF2 format
_BT_MISSING = 0
_BT_INT8 = 1
_BT_INT16 = 2
_BT_INT32 = 3
_BT_FLOAT = 5
_BT_CHAR = 7

_INT_FORMATS = {_BT_INT8: ("b", 1), _BT_INT16: ("h", 2), _BT_INT32: ("i", 4)}
_TYPE_SIZES = {_BT_MISSING: 0, _BT_INT8: 1, _BT_INT16: 2, _BT_INT32: 4, _BT_FLOAT: 4, _BT_CHAR: 1}
# missing and end-of-vector sentinels per integer width
_INT_SENTINELS = {
    _BT_INT8: (-128, -127),
    _BT_INT16: (-32768, -32767),
    _BT_INT32: (-2147483648, -2147483647),
}
_FLOAT_MISSING_BITS = 0x7F800001

_SHARED_FIXED = struct.Struct("<iiiIHHI")  # chrom, pos, rlen, qual bits, n_info, n_allele, n_fmt_sample


def _typed_header(buf: bytes, off: int) -> Tuple[int, int, int]:
    """Return (type code, element count, new offset) for the typed value at ``off``."""
    try:
        descriptor = buf[off]
    except IndexError:
        raise RecordParseError("Truncated BCF typed value") from None
    off += 1
    kind = descriptor & 0x0F
    count = descriptor >> 4
    if count == 15:
        sub = buf[off] & 0x0F
        off += 1
        if sub not in _INT_FORMATS:
            raise RecordParseError(f"Invalid BCF overflow count type {sub}")
        fmt, size = _INT_FORMATS[sub]
        (count,) = struct.unpack_from("<" + fmt, buf, off)
        off += size
    if kind not in _TYPE_SIZES:
        raise RecordParseError(f"Unsupported BCF value type {kind}")
    return kind, count, off


def _typed_string(buf: bytes, off: int) -> Tuple[str, int]:
    kind, count, off = _typed_header(buf, off)
    if kind == _BT_MISSING or count == 0:
        return "", off
    if kind != _BT_CHAR:
        raise RecordParseError(f"Expected a BCF character vector, got type {kind}")
    raw = buf[off : off + count]
    return raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace"), off + count


def _typed_ints(buf: bytes, off: int) -> Tuple[List[int], int]:
    kind, count, off = _typed_header(buf, off)
    if kind == _BT_MISSING or count == 0:
        return [], off
    if kind not in _INT_FORMATS:
        raise RecordParseError(f"Expected a BCF integer vector, got type {kind}")
    fmt, size = _INT_FORMATS[kind]
    values = struct.unpack_from(f"<{count}{fmt}", buf, off)
    sentinels = _INT_SENTINELS[kind]
    return [v for v in values if v not in sentinels], off + count * size


class BinaryCodec:
    """BCF2 decoder over a (decompressed) binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream
        self._header: Optional[Header] = None

    def read_header(self) -> Header:
        try:
            magic = _read_exact(self.stream, 5, "BCF magic")
            if magic[:3] != b"BCF" or magic[3] != 2:
                raise HeaderParseError(f"Unsupported BCF version: {magic!r}")
            (l_text,) = struct.unpack("<I", _read_exact(self.stream, 4, "BCF header length"))
            text = _read_exact(self.stream, l_text, "BCF header text")
        except RecordParseError as e:
            raise HeaderParseError(str(e)) from e
        try:
            decoded = text.rstrip(b"\x00").decode("utf-8")
        except UnicodeDecodeError as e:
            raise HeaderParseError(f"BCF header text is not valid UTF-8: {e}") from e
        self._header = parse_header_lines(decoded.splitlines())
        return self._header

    def read_record(self) -> Optional[VariantRecord]:
        """Decode the next record's shared fields; ``None`` at end of stream."""
        if self._header is None:
            raise RecordParseError("BCF header must be read before records")
        head = self.stream.read(8)
        if not head:
            return None
        if len(head) != 8:
            raise RecordParseError(f"Truncated BCF record length prefix ({len(head)} bytes)")
        l_shared, l_indiv = struct.unpack("<II", head)
        shared = _read_exact(self.stream, l_shared, "BCF shared record data")
        _read_exact(self.stream, l_indiv, "BCF per-sample record data")
        return self._decode_shared(shared)

    def _decode_shared(self, buf: bytes) -> VariantRecord:
        if len(buf) < _SHARED_FIXED.size:
            raise RecordParseError("BCF shared record data is shorter than its fixed fields")
        chrom_id, pos0, rlen, qual_bits, _n_info, n_allele, _n_fmt_sample = _SHARED_FIXED.unpack_from(buf, 0)

        chrom = self._header.contig_name(chrom_id)
        if chrom is None:
            raise RecordParseError(f"BCF record refers to unknown contig id {chrom_id}")

        off = _SHARED_FIXED.size
        vid, off = _typed_string(buf, off)
        alleles: List[str] = []
        for _ in range(n_allele):
            allele, off = _typed_string(buf, off)
            alleles.append(allele)
        filter_ids, off = _typed_ints(buf, off)

        filters = []
        for fid in filter_ids:
            name = self._header.string_name(fid)
            if name is None:
                raise RecordParseError(f"BCF record refers to unknown FILTER id {fid}")
            filters.append(name)

        if qual_bits == _FLOAT_MISSING_BITS:
            qual = None
        else:
            (qual,) = struct.unpack("<f", struct.pack("<I", qual_bits))

        pos = pos0 + 1
        return VariantRecord(
            chrom=chrom,
            pos=pos,
            end=pos + rlen - 1 if rlen > 0 else None,
            id=None if vid in ("", _MISSING) else vid,
            ref=alleles[0] if alleles else _MISSING,
            alts=tuple(alleles[1:]),
            qual=qual,
            filters=tuple(filters),
        )


Codec = Union[TextCodec, BinaryCodec]
