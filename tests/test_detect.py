import bz2
import gzip
import io

import pytest

from xcfreader.detect import detect_compression, detect_format, ensure_peekable, sniff
from xcfreader.errors import FormatDetectionError, UnsupportedCompressionError
from xcfreader.models import CompressionKind, ContainerFormat

VCF_TEXT = b"##fileformat=VCFv4.2\n#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\n"
BCF_BYTES = b"BCF\x02\x02" + b"\x00" * 16


def _src(data: bytes) -> io.BufferedReader:
    return ensure_peekable(io.BytesIO(data))


def test_sniff_compressed_binary():
    assert sniff(_src(gzip.compress(BCF_BYTES))) == (ContainerFormat.BINARY, CompressionKind.BGZF)


def test_sniff_uncompressed_binary():
    assert sniff(_src(BCF_BYTES)) == (ContainerFormat.BINARY, None)


def test_sniff_text_plain_and_compressed():
    assert sniff(_src(VCF_TEXT)) == (ContainerFormat.TEXT, None)
    assert sniff(_src(gzip.compress(VCF_TEXT))) == (ContainerFormat.TEXT, CompressionKind.BGZF)


def test_text_split_across_gzip_members():
    data = gzip.compress(VCF_TEXT[:5]) + gzip.compress(VCF_TEXT[5:])
    assert sniff(_src(data)) == (ContainerFormat.TEXT, CompressionKind.BGZF)


def test_unrecognized_input_is_rejected():
    with pytest.raises(FormatDetectionError):
        sniff(_src(b"chr1\t100\t.\tA\tG\n"))
    with pytest.raises(FormatDetectionError):
        sniff(_src(gzip.compress(b"hello world, not a variant file")))
    with pytest.raises(FormatDetectionError):
        sniff(_src(b""))


def test_corrupt_gzip_is_a_detection_error():
    src = _src(b"\x1f\x8b" + b"\xff" * 32)
    assert detect_compression(src) is CompressionKind.BGZF
    with pytest.raises(FormatDetectionError):
        detect_format(src, CompressionKind.BGZF)


def test_foreign_compression_is_rejected():
    with pytest.raises(UnsupportedCompressionError) as exc:
        sniff(_src(bz2.compress(VCF_TEXT)))
    assert exc.value.codec == "bzip2"


def test_sniffing_does_not_consume_bytes():
    data = gzip.compress(VCF_TEXT)
    src = _src(data)
    sniff(src)
    assert src.read() == data


def test_ensure_peekable_keeps_buffered_sources():
    src = io.BufferedReader(io.BytesIO(VCF_TEXT))
    assert ensure_peekable(src) is src


@pytest.mark.parametrize(
    "key, expected",
    [
        ("vcf", (ContainerFormat.TEXT, None)),
        ("vcf_gz", (ContainerFormat.TEXT, CompressionKind.BGZF)),
        ("bcf", (ContainerFormat.BINARY, CompressionKind.BGZF)),
        ("bcf_uncompressed", (ContainerFormat.BINARY, None)),
    ],
)
def test_sniff_toy_files(toy, key, expected):
    with open(toy[key], "rb") as fh:
        assert sniff(fh) == expected


class _Trickle(io.RawIOBase):
    """Non-seekable stream that hands out one byte per read, like a slow pipe."""

    def __init__(self, data: bytes) -> None:
        self._buf = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        chunk = self._buf.read(min(1, len(b)))
        b[: len(chunk)] = chunk
        return len(chunk)


def test_sniff_short_reads_from_unseekable_source():
    data = gzip.compress(VCF_TEXT)
    src = ensure_peekable(_Trickle(data))
    assert sniff(src) == (ContainerFormat.TEXT, CompressionKind.BGZF)
    assert src.read() == data


def test_sniff_short_reads_uncompressed_binary():
    src = ensure_peekable(_Trickle(BCF_BYTES))
    assert sniff(src) == (ContainerFormat.BINARY, None)
