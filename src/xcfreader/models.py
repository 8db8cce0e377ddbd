from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class ContainerFormat(str, Enum):
    """Record encoding of a variant file."""

    TEXT = "vcf"
    BINARY = "bcf"


class CompressionKind(str, Enum):
    """Outer compression envelope. An uncompressed source has no kind (``None``)."""

    BGZF = "bgzf"


@dataclass(frozen=True)
class VariantRecord:
    """One variant entry.

    Coordinates are 1-based, as written in the CHROM/POS columns.

    Attributes
    ----------
    chrom:
        Contig name.
    pos:
        1-based start position.
    end:
        1-based inclusive end position, or None when the decoder cannot tell
        (e.g. a VCF line with REF ``.`` and no INFO/END).
    id:
        Variant identifier, or None for ``.``.
    ref:
        Reference allele.
    alts:
        Alternate alleles (empty for ``.``).
    qual:
        Phred-scaled quality, or None when missing.
    filters:
        FILTER names (empty when missing).
    info:
        Raw INFO column for VCF lines; None for BCF records.
    """

    chrom: str
    pos: int
    end: Optional[int]
    id: Optional[str]
    ref: str
    alts: Tuple[str, ...]
    qual: Optional[float]
    filters: Tuple[str, ...]
    info: Optional[str] = None


_REGION_RE = re.compile(r"^(?P<contig>[^:]+?)(?::(?P<start>[\d,]+)?(?:-(?P<end>[\d,]+)?)?)?$")


@dataclass(frozen=True)
class GenomicRegion:
    """A seek target.

    ``start`` is 1-based and inclusive (None means position 1). ``end`` is
    exclusive (None means "to the end of the stream").
    """

    contig: str
    start: Optional[int] = None
    end: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.contig:
            raise ValueError("Region contig must not be empty")
        if self.start is not None and self.start < 1:
            raise ValueError(f"Region start must be >= 1, got {self.start}")
        if self.end is not None and self.end <= self.first:
            raise ValueError(f"Region end ({self.end}) must be greater than start ({self.first})")

    @property
    def first(self) -> int:
        """Resolved 1-based start position."""
        return self.start if self.start is not None else 1

    @classmethod
    def parse(cls, text: str) -> "GenomicRegion":
        """Parse ``ctg``, ``ctg:start``, ``ctg:start-`` or ``ctg:start-end``.

        The string form is inclusive on both ends (samtools style), so
        ``chr1:2000-2100`` becomes ``GenomicRegion("chr1", 2000, 2101)``.
        """
        m = _REGION_RE.match(text.strip())
        if m is None:
            raise ValueError(f"Invalid region string: {text!r}")
        start_s = m.group("start")
        end_s = m.group("end")
        start = int(start_s.replace(",", "")) if start_s else None
        end = int(end_s.replace(",", "")) + 1 if end_s else None
        return cls(contig=m.group("contig"), start=start, end=end)

    def __str__(self) -> str:
        if self.start is None and self.end is None:
            return self.contig
        if self.end is None:
            return f"{self.contig}:{self.first}-"
        return f"{self.contig}:{self.first}-{self.end - 1}"
