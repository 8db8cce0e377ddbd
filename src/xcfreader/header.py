from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

import pysam

from .errors import HeaderParseError

logger = logging.getLogger(__name__)

_FILEFORMAT_PREFIX = "##fileformat="
_COLUMNS_PREFIX = "#CHROM"
_FIXED_COLUMNS = 8


class Header:
    """Read-only view over a parsed ``pysam.VariantHeader``.

    Contig and string (FILTER/INFO/FORMAT) dictionaries are resolved once, so
    that lookups during record decoding and seeking are plain dict hits.
    """

    def __init__(self, variant_header: pysam.VariantHeader, *, file_format: Optional[str] = None) -> None:
        self.variant_header = variant_header
        self.file_format = file_format

        self._contig_ids: Dict[str, int] = {}
        self._contig_lengths: Dict[str, Optional[int]] = {}
        for name, contig in variant_header.contigs.items():
            self._contig_ids[str(name)] = int(contig.id)
            self._contig_lengths[str(name)] = int(contig.length) if contig.length is not None else None
        self._contig_names: Dict[int, str] = {idx: name for name, idx in self._contig_ids.items()}

        self._strings: Dict[int, str] = {}
        for table in (variant_header.filters, variant_header.info, variant_header.formats):
            for name, meta in table.items():
                self._strings.setdefault(int(meta.id), str(name))

    # -- contig dictionary --------------------------------------------------
    @property
    def has_contigs(self) -> bool:
        return bool(self._contig_ids)

    @property
    def contig_names(self) -> List[str]:
        return sorted(self._contig_ids, key=self._contig_ids.__getitem__)

    def __contains__(self, contig: object) -> bool:
        return contig in self._contig_ids

    def contig_index(self, contig: str) -> Optional[int]:
        return self._contig_ids.get(contig)

    def contig_length(self, contig: str) -> Optional[int]:
        return self._contig_lengths.get(contig)

    def contig_name(self, index: int) -> Optional[str]:
        return self._contig_names.get(index)

    # -- other dictionaries -------------------------------------------------
    def string_name(self, index: int) -> Optional[str]:
        """Resolve a BCF string-dictionary id (FILTER/INFO/FORMAT) to its name."""
        return self._strings.get(index)

    @property
    def samples(self) -> List[str]:
        return [str(s) for s in self.variant_header.samples]

    def __repr__(self) -> str:
        return (
            f"Header(file_format={self.file_format!r}, contigs={len(self._contig_ids)}, "
            f"samples={len(self.variant_header.samples)})"
        )


def parse_header_lines(lines: Iterable[str]) -> Header:
    """Build a ``Header`` from VCF header lines (``##...`` lines then ``#CHROM``).

    Raises ``HeaderParseError`` for a missing ``#CHROM`` line or a line that
    htslib rejects.
    """
    vh = pysam.VariantHeader()
    file_format: Optional[str] = None
    saw_columns = False

    for lineno, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        if not line:
            continue
        if saw_columns:
            raise HeaderParseError(f"Unexpected content after #CHROM line at header line {lineno}")
        if line.startswith(_FILEFORMAT_PREFIX):
            file_format = line[len(_FILEFORMAT_PREFIX):]
            continue
        if line.startswith("##"):
            try:
                vh.add_line(line)
            except ValueError as e:
                raise HeaderParseError(f"Invalid header line {lineno}: {line!r}") from e
            continue
        if line.startswith(_COLUMNS_PREFIX):
            cols = line.split("\t")
            if len(cols) < _FIXED_COLUMNS:
                raise HeaderParseError(f"#CHROM line has {len(cols)} columns; expected at least {_FIXED_COLUMNS}")
            try:
                for sample in cols[_FIXED_COLUMNS + 1:]:
                    vh.add_sample(sample)
            except ValueError as e:
                raise HeaderParseError(f"Invalid sample list in #CHROM line: {e}") from e
            saw_columns = True
            continue
        raise HeaderParseError(f"Header line {lineno} does not start with '#': {line[:40]!r}")

    if not saw_columns:
        raise HeaderParseError("Header ended without a #CHROM line")

    header = Header(vh, file_format=file_format)
    logger.debug("Parsed header: %r", header)
    return header
