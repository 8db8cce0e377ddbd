"""xcfreader: uniform reading of VCF and BCF variant files.

Opens plain or BGZF-compressed VCF/BCF without being told the encoding,
reads records one at a time and seeks to genomic regions, using a side-car
``.csi``/``.tbi`` index when one is available:

    from xcfreader import open_path

    with open_path("calls.vcf.gz") as reader:
        if reader.skip_to("chr1:2000-"):
            rec = reader.next_record()

"""

from __future__ import annotations

from .detect import sniff
from .errors import (
    FormatDetectionError,
    HeaderParseError,
    IndexUnavailableError,
    OutOfBoundsRegionError,
    OutOfOrderContigError,
    RecordParseError,
    UnknownContigError,
    UnsupportedCompressionError,
    XcfError,
)
from .header import Header
from .index import VariantIndex, find_index
from .models import CompressionKind, ContainerFormat, GenomicRegion, VariantRecord
from .reader import Reader, open_path, open_reader

__all__ = [
    "__version__",
    "CompressionKind",
    "ContainerFormat",
    "FormatDetectionError",
    "GenomicRegion",
    "Header",
    "HeaderParseError",
    "IndexUnavailableError",
    "OutOfBoundsRegionError",
    "OutOfOrderContigError",
    "Reader",
    "RecordParseError",
    "UnknownContigError",
    "UnsupportedCompressionError",
    "VariantIndex",
    "VariantRecord",
    "XcfError",
    "find_index",
    "open_path",
    "open_reader",
    "sniff",
]

__version__ = "0.1.0"
