"""Error types raised by xcfreader.

I/O failures from the underlying stream are not wrapped; they surface as the
``OSError`` raised by the stream itself.
"""

from __future__ import annotations

from typing import Optional


class XcfError(RuntimeError):
    """Base class for all xcfreader errors."""


class FormatDetectionError(XcfError):
    """Raised when neither the BCF magic nor the VCF header literal is found."""


class UnsupportedCompressionError(XcfError):
    """Raised when the source uses a compression other than BGZF."""

    def __init__(self, message: str, *, codec: str) -> None:
        super().__init__(message)
        self.codec = codec


class HeaderParseError(XcfError):
    """Raised when the file header cannot be read or parsed."""


class RecordParseError(XcfError):
    """Raised when a single VCF line or BCF record is malformed."""


class UnknownContigError(XcfError):
    """Raised when a region names a contig the header (or index) does not know."""

    def __init__(self, contig: str, *, suggestion: Optional[str] = None) -> None:
        msg = f"Unknown contig: {contig!r}"
        if suggestion:
            msg += f" (did you mean {suggestion!r}?)"
        super().__init__(msg)
        self.contig = contig
        self.suggestion = suggestion


class OutOfBoundsRegionError(XcfError):
    """Raised when a region starts past the declared length of its contig."""

    def __init__(self, contig: str, start: int, length: int) -> None:
        super().__init__(
            f"Region start {start} is beyond the end of contig {contig!r} (length {length})"
        )
        self.contig = contig
        self.start = int(start)
        self.length = int(length)


class OutOfOrderContigError(XcfError):
    """Raised when a forward scan passes the target contig in dictionary order."""

    def __init__(self, target: str, observed: str) -> None:
        super().__init__(
            f"Contig {observed!r} sorts after target contig {target!r}; "
            "a forward scan can no longer reach the target"
        )
        self.target = target
        self.observed = observed


class IndexUnavailableError(XcfError):
    """Raised when a side-car index cannot be parsed.

    Internal: ``find_index`` downgrades it to "no index".
    """
