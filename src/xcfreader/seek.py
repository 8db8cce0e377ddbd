"""Region seeking.

``skip_to`` positions a ``Reader`` so that its next record is the first one
overlapping a region. Indexed readers jump through the side-car index and are
idempotent: repeating a call re-seeks. Streaming readers scan forward from
their current position and never rewind, so a region already passed can only
end in end-of-stream or an ordering error.

A record overlaps a region when it lies on ``region.contig``, its end
coordinate is at or after ``region.first`` and, for a bounded region, it starts
before ``region.end``. Records whose end is unknown are treated as ending at
``pos + 1``.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import OutOfBoundsRegionError, OutOfOrderContigError, UnknownContigError
from .header import Header
from .index import VariantIndex
from .models import GenomicRegion, VariantRecord
from .reader import IndexedBackend, Reader
from .validation import suggest_contig

logger = logging.getLogger(__name__)


def record_end(record: VariantRecord) -> int:
    return record.end if record.end is not None else record.pos + 1


def _past_end(record: VariantRecord, region: GenomicRegion) -> bool:
    return region.end is not None and record.chrom == region.contig and record.pos >= region.end


def _overlaps(record: VariantRecord, region: GenomicRegion) -> bool:
    if record.chrom != region.contig or record_end(record) < region.first:
        return False
    return region.end is None or record.pos < region.end


def _unknown_contig(header: Header, contig: str, index: Optional[VariantIndex] = None) -> UnknownContigError:
    known = header.contig_names or (index.names if index is not None else [])
    return UnknownContigError(contig, suggestion=suggest_contig(contig, known))


def skip_to(reader: Reader, region: GenomicRegion) -> bool:
    """Position ``reader`` at the first record overlapping ``region``.

    Returns True when the next ``next_record`` call yields that record, and
    False when no overlapping record remains. An indexed reader is then at
    end of stream; a streaming reader that stopped at the first record past a
    bounded region keeps that record pending for later calls.

    Raises
    ------
    UnknownContigError
        The region's contig is not in the header's contig dictionary (or the
        index name table).
    OutOfBoundsRegionError
        Streaming only: the region starts past the contig's declared length.
    OutOfOrderContigError
        Streaming only: the scan reached a contig that sorts after the target,
        so the target can no longer be reached going forward.
    """
    backend = reader.backend
    if isinstance(backend, IndexedBackend):
        return _skip_indexed(reader, backend, region)
    return _skip_streaming(reader, region)


def _resolve_reference_id(header: Header, index: VariantIndex, contig: str) -> Optional[int]:
    """Map ``contig`` to the index's reference id.

    Returns None for a contig the header declares but the index has no
    records for.
    """
    if header.has_contigs and contig not in header:
        raise _unknown_contig(header, contig, index)
    if index.names:
        ref_id = index.reference_id(contig)
        if ref_id is None and contig not in header:
            raise _unknown_contig(header, contig, index)
        return ref_id
    ref_id = header.contig_index(contig)
    if ref_id is None:
        raise _unknown_contig(header, contig, index)
    return ref_id


def _skip_indexed(reader: Reader, backend: IndexedBackend, region: GenomicRegion) -> bool:
    header = reader.header
    ref_id = _resolve_reference_id(header, backend.index, region.contig)

    reader.discard_pending()
    if ref_id is None:
        logger.debug("Index holds no records for %s", region.contig)
        backend.seek_to_end()
        return False

    end0 = region.end - 1 if region.end is not None else None
    chunks = backend.index.query(ref_id, region.first - 1, end0)
    if not chunks:
        logger.debug("Index returned no chunks for %s", region)
        backend.seek_to_end()
        return False

    logger.debug("Seeking to %#x for %s (%d chunks)", chunks[0].begin, region, len(chunks))
    backend.seek(chunks[0].begin)

    # Scan forward from the first chunk; later chunks are reached sequentially.
    on_target = False
    while True:
        rec = reader.next_record()
        if rec is None:
            return False
        if _overlaps(rec, region):
            reader.push_back(rec)
            return True
        if _past_end(rec, region):
            backend.seek_to_end()
            return False
        if rec.chrom == region.contig:
            on_target = True
        elif on_target:
            backend.seek_to_end()
            return False


def _skip_streaming(reader: Reader, region: GenomicRegion) -> bool:
    header = reader.header

    target_rank: Optional[int] = None
    if header.has_contigs:
        target_rank = header.contig_index(region.contig)
        if target_rank is None:
            raise _unknown_contig(header, region.contig)
        length = header.contig_length(region.contig)
        if length is not None and region.first > length:
            raise OutOfBoundsRegionError(region.contig, region.first, length)

    last_chrom: Optional[str] = None
    n_skipped = 0
    while True:
        rec = reader.next_record()
        if rec is None:
            logger.debug("Reached end of stream after skipping %d records for %s", n_skipped, region)
            return False
        if _overlaps(rec, region):
            reader.push_back(rec)
            logger.debug("Skipped %d records to reach %s", n_skipped, region)
            return True
        if _past_end(rec, region):
            reader.push_back(rec)
            logger.debug("Passed the end of %s after skipping %d records", region, n_skipped)
            return False
        n_skipped += 1

        if rec.chrom != last_chrom:
            last_chrom = rec.chrom
            if target_rank is not None and rec.chrom != region.contig:
                rank = header.contig_index(rec.chrom)
                if rank is not None and rank > target_rank:
                    raise OutOfOrderContigError(region.contig, rec.chrom)
