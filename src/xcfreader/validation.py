"""Contig naming helpers used to make unknown-contig errors actionable."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


_UCSC_PREFIX = "chr"
_MITO = {"ucsc": "chrM", "ensembl": "MT"}


def detect_contig_style(contigs: Iterable[str]) -> str:
    """Return 'ucsc' when at least half of the names start with 'chr', else 'ensembl'.

    An empty dictionary is 'unknown'.
    """
    names = [c for c in contigs if c]
    if not names:
        return "unknown"
    n_prefixed = sum(1 for c in names if c.startswith(_UCSC_PREFIX))
    return "ucsc" if n_prefixed >= max(1, len(names) // 2) else "ensembl"


def remap_contig(contig: str, style: str) -> str:
    """Spell ``contig`` in the given naming style ('ucsc' or 'ensembl')."""
    if contig in _MITO.values() and style in _MITO:
        return _MITO[style]
    if style == "ucsc" and not contig.startswith(_UCSC_PREFIX):
        return _UCSC_PREFIX + contig
    if style == "ensembl" and contig.startswith(_UCSC_PREFIX):
        return contig[len(_UCSC_PREFIX) :]
    return contig


def suggest_contig(contig: str, known: Iterable[str]) -> Optional[str]:
    """Return ``contig`` respelled in the style of ``known`` if that name exists."""
    names = list(known)
    style = detect_contig_style(names)
    if style == "unknown":
        return None
    candidate = remap_contig(contig, style)
    if candidate != contig and candidate in names:
        logger.debug("Contig %r not found; %r matches the %s naming style", contig, candidate, style)
        return candidate
    return None
