from __future__ import annotations

import gzip
import json
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pysam

TOY_CONTIGS: List[Tuple[str, int]] = [("chr1", 10_000), ("chr2", 5_000), ("chr3", 1_000)]

# (contig, 1-based pos, ref, alt, id, qual, filter)
TOY_VARIANTS: List[Tuple[str, int, str, str, Optional[str], Optional[float], str]] = [
    ("chr1", 1000, "A", "C", "rs1000", 50.0, "PASS"),
    ("chr1", 2000, "G", "T", None, None, "PASS"),
    ("chr2", 3000, "C", "G", "rs3000", 12.0, "LowQual"),
    ("chr2", 4000, "ACGTA", "A", "del4000", 60.0, "PASS"),
]


def _toy_header() -> pysam.VariantHeader:
    header = pysam.VariantHeader()
    header.add_meta("fileformat", "VCFv4.2")
    for name, length in TOY_CONTIGS:
        header.contigs.add(name, length=length)
    header.filters.add("LowQual", None, None, "Low quality call")
    header.info.add("DP", number=1, type="Integer", description="Total depth")
    header.formats.add("GT", number=1, type="String", description="Genotype")
    header.add_sample("NA00001")
    return header


def _write_variants(path: Path, mode: str, header: pysam.VariantHeader) -> None:
    with pysam.VariantFile(str(path), mode, header=header) as vcf:
        for contig, pos, ref, alt, vid, qual, filt in TOY_VARIANTS:
            rec = vcf.new_record(
                contig=contig,
                start=pos - 1,
                stop=pos - 1 + len(ref),
                alleles=(ref, alt),
                id=vid,
                qual=qual,
                filter=filt,
            )
            rec.info["DP"] = 30
            rec.samples[0]["GT"] = (0, 1)
            vcf.write(rec)


def _gunzip(src: Path, dst: Path) -> None:
    # BGZF is a series of gzip members, so gzip reads it end to end.
    with gzip.open(src, "rb") as fin, open(dst, "wb") as fout:
        shutil.copyfileobj(fin, fout)


def make_toy_data(*, outdir: str | Path) -> Dict[str, str]:
    """Write a tiny variant set in every supported encoding.

    The outputs include:
    - toy.vcf (plain text)
    - toy.vcf.gz (+ .tbi)
    - toy_csi.vcf.gz (+ .csi)
    - toy_noindex.vcf.gz (BGZF, no index)
    - toy.bcf (BGZF, + .csi)
    - toy.u.bcf (uncompressed BCF)

    Returns
    -------
    dict
        Paths to the generated files.
    """
    outdir_p = Path(outdir)
    outdir_p.mkdir(parents=True, exist_ok=True)
    header = _toy_header()

    vcf_path = outdir_p / "toy.vcf"
    _write_variants(vcf_path, "w", header)

    vcf_gz = outdir_p / "toy.vcf.gz"
    pysam.tabix_compress(str(vcf_path), str(vcf_gz), force=True)
    pysam.tabix_index(str(vcf_gz), preset="vcf", force=True)

    vcf_csi = outdir_p / "toy_csi.vcf.gz"
    shutil.copyfile(vcf_gz, vcf_csi)
    pysam.tabix_index(str(vcf_csi), preset="vcf", force=True, csi=True)

    vcf_noindex = outdir_p / "toy_noindex.vcf.gz"
    shutil.copyfile(vcf_gz, vcf_noindex)

    bcf_path = outdir_p / "toy.bcf"
    _write_variants(bcf_path, "wb", header)
    pysam.tabix_index(str(bcf_path), preset="bcf", csi=True, force=True)

    ubcf_path = outdir_p / "toy.u.bcf"
    _gunzip(bcf_path, ubcf_path)

    summary = {
        "vcf": str(vcf_path),
        "vcf_gz": str(vcf_gz),
        "vcf_gz_tbi": str(vcf_gz) + ".tbi",
        "vcf_gz_csi": str(vcf_csi),
        "vcf_gz_noindex": str(vcf_noindex),
        "bcf": str(bcf_path),
        "bcf_csi": str(bcf_path) + ".csi",
        "bcf_uncompressed": str(ubcf_path),
        "outdir": str(outdir_p),
    }

    with open(outdir_p / "toy_summary.json", "wt", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, sort_keys=True)
    return summary
