import io
from pathlib import Path

import pysam
import pytest

from xcfreader import find_index, open_path, open_reader
from xcfreader.errors import OutOfBoundsRegionError, OutOfOrderContigError, UnknownContigError
from xcfreader.models import GenomicRegion

STREAMING = ["vcf", "vcf_gz_noindex", "bcf_uncompressed"]
INDEXED = ["vcf_gz", "vcf_gz_csi", "bcf"]


def _pos(rec):
    return (rec.chrom, rec.pos)


@pytest.mark.parametrize("key", STREAMING + INDEXED)
def test_skip_to_lands_on_first_overlap(toy, key):
    with open_path(toy[key]) as reader:
        assert reader.skip_to(GenomicRegion("chr1", 2000))
        assert _pos(reader.next_record()) == ("chr1", 2000)
        assert _pos(reader.next_record()) == ("chr2", 3000)


@pytest.mark.parametrize("key", INDEXED)
def test_indexed_skip_to_is_idempotent(toy, key):
    with open_path(toy[key]) as reader:
        assert reader.is_indexed
        region = GenomicRegion("chr1", 2000)
        assert reader.skip_to(region)
        assert _pos(reader.next_record()) == ("chr1", 2000)
        assert reader.skip_to(region)
        assert _pos(reader.next_record()) == ("chr1", 2000)


def test_indexed_binary_skip_to(toy):
    with open_path(toy["bcf"]) as reader:
        assert reader.is_indexed
        assert reader.skip_to("chr2:3500-")
        rec = reader.next_record()
        assert (_pos(rec), rec.end) == (("chr2", 4000), 4004)
        assert reader.skip_to("chr1:1000-1000")
        assert _pos(reader.next_record()) == ("chr1", 1000)


@pytest.mark.parametrize("key", STREAMING)
def test_streaming_skip_to_is_forward_only(toy, key):
    with open_path(toy[key]) as reader:
        region = GenomicRegion("chr1", 2000)
        assert reader.skip_to(region)
        assert _pos(reader.next_record()) == ("chr1", 2000)
        with pytest.raises(OutOfOrderContigError) as exc:
            reader.skip_to(region)
        assert exc.value.target == "chr1"
        assert exc.value.observed == "chr2"


@pytest.mark.parametrize("key", STREAMING + INDEXED)
def test_overlap_through_deletion_end(toy, key):
    with open_path(toy[key]) as reader:
        assert reader.skip_to("chr2:4003-")
        rec = reader.next_record()
        assert _pos(rec) == ("chr2", 4000)
        assert rec.end == 4004


@pytest.mark.parametrize("key", STREAMING + INDEXED)
def test_no_overlapping_record_returns_false(toy, key):
    with open_path(toy[key]) as reader:
        assert not reader.skip_to("chr2:4500-")
        assert reader.next_record() is None


@pytest.mark.parametrize("key", STREAMING + INDEXED)
def test_declared_contig_without_records(toy, key):
    with open_path(toy[key]) as reader:
        assert not reader.skip_to("chr3")
        assert reader.next_record() is None


@pytest.mark.parametrize("key", STREAMING + INDEXED)
def test_unknown_contig_suggests_naming_style(toy, key):
    with open_path(toy[key]) as reader:
        with pytest.raises(UnknownContigError) as exc:
            reader.skip_to("2")
    assert exc.value.contig == "2"
    assert exc.value.suggestion == "chr2"
    assert "did you mean 'chr2'" in str(exc.value)


@pytest.mark.parametrize("key", STREAMING)
def test_region_beyond_contig_length(toy, key):
    with open_path(toy[key]) as reader:
        with pytest.raises(OutOfBoundsRegionError) as exc:
            reader.skip_to(GenomicRegion("chr2", 6000))
    assert exc.value.length == 5000


def test_indexed_region_beyond_contig_length_finds_nothing(toy):
    with open_path(toy["vcf_gz"]) as reader:
        assert not reader.skip_to(GenomicRegion("chr2", 6000))


def test_pending_record_is_yielded_by_iteration(toy):
    with open_path(toy["vcf"]) as reader:
        assert reader.skip_to("chr1:1500")
        assert [_pos(r) for r in reader] == [("chr1", 2000), ("chr2", 3000), ("chr2", 4000)]


def test_streaming_without_contig_dictionary():
    text = (
        b"##fileformat=VCFv4.2\n"
        b"#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\n"
        b"chrB\t100\t.\tA\tG\t.\t.\t.\n"
        b"chrA\t50\t.\tC\tT\t.\t.\t.\n"
        b"chrA\t80\t.\t.\tT\t.\t.\t.\n"
    )
    reader = open_reader(io.BytesIO(text))
    assert not reader.header.has_contigs
    assert reader.skip_to("chrA:60")
    rec = reader.next_record()
    assert _pos(rec) == ("chrA", 80)
    assert rec.end is None
    assert not reader.skip_to("chrZ")


def test_unknown_end_counts_as_pos_plus_one():
    text = (
        b"##fileformat=VCFv4.2\n"
        b"#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\n"
        b"chrA\t80\t.\t.\tT\t.\t.\t.\n"
    )
    reader = open_reader(io.BytesIO(text))
    assert reader.skip_to("chrA:81")
    assert _pos(reader.next_record()) == ("chrA", 80)


@pytest.mark.parametrize("key", STREAMING + INDEXED)
def test_bounded_region_before_first_record(toy, key):
    with open_path(toy[key]) as reader:
        assert not reader.skip_to("chr1:1-499")


@pytest.mark.parametrize("key", STREAMING + INDEXED)
def test_bounded_region_end_is_exclusive(toy, key):
    with open_path(toy[key]) as reader:
        assert not reader.skip_to(GenomicRegion("chr1", 1001, 2000))


@pytest.mark.parametrize("key", STREAMING + INDEXED)
def test_bounded_region_with_a_record(toy, key):
    with open_path(toy[key]) as reader:
        assert reader.skip_to("chr1:1500-2500")
        assert _pos(reader.next_record()) == ("chr1", 2000)


def test_streaming_keeps_record_past_bounded_region(toy):
    with open_path(toy["vcf"]) as reader:
        assert not reader.skip_to("chr1:1-499")
        assert _pos(reader.next_record()) == ("chr1", 1000)


def test_indexed_ends_stream_past_bounded_region(toy):
    with open_path(toy["vcf_gz"]) as reader:
        assert not reader.skip_to("chr1:1-499")
        assert reader.next_record() is None


# (0-based start, stop, alleles) on chr7. The symbolic deletion spans index
# windows 4-9 and sits in a coarser bin, so a query at 160000 returns its
# chunk first, separated from the chunk holding 165000 by the records between.
SPREAD_VARIANTS = [
    (999, 1_000, ("A", "C")),
    (79_999, 150_000, ("N", "<DEL>")),
    (99_999, 100_000, ("G", "T")),
    (119_999, 120_000, ("C", "A")),
    (164_999, 165_000, ("T", "G")),
    (299_999, 300_000, ("A", "G")),
]


def _write_spread_vcf(outdir: Path, *, csi: bool) -> Path:
    header = pysam.VariantHeader()
    header.add_meta("fileformat", "VCFv4.2")
    header.contigs.add("chr7", length=1_000_000)
    header.info.add("END", number=1, type="Integer", description="Stop position of the interval")

    vcf_path = outdir / "spread.vcf"
    with pysam.VariantFile(str(vcf_path), "w", header=header) as vcf:
        for start, stop, alleles in SPREAD_VARIANTS:
            vcf.write(vcf.new_record(contig="chr7", start=start, stop=stop, alleles=alleles))

    vcf_gz = outdir / "spread.vcf.gz"
    pysam.tabix_compress(str(vcf_path), str(vcf_gz), force=True)
    pysam.tabix_index(str(vcf_gz), preset="vcf", force=True, csi=csi)
    return vcf_gz


@pytest.mark.parametrize("csi", [False, True])
def test_indexed_scan_reaches_later_chunks(tmp_path: Path, csi):
    vcf_gz = _write_spread_vcf(tmp_path, csi=csi)
    index = find_index(vcf_gz)
    assert index is not None
    assert index.kind == ("csi" if csi else "tbi")
    assert len(index.query(index.reference_id("chr7"), 159_999)) >= 2

    with open_path(vcf_gz) as reader:
        assert reader.is_indexed
        assert reader.skip_to("chr7:160000-")
        rec = reader.next_record()
        assert (_pos(rec), rec.end) == (("chr7", 165000), 165000)
        assert _pos(reader.next_record()) == ("chr7", 300000)


def test_spanning_record_overlaps_region_inside_it(tmp_path: Path):
    vcf_gz = _write_spread_vcf(tmp_path, csi=False)
    with open_path(vcf_gz) as reader:
        assert reader.skip_to("chr7:140000-")
        rec = reader.next_record()
        assert (_pos(rec), rec.end) == (("chr7", 80000), 150000)
