import pytest

from xcfreader.models import GenomicRegion


def test_parse_region_forms():
    assert GenomicRegion.parse("chr1") == GenomicRegion("chr1")
    assert GenomicRegion.parse("chr1:2000") == GenomicRegion("chr1", 2000)
    assert GenomicRegion.parse("chr1:2000-") == GenomicRegion("chr1", 2000)
    assert GenomicRegion.parse("chr1:2,000-2,100") == GenomicRegion("chr1", 2000, 2101)


def test_region_first_defaults_to_one():
    assert GenomicRegion("chrM").first == 1
    assert GenomicRegion("chrM", 5).first == 5


def test_region_str_is_inclusive():
    assert str(GenomicRegion("chr1", 2000, 2101)) == "chr1:2000-2100"
    assert str(GenomicRegion("chr1", 2000)) == "chr1:2000-"
    assert str(GenomicRegion("chr1")) == "chr1"


@pytest.mark.parametrize("text", ["", ":100", "chr1:abc", "chr1:0"])
def test_parse_rejects_bad_regions(text):
    with pytest.raises(ValueError):
        GenomicRegion.parse(text)


def test_region_end_must_follow_start():
    with pytest.raises(ValueError):
        GenomicRegion("chr1", 100, 100)
