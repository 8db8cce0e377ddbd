from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .detect import ensure_peekable, sniff
from .index import find_index
from .models import GenomicRegion, VariantRecord
from .reader import open_path
from .toy_data import make_toy_data

_MISSING = "."


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _region(text: str) -> GenomicRegion:
    try:
        return GenomicRegion.parse(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _handle_error(err: Exception) -> int:
    sys.stderr.write(f"{err.__class__.__name__}: {err}\n")
    return 2


def _format_record(rec: VariantRecord) -> str:
    cols = [
        rec.chrom,
        str(rec.pos),
        rec.id or _MISSING,
        rec.ref,
        ",".join(rec.alts) or _MISSING,
        _MISSING if rec.qual is None else f"{rec.qual:g}",
        ";".join(rec.filters) or _MISSING,
        _MISSING if rec.end is None else str(rec.end),
    ]
    return "\t".join(cols)


def _past_region(rec: VariantRecord, region: GenomicRegion) -> bool:
    if rec.chrom != region.contig:
        return True
    return region.end is not None and rec.pos >= region.end


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="xcfreader",
        description=(
            "xcfreader: read VCF and BCF files (plain or BGZF-compressed) through one interface, "
            "with index-assisted region seeking."
        ),
    )
    p.add_argument("--version", action="version", version=f"xcfreader {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # sniff
    # -----------------
    s = sub.add_parser(
        "sniff",
        help="Report the detected encoding, compression and side-car index of variant files.",
    )
    s.add_argument("paths", nargs="+", type=_path_exists, help="VCF/BCF files to inspect.")
    s.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    # -----------------
    # view
    # -----------------
    v = sub.add_parser(
        "view",
        help="Print records as tab-separated CHROM POS ID REF ALT QUAL FILTER END lines.",
    )
    v.add_argument("path", type=_path_exists, help="VCF/BCF file (.vcf, .vcf.gz, .bcf).")
    v.add_argument(
        "--region",
        type=_region,
        default=None,
        help="Only print records overlapping this region (e.g. chr1, chr1:2000-, chr1:2000-2100).",
    )
    v.add_argument("--limit", type=int, default=None, help="Stop after this many records.")
    v.add_argument("--no-index", action="store_true", help="Ignore any .csi/.tbi index and scan sequentially.")
    v.add_argument("--header", action="store_true", help="Print the file header before the records.")
    v.add_argument("--log-file", type=Path, default=None, help="Also write log messages to this file.")
    v.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny variant set in every supported encoding, with indexes.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")
    t.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    return p


def cmd_sniff(args: argparse.Namespace) -> int:
    _setup_logging(args.verbose)
    try:
        results = {}
        for path in args.paths:
            with open(path, "rb") as fh:
                fmt, compression = sniff(ensure_peekable(fh))
            index = find_index(path)
            results[path] = {
                "format": fmt.value,
                "compression": compression.value if compression is not None else None,
                "index": index.kind if index is not None else None,
            }
        print(json.dumps(results, indent=2))
        return 0
    except Exception as e:
        return _handle_error(e)


def cmd_view(args: argparse.Namespace) -> int:
    _setup_logging(args.verbose, logfile=args.log_file)
    logger = logging.getLogger("xcfreader")
    logger.info("xcfreader %s", __version__)

    if args.limit is not None and args.limit < 0:
        return _handle_error(ValueError(f"--limit must be >= 0, got {args.limit}"))

    try:
        with open_path(args.path, use_index=not args.no_index) as reader:
            if args.header:
                sys.stdout.write(str(reader.header.variant_header))

            if args.region is not None and not reader.skip_to(args.region):
                logger.info("No records overlap %s", args.region)
                return 0

            n = 0
            for rec in reader:
                if args.limit is not None and n >= args.limit:
                    break
                if args.region is not None and _past_region(rec, args.region):
                    break
                print(_format_record(rec))
                n += 1
            logger.info("Printed %d records from %s", n, args.path)
        return 0
    except Exception as e:
        return _handle_error(e)


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    _setup_logging(args.verbose)
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    try:
        summary = make_toy_data(outdir=outdir)
    except Exception as e:
        return _handle_error(e)
    print(json.dumps(summary, indent=2))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "sniff":
        return cmd_sniff(args)
    if args.cmd == "view":
        return cmd_view(args)
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
