#!/usr/bin/env python3
"""
piscem.py

Command-line entry point: index a reference, or map reads against an index.

  piscem [--quiet] build      -s a.fa,b.fa -t 8 -o idx/out
  piscem [--quiet] map-sc     -i idx/out -g chromium_v3 -1 r1.fq -2 r2.fq -o out
  piscem [--quiet] map-bulk   -i idx/out -1 r1.fq -2 r2.fq -o out
  piscem [--quiet] map-scatac -i idx/out -1 r1.fq -2 r2.fq -b bc.fq -o out

List-valued options take ',' separated values and may be repeated. Engine
executables are taken from PATH, or from the PISCEM_* environment variables
listed in paths.py.

Any pipeline error ends the process with "ERROR: <message>" and exit status 1.
Failing to remove intermediate files after a successful build is reported but
does not change the exit status.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import paths
from build_index import build_index
from build_request import BuildRequest, parse_klen
from errors import ConfigurationError, PiscemError
from map_reads import MapBulkOpts, MapScAtacOpts, MapSCOpts, map_reads


def configure_logging(quiet: bool) -> None:
    """Log to stderr at INFO, or WARNING when quiet."""
    logging.basicConfig(
        level=logging.WARNING if quiet else logging.INFO,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )


def comma_list(s: str) -> List[str]:
    return [x for x in s.split(",") if x]


def klen_arg(s: str) -> int:
    try:
        return parse_klen(s)
    except ConfigurationError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _add_build_parser(sub) -> None:
    p = sub.add_parser("build", help="Index a reference sequence")
    inputs = p.add_argument_group("Input").add_mutually_exclusive_group(required=True)
    inputs.add_argument("-s", "--ref-seqs", type=comma_list, action="extend",
                        help="',' separated list of reference FASTA files")
    inputs.add_argument("-l", "--ref-lists", type=comma_list, action="extend",
                        help="',' separated list of files (each listing input FASTA files)")
    inputs.add_argument("-d", "--ref-dirs", type=comma_list, action="extend",
                        help="',' separated list of directories (all FASTA files in each directory "
                             "will be indexed, but not recursively)")

    params = p.add_argument_group("Index Construction Parameters")
    params.add_argument("-k", "--klen", type=klen_arg, default=paths.DEFAULT_KLEN,
                        help="length of k-mer to use, must be <= 31 and odd")
    params.add_argument("-m", "--mlen", type=int, default=paths.DEFAULT_MLEN,
                        help="length of minimizer to use; must be < klen")
    params.add_argument("-t", "--threads", type=int, required=True, help="number of threads to use")
    params.add_argument("--no-ec-table", action="store_true",
                        help="skip the construction of the equivalence class lookup table (not recommended)")
    params.add_argument("--seed", type=int, default=paths.DEFAULT_SEED,
                        help="index construction seed (useful if empty buckets occur)")

    p.add_argument("-o", "--output", type=Path, required=True, help="output file stem")

    details = p.add_argument_group("Indexing Details")
    details.add_argument("--keep-intermediate-dbg", action="store_true",
                         help="retain the graph segment/sequence files (the default is to remove them)")
    details.add_argument("-w", "--work-dir", type=Path, default=paths.DEFAULT_WORK_DIR,
                         help="working directory where temporary files should be placed")
    details.add_argument("--overwrite", action="store_true",
                         help="overwrite an existing index if the output path is the same")

    p.add_argument("--decoy-paths", type=comma_list, action="extend",
                   help="',' separated list of decoy sequences used to insert poison k-mer information")


def _add_common_map_args(p, threads_default: int = paths.DEFAULT_MAP_THREADS) -> None:
    p.add_argument("-i", "--index", required=True, help="input index prefix")
    p.add_argument("-t", "--threads", type=int, default=threads_default, help="number of threads to use")
    p.add_argument("-o", "--output", type=Path, required=True, help="path to output directory")
    p.add_argument("--no-poison", action="store_true",
                   help="do not consider poison k-mers, even if the underlying index contains them")
    p.add_argument("-c", "--struct-constraints", action="store_true",
                   help="apply structural constraints when performing mapping")
    p.add_argument("--skipping-strategy", default=paths.SKIPPING_STRATEGY, choices=paths.SKIPPING_STRATEGIES,
                   help="the skipping strategy to use for k-mer collection")


def _add_occ_args(p) -> None:
    p.add_argument("--ignore-ambig-hits", action="store_true",
                   help="skip checking of the equivalence classes of k-mers that were too ambiguous")
    adv = p.add_argument_group("Advanced options")
    adv.add_argument("--max-ec-card", type=int, default=None,
                     help=f"maximum cardinality equivalence class to examine (default {paths.MAX_EC_CARD}; "
                          "cannot be used with --ignore-ambig-hits)")
    adv.add_argument("--max-hit-occ", type=int, default=paths.MAX_HIT_OCC)
    adv.add_argument("--max-hit-occ-recover", type=int, default=paths.MAX_HIT_OCC_RECOVER)
    adv.add_argument("--max-read-occ", type=int, default=paths.MAX_READ_OCC)


def _add_reads_args(p) -> None:
    p.add_argument("-1", "--read1", type=comma_list, action="extend", default=[])
    p.add_argument("-2", "--read2", type=comma_list, action="extend", default=[])
    p.add_argument("-r", "--reads", type=comma_list, action="extend", default=[])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="piscem",
        description="Indexing and mapping to compacted colored de Bruijn graphs",
    )
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {paths.ORCHESTRATOR_VERSION}")
    parser.add_argument("-q", "--quiet", action="store_true", help="be quiet")
    sub = parser.add_subparsers(dest="command", required=True)

    _add_build_parser(sub)

    sc = sub.add_parser("map-sc", help="map reads for single-cell processing")
    _add_common_map_args(sc)
    sc.add_argument("-g", "--geometry", required=True, help="geometry of barcode, umi and read")
    sc.add_argument("-1", "--read1", type=comma_list, action="extend", required=True)
    sc.add_argument("-2", "--read2", type=comma_list, action="extend", required=True)
    _add_occ_args(sc)

    bulk = sub.add_parser("map-bulk", help="map reads for bulk processing")
    _add_common_map_args(bulk)
    _add_reads_args(bulk)
    _add_occ_args(bulk)

    atac = sub.add_parser("map-scatac", help="map reads for single-cell ATAC processing")
    _add_common_map_args(atac)
    _add_reads_args(atac)
    atac.add_argument("-b", "--barcode", type=comma_list, action="extend", required=True)
    atac.add_argument("--sam-format", action="store_true", help="output mappings in sam format")
    atac.add_argument("--bed-format", action="store_true", help="output mappings in bed format")
    atac.add_argument("--use-chr", action="store_true", help="use chromosomes as color")
    atac.add_argument("--thr", type=float, default=paths.THRESHOLD,
                      help="threshold to be considered for pseudoalignment")
    atac.add_argument("--bin-size", type=int, default=paths.BIN_SIZE, help="size of virtual color")
    atac.add_argument("--bin-overlap", type=int, default=paths.BIN_OVERLAP, help="size for bin overlap")
    atac.add_argument("--no-tn5-shift", action="store_true", help="do not apply Tn5 shift to mapped positions")
    atac.add_argument("--check-kmer-orphan", action="store_true",
                      help="do not map a pair if a mapping k-mer exists for the unmapped mate")
    atac.add_argument("--bclen", type=int, default=paths.BCLEN, help="the length of the barcode sequence")
    atac.add_argument("--end-cache-capacity", type=int, default=paths.END_CACHE_CAPACITY,
                      help="capacity of the cache for k-mers at the ends of unitigs")
    return parser


def request_from_args(args: argparse.Namespace) -> BuildRequest:
    return BuildRequest(
        output_prefix=args.output,
        threads=args.threads,
        ref_seqs=args.ref_seqs or (),
        ref_lists=args.ref_lists or (),
        ref_dirs=args.ref_dirs or (),
        klen=args.klen,
        mlen=args.mlen,
        work_dir=args.work_dir,
        overwrite=args.overwrite,
        keep_intermediate=args.keep_intermediate_dbg,
        build_ec_table=not args.no_ec_table,
        decoy_paths=args.decoy_paths or (),
        seed=args.seed,
        quiet=args.quiet,
    )


def map_opts_from_args(args: argparse.Namespace):
    common = dict(
        index=args.index,
        output=args.output,
        threads=args.threads,
        no_poison=args.no_poison,
        struct_constraints=args.struct_constraints,
        skipping_strategy=args.skipping_strategy,
    )
    if args.command == "map-sc":
        return MapSCOpts(
            geometry=args.geometry,
            read1=tuple(args.read1),
            read2=tuple(args.read2),
            ignore_ambig_hits=args.ignore_ambig_hits,
            max_ec_card=args.max_ec_card,
            max_hit_occ=args.max_hit_occ,
            max_hit_occ_recover=args.max_hit_occ_recover,
            max_read_occ=args.max_read_occ,
            **common,
        )
    if args.command == "map-bulk":
        return MapBulkOpts(
            read1=tuple(args.read1),
            read2=tuple(args.read2),
            reads=tuple(args.reads),
            ignore_ambig_hits=args.ignore_ambig_hits,
            max_ec_card=args.max_ec_card,
            max_hit_occ=args.max_hit_occ,
            max_hit_occ_recover=args.max_hit_occ_recover,
            max_read_occ=args.max_read_occ,
            **common,
        )
    return MapScAtacOpts(
        read1=tuple(args.read1),
        read2=tuple(args.read2),
        reads=tuple(args.reads),
        barcode=tuple(args.barcode),
        sam_format=args.sam_format,
        bed_format=args.bed_format,
        use_chr=args.use_chr,
        thr=args.thr,
        bin_size=args.bin_size,
        bin_overlap=args.bin_overlap,
        no_tn5_shift=args.no_tn5_shift,
        check_kmer_orphan=args.check_kmer_orphan,
        bclen=args.bclen,
        end_cache_capacity=args.end_cache_capacity,
        **common,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse command-line arguments and run the selected command.

    Returns 0 on success; pipeline errors exit through SystemExit with an
    "ERROR: ..." message.
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.quiet)

    try:
        if args.command == "build":
            result = build_index(request_from_args(args))
            for w in result.warnings:
                print(f"WARNING: {w}", file=sys.stderr)
            print("DONE")
            print(f"  Index prefix : {result.artifacts.output_prefix}")
            print(f"  Versions     : {result.version_file}")
        else:
            map_reads(map_opts_from_args(args), quiet=args.quiet)
    except PiscemError as exc:
        raise SystemExit(f"ERROR: {exc}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
