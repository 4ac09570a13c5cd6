#!/usr/bin/env python3
"""
map_reads.py

Dispatch read files to one of the mapping engines against a built index.

Three mappers are supported, each with its own option set:

  MapSCOpts      single-cell (barcode/UMI geometry + read1/read2)  -> sc_ref_mapper
  MapBulkOpts    bulk (paired read1/read2, or unpaired reads)      -> bulk_ref_mapper
  MapScAtacOpts  single-cell ATAC (reads + barcode files)          -> scatac_ref_mapper

Before a mapper is launched:
  - the thread count is checked the same way as for a build,
  - the index prefix must be a stem, not an existing file,
  - the index files the mapper loads must exist (.sshash, .ctab, .refinfo,
    and .ectab unless ambiguous hits are ignored; the ATAC mapper never reads
    .ectab),
  - the argv is checked for embedded NUL bytes.

A nonzero exit from the mapper raises StageFailure with the mapper's stage
name. The exit code is not interpreted further.

The equivalence-class cardinality cap (--max-ec-card) is passed whenever
ambiguous hits are checked, i.e. whenever --ignore-ambig-hits is not set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import paths
from build_request import check_threads
from engines import Engine, SubprocessEngine
from errors import ConfigurationError, InputError, StageFailure
from stage_argv import check_tokens

log = logging.getLogger(__name__)


def index_files(index: str, require_ectab: bool) -> List[Path]:
    """
    The files a mapper loads for an index prefix.

    The prefix must be a file stem: naming an existing file is an error.
    """
    if Path(index).exists():
        raise InputError(
            f"The path {index} was provided as the base path for the index, but this corresponds "
            "to a specific existing file. The provided path should be the file stem "
            "(e.g. without the extension)."
        )
    suffixes = list(paths.MAPPING_INDEX_SUFFIXES)
    if require_ectab:
        suffixes.append(paths.ECTAB_SUFFIX)
    return [Path(index + s) for s in suffixes]


def check_index(index: str, require_ectab: bool) -> None:
    for req in index_files(index, require_ectab):
        if not req.exists():
            raise InputError(
                f"To load the index with the specified prefix {index}, piscem expects the file "
                f"{req} to exist, but it does not!"
            )


def _check_skipping_strategy(strategy: str) -> None:
    if strategy not in paths.SKIPPING_STRATEGIES:
        raise ConfigurationError(
            f"invalid skipping strategy {strategy!r} (choose from {', '.join(paths.SKIPPING_STRATEGIES)})"
        )


def _ambiguity_args(ignore_ambig_hits: bool, max_ec_card: Optional[int]) -> List[str]:
    if ignore_ambig_hits:
        if max_ec_card is not None:
            raise ConfigurationError("--max-ec-card cannot be used with --ignore-ambig-hits")
        return ["--ignore-ambig-hits"]
    card = paths.MAX_EC_CARD if max_ec_card is None else max_ec_card
    return ["--max-ec-card", str(card)]


def _occ_args(max_hit_occ: int, max_hit_occ_recover: int, max_read_occ: int) -> List[str]:
    return [
        "--max-hit-occ", str(max_hit_occ),
        "--max-hit-occ-recover", str(max_hit_occ_recover),
        "--max-read-occ", str(max_read_occ),
    ]


def _read_args(
    reads: Sequence[str], read1: Sequence[str], read2: Sequence[str]
) -> List[str]:
    # unpaired reads and read1/read2 are mutually exclusive
    if reads:
        if read1 or read2:
            raise ConfigurationError("unpaired reads (-r) cannot be combined with --read1/--read2")
        return ["-r", ",".join(reads)]
    if read1 and read2:
        return ["-1", ",".join(read1), "-2", ",".join(read2)]
    if read1 or read2:
        raise ConfigurationError("--read1 and --read2 must be provided together")
    raise ConfigurationError("no reads provided: give either --reads or --read1 and --read2")


@dataclass(frozen=True)
class MapSCOpts:
    """Single-cell mapping options."""
    index: str
    geometry: str
    read1: Tuple[str, ...]
    read2: Tuple[str, ...]
    output: Path
    threads: int = paths.DEFAULT_MAP_THREADS
    no_poison: bool = False
    struct_constraints: bool = False
    skipping_strategy: str = paths.SKIPPING_STRATEGY
    ignore_ambig_hits: bool = False
    max_ec_card: Optional[int] = None
    max_hit_occ: int = paths.MAX_HIT_OCC
    max_hit_occ_recover: int = paths.MAX_HIT_OCC_RECOVER
    max_read_occ: int = paths.MAX_READ_OCC

    stage = "map-sc"
    program = paths.SC_MAPPER_PROGRAM

    def as_argv(self, quiet: bool = False) -> List[str]:
        if not self.read1 or not self.read2:
            raise ConfigurationError("single-cell mapping requires both --read1 and --read2")
        _check_skipping_strategy(self.skipping_strategy)
        check_index(self.index, require_ectab=not self.ignore_ambig_hits)

        args = [
            self.program,
            "-i", self.index,
            "-g", self.geometry,
            "-1", ",".join(self.read1),
            "-2", ",".join(self.read2),
            "-t", str(self.threads),
            "-o", str(self.output),
        ]
        args += _ambiguity_args(self.ignore_ambig_hits, self.max_ec_card)
        if self.no_poison:
            args.append("--no-poison")
        args += ["--skipping-strategy", self.skipping_strategy]
        if self.struct_constraints:
            args.append("--struct-constraints")
        args += _occ_args(self.max_hit_occ, self.max_hit_occ_recover, self.max_read_occ)
        if quiet:
            args.append("--quiet")
        return check_tokens(args)


@dataclass(frozen=True)
class MapBulkOpts:
    """Bulk mapping options; either paired read1/read2 or unpaired reads."""
    index: str
    output: Path
    read1: Tuple[str, ...] = ()
    read2: Tuple[str, ...] = ()
    reads: Tuple[str, ...] = ()
    threads: int = paths.DEFAULT_MAP_THREADS
    no_poison: bool = False
    struct_constraints: bool = False
    skipping_strategy: str = paths.SKIPPING_STRATEGY
    ignore_ambig_hits: bool = False
    max_ec_card: Optional[int] = None
    max_hit_occ: int = paths.MAX_HIT_OCC
    max_hit_occ_recover: int = paths.MAX_HIT_OCC_RECOVER
    max_read_occ: int = paths.MAX_READ_OCC

    stage = "map-bulk"
    program = paths.BULK_MAPPER_PROGRAM

    def as_argv(self, quiet: bool = False) -> List[str]:
        read_args = _read_args(self.reads, self.read1, self.read2)
        _check_skipping_strategy(self.skipping_strategy)
        check_index(self.index, require_ectab=not self.ignore_ambig_hits)

        args = [self.program, "-i", self.index, "-t", str(self.threads), "-o", str(self.output)]
        args += read_args
        args += _ambiguity_args(self.ignore_ambig_hits, self.max_ec_card)
        if self.no_poison:
            args.append("--no-poison")
        args += ["--skipping-strategy", self.skipping_strategy]
        if self.struct_constraints:
            args.append("--struct-constraints")
        args += _occ_args(self.max_hit_occ, self.max_hit_occ_recover, self.max_read_occ)
        if quiet:
            args.append("--quiet")
        return check_tokens(args)


@dataclass(frozen=True)
class MapScAtacOpts:
    """Single-cell ATAC mapping options."""
    index: str
    output: Path
    barcode: Tuple[str, ...]
    read1: Tuple[str, ...] = ()
    read2: Tuple[str, ...] = ()
    reads: Tuple[str, ...] = ()
    threads: int = paths.DEFAULT_MAP_THREADS
    no_poison: bool = False
    struct_constraints: bool = False
    skipping_strategy: str = paths.SKIPPING_STRATEGY
    sam_format: bool = False
    bed_format: bool = False
    use_chr: bool = False
    thr: float = paths.THRESHOLD
    bin_size: int = paths.BIN_SIZE
    bin_overlap: int = paths.BIN_OVERLAP
    no_tn5_shift: bool = False
    check_kmer_orphan: bool = False
    bclen: int = paths.BCLEN
    end_cache_capacity: int = paths.END_CACHE_CAPACITY

    stage = "map-scatac"
    program = paths.SCATAC_MAPPER_PROGRAM

    def as_argv(self, quiet: bool = False) -> List[str]:
        read_args = _read_args(self.reads, self.read1, self.read2)
        if not self.barcode:
            raise ConfigurationError("scATAC mapping requires --barcode files")
        _check_skipping_strategy(self.skipping_strategy)
        check_index(self.index, require_ectab=False)

        args = [self.program, "-i", self.index, "-t", str(self.threads), "-o", str(self.output)]
        args += read_args
        args += ["-b", ",".join(self.barcode)]
        if self.no_poison:
            args.append("--no-poison")
        args += ["--skipping-strategy", self.skipping_strategy]
        if self.struct_constraints:
            args.append("--struct-constraints")
        if self.bed_format:
            args.append("--bed-format")
        if self.use_chr:
            args.append("--use-chr")
        if self.sam_format:
            args.append("--sam-format")
        if self.check_kmer_orphan:
            args.append("--kmers-orphans")
        args += ["--thr", str(self.thr)]
        if self.no_tn5_shift:
            args += ["--tn5-shift", "false"]
        args += ["--bin-size", str(self.bin_size)]
        args += ["--bin-overlap", str(self.bin_overlap)]
        args += ["--bclen", str(self.bclen)]
        args += ["--end-cache-capacity", str(self.end_cache_capacity)]
        if quiet:
            args.append("--quiet")
        return check_tokens(args)


def map_reads(opts, engine: Optional[Engine] = None, quiet: bool = False, ncpus: Optional[int] = None) -> List[str]:
    """
    Validate mapping options, launch the mapper and wait for it.

    Returns the argv that was passed on success.
    """
    check_threads(opts.threads, ncpus)
    argv = opts.as_argv(quiet=quiet)
    engine = engine or SubprocessEngine(opts.program)

    log.info("cmd: %s", argv)
    code = engine.invoke(argv)
    if code != 0:
        raise StageFailure(opts.stage, int(code))
    return argv
