#!/usr/bin/env python3
"""
paths.py

Central configuration and artifact layout for the piscem index build.

This module acts as the single source of truth for defaults, engine program
names, engine executables and on-disk artifact names used by the build and
mapping entry points. Other modules import values from here to avoid
duplicating hardcoded names in multiple places.

Key responsibilities:
  1) Define build and mapping defaults (k-mer / minimizer length, seed,
     work directory, mapping thresholds).
  2) Define the logical program name of every external engine (argv[0]) and
     the executable launched for it (overridable through PISCEM_* variables).
  3) Define the artifact suffixes and derive every artifact path from a single
     output prefix (resolve_artifacts).

Artifact layout for output prefix <p>:

  <p>_cfish.cf_seg      graph segments        (intermediate, removed by default)
  <p>_cfish.cf_seq      graph tilings         (intermediate, removed by default)
  <p>_cfish.json        graph structure file  (always retained)
  <p>.sshash            minimizer index
  <p>.ctab              color table
  <p>.refinfo           reference info
  <p>.ectab             equivalence-class table (unless --no-ec-table)
  <p>_ver.json          component versions (written after a successful build)
  <p>_stages.tsv        stage ledger
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

# ----------------- Orchestrator identity -----------------

ORCHESTRATOR_NAME = "piscem"
ORCHESTRATOR_VERSION = "0.1.0"

# ----------------- Build defaults -----------------

DEFAULT_KLEN = 31
DEFAULT_MLEN = 19
MAX_KLEN = 31
DEFAULT_SEED = 1
DEFAULT_WORK_DIR = Path("./workdir.noindex")

# ----------------- Mapping defaults -----------------

DEFAULT_MAP_THREADS = 16
MAX_EC_CARD = 4096
MAX_HIT_OCC = 256
MAX_HIT_OCC_RECOVER = 1024
MAX_READ_OCC = 2500
SKIPPING_STRATEGY = "permissive"
SKIPPING_STRATEGIES = ("permissive", "strict")
THRESHOLD = 0.7
BIN_SIZE = 1000
BIN_OVERLAP = 300
BCLEN = 16
END_CACHE_CAPACITY = 5_000_000

# ----------------- Engines -----------------

# Logical program names (argv[0] of every stage invocation)
GRAPH_PROGRAM = "cdbg_builder"
INDEX_PROGRAM = "ref_index_builder"
POISON_PROGRAM = "poison_table_builder"
SC_MAPPER_PROGRAM = "sc_ref_mapper"
BULK_MAPPER_PROGRAM = "bulk_ref_mapper"
SCATAC_MAPPER_PROGRAM = "scatac_ref_mapper"

# Environment variable that may point each program at a concrete executable
ENGINE_ENV_VARS = {
    GRAPH_PROGRAM: "PISCEM_CDBG_BUILDER",
    INDEX_PROGRAM: "PISCEM_REF_INDEX_BUILDER",
    POISON_PROGRAM: "PISCEM_POISON_TABLE_BUILDER",
    SC_MAPPER_PROGRAM: "PISCEM_SC_MAPPER",
    BULK_MAPPER_PROGRAM: "PISCEM_BULK_MAPPER",
    SCATAC_MAPPER_PROGRAM: "PISCEM_SCATAC_MAPPER",
}

# Fixed graph-stage tokens
GRAPH_FIXED_FLAGS = ["--track-short-seqs", "--poly-N-stretch"]
GRAPH_OUTPUT_FORMAT = "3"

# Fixed index-stage token
CANONICAL_PARSING_FLAG = "--canonical-parsing"

# ----------------- Artifact suffixes -----------------

CFISH_SUFFIX = "_cfish"
SEG_SUFFIX = ".cf_seg"
SEQ_SUFFIX = ".cf_seq"
STRUCT_SUFFIX = ".json"

SSHASH_SUFFIX = ".sshash"
CTAB_SUFFIX = ".ctab"
REFINFO_SUFFIX = ".refinfo"
ECTAB_SUFFIX = ".ectab"
VERSION_SUFFIX = "_ver.json"
STAGE_REPORT_SUFFIX = "_stages.tsv"

# Index files a mapper needs; ectab only when ambiguous hits are checked
MAPPING_INDEX_SUFFIXES = (SSHASH_SUFFIX, CTAB_SUFFIX, REFINFO_SUFFIX)


def engine_executable(program: str) -> str:
    """
    Resolve the executable launched for a logical engine program.

    Uses the PISCEM_* variable listed in ENGINE_ENV_VARS when it is set,
    otherwise the program name itself (looked up on PATH at launch time).
    """
    var = ENGINE_ENV_VARS.get(program)
    if var:
        return os.environ.get(var, program)
    return program


def _append(p: Path, suffix: str) -> Path:
    # plain string append; with_suffix() would eat dots already in the prefix
    return Path(str(p) + suffix)


@dataclass(frozen=True)
class ArtifactSet:
    """
    Every file a build reads or writes, derived from one output prefix.

    Graph artifacts hang off <prefix>_cfish, index artifacts hang off the
    prefix itself.
    """
    output_prefix: Path
    graph_prefix: Path
    seg_file: Path
    seq_file: Path
    struct_file: Path
    sshash_file: Path
    ctab_file: Path
    refinfo_file: Path
    ectab_file: Path
    version_file: Path
    stage_report: Path

    @property
    def graph_files(self) -> tuple[Path, Path, Path]:
        return (self.struct_file, self.seg_file, self.seq_file)

    @property
    def index_files(self) -> tuple[Path, ...]:
        return (self.sshash_file, self.ctab_file, self.refinfo_file, self.ectab_file)


def resolve_artifacts(output_prefix: Path | str) -> ArtifactSet:
    """
    Derive the artifact layout for an output prefix.

    Pure function: no filesystem access, same input gives the same set.
    """
    prefix = Path(output_prefix)
    graph_prefix = _append(prefix, CFISH_SUFFIX)
    return ArtifactSet(
        output_prefix=prefix,
        graph_prefix=graph_prefix,
        seg_file=_append(graph_prefix, SEG_SUFFIX),
        seq_file=_append(graph_prefix, SEQ_SUFFIX),
        struct_file=_append(graph_prefix, STRUCT_SUFFIX),
        sshash_file=_append(prefix, SSHASH_SUFFIX),
        ctab_file=_append(prefix, CTAB_SUFFIX),
        refinfo_file=_append(prefix, REFINFO_SUFFIX),
        ectab_file=_append(prefix, ECTAB_SUFFIX),
        version_file=_append(prefix, VERSION_SUFFIX),
        stage_report=_append(prefix, STAGE_REPORT_SUFFIX),
    )
