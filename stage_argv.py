#!/usr/bin/env python3
"""
stage_argv.py

Build the argument vector handed to each build engine.

Each stage has one builder that returns the complete argv (program name
first) in a fixed order, so the same request always yields the same tokens:

  graph  : cdbg_builder --seq|--list|--dir <a,b> -k <k> --track-short-seqs
           --poly-N-stretch -o <prefix>_cfish -t <n> -f 3 -w <work_dir>
  index  : ref_index_builder -i <prefix>_cfish -k <k> -m <m> --canonical-parsing
           [--build-ec-table] -o <prefix> -d <work_dir> -t <n> [--seed <s>] [--quiet]
  poison : poison_table_builder -i <prefix> -t <n> [--overwrite] -d <d1,d2> [--quiet]

Engines receive their arguments as C strings, so every token is checked for
embedded NUL bytes before it is returned.
"""

from __future__ import annotations

from typing import Iterable, List

import paths
from build_request import BuildRequest, reference_input
from errors import MarshalError
from paths import ArtifactSet

GRAPH_STAGE = "graph-construction"
INDEX_STAGE = "index-construction"
POISON_STAGE = "poison-table"


def check_tokens(argv: Iterable[str]) -> List[str]:
    """Return argv as a list of str, or raise MarshalError on a NUL byte."""
    tokens = [str(t) for t in argv]
    for pos, tok in enumerate(tokens):
        if "\x00" in tok:
            raise MarshalError(f"argument {pos} ({tok!r}) contains an embedded NUL byte")
    return tokens


def graph_stage_argv(request: BuildRequest, artifacts: ArtifactSet) -> List[str]:
    flag, values = reference_input(request)
    argv = [paths.GRAPH_PROGRAM, flag, ",".join(values)]
    argv += ["-k", str(request.klen)]
    argv += paths.GRAPH_FIXED_FLAGS
    argv += ["-o", str(artifacts.graph_prefix)]
    argv += ["-t", str(request.threads)]
    # output format
    argv += ["-f", paths.GRAPH_OUTPUT_FORMAT]
    argv += ["-w", str(request.work_dir)]
    return check_tokens(argv)


def index_stage_argv(request: BuildRequest, artifacts: ArtifactSet) -> List[str]:
    argv = [
        paths.INDEX_PROGRAM,
        "-i", str(artifacts.graph_prefix),
        "-k", str(request.klen),
        "-m", str(request.mlen),
        paths.CANONICAL_PARSING_FLAG,
    ]
    if request.build_ec_table:
        argv.append("--build-ec-table")
    argv += ["-o", str(artifacts.output_prefix)]
    argv += ["-d", str(request.work_dir)]
    argv += ["-t", str(request.threads)]
    if request.seed != paths.DEFAULT_SEED:
        argv += ["--seed", str(request.seed)]
    if request.quiet:
        argv.append("--quiet")
    return check_tokens(argv)


def poison_stage_argv(request: BuildRequest, artifacts: ArtifactSet) -> List[str]:
    # index is the one the previous stage just built
    argv = [paths.POISON_PROGRAM, "-i", str(artifacts.output_prefix), "-t", str(request.threads)]
    if request.overwrite:
        argv.append("--overwrite")
    argv += ["-d", ",".join(str(d) for d in request.decoy_paths)]
    if request.quiet:
        argv.append("--quiet")
    return check_tokens(argv)


STAGE_BUILDERS = {
    GRAPH_STAGE: graph_stage_argv,
    INDEX_STAGE: index_stage_argv,
    POISON_STAGE: poison_stage_argv,
}


def marshal(stage: str, request: BuildRequest, artifacts: ArtifactSet) -> List[str]:
    """Build the argv for a named stage."""
    try:
        builder = STAGE_BUILDERS[stage]
    except KeyError:
        raise ValueError(f"unknown stage: {stage}") from None
    return builder(request, artifacts)
