#!/usr/bin/env python3
"""
build_request.py

The immutable description of one index build, and the checks that gate it.

A BuildRequest is created once per invocation (normally from the command
line) and is read-only afterwards. validate_request() applies the rules below
in order and stops at the first violation; apart from probing the declared
decoy files it touches nothing on disk, so a rejected request never leaves a
trace.

  1) threads >= 1
  2) threads <= number of logical CPUs
  3) mlen < klen
  4) klen odd and 1 <= klen <= 31, mlen >= 0
  5) every decoy path exists and is readable
  6) exactly one reference input form (sequences, list files, directories)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Tuple

import paths
from errors import ConfigurationError, InputError
from utils import available_cpus

# flag emitted for each reference input form, in precedence order
REFERENCE_FLAGS = (
    ("ref_seqs", "--seq"),
    ("ref_lists", "--list"),
    ("ref_dirs", "--dir"),
)


def parse_klen(text: str) -> int:
    """
    Parse a k-mer length given on the command line.

    The value must be a positive integer that is odd and at most 31.
    """
    try:
        k = int(text)
    except (TypeError, ValueError):
        raise ConfigurationError(f"`{text}` can't be parsed as a number") from None
    if k < 1:
        raise ConfigurationError(f"klen = {k} must be positive")
    if k > paths.MAX_KLEN:
        raise ConfigurationError(f"klen = {k} must be <= {paths.MAX_KLEN}")
    if k % 2 == 0:
        raise ConfigurationError(f"klen = {k} must be odd")
    return k


def _as_tuple(values) -> tuple:
    # a lone path is one entry, not a sequence of characters
    if values is None:
        return ()
    if isinstance(values, (str, os.PathLike)):
        return (values,)
    return tuple(values)


@dataclass(frozen=True)
class BuildRequest:
    """
    Parameters of a single index build.

    Exactly one of ref_seqs, ref_lists and ref_dirs should be non-empty.
    Sequence fields are stored as tuples.
    """
    output_prefix: Path
    threads: int
    ref_seqs: Tuple[str, ...] = ()
    ref_lists: Tuple[str, ...] = ()
    ref_dirs: Tuple[str, ...] = ()
    klen: int = paths.DEFAULT_KLEN
    mlen: int = paths.DEFAULT_MLEN
    work_dir: Path = paths.DEFAULT_WORK_DIR
    overwrite: bool = False
    keep_intermediate: bool = False
    build_ec_table: bool = True
    decoy_paths: Tuple[Path, ...] = field(default_factory=tuple)
    seed: int = paths.DEFAULT_SEED
    quiet: bool = False

    def __post_init__(self) -> None:
        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "output_prefix", Path(self.output_prefix))
        object.__setattr__(self, "work_dir", Path(self.work_dir))
        for name in ("ref_seqs", "ref_lists", "ref_dirs"):
            object.__setattr__(self, name, tuple(str(v) for v in _as_tuple(getattr(self, name))))
        object.__setattr__(self, "decoy_paths", tuple(Path(d) for d in _as_tuple(self.decoy_paths)))

    @property
    def has_decoys(self) -> bool:
        return bool(self.decoy_paths)


def reference_input(request: BuildRequest) -> Tuple[str, Tuple[str, ...]]:
    """
    Return (flag, values) for the single reference input form in use.

    The argument parser already makes the three forms mutually exclusive;
    this is the re-check done before the graph stage is marshaled.
    """
    present = [(flag, getattr(request, name)) for name, flag in REFERENCE_FLAGS if getattr(request, name)]
    if len(present) != 1:
        raise ConfigurationError(
            "Input (via --ref-seqs, --ref-lists, or --ref-dirs) must be provided, "
            f"and only one form may be used (got {len(present)})."
        )
    return present[0]


def check_threads(threads: int, ncpus: Optional[int] = None) -> None:
    """Reject a thread count that is non-positive or exceeds the CPU count."""
    ncpus = available_cpus() if ncpus is None else ncpus
    if threads < 1:
        raise ConfigurationError(
            f"non-positive thread count: the number of provided threads ({threads}) must be greater than 0."
        )
    if threads > ncpus:
        raise ConfigurationError(
            f"thread count exceeds available CPUs: the number of provided threads ({threads}) "
            f"should be <= the number of logical CPUs ({ncpus})."
        )


def check_decoys(decoy_paths: Sequence[Path]) -> None:
    """Every decoy file must exist and be readable."""
    for d in decoy_paths:
        try:
            exists = d.exists()
        except OSError as exc:
            raise InputError(f"Error {exc} when checking the existence of decoy file {d}") from exc
        if not exists:
            raise InputError(f"Path for decoy file {d} seems not to point to a valid file")
        if not os.access(d, os.R_OK):
            raise InputError(f"Decoy file {d} exists but is not readable")


def validate_request(request: BuildRequest, ncpus: Optional[int] = None) -> None:
    """
    Check a build request before any engine runs.

    Raises ConfigurationError or InputError on the first violated rule and
    returns None when the request is valid.
    """
    check_threads(request.threads, ncpus)

    if request.mlen >= request.klen:
        raise ConfigurationError(
            f"minimizer length must be smaller than k-mer length: "
            f"minimizer length ({request.mlen}) must be < k-mer length ({request.klen})"
        )
    if not 1 <= request.klen <= paths.MAX_KLEN or request.klen % 2 == 0:
        raise ConfigurationError(f"klen = {request.klen} must be odd and between 1 and {paths.MAX_KLEN}")
    if request.mlen < 0:
        raise ConfigurationError(f"minimizer length ({request.mlen}) must not be negative")

    check_decoys(request.decoy_paths)
    reference_input(request)
