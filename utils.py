#!/usr/bin/env python3
"""
utils.py

Shared utility helpers for the piscem build and mapping entry points.

This module provides small, reusable helper functions used across the
pipeline modules, including directory creation, executable lookup, command
execution, CPU counting and safe text/JSON writing. The goal is to centralize
common boilerplate and enforce consistent behavior (error handling, logging)
across the stages.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any, List, Optional, Sequence

from errors import ConfigurationError

log = logging.getLogger(__name__)


def ensure_dir(p: Path) -> None:
    """Create a directory and its missing parents; an existing one is left alone."""
    p.mkdir(parents=True, exist_ok=True)


def which_or_die(exe: str) -> str:
    """
    Resolve an engine executable to a full path.

    Accepts a bare program name (looked up on PATH) or a path to an
    executable file, e.g. one taken from a PISCEM_* variable. A missing
    executable is a ConfigurationError.
    """
    p = shutil.which(exe)
    if not p:
        raise ConfigurationError(f"'{exe}' not found in PATH.")
    return p


def run(cmd: Sequence[str], cwd: Optional[Path] = None, env: Optional[dict[str, str]] = None) -> int:
    """
    Execute an external command and return its exit code.

    Logs the command (shell-style) for transparency. The caller decides what
    a nonzero exit means; engines report failure only through this integer.
    """
    log.info("$ %s", " ".join(cmd))
    proc = subprocess.run(list(cmd), cwd=str(cwd) if cwd else None, env=env)
    return proc.returncode


def capture_first_line(cmd: List[str]) -> Optional[str]:
    """
    Run a short query command and return the first line of its stdout.

    Returns None if the command cannot be launched, fails or prints nothing.
    """
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.SubprocessError):
        return None
    if result.returncode != 0:
        return None
    lines = result.stdout.strip().splitlines()
    return lines[0].strip() if lines else None


def available_cpus() -> int:
    """Number of logical CPUs, at least 1."""
    return os.cpu_count() or 1


def write_text(p: Path, s: str) -> None:
    """Write UTF-8 text, creating the parent directory first."""
    ensure_dir(p.parent)
    p.write_text(s, encoding="utf-8")


def write_json(p: Path, obj: Any) -> None:
    """Write a JSON document (2-space indent, trailing newline)."""
    write_text(p, json.dumps(obj, indent=2, sort_keys=True) + "\n")
