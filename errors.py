#!/usr/bin/env python3
"""
errors.py

Error taxonomy for index construction and read mapping.

Every error raised by the pipeline modules derives from PiscemError so the
command-line entry points can turn it into a single "ERROR: ..." exit. All of
them except StageFailure are raised before any engine is launched.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class PiscemError(Exception):
    """Base class for fatal pipeline errors."""


class ConfigurationError(PiscemError):
    """Invalid request parameters (threads, k/m lengths, input selection)."""


class InputError(PiscemError):
    """A referenced input file is missing or cannot be checked."""


class ConflictError(PiscemError):
    """Pre-existing artifacts are inconsistent and overwrite was not requested."""


class FilesystemError(PiscemError):
    """A required directory or stale artifact could not be created or removed."""


class MarshalError(PiscemError):
    """A stage argument cannot be passed to an engine (embedded NUL byte)."""


class StageFailure(PiscemError):
    """
    An engine returned a nonzero exit code.

    The exit code is the only diagnostic an engine reports; it is not
    interpreted further.
    """

    def __init__(self, stage_name: str, exit_code: int):
        self.stage_name = stage_name
        self.exit_code = exit_code
        super().__init__(f"{stage_name} returned exit code {exit_code}; failure.")


@dataclass(frozen=True)
class CleanupWarning:
    """A non-fatal failure to delete an intermediate artifact."""
    path: Path
    reason: str

    def __str__(self) -> str:
        return f"cannot remove {self.path}, encountered error {self.reason}"
