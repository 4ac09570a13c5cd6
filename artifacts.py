#!/usr/bin/env python3
"""
artifacts.py

Lifecycle of the files a build leaves on disk.

Before the first engine runs:
  - reconcile() removes stale graph files when overwrite was requested, or
    refuses to continue when a graph structure file exists without its
    segment and sequence files.
  - prepare_directories() creates the work directory and the directory that
    will hold the output prefix.

After the last engine succeeded:
  - write_version_manifest() records the component versions next to the index.
  - cleanup_intermediate() removes the graph segment and sequence files unless
    they are to be kept. The structure file always stays; it is small and
    describes the references that were indexed.

Nothing here runs after a failed stage, so whatever the failed engine wrote is
left in place for inspection.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

from errors import CleanupWarning, ConflictError, FilesystemError
from paths import ArtifactSet
from utils import ensure_dir, write_json

log = logging.getLogger(__name__)


def remove_stale(p: Path) -> None:
    """Delete a file if present; any failure is fatal."""
    try:
        p.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        raise FilesystemError(f"Failed to remove existing file {p}: {exc}") from exc
    log.info("removed existing file %s", p)


def reconcile(artifacts: ArtifactSet, overwrite: bool) -> None:
    """
    Bring pre-existing graph artifacts into a state the build can start from.

    With overwrite, the structure, segment and sequence files are deleted.
    Without it, a structure file whose segment or sequence file is missing is
    a ConflictError.
    """
    if overwrite:
        for p in artifacts.graph_files:
            remove_stale(p)

    struct_file = artifacts.struct_file
    if struct_file.exists() and (not artifacts.seq_file.exists() or not artifacts.seg_file.exists()):
        log.warning(
            "The prefix you have chosen for output already corresponds to an existing cDBG structure file %s.",
            struct_file,
        )
        log.warning(
            "However, the corresponding seq and seg files do not exist. Please either delete this "
            "structure file, choose another output prefix, or use the --overwrite flag."
        )
        raise ConflictError(
            f"Cannot write over existing index without the --overwrite flag: {struct_file} exists "
            "but its .cf_seg/.cf_seq files do not. Delete the structure file, choose another "
            "output prefix, or pass --overwrite."
        )


def prepare_directories(work_dir: Path, artifacts: ArtifactSet) -> None:
    """Create the work directory and the output prefix's parent if absent."""
    if work_dir.is_dir():
        log.info("will use %s as the work directory for temporary files.", work_dir)
    else:
        try:
            ensure_dir(work_dir)
        except OSError as exc:
            log.error("when attempting to create working directory %s, encountered error %s", work_dir, exc)
            raise FilesystemError(
                f"Failed to create working directory {work_dir} for index construction: {exc}"
            ) from exc

    parent = artifacts.graph_prefix.parent
    if not parent.exists():
        try:
            ensure_dir(parent)
        except OSError as exc:
            raise FilesystemError(f"Failed to create output directory {parent}: {exc}") from exc
        log.info("directory %s did not already exist; creating it.", parent)


def write_version_manifest(artifacts: ArtifactSet, versions: Dict[str, str]) -> Path:
    """Write <prefix>_ver.json mapping component name to version."""
    try:
        write_json(artifacts.version_file, dict(versions))
    except OSError as exc:
        raise FilesystemError(f"Failed to write version manifest {artifacts.version_file}: {exc}") from exc
    log.info("wrote version manifest %s", artifacts.version_file)
    return artifacts.version_file


def cleanup_intermediate(artifacts: ArtifactSet) -> List[CleanupWarning]:
    """
    Remove the graph segment and sequence files.

    Each failure is logged and returned as a CleanupWarning; one failed
    deletion does not stop the next. A file that is already gone is fine.
    """
    log.info("removing intermediate cDBG files produced by the graph builder.")
    warnings: List[CleanupWarning] = []
    for label, p in (("segment", artifacts.seg_file), ("tiling", artifacts.seq_file)):
        try:
            p.unlink()
        except FileNotFoundError:
            log.info("%s file %s already absent", label, p)
            continue
        except OSError as exc:
            w = CleanupWarning(path=p, reason=repr(exc))
            log.warning("%s!", w)
            warnings.append(w)
            continue
        log.info("removed %s file %s", label, p)
    return warnings
