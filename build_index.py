#!/usr/bin/env python3
"""
build_index.py

Build a piscem reference index by driving the three build engines in order.

The pipeline is strictly sequential; each stage starts only after the
previous one returned exit code 0, and nothing is retried:

  Idle
    -> GraphBuilt    graph builder turns the references into a compacted graph
    -> IndexBuilt    index builder turns the graph into the minimizer index
    -> PoisonBuilt   poison-table builder marks decoy k-mers (only with decoys)
    -> Done          version manifest written, intermediate graph files removed

A nonzero exit from any engine moves the pipeline to Aborted and raises
StageFailure naming the stage and its exit code. No later stage runs, and the
files already written (including the failed engine's partial output) are left
in place.

Everything that can be rejected without running an engine is rejected first:
request validation, a missing engine executable, argument marshaling of the
first stage, pre-existing artifact conflicts and directory creation. A build
either runs to completion or never starts an engine.

Typical usage:
  request = BuildRequest(output_prefix=Path("idx/out"), threads=4, ref_seqs=("a.fa",))
  result = build_index(request)
  print(result.artifacts.sshash_file)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

import paths
from artifacts import cleanup_intermediate, prepare_directories, reconcile, write_version_manifest
from build_request import BuildRequest, validate_request
from engines import Engine, EngineSet
from errors import CleanupWarning, PiscemError, StageFailure
from paths import ArtifactSet, resolve_artifacts
from stage_argv import GRAPH_STAGE, INDEX_STAGE, POISON_STAGE, marshal
from stage_report import StageInvocation, write_stage_report

log = logging.getLogger(__name__)


class BuildState(Enum):
    IDLE = "idle"
    GRAPH_BUILT = "graph-built"
    INDEX_BUILT = "index-built"
    POISON_BUILT = "poison-built"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class BuildResult:
    """Outcome of a completed build; cleanup warnings do not make it fail."""
    artifacts: ArtifactSet
    state: BuildState
    invocations: List[StageInvocation] = field(default_factory=list)
    warnings: List[CleanupWarning] = field(default_factory=list)
    version_file: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.state is BuildState.DONE


class IndexBuilder:
    """
    Stage orchestrator for one build request at a time.

    Engines are injected so tests can replace them with fakes. ncpus
    overrides the logical CPU count used to validate the thread count.
    """

    def __init__(
        self,
        engines: EngineSet,
        ncpus: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.engines = engines
        self.ncpus = ncpus
        self.clock = clock
        self.state = BuildState.IDLE
        self.invocations: List[StageInvocation] = []

    def _advance(self, state: BuildState) -> None:
        log.info("build state: %s -> %s", self.state.value, state.value)
        self.state = state

    def _run_stage(self, stage: str, engine: Engine, argv: List[str]) -> None:
        log.info("%s args = %s", stage, argv)
        start = self.clock()
        code = engine.invoke(argv)
        inv = StageInvocation(stage=stage, argv=tuple(argv), exit_code=int(code), seconds=self.clock() - start)
        self.invocations.append(inv)
        if not inv.ok:
            raise StageFailure(stage, inv.exit_code)

    def _write_report(self, artifacts: ArtifactSet) -> None:
        if not self.invocations:
            return
        try:
            write_stage_report(self.invocations, artifacts.stage_report)
        except OSError as exc:
            log.warning("could not write stage report %s: %s", artifacts.stage_report, exc)

    def versions(self, poison_ran: bool) -> Dict[str, str]:
        versions = {
            self.engines.graph.name: self.engines.graph.version,
            self.engines.index.name: self.engines.index.version,
        }
        if poison_ran:
            versions[self.engines.poison.name] = self.engines.poison.version
        versions[paths.ORCHESTRATOR_NAME] = paths.ORCHESTRATOR_VERSION
        return versions

    def build(self, request: BuildRequest) -> BuildResult:
        if self.state is not BuildState.IDLE:
            raise RuntimeError(f"IndexBuilder already used (state={self.state.value})")

        log.info("starting piscem build")
        validate_request(request, self.ncpus)
        self.engines.check_available(with_poison=request.has_decoys)

        artifacts = resolve_artifacts(request.output_prefix)
        graph_argv = marshal(GRAPH_STAGE, request, artifacts)
        reconcile(artifacts, request.overwrite)
        prepare_directories(request.work_dir, artifacts)

        try:
            self._run_stage(GRAPH_STAGE, self.engines.graph, graph_argv)
            self._advance(BuildState.GRAPH_BUILT)

            self._run_stage(INDEX_STAGE, self.engines.index, marshal(INDEX_STAGE, request, artifacts))
            self._advance(BuildState.INDEX_BUILT)

            if request.has_decoys:
                self._run_stage(POISON_STAGE, self.engines.poison, marshal(POISON_STAGE, request, artifacts))
                self._advance(BuildState.POISON_BUILT)
        except PiscemError:
            self._advance(BuildState.ABORTED)
            raise
        finally:
            self._write_report(artifacts)

        result = BuildResult(artifacts=artifacts, state=self.state, invocations=list(self.invocations))
        result.version_file = write_version_manifest(artifacts, self.versions(request.has_decoys))

        if not request.keep_intermediate:
            result.warnings = cleanup_intermediate(artifacts)

        self._advance(BuildState.DONE)
        result.state = self.state
        log.info("piscem build finished")
        return result


def build_index(request: BuildRequest, engines: Optional[EngineSet] = None, ncpus: Optional[int] = None) -> BuildResult:
    """Run the full build pipeline for one request."""
    return IndexBuilder(engines or EngineSet.from_environment(), ncpus=ncpus).build(request)
